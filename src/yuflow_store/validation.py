"""Pure checks run on input DTOs before they reach the database.

Each ``validate_*`` function collects every violation it can find and raises
a single :class:`ValidationFailed`; the ``*_errors`` variants return the list
instead so callers can merge or display them.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from yuflow_store.errors import FieldError, ValidationFailed
from yuflow_store.models import (
    CATEGORY_NAME_MAX_LENGTH,
    DESCRIPTION_MAX_LENGTH,
    PRIORITIES,
    TAG_NAME_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    CreateCategoryInput,
    CreateTagInput,
    CreateTaskInput,
    TaskFilters,
    UpdateCategoryInput,
    UpdateTaskInput,
    parse_iso,
)

HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


def _check_text(
    errors: List[FieldError], field: str, value: Optional[str], max_length: int
) -> None:
    if value is None or not value.strip():
        errors.append(FieldError(field, "required", "must not be empty"))
    elif len(value) > max_length:
        errors.append(
            FieldError(field, "max_length", f"must be at most {max_length} characters")
        )


def _check_description(errors: List[FieldError], value: Optional[str]) -> None:
    if value is not None and len(value) > DESCRIPTION_MAX_LENGTH:
        errors.append(
            FieldError(
                "description",
                "max_length",
                f"must be at most {DESCRIPTION_MAX_LENGTH} characters",
            )
        )


def _check_priority(errors: List[FieldError], value: Optional[str]) -> None:
    if value is not None and value not in PRIORITIES:
        errors.append(
            FieldError("priority", "one_of", f"must be one of {', '.join(PRIORITIES)}")
        )


def _check_due_date(errors: List[FieldError], value: Optional[str]) -> None:
    if value is None:
        return
    parsed = parse_iso(value)
    if parsed is None:
        errors.append(
            FieldError("due_date", "iso8601", "must be an ISO 8601 date-time")
        )
    elif parsed.tzinfo is None or parsed.utcoffset() is None:
        errors.append(
            FieldError("due_date", "timezone", "must include a UTC offset (e.g. 'Z')")
        )


def _check_color(errors: List[FieldError], value: Optional[str]) -> None:
    if value is not None and not HEX_COLOR.match(value):
        errors.append(FieldError("color", "hex_color", "must look like '#RRGGBB'"))


def _check_not_null(
    errors: List[FieldError], changes: Dict[str, Any], fields: tuple
) -> List[str]:
    nulled = [f for f in fields if f in changes and changes[f] is None]
    for field in nulled:
        errors.append(FieldError(field, "not_null", "cannot be set to null"))
    return nulled


def _raise_if_any(errors: List[FieldError]) -> None:
    if errors:
        raise ValidationFailed(errors)


# ---------------------------------------------------------------------------
# Tasks


def create_task_errors(data: CreateTaskInput) -> List[FieldError]:
    errors: List[FieldError] = []
    _check_text(errors, "title", data.title, TITLE_MAX_LENGTH)
    _check_description(errors, data.description)
    _check_priority(errors, data.priority)
    _check_due_date(errors, data.due_date)
    return errors


def update_task_errors(data: UpdateTaskInput) -> List[FieldError]:
    errors: List[FieldError] = []
    changes = data.changes()
    nulled = _check_not_null(errors, changes, ("title", "completed", "priority"))
    if "title" in changes and "title" not in nulled:
        _check_text(errors, "title", changes["title"], TITLE_MAX_LENGTH)
    _check_description(errors, changes.get("description"))
    _check_priority(errors, changes.get("priority"))
    _check_due_date(errors, changes.get("due_date"))
    return errors


def validate_create_task(data: CreateTaskInput) -> None:
    _raise_if_any(create_task_errors(data))


def validate_update_task(data: UpdateTaskInput) -> None:
    _raise_if_any(update_task_errors(data))


def validate_task_filters(filters: TaskFilters) -> None:
    errors: List[FieldError] = []
    _check_priority(errors, filters.priority)
    _raise_if_any(errors)


# ---------------------------------------------------------------------------
# Categories and tags


def create_category_errors(data: CreateCategoryInput) -> List[FieldError]:
    errors: List[FieldError] = []
    _check_text(errors, "name", data.name, CATEGORY_NAME_MAX_LENGTH)
    _check_color(errors, data.color)
    return errors


def update_category_errors(data: UpdateCategoryInput) -> List[FieldError]:
    errors: List[FieldError] = []
    changes = data.changes()
    nulled = _check_not_null(errors, changes, ("name", "color"))
    if "name" in changes and "name" not in nulled:
        _check_text(errors, "name", changes["name"], CATEGORY_NAME_MAX_LENGTH)
    _check_color(errors, changes.get("color"))
    return errors


def validate_create_category(data: CreateCategoryInput) -> None:
    _raise_if_any(create_category_errors(data))


def validate_update_category(data: UpdateCategoryInput) -> None:
    _raise_if_any(update_category_errors(data))


def validate_create_tag(data: CreateTagInput) -> None:
    errors: List[FieldError] = []
    _check_text(errors, "name", data.name, TAG_NAME_MAX_LENGTH)
    _raise_if_any(errors)
