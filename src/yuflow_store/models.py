"""Entities returned by the store and the input DTOs accepted by it.

Entities are materialized from database rows (``from_attributes``) and are the
only objects that leave a unit of work. Input DTOs are deliberately loose
(plain ``str`` for enumerations) so that :mod:`yuflow_store.validation` can
report every violated rule instead of failing on the first bad field.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Constants

Priority = Literal["low", "medium", "high"]

PRIORITIES = ("low", "medium", "high")
DEFAULT_PRIORITY = "medium"
DEFAULT_CATEGORY_COLOR = "#F97316"
PROTECTED_CATEGORY_NAME = "General"

TITLE_MAX_LENGTH = 255
DESCRIPTION_MAX_LENGTH = 1000
CATEGORY_NAME_MAX_LENGTH = 100
TAG_NAME_MAX_LENGTH = 50


# ---------------------------------------------------------------------------
# Entities


class Task(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: int
    title: str
    description: Optional[str] = None
    completed: bool = False
    priority: Priority = DEFAULT_PRIORITY
    category_id: Optional[int] = None
    due_date: Optional[str] = None
    created_at: str
    updated_at: str


class Category(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: int
    name: str
    color: str = DEFAULT_CATEGORY_COLOR
    created_at: str


class Tag(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: int
    name: str
    created_at: str


class AppSetting(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    key: str
    value: str
    updated_at: str


# ---------------------------------------------------------------------------
# Inputs


class CreateTaskInput(BaseModel):
    title: str = Field(description="Task title (1-255 characters)")
    description: Optional[str] = Field(
        None, description="Optional notes (up to 1000 characters)"
    )
    priority: Optional[str] = Field(
        None, description="Task priority: 'low', 'medium' or 'high'. Defaults to 'medium'"
    )
    category_id: Optional[int] = Field(None, description="Identifier of the category")
    due_date: Optional[str] = Field(
        None,
        description="Due date in ISO 8601 format with a UTC offset (e.g., '2026-01-15T10:00:00Z')",
    )


class UpdateTaskInput(BaseModel):
    """Partial update: omitted fields stay as stored, explicit nulls clear."""

    id: int = Field(description="Identifier of the task to update")
    title: Optional[str] = Field(None, description="New title")
    description: Optional[str] = Field(
        None, description="New description; null clears it"
    )
    completed: Optional[bool] = Field(None, description="Completion flag")
    priority: Optional[str] = Field(None, description="'low', 'medium' or 'high'")
    category_id: Optional[int] = Field(
        None, description="New category identifier; null unassigns the category"
    )
    due_date: Optional[str] = Field(
        None, description="New due date (ISO 8601 with offset); null clears it"
    )

    def changes(self) -> Dict[str, Any]:
        """Fields the caller actually sent, excluding the identifier."""
        return self.model_dump(exclude_unset=True, exclude={"id"})


class CreateCategoryInput(BaseModel):
    name: str = Field(description="Category name (1-100 characters)")
    color: Optional[str] = Field(
        None, description="Hex color '#RRGGBB'. Defaults to '#F97316'"
    )


class UpdateCategoryInput(BaseModel):
    id: int = Field(description="Identifier of the category to update")
    name: Optional[str] = Field(None, description="New category name")
    color: Optional[str] = Field(None, description="New hex color '#RRGGBB'")

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude={"id"})


class CreateTagInput(BaseModel):
    name: str = Field(description="Tag name (1-50 characters)")


class TaskFilters(BaseModel):
    model_config = ConfigDict(extra="ignore")

    completed: Optional[bool] = Field(None, description="Filter by completion flag")
    priority: Optional[str] = Field(
        None, description="Filter by priority: 'low', 'medium' or 'high'"
    )
    category_id: Optional[int] = Field(None, description="Filter by category identifier")
    search: Optional[str] = Field(
        None,
        description="Case-insensitive substring matched against title or description",
    )


# ---------------------------------------------------------------------------
# Helpers


def now_iso() -> str:
    return datetime.now(tz=UTC).isoformat(timespec="microseconds")


def parse_iso(value: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None


def next_timestamp(previous: Optional[str] = None) -> str:
    """Current UTC time, bumped past ``previous`` so updates never tie."""
    now = datetime.now(tz=UTC)
    if previous:
        prev = parse_iso(previous)
        if prev is not None and prev.tzinfo is not None and now <= prev:
            now = prev + timedelta(microseconds=1)
    return now.astimezone(UTC).isoformat(timespec="microseconds")
