"""Store operations bound to a single session.

A :class:`UnitOfWork` never commits: the caller owns the transaction, which is
what lets a restore run ``clear_all_data`` and the whole replay as one atomic
unit. Everything returned is a detached pydantic entity.
"""

from __future__ import annotations

from typing import List, Optional

from loguru import logger
from sqlalchemy import ColumnElement, delete, func, or_, select
from sqlalchemy.orm import Session

from yuflow_store.errors import NotFound
from yuflow_store.models import (
    DEFAULT_CATEGORY_COLOR,
    DEFAULT_PRIORITY,
    PROTECTED_CATEGORY_NAME,
    AppSetting,
    Category,
    CreateCategoryInput,
    CreateTagInput,
    CreateTaskInput,
    Tag,
    Task,
    TaskFilters,
    UpdateCategoryInput,
    UpdateTaskInput,
    next_timestamp,
    now_iso,
)
from yuflow_store.tables import (
    AppSettingRecord,
    CategoryRecord,
    TagRecord,
    TaskRecord,
    TaskTagRecord,
)
from yuflow_store.validation import (
    validate_create_category,
    validate_create_tag,
    validate_create_task,
    validate_task_filters,
    validate_update_category,
    validate_update_task,
)


def task_filter_conditions(filters: Optional[TaskFilters]) -> List[ColumnElement[bool]]:
    """Translate filters into WHERE clauses; values are always bound parameters."""
    if filters is None:
        return []
    conditions: List[ColumnElement[bool]] = []
    if filters.completed is not None:
        conditions.append(TaskRecord.completed == filters.completed)
    if filters.priority is not None:
        conditions.append(TaskRecord.priority == filters.priority)
    if filters.category_id is not None:
        conditions.append(TaskRecord.category_id == filters.category_id)
    if filters.search:
        conditions.append(
            or_(
                TaskRecord.title.icontains(filters.search, autoescape=True),
                TaskRecord.description.icontains(filters.search, autoescape=True),
            )
        )
    return conditions


class UnitOfWork:
    def __init__(self, session: Session) -> None:
        self.session = session

    # --- Tasks ---

    def list_tasks(self, filters: Optional[TaskFilters] = None) -> List[Task]:
        if filters is not None:
            validate_task_filters(filters)
        stmt = select(TaskRecord)
        for condition in task_filter_conditions(filters):
            stmt = stmt.where(condition)
        stmt = stmt.order_by(TaskRecord.created_at.desc(), TaskRecord.id.desc())
        return [Task.model_validate(row) for row in self.session.scalars(stmt)]

    def get_task(self, task_id: int) -> Optional[Task]:
        record = self.session.get(TaskRecord, task_id)
        return Task.model_validate(record) if record is not None else None

    def create_task(self, data: CreateTaskInput) -> Task:
        validate_create_task(data)
        if data.category_id is not None:
            self._require_category(data.category_id)
        now = now_iso()
        record = TaskRecord(
            title=data.title,
            description=data.description,
            completed=False,
            priority=data.priority or DEFAULT_PRIORITY,
            category_id=data.category_id,
            due_date=data.due_date,
            created_at=now,
            updated_at=now,
        )
        self.session.add(record)
        self.session.flush()
        self.session.refresh(record)
        logger.info("Task created", task_id=record.id)
        return Task.model_validate(record)

    def update_task(self, data: UpdateTaskInput) -> Task:
        validate_update_task(data)
        record = self._require_task(data.id)
        changes = data.changes()
        if changes.get("category_id") is not None:
            self._require_category(changes["category_id"])
        for field, value in changes.items():
            setattr(record, field, value)
        record.updated_at = next_timestamp(record.updated_at)
        self.session.flush()
        self.session.refresh(record)
        logger.info("Task updated", task_id=record.id, fields=sorted(changes))
        return Task.model_validate(record)

    def delete_task(self, task_id: int) -> None:
        record = self._require_task(task_id)
        self.session.execute(delete(TaskTagRecord).where(TaskTagRecord.task_id == task_id))
        self.session.delete(record)
        self.session.flush()
        logger.info("Task deleted", task_id=task_id)

    # --- Categories ---

    def list_categories(self) -> List[Category]:
        stmt = select(CategoryRecord).order_by(CategoryRecord.name, CategoryRecord.id)
        return [Category.model_validate(row) for row in self.session.scalars(stmt)]

    def get_category(self, category_id: int) -> Optional[Category]:
        record = self.session.get(CategoryRecord, category_id)
        return Category.model_validate(record) if record is not None else None

    def create_category(self, data: CreateCategoryInput) -> Category:
        validate_create_category(data)
        record = CategoryRecord(
            name=data.name,
            color=data.color or DEFAULT_CATEGORY_COLOR,
            created_at=now_iso(),
        )
        self.session.add(record)
        self.session.flush()
        self.session.refresh(record)
        logger.info("Category created", category_id=record.id)
        return Category.model_validate(record)

    def update_category(self, data: UpdateCategoryInput) -> Category:
        validate_update_category(data)
        record = self._require_category(data.id)
        changes = data.changes()
        for field, value in changes.items():
            setattr(record, field, value)
        self.session.flush()
        self.session.refresh(record)
        logger.info("Category updated", category_id=record.id, fields=sorted(changes))
        return Category.model_validate(record)

    def delete_category(self, category_id: int) -> None:
        """Unassign the category from its tasks, then delete it."""
        record = self._require_category(category_id)
        dependents = self.session.scalars(
            select(TaskRecord).where(TaskRecord.category_id == category_id)
        ).all()
        for task in dependents:
            task.category_id = None
            task.updated_at = next_timestamp(task.updated_at)
        self.session.flush()
        self.session.delete(record)
        self.session.flush()
        logger.info(
            "Category deleted",
            category_id=category_id,
            unassigned_tasks=len(dependents),
        )

    # --- Tags ---

    def list_tags(self) -> List[Tag]:
        stmt = select(TagRecord).order_by(TagRecord.name, TagRecord.id)
        return [Tag.model_validate(row) for row in self.session.scalars(stmt)]

    def create_tag(self, data: CreateTagInput) -> Tag:
        validate_create_tag(data)
        record = TagRecord(name=data.name, created_at=now_iso())
        self.session.add(record)
        self.session.flush()
        self.session.refresh(record)
        logger.info("Tag created", tag_id=record.id)
        return Tag.model_validate(record)

    def list_task_tags(self, task_id: int) -> List[Tag]:
        self._require_task(task_id)
        stmt = (
            select(TagRecord)
            .join(TaskTagRecord, TaskTagRecord.tag_id == TagRecord.id)
            .where(TaskTagRecord.task_id == task_id)
            .order_by(TagRecord.name, TagRecord.id)
        )
        return [Tag.model_validate(row) for row in self.session.scalars(stmt)]

    def add_tag_to_task(self, task_id: int, tag_id: int) -> None:
        self._require_task(task_id)
        if self.session.get(TagRecord, tag_id) is None:
            raise NotFound("tag", tag_id)
        if self.session.get(TaskTagRecord, (task_id, tag_id)) is None:
            self.session.add(TaskTagRecord(task_id=task_id, tag_id=tag_id))
            self.session.flush()
            logger.info("Tag linked", task_id=task_id, tag_id=tag_id)

    def remove_tag_from_task(self, task_id: int, tag_id: int) -> None:
        self.session.execute(
            delete(TaskTagRecord).where(
                TaskTagRecord.task_id == task_id, TaskTagRecord.tag_id == tag_id
            )
        )
        logger.info("Tag unlinked", task_id=task_id, tag_id=tag_id)

    # --- Settings ---

    def get_setting(self, key: str) -> Optional[str]:
        record = self.session.get(AppSettingRecord, key)
        return record.value if record is not None else None

    def set_setting(self, key: str, value: str) -> AppSetting:
        record = self.session.get(AppSettingRecord, key)
        if record is None:
            record = AppSettingRecord(key=key, value=value, updated_at=now_iso())
            self.session.add(record)
        else:
            record.value = value
            record.updated_at = next_timestamp(record.updated_at)
        self.session.flush()
        logger.debug("Setting stored", key=key)
        return AppSetting.model_validate(record)

    def list_all_settings(self) -> List[AppSetting]:
        stmt = select(AppSettingRecord).order_by(AppSettingRecord.key)
        return [AppSetting.model_validate(row) for row in self.session.scalars(stmt)]

    # --- Bulk ---

    def clear_all_data(self) -> None:
        """Delete everything a snapshot restores, keeping the default category."""
        self.session.execute(delete(TaskTagRecord))
        self.session.execute(delete(TaskRecord))
        self.session.execute(delete(AppSettingRecord))
        protected_id = self._protected_category_id()
        stmt = delete(CategoryRecord)
        if protected_id is not None:
            stmt = stmt.where(CategoryRecord.id != protected_id)
        self.session.execute(stmt)
        self.session.flush()
        logger.info("All data cleared", kept_category_id=protected_id)

    # --- Helpers ---

    def _protected_category_id(self) -> Optional[int]:
        """The seeded default category: the oldest one carrying the protected name."""
        return self.session.scalar(
            select(func.min(CategoryRecord.id)).where(
                CategoryRecord.name == PROTECTED_CATEGORY_NAME
            )
        )

    def _require_task(self, task_id: int) -> TaskRecord:
        record = self.session.get(TaskRecord, task_id)
        if record is None:
            raise NotFound("task", task_id)
        return record

    def _require_category(self, category_id: int) -> CategoryRecord:
        record = self.session.get(CategoryRecord, category_id)
        if record is None:
            raise NotFound("category", category_id)
        return record
