"""Yuflow store MCP server entrypoint.

Exposes the task store and the backup manager as MCP tools over stdio. Tools
take already-parsed inputs, call the store, and return JSON objects; store
errors are surfaced to the client as tool errors carrying the error message.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Annotated, Iterator, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from loguru import logger

from yuflow_store.backup import BackupManager
from yuflow_store.database import open_database
from yuflow_store.errors import YuflowError
from yuflow_store.logging_config import setup_logging
from yuflow_store.models import (
    CreateCategoryInput,
    CreateTagInput,
    CreateTaskInput,
    TaskFilters,
    UpdateCategoryInput,
    UpdateTaskInput,
)
from yuflow_store.settings import APP_NAME, get_settings
from yuflow_store.store import TaskStore

# ---------------------------------------------------------------------------
# Helpers


@contextmanager
def _tool_errors(tool: str) -> Iterator[None]:
    try:
        yield
    except YuflowError as exc:
        logger.warning("Tool call failed", tool=tool, error=str(exc))
        raise ToolError(str(exc)) from exc


# ---------------------------------------------------------------------------
# MCP server setup


def create_app(
    store: TaskStore,
    backups: BackupManager,
    *,
    name: str = APP_NAME,
    version: Optional[str] = None,
) -> FastMCP:
    app = FastMCP(name=name, version=version)

    # --- Tasks ---

    @app.tool()
    def list_tasks(
        body: Annotated[
            TaskFilters,
            "Optional filters, all combined with AND: completed, priority, category_id and a case-insensitive search over title and description.",
        ],
    ) -> dict:
        """List tasks, newest first.

        Example: List open high-priority tasks:
        {"body": {"completed": false, "priority": "high"}}

        Example: Search titles and descriptions:
        {"body": {"search": "groceries"}}
        """
        with _tool_errors("list_tasks"):
            tasks = store.list_tasks(body)
        return {"total": len(tasks), "tasks": [t.model_dump() for t in tasks]}

    @app.tool()
    def get_task(task_id: Annotated[int, "Task identifier"]) -> dict:
        """Read one task by identifier. Returns {"task": null} when it does not exist."""
        with _tool_errors("get_task"):
            task = store.get_task(task_id)
        return {"task": task.model_dump() if task else None}

    @app.tool()
    def create_task(
        body: Annotated[
            CreateTaskInput,
            "New task. Only title is required; priority defaults to 'medium'.",
        ],
    ) -> dict:
        """Create a task.

        Example: {"body": {"title": "Review PR", "priority": "high", "due_date": "2026-01-15T10:00:00Z"}}
        """
        with _tool_errors("create_task"):
            task = store.create_task(body)
        return {"task": task.model_dump()}

    @app.tool()
    def update_task(
        body: Annotated[
            UpdateTaskInput,
            "Partial update. Omitted fields are left unchanged; null clears description, category_id or due_date.",
        ],
    ) -> dict:
        """Update fields of an existing task.

        Example: Mark a task as done:
        {"body": {"id": 3, "completed": true}}

        Example: Move a task out of its category:
        {"body": {"id": 3, "category_id": null}}
        """
        with _tool_errors("update_task"):
            task = store.update_task(body)
        return {"task": task.model_dump()}

    @app.tool()
    def delete_task(task_id: Annotated[int, "Task identifier"]) -> dict:
        """Delete a task together with its tag links."""
        with _tool_errors("delete_task"):
            store.delete_task(task_id)
        return {"deleted": task_id}

    # --- Categories ---

    @app.tool()
    def list_categories() -> dict:
        """List categories ordered by name."""
        with _tool_errors("list_categories"):
            categories = store.list_categories()
        return {"categories": [c.model_dump() for c in categories]}

    @app.tool()
    def create_category(
        body: Annotated[CreateCategoryInput, "New category: name and optional '#RRGGBB' color."],
    ) -> dict:
        """Create a category.

        Example: {"body": {"name": "Work", "color": "#FF5733"}}
        """
        with _tool_errors("create_category"):
            category = store.create_category(body)
        return {"category": category.model_dump()}

    @app.tool()
    def update_category(
        body: Annotated[UpdateCategoryInput, "Partial update of a category's name or color."],
    ) -> dict:
        """Rename or recolor a category."""
        with _tool_errors("update_category"):
            category = store.update_category(body)
        return {"category": category.model_dump()}

    @app.tool()
    def delete_category(category_id: Annotated[int, "Category identifier"]) -> dict:
        """Delete a category. Its tasks are kept and become uncategorized."""
        with _tool_errors("delete_category"):
            store.delete_category(category_id)
        return {"deleted": category_id}

    # --- Tags ---

    @app.tool()
    def list_tags(
        task_id: Annotated[Optional[int], "When given, only the tags linked to this task"] = None,
    ) -> dict:
        """List all tags, or the tags of one task."""
        with _tool_errors("list_tags"):
            tags = store.list_tags() if task_id is None else store.list_task_tags(task_id)
        return {"tags": [t.model_dump() for t in tags]}

    @app.tool()
    def create_tag(body: Annotated[CreateTagInput, "New tag name"]) -> dict:
        """Create a tag."""
        with _tool_errors("create_tag"):
            tag = store.create_tag(body)
        return {"tag": tag.model_dump()}

    @app.tool()
    def tag_task(
        task_id: Annotated[int, "Task identifier"],
        tag_id: Annotated[int, "Tag identifier"],
    ) -> dict:
        """Link a tag to a task. Linking twice is harmless."""
        with _tool_errors("tag_task"):
            store.add_tag_to_task(task_id, tag_id)
        return {"task_id": task_id, "tag_id": tag_id, "linked": True}

    @app.tool()
    def untag_task(
        task_id: Annotated[int, "Task identifier"],
        tag_id: Annotated[int, "Tag identifier"],
    ) -> dict:
        """Remove a tag from a task."""
        with _tool_errors("untag_task"):
            store.remove_tag_from_task(task_id, tag_id)
        return {"task_id": task_id, "tag_id": tag_id, "linked": False}

    # --- Settings ---

    @app.tool()
    def get_setting(key: Annotated[str, "Setting key"]) -> dict:
        """Read a setting value. Returns {"value": null} for unknown keys."""
        with _tool_errors("get_setting"):
            value = store.get_setting(key)
        return {"key": key, "value": value}

    @app.tool()
    def set_setting(
        key: Annotated[str, "Setting key"],
        value: Annotated[str, "Setting value"],
    ) -> dict:
        """Insert or overwrite a setting."""
        with _tool_errors("set_setting"):
            setting = store.set_setting(key, value)
        return {"setting": setting.model_dump()}

    @app.tool()
    def list_settings() -> dict:
        """List every stored setting ordered by key."""
        with _tool_errors("list_settings"):
            settings = store.list_all_settings()
        return {"settings": [s.model_dump() for s in settings]}

    # --- Backups ---

    @app.tool()
    def create_backup() -> dict:
        """Write a JSON snapshot of all tasks, categories and settings."""
        with _tool_errors("create_backup"):
            metadata = backups.create_backup()
        return {"backup": metadata.model_dump()}

    @app.tool()
    def restore_backup(filename: Annotated[str, "Backup file name as returned by list_backups"]) -> dict:
        """Replace all tasks, categories and settings with the content of a backup.

        The restore is atomic: if any record fails, the store is left untouched.

        Example: {"filename": "yuflow_backup_20261019_081500.json"}
        """
        with _tool_errors("restore_backup"):
            summary = backups.restore_backup(filename)
        return {"restored": summary.model_dump()}

    @app.tool()
    def list_backups() -> dict:
        """List backup files, newest first, with their task and category counts."""
        with _tool_errors("list_backups"):
            items = backups.list_backups()
        return {"backups": [b.model_dump() for b in items]}

    @app.tool()
    def delete_backup(filename: Annotated[str, "Backup file name"]) -> dict:
        """Delete a backup file."""
        with _tool_errors("delete_backup"):
            backups.delete_backup(filename)
        return {"deleted": filename}

    return app


def main() -> None:
    settings = get_settings()
    setup_logging(settings)
    engine = open_database(settings)
    store = TaskStore(engine, name=settings.app_name)
    backups = BackupManager(store, settings.backup_dir)
    app = create_app(store, backups, name=settings.app_name, version=settings.app_version)

    logger.info("Starting yuflow-store MCP server")
    try:
        app.run(show_banner=False)
    finally:
        store.close()
        engine.dispose()


if __name__ == "__main__":
    main()
