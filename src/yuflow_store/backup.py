"""Full-state backups as JSON snapshots, and their restoration.

A snapshot holds every task, category and setting. Restoring one wipes the
store and replays the snapshot through the regular write operations inside a
single transaction: either the whole snapshot lands or nothing changes.
Category identifiers are not preserved; tasks are re-linked through an
old-id -> new-id table built while the categories are recreated.
"""

from __future__ import annotations

import itertools
import os
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from yuflow_store.errors import BackupIoFailure
from yuflow_store.models import (
    PROTECTED_CATEGORY_NAME,
    AppSetting,
    Category,
    CreateCategoryInput,
    CreateTaskInput,
    Task,
    UpdateCategoryInput,
    UpdateTaskInput,
)
from yuflow_store.repository import UnitOfWork
from yuflow_store.store import TaskStore

BACKUP_PREFIX = "yuflow_backup"
BACKUP_EXTENSION = ".json"
SNAPSHOT_VERSION = "1.0.0"

_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"
_BACKUP_NAME = re.compile(
    rf"^{BACKUP_PREFIX}_(?P<stamp>\d{{8}}_\d{{6}})(?:_(?P<seq>\d+))?{re.escape(BACKUP_EXTENSION)}$"
)


# ---------------------------------------------------------------------------
# Models


class Snapshot(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: str
    created_at: str
    tasks: List[Task] = Field(default_factory=list)
    categories: List[Category] = Field(default_factory=list)
    settings: List[AppSetting] = Field(default_factory=list)

    @field_validator("tasks", "categories", "settings", mode="before")
    @classmethod
    def null_as_empty(cls, value):  # type: ignore[no-untyped-def]
        return [] if value is None else value


class BackupMetadata(BaseModel):
    filename: str
    created_at: str
    size_bytes: int
    task_count: int
    category_count: int


class RestoreSummary(BaseModel):
    filename: str
    task_count: int
    category_count: int
    setting_count: int


# ---------------------------------------------------------------------------
# Replay


def replay_snapshot(uow: UnitOfWork, snapshot: Snapshot) -> Tuple[int, int, int]:
    """Replace the store's content with ``snapshot``. Caller owns the transaction."""
    uow.clear_all_data()

    survivors = {c.name: c for c in uow.list_categories()}
    id_map: Dict[int, int] = {}
    for category in snapshot.categories:
        protected = survivors.get(category.name)
        if category.name == PROTECTED_CATEGORY_NAME and protected is not None:
            if protected.color != category.color:
                uow.update_category(
                    UpdateCategoryInput(id=protected.id, color=category.color)
                )
            id_map[category.id] = protected.id
            continue
        created = uow.create_category(
            CreateCategoryInput(name=category.name, color=category.color)
        )
        id_map[category.id] = created.id

    # Oldest first, so the restored "newest first" listing keeps its order.
    for task in sorted(snapshot.tasks, key=lambda t: (t.created_at, t.id)):
        category_id: Optional[int] = None
        if task.category_id is not None:
            category_id = id_map.get(task.category_id)
            if category_id is None:
                logger.warning(
                    "Snapshot task references a missing category; leaving it unassigned",
                    task_title=task.title,
                    category_id=task.category_id,
                )
        created = uow.create_task(
            CreateTaskInput(
                title=task.title,
                description=task.description,
                priority=task.priority,
                category_id=category_id,
                due_date=task.due_date,
            )
        )
        if task.completed:
            uow.update_task(UpdateTaskInput(id=created.id, completed=True))

    for setting in snapshot.settings:
        uow.set_setting(setting.key, setting.value)

    return len(snapshot.tasks), len(snapshot.categories), len(snapshot.settings)


def _read_state(uow: UnitOfWork) -> Tuple[List[Task], List[Category], List[AppSetting]]:
    return uow.list_tasks(), uow.list_categories(), uow.list_all_settings()


# ---------------------------------------------------------------------------
# Manager


class BackupManager:
    def __init__(self, store: TaskStore, backup_dir: Path) -> None:
        self.store = store
        self._backup_dir = Path(backup_dir)
        try:
            self._backup_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BackupIoFailure(
                f"Failed to create backup directory {self._backup_dir}: {exc}"
            ) from exc

    @property
    def backup_dir(self) -> Path:
        return self._backup_dir

    # Public API

    def create_backup(self) -> BackupMetadata:
        now = datetime.now(tz=UTC)
        tasks, categories, settings = self.store.run(_read_state)
        snapshot = Snapshot(
            version=SNAPSHOT_VERSION,
            created_at=now.isoformat(),
            tasks=tasks,
            categories=categories,
            settings=settings,
        )
        path = self._write_new_file(now, snapshot.model_dump_json(indent=2))
        try:
            size = path.stat().st_size
        except OSError as exc:
            raise BackupIoFailure(f"Failed to stat backup {path.name}: {exc}", path.name) from exc

        metadata = BackupMetadata(
            filename=path.name,
            created_at=snapshot.created_at,
            size_bytes=size,
            task_count=len(tasks),
            category_count=len(categories),
        )
        logger.info(
            "Backup created",
            filename=metadata.filename,
            size_bytes=metadata.size_bytes,
            task_count=metadata.task_count,
            category_count=metadata.category_count,
        )
        return metadata

    def load_snapshot(self, filename: str) -> Snapshot:
        path = self._resolve(filename)
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise BackupIoFailure(f"Failed to read backup {filename}: {exc}", filename) from exc
        try:
            return Snapshot.model_validate_json(raw)
        except ValidationError as exc:
            raise BackupIoFailure(
                f"Backup {filename} is not a valid snapshot: {exc}", filename
            ) from exc

    def restore_backup(self, filename: str) -> RestoreSummary:
        snapshot = self.load_snapshot(filename)
        logger.info(
            "Restoring backup",
            filename=filename,
            version=snapshot.version,
            snapshot_created_at=snapshot.created_at,
        )

        def restore_snapshot(uow: UnitOfWork) -> Tuple[int, int, int]:
            return replay_snapshot(uow, snapshot)

        tasks, categories, settings = self.store.run(restore_snapshot)
        summary = RestoreSummary(
            filename=filename,
            task_count=tasks,
            category_count=categories,
            setting_count=settings,
        )
        logger.info("Backup restored", **summary.model_dump())
        return summary

    def list_backups(self) -> List[BackupMetadata]:
        try:
            entries = list(self._backup_dir.iterdir())
        except OSError as exc:
            raise BackupIoFailure(f"Failed to list backups in {self._backup_dir}: {exc}") from exc

        backups: List[BackupMetadata] = []
        for path in entries:
            name = path.name
            if not (name.startswith(f"{BACKUP_PREFIX}_") and name.endswith(BACKUP_EXTENSION)):
                continue
            if not path.is_file():
                continue
            try:
                stat = path.stat()
            except OSError as exc:
                raise BackupIoFailure(f"Failed to stat backup {name}: {exc}", name) from exc
            task_count, category_count = self._count_entities(path)
            backups.append(
                BackupMetadata(
                    filename=name,
                    created_at=_created_at_from_name(name, stat),
                    size_bytes=stat.st_size,
                    task_count=task_count,
                    category_count=category_count,
                )
            )

        backups.sort(key=_listing_order, reverse=True)
        return backups

    def delete_backup(self, filename: str) -> None:
        path = self._resolve(filename)
        try:
            path.unlink()
        except OSError as exc:
            raise BackupIoFailure(f"Failed to delete backup {filename}: {exc}", filename) from exc
        logger.info("Backup deleted", filename=filename)

    # Internal helpers

    def _resolve(self, filename: str) -> Path:
        if not filename or filename in (".", "..") or Path(filename).name != filename:
            raise BackupIoFailure(f"Invalid backup file name: {filename!r}", filename)
        return self._backup_dir / filename

    def _write_new_file(self, now: datetime, content: str) -> Path:
        stem = f"{BACKUP_PREFIX}_{now.strftime(_TIMESTAMP_FORMAT)}"
        for seq in itertools.count():
            suffix = f"_{seq}" if seq else ""
            path = self._backup_dir / f"{stem}{suffix}{BACKUP_EXTENSION}"
            try:
                with path.open("x", encoding="utf-8") as fh:
                    fh.write(content)
            except FileExistsError:
                continue
            except OSError as exc:
                raise BackupIoFailure(f"Failed to write backup {path.name}: {exc}", path.name) from exc
            return path

    def _count_entities(self, path: Path) -> Tuple[int, int]:
        try:
            snapshot = Snapshot.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError) as exc:
            logger.warning("Unreadable backup; reporting zero counts", filename=path.name, error=str(exc))
            return 0, 0
        return len(snapshot.tasks), len(snapshot.categories)


def _listing_order(metadata: BackupMetadata) -> Tuple[str, int, str]:
    match = _BACKUP_NAME.match(metadata.filename)
    seq = int(match.group("seq") or 0) if match else 0
    return metadata.created_at, seq, metadata.filename


def _created_at_from_name(name: str, stat: os.stat_result) -> str:
    match = _BACKUP_NAME.match(name)
    if match:
        try:
            parsed = datetime.strptime(match.group("stamp"), _TIMESTAMP_FORMAT)
            return parsed.replace(tzinfo=UTC).isoformat()
        except ValueError:
            pass
    return datetime.fromtimestamp(stat.st_mtime, tz=UTC).isoformat(timespec="seconds")
