"""JSON snapshot backups: creation, listing, deletion and atomic restore."""

import json
import re
from datetime import UTC, datetime

import pytest

from yuflow_store.backup import SNAPSHOT_VERSION, BackupManager
from yuflow_store.errors import BackupIoFailure, ValidationFailed
from yuflow_store.models import (
    PROTECTED_CATEGORY_NAME,
    CreateCategoryInput,
    CreateTaskInput,
    UpdateTaskInput,
)

BACKUP_NAME = re.compile(r"^yuflow_backup_\d{8}_\d{6}(_\d+)?\.json$")


def _seed(store):
    work = store.create_category(CreateCategoryInput(name="Work", color="#FF5733"))
    home = store.create_category(CreateCategoryInput(name="Home", color="#00AA00"))
    review = store.create_task(
        CreateTaskInput(
            title="Review PR",
            description="Check the migration",
            priority="high",
            category_id=work.id,
            due_date="2026-01-15T10:00:00Z",
        )
    )
    store.create_task(CreateTaskInput(title="Water plants", category_id=home.id))
    store.create_task(CreateTaskInput(title="Loose end", priority="low"))
    store.update_task(UpdateTaskInput(id=review.id, completed=True))
    store.set_setting("theme", "dark")
    store.set_setting("language", "en")


def _write_snapshot(backup_dir, filename, **overrides):
    payload = {
        "version": SNAPSHOT_VERSION,
        "created_at": "2026-01-01T00:00:00+00:00",
        "tasks": [],
        "categories": [],
        "settings": [],
    }
    payload.update(overrides)
    (backup_dir / filename).write_text(json.dumps(payload), encoding="utf-8")


def _task_view(store, task):
    category = store.get_category(task.category_id) if task.category_id else None
    return (
        task.title,
        task.description,
        task.completed,
        task.priority,
        category.name if category else None,
        task.due_date,
    )


# ========== CREATE ==========


def test_create_backup_writes_snapshot(store, backups, backup_dir):
    _seed(store)

    metadata = backups.create_backup()

    assert BACKUP_NAME.match(metadata.filename)
    assert metadata.task_count == 3
    assert metadata.category_count == 3
    path = backup_dir / metadata.filename
    assert metadata.size_bytes == path.stat().st_size

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["version"] == SNAPSHOT_VERSION
    assert {t["title"] for t in payload["tasks"]} == {"Review PR", "Water plants", "Loose end"}
    assert {s["key"] for s in payload["settings"]} == {"theme", "language"}


def test_create_backup_creates_missing_directory(store, tmp_path):
    target = tmp_path / "nested" / "backups"
    manager = BackupManager(store, target)
    metadata = manager.create_backup()
    assert (target / metadata.filename).is_file()


def test_backup_names_are_disambiguated(backups, backup_dir):
    moment = datetime(2026, 1, 15, 10, 0, 0, tzinfo=UTC)

    first = backups._write_new_file(moment, "{}")
    second = backups._write_new_file(moment, "{}")
    third = backups._write_new_file(moment, "{}")

    assert first.name == "yuflow_backup_20260115_100000.json"
    assert second.name == "yuflow_backup_20260115_100000_1.json"
    assert third.name == "yuflow_backup_20260115_100000_2.json"


def test_create_backup_never_overwrites(store, backups, backup_dir):
    names = {backups.create_backup().filename for _ in range(3)}
    assert len(names) == 3
    assert len(list(backup_dir.glob("*.json"))) == 3


# ========== LIST / DELETE ==========


def test_list_backups_newest_first(backups, backup_dir):
    _write_snapshot(backup_dir, "yuflow_backup_20260101_090000.json")
    _write_snapshot(
        backup_dir,
        "yuflow_backup_20260301_090000.json",
        tasks=[
            {
                "id": 1,
                "title": "t",
                "completed": False,
                "priority": "low",
                "created_at": "2026-03-01T09:00:00+00:00",
                "updated_at": "2026-03-01T09:00:00+00:00",
            }
        ],
    )
    _write_snapshot(backup_dir, "yuflow_backup_20260201_090000.json")
    (backup_dir / "notes.txt").write_text("ignore me", encoding="utf-8")

    listed = backups.list_backups()

    assert [b.filename for b in listed] == [
        "yuflow_backup_20260301_090000.json",
        "yuflow_backup_20260201_090000.json",
        "yuflow_backup_20260101_090000.json",
    ]
    assert listed[0].created_at == "2026-03-01T09:00:00+00:00"
    assert listed[0].task_count == 1


def test_list_backups_tolerates_unreadable_files(backups, backup_dir):
    bad = backup_dir / "yuflow_backup_corrupt.json"
    bad.write_text("{not json", encoding="utf-8")

    [entry] = backups.list_backups()

    assert entry.filename == bad.name
    assert entry.task_count == 0
    assert entry.category_count == 0
    expected = datetime.fromtimestamp(bad.stat().st_mtime, tz=UTC).isoformat(timespec="seconds")
    assert entry.created_at == expected


def test_list_backups_empty_directory(backups):
    assert backups.list_backups() == []


def test_delete_backup(backups, backup_dir):
    metadata = backups.create_backup()
    backups.delete_backup(metadata.filename)
    assert not (backup_dir / metadata.filename).exists()
    assert backups.list_backups() == []


def test_delete_missing_backup_fails(backups):
    with pytest.raises(BackupIoFailure) as exc_info:
        backups.delete_backup("yuflow_backup_20200101_000000.json")
    assert exc_info.value.filename == "yuflow_backup_20200101_000000.json"


@pytest.mark.parametrize("filename", ["../outside.json", "nested/file.json", "..", ""])
def test_unsafe_names_rejected(backups, tmp_path, filename):
    outside = tmp_path / "outside.json"
    outside.write_text("{}", encoding="utf-8")

    with pytest.raises(BackupIoFailure):
        backups.delete_backup(filename)
    with pytest.raises(BackupIoFailure):
        backups.restore_backup(filename)
    assert outside.exists()


# ========== RESTORE ==========


def test_round_trip_into_empty_store(store, backups, backup_dir, other_store):
    _seed(store)
    metadata = backups.create_backup()

    summary = BackupManager(other_store, backup_dir).restore_backup(metadata.filename)

    assert summary.task_count == 3
    assert summary.category_count == 3
    assert summary.setting_count == 2

    original = sorted(_task_view(store, t) for t in store.list_tasks())
    restored = sorted(_task_view(other_store, t) for t in other_store.list_tasks())
    assert restored == original
    assert [t.title for t in other_store.list_tasks()] == [
        t.title for t in store.list_tasks()
    ]

    colors = {c.name: c.color for c in other_store.list_categories()}
    assert colors == {c.name: c.color for c in store.list_categories()}
    settings = {s.key: s.value for s in other_store.list_all_settings()}
    assert settings == {"theme": "dark", "language": "en"}


def test_restore_replaces_existing_content(store, backups):
    _seed(store)
    metadata = backups.create_backup()

    store.create_task(CreateTaskInput(title="Added after backup"))
    store.create_category(CreateCategoryInput(name="Scratch"))
    store.set_setting("theme", "light")

    backups.restore_backup(metadata.filename)

    titles = {t.title for t in store.list_tasks()}
    assert titles == {"Review PR", "Water plants", "Loose end"}
    names = [c.name for c in store.list_categories()]
    assert names.count(PROTECTED_CATEGORY_NAME) == 1
    assert "Scratch" not in names
    assert store.get_setting("theme") == "dark"


def test_restore_maps_default_category(store, backups, backup_dir):
    general = next(c for c in store.list_categories() if c.name == PROTECTED_CATEGORY_NAME)
    _write_snapshot(
        backup_dir,
        "yuflow_backup_20260101_000000.json",
        categories=[
            {"id": 40, "name": PROTECTED_CATEGORY_NAME, "color": "#123456", "created_at": "2025-01-01T00:00:00+00:00"}
        ],
        tasks=[
            {
                "id": 7,
                "title": "In general",
                "completed": False,
                "priority": "medium",
                "category_id": 40,
                "created_at": "2025-01-02T00:00:00+00:00",
                "updated_at": "2025-01-02T00:00:00+00:00",
            }
        ],
    )

    backups.restore_backup("yuflow_backup_20260101_000000.json")

    [category] = store.list_categories()
    assert category.id == general.id
    assert category.color == "#123456"
    [task] = store.list_tasks()
    assert task.category_id == general.id


def test_restore_tolerates_unknown_fields_and_missing_arrays(store, backups, backup_dir):
    store.create_task(CreateTaskInput(title="to be wiped"))
    payload = {
        "version": "0.9.0",
        "created_at": "2025-06-01T00:00:00Z",
        "exported_by": "some other build",
        "tasks": [
            {
                "id": 3,
                "title": "From an older build",
                "completed": True,
                "priority": "low",
                "created_at": "2025-06-01T00:00:00Z",
                "updated_at": "2025-06-01T00:00:00Z",
                "color_hint": "blue",
            }
        ],
        "settings": None,
    }
    (backup_dir / "yuflow_backup_20250601_000000.json").write_text(
        json.dumps(payload), encoding="utf-8"
    )

    summary = backups.restore_backup("yuflow_backup_20250601_000000.json")

    assert summary.task_count == 1
    assert summary.category_count == 0
    assert summary.setting_count == 0
    [task] = store.list_tasks()
    assert task.title == "From an older build"
    assert task.completed is True


def test_restore_leaves_dangling_category_unassigned(store, backups, backup_dir):
    _write_snapshot(
        backup_dir,
        "yuflow_backup_20260101_000000.json",
        tasks=[
            {
                "id": 1,
                "title": "Dangling",
                "completed": False,
                "priority": "high",
                "category_id": 99,
                "created_at": "2026-01-01T00:00:00+00:00",
                "updated_at": "2026-01-01T00:00:00+00:00",
            }
        ],
    )

    backups.restore_backup("yuflow_backup_20260101_000000.json")

    [task] = store.list_tasks()
    assert task.category_id is None


def test_failed_restore_changes_nothing(store, backups, backup_dir):
    _seed(store)
    before_tasks = store.list_tasks()
    before_categories = store.list_categories()
    before_settings = store.list_all_settings()

    _write_snapshot(
        backup_dir,
        "yuflow_backup_20260101_000000.json",
        categories=[
            {"id": 1, "name": "Fresh", "color": "#ABCDEF", "created_at": "2026-01-01T00:00:00+00:00"}
        ],
        tasks=[
            {
                "id": 1,
                "title": "fine",
                "completed": False,
                "priority": "low",
                "created_at": "2026-01-01T00:00:00+00:00",
                "updated_at": "2026-01-01T00:00:00+00:00",
            },
            {
                "id": 2,
                "title": "broken",
                "completed": False,
                "priority": "low",
                "due_date": "someday",
                "created_at": "2026-01-02T00:00:00+00:00",
                "updated_at": "2026-01-02T00:00:00+00:00",
            },
        ],
    )

    with pytest.raises(ValidationFailed):
        backups.restore_backup("yuflow_backup_20260101_000000.json")

    assert store.list_tasks() == before_tasks
    assert store.list_categories() == before_categories
    assert store.list_all_settings() == before_settings


def test_restore_missing_file_fails(store, backups):
    _seed(store)
    with pytest.raises(BackupIoFailure):
        backups.restore_backup("yuflow_backup_20000101_000000.json")
    assert len(store.list_tasks()) == 3


def test_restore_rejects_malformed_snapshot(store, backups, backup_dir):
    (backup_dir / "yuflow_backup_20260101_000000.json").write_text(
        json.dumps({"tasks": "nope"}), encoding="utf-8"
    )
    with pytest.raises(BackupIoFailure, match="not a valid snapshot"):
        backups.restore_backup("yuflow_backup_20260101_000000.json")


def test_list_backups_tolerates_undecodable_files(backups, backup_dir):
    (backup_dir / "yuflow_backup_20260101_000000.json").write_bytes(b"\xff\xfe{bad")

    [entry] = backups.list_backups()

    assert entry.filename == "yuflow_backup_20260101_000000.json"
    assert entry.task_count == 0
    assert entry.category_count == 0


def test_restore_rejects_undecodable_file(store, backups, backup_dir):
    _seed(store)
    (backup_dir / "yuflow_backup_20260101_000000.json").write_bytes(b"\xff\xfe{bad")

    with pytest.raises(BackupIoFailure) as exc_info:
        backups.restore_backup("yuflow_backup_20260101_000000.json")

    assert exc_info.value.filename == "yuflow_backup_20260101_000000.json"
    assert len(store.list_tasks()) == 3


def test_list_backups_orders_collisions_numerically(backups):
    moment = datetime(2026, 1, 15, 10, 0, 0, tzinfo=UTC)
    for _ in range(12):
        backups._write_new_file(moment, "{}")

    listed = [b.filename for b in backups.list_backups()]

    assert listed[0] == "yuflow_backup_20260115_100000_11.json"
    assert listed[1] == "yuflow_backup_20260115_100000_10.json"
    assert listed[2] == "yuflow_backup_20260115_100000_9.json"
    assert listed[-1] == "yuflow_backup_20260115_100000.json"
