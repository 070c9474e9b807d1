import pytest

from yuflow_store.backup import BackupManager
from yuflow_store.database import create_store_engine, init_schema
from yuflow_store.store import TaskStore


def make_engine(path):
    engine = create_store_engine(f"sqlite:///{path.as_posix()}")
    init_schema(engine)
    return engine


@pytest.fixture()
def engine(tmp_path):
    """Fresh SQLite database per test, seeded with the default category."""
    engine = make_engine(tmp_path / "test.db")
    yield engine
    engine.dispose()


@pytest.fixture()
def store(engine):
    with TaskStore(engine, name="test-store") as store:
        yield store


@pytest.fixture()
def backup_dir(tmp_path):
    return tmp_path / "backups"


@pytest.fixture()
def backups(store, backup_dir):
    return BackupManager(store, backup_dir)


@pytest.fixture()
def other_store(tmp_path):
    """A second, independent empty store (restore target)."""
    engine = make_engine(tmp_path / "other.db")
    with TaskStore(engine, name="other-store") as store:
        yield store
    engine.dispose()
