"""Bootstrap of the SQLite database: engine, schema and the default category.

This is the only place that creates directories or tables. The store itself
receives a ready engine and never manages its lifecycle.
"""

from pathlib import Path

from loguru import logger
from sqlalchemy import create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from yuflow_store.models import DEFAULT_CATEGORY_COLOR, PROTECTED_CATEGORY_NAME, now_iso
from yuflow_store.settings import Settings
from yuflow_store.tables import Base, CategoryRecord


def _enable_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_store_engine(database_url: str, *, echo: bool = False) -> Engine:
    is_sqlite = database_url.startswith("sqlite")
    engine = create_engine(
        database_url,
        echo=echo,
        connect_args={"check_same_thread": False} if is_sqlite else {},
    )
    if is_sqlite:
        event.listen(engine, "connect", _enable_foreign_keys)
    return engine


def init_schema(engine: Engine) -> None:
    """Create missing tables and seed the protected default category."""
    Base.metadata.create_all(engine)
    with Session(engine) as session, session.begin():
        count = session.scalar(select(func.count()).select_from(CategoryRecord))
        if not count:
            session.add(
                CategoryRecord(
                    name=PROTECTED_CATEGORY_NAME,
                    color=DEFAULT_CATEGORY_COLOR,
                    created_at=now_iso(),
                )
            )
            logger.info("Seeded default category", name=PROTECTED_CATEGORY_NAME)
    logger.info("Database schema ready", url=engine.url.render_as_string())


def open_database(settings: Settings) -> Engine:
    """Create the data directories and return an initialized engine.

    Directory creation errors are not caught: without a data directory the
    application cannot start.
    """
    Path(settings.app_data_dir).mkdir(parents=True, exist_ok=True)
    settings.backup_dir.mkdir(parents=True, exist_ok=True)
    engine = create_store_engine(settings.database_url, echo=settings.storage.echo_sql)
    init_schema(engine)
    return engine
