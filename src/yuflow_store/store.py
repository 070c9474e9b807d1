"""Serialized access to the task database.

``TaskStore`` owns one worker thread that executes every unit of work in
submission order, each inside its own transaction. Serializing at this level
gives operations exclusivity (no write can interleave with a ``clear_all_data``
or a restore) and read-your-writes for every caller sharing the store.

Example::

    engine = open_database(get_settings())
    with TaskStore(engine) as store:
        task = store.create_task(CreateTaskInput(title="Review PR", priority="high"))
        store.update_task(UpdateTaskInput(id=task.id, completed=True))
"""

from __future__ import annotations

import threading
from concurrent.futures import Future
from queue import Queue
from threading import Thread
from typing import Any, Callable, List, Optional, TypeVar

from loguru import logger
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from yuflow_store.errors import StoreFailure
from yuflow_store.models import (
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
)
from yuflow_store.repository import UnitOfWork

T = TypeVar("T")

Work = Callable[[UnitOfWork], T]


class TaskStore:
    """
    Task, category, tag and settings storage on top of an injected engine.

    The engine is created, migrated and disposed by the caller (see
    :func:`yuflow_store.database.open_database`); the store only borrows it.
    """

    def __init__(self, engine: Engine, *, name: str = "yuflow-store") -> None:
        self.engine = engine
        self._session_factory = sessionmaker(
            bind=engine, autoflush=False, expire_on_commit=False
        )
        self._queue: Queue = Queue()
        self._lock = threading.Lock()
        self._closed = False
        self._worker = Thread(
            target=self._process_queue, name=f"{name}-worker", daemon=True
        )
        self._worker.start()
        logger.info("TaskStore worker thread started", url=engine.url.render_as_string())

    # --- Lifecycle ---

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(None)
        if threading.current_thread() is not self._worker:
            self._worker.join()
        logger.info("TaskStore worker thread stopped")

    def __enter__(self) -> "TaskStore":
        return self

    def __exit__(self, *_) -> None:
        self.close()

    # --- Unit of work execution ---

    def submit(self, work: Work) -> "Future[Any]":
        """Queue ``work`` and return a future resolved by the worker thread."""
        future: Future = Future()
        with self._lock:
            if self._closed:
                raise StoreFailure("Store is closed")
            self._queue.put((work, future))
        return future

    def run(self, work: Work) -> Any:
        """Execute ``work`` in its own transaction and wait for the result."""
        if threading.current_thread() is self._worker:
            raise RuntimeError("TaskStore.run cannot be called from inside a unit of work")
        return self.submit(work).result()

    def _process_queue(self) -> None:
        while True:
            item = self._queue.get()
            if item is None:
                break
            work, future = item
            if not future.set_running_or_notify_cancel():
                continue
            try:
                result = self._execute(work)
            except Exception as exc:
                future.set_exception(exc)
            else:
                future.set_result(result)

    def _execute(self, work: Work) -> Any:
        name = getattr(work, "__name__", repr(work))
        logger.debug("Executing unit of work", work=name)
        with self._session_factory() as session:
            try:
                with session.begin():
                    return work(UnitOfWork(session))
            except SQLAlchemyError as exc:
                detail = getattr(exc, "orig", None) or exc
                logger.error("Store operation failed", work=name, error=str(detail))
                raise StoreFailure(f"Store operation '{name}' failed: {detail}") from exc

    def _call(self, operation: str, *args: Any) -> Any:
        def work(uow: UnitOfWork) -> Any:
            return getattr(uow, operation)(*args)

        work.__name__ = operation
        return self.run(work)

    # --- Tasks ---

    def list_tasks(self, filters: Optional[TaskFilters] = None) -> List[Task]:
        """Tasks matching every given filter, newest first."""
        return self._call("list_tasks", filters)

    def get_task(self, task_id: int) -> Optional[Task]:
        return self._call("get_task", task_id)

    def create_task(self, data: CreateTaskInput) -> Task:
        return self._call("create_task", data)

    def update_task(self, data: UpdateTaskInput) -> Task:
        """Apply the fields set on ``data``; raises NotFound for unknown ids."""
        return self._call("update_task", data)

    def delete_task(self, task_id: int) -> None:
        self._call("delete_task", task_id)

    # --- Categories ---

    def list_categories(self) -> List[Category]:
        return self._call("list_categories")

    def get_category(self, category_id: int) -> Optional[Category]:
        return self._call("get_category", category_id)

    def create_category(self, data: CreateCategoryInput) -> Category:
        return self._call("create_category", data)

    def update_category(self, data: UpdateCategoryInput) -> Category:
        return self._call("update_category", data)

    def delete_category(self, category_id: int) -> None:
        self._call("delete_category", category_id)

    # --- Tags ---

    def list_tags(self) -> List[Tag]:
        return self._call("list_tags")

    def create_tag(self, data: CreateTagInput) -> Tag:
        return self._call("create_tag", data)

    def list_task_tags(self, task_id: int) -> List[Tag]:
        return self._call("list_task_tags", task_id)

    def add_tag_to_task(self, task_id: int, tag_id: int) -> None:
        self._call("add_tag_to_task", task_id, tag_id)

    def remove_tag_from_task(self, task_id: int, tag_id: int) -> None:
        self._call("remove_tag_from_task", task_id, tag_id)

    # --- Settings ---

    def get_setting(self, key: str) -> Optional[str]:
        return self._call("get_setting", key)

    def set_setting(self, key: str, value: str) -> AppSetting:
        return self._call("set_setting", key, value)

    def list_all_settings(self) -> List[AppSetting]:
        return self._call("list_all_settings")

    # --- Bulk ---

    def clear_all_data(self) -> None:
        """Wipe tasks, tag links, settings and non-default categories atomically."""
        self._call("clear_all_data")
