"""SQLAlchemy table definitions.

Timestamps are stored as ISO 8601 strings exactly as they are returned to
callers. Task and category tables use AUTOINCREMENT so identifiers are never
handed out twice, even after ``clear_all_data``.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

_HEX_GLOB = "#" + "[0-9A-Fa-f]" * 6


class CategoryRecord(Base):
    __tablename__ = "categories"
    __table_args__ = (
        CheckConstraint(f"color GLOB '{_HEX_GLOB}'", name="ck_categories_color"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, index=True)
    color = Column(String(7), nullable=False)
    created_at = Column(String, nullable=False)


class TaskRecord(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        CheckConstraint(
            "priority IN ('low', 'medium', 'high')", name="ck_tasks_priority"
        ),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    completed = Column(Boolean, nullable=False, default=False)
    priority = Column(String(16), nullable=False, default="medium")
    category_id = Column(
        Integer, ForeignKey("categories.id"), nullable=True, index=True
    )
    due_date = Column(String, nullable=True)
    created_at = Column(String, nullable=False, index=True)
    updated_at = Column(String, nullable=False)


class TagRecord(Base):
    __tablename__ = "tags"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    name = Column(String(50), nullable=False)
    created_at = Column(String, nullable=False)


class TaskTagRecord(Base):
    __tablename__ = "task_tags"

    task_id = Column(Integer, ForeignKey("tasks.id"), primary_key=True)
    tag_id = Column(Integer, ForeignKey("tags.id"), primary_key=True, index=True)


class AppSettingRecord(Base):
    __tablename__ = "app_settings"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(String, nullable=False)
