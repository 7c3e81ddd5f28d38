# PURPOSE: define how Task and User documents look in the database.
# References between the two collections are plain text ids, not foreign keys.

import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .db import Base

UNASSIGNED_NAME = "unassigned"


def now_utc():
    """Return timezone-aware UTC datetime (stored in DB)."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize to aware UTC; naive values (SQLite drops tzinfo) are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def new_id() -> str:
    """Allocate an opaque document identifier."""
    return uuid.uuid4().hex


class TaskDB(Base):
    __tablename__ = "tasks"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    deadline = Column(DateTime(timezone=True), nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    assigned_user = Column(String(32), nullable=False, default="")  # "" = unassigned
    assigned_user_name = Column(String, nullable=False, default=UNASSIGNED_NAME)
    date_created = Column(DateTime(timezone=True), default=now_utc)


class UserDB(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    # Derived index of task ids pending against this user; always reassign, never mutate in place
    pending_tasks: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    date_created: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)


# Helpful indexes for filtering/sorting
Index("ix_tasks_assigned_user", TaskDB.assigned_user)
Index("ix_tasks_completed", TaskDB.completed)
Index("ix_tasks_deadline", TaskDB.deadline)
