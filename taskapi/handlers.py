# Mutation flows for tasks and users. Each one loads the primary document,
# lets the sync engine fix up the other collection, then writes the primary.

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from . import store_db, sync
from .db_models import TaskDB, UserDB, new_id
from .errors import Conflict, DuplicateKey, NotFound, ValidationFailed
from .models import TaskIn, UserIn

logger = logging.getLogger(__name__)


def _require(ok, message: str) -> None:
    if not ok:
        raise ValidationFailed(message)


def _summary(ops: list[sync.SecondaryOp]) -> str:
    return ",".join(f"{op.kind}:{op.task_id}@{op.user_id}={op.outcome}" for op in ops) or "-"


# --- Tasks -----------------------------------------------------------------


def create_task(db: Session, payload: TaskIn) -> TaskDB:
    _require(payload.name and payload.deadline, "Task name and deadline are required")
    values = payload.resolved()
    task_id = new_id()
    # Attach runs before the insert: a failure leaves no task behind.
    ops = sync.sync_on_task_write(
        db, None, sync.TaskRef(values["assigned_user"], values["completed"]), task_id
    )
    task = store_db.insert(db, TaskDB(id=task_id, **values))
    logger.info("task created id=%s sync=%s", task.id, _summary(ops))
    return task


def update_task(db: Session, task_id: str, payload: TaskIn) -> TaskDB:
    _require(payload.name and payload.deadline, "Task name and deadline are required")
    task = store_db.get_task(db, task_id)
    if task is None:
        raise NotFound("Task not found")
    before = sync.TaskRef.of(task)
    values = payload.resolved(task)
    ops = sync.sync_on_task_write(
        db, before, sync.TaskRef(values["assigned_user"], values["completed"]), task_id
    )
    for name, value in values.items():
        setattr(task, name, value)
    task = store_db.save(db, task)
    logger.info("task updated id=%s sync=%s", task.id, _summary(ops))
    return task


def delete_task(db: Session, task_id: str) -> None:
    task = store_db.get_task(db, task_id)
    if task is None:
        raise NotFound("Task not found")
    ops = sync.sync_on_task_delete(db, task)
    store_db.delete(db, task)
    logger.info("task deleted id=%s sync=%s", task_id, _summary(ops))


# --- Users -----------------------------------------------------------------


def _check_email_free(db: Session, email: str, *, user_id: str | None = None) -> None:
    existing = store_db.find_user_by_email(db, email)
    if existing is not None and existing.id != user_id:
        raise Conflict("User with this email already exists")


def create_user(db: Session, payload: UserIn) -> UserDB:
    _require(payload.name and payload.email, "User name and email are required")
    _check_email_free(db, payload.email)
    user_id = new_id()
    requested = payload.requested_pending()
    ops = sync.sync_on_user_write(db, None, requested, user_id=user_id, user_name=payload.name)
    row = UserDB(id=user_id, name=payload.name, email=payload.email, pending_tasks=requested)
    if payload.date_created is not None:
        row.date_created = payload.date_created
    try:
        user = store_db.insert(db, row)
    except DuplicateKey as exc:
        # Lost the race against a concurrent create with the same email
        raise Conflict("User with this email already exists") from exc
    logger.info("user created id=%s sync=%s", user.id, _summary(ops))
    return user


def update_user(db: Session, user_id: str, payload: UserIn) -> UserDB:
    _require(payload.name and payload.email, "User name and email are required")
    user = store_db.get_user(db, user_id)
    if user is None:
        raise NotFound("User not found")
    if payload.email != user.email:
        _check_email_free(db, payload.email, user_id=user_id)
    date_created = payload.date_created or user.date_created
    requested = payload.requested_pending()
    ops = sync.sync_on_user_write(db, user, requested, user_id=user_id, user_name=payload.name)
    try:
        updated = store_db.find_and_update_user(
            db,
            user_id,
            {
                "name": payload.name,
                "email": payload.email,
                "pending_tasks": requested,
                "date_created": date_created,
            },
        )
    except DuplicateKey as exc:
        raise Conflict("User with this email already exists") from exc
    if updated is None:
        raise NotFound("User not found")
    logger.info("user updated id=%s sync=%s", user_id, _summary(ops))
    return updated


def delete_user(db: Session, user_id: str) -> None:
    user = store_db.get_user(db, user_id)
    if user is None:
        raise NotFound("User not found")
    ops = sync.sync_on_user_delete(db, user)
    store_db.delete(db, user)
    logger.info("user deleted id=%s sync=%s", user_id, _summary(ops))
