"""Reference consistency engine.

Keeps `User.pending_tasks` (a derived index) in line with `Task.assigned_user` /
`Task.completed` across two collections that have no shared transaction.

Every operation is split in two:

* a *plan* step, pure, which diffs a before state against a requested after
  state and returns the list of `SecondaryOp` needed on the other collection;
* an *apply* step, which runs those ops one by one against the store, each as
  its own read-modify-write of a single document.

A secondary document that does not exist is skipped, never an error. A store
failure while applying becomes `SyncFailure`, unless the ops are cleanup run
in best-effort mode, in which case it is logged and the remaining ops still run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from sqlalchemy.orm import Session

from . import store_db
from .db_models import UNASSIGNED_NAME, TaskDB, UserDB
from .errors import StoreError, SyncFailure

logger = logging.getLogger(__name__)

# Op kinds. attach/detach touch a user's pending list; assign/unassign/rename touch a task.
ATTACH = "attach"
DETACH = "detach"
ASSIGN = "assign"
UNASSIGN = "unassign"
RENAME = "rename"

# Outcomes
PENDING = "pending"
APPLIED = "applied"
NOOP = "noop"
MISSING = "missing"
FAILED = "failed"


@dataclass(slots=True)
class SecondaryOp:
    kind: str
    task_id: str
    user_id: str
    user_name: str = ""
    outcome: str = PENDING
    # set when an assign moved the task away from another user's pending list
    detached_from: str = ""


@dataclass(frozen=True, slots=True)
class TaskRef:
    """The reference-relevant part of a task state."""

    assigned_user: str = ""
    completed: bool = False

    @property
    def pending_owner(self) -> str:
        """User whose pending list should hold the task, or "" for none."""
        if self.assigned_user and not self.completed:
            return self.assigned_user
        return ""

    @classmethod
    def of(cls, task: TaskDB | None) -> "TaskRef":
        if task is None:
            return cls()
        return cls(assigned_user=task.assigned_user or "", completed=bool(task.completed))


# --- Plan ------------------------------------------------------------------


def plan_task_write(before: TaskRef | None, after: TaskRef, task_id: str) -> list[SecondaryOp]:
    """Ops for a task create/update: detach from the old owner, then attach to the new one."""
    old = (before or TaskRef()).pending_owner
    new = after.pending_owner
    ops: list[SecondaryOp] = []
    if old and old != new:
        ops.append(SecondaryOp(DETACH, task_id, old))
    if new and new != old:
        ops.append(SecondaryOp(ATTACH, task_id, new))
    return ops


def plan_task_delete(task: TaskDB) -> list[SecondaryOp]:
    if task.assigned_user:
        return [SecondaryOp(DETACH, task.id, task.assigned_user)]
    return []


def plan_user_write(
    before_pending: Sequence[str],
    requested: Sequence[str],
    *,
    user_id: str,
    user_name: str,
    previous_name: str | None = None,
) -> list[SecondaryOp]:
    """Ops for a user create/update, from the set difference of pending lists.

    Removed ids are unassigned, added ids are assigned to this user. When the
    name changed, tasks kept in the list get the new display name.
    """
    before_set = set(before_pending)
    requested_set = set(requested)
    ops = [SecondaryOp(UNASSIGN, tid, user_id) for tid in before_pending if tid not in requested_set]
    ops += [SecondaryOp(ASSIGN, tid, user_id, user_name) for tid in requested if tid not in before_set]
    if previous_name is not None and previous_name != user_name:
        ops += [
            SecondaryOp(RENAME, tid, user_id, user_name)
            for tid in requested
            if tid in before_set
        ]
    return ops


def plan_user_delete(user: UserDB) -> list[SecondaryOp]:
    return [SecondaryOp(UNASSIGN, tid, user.id) for tid in user.pending_tasks or []]


# --- Apply -----------------------------------------------------------------


def _attach(db: Session, op: SecondaryOp) -> str:
    user = store_db.get_user(db, op.user_id)
    if user is None:
        return MISSING
    pending = list(user.pending_tasks or [])
    if op.task_id in pending:
        return NOOP
    user.pending_tasks = pending + [op.task_id]
    store_db.save(db, user)
    return APPLIED


def _detach(db: Session, op: SecondaryOp) -> str:
    user = store_db.get_user(db, op.user_id)
    if user is None:
        return MISSING
    pending = list(user.pending_tasks or [])
    if op.task_id not in pending:
        return NOOP
    user.pending_tasks = [tid for tid in pending if tid != op.task_id]
    store_db.save(db, user)
    return APPLIED


def _assign(db: Session, op: SecondaryOp) -> str:
    task = store_db.get_task(db, op.task_id)
    if task is None:
        return MISSING
    if task.completed:
        # Completed tasks are not retroactively assigned; the user's list keeps the id anyway.
        logger.info(
            "sync tolerated: completed task=%s listed as pending for user=%s", op.task_id, op.user_id
        )
        return NOOP
    previous = task.assigned_user or ""
    if previous and previous != op.user_id:
        if _detach(db, SecondaryOp(DETACH, op.task_id, previous)) == APPLIED:
            op.detached_from = previous
    if previous == op.user_id and task.assigned_user_name == op.user_name:
        return NOOP
    task.assigned_user = op.user_id
    task.assigned_user_name = op.user_name
    store_db.save(db, task)
    return APPLIED


def _unassign(db: Session, op: SecondaryOp) -> str:
    task = store_db.get_task(db, op.task_id)
    if task is None:
        return MISSING
    if not task.assigned_user and task.assigned_user_name == UNASSIGNED_NAME:
        return NOOP
    task.assigned_user = ""
    task.assigned_user_name = UNASSIGNED_NAME
    store_db.save(db, task)
    return APPLIED


def _rename(db: Session, op: SecondaryOp) -> str:
    task = store_db.get_task(db, op.task_id)
    if task is None:
        return MISSING
    if task.assigned_user != op.user_id or task.assigned_user_name == op.user_name:
        return NOOP
    task.assigned_user_name = op.user_name
    store_db.save(db, task)
    return APPLIED


_APPLIERS = {
    ATTACH: _attach,
    DETACH: _detach,
    ASSIGN: _assign,
    UNASSIGN: _unassign,
    RENAME: _rename,
}


def apply_ops(db: Session, ops: Iterable[SecondaryOp], *, best_effort: bool = False) -> list[SecondaryOp]:
    """Run ops in order. Each op is a sequential read-modify-write of one document."""
    done: list[SecondaryOp] = []
    for op in ops:
        try:
            op.outcome = _APPLIERS[op.kind](db, op)
        except StoreError as exc:
            op.outcome = FAILED
            done.append(op)
            if best_effort:
                logger.warning(
                    "sync cleanup failed op=%s task=%s user=%s: %s", op.kind, op.task_id, op.user_id, exc
                )
                continue
            logger.error("sync failed op=%s task=%s user=%s", op.kind, op.task_id, op.user_id, exc_info=exc)
            raise SyncFailure(f"{op.kind} task={op.task_id} user={op.user_id}") from exc
        logger.debug(
            "sync op=%s task=%s user=%s outcome=%s", op.kind, op.task_id, op.user_id, op.outcome
        )
        done.append(op)
    return done


# --- Entry points ----------------------------------------------------------


def sync_on_task_write(db: Session, before: TaskRef | None, after: TaskRef, task_id: str) -> list[SecondaryOp]:
    """Keep pending lists right for a task create (before=None) or update.

    A plan made only of a detach (the task was completed or unassigned) is
    cleanup and runs best effort. Otherwise the detach runs first and any
    failure aborts with SyncFailure before the task itself is written.
    """
    ops = plan_task_write(before, after, task_id)
    cleanup_only = all(op.kind == DETACH for op in ops)
    return apply_ops(db, ops, best_effort=cleanup_only)


def sync_on_task_delete(db: Session, task: TaskDB) -> list[SecondaryOp]:
    return apply_ops(db, plan_task_delete(task), best_effort=True)


def sync_on_user_write(
    db: Session,
    before: UserDB | None,
    requested: Sequence[str],
    *,
    user_id: str,
    user_name: str,
) -> list[SecondaryOp]:
    """Assign added tasks to the user and unassign removed ones (create: before=None)."""
    before_pending = list(before.pending_tasks or []) if before is not None else []
    previous_name = before.name if before is not None else None
    ops = plan_user_write(
        before_pending, requested, user_id=user_id, user_name=user_name, previous_name=previous_name
    )
    return apply_ops(db, ops)


def sync_on_user_delete(db: Session, user: UserDB) -> list[SecondaryOp]:
    return apply_ops(db, plan_user_delete(user), best_effort=True)
