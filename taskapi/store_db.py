# Entity store adapter: per-document reads and writes over SQLAlchemy.
# Every write commits on its own, so the store gives atomic single-document
# writes and nothing stronger; the sync engine is built on exactly that.

from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, Iterator, Optional, List

from sqlalchemy import JSON, Boolean, DateTime, Text, cast, false, func, not_, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .db_models import TaskDB, UserDB, as_utc
from .errors import DuplicateKey, StoreError, ValidationFailed


# --- Session dependency ----------------------------------------------------


def get_db():
    """Yield a SQLAlchemy session (used as a FastAPI dependency)."""
    from .db import SessionLocal

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def store_io(db: Session, what: str) -> Iterator[None]:
    """Translate SQLAlchemy failures into StoreError, rolling the session back."""
    try:
        yield
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateKey(f"{what}: unique constraint violated") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreError(f"{what} failed") from exc


# Wire field name -> column, per collection. Only these are filterable/sortable.
TASK_FIELDS = {
    "_id": TaskDB.id,
    "name": TaskDB.name,
    "description": TaskDB.description,
    "deadline": TaskDB.deadline,
    "completed": TaskDB.completed,
    "assignedUser": TaskDB.assigned_user,
    "assignedUserName": TaskDB.assigned_user_name,
    "dateCreated": TaskDB.date_created,
}

USER_FIELDS = {
    "_id": UserDB.id,
    "name": UserDB.name,
    "email": UserDB.email,
    "pendingTasks": UserDB.pending_tasks,
    "dateCreated": UserDB.date_created,
}


# --- Single-document operations -------------------------------------------


def get_task(db: Session, task_id: str) -> Optional[TaskDB]:
    with store_io(db, f"read task {task_id}"):
        return db.get(TaskDB, task_id)


def get_user(db: Session, user_id: str) -> Optional[UserDB]:
    with store_io(db, f"read user {user_id}"):
        return db.get(UserDB, user_id)


def find_user_by_email(db: Session, email: str) -> Optional[UserDB]:
    with store_io(db, "find user by email"):
        return db.execute(select(UserDB).where(UserDB.email == email)).scalars().first()


def insert(db: Session, row):
    """Insert a new document and return it refreshed from the store."""
    with store_io(db, f"insert {row.__tablename__}"):
        db.add(row)
        db.commit()
        db.refresh(row)
    return row


def save(db: Session, row):
    """Write back a loaded document after in-place attribute changes."""
    with store_io(db, f"save {row.__tablename__} {row.id}"):
        db.add(row)
        db.commit()
        db.refresh(row)
    return row


def find_and_update_user(db: Session, user_id: str, fields: dict[str, Any]) -> Optional[UserDB]:
    """Overwrite the given fields of a user; returns the updated row or None if gone."""
    with store_io(db, f"update user {user_id}"):
        row = db.get(UserDB, user_id)
        if row is None:
            return None
        for name, value in fields.items():
            setattr(row, name, value)
        db.commit()
        db.refresh(row)
    return row


def delete(db: Session, row) -> None:
    with store_io(db, f"delete {row.__tablename__} {row.id}"):
        db.delete(row)
        db.commit()


# --- Queries ---------------------------------------------------------------

_OPERATORS = {
    "$ne": lambda col, v: col != v,
    "$gt": lambda col, v: col > v,
    "$gte": lambda col, v: col >= v,
    "$lt": lambda col, v: col < v,
    "$lte": lambda col, v: col <= v,
}


def _coerce(column, value):
    """Convert a JSON filter value to the column's Python type."""
    column_type = column.expression.type
    if isinstance(column_type, DateTime):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return datetime.fromtimestamp(value / 1000, UTC)
        if isinstance(value, str):
            try:
                return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
            except ValueError as err:
                raise ValidationFailed("Invalid query parameters") from err
        raise ValidationFailed("Invalid query parameters")
    if isinstance(column_type, Boolean):
        if isinstance(value, bool):
            return value
        if value in ("true", "false"):
            return value == "true"
        raise ValidationFailed("Invalid query parameters")
    if isinstance(value, (dict, list)):
        raise ValidationFailed("Invalid query parameters")
    return "" if value is None else str(value)


def _list_contains(column, value):
    """Match rows whose JSON id list holds `value`.

    Ids are matched on their JSON-encoded form inside the stored text, which is
    exact for string elements.
    """
    if isinstance(value, (dict, list)) or value is None:
        raise ValidationFailed("Invalid query parameters")
    return cast(column, Text).contains(json.dumps(str(value)), autoescape=True)


def _list_condition(column, cond):
    """Equality/$ne/$in/$nin on a JSON id list; other operators are rejected."""
    if not isinstance(cond, dict):
        return [_list_contains(column, cond)]
    clauses = []
    for op, value in cond.items():
        if op in ("$in", "$nin"):
            if not isinstance(value, list):
                raise ValidationFailed("Invalid query parameters")
            any_of = or_(*[_list_contains(column, v) for v in value]) if value else false()
            clauses.append(any_of if op == "$in" else not_(any_of))
        elif op == "$ne":
            clauses.append(not_(_list_contains(column, value)))
        else:
            raise ValidationFailed("Invalid query parameters")
    return clauses


def _apply_where(query, fields: dict, where: dict[str, Any]):
    """Apply a document-style filter: equality or $in/$nin/$ne/$gt/$gte/$lt/$lte.

    JSON list columns (pendingTasks) match on membership and take only
    equality, $ne, $in and $nin.
    """
    for key, cond in (where or {}).items():
        column = fields.get(key)
        if column is None:
            raise ValidationFailed("Invalid query parameters")
        if isinstance(column.expression.type, JSON):
            clauses = _list_condition(column, cond)
            if clauses:
                query = query.where(*clauses)
            continue
        if not isinstance(cond, dict):
            query = query.where(column == _coerce(column, cond))
            continue
        for op, value in cond.items():
            if op in ("$in", "$nin"):
                if not isinstance(value, list):
                    raise ValidationFailed("Invalid query parameters")
                values = [_coerce(column, v) for v in value]
                clause = column.in_(values)
                query = query.where(clause if op == "$in" else ~clause)
            elif op in _OPERATORS:
                query = query.where(_OPERATORS[op](column, _coerce(column, value)))
            else:
                raise ValidationFailed("Invalid query parameters")
    return query


def _apply_sort(query, fields: dict, sort: dict[str, Any]):
    """Apply {field: 1|-1} ordering, with the id as a stable tie-breaker."""
    if not sort:
        return query
    id_column = fields["_id"]
    for key, direction in sort.items():
        column = fields.get(key)
        if column is None or isinstance(column.expression.type, JSON):
            raise ValidationFailed("Invalid query parameters")
        if direction in (1, "asc", "ascending"):
            query = query.order_by(column.asc())
        elif direction in (-1, "desc", "descending"):
            query = query.order_by(column.desc())
        else:
            raise ValidationFailed("Invalid query parameters")
    return query.order_by(id_column.asc())


def list_documents(
    db: Session,
    model,
    fields: dict,
    *,
    where: Optional[dict] = None,
    sort: Optional[dict] = None,
    skip: int = 0,
    limit: int = 0,
) -> List[Any]:
    """Return documents matching `where`, sorted and paginated; limit 0 = no limit."""
    query = _apply_where(select(model), fields, where or {})
    query = _apply_sort(query, fields, sort or {})
    if skip:
        query = query.offset(skip)
    if limit:
        query = query.limit(limit)
    with store_io(db, f"query {model.__tablename__}"):
        return list(db.execute(query).scalars().all())


def count_documents(db: Session, model, fields: dict, *, where: Optional[dict] = None) -> int:
    """Return the number of documents matching `where` (no pagination)."""
    query = _apply_where(select(func.count()).select_from(model), fields, where or {})
    with store_io(db, f"count {model.__tablename__}"):
        return int(db.execute(query).scalar() or 0)
