import json
from dataclasses import dataclass, field
from typing import Any

from fastapi import Query

from ..config import settings
from ..errors import ValidationFailed

INVALID_QUERY = "Invalid query parameters"


@dataclass
class ListQuery:
    """Read-side parameters as parsed from the query string."""

    where: dict[str, Any] = field(default_factory=dict)
    sort: dict[str, Any] = field(default_factory=dict)
    select: dict[str, Any] = field(default_factory=dict)
    skip: int = 0
    limit: int = 0
    count: bool = False


def _json_object(raw: str | None) -> dict[str, Any]:
    if raw is None or raw == "":
        return {}
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as err:
        raise ValidationFailed(INVALID_QUERY) from err
    if not isinstance(value, dict):
        raise ValidationFailed(INVALID_QUERY)
    return value


def _int_param(raw: str | None, default: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError) as err:
        raise ValidationFailed(INVALID_QUERY) from err
    if value < 0:
        raise ValidationFailed(INVALID_QUERY)
    return value


def parse_select(select: str | None = Query(None)) -> dict[str, Any]:
    """Projection: all-inclusive ({f: 1}) or all-exclusive ({f: 0}); `_id` may be excluded in either."""
    projection = _json_object(select)
    modes = set()
    for key, flag in projection.items():
        if flag not in (0, 1, True, False):
            raise ValidationFailed(INVALID_QUERY)
        if key != "_id":
            modes.add(bool(flag))
    if len(modes) > 1:
        raise ValidationFailed(INVALID_QUERY)
    return projection


def _list_query(
    where: str | None,
    sort: str | None,
    select: str | None,
    skip: str | None,
    limit: str | None,
    count: str | None,
    default_limit: int,
) -> ListQuery:
    return ListQuery(
        where=_json_object(where),
        sort=_json_object(sort),
        select=parse_select(select),
        skip=_int_param(skip, 0),
        limit=_int_param(limit, default_limit),
        count=count == "true",
    )


def task_list_query(
    where: str | None = Query(None),
    sort: str | None = Query(None),
    select: str | None = Query(None),
    skip: str | None = Query(None),
    limit: str | None = Query(None),
    count: str | None = Query(None),
) -> ListQuery:
    return _list_query(where, sort, select, skip, limit, count, settings.TASK_DEFAULT_LIMIT)


def user_list_query(
    where: str | None = Query(None),
    sort: str | None = Query(None),
    select: str | None = Query(None),
    skip: str | None = Query(None),
    limit: str | None = Query(None),
    count: str | None = Query(None),
) -> ListQuery:
    return _list_query(where, sort, select, skip, limit, count, settings.USER_DEFAULT_LIMIT)
