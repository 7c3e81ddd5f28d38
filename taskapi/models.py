# Wire schemas. Field names are snake_case in Python and camelCase on the wire;
# identifiers go out as `_id` like a document store would return them.

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from .db_models import UNASSIGNED_NAME, as_utc, now_utc

_wire_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


def normalize_id(value: Any) -> str:
    """Coerce a reference id from the wire into its stored form ("" = none)."""
    if value is None:
        return ""
    return str(value).strip()


def unique_ids(ids) -> list[str]:
    """Drop blanks and duplicates from a list of ids, keeping first occurrence order."""
    seen: set[str] = set()
    out: list[str] = []
    for raw in ids or []:
        tid = normalize_id(raw)
        if tid and tid not in seen:
            seen.add(tid)
            out.append(tid)
    return out


# --- Task schemas ---


class TaskIn(BaseModel):
    """Body of POST/PUT /tasks. Presence of name/deadline is checked by the handlers."""

    name: str | None = None
    description: str | None = None
    deadline: datetime | None = None
    completed: bool | None = None
    assigned_user: str | None = None
    assigned_user_name: str | None = None
    date_created: datetime | None = None
    model_config = ConfigDict(
        **_wire_config,
        json_schema_extra={
            "examples": [
                {"name": "Write report", "deadline": "2025-12-31T18:00:00Z"},
                {
                    "name": "Review PR",
                    "deadline": "2025-11-01T12:00:00Z",
                    "assignedUser": "<user id>",
                    "assignedUserName": "Alice",
                },
            ]
        },
    )

    @field_validator("deadline", "date_created")
    @classmethod
    def _to_utc(cls, value):
        return as_utc(value)

    def resolved(self, before=None) -> dict[str, Any]:
        """Column values for a full write, with defaults applied.

        On update (`before` given) description and dateCreated fall back to the
        stored values; the reference fields always fall back to "unassigned".
        """
        description = self.description
        if description is None:
            description = before.description if before is not None else ""
        date_created = self.date_created
        if date_created is None:
            date_created = before.date_created if before is not None else now_utc()
        return {
            "name": self.name,
            "description": description,
            "deadline": self.deadline,
            "completed": bool(self.completed) if self.completed is not None else False,
            "assigned_user": normalize_id(self.assigned_user),
            "assigned_user_name": self.assigned_user_name or UNASSIGNED_NAME,
            "date_created": date_created,
        }


class Task(BaseModel):
    id: str = Field(alias="_id")
    name: str
    description: str
    deadline: datetime
    completed: bool
    assigned_user: str
    assigned_user_name: str
    date_created: datetime

    model_config = ConfigDict(**_wire_config, from_attributes=True)  # ORM -> schema

    @field_validator("deadline", "date_created")
    @classmethod
    def _tag_utc(cls, value):
        return as_utc(value)


# --- User schemas ---


class UserIn(BaseModel):
    """Body of POST/PUT /users."""

    name: str | None = None
    email: EmailStr | None = None
    pending_tasks: list[str] | None = None
    date_created: datetime | None = None
    model_config = ConfigDict(
        **_wire_config,
        json_schema_extra={
            "examples": [
                {"name": "Alice", "email": "alice@example.com"},
                {"name": "Bob", "email": "bob@example.com", "pendingTasks": ["<task id>"]},
            ]
        },
    )

    @field_validator("pending_tasks", mode="before")
    @classmethod
    def _coerce_pending(cls, value):
        # A single id is accepted as a one-element list
        if isinstance(value, str):
            return [value]
        return value

    @field_validator("date_created")
    @classmethod
    def _to_utc(cls, value):
        return as_utc(value)

    def requested_pending(self) -> list[str]:
        return unique_ids(self.pending_tasks)


class User(BaseModel):
    id: str = Field(alias="_id")
    name: str
    email: str
    pending_tasks: list[str]
    date_created: datetime

    model_config = ConfigDict(**_wire_config, from_attributes=True)

    @field_validator("date_created")
    @classmethod
    def _tag_utc(cls, value):
        return as_utc(value)


# --- Response envelope ---


class Envelope(BaseModel):
    """Every JSON response: a human-readable message plus a data payload."""

    message: str
    data: Any = Field(default_factory=dict)
