"""Error taxonomy shared by the store adapter, the sync engine and the handlers.

Each error carries the HTTP status it maps to; `api/errors.py` turns them into
`{"message", "data": {}}` responses.
"""

from __future__ import annotations

from contextlib import contextmanager


class ApiError(Exception):
    status_code = 500
    default_message = "Server error occurred"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(ApiError):
    """Required field missing or malformed query input."""

    status_code = 400
    default_message = "Invalid request data provided"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class Conflict(ApiError):
    """Duplicate email on user create/update."""

    status_code = 400
    default_message = "User with this email already exists"


class ServerError(ApiError):
    """Base for failures whose cause stays in the logs, never in the response."""

    status_code = 500
    action: str | None = None

    @property
    def public_message(self) -> str:
        if self.action:
            return f"Server error occurred while {self.action}"
        return self.default_message


class StoreError(ServerError):
    """A store read or write failed (connectivity, timeout, constraint)."""


class DuplicateKey(StoreError):
    """The store rejected a write on a unique index."""


class SyncFailure(ServerError):
    """A secondary-entity read or write failed while keeping references in sync."""


@contextmanager
def describe_failure(action: str):
    """Tag server errors raised inside the block with the operation being performed."""
    try:
        yield
    except ServerError as exc:
        if exc.action is None:
            exc.action = action
        raise
