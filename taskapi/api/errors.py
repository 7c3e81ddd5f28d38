import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..errors import ApiError, ServerError
from .responses import envelope

logger = logging.getLogger(__name__)


def _entity_for(path: str) -> str:
    if "/users" in path:
        return "user"
    if "/tasks" in path:
        return "task"
    return "request"


def register_exception_handlers(app: FastAPI) -> None:
    """Attach consistent {message, data: {}} error handlers."""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        message = exc.message
        if isinstance(exc, ServerError):
            # Store detail stays in the logs; the caller gets a generic message
            logger.error(
                "server error path=%s request_id=%s: %s",
                request.url.path,
                getattr(request.state, "request_id", "-"),
                exc.message,
                exc_info=exc,
            )
            message = exc.public_message
        return envelope(message, status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return envelope(
            exc.detail if isinstance(exc.detail, str) else "HTTPError",
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors and all(err.get("loc", ("",))[0] in ("query", "path") for err in errors):
            message = "Invalid query parameters"
        else:
            message = f"Invalid {_entity_for(request.url.path)} data provided"
        return envelope(message, status_code=400)
