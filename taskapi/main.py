from fastapi import FastAPI, HTTPException, status, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from contextlib import asynccontextmanager

from sqlalchemy import text
import logging
import time
import uuid

from .db import engine
from .api.errors import register_exception_handlers
from .api.v1.router import api_router
from .config import settings
from .logging_utils import setup_logging
from prometheus_fastapi_instrumentator import Instrumentator


@asynccontextmanager
async def lifespan(app: FastAPI):
    """App startup/shutdown lifecycle."""
    # Schema is managed by Alembic (upgrade head)
    setup_logging(settings.LOG_LEVEL, settings.SYNC_LOG_LEVEL)
    yield


tags_metadata = [
    {"name": "tasks", "description": "Tasks: CRUD with assigned-user sync, query parameters."},
    {"name": "users", "description": "Users: CRUD with pending-task sync, query parameters."},
]

app = FastAPI(
    title="Task/User API",
    version="1.0.0",
    description=(
        "Versioned JSON API exposed under /api/v1. "
        "Every response is {message, data}; task assignment and user pending lists are kept in sync."
    ),
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)


@app.get("/health")
def health():
    """Simple healthcheck endpoint."""
    return {"status": "ok"}


app.include_router(api_router)

# Unified error handlers
register_exception_handlers(app)


# Request ID + access log middleware
@app.middleware("http")
async def request_id_and_logging(request: Request, call_next):
    start = time.perf_counter()
    incoming = request.headers.get(settings.REQUEST_ID_HEADER)
    req_id = incoming or uuid.uuid4().hex
    request.state.request_id = req_id
    response = await call_next(request)
    response.headers.setdefault(settings.REQUEST_ID_HEADER, req_id)
    duration_ms = int((time.perf_counter() - start) * 1000)
    logging.getLogger("taskapi.request").info(
        "method=%s path=%s status=%s duration_ms=%s request_id=%s",
        request.method,
        request.url.path,
        getattr(response, "status_code", "-"),
        duration_ms,
        req_id,
    )
    return response


# --- Security: CORS and security headers ---

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def security_headers(request, call_next):
    response = await call_next(request)
    # Basic hardening headers
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    if settings.SECURITY_ENABLE_HSTS:
        # 6 months + preload; adjust as needed in prod
        response.headers.setdefault("Strict-Transport-Security", "max-age=15552000; includeSubDomains; preload")
    return response


# --- Observability: liveness, readiness, metrics ---

@app.get("/live")
def live():
    return {"status": "live"}


@app.get("/ready")
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "ready"}
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="not ready") from exc


# Expose Prometheus metrics at /metrics
Instrumentator().instrument(app).expose(app, include_in_schema=False)


# --- Unversioned paths --------------------------------------------------------

@app.middleware("http")
async def unversioned_redirect(request: Request, call_next):
    """Redirect /tasks and /users to /api/v1 with 308.

    Preserves method and body; keeps query string intact.
    """
    path = request.url.path
    if not path.startswith("/api/v1") and (path.startswith("/tasks") or path.startswith("/users")):
        successor = "/api/v1" + path
        if request.url.query:
            successor = successor + "?" + request.url.query
        return RedirectResponse(url=successor, status_code=308)
    return await call_next(request)
