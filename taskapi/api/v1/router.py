from fastapi import APIRouter

from ...routers import tasks as tasks_router
from ...routers import users as users_router


api_router = APIRouter(prefix="/api/v1")

# Endpoints are available at /api/v1/tasks and /api/v1/users
api_router.include_router(tasks_router.router)
api_router.include_router(users_router.router)


@api_router.get("/", tags=["meta"])  # lightweight meta endpoint
def api_info():
    return {
        "name": "Task/User API",
        "version": "v1",
        "docs": "/docs",
        "tasks": "/api/v1/tasks",
        "users": "/api/v1/users",
    }
