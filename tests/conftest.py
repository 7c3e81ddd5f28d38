# tests/conftest.py
# PURPOSE: create a TestClient and override DB dependency to use a temp SQLite file.

# Ensure project root is on sys.path so `import taskapi` works when running pytest.
import sys, os

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import tempfile
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from taskapi.db import Base  # DB metadata
from taskapi.main import app  # FastAPI app
from taskapi.store_db import get_db  # real dependency to override


@pytest.fixture()
def session_factory():
    # Temporary SQLite file so data is isolated per test
    tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    tmp.close()
    engine = create_engine(f"sqlite:///{tmp.name}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)

    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)

    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    os.unlink(tmp.name)


@pytest.fixture()
def db(session_factory):
    """A session for driving the store adapter and sync engine directly."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    # Context manager ensures proper startup/shutdown
    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


# --- API helpers shared by test modules ---------------------------------------


@pytest.fixture()
def api(client):
    return Api(client)


class Api:
    """Thin helpers over /api/v1 returning the `data` part of the envelope."""

    def __init__(self, client):
        self.client = client

    def create_user(self, name="Alice", email="alice@example.com", **extra):
        r = self.client.post("/api/v1/users", json={"name": name, "email": email, **extra})
        assert r.status_code == 201, r.text
        return r.json()["data"]

    def create_task(self, name="Task", deadline="2030-01-01T00:00:00Z", **extra):
        r = self.client.post("/api/v1/tasks", json={"name": name, "deadline": deadline, **extra})
        assert r.status_code == 201, r.text
        return r.json()["data"]

    def user(self, user_id):
        r = self.client.get(f"/api/v1/users/{user_id}")
        assert r.status_code == 200, r.text
        return r.json()["data"]

    def task(self, task_id):
        r = self.client.get(f"/api/v1/tasks/{task_id}")
        assert r.status_code == 200, r.text
        return r.json()["data"]

    def all_users(self):
        return self.client.get("/api/v1/users").json()["data"]

    def all_tasks(self):
        return self.client.get("/api/v1/tasks?limit=0").json()["data"]

    def assert_consistent(self):
        """pendingTasks of every user equals the scan of its incomplete assigned tasks."""
        tasks = self.all_tasks()
        users = self.all_users()
        expected = {u["_id"]: set() for u in users}
        for t in tasks:
            if t["assignedUser"] and not t["completed"] and t["assignedUser"] in expected:
                expected[t["assignedUser"]].add(t["_id"])
        for u in users:
            assert len(u["pendingTasks"]) == len(set(u["pendingTasks"])), u
            assert set(u["pendingTasks"]) == expected[u["_id"]], u
