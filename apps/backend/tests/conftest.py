import os
import tempfile
import time
from pathlib import Path

import pytest

# Point the app at a throwaway SQLite file before anything imports app.db
_DB_DIR = Path(tempfile.mkdtemp(prefix="tracklytics-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'test.db'}"

from fastapi.testclient import TestClient  # noqa: E402

from app.db import Base, SessionLocal, engine  # noqa: E402
from main import create_app  # noqa: E402


@pytest.fixture(autouse=True)
def clean_db():
    Base.metadata.create_all(bind=engine)
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def client():
    # entering the context runs startup, so the hub is live
    with TestClient(create_app()) as c:
        yield c


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_project(client):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        body = {
            "name": f"Site {counter['n']}",
            "domain": f"site{counter['n']}.example.com",
            "owner_name": "Dana Owner",
            "owner_email": "dana@example.com",
        }
        body.update(overrides)
        resp = client.post("/api/v1/admin/projects", json=body)
        assert resp.status_code == 200, resp.text
        return resp.json()["data"]["project"]

    return _make


@pytest.fixture
def track(client):
    def _track(api_key, **fields):
        body = {"session_id": "s1", "event_type": "page_view", "event_name": "Page View"}
        body.update(fields)
        return client.post("/api/v1/track", json=body, headers={"X-API-Key": api_key})

    return _track


def wait_for(predicate, timeout=5.0, interval=0.05):
    """Poll until predicate() is truthy; background work has no completion signal."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        value = predicate()
        if value:
            return value
        time.sleep(interval)
    return predicate()
