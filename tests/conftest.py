"""Shared fixtures: in-memory database, test settings, users and API client."""
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from taskflow_core import crud, models, schemas
from taskflow_core.api.main import app
from taskflow_core.config import Settings, get_settings
from taskflow_core.database import get_db
from taskflow_core.security import create_access_token

TEST_PASSWORD = "secret123"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url="sqlite://",
        jwt_secret="test-secret-key-with-at-least-32-bytes!",
        bcrypt_rounds=4,
        upload_dir=str(tmp_path / "uploads"),
    )


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory, settings):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Factory creating users with a known password."""

    def _make_user(email: str, role: models.UserRole = models.UserRole.USER) -> models.User:
        return crud.create_user(db, email=email, password=TEST_PASSWORD, role=role, bcrypt_rounds=4)

    return _make_user


@pytest.fixture
def auth_headers(settings):
    """Factory building a bearer Authorization header for a user."""

    def _auth_headers(user: models.User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id, settings)}"}

    return _auth_headers


@pytest.fixture
def make_task(db):
    """Factory creating tasks directly through crud."""

    def _make_task(creator: models.User, assignees=None, **fields) -> models.Task:
        data = {
            "title": "Write report",
            "description": "Quarterly numbers",
            "due_date": datetime.utcnow() + timedelta(days=1),
            "assigned_to": [u.id for u in (assignees or [creator])],
        }
        data.update(fields)
        return crud.create_task(db, schemas.TaskCreate(**data), creator)

    return _make_task


def task_payload(assignees, **overrides) -> dict:
    """JSON body for POST /api/tasks."""
    payload = {
        "title": "Write report",
        "description": "Quarterly numbers",
        "dueDate": (datetime.utcnow() + timedelta(days=1)).isoformat(),
        "assignedTo": [str(u.id) for u in assignees],
    }
    payload.update(overrides)
    return payload
