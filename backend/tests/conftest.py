"""
Shared pytest fixtures for the storefront test suite.

Unit tests run against an in-memory SQLite database; tests that need several
connections (threads, the ASGI app) use a SQLite file under ``tmp_path``.
"""

import os

os.environ.setdefault("SESSION_SECRET_KEY", "test-secret-key-for-tests-only")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from storefront.config import Settings
from storefront.db.connection import build_engine
from storefront.db.models import Base

TEST_PASSWORD = "TestPass123!"


@pytest.fixture()
def db_session():
    """In-memory SQLite session for unit tests."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, expire_on_commit=False)
    session = Session()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture()
def file_session_factory(tmp_path):
    """Session factory over a SQLite file, shareable across threads."""
    engine = build_engine(f"sqlite:///{tmp_path / 'store.db'}", timeout_secs=10)
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture()
def test_user(db_session):
    """Create and return an active customer in the in-memory DB."""
    from storefront.flows import register

    user = register(db_session, "Test", "User", "test@example.com", TEST_PASSWORD)
    db_session.commit()
    return user


@pytest.fixture()
def settings():
    return Settings(
        SESSION_SECRET_KEY="test-secret-key-for-tests-only",
        _env_file=None,
    )


@pytest.fixture()
def app_env(tmp_path, monkeypatch):
    """Point the application at a fresh SQLite file and reset cached singletons."""
    from storefront.config import get_settings
    from storefront.db.connection import get_engine, get_session_factory
    from storefront.rate_limit import login_limiter, register_limiter

    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'app.db'}")

    def reset():
        get_settings.cache_clear()
        get_engine.cache_clear()
        get_session_factory.cache_clear()
        login_limiter.reset()
        register_limiter.reset()

    reset()
    Base.metadata.create_all(get_engine())
    yield get_session_factory()
    get_engine().dispose()
    reset()


@pytest.fixture()
def client(app_env):
    from storefront.main import create_app

    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture()
def registered(client):
    """Register a customer through the API and return its credentials."""
    body = {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "ada@example.com",
        "password": TEST_PASSWORD,
    }
    resp = client.post("/users/register", json=body)
    assert resp.status_code == 201
    return body
