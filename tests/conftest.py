# tests/conftest.py
import os

# Keep the app from starting the scheduler or touching the local database file
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("DATABASE_URL_LOCAL", "sqlite://")

import pytest
from sqlalchemy.orm import sessionmaker
from starlette.testclient import TestClient
from unittest.mock import MagicMock

from hunt_lifecycle.api import deps
from hunt_lifecycle.db.base_class import Base
from hunt_lifecycle.db.session import build_engine
from hunt_lifecycle.main import app
from hunt_lifecycle.schemas.token import TokenPayload
from hunt_lifecycle.utils.clock import frozen_clock
from tests.utils.hunts import NOW

import hunt_lifecycle.models  # noqa: F401  registers the tables on Base


# --- Test Database Setup ---
# A file database per test: transactions take the write lock up front
# (BEGIN IMMEDIATE), so sessions on different threads serialise like they
# would on PostgreSQL.
@pytest.fixture(scope="function")
def engine(tmp_path):
    test_engine = build_engine(f"sqlite:///{tmp_path / 'hunts_test.db'}")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    # Objects stay loaded after commit so reading them in a test does not
    # reopen a transaction and hold the write lock against other sessions
    return sessionmaker(
        autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
    )


@pytest.fixture(scope="function")
def db(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def clock():
    return frozen_clock(NOW)


@pytest.fixture
def counter():
    """Joined-hunts counter collaborator."""
    return MagicMock()


# --- Test Client Fixtures ---
@pytest.fixture
def current_user():
    """Mutable token payload; tests switch `sub` to act as another user."""
    return TokenPayload(sub="owner_1", email_verified=True, exp=4102444800)


@pytest.fixture(scope="function")
def test_client(session_factory, clock, counter, current_user):
    """
    Provides a TestClient backed by the per-test SQLite database, with
    authentication, the clock and the counter overridden.
    """
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_current_user] = lambda: current_user
    app.dependency_overrides[deps.get_clock] = lambda: clock
    app.dependency_overrides[deps.get_participation_counter] = lambda: counter

    client = TestClient(app)
    yield client

    app.dependency_overrides = {}
