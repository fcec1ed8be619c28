"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.deps import _get_basiq_client, get_link_rate_limiter, get_sync_rate_limiter
from database import Base, get_db
from main import app
from services.rate_limiter import FixedWindowRateLimiter
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import (  # noqa: F401
    active_connection,
    advised_user,
    other_user,
    unadvised_user,
)
from tests.fixtures.mocks import MockBasiqClient


@pytest.fixture(name="db")
def db_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="mock_basiq_client")
def mock_basiq_client_fixture():
    """An empty mock aggregator client; tests populate accounts/transactions."""
    return MockBasiqClient()


@pytest.fixture(name="client")
def client_fixture(db, mock_basiq_client):
    """Create a test client with the test database and mock aggregator.

    Rate limiters are replaced with fresh, generous instances so tests
    never share counters.
    """

    def override_get_db():
        try:
            yield db
        finally:
            pass

    link_limiter = FixedWindowRateLimiter(limit=100, window_seconds=60)
    sync_limiter = FixedWindowRateLimiter(limit=100, window_seconds=60)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[_get_basiq_client] = lambda: mock_basiq_client
    app.dependency_overrides[get_link_rate_limiter] = lambda: link_limiter
    app.dependency_overrides[get_sync_rate_limiter] = lambda: sync_limiter
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
