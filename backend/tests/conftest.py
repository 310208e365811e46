"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.snaptrade import get_snaptrade_client
from database import Base, get_db
from main import app
from services.session_auth import create_session_token
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import categories, investments_category  # noqa: F401
from tests.fixtures.mocks import (
    MockSnapTradeClient,
    SAMPLE_HOLDINGS,
)

TEST_SECRET = "test-session-secret"


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


@pytest.fixture(name="session_secret", autouse=True)
def session_secret_fixture(monkeypatch):
    """Configure a known session signing key for every test."""
    monkeypatch.setattr("config.settings.SESSION_SECRET_KEY", TEST_SECRET)
    return TEST_SECRET


@pytest.fixture(name="auth_headers")
def auth_headers_fixture():
    """Build Authorization headers carrying a session for a user."""

    def _headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_session_token(user_id)}"}

    return _headers


@pytest.fixture(name="mock_snaptrade_client")
def mock_snaptrade_client_fixture():
    """Create a mock SnapTrade client with sample holdings."""
    return MockSnapTradeClient(holdings=SAMPLE_HOLDINGS)


def _make_client(db, snaptrade_client):
    def override_get_db():
        try:
            yield db
        finally:
            pass

    def override_get_snaptrade_client():
        return snaptrade_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_snaptrade_client] = override_get_snaptrade_client
    return TestClient(app, follow_redirects=False)


@pytest.fixture(name="client")
def client_fixture(db, categories, mock_snaptrade_client):
    """Create a test client with the test database and a mock SnapTrade client."""
    client = _make_client(db, mock_snaptrade_client)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="client_with_failing_snaptrade")
def client_with_failing_snaptrade_fixture(db, categories):
    """Create a test client whose SnapTrade client always fails."""
    failing_client = MockSnapTradeClient(
        should_fail=True, failure_message="SnapTrade API unavailable"
    )
    client = _make_client(db, failing_client)
    yield client
    app.dependency_overrides.clear()
