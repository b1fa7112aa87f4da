"""Shared pytest fixtures for backend tests."""

import os

# Settings are read at import time; keep tests off Redis and real timers.
os.environ.setdefault("RATE_LIMIT_CHECK_RPM", "0")
os.environ.setdefault("FORMAT_CACHE_ENABLED", "false")
os.environ.setdefault("SESSION_TICKER_ENABLED", "false")
os.environ.setdefault("AUTO_ADVANCE_DELAY_SECONDS", "0")
os.environ.setdefault("ADMIN_EMAILS", '["boss@ex.com"]')

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from quizapp.api.deps import get_checker, get_question_bank, get_registry
from quizapp.db.session import Base, get_db
from quizapp.main import app
from quizapp.services.session_registry import SessionRegistry

from factories import FakeBank, FakeChecker, live, mcq, register


# Use an in-memory SQLite database for testing with static pool
SQLALCHEMY_TEST_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # Use StaticPool to keep connection alive
    echo=False,
)
TestSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)

# Create all tables once at startup
Base.metadata.create_all(bind=engine)


# ── fixtures ──────────────────────────────────────────────────────────────────


@pytest.fixture(scope="function")
def db():
    """Get a fresh DB session for each test."""
    session = TestSession()
    try:
        yield session
    finally:
        session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
        session.close()


@pytest.fixture
def checker():
    return FakeChecker(answers={"q1": "sum 1 2"}, live_ids=["q1"])


@pytest.fixture
def bank():
    return FakeBank(
        {
            "git": [mcq("g1"), mcq("g2", correct=("a", "b"))],
            "linux": [mcq("l1")],
            "live": [live("q1")],
        }
    )


@pytest.fixture
def registry():
    return SessionRegistry(ticker_enabled=False)


@pytest.fixture(scope="function")
def client(db: Session, checker, bank, registry):
    """FastAPI test client with overridden DB and collaborator dependencies."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_checker] = lambda: checker
    app.dependency_overrides[get_question_bank] = lambda: bank
    app.dependency_overrides[get_registry] = lambda: registry

    # Remove TrustedHostMiddleware for tests to allow 'testserver' host
    app.user_middleware = [m for m in app.user_middleware if "TrustedHost" not in str(m)]

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(client: TestClient) -> dict:
    return register(client, "jane.doe@ex.com")
