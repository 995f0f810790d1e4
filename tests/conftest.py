"""
Pytest configuration and fixtures

Tests run against an in-memory SQLite database. The schema is created fresh
for every test and dropped afterwards, so nothing leaks between tests.
"""
import pytest
import sys
import os
from uuid import uuid4

# Test environment must be in place before any application module is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-at-least-32-chars"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"

# Add the parent directory to the path so we can import the application modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient

from core.database import Base, SessionLocal, engine
from main import app
from models import User
from services import user_store

TEST_PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def _schema():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def token_service():
    return app.state.token_service


def make_user(db_session, name: str = "Test User", email: str = None, password: str = TEST_PASSWORD) -> User:
    return user_store.create_user(
        db_session,
        name=name,
        email=email or f"test_{uuid4().hex[:12]}@example.com",
        password=password,
    )


def headers_for(token_service, user: User) -> dict:
    token = token_service.issue({"userId": str(user.id), "email": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def test_user(db_session):
    """A registered user with password TEST_PASSWORD."""
    return make_user(db_session)


@pytest.fixture
def other_user(db_session):
    return make_user(db_session, name="Someone Else")


@pytest.fixture
def auth_headers(token_service, test_user):
    return headers_for(token_service, test_user)


@pytest.fixture
def other_headers(token_service, other_user):
    return headers_for(token_service, other_user)
