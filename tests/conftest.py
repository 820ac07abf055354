"""
Test configuration and fixtures.

Provides:
- A fresh in-memory SQLite schema per test
- Users to act as
- HTTPX AsyncClient with get_db and get_registry overridden
"""
import os
from itertools import count
from typing import AsyncGenerator, Generator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.orm import Session

# Must be set before the app reads its configuration
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret"

from main import app
from rebound.db.base import Base
from rebound.db.session import engine, SessionLocal, get_db
from rebound.db.models.user import User
from rebound.realtime.registry import ConnectionRegistry, get_registry


# =============================================================================
# Database
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


_emails = count(1)


@pytest.fixture
def make_user(db: Session):
    def _make_user(first_name: str = "Test", last_name: str = "User", user_type: str = "founder") -> User:
        user = User(
            first_name=first_name,
            last_name=last_name,
            email=f"user{next(_emails)}@rebound-mail.com",
            user_type=user_type,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def alice(make_user) -> User:
    return make_user("Alice", "Founder")


@pytest.fixture
def bob(make_user) -> User:
    return make_user("Bob", "Investor", user_type="investor")


@pytest.fixture
def carol(make_user) -> User:
    return make_user("Carol", "Mentor", user_type="mentor")


# =============================================================================
# Realtime
# =============================================================================

class RecordingRegistry(ConnectionRegistry):
    """Registry that remembers every scheduled push."""

    def __init__(self):
        super().__init__()
        self.published = []

    def publish_later(self, user_id, event, payload):
        self.published.append((user_id, event, payload))
        return super().publish_later(user_id, event, payload)


@pytest.fixture
def registry() -> RecordingRegistry:
    return RecordingRegistry()


# =============================================================================
# Client
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session, registry: RecordingRegistry) -> AsyncGenerator[AsyncClient, None]:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_registry] = lambda: registry

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()
