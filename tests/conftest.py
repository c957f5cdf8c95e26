"""Pytest configuration and fixtures."""
import os

os.environ.setdefault("MONGODB_URL", "mongodb://localhost:27017")
os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from mongomock_motor import AsyncMongoMockClient

from chronos.database import database, ensure_indexes
from chronos.dependencies import get_clock
from chronos.main import app
from chronos.services.entry_store import EntryStore
from chronos.utils.auth import create_access_token


class FakeClock:
    """Settable clock; call it to read the time."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    """Wednesday 2025-11-12 09:00 UTC."""
    return FakeClock(datetime(2025, 11, 12, 9, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture
async def mongo_db():
    """In-memory MongoDB with the time entry indexes in place."""
    client = AsyncMongoMockClient()
    db = client["chronos_test"]
    await ensure_indexes(db)
    yield db


@pytest.fixture
def store(mongo_db, clock):
    return EntryStore(mongo_db, clock=clock)


@pytest.fixture
def auth_headers():
    """Build bearer headers for an owner."""

    def _headers(owner: str = "user123") -> dict:
        return {"Authorization": f"Bearer {create_access_token(owner=owner)}"}

    return _headers


@pytest_asyncio.fixture
async def app_client(mongo_db, clock):
    """
    Create a test client backed by the in-memory database.

    This fixture:
    - Points the database dependency at the in-memory database
    - Replaces the wall clock with the test clock
    - Yields an async HTTP client for testing
    """
    original_db = database.db
    database.db = mongo_db
    app.dependency_overrides[get_clock] = lambda: clock

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()
    database.db = original_db
