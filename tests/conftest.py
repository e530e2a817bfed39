import asyncio
import time

import pytest
from bson import ObjectId
from mongomock_motor import AsyncMongoMockClient

from peerflex.repositories.user_repository import ProfileRepository
from peerflex.schemas.user import Session
from peerflex.utils.change_feed import ChangeFeed
from peerflex.utils.realtime_bus import LocalBus


@pytest.fixture
def db():
    return AsyncMongoMockClient()["peerflex_test"]


@pytest.fixture
def bus():
    return LocalBus()


@pytest.fixture
def feed(bus):
    return ChangeFeed(bus)


@pytest.fixture
def make_user(db, feed):
    """Create a profile row and return a signed-in Session for it."""

    async def _make(full_name: str = "Alice Smith") -> Session:
        user_id = str(ObjectId())
        await ProfileRepository(db, feed).create_profile(user_id, full_name=full_name)
        return Session(user_id=user_id, email=f"{full_name.split()[0].lower()}@example.com")

    return _make


@pytest.fixture
def eventually():
    """Poll an assertion until it holds; push delivery runs on separate tasks."""

    async def _wait(check, timeout: float = 1.0):
        deadline = time.monotonic() + timeout
        while True:
            try:
                return check()
            except AssertionError:
                if time.monotonic() >= deadline:
                    raise
            await asyncio.sleep(0.01)

    return _wait
