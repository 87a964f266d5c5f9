"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  ``SELECT ... FOR UPDATE`` is silently
dropped by the SQLite dialect, everything else maps onto the real models.
"""

from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from cabbooking.domain.entities import BookingRequest
from cabbooking.infrastructure.database import Base
from cabbooking.infrastructure.models import UserModel
from cabbooking.services.lifecycle import BookingLifecycleEngine


# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


class FakeNotifier:
    """Records sends instead of calling Twilio; detached sends are dropped."""

    def __init__(self):
        self.send_booking_confirmation = AsyncMock(return_value=True)
        self.send_taxi_assignment = AsyncMock(return_value=True)
        self.send_driver_assignment = AsyncMock(return_value=True)
        self.dispatched: list[str] = []

    def dispatch(self, coro, *, label="notification"):
        self.dispatched.append(label)
        coro.close()


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh schema per test; one shared connection keeps the memory DB alive."""
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def customer(session_factory) -> UserModel:
    async with session_factory() as session:
        user = UserModel(name="Test User", email="test@example.com", phone="9876543210")
        session.add(user)
        await session.commit()
    return user


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def lifecycle(session_factory, notifier) -> BookingLifecycleEngine:
    return BookingLifecycleEngine(session_factory, notifier)


@pytest.fixture
def make_request(customer):
    def _make(**overrides) -> BookingRequest:
        fields = {
            "user_id": customer.id,
            "pickup_location": "A",
            "drop_location": "B",
            "total_amount": 500.0,
            "distance_km": 10.0,
        }
        fields.update(overrides)
        return BookingRequest(**fields)

    return _make
