"""
Pytest fixtures for test database, client, clock and admin authentication.

Runs against a file-backed SQLite database by default so concurrent
requests go through real, separate connections. Point TEST_DATABASE_URL
at a Postgres database to run the same suite there. Tables are created
and dropped per test for isolation.
"""

import os

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///./quicktap_test.db")

# Settings are cached on first import, so the environment goes first
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("SWEEPER_ENABLED", "false")
os.environ.setdefault("PAYMENT_GATEWAY_KEY_SECRET", "test-gateway-secret")
os.environ.setdefault("SECRET_KEY", "test-jwt-secret")

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from quicktap.main import app
from quicktap.api.deps import get_sweeper
from quicktap.core.clock import get_clock
from quicktap.core.security import create_access_token
from quicktap.db.base import Base
from quicktap.db.session import get_db
from quicktap.services.payment_gate import PaymentGate, get_payment_gate
from quicktap.services.sweeper import ReclamationSweeper

# NullPool: each test runs on its own event loop, so no connection outlives one
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


class FakeClock:
    """Settable UTC clock; call it like `utcnow()`."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 14, 18, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def sweeper(clock: FakeClock) -> ReclamationSweeper:
    return ReclamationSweeper(TestSessionLocal, interval_seconds=60, clock=clock)


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession, clock: FakeClock, sweeper: ReclamationSweeper
) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client with the DB, clock and sweeper dependencies overridden.

    Every request gets its own session, as in production, so concurrent
    requests contend in the database rather than inside one session.
    """

    async def override_get_db():
        async with TestSessionLocal() as session:
            try:
                yield session
            finally:
                if session.in_transaction():
                    await session.rollback()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_sweeper] = lambda: sweeper

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def gate() -> PaymentGate:
    return get_payment_gate()


@pytest.fixture
def admin_headers() -> dict:
    token = create_access_token(data={"sub": "ops-1", "role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def staff_headers() -> dict:
    token = create_access_token(data={"sub": "barista-7", "role": "staff"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def hold(client: AsyncClient):
    """Place a hold through the API and return the response."""

    async def _hold(seats, order_id="ORD-1", **extra):
        return await client.post(
            "/api/v1/seats/hold",
            json={"seats": seats, "order_id": order_id, "user_name": "Asha", **extra},
        )

    return _hold


@pytest.fixture
def pay(client: AsyncClient, gate: PaymentGate):
    """Confirm an order's hold with a correctly signed gateway payment."""

    async def _pay(order_id="ORD-1", gateway_order_id="gw_order_1", gateway_payment_id="pay_1"):
        return await client.post(
            "/api/v1/seats/confirm-payment",
            json={
                "order_id": order_id,
                "gateway_order_id": gateway_order_id,
                "gateway_payment_id": gateway_payment_id,
                "signature": gate.sign(gateway_order_id, gateway_payment_id),
                "gateway_amount": "240.00",
            },
        )

    return _pay
