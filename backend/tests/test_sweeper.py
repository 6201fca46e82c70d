"""
Tests for the reclamation sweeper.
"""

import asyncio

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from quicktap.models.booking import Booking
from quicktap.services.sweeper import ReclamationSweeper


async def _statuses(db_session: AsyncSession) -> dict[str, str]:
    result = await db_session.execute(select(Booking.order_id, Booking.status))
    return dict(result.all())


@pytest.mark.asyncio
async def test_sweep_expires_lapsed_holds_only(
    client: AsyncClient, db_session: AsyncSession, hold, sweeper, clock
):
    await hold([1], order_id="ORD-OLD")
    clock.advance(minutes=20)
    await hold([2], order_id="ORD-NEW")
    clock.advance(minutes=11)

    assert await sweeper.run_once() == 1
    assert await _statuses(db_session) == {"ORD-OLD": "expired", "ORD-NEW": "active"}


@pytest.mark.asyncio
async def test_sweep_with_nothing_lapsed(client: AsyncClient, hold, sweeper, clock):
    await hold([1], order_id="ORD-1")
    clock.advance(minutes=29)
    assert await sweeper.run_once() == 0


@pytest.mark.asyncio
async def test_sweep_then_rebook(client: AsyncClient, hold, sweeper, clock):
    """After a sweep the lapsed seat is bookable and the old order stays expired."""
    await hold([33], order_id="ORD-A")
    clock.advance(minutes=31)
    assert await sweeper.run_once() == 1

    response = await hold([33], order_id="ORD-B")
    assert response.status_code == 201

    # A second sweep finds nothing new
    assert await sweeper.run_once() == 0


@pytest.mark.asyncio
async def test_sweep_respects_extension(
    client: AsyncClient, db_session: AsyncSession, hold, sweeper, clock, admin_headers
):
    await hold([5], order_id="ORD-1")
    await client.patch(
        "/api/v1/seats/admin/extend/ORD-1",
        json={"additional_minutes": 30},
        headers=admin_headers,
    )
    clock.advance(minutes=31)

    assert await sweeper.run_once() == 0
    assert await _statuses(db_session) == {"ORD-1": "active"}


@pytest.mark.asyncio
async def test_sweep_failure_is_not_fatal(clock, tmp_path):
    """A storage failure is logged and reported as zero reclaimed."""
    broken_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path}/missing/dir/quicktap.db"
    )
    broken = ReclamationSweeper(async_sessionmaker(broken_engine), clock=clock)

    assert await broken.run_once() == 0
    await broken_engine.dispose()


@pytest.mark.asyncio
async def test_sweep_unexpected_error_is_not_fatal(clock):
    def exploding_factory():
        raise RuntimeError("session factory misconfigured")

    broken = ReclamationSweeper(exploding_factory, clock=clock)
    assert await broken.run_once() == 0


@pytest.mark.asyncio
async def test_background_loop_keeps_running_after_failures(clock):
    calls = []

    def exploding_factory():
        calls.append(clock())
        raise RuntimeError("database down")

    sweeper = ReclamationSweeper(exploding_factory, interval_seconds=0.01, clock=clock)
    sweeper.start()
    await asyncio.sleep(0.1)

    assert sweeper._task is not None and not sweeper._task.done()
    await sweeper.stop()
    assert sweeper._task is None
    assert len(calls) > 1


@pytest.mark.asyncio
async def test_lapsed_hold_is_available_before_sweep_and_expired_after(
    client: AsyncClient, db_session: AsyncSession, hold, sweeper, clock
):
    await hold([3], order_id="ORD-1")
    clock.advance(minutes=30, seconds=1)

    status = (await client.get("/api/v1/seats/status")).json()
    assert status["seats"][2]["status"] == "available"
    # Nothing has touched the stored row yet
    assert await _statuses(db_session) == {"ORD-1": "active"}

    assert await sweeper.run_once() == 1
    assert await _statuses(db_session) == {"ORD-1": "expired"}
