"""
Reclamation sweeper: background task that expires lapsed leases.

Each cycle selects active bookings with expires_at <= now and moves them to
expired in one bulk update. Failures are logged and retried on the next
tick; the task never takes the process down. Reads apply the same expiry
check lazily, so a delayed sweep never shows a lapsed seat as occupied.
"""

import asyncio
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from quicktap.core.clock import Clock, utcnow
from quicktap.core.exceptions import StorageUnavailable
from quicktap.core.logging import get_logger
from quicktap.core.metrics import record_sweep
from quicktap.services import cache_service
from quicktap.services.seat_ledger import SeatLedger

logger = get_logger(__name__)


class ReclamationSweeper:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        interval_seconds: int = 300,
        clock: Clock = utcnow,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

    async def run_once(self) -> int:
        """One sweep. Returns the number of bookings expired, 0 on failure."""
        now = self.clock()
        try:
            async with self.session_factory() as db:
                ledger = SeatLedger(db)
                lapsed = await ledger.lapsed_leases(now)
                expired = await ledger.mark_expired([lease_id for lease_id, _ in lapsed], now=now)
                await db.commit()
        except StorageUnavailable as e:
            record_sweep(success=False)
            logger.error("sweep_failed", reason="storage_unavailable", operation=e.operation)
            return 0
        except Exception:
            record_sweep(success=False)
            logger.exception("sweep_failed")
            return 0

        record_sweep(success=True, reclaimed=expired)
        if expired:
            await cache_service.announce_transition(
                "expired", None, {seat for _, seat in lapsed}, now
            )
        logger.info("sweep_completed", expired=expired, at=now.isoformat())
        return expired

    async def _loop(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop(), name="seat-reclamation-sweeper")
            logger.info("sweeper_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("sweeper_stopped")
