"""
Admin query/control surface on top of the ledger.

Reads: paginated booking listing, aggregate stats, consistency audit.
Writes: force-expire, extend (capped by MAX_EXTENSION_MINUTES), complete.
"""

import math
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from quicktap.core.clock import Clock, utcnow
from quicktap.core.config import Settings, get_settings
from quicktap.core.exceptions import (
    BookingNotActive,
    BookingNotFound,
    ExtensionLimitExceeded,
    LedgerInvariantViolation,
    StorageUnavailable,
)
from quicktap.core.logging import get_logger
from quicktap.core.metrics import record_reclaimed
from quicktap.models.booking import Booking
from quicktap.services import cache_service
from quicktap.services.seat_ledger import SeatLedger

logger = get_logger(__name__)


class AdminService:
    def __init__(
        self,
        db: AsyncSession,
        clock: Clock = utcnow,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.ledger = SeatLedger(db)
        self.clock = clock
        self.settings = settings or get_settings()

    async def list_bookings(
        self, page: int = 1, limit: int = 20, status: Optional[str] = None
    ) -> tuple[list[Booking], dict]:
        bookings, total = await self.ledger.list_bookings(page, limit, status)
        pagination = {
            "current_page": page,
            "total_pages": max(1, math.ceil(total / limit)),
            "total": total,
            "limit": limit,
        }
        return bookings, pagination

    async def stats(self) -> dict:
        return await self.ledger.stats_by_status(self.clock())

    async def _require_order(self, order_id: str) -> list[Booking]:
        bookings = await self.ledger.find_by_order(order_id)
        if not bookings:
            logger.warning("admin_order_not_found", order_id=order_id)
            raise BookingNotFound(order_id)
        return bookings

    async def force_expire(self, order_id: str, admin: str = "admin") -> int:
        """Expire every active booking of the order regardless of expires_at."""
        bookings = await self._require_order(order_id)
        seats = [b.seat_number for b in bookings if b.status == "active"]
        now = self.clock()
        try:
            expired = await self.ledger.expire_order(order_id)
            await self.db.commit()
        except StorageUnavailable:
            await self.db.rollback()
            raise

        record_reclaimed("admin", expired)
        if expired:
            await cache_service.announce_transition(
                "expired", order_id, seats, now
            )
        logger.info("bookings_force_expired", order_id=order_id, expired=expired, admin=admin)
        return expired

    async def complete(self, order_id: str, admin: str = "admin") -> int:
        """Settle an order: its active bookings become completed and the seats free up."""
        bookings = await self._require_order(order_id)
        seats = [b.seat_number for b in bookings if b.status == "active"]
        now = self.clock()
        try:
            completed = await self.ledger.mark_completed(order_id)
            await self.db.commit()
        except StorageUnavailable:
            await self.db.rollback()
            raise

        if not completed:
            raise BookingNotActive(order_id)

        await cache_service.announce_transition(
            "completed", order_id, seats, now
        )
        logger.info("bookings_completed", order_id=order_id, completed=completed, admin=admin)
        return completed

    async def extend(
        self, order_id: str, additional_minutes: int, admin: str = "admin"
    ) -> tuple[datetime, int, int]:
        """
        Push expires_at forward on the order's live bookings.
        Returns (new latest expires_at, cumulative extension, rows updated).
        """
        await self._require_order(order_id)
        now = self.clock()
        live = await self.ledger.active_for_order(order_id, now)
        if not live:
            raise BookingNotActive(order_id)

        already = max(b.extended_minutes for b in live)
        cap = self.settings.MAX_EXTENSION_MINUTES
        if already + additional_minutes > cap:
            logger.warning(
                "extension_rejected",
                order_id=order_id,
                already=already,
                requested=additional_minutes,
                cap=cap,
            )
            raise ExtensionLimitExceeded(order_id, cap)

        delta = timedelta(minutes=additional_minutes)
        updates = [(b.id, b.expires_at + delta, b.extended_minutes + additional_minutes) for b in live]
        try:
            updated = 0
            for booking_id, expires_at, extended in updates:
                if await self.ledger.extend_booking(booking_id, expires_at, extended):
                    updated += 1
            await self.db.commit()
        except StorageUnavailable:
            await self.db.rollback()
            raise

        if not updated:
            raise BookingNotActive(order_id)

        new_expiry = max(expires_at for _, expires_at, _ in updates)
        await cache_service.announce_transition(
            "extended", order_id, [b.seat_number for b in live], now
        )
        logger.info(
            "bookings_extended",
            order_id=order_id,
            minutes=additional_minutes,
            expires_at=new_expiry.isoformat(),
            admin=admin,
        )
        return new_expiry, already + additional_minutes, updated

    async def audit(self) -> list[int]:
        """Seats with more than one active booking. Empty means healthy."""
        try:
            await self.ledger.assert_exclusive()
        except LedgerInvariantViolation as e:
            logger.critical("ledger_exclusivity_violated", seats=e.seats)
            return e.seats
        return []
