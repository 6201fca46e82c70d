"""
Seat Ledger: durable storage of Booking rows.

EXCLUSIVITY CONTRACT
====================

Problem:
  Two clients read "seat 7 is free" at the same time and both insert a hold.
  Result: double booking.

Solution:
  The seat_bookings table carries a partial unique index

    CREATE UNIQUE INDEX uq_seat_bookings_active_seat
        ON seat_bookings (seat_number) WHERE status = 'active'

  so `insert_holds` is a single conditional write. The database rejects the
  second active row for a seat with an IntegrityError, which we surface as
  LedgerConflict. There is no find-then-insert anywhere on the write path.

  A multi-seat batch is flushed inside one transaction; the caller rolls the
  whole transaction back on conflict, so no partial batch is ever committed.

No business rules live here. Methods flush but never commit; the Lease
Manager owns transaction boundaries.
"""

import functools
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from quicktap.core.exceptions import LedgerInvariantViolation, StorageUnavailable
from quicktap.core.logging import get_logger
from quicktap.models.booking import Booking

logger = get_logger(__name__)


class LedgerConflict(Exception):
    """An active booking already exists for one of the inserted seats."""


def _storage_guard(operation: str):
    """Translate backend failures into StorageUnavailable; integrity errors pass through."""

    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            try:
                return await fn(*args, **kwargs)
            except (IntegrityError, LedgerConflict):
                raise
            except (DBAPIError, OSError, TimeoutError) as e:
                logger.error("ledger_storage_error", operation=operation, error=str(e))
                raise StorageUnavailable(operation) from e

        return wrapper

    return decorator


class SeatLedger:
    def __init__(self, db: AsyncSession):
        self.db = db

    # Reads

    @_storage_guard("find_active_booking")
    async def find_active_booking(self, seat_number: int, now: datetime) -> Optional[Booking]:
        """The live lease on a seat, ignoring rows whose expiry has passed."""
        result = await self.db.execute(
            select(Booking).where(
                Booking.seat_number == seat_number,
                Booking.status == "active",
                Booking.expires_at > now,
            )
        )
        return result.scalar_one_or_none()

    @_storage_guard("list_active_bookings")
    async def list_active_bookings(self, now: datetime) -> list[Booking]:
        result = await self.db.execute(
            select(Booking)
            .where(Booking.status == "active", Booking.expires_at > now)
            .order_by(Booking.seat_number.asc())
        )
        return list(result.scalars().all())

    @_storage_guard("find_by_order")
    async def find_by_order(self, order_id: str) -> list[Booking]:
        result = await self.db.execute(
            select(Booking)
            .where(Booking.order_id == order_id)
            .order_by(Booking.seat_number.asc(), Booking.id.asc())
        )
        return list(result.scalars().all())

    @_storage_guard("active_for_order")
    async def active_for_order(
        self, order_id: str, now: Optional[datetime] = None
    ) -> list[Booking]:
        """Active rows of an order; with `now`, lapsed rows are excluded."""
        query = select(Booking).where(Booking.order_id == order_id, Booking.status == "active")
        if now is not None:
            query = query.where(Booking.expires_at > now)
        result = await self.db.execute(query.order_by(Booking.seat_number.asc()))
        return list(result.scalars().all())

    @_storage_guard("conflicting_seats")
    async def conflicting_seats(
        self, seats: Iterable[int], order_id: str, now: datetime
    ) -> list[int]:
        """Seats among `seats` under a live lease owned by another order."""
        result = await self.db.execute(
            select(Booking.seat_number).where(
                Booking.seat_number.in_(list(seats)),
                Booking.status == "active",
                Booking.expires_at > now,
                Booking.order_id != order_id,
            )
        )
        return sorted(result.scalars().all())

    @_storage_guard("lapsed_leases")
    async def lapsed_leases(self, now: datetime) -> list[tuple[int, int]]:
        """(booking id, seat number) of active rows past their expiry."""
        result = await self.db.execute(
            select(Booking.id, Booking.seat_number).where(
                Booking.status == "active", Booking.expires_at <= now
            )
        )
        return [(row.id, row.seat_number) for row in result.all()]

    @_storage_guard("list_bookings")
    async def list_bookings(
        self, page: int = 1, limit: int = 20, status: Optional[str] = None
    ) -> tuple[list[Booking], int]:
        query = select(Booking)
        if status:
            query = query.where(Booking.status == status)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await self.db.execute(count_query)).scalar() or 0

        result = await self.db.execute(
            query.order_by(Booking.booked_at.desc(), Booking.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    @_storage_guard("stats_by_status")
    async def stats_by_status(self, now: datetime) -> dict:
        def count_where(condition):
            return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

        row = (
            await self.db.execute(
                select(
                    func.count(Booking.id),
                    count_where(Booking.status == "active"),
                    count_where(Booking.status == "expired"),
                    count_where(Booking.status == "completed"),
                    count_where(Booking.payment_verified.is_(True)),
                    count_where(
                        (Booking.payment_status == "pending") & (Booking.status == "active")
                    ),
                    count_where(Booking.is_temporary.is_(True) & (Booking.status == "active")),
                    count_where(Booking.payment_method == "cash"),
                    count_where(Booking.booked_at >= now - timedelta(hours=24)),
                )
            )
        ).one()

        keys = (
            "total", "active", "expired", "completed", "payment_verified",
            "pending_payment", "temporary", "cash", "recent_24h",
        )
        return {key: int(value or 0) for key, value in zip(keys, row)}

    @_storage_guard("assert_exclusive")
    async def assert_exclusive(self) -> None:
        """Raise LedgerInvariantViolation if any seat has more than one active row."""
        result = await self.db.execute(
            select(Booking.seat_number)
            .where(Booking.status == "active")
            .group_by(Booking.seat_number)
            .having(func.count(Booking.id) > 1)
        )
        seats = list(result.scalars().all())
        if seats:
            raise LedgerInvariantViolation(seats)

    # Writes

    @_storage_guard("insert_holds")
    async def insert_holds(self, bookings: Sequence[Booking]) -> None:
        """Atomic conditional insert; raises LedgerConflict if a seat is taken."""
        self.db.add_all(bookings)
        try:
            await self.db.flush()
        except IntegrityError as e:
            raise LedgerConflict(str(e.orig)) from e

    @_storage_guard("expire_lapsed")
    async def expire_lapsed(self, now: datetime, seats: Optional[Iterable[int]] = None) -> int:
        """Move active rows past their expiry to expired, optionally only for `seats`."""
        stmt = update(Booking).where(Booking.status == "active", Booking.expires_at <= now)
        if seats is not None:
            stmt = stmt.where(Booking.seat_number.in_(list(seats)))
        result = await self.db.execute(stmt.values(status="expired"))
        return result.rowcount or 0

    @_storage_guard("refresh_holds")
    async def refresh_holds(self, booking_ids: Sequence[int], expires_at: datetime) -> int:
        """Restart the clock on temporary holds so a batch shares one expiry."""
        if not booking_ids:
            return 0
        result = await self.db.execute(
            update(Booking)
            .where(
                Booking.id.in_(list(booking_ids)),
                Booking.status == "active",
                Booking.is_temporary.is_(True),
            )
            .values(expires_at=expires_at)
        )
        return result.rowcount or 0

    @_storage_guard("mark_confirmed")
    async def mark_confirmed(
        self, order_id: str, now: datetime, expires_at: datetime, **payment_fields
    ) -> int:
        """Turn the order's live temporary holds into confirmed bookings; lapsed rows stay lapsed."""
        result = await self.db.execute(
            update(Booking)
            .where(
                Booking.order_id == order_id,
                Booking.status == "active",
                Booking.is_temporary.is_(True),
                Booking.expires_at > now,
            )
            .values(is_temporary=False, expires_at=expires_at, **payment_fields)
        )
        return result.rowcount or 0

    @_storage_guard("mark_payment_failed")
    async def mark_payment_failed(self, order_id: str, now: datetime) -> int:
        result = await self.db.execute(
            update(Booking)
            .where(
                Booking.order_id == order_id,
                Booking.status == "active",
                Booking.is_temporary.is_(True),
                Booking.expires_at > now,
            )
            .values(payment_status="failed")
        )
        return result.rowcount or 0

    @_storage_guard("mark_expired")
    async def mark_expired(self, booking_ids: Sequence[int], now: Optional[datetime] = None) -> int:
        """
        Bulk expire by id. With `now`, only rows still past their expiry are
        touched, so an extension that lands mid-sweep is respected.
        """
        if not booking_ids:
            return 0
        stmt = update(Booking).where(Booking.id.in_(list(booking_ids)), Booking.status == "active")
        if now is not None:
            stmt = stmt.where(Booking.expires_at <= now)
        result = await self.db.execute(stmt.values(status="expired"))
        return result.rowcount or 0

    @_storage_guard("expire_order")
    async def expire_order(self, order_id: str, temporary_only: bool = False) -> int:
        stmt = update(Booking).where(Booking.order_id == order_id, Booking.status == "active")
        if temporary_only:
            stmt = stmt.where(Booking.is_temporary.is_(True))
        result = await self.db.execute(stmt.values(status="expired"))
        return result.rowcount or 0

    @_storage_guard("mark_completed")
    async def mark_completed(self, order_id: str) -> int:
        result = await self.db.execute(
            update(Booking)
            .where(Booking.order_id == order_id, Booking.status == "active")
            .values(status="completed")
        )
        return result.rowcount or 0

    @_storage_guard("extend_booking")
    async def extend_booking(
        self, booking_id: int, expires_at: datetime, extended_minutes: int
    ) -> bool:
        result = await self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == "active")
            .values(expires_at=expires_at, extended_minutes=extended_minutes)
        )
        return bool(result.rowcount)
