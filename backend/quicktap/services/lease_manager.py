"""
Lease Manager: the seat-leasing state machine.

Per-seat state is derived from the ledger, never stored separately:

  available --request_hold--> held --confirm_*--> confirmed
      ^                         |                     |
      +------ expired / completed (expiry, sweep, admin) <-+

Rules:
  - A batch of seats is held all-or-nothing inside one transaction.
  - Seats already held by the same order are reused, not conflicts, so a
    client may retry the combined hold-and-pay call.
  - A failed payment verification keeps the hold; it lapses on its own.
  - Confirming an already-confirmed order returns it unchanged.
  - Leases whose expires_at has passed count as released on every read,
    whether or not the sweeper has run yet.
"""

import math
import time
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from quicktap.core.clock import Clock, utcnow
from quicktap.core.config import Settings, get_settings
from quicktap.core.exceptions import (
    BookingNotActive,
    BookingNotFound,
    InvalidSeatNumber,
    PaymentVerificationFailed,
    SeatUnavailable,
    StorageUnavailable,
)
from quicktap.core.logging import get_logger
from quicktap.core.metrics import (
    active_leases,
    hold_latency,
    record_confirmation,
    record_hold_attempt,
    record_reclaimed,
)
from quicktap.models.booking import Booking
from quicktap.schemas.seat import LeaseSnapshot
from quicktap.services import cache_service
from quicktap.services.payment_gate import PaymentGate, get_payment_gate
from quicktap.services.seat_ledger import LedgerConflict, SeatLedger

logger = get_logger(__name__)


def minutes_remaining(expires_at: datetime, now: datetime) -> int:
    """Whole minutes left on a lease, rounded up, never negative."""
    seconds = (expires_at - now).total_seconds()
    return max(0, math.ceil(seconds / 60))


class LeaseManager:
    def __init__(
        self,
        db: AsyncSession,
        clock: Clock = utcnow,
        gate: Optional[PaymentGate] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.ledger = SeatLedger(db)
        self.clock = clock
        self.gate = gate or get_payment_gate()
        self.settings = settings or get_settings()

    @property
    def hold_duration(self) -> timedelta:
        return timedelta(minutes=self.settings.HOLD_DURATION_MINUTES)

    @property
    def confirmed_duration(self) -> timedelta:
        return timedelta(minutes=self.settings.CONFIRMED_DURATION_MINUTES)

    # Availability

    async def current_leases(self) -> list[LeaseSnapshot]:
        """Live leases, served from the advisory cache when possible."""
        now = self.clock()
        cached, generation = await cache_service.get_cached_leases()
        if cached is not None:
            leases = [LeaseSnapshot.model_validate(item) for item in cached]
        else:
            rows = await self.ledger.list_active_bookings(now)
            leases = [LeaseSnapshot.model_validate(row) for row in rows]
            await cache_service.set_cached_leases(
                [lease.model_dump(mode="json") for lease in leases], generation
            )

        live = [lease for lease in leases if lease.expires_at > now]
        active_leases.set(len(live))
        return live

    async def seat_map(self) -> dict[int, Optional[LeaseSnapshot]]:
        """Every seat number in [1, N] mapped to its live lease or None."""
        by_seat = {lease.seat_number: lease for lease in await self.current_leases()}
        return {n: by_seat.get(n) for n in range(1, self.settings.SEAT_COUNT + 1)}

    async def available_seats(self) -> list[int]:
        return [n for n, lease in (await self.seat_map()).items() if lease is None]

    # Holds

    def _validate_seats(self, seats: Sequence[int]) -> list[int]:
        if not seats:
            raise InvalidSeatNumber("At least one seat must be requested")
        if len(seats) > self.settings.MAX_SEATS_PER_REQUEST:
            raise InvalidSeatNumber(
                f"At most {self.settings.MAX_SEATS_PER_REQUEST} seats can be booked at once"
            )
        if len(set(seats)) != len(seats):
            raise InvalidSeatNumber("Duplicate seat numbers in request")
        out_of_range = [s for s in seats if not 1 <= s <= self.settings.SEAT_COUNT]
        if out_of_range:
            raise InvalidSeatNumber(
                f"Seats {sorted(out_of_range)} are outside 1..{self.settings.SEAT_COUNT}"
            )
        return sorted(seats)

    async def request_hold(
        self,
        seats: Sequence[int],
        order_id: str,
        user_id: Optional[str] = None,
        user_name: Optional[str] = None,
        order_details: Any = None,
    ) -> list[Booking]:
        """
        Place temporary holds on all `seats` for `order_id`, or none of them.
        Raises SeatUnavailable listing the seats held by other orders.
        """
        seats = self._validate_seats(seats)
        now = self.clock()
        started = time.perf_counter()

        try:
            # Lapsed leases on these seats must not block the unique index
            reclaimed = await self.ledger.expire_lapsed(now, seats)

            owned = [
                b for b in await self.ledger.active_for_order(order_id) if b.seat_number in seats
            ]
            owned_seats = {b.seat_number for b in owned}
            # Re-used holds restart with the new ones so the batch lapses together
            await self.ledger.refresh_holds(
                [b.id for b in owned if b.is_temporary], now + self.hold_duration
            )

            new_holds = [
                Booking(
                    seat_number=seat,
                    order_id=order_id,
                    user_id=user_id,
                    user_name=user_name,
                    status="active",
                    is_temporary=True,
                    payment_verified=False,
                    payment_status="pending",
                    order_details=order_details,
                    booked_at=now,
                    expires_at=now + self.hold_duration,
                    extended_minutes=0,
                )
                for seat in seats
                if seat not in owned_seats
            ]
            await self.ledger.insert_holds(new_holds)
            await self.db.commit()
        except LedgerConflict:
            await self.db.rollback()
            conflicting = await self.ledger.conflicting_seats(seats, order_id, now)
            record_hold_attempt("conflict")
            logger.warning(
                "hold_rejected_seat_unavailable",
                order_id=order_id,
                requested=seats,
                conflicting=conflicting,
            )
            raise SeatUnavailable(conflicting or seats)
        except StorageUnavailable:
            await self.db.rollback()
            record_hold_attempt("error")
            raise
        finally:
            hold_latency.observe(time.perf_counter() - started)

        record_hold_attempt("success")
        record_reclaimed("lazy", reclaimed)
        if new_holds:
            await cache_service.announce_transition(
                "held", order_id, [b.seat_number for b in new_holds], now
            )

        logger.info(
            "hold_created",
            order_id=order_id,
            seats=seats,
            new=[b.seat_number for b in new_holds],
            reused=sorted(owned_seats),
            expires_at=(now + self.hold_duration).isoformat(),
        )
        return sorted(owned + new_holds, key=lambda b: b.seat_number)

    async def _live_bookings(self, order_id: str, now: datetime) -> list[Booking]:
        """Active, unexpired bookings of an order, or the right not-found error."""
        live = await self.ledger.active_for_order(order_id, now)
        if live:
            return live
        if await self.ledger.find_by_order(order_id):
            raise BookingNotActive(order_id)
        raise BookingNotFound(order_id)

    # Confirmation

    async def confirm_with_payment(
        self,
        order_id: str,
        gateway_order_id: str,
        gateway_payment_id: str,
        signature: str,
        gateway_amount: Optional[Decimal] = None,
        gateway_currency: Optional[str] = "INR",
    ) -> list[Booking]:
        """Gateway path: held -> confirmed once the signature checks out."""
        now = self.clock()
        bookings = await self._live_bookings(order_id, now)

        if not self.gate.verify(gateway_order_id, gateway_payment_id, signature):
            try:
                await self.ledger.mark_payment_failed(order_id, now)
                await self.db.commit()
            except StorageUnavailable:
                await self.db.rollback()
                raise
            logger.warning(
                "payment_verification_failed",
                order_id=order_id,
                gateway_order_id=gateway_order_id,
                hold_expires_at=min(b.expires_at for b in bookings).isoformat(),
            )
            raise PaymentVerificationFailed(order_id)

        if all(not b.is_temporary for b in bookings):
            logger.info("confirmation_idempotent", order_id=order_id, method="gateway")
            return bookings

        try:
            updated = await self.ledger.mark_confirmed(
                order_id,
                now,
                expires_at=now + self.confirmed_duration,
                payment_verified=True,
                payment_status="completed",
                payment_method="gateway",
                gateway_order_id=gateway_order_id,
                gateway_payment_id=gateway_payment_id,
                gateway_amount=gateway_amount,
                gateway_currency=gateway_currency,
            )
            await self.db.commit()
        except StorageUnavailable:
            await self.db.rollback()
            raise

        record_confirmation("gateway")
        await cache_service.announce_transition(
            "confirmed", order_id, [b.seat_number for b in bookings], now
        )
        logger.info(
            "booking_confirmed",
            order_id=order_id,
            method="gateway",
            gateway_payment_id=gateway_payment_id,
            bookings=updated,
        )
        return await self.ledger.active_for_order(order_id, now)

    async def confirm_cash(self, order_id: str) -> list[Booking]:
        """Cash path: staff-collected, so no verification."""
        now = self.clock()
        bookings = await self._live_bookings(order_id, now)

        if all(not b.is_temporary for b in bookings):
            logger.info("confirmation_idempotent", order_id=order_id, method="cash")
            return bookings

        try:
            updated = await self.ledger.mark_confirmed(
                order_id,
                now,
                expires_at=now + self.confirmed_duration,
                payment_status="completed",
                payment_method="cash",
            )
            await self.db.commit()
        except StorageUnavailable:
            await self.db.rollback()
            raise

        record_confirmation("cash")
        await cache_service.announce_transition(
            "confirmed", order_id, [b.seat_number for b in bookings], now
        )
        logger.info("booking_confirmed", order_id=order_id, method="cash", bookings=updated)
        return await self.ledger.active_for_order(order_id, now)

    async def book_cash(self, seats: Sequence[int], order_id: str, **identity) -> list[Booking]:
        await self.request_hold(seats, order_id, **identity)
        return await self.confirm_cash(order_id)

    async def book_with_payment(
        self,
        seats: Sequence[int],
        order_id: str,
        gateway_order_id: str,
        gateway_payment_id: str,
        signature: str,
        gateway_amount: Optional[Decimal] = None,
        gateway_currency: Optional[str] = "INR",
        **identity,
    ) -> list[Booking]:
        """Hold then confirm; on a bad signature the hold stays in place."""
        await self.request_hold(seats, order_id, **identity)
        return await self.confirm_with_payment(
            order_id,
            gateway_order_id,
            gateway_payment_id,
            signature,
            gateway_amount=gateway_amount,
            gateway_currency=gateway_currency,
        )

    # Lookups and release

    async def order_bookings(self, order_id: str) -> list[Booking]:
        bookings = await self.ledger.find_by_order(order_id)
        if not bookings:
            raise BookingNotFound(order_id)
        return bookings

    async def cancel_hold(self, order_id: str) -> int:
        """Release an order's unconfirmed holds. Confirmed bookings need an admin."""
        bookings = await self.order_bookings(order_id)
        held = [b.seat_number for b in bookings if b.status == "active" and b.is_temporary]
        if not held:
            raise BookingNotActive(order_id)

        now = self.clock()
        try:
            released = await self.ledger.expire_order(order_id, temporary_only=True)
            await self.db.commit()
        except StorageUnavailable:
            await self.db.rollback()
            raise

        record_reclaimed("cancel", released)
        await cache_service.announce_transition(
            "released", order_id, held, now
        )
        logger.info("hold_cancelled", order_id=order_id, released=released)
        return released
