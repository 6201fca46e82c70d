"""
Seat endpoints: availability, holds, cash and gateway confirmation.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, status

from quicktap.api.deps import get_lease_manager
from quicktap.models.booking import Booking
from quicktap.schemas.seat import (
    AvailableSeatsResponse,
    BookingConfirmation,
    BookingResponse,
    CancelResponse,
    GatewayBookingRequest,
    HoldRequest,
    OrderBookingsResponse,
    PaymentConfirmRequest,
    PaymentStatusResponse,
    ProtectionStatusResponse,
    ProtectionSummary,
    SeatBookingInfo,
    SeatProtection,
    SeatStatus,
    SeatStatusResponse,
)
from quicktap.services.lease_manager import LeaseManager, minutes_remaining

router = APIRouter(prefix="/seats", tags=["Seats"])


def _confirmation(message: str, bookings: list[Booking], now: datetime) -> BookingConfirmation:
    expires_at = min(b.expires_at for b in bookings)
    return BookingConfirmation(
        message=message,
        order_id=bookings[0].order_id,
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        expires_at=expires_at,
        time_remaining_minutes=minutes_remaining(expires_at, now),
        is_temporary=any(b.is_temporary for b in bookings),
        payment_verified=all(b.payment_verified for b in bookings),
    )


@router.get("/status", response_model=SeatStatusResponse)
async def seat_status(manager: LeaseManager = Depends(get_lease_manager)):
    """
    Status of every seat. Occupied covers both temporary holds and confirmed
    bookings; leases past their expiry show as available even before the
    sweeper runs.
    """
    seat_map = await manager.seat_map()
    now = manager.clock()

    seats = []
    for number, lease in seat_map.items():
        if lease is None:
            seats.append(SeatStatus(seat_number=number, status="available"))
            continue
        seats.append(
            SeatStatus(
                seat_number=number,
                status="occupied",
                booking=SeatBookingInfo(
                    order_id=lease.order_id,
                    user_name=lease.user_name,
                    booked_at=lease.booked_at,
                    expires_at=lease.expires_at,
                    time_remaining_minutes=minutes_remaining(lease.expires_at, now),
                    payment_verified=lease.payment_verified,
                ),
            )
        )

    occupied = sum(1 for s in seats if s.status == "occupied")
    return SeatStatusResponse(
        seats=seats,
        total_seats=len(seats),
        available_seats=len(seats) - occupied,
        occupied_seats=occupied,
    )


@router.get("/available", response_model=AvailableSeatsResponse)
async def available_seats(manager: LeaseManager = Depends(get_lease_manager)):
    seats = await manager.available_seats()
    return AvailableSeatsResponse(available_seats=seats, count=len(seats))


@router.get("/protection-status", response_model=ProtectionStatusResponse)
async def protection_status(manager: LeaseManager = Depends(get_lease_manager)):
    """Per-seat protection detail for staff screens."""
    seat_map = await manager.seat_map()
    now = manager.clock()

    protection = []
    for number, lease in seat_map.items():
        if lease is None:
            protection.append(SeatProtection(seat_number=number, status="available", protected=False))
            continue
        protection.append(
            SeatProtection(
                seat_number=number,
                status="protected",
                protected=True,
                protection_type="temporary" if lease.is_temporary else "confirmed",
                time_remaining_minutes=minutes_remaining(lease.expires_at, now),
                booked_by=lease.user_name,
                order_id=lease.order_id,
                payment_verified=lease.payment_verified,
                payment_status=lease.payment_status,
                expires_at=lease.expires_at,
            )
        )

    protected = [p for p in protection if p.protected]
    summary = ProtectionSummary(
        total_seats=len(protection),
        protected_seats=len(protected),
        available_seats=len(protection) - len(protected),
        confirmed_bookings=sum(1 for p in protected if p.protection_type == "confirmed"),
        temporary_reservations=sum(1 for p in protected if p.protection_type == "temporary"),
    )
    return ProtectionStatusResponse(protection_status=protection, summary=summary, timestamp=now)


@router.post("/hold", response_model=BookingConfirmation, status_code=status.HTTP_201_CREATED)
async def hold_seats(request: HoldRequest, manager: LeaseManager = Depends(get_lease_manager)):
    """
    Temporarily hold seats while the client completes gateway checkout.
    All requested seats are held or none are (409 lists the taken seats).
    """
    bookings = await manager.request_hold(
        request.seats,
        request.order_id,
        user_id=request.user_id,
        user_name=request.user_name,
        order_details=request.order_details,
    )
    return _confirmation("Seats held pending payment", bookings, manager.clock())


@router.post("/confirm-payment", response_model=BookingConfirmation)
async def confirm_payment(
    request: PaymentConfirmRequest, manager: LeaseManager = Depends(get_lease_manager)
):
    """Confirm an existing hold with the gateway's signed payment assertion."""
    bookings = await manager.confirm_with_payment(
        request.order_id,
        request.gateway_order_id,
        request.gateway_payment_id,
        request.signature,
        gateway_amount=request.gateway_amount,
        gateway_currency=request.gateway_currency,
    )
    return _confirmation("Payment verified and seats confirmed", bookings, manager.clock())


@router.post("/book-cash", response_model=BookingConfirmation, status_code=status.HTTP_201_CREATED)
async def book_cash(request: HoldRequest, manager: LeaseManager = Depends(get_lease_manager)):
    """Hold and confirm in one call; payment is collected at the counter."""
    bookings = await manager.book_cash(
        request.seats,
        request.order_id,
        user_id=request.user_id,
        user_name=request.user_name,
        order_details=request.order_details,
    )
    return _confirmation("Seats booked for cash payment", bookings, manager.clock())


@router.post(
    "/book-after-payment", response_model=BookingConfirmation, status_code=status.HTTP_201_CREATED
)
async def book_after_payment(
    request: GatewayBookingRequest, manager: LeaseManager = Depends(get_lease_manager)
):
    """
    Hold and confirm with a gateway payment. If the signature does not
    verify, the hold stays until it expires so the payment can be retried.
    """
    bookings = await manager.book_with_payment(
        request.seats,
        request.order_id,
        request.gateway_order_id,
        request.gateway_payment_id,
        request.signature,
        gateway_amount=request.gateway_amount,
        gateway_currency=request.gateway_currency,
        user_id=request.user_id,
        user_name=request.user_name,
        order_details=request.order_details,
    )
    return _confirmation("Payment verified and seats booked", bookings, manager.clock())


@router.get("/order/{order_id}", response_model=OrderBookingsResponse)
async def order_bookings(order_id: str, manager: LeaseManager = Depends(get_lease_manager)):
    bookings = await manager.order_bookings(order_id)
    return OrderBookingsResponse(
        order_id=order_id,
        bookings=[BookingResponse.model_validate(b) for b in bookings],
    )


@router.get("/payment-status/{order_id}", response_model=PaymentStatusResponse)
async def payment_status(order_id: str, manager: LeaseManager = Depends(get_lease_manager)):
    bookings = await manager.order_bookings(order_id)
    # The most recent row reflects the latest payment attempt
    latest = max(bookings, key=lambda b: (b.booked_at, b.id))
    return PaymentStatusResponse(
        order_id=order_id,
        payment_verified=latest.payment_verified,
        payment_status=latest.payment_status,
        payment_method=latest.payment_method,
        gateway_order_id=latest.gateway_order_id,
        gateway_payment_id=latest.gateway_payment_id,
    )


@router.delete("/cancel/{order_id}", response_model=CancelResponse)
async def cancel_hold(order_id: str, manager: LeaseManager = Depends(get_lease_manager)):
    """Release an order's unpaid holds. Paid bookings can only be expired by an admin."""
    released = await manager.cancel_hold(order_id)
    return CancelResponse(message="Hold released", order_id=order_id, released=released)
