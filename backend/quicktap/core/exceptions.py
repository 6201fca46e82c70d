"""
Domain errors for seat leasing.

They subclass HTTPException so services can raise them directly and
FastAPI renders the status code and detail without extra handlers.
"""

from typing import Iterable

from fastapi import HTTPException, status


class SeatUnavailable(HTTPException):
    def __init__(self, seats: Iterable[int]):
        self.seats = sorted(set(seats))
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error": "seat_unavailable",
                "message": "Some seats are already booked. Please choose different seats.",
                "seats": self.seats,
            },
        )


class PaymentVerificationFailed(HTTPException):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail={
                "error": "payment_verification_failed",
                "message": "Payment could not be verified, please retry.",
                "order_id": order_id,
            },
        )


class BookingNotFound(HTTPException):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No bookings found for order {order_id}",
        )


class BookingNotActive(HTTPException):
    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Order {order_id} has no active bookings",
        )


class ExtensionLimitExceeded(HTTPException):
    def __init__(self, order_id: str, limit_minutes: int):
        self.order_id = order_id
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Extension for order {order_id} would exceed the {limit_minutes} minute cap",
        )


class InvalidSeatNumber(HTTPException):
    def __init__(self, message: str):
        super().__init__(
            status_code=422,
            detail=message,
        )


class StorageUnavailable(HTTPException):
    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Booking storage is temporarily unavailable. Please retry.",
            headers={"Retry-After": "5"},
        )


class LedgerInvariantViolation(RuntimeError):
    """Two active bookings exist for one seat. Never resolved automatically."""

    def __init__(self, seats: Iterable[int]):
        self.seats = sorted(set(seats))
        super().__init__(f"Multiple active bookings for seats {self.seats}")
