from quicktap.schemas.seat import (
    HoldRequest, GatewayBookingRequest, PaymentConfirmRequest,
    BookingResponse, BookingConfirmation, SeatStatusResponse,
)
from quicktap.schemas.admin import BookingListResponse, BookingStats, ExtendRequest

__all__ = [
    "HoldRequest", "GatewayBookingRequest", "PaymentConfirmRequest",
    "BookingResponse", "BookingConfirmation", "SeatStatusResponse",
    "BookingListResponse", "BookingStats", "ExtendRequest",
]
