"""
Pydantic schemas for seat leasing requests and responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class HoldRequest(BaseModel):
    seats: list[int] = Field(..., min_length=1)
    order_id: str = Field(..., min_length=1, max_length=100)
    user_id: Optional[str] = Field(None, max_length=100)
    user_name: Optional[str] = Field(None, max_length=255)
    # Opaque snapshot of the order; stored and echoed, never inspected
    order_details: Optional[Any] = None


class GatewayBookingRequest(HoldRequest):
    gateway_order_id: str = Field(..., min_length=1, max_length=100)
    gateway_payment_id: str = Field(..., min_length=1, max_length=100)
    signature: str = Field(..., min_length=1, max_length=256)
    gateway_amount: Optional[Decimal] = Field(None, ge=0)
    gateway_currency: str = Field("INR", min_length=3, max_length=3)


class PaymentConfirmRequest(BaseModel):
    order_id: str = Field(..., min_length=1, max_length=100)
    gateway_order_id: str = Field(..., min_length=1, max_length=100)
    gateway_payment_id: str = Field(..., min_length=1, max_length=100)
    signature: str = Field(..., min_length=1, max_length=256)
    gateway_amount: Optional[Decimal] = Field(None, ge=0)
    gateway_currency: str = Field("INR", min_length=3, max_length=3)


class BookingResponse(BaseModel):
    id: int
    seat_number: int
    order_id: str
    user_id: Optional[str]
    user_name: Optional[str]
    status: str
    is_temporary: bool
    payment_verified: bool
    payment_status: str
    payment_method: Optional[str]
    gateway_order_id: Optional[str]
    gateway_payment_id: Optional[str]
    gateway_amount: Optional[Decimal]
    gateway_currency: Optional[str]
    order_details: Optional[Any]
    booked_at: datetime
    expires_at: datetime
    extended_minutes: int

    model_config = {"from_attributes": True}


class BookingConfirmation(BaseModel):
    message: str
    order_id: str
    bookings: list[BookingResponse]
    expires_at: datetime
    time_remaining_minutes: int
    is_temporary: bool
    payment_verified: bool


class LeaseSnapshot(BaseModel):
    """Live lease on a seat, as cached for status reads."""

    seat_number: int
    order_id: str
    user_name: Optional[str] = None
    booked_at: datetime
    expires_at: datetime
    is_temporary: bool
    payment_verified: bool
    payment_status: str

    model_config = {"from_attributes": True}


class SeatBookingInfo(BaseModel):
    order_id: str
    user_name: Optional[str]
    booked_at: datetime
    expires_at: datetime
    time_remaining_minutes: int
    payment_verified: bool


class SeatStatus(BaseModel):
    seat_number: int
    status: Literal["available", "occupied"]
    booking: Optional[SeatBookingInfo] = None


class SeatStatusResponse(BaseModel):
    seats: list[SeatStatus]
    total_seats: int
    available_seats: int
    occupied_seats: int


class AvailableSeatsResponse(BaseModel):
    available_seats: list[int]
    count: int


class SeatProtection(BaseModel):
    seat_number: int
    status: Literal["available", "protected"]
    protected: bool
    protection_type: Optional[Literal["temporary", "confirmed"]] = None
    time_remaining_minutes: Optional[int] = None
    booked_by: Optional[str] = None
    order_id: Optional[str] = None
    payment_verified: Optional[bool] = None
    payment_status: Optional[str] = None
    expires_at: Optional[datetime] = None


class ProtectionSummary(BaseModel):
    total_seats: int
    protected_seats: int
    available_seats: int
    confirmed_bookings: int
    temporary_reservations: int


class ProtectionStatusResponse(BaseModel):
    protection_status: list[SeatProtection]
    summary: ProtectionSummary
    timestamp: datetime


class OrderBookingsResponse(BaseModel):
    order_id: str
    bookings: list[BookingResponse]


class PaymentStatusResponse(BaseModel):
    order_id: str
    payment_verified: bool
    payment_status: str
    payment_method: Optional[str]
    gateway_order_id: Optional[str]
    gateway_payment_id: Optional[str]


class CancelResponse(BaseModel):
    message: str
    order_id: str
    released: int
