"""
Pydantic schemas for the admin query/control surface.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from quicktap.schemas.seat import BookingResponse


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total: int
    limit: int


class BookingListResponse(BaseModel):
    bookings: list[BookingResponse]
    pagination: Pagination


class BookingStats(BaseModel):
    total: int
    active: int
    expired: int
    completed: int
    payment_verified: int
    pending_payment: int
    temporary: int
    cash: int
    recent_24h: int


class ExtendRequest(BaseModel):
    additional_minutes: int = Field(15, gt=0, le=24 * 60)


class ExtendResponse(BaseModel):
    message: str
    order_id: str
    expires_at: datetime
    extended_minutes: int
    bookings_updated: int


class OrderActionResponse(BaseModel):
    message: str
    order_id: str
    affected: int


class SweepResponse(BaseModel):
    reclaimed: int
    ran_at: datetime


class AuditResponse(BaseModel):
    healthy: bool
    duplicate_seats: list[int] = []
    checked_at: datetime
    detail: Optional[str] = None
