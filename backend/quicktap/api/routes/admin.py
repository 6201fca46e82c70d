"""
Admin endpoints: booking listing, stats and manual overrides.
All routes require an admin bearer token.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from quicktap.api.deps import get_admin_service, get_sweeper
from quicktap.core.security import require_admin
from quicktap.schemas.admin import (
    AuditResponse,
    BookingListResponse,
    BookingStats,
    ExtendRequest,
    ExtendResponse,
    OrderActionResponse,
    Pagination,
    SweepResponse,
)
from quicktap.schemas.seat import BookingResponse
from quicktap.services.admin_service import AdminService
from quicktap.services.sweeper import ReclamationSweeper

router = APIRouter(prefix="/seats/admin", tags=["Seat Admin"])


@router.get("/all", response_model=BookingListResponse)
async def list_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[Literal["active", "expired", "completed"]] = Query(None),
    admin: str = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    bookings, pagination = await service.list_bookings(page, limit, status)
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        pagination=Pagination(**pagination),
    )


@router.get("/stats", response_model=BookingStats)
async def booking_stats(
    admin: str = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    return BookingStats(**await service.stats())


@router.post("/expire/{order_id}", response_model=OrderActionResponse)
async def force_expire(
    order_id: str,
    admin: str = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    """Expire every active booking of an order now (no-show, cancelled order)."""
    expired = await service.force_expire(order_id, admin=admin)
    return OrderActionResponse(message="Bookings expired", order_id=order_id, affected=expired)


@router.patch("/extend/{order_id}", response_model=ExtendResponse)
async def extend_booking(
    order_id: str,
    body: ExtendRequest,
    admin: str = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    expires_at, extended, updated = await service.extend(
        order_id, body.additional_minutes, admin=admin
    )
    return ExtendResponse(
        message=f"Booking extended by {body.additional_minutes} minutes",
        order_id=order_id,
        expires_at=expires_at,
        extended_minutes=extended,
        bookings_updated=updated,
    )


@router.post("/complete/{order_id}", response_model=OrderActionResponse)
async def complete_order(
    order_id: str,
    admin: str = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    completed = await service.complete(order_id, admin=admin)
    return OrderActionResponse(message="Order completed", order_id=order_id, affected=completed)


@router.post("/sweep", response_model=SweepResponse)
async def run_sweep(
    admin: str = Depends(require_admin),
    sweeper: ReclamationSweeper = Depends(get_sweeper),
):
    """Run one reclamation cycle now instead of waiting for the next tick."""
    reclaimed = await sweeper.run_once()
    return SweepResponse(reclaimed=reclaimed, ran_at=sweeper.clock())


@router.get("/audit", response_model=AuditResponse)
async def audit_ledger(
    admin: str = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    duplicates = await service.audit()
    return AuditResponse(
        healthy=not duplicates,
        duplicate_seats=duplicates,
        checked_at=service.clock(),
        detail="Multiple active bookings found for some seats" if duplicates else None,
    )
