"""
Dependency providers for the seat routes.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from quicktap.core.clock import Clock, get_clock
from quicktap.core.config import get_settings
from quicktap.db.session import SessionLocal, get_db
from quicktap.services.admin_service import AdminService
from quicktap.services.lease_manager import LeaseManager
from quicktap.services.payment_gate import PaymentGate, get_payment_gate
from quicktap.services.sweeper import ReclamationSweeper


def get_lease_manager(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    gate: PaymentGate = Depends(get_payment_gate),
) -> LeaseManager:
    return LeaseManager(db, clock=clock, gate=gate)


def get_admin_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> AdminService:
    return AdminService(db, clock=clock)


def get_sweeper(clock: Clock = Depends(get_clock)) -> ReclamationSweeper:
    """On-demand sweeper sharing the app's session factory."""
    return ReclamationSweeper(
        SessionLocal, interval_seconds=get_settings().SWEEP_INTERVAL_SECONDS, clock=clock
    )
