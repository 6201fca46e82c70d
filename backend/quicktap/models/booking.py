"""
Booking model: one row per (seat, order) lease.

Key design decisions:
- Partial unique index on seat_number WHERE status = 'active' is the
  atomic conditional insert that guarantees seat exclusivity
- Rows are never deleted; expired/completed rows remain for audit and stats
- order_details is an opaque JSON snapshot, stored and echoed back only
"""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Index,
    Integer,
    Numeric,
    String,
    text,
)

from quicktap.db.base import Base, TimestampMixin, UTCDateTime

ACTIVE_ONLY = text("status = 'active'")


class Booking(Base, TimestampMixin):
    __tablename__ = "seat_bookings"

    id = Column(Integer, primary_key=True, index=True)
    seat_number = Column(Integer, nullable=False)
    order_id = Column(String(100), nullable=False)
    user_id = Column(String(100), nullable=True)
    user_name = Column(String(255), nullable=True)

    status = Column(String(20), nullable=False, default="active")
    is_temporary = Column(Boolean, nullable=False, default=True)

    payment_verified = Column(Boolean, nullable=False, default=False)
    payment_status = Column(String(20), nullable=False, default="pending")
    payment_method = Column(String(20), nullable=True)
    gateway_order_id = Column(String(100), nullable=True)
    gateway_payment_id = Column(String(100), nullable=True)
    gateway_amount = Column(Numeric(10, 2), nullable=True)
    gateway_currency = Column(String(3), nullable=True)

    order_details = Column(JSON, nullable=True)

    booked_at = Column(UTCDateTime(), nullable=False)
    expires_at = Column(UTCDateTime(), nullable=False)
    extended_minutes = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        # At most one active lease per seat
        Index(
            "uq_seat_bookings_active_seat",
            "seat_number",
            unique=True,
            postgresql_where=ACTIVE_ONLY,
            sqlite_where=ACTIVE_ONLY,
        ),
        Index("ix_seat_bookings_order_id", "order_id"),
        # Sweeper query: active rows ordered by expiry
        Index("ix_seat_bookings_status_expires", "status", "expires_at"),
        CheckConstraint("seat_number > 0", name="check_seat_number_positive"),
        CheckConstraint(
            "status IN ('active', 'expired', 'completed')", name="check_seat_booking_status"
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'completed', 'failed', 'refunded')",
            name="check_seat_booking_payment_status",
        ),
        CheckConstraint(
            "payment_method IS NULL OR payment_method IN ('cash', 'gateway')",
            name="check_seat_booking_payment_method",
        ),
        CheckConstraint("extended_minutes >= 0", name="check_extended_minutes_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, seat={self.seat_number}, order={self.order_id}, "
            f"status={self.status}, temporary={self.is_temporary})>"
        )
