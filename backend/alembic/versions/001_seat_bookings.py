"""Seat bookings ledger with the one-active-lease-per-seat partial unique index.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "seat_bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("seat_number", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.String(100), nullable=False),
        sa.Column("user_id", sa.String(100), nullable=True),
        sa.Column("user_name", sa.String(255), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        sa.Column("is_temporary", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("payment_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_method", sa.String(20), nullable=True),
        sa.Column("gateway_order_id", sa.String(100), nullable=True),
        sa.Column("gateway_payment_id", sa.String(100), nullable=True),
        sa.Column("gateway_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("gateway_currency", sa.String(3), nullable=True),
        sa.Column("order_details", sa.JSON(), nullable=True),
        sa.Column("booked_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("extended_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("seat_number > 0", name="check_seat_number_positive"),
        sa.CheckConstraint(
            "status IN ('active', 'expired', 'completed')", name="check_seat_booking_status"
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'completed', 'failed', 'refunded')",
            name="check_seat_booking_payment_status",
        ),
        sa.CheckConstraint(
            "payment_method IS NULL OR payment_method IN ('cash', 'gateway')",
            name="check_seat_booking_payment_method",
        ),
        sa.CheckConstraint("extended_minutes >= 0", name="check_extended_minutes_non_negative"),
    )
    op.create_index("ix_seat_bookings_id", "seat_bookings", ["id"])
    # SEAT EXCLUSIVITY: the only thing standing between two concurrent holds
    # on the same seat. Inserting a second active row fails atomically.
    op.create_index(
        "uq_seat_bookings_active_seat",
        "seat_bookings",
        ["seat_number"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
    )
    op.create_index("ix_seat_bookings_order_id", "seat_bookings", ["order_id"])
    # Sweeper scan: WHERE status = 'active' AND expires_at <= now()
    op.create_index("ix_seat_bookings_status_expires", "seat_bookings", ["status", "expires_at"])


def downgrade() -> None:
    op.drop_index("ix_seat_bookings_status_expires", table_name="seat_bookings")
    op.drop_index("ix_seat_bookings_order_id", table_name="seat_bookings")
    op.drop_index("uq_seat_bookings_active_seat", table_name="seat_bookings")
    op.drop_index("ix_seat_bookings_id", table_name="seat_bookings")
    op.drop_table("seat_bookings")
