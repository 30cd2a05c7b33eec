"""create bookings and booking rejection requests

Revision ID: 20261019_03
Revises: 20261019_02
Create Date: 2026-10-19 09:40:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261019_03"
down_revision: str | None = "20261019_02"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), sa.Identity(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("service_id", sa.Integer(), nullable=False),
        sa.Column("patient_id", sa.Integer(), nullable=True),
        sa.Column("provider_id", sa.Integer(), nullable=True),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("scheduled_time", sa.Time(), nullable=False),
        sa.Column("duration_hours", sa.Integer(), nullable=False),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("special_instructions", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("payment_status", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["customer_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["service_id"], ["services.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["patient_id"], ["patients.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["provider_id"], ["provider_profiles.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_bookings_id"), "bookings", ["id"], unique=False)
    op.create_index(op.f("ix_bookings_customer_id"), "bookings", ["customer_id"], unique=False)
    op.create_index(op.f("ix_bookings_service_id"), "bookings", ["service_id"], unique=False)
    op.create_index(op.f("ix_bookings_patient_id"), "bookings", ["patient_id"], unique=False)
    op.create_index(op.f("ix_bookings_provider_id"), "bookings", ["provider_id"], unique=False)
    op.create_index("ix_bookings_status_scheduled_date", "bookings", ["status", "scheduled_date"], unique=False)

    op.create_table(
        "booking_rejection_requests",
        sa.Column("id", sa.Integer(), sa.Identity(), nullable=False),
        sa.Column("booking_id", sa.Integer(), nullable=False),
        sa.Column("provider_id", sa.Integer(), nullable=False),
        sa.Column("rejection_reason", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("requested_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("reviewed_by_id", sa.Integer(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["provider_id"], ["provider_profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["reviewed_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_booking_rejection_requests_id"), "booking_rejection_requests", ["id"], unique=False)
    op.create_index(
        op.f("ix_booking_rejection_requests_booking_id"),
        "booking_rejection_requests",
        ["booking_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_booking_rejection_requests_provider_id"),
        "booking_rejection_requests",
        ["provider_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_booking_rejection_requests_status"),
        "booking_rejection_requests",
        ["status"],
        unique=False,
    )
    op.create_index(
        op.f("ix_booking_rejection_requests_requested_at"),
        "booking_rejection_requests",
        ["requested_at"],
        unique=False,
    )
    op.create_index(
        "uq_booking_rejection_requests_pending",
        "booking_rejection_requests",
        ["booking_id", "provider_id"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )


def downgrade() -> None:
    op.drop_index("uq_booking_rejection_requests_pending", table_name="booking_rejection_requests")
    op.drop_index(op.f("ix_booking_rejection_requests_requested_at"), table_name="booking_rejection_requests")
    op.drop_index(op.f("ix_booking_rejection_requests_status"), table_name="booking_rejection_requests")
    op.drop_index(op.f("ix_booking_rejection_requests_provider_id"), table_name="booking_rejection_requests")
    op.drop_index(op.f("ix_booking_rejection_requests_booking_id"), table_name="booking_rejection_requests")
    op.drop_index(op.f("ix_booking_rejection_requests_id"), table_name="booking_rejection_requests")
    op.drop_table("booking_rejection_requests")

    op.drop_index("ix_bookings_status_scheduled_date", table_name="bookings")
    op.drop_index(op.f("ix_bookings_provider_id"), table_name="bookings")
    op.drop_index(op.f("ix_bookings_patient_id"), table_name="bookings")
    op.drop_index(op.f("ix_bookings_service_id"), table_name="bookings")
    op.drop_index(op.f("ix_bookings_customer_id"), table_name="bookings")
    op.drop_index(op.f("ix_bookings_id"), table_name="bookings")
    op.drop_table("bookings")
