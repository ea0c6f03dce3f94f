# backend/alembic/versions/001_booking_core.py
"""Booking core - tenants, slots, packages and bookings

Revision ID: 001_booking_core
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates every table of the booking core with the capacity and billing CHECK
constraints. The constraints are the last line of defence: the services
keep the same rules, and a violation here means a bug upstream.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_booking_core"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = True) -> list:
    columns = [
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True
        )
    ]
    if updated:
        columns.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True))
    return columns


def upgrade() -> None:
    """Create booking core tables."""
    print("Creating tenant tables...")

    op.create_table(
        "tenants",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(updated=False),
    )

    op.create_table(
        "services",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "tenant_id",
            sa.String(26),
            sa.ForeignKey("tenants.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("base_price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(updated=False),
    )
    op.create_index("ix_services_tenant", "services", ["tenant_id"])

    op.create_table(
        "customers",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "tenant_id",
            sa.String(26),
            sa.ForeignKey("tenants.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_customers_tenant_phone", "customers", ["tenant_id", "phone"])

    print("Creating slot tables...")

    op.create_table(
        "slots",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "tenant_id",
            sa.String(26),
            sa.ForeignKey("tenants.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "service_id",
            sa.String(26),
            sa.ForeignKey("services.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("resource_id", sa.String(26), nullable=True),
        sa.Column("slot_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("original_capacity", sa.Integer(), nullable=False),
        sa.Column("available_capacity", sa.Integer(), nullable=False),
        sa.Column("booked_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("blocked_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("original_capacity >= 0", name="ck_slots_original_capacity_nonneg"),
        sa.CheckConstraint("available_capacity >= 0", name="ck_slots_available_nonneg"),
        sa.CheckConstraint(
            "available_capacity <= original_capacity", name="ck_slots_available_le_original"
        ),
        sa.CheckConstraint("booked_count >= 0", name="ck_slots_booked_nonneg"),
        sa.CheckConstraint("blocked_count >= 0", name="ck_slots_blocked_nonneg"),
        sa.CheckConstraint("end_time > start_time", name="ck_slots_time_order"),
        sa.UniqueConstraint(
            "service_id", "resource_id", "slot_date", "start_time", name="uq_slots_service_window"
        ),
    )
    op.create_index("ix_slots_resource_date", "slots", ["tenant_id", "resource_id", "slot_date"])

    op.create_table(
        "slot_holds",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "slot_id", sa.String(26), sa.ForeignKey("slots.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("session_id", sa.String(128), nullable=False),
        sa.Column("reserved_capacity", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(updated=False),
        sa.CheckConstraint("reserved_capacity > 0", name="ck_slot_holds_positive"),
    )
    op.create_index("ix_slot_holds_slot_expires", "slot_holds", ["slot_id", "expires_at"])
    op.create_index("ix_slot_holds_session", "slot_holds", ["session_id"])

    print("Creating package tables...")

    op.create_table(
        "packages",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "tenant_id",
            sa.String(26),
            sa.ForeignKey("tenants.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(updated=False),
    )

    op.create_table(
        "package_services",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "package_id",
            sa.String(26),
            sa.ForeignKey("packages.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "service_id",
            sa.String(26),
            sa.ForeignKey("services.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("capacity_total", sa.Integer(), nullable=False),
        sa.CheckConstraint("capacity_total > 0", name="ck_package_services_capacity_positive"),
        sa.UniqueConstraint(
            "package_id", "service_id", name="uq_package_services_package_service"
        ),
    )

    op.create_table(
        "package_subscriptions",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "tenant_id",
            sa.String(26),
            sa.ForeignKey("tenants.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "customer_id",
            sa.String(26),
            sa.ForeignKey("customers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("package_id", sa.String(26), sa.ForeignKey("packages.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "subscribed_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "status IN ('active', 'cancelled')", name="ck_package_subscriptions_status"
        ),
    )
    op.create_index(
        "ix_package_subscriptions_customer",
        "package_subscriptions",
        ["tenant_id", "customer_id", "status"],
    )

    op.create_table(
        "package_subscription_usage",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "subscription_id",
            sa.String(26),
            sa.ForeignKey("package_subscriptions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "service_id",
            sa.String(26),
            sa.ForeignKey("services.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("original_quantity", sa.Integer(), nullable=False),
        sa.Column("remaining_quantity", sa.Integer(), nullable=False),
        sa.Column("used_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("remaining_quantity >= 0", name="ck_package_usage_remaining_nonneg"),
        sa.CheckConstraint("used_quantity >= 0", name="ck_package_usage_used_nonneg"),
        sa.CheckConstraint(
            "remaining_quantity + used_quantity = original_quantity",
            name="ck_package_usage_balance",
        ),
        sa.UniqueConstraint(
            "subscription_id", "service_id", name="uq_package_usage_subscription_service"
        ),
    )

    op.create_table(
        "package_exhaustion_notifications",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "subscription_id",
            sa.String(26),
            sa.ForeignKey("package_subscriptions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "service_id",
            sa.String(26),
            sa.ForeignKey("services.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "notified_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "subscription_id", "service_id", name="uq_package_exhaustion_subscription_service"
        ),
    )

    print("Creating booking tables...")

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "tenant_id",
            sa.String(26),
            sa.ForeignKey("tenants.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("service_id", sa.String(26), sa.ForeignKey("services.id"), nullable=False),
        sa.Column("slot_id", sa.String(26), sa.ForeignKey("slots.id"), nullable=False),
        sa.Column("customer_id", sa.String(26), sa.ForeignKey("customers.id"), nullable=True),
        sa.Column("booking_group_id", sa.String(26), nullable=True),
        sa.Column("customer_name", sa.String(200), nullable=False),
        sa.Column("customer_phone", sa.String(32), nullable=True),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("visitor_count", sa.Integer(), nullable=False),
        sa.Column("package_covered_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("paid_quantity", sa.Integer(), nullable=False),
        sa.Column(
            "package_subscription_id",
            sa.String(26),
            sa.ForeignKey("package_subscriptions.id"),
            nullable=True,
        ),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="unpaid"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'checked_in', 'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('unpaid', 'paid')", name="ck_bookings_payment_status"
        ),
        sa.CheckConstraint("visitor_count >= 1", name="ck_bookings_visitor_count_positive"),
        sa.CheckConstraint(
            "package_covered_quantity >= 0 AND paid_quantity >= 0",
            name="ck_bookings_quantities_nonneg",
        ),
        sa.CheckConstraint(
            "package_covered_quantity + paid_quantity = visitor_count",
            name="ck_bookings_quantity_split",
        ),
        sa.CheckConstraint(
            "(package_covered_quantity = 0 AND package_subscription_id IS NULL) "
            "OR (package_covered_quantity > 0 AND package_subscription_id IS NOT NULL)",
            name="ck_bookings_subscription_iff_covered",
        ),
        sa.CheckConstraint(
            "package_covered_quantity < visitor_count OR total_price = 0",
            name="ck_bookings_fully_covered_is_free",
        ),
        sa.CheckConstraint("total_price >= 0", name="ck_bookings_price_nonneg"),
        sa.CheckConstraint("unit_price >= 0", name="ck_bookings_unit_price_nonneg"),
    )
    op.create_index("ix_bookings_slot_status", "bookings", ["slot_id", "status"])
    op.create_index("ix_bookings_group", "bookings", ["booking_group_id"])
    op.create_index("ix_bookings_tenant_created", "bookings", ["tenant_id", "created_at"])

    op.create_table(
        "booking_package_consumptions",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "booking_id",
            sa.String(26),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "subscription_id",
            sa.String(26),
            sa.ForeignKey("package_subscriptions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("service_id", sa.String(26), sa.ForeignKey("services.id"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        *_timestamps(updated=False),
        sa.CheckConstraint("quantity > 0", name="ck_booking_package_consumptions_positive"),
    )
    op.create_index(
        "ix_booking_package_consumptions_booking", "booking_package_consumptions", ["booking_id"]
    )

    op.create_table(
        "slot_overlap_blocks",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column(
            "booking_id",
            sa.String(26),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "slot_id", sa.String(26), sa.ForeignKey("slots.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_slot_overlap_blocks_positive"),
        sa.UniqueConstraint("booking_id", "slot_id", name="uq_slot_overlap_blocks_booking_slot"),
    )
    op.create_index("ix_slot_overlap_blocks_slot", "slot_overlap_blocks", ["slot_id"])

    print("Booking core tables created.")


def downgrade() -> None:
    """Drop booking core tables."""
    print("Dropping booking core tables...")
    for table in (
        "slot_overlap_blocks",
        "booking_package_consumptions",
        "bookings",
        "package_exhaustion_notifications",
        "package_subscription_usage",
        "package_subscriptions",
        "package_services",
        "packages",
        "slot_holds",
        "slots",
        "customers",
        "services",
        "tenants",
    ):
        op.drop_table(table)
