# backend/bookati/models/booking.py
"""
Booking model for the booking core.

A booking is one customer's reservation against exactly one slot. It records
how many of its visitors are covered by a package subscription and how many
are billable. The billing split is guarded by CHECK constraints in addition
to the checks performed by BookingAdmissionService:

- package_covered_quantity + paid_quantity == visitor_count
- package_subscription_id is set iff package_covered_quantity > 0
- total_price == 0 whenever the booking is fully package-covered
"""

from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Any, Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.sql import func
import ulid

from ..database import Base

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"


# Statuses in which a booking holds capacity on its slot
ACTIVE_STATUSES = frozenset(
    {BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value, BookingStatus.CHECKED_IN.value}
)
TERMINAL_STATUSES = frozenset({BookingStatus.CANCELLED.value, BookingStatus.COMPLETED.value})


class Booking(Base):
    """Reservation of visitor_count units on one slot."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))

    tenant_id = Column(String(26), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    service_id = Column(String(26), ForeignKey("services.id"), nullable=False)
    slot_id = Column(String(26), ForeignKey("slots.id"), nullable=False)
    customer_id = Column(String(26), ForeignKey("customers.id"), nullable=True)
    booking_group_id = Column(String(26), nullable=True)

    # Contact snapshot
    customer_name = Column(String(200), nullable=False)
    customer_phone = Column(String(32), nullable=True)
    customer_email = Column(String(255), nullable=True)

    # Quantity and billing split
    visitor_count = Column(Integer, nullable=False)
    package_covered_quantity = Column(Integer, nullable=False, default=0)
    paid_quantity = Column(Integer, nullable=False)
    package_subscription_id = Column(
        String(26), ForeignKey("package_subscriptions.id"), nullable=True
    )
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.UNPAID.value)
    notes = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'checked_in', 'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
        CheckConstraint("payment_status IN ('unpaid', 'paid')", name="ck_bookings_payment_status"),
        CheckConstraint("visitor_count >= 1", name="ck_bookings_visitor_count_positive"),
        CheckConstraint(
            "package_covered_quantity >= 0 AND paid_quantity >= 0",
            name="ck_bookings_quantities_nonneg",
        ),
        CheckConstraint(
            "package_covered_quantity + paid_quantity = visitor_count",
            name="ck_bookings_quantity_split",
        ),
        CheckConstraint(
            "(package_covered_quantity = 0 AND package_subscription_id IS NULL) "
            "OR (package_covered_quantity > 0 AND package_subscription_id IS NOT NULL)",
            name="ck_bookings_subscription_iff_covered",
        ),
        CheckConstraint(
            "package_covered_quantity < visitor_count OR total_price = 0",
            name="ck_bookings_fully_covered_is_free",
        ),
        CheckConstraint("total_price >= 0", name="ck_bookings_price_nonneg"),
        CheckConstraint("unit_price >= 0", name="ck_bookings_unit_price_nonneg"),
        Index("ix_bookings_slot_status", "slot_id", "status"),
        Index("ix_bookings_group", "booking_group_id"),
        Index("ix_bookings_tenant_created", "tenant_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: slot={self.slot_id}, visitors={self.visitor_count}, "
            f"covered={self.package_covered_quantity}, status={self.status}>"
        )

    @property
    def holds_capacity(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_fully_covered(self) -> bool:
        return int(self.package_covered_quantity or 0) == int(self.visitor_count or 0)

    def mark_cancelled(self, reason: Optional[str] = None) -> None:
        self.status = BookingStatus.CANCELLED.value
        self.cancelled_at = datetime.now(timezone.utc)
        self.cancellation_reason = reason
        logger.info(f"Booking {self.id} cancelled")

    def mark_completed(self) -> None:
        self.status = BookingStatus.COMPLETED.value
        self.completed_at = datetime.now(timezone.utc)
        logger.info(f"Booking {self.id} marked as completed")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "service_id": self.service_id,
            "slot_id": self.slot_id,
            "customer_id": self.customer_id,
            "booking_group_id": self.booking_group_id,
            "visitor_count": self.visitor_count,
            "package_covered_quantity": self.package_covered_quantity,
            "paid_quantity": self.paid_quantity,
            "package_subscription_id": self.package_subscription_id,
            "unit_price": str(self.unit_price),
            "total_price": str(self.total_price),
            "status": self.status,
            "payment_status": self.payment_status,
        }
