# backend/bookati/models/package.py
"""
Package subscription models.

A Package bundles per-service unit entitlements. A customer buys it as a
PackageSubscription, whose per-service balance lives in
PackageSubscriptionUsage. Every unit a booking consumes is recorded in
BookingPackageConsumption so a cancellation can give back exactly what was
taken, even when the units came from several subscriptions.
"""

from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func
import ulid

from ..database import Base


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class Package(Base):
    __tablename__ = "packages"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(26), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(200), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PackageService(Base):
    """Units of one service included in a package."""

    __tablename__ = "package_services"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    package_id = Column(String(26), ForeignKey("packages.id", ondelete="CASCADE"), nullable=False)
    service_id = Column(String(26), ForeignKey("services.id", ondelete="CASCADE"), nullable=False)
    capacity_total = Column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("capacity_total > 0", name="ck_package_services_capacity_positive"),
        UniqueConstraint("package_id", "service_id", name="uq_package_services_package_service"),
    )


class PackageSubscription(Base):
    """A customer's purchased package."""

    __tablename__ = "package_subscriptions"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(26), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    customer_id = Column(
        String(26), ForeignKey("customers.id", ondelete="CASCADE"), nullable=False
    )
    package_id = Column(String(26), ForeignKey("packages.id"), nullable=False)
    status = Column(String(20), nullable=False, default=SubscriptionStatus.ACTIVE.value)
    is_active = Column(Boolean, nullable=False, default=True)
    subscribed_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'cancelled')", name="ck_package_subscriptions_status"
        ),
        Index("ix_package_subscriptions_customer", "tenant_id", "customer_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<PackageSubscription {self.id} customer={self.customer_id} status={self.status}>"


class PackageSubscriptionUsage(Base):
    """Per-service balance of a subscription."""

    __tablename__ = "package_subscription_usage"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    subscription_id = Column(
        String(26), ForeignKey("package_subscriptions.id", ondelete="CASCADE"), nullable=False
    )
    service_id = Column(String(26), ForeignKey("services.id", ondelete="CASCADE"), nullable=False)
    original_quantity = Column(Integer, nullable=False)
    remaining_quantity = Column(Integer, nullable=False)
    used_quantity = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("remaining_quantity >= 0", name="ck_package_usage_remaining_nonneg"),
        CheckConstraint("used_quantity >= 0", name="ck_package_usage_used_nonneg"),
        CheckConstraint(
            "remaining_quantity + used_quantity = original_quantity",
            name="ck_package_usage_balance",
        ),
        UniqueConstraint(
            "subscription_id", "service_id", name="uq_package_usage_subscription_service"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<PackageSubscriptionUsage sub={self.subscription_id} service={self.service_id} "
            f"remaining={self.remaining_quantity}/{self.original_quantity}>"
        )


class BookingPackageConsumption(Base):
    """Units a booking took from one subscription balance."""

    __tablename__ = "booking_package_consumptions"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    subscription_id = Column(
        String(26), ForeignKey("package_subscriptions.id", ondelete="CASCADE"), nullable=False
    )
    service_id = Column(String(26), ForeignKey("services.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_booking_package_consumptions_positive"),
        Index("ix_booking_package_consumptions_booking", "booking_id"),
    )


class PackageExhaustionNotification(Base):
    """One row per (subscription, service) balance that reached zero."""

    __tablename__ = "package_exhaustion_notifications"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    subscription_id = Column(
        String(26), ForeignKey("package_subscriptions.id", ondelete="CASCADE"), nullable=False
    )
    service_id = Column(String(26), ForeignKey("services.id", ondelete="CASCADE"), nullable=False)
    notified_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "subscription_id", "service_id", name="uq_package_exhaustion_subscription_service"
        ),
    )
