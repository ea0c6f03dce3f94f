"""
Database models for the booking core.

The models are organized by aggregate:
- Tenants, services and customers (reference data)
- Slots with their capacity counters, checkout holds and overlap blocks
- Bookings with their billing split
- Packages, subscriptions and the per-booking consumption ledger
"""

from .booking import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Booking,
    BookingStatus,
    PaymentStatus,
)
from .package import (
    BookingPackageConsumption,
    Package,
    PackageExhaustionNotification,
    PackageService,
    PackageSubscription,
    PackageSubscriptionUsage,
    SubscriptionStatus,
)
from .slot import Slot, SlotHold, SlotOverlapBlock
from .tenant import Customer, Service, Tenant

__all__ = [
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "Booking",
    "BookingPackageConsumption",
    "BookingStatus",
    "Customer",
    "Package",
    "PackageExhaustionNotification",
    "PackageService",
    "PackageSubscription",
    "PackageSubscriptionUsage",
    "PaymentStatus",
    "Service",
    "Slot",
    "SlotHold",
    "SlotOverlapBlock",
    "SubscriptionStatus",
    "Tenant",
]
