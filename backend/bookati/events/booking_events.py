"""Booking domain events, published after the admitting transaction commits."""
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional, Protocol, Tuple


class Event(Protocol):
    """Protocol for event types."""

    def to_dict(self) -> Dict[str, Any]:
        ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BookingAdmitted:
    """Fired after a booking is committed. Grouped bookings carry booking_group_id."""

    booking_id: str
    tenant_id: str
    service_id: str
    slot_id: str
    customer_id: Optional[str]
    visitor_count: int
    package_covered_quantity: int
    paid_quantity: int
    unit_price: Decimal
    total_price: Decimal
    booking_group_id: Optional[str] = None
    admitted_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingGroupAdmitted:
    """Fired once per grouped (bulk) admission, carrying the group totals."""

    booking_group_id: str
    tenant_id: str
    service_id: str
    customer_id: Optional[str]
    booking_ids: Tuple[str, ...]
    unit_price: Decimal
    paid_quantity: int
    total_price: Decimal
    admitted_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingSlotChanged:
    """Fired after a booking moved to another slot; the old ticket is superseded."""

    booking_id: str
    tenant_id: str
    old_slot_id: str
    new_slot_id: str
    visitor_count: int
    changed_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingCancelled:
    """Fired after a booking is cancelled."""

    booking_id: str
    tenant_id: str
    slot_id: str
    released_quantity: int
    restored_package_units: int
    reason: Optional[str] = None
    cancelled_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PackageExhausted:
    """Fired the first time a subscription's balance for a service reaches zero."""

    subscription_id: str
    service_id: str
    tenant_id: str
    customer_id: Optional[str]
    exhausted_at: datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
