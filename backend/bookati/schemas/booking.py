"""
Booking schemas for the booking core API.

Request models forbid unknown fields. Money travels as Decimal on the way in
and as a string on the way out so no precision is lost in JSON.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import Field, field_serializer, field_validator

from ..models.booking import ACTIVE_STATUSES, TERMINAL_STATUSES, BookingStatus
from ._strict_base import StrictModel, StrictRequestModel


class BookingCreate(StrictRequestModel):
    """Admit one booking for ``visitor_count`` visitors on a slot."""

    tenant_id: str = Field(..., description="Tenant that owns the service and slot")
    service_id: str = Field(..., description="Service being booked")
    slot_id: str = Field(..., description="Slot to reserve capacity on")
    visitor_count: int = Field(..., ge=1, description="Number of visitors (tickets)")
    price_per_unit: Decimal = Field(..., ge=0, description="Price of one billable unit")
    customer_id: Optional[str] = Field(
        None, description="Resolved customer; omitted or unknown books as a guest"
    )
    customer_name: str = Field("Guest", min_length=1, max_length=200)
    customer_phone: Optional[str] = Field(None, max_length=32)
    customer_email: Optional[str] = Field(None, max_length=255)
    status: str = Field(BookingStatus.PENDING.value, description="Initial booking status")
    hold_id: Optional[str] = Field(None, description="Checkout hold to redeem")
    session_id: Optional[str] = Field(None, description="Session that owns hold_id")
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("status")
    @classmethod
    def _status_is_active(cls, value: str) -> str:
        if value not in ACTIVE_STATUSES:
            raise ValueError(f"status must be one of {sorted(ACTIVE_STATUSES)}")
        return value


class BookingGroupCreate(StrictRequestModel):
    """Book one visitor on each of several slots as one group."""

    tenant_id: str
    service_id: str
    slot_ids: List[str] = Field(..., min_length=1)
    price_per_unit: Decimal = Field(..., ge=0)
    customer_id: Optional[str] = None
    customer_name: str = Field("Guest", min_length=1, max_length=200)
    customer_phone: Optional[str] = Field(None, max_length=32)
    customer_email: Optional[str] = Field(None, max_length=255)
    status: str = BookingStatus.PENDING.value
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("slot_ids")
    @classmethod
    def _unique_slots(cls, value: List[str]) -> List[str]:
        if len(set(value)) != len(value):
            raise ValueError("slot_ids must not repeat")
        return value


class BookingRescheduleRequest(StrictRequestModel):
    slot_id: str = Field(..., description="Slot to move the booking to")


class BookingStatusUpdate(StrictRequestModel):
    status: str
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("status")
    @classmethod
    def _known_status(cls, value: str) -> str:
        if value not in ACTIVE_STATUSES | TERMINAL_STATUSES:
            raise ValueError(f"Unknown booking status: {value}")
        return value


class BookingCancelRequest(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=500)


class BookingResponse(StrictModel):
    id: str
    tenant_id: str
    service_id: str
    slot_id: str
    customer_id: Optional[str] = None
    booking_group_id: Optional[str] = None
    customer_name: str
    visitor_count: int
    package_covered_quantity: int
    paid_quantity: int
    package_subscription_id: Optional[str] = None
    unit_price: Decimal
    total_price: Decimal
    status: str
    payment_status: str
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None

    @field_serializer("unit_price", "total_price")
    def _money(self, value: Decimal) -> str:
        return str(value)


class BookingGroupResponse(StrictModel):
    booking_group_id: str
    bookings: List[BookingResponse]
    paid_quantity: int
    total_price: Decimal

    @field_serializer("total_price")
    def _money(self, value: Decimal) -> str:
        return str(value)


class CoveragePreviewResponse(StrictModel):
    """Read-only quote of how a quantity would be split."""

    requested_quantity: int
    covered_quantity: int
    paid_quantity: int
    subscription_id: Optional[str] = None
    remaining_capacity: int


class SlotHoldCreate(StrictRequestModel):
    session_id: str = Field(..., min_length=1, max_length=128)
    quantity: int = Field(..., ge=1)
    ttl_seconds: Optional[int] = Field(None, ge=1, le=3600)


class SlotHoldResponse(StrictModel):
    id: str
    slot_id: str
    session_id: str
    reserved_capacity: int
    expires_at: datetime


class CapacityRecalculationResponse(StrictModel):
    slots: List[Dict[str, Any]]
    changed: int
