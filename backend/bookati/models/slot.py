# backend/bookati/models/slot.py
"""
Slot capacity model.

A slot is one bookable time unit for a service, optionally scoped to a
resource (an employee). Capacity counters are mutated exclusively through
SlotLedger so the conservation invariant stays in one place:

    available_capacity + booked_count + blocked_count == original_capacity

``blocked_count`` is only non-zero when resource overlap blocking is enabled.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Slot(Base):
    """One bookable time unit with finite capacity."""

    __tablename__ = "slots"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(26), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    service_id = Column(String(26), ForeignKey("services.id", ondelete="CASCADE"), nullable=False)
    resource_id = Column(String(26), nullable=True)

    slot_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    original_capacity = Column(Integer, nullable=False)
    available_capacity = Column(Integer, nullable=False)
    booked_count = Column(Integer, nullable=False, default=0)
    blocked_count = Column(Integer, nullable=False, default=0)
    is_available = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("original_capacity >= 0", name="ck_slots_original_capacity_nonneg"),
        CheckConstraint("available_capacity >= 0", name="ck_slots_available_nonneg"),
        CheckConstraint(
            "available_capacity <= original_capacity", name="ck_slots_available_le_original"
        ),
        CheckConstraint("booked_count >= 0", name="ck_slots_booked_nonneg"),
        CheckConstraint("blocked_count >= 0", name="ck_slots_blocked_nonneg"),
        CheckConstraint("end_time > start_time", name="ck_slots_time_order"),
        UniqueConstraint(
            "service_id", "resource_id", "slot_date", "start_time", name="uq_slots_service_window"
        ),
        Index("ix_slots_resource_date", "tenant_id", "resource_id", "slot_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<Slot {self.id} {self.slot_date} {self.start_time}-{self.end_time} "
            f"avail={self.available_capacity}/{self.original_capacity}>"
        )


class SlotHold(Base):
    """Short-lived capacity hold taken by a checkout session before booking."""

    __tablename__ = "slot_holds"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    slot_id = Column(String(26), ForeignKey("slots.id", ondelete="CASCADE"), nullable=False)
    session_id = Column(String(128), nullable=False)
    reserved_capacity = Column(Integer, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("reserved_capacity > 0", name="ck_slot_holds_positive"),
        Index("ix_slot_holds_slot_expires", "slot_id", "expires_at"),
        Index("ix_slot_holds_session", "session_id"),
    )

    def __repr__(self) -> str:
        return f"<SlotHold {self.id} slot={self.slot_id} qty={self.reserved_capacity}>"


class SlotOverlapBlock(Base):
    """Capacity a booking removed from a time-overlapping slot of the same resource."""

    __tablename__ = "slot_overlap_blocks"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    slot_id = Column(String(26), ForeignKey("slots.id", ondelete="CASCADE"), nullable=False)
    quantity = Column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_slot_overlap_blocks_positive"),
        UniqueConstraint("booking_id", "slot_id", name="uq_slot_overlap_blocks_booking_slot"),
        Index("ix_slot_overlap_blocks_slot", "slot_id"),
    )
