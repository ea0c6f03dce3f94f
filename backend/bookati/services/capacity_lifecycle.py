# backend/bookati/services/capacity_lifecycle.py
"""
Booking status transitions and their effect on capacity.

The transition table is explicit:

    ACTIVE   = pending, confirmed, checked_in   (hold slot capacity)
    TERMINAL = cancelled, completed             (hold nothing)

- ACTIVE -> ACTIVE changes the status only. Capacity was reserved once, at
  admission, whatever the initial status was.
- ACTIVE -> TERMINAL releases the booking's slot capacity and overlap blocks
  exactly once. Cancellation also gives package units back; completion
  does not.
- Leaving a TERMINAL status is refused.
"""

from dataclasses import dataclass
from enum import Enum
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.exceptions import InvalidStatusTransitionException, ValidationException
from ..models.booking import ACTIVE_STATUSES, TERMINAL_STATUSES, Booking, BookingStatus
from .base import BaseService
from .package_coverage import PackageCoverageResolver
from .slot_ledger import SlotLedger

logger = logging.getLogger(__name__)


class CapacityEffect(str, Enum):
    NONE = "none"
    RELEASE = "release"


def transition_effect(current: str, requested: str) -> CapacityEffect:
    """
    Return what a status change does to capacity.

    Raises:
        ValidationException: ``requested`` is not a booking status
        InvalidStatusTransitionException: the booking is already terminal
    """
    known = ACTIVE_STATUSES | TERMINAL_STATUSES
    if requested not in known:
        raise ValidationException(
            f"Unknown booking status: {requested}", details={"status": requested}
        )
    if current == requested:
        return CapacityEffect.NONE
    if current in TERMINAL_STATUSES:
        raise InvalidStatusTransitionException(current, requested)
    if requested in TERMINAL_STATUSES:
        return CapacityEffect.RELEASE
    return CapacityEffect.NONE


@dataclass(frozen=True)
class TransitionOutcome:
    previous_status: str
    new_status: str
    released_quantity: int = 0
    restored_package_units: int = 0


class CapacityLifecycle(BaseService):
    """Applies status transitions to a locked booking inside the caller's transaction."""

    def __init__(
        self,
        db: Session,
        ledger: Optional[SlotLedger] = None,
        coverage: Optional[PackageCoverageResolver] = None,
    ):
        super().__init__(db)
        self.ledger = ledger or SlotLedger(db)
        self.coverage = coverage or PackageCoverageResolver(db)

    def apply(
        self, booking: Booking, new_status: str, reason: Optional[str] = None
    ) -> TransitionOutcome:
        previous = str(booking.status)
        effect = transition_effect(previous, new_status)
        if previous == new_status:
            return TransitionOutcome(previous_status=previous, new_status=new_status)

        restored = 0
        released = 0
        if effect is CapacityEffect.RELEASE:
            # Package balances before slots: the same lock order admission uses
            if new_status == BookingStatus.CANCELLED.value:
                restored = self.coverage.restore_for_booking(booking.id)
            self.ledger.release_booking(booking)
            released = int(booking.visitor_count)

        if new_status == BookingStatus.CANCELLED.value:
            booking.mark_cancelled(reason)
        elif new_status == BookingStatus.COMPLETED.value:
            booking.mark_completed()
        else:
            booking.status = new_status
        self.db.flush()

        self.logger.info(
            "Booking %s: %s -> %s (released=%s, restored_units=%s)",
            booking.id,
            previous,
            new_status,
            released,
            restored,
        )
        return TransitionOutcome(
            previous_status=previous,
            new_status=new_status,
            released_quantity=released,
            restored_package_units=restored,
        )
