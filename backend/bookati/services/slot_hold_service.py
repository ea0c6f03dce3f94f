# backend/bookati/services/slot_hold_service.py
"""
Checkout holds on slot capacity.

A hold keeps ``reserved_capacity`` units of a slot away from other sessions
for a short time (``settings.slot_hold_ttl_seconds``) while a customer
completes checkout. Holds do not touch slot counters; the ledger subtracts
unexpired holds when it checks capacity, and admission deletes the hold it
redeems.
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import (
    BusinessRuleException,
    NotFoundException,
    SlotHoldException,
    ValidationException,
)
from ..models.slot import SlotHold
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .slot_ledger import SlotLedger

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; every stored value is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SlotHoldService(BaseService):
    """Acquire, validate and expire checkout holds."""

    def __init__(self, db: Session, ledger: Optional[SlotLedger] = None):
        super().__init__(db)
        self.hold_repository = RepositoryFactory.create_slot_hold_repository(db)
        self.slot_repository = RepositoryFactory.create_slot_repository(db)
        self.ledger = ledger or SlotLedger(db)

    @BaseService.measure_operation("acquire_hold")
    def acquire_hold(
        self,
        slot_id: str,
        session_id: str,
        quantity: int,
        ttl_seconds: Optional[int] = None,
    ) -> SlotHold:
        """
        Hold ``quantity`` units of a slot for ``session_id``.

        Raises:
            InsufficientCapacityException: available minus other active holds is short
            NotFoundException: the slot does not exist
            BusinessRuleException: the slot is disabled
        """
        if quantity < 1:
            raise ValidationException("Quantity must be at least 1", details={"quantity": quantity})
        if not session_id:
            raise ValidationException("A session id is required to hold capacity")
        ttl = int(ttl_seconds or settings.slot_hold_ttl_seconds)

        with self.transaction():
            slot = self.slot_repository.get_for_update(slot_id)
            if slot is None:
                raise NotFoundException(f"Slot {slot_id} not found", details={"slot_id": slot_id})
            if not slot.is_available:
                raise BusinessRuleException(
                    "Slot is not available", code="SLOT_UNAVAILABLE", details={"slot_id": slot_id}
                )
            self.ledger.ensure_capacity(slot, quantity, operation="hold")
            hold = self.hold_repository.create(
                slot_id=slot_id,
                session_id=session_id,
                reserved_capacity=quantity,
                expires_at=datetime.now(timezone.utc) + timedelta(seconds=ttl),
            )

        self.log_operation("acquire_hold", hold_id=hold.id, slot_id=slot_id, quantity=quantity)
        return hold

    def validate_hold(self, hold_id: str, session_id: str) -> bool:
        """True when the hold exists, has not expired and belongs to ``session_id``."""
        hold = self.hold_repository.get_by_id(hold_id)
        if hold is None:
            return False
        if _as_utc(hold.expires_at) <= datetime.now(timezone.utc):
            return False
        return bool(hold.session_id == session_id)

    def redeem(
        self, hold_id: str, *, session_id: Optional[str], slot_id: str, quantity: int
    ) -> SlotHold:
        """
        Check a hold can back an admission. Runs inside the admission transaction;
        the caller deletes the hold once the booking row exists. The hold row stays
        locked until then, so a concurrent redeem of the same hold finds it gone.
        """
        hold = self.hold_repository.get_for_update(hold_id)
        if hold is None:
            raise SlotHoldException("Hold not found", hold_id=hold_id)
        if session_id is None or hold.session_id != session_id:
            raise SlotHoldException("Hold belongs to another session", hold_id=hold_id)
        if _as_utc(hold.expires_at) <= datetime.now(timezone.utc):
            raise SlotHoldException("Hold has expired", hold_id=hold_id)
        if hold.slot_id != slot_id:
            raise SlotHoldException("Hold was taken on a different slot", hold_id=hold_id)
        if int(hold.reserved_capacity) < quantity:
            raise SlotHoldException(
                f"Hold covers {hold.reserved_capacity} units, {quantity} requested",
                hold_id=hold_id,
            )
        return hold

    def locked_capacity_for_slots(self, slot_ids: List[str]) -> Dict[str, int]:
        """Capacity held by unexpired holds, keyed by slot id (missing means zero)."""
        return self.hold_repository.held_by_slot(list(slot_ids), now=datetime.now(timezone.utc))

    @BaseService.measure_operation("cleanup_expired_holds")
    def cleanup_expired_holds(self) -> int:
        with self.transaction():
            deleted = self.hold_repository.delete_expired(now=datetime.now(timezone.utc))
        if deleted:
            self.logger.info("Deleted %s expired slot holds", deleted)
        return deleted
