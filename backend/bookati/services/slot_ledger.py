# backend/bookati/services/slot_ledger.py
"""
Slot Ledger for the booking core.

The only code allowed to change slot capacity counters. Every mutation runs
on rows locked with ``SELECT ... FOR UPDATE`` and keeps

    available_capacity + booked_count + blocked_count == original_capacity

Reserve and release run inside the caller's transaction and never commit,
so the counter change commits or rolls back together with the booking row.
``recalculate_capacities`` is a maintenance path with its own transaction.

When ``settings.enforce_resource_overlap`` is on, reserving a slot that has a
resource also moves capacity from time-overlapping slots of the same resource
into their ``blocked_count``. The exact amounts are recorded per booking in
``slot_overlap_blocks`` and given back on release.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import InsufficientCapacityException, NotFoundException, ValidationException
from ..models.booking import Booking
from ..models.slot import Slot
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reservation:
    """Capacity taken on a slot inside the current transaction."""

    slot_id: str
    quantity: int
    available_after: int
    overlap_blocks: Tuple[Tuple[str, int], ...] = field(default_factory=tuple)


def _restore(slot: Slot, quantity: int) -> None:
    """Give ``quantity`` back to available, never above what is not consumed."""
    ceiling = int(slot.original_capacity) - int(slot.booked_count) - int(slot.blocked_count)
    slot.available_capacity = max(0, min(ceiling, int(slot.available_capacity) + quantity))


class SlotLedger(BaseService):
    """Reserve and release slot capacity under row locks."""

    def __init__(self, db: Session, enforce_overlap: Optional[bool] = None):
        super().__init__(db)
        self.slot_repository = RepositoryFactory.create_slot_repository(db)
        self.hold_repository = RepositoryFactory.create_slot_hold_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.enforce_overlap = (
            settings.enforce_resource_overlap if enforce_overlap is None else enforce_overlap
        )

    # Locking

    def _overlap_ids(self, slot_id: str) -> List[str]:
        if not self.enforce_overlap:
            return []
        slot = self.slot_repository.get_by_id(slot_id)
        if slot is None:
            return []
        return self.slot_repository.find_overlapping_ids(slot)

    def lock_for_reservation(
        self, slot_ids: Sequence[str], extra_ids: Sequence[str] = ()
    ) -> Dict[str, Slot]:
        """
        Lock the given slots, their overlapping slots and ``extra_ids`` in one
        id-ordered statement.
        """
        ids = set(slot_ids) | set(extra_ids)
        for slot_id in slot_ids:
            ids.update(self._overlap_ids(slot_id))
        locked = self.slot_repository.lock_slots(ids)
        for slot_id in slot_ids:
            if slot_id not in locked:
                raise NotFoundException(f"Slot {slot_id} not found", details={"slot_id": slot_id})
        return locked

    # Reserve

    def _available_for(self, slot: Slot, exclude_hold_id: Optional[str], credit: int = 0) -> int:
        held = self.hold_repository.held_quantity(
            slot.id, now=datetime.now(timezone.utc), exclude_hold_id=exclude_hold_id
        )
        return int(slot.available_capacity) + credit - held

    def ensure_capacity(
        self,
        slot: Slot,
        quantity: int,
        *,
        exclude_hold_id: Optional[str] = None,
        credit: int = 0,
        operation: str = "reserve",
    ) -> int:
        """Raise InsufficientCapacityException unless ``slot`` can take ``quantity`` more."""
        available = self._available_for(slot, exclude_hold_id, credit)
        if available < quantity:
            prometheus_metrics.inc_capacity_rejection(operation)
            self.logger.info(
                "Insufficient capacity on slot %s: %s available, %s requested",
                slot.id,
                available,
                quantity,
            )
            raise InsufficientCapacityException(available, quantity, slot_id=slot.id)
        return available

    def reserve_locked(
        self,
        slot: Slot,
        quantity: int,
        locked: Dict[str, Slot],
        *,
        exclude_hold_id: Optional[str] = None,
    ) -> Reservation:
        """Reserve on a slot the caller has already locked together with its overlaps."""
        if quantity < 1:
            raise ValidationException("Quantity must be at least 1", details={"quantity": quantity})

        self.ensure_capacity(slot, quantity, exclude_hold_id=exclude_hold_id)

        slot.available_capacity = int(slot.available_capacity) - quantity
        slot.booked_count = int(slot.booked_count) + quantity

        blocks: List[Tuple[str, int]] = []
        if self.enforce_overlap and slot.resource_id is not None:
            for other_id in sorted(locked):
                other = locked[other_id]
                if other.id == slot.id or not self._overlaps(slot, other):
                    continue
                # units held for checkout on the overlapping slot stay with their session
                take = min(quantity, self._available_for(other, exclude_hold_id))
                if take <= 0:
                    continue
                other.available_capacity = int(other.available_capacity) - take
                other.blocked_count = int(other.blocked_count) + take
                blocks.append((other.id, take))

        self.slot_repository.flush()
        return Reservation(
            slot_id=slot.id,
            quantity=quantity,
            available_after=int(slot.available_capacity),
            overlap_blocks=tuple(blocks),
        )

    @staticmethod
    def _overlaps(slot: Slot, other: Slot) -> bool:
        return (
            other.resource_id == slot.resource_id
            and other.tenant_id == slot.tenant_id
            and other.slot_date == slot.slot_date
            and other.start_time < slot.end_time
            and other.end_time > slot.start_time
        )

    def try_reserve(
        self, slot_id: str, quantity: int, *, exclude_hold_id: Optional[str] = None
    ) -> Reservation:
        """
        Lock ``slot_id`` and take ``quantity`` units of its capacity.

        Unexpired checkout holds on the slot count as taken, except
        ``exclude_hold_id`` (the hold being redeemed).

        Raises:
            InsufficientCapacityException: with the actual available count; nothing is mutated
            LockTimeoutException: the slot row could not be locked in time
            NotFoundException: the slot does not exist
        """
        locked = self.lock_for_reservation([slot_id])
        return self.reserve_locked(
            locked[slot_id], quantity, locked, exclude_hold_id=exclude_hold_id
        )

    def record_overlap_blocks(self, booking_id: str, reservation: Reservation) -> None:
        for slot_id, quantity in reservation.overlap_blocks:
            self.slot_repository.create_overlap_block(
                booking_id=booking_id, slot_id=slot_id, quantity=quantity
            )

    # Release

    def release(self, slot_id: str, quantity: int) -> Slot:
        """
        Give ``quantity`` units back to a slot.

        Clamped: ``booked_count`` never drops below zero and
        ``available_capacity`` never exceeds ``original_capacity``.
        """
        slot = self.slot_repository.get_for_update(slot_id)
        if slot is None:
            raise NotFoundException(f"Slot {slot_id} not found", details={"slot_id": slot_id})
        self.release_locked(slot, quantity)
        self.slot_repository.flush()
        return slot

    @staticmethod
    def release_locked(slot: Slot, quantity: int) -> None:
        slot.booked_count = max(0, int(slot.booked_count) - quantity)
        _restore(slot, quantity)

    def release_booking(self, booking: Booking) -> None:
        """Release a booking's slot capacity and any overlap blocks it recorded."""
        blocks = self.slot_repository.get_overlap_blocks(booking.id)
        locked = self.slot_repository.lock_slots(
            [booking.slot_id] + [block.slot_id for block in blocks]
        )
        slot = locked.get(booking.slot_id)
        if slot is None:
            raise NotFoundException(
                f"Slot {booking.slot_id} not found", details={"slot_id": booking.slot_id}
            )
        self.release_blocks_locked(booking.id, locked)
        self.release_locked(slot, int(booking.visitor_count))
        self.slot_repository.flush()
        self.logger.info(
            "Released %s units on slot %s for booking %s",
            booking.visitor_count,
            booking.slot_id,
            booking.id,
        )

    def release_blocks_locked(self, booking_id: str, locked: Dict[str, Slot]) -> int:
        """Undo the overlap blocks of a booking on already-locked slots."""
        restored = 0
        for block in self.slot_repository.get_overlap_blocks(booking_id):
            other = locked.get(block.slot_id)
            if other is None:
                continue
            quantity = int(block.quantity)
            other.blocked_count = max(0, int(other.blocked_count) - quantity)
            _restore(other, quantity)
            restored += quantity
        self.slot_repository.delete_overlap_blocks(booking_id)
        return restored

    # Maintenance

    @BaseService.measure_operation("recalculate_capacities")
    def recalculate_capacities(self, slot_ids: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """
        Rebuild booked/blocked/available counters from bookings that hold capacity.

        Returns one entry per slot with the counters before and after.
        """
        with self.transaction():
            ids = sorted(set(slot_ids)) if slot_ids is not None else self.slot_repository.list_ids()
            locked = self.slot_repository.lock_slots(ids)
            booked = self.booking_repository.active_totals_by_slot(list(locked))
            blocked = self.slot_repository.active_blocked_totals(list(locked))

            results: List[Dict[str, Any]] = []
            for slot_id in sorted(locked):
                slot = locked[slot_id]
                before = {
                    "available_capacity": int(slot.available_capacity),
                    "booked_count": int(slot.booked_count),
                    "blocked_count": int(slot.blocked_count),
                }
                slot.booked_count = booked.get(slot_id, 0)
                slot.blocked_count = blocked.get(slot_id, 0)
                consumed = int(slot.booked_count) + int(slot.blocked_count)
                if consumed > int(slot.original_capacity):
                    self.logger.warning(
                        "Slot %s is oversold: %s consumed of %s",
                        slot_id,
                        consumed,
                        slot.original_capacity,
                    )
                slot.available_capacity = max(0, int(slot.original_capacity) - consumed)
                results.append(
                    {
                        "slot_id": slot_id,
                        "before": before,
                        "after": {
                            "available_capacity": int(slot.available_capacity),
                            "booked_count": int(slot.booked_count),
                            "blocked_count": int(slot.blocked_count),
                        },
                    }
                )
            self.slot_repository.flush()

        changed = sum(1 for row in results if row["before"] != row["after"])
        self.log_operation("recalculate_capacities", slots=len(results), changed=changed)
        return results
