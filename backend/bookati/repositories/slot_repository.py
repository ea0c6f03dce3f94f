# backend/bookati/repositories/slot_repository.py
"""
Slot Repository for the booking core.

Owns every query against ``slots`` and ``slot_overlap_blocks``. Counter
mutation itself happens in SlotLedger on rows this repository has locked.
Multi-row locks are always taken in slot id order.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, cast

from sqlalchemy import and_, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import ACTIVE_STATUSES, Booking
from ..models.slot import Slot, SlotOverlapBlock
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SlotRepository(BaseRepository[Slot]):
    """Repository for slot capacity rows."""

    def __init__(self, db: Session):
        super().__init__(db, Slot)

    def get_for_update(self, slot_id: str) -> Optional[Slot]:
        """Lock a single slot row for the rest of the transaction."""
        query = self.db.query(Slot).filter(Slot.id == slot_id)
        return cast(Optional[Slot], self.lock_one(query, "slot", slot_id))

    def lock_slots(self, slot_ids: Iterable[str]) -> Dict[str, Slot]:
        """Lock several slot rows in id order and return them keyed by id."""
        ids = sorted(set(slot_ids))
        if not ids:
            return {}
        query = self.db.query(Slot).filter(Slot.id.in_(ids)).order_by(Slot.id.asc())
        rows = cast(List[Slot], self.lock_rows(query, "slot", ",".join(ids)))
        return {row.id: row for row in rows}

    def find_overlapping_ids(self, slot: Slot) -> List[str]:
        """
        Return ids of other slots of the same resource and date whose time range
        intersects ``slot``. Slots without a resource never overlap.
        """
        if slot.resource_id is None:
            return []
        try:
            rows = (
                self.db.query(Slot.id)
                .filter(
                    and_(
                        Slot.tenant_id == slot.tenant_id,
                        Slot.resource_id == slot.resource_id,
                        Slot.slot_date == slot.slot_date,
                        Slot.id != slot.id,
                        Slot.start_time < slot.end_time,
                        Slot.end_time > slot.start_time,
                    )
                )
                .order_by(Slot.id.asc())
                .all()
            )
            return [row[0] for row in rows]
        except SQLAlchemyError as exc:
            self.logger.error("Failed to find overlapping slots for %s: %s", slot.id, str(exc))
            raise RepositoryException("Failed to find overlapping slots") from exc

    def list_ids(self) -> List[str]:
        try:
            return [row[0] for row in self.db.query(Slot.id).order_by(Slot.id.asc()).all()]
        except SQLAlchemyError as exc:
            self.logger.error("Failed to list slots: %s", str(exc))
            raise RepositoryException("Failed to list slots") from exc

    # Overlap blocks

    def create_overlap_block(
        self, *, booking_id: str, slot_id: str, quantity: int
    ) -> SlotOverlapBlock:
        try:
            block = SlotOverlapBlock(booking_id=booking_id, slot_id=slot_id, quantity=quantity)
            self.db.add(block)
            self.db.flush()
            return block
        except SQLAlchemyError as exc:
            self.logger.error(
                "Failed to record overlap block for booking %s: %s", booking_id, str(exc)
            )
            raise RepositoryException("Failed to record overlap block") from exc

    def get_overlap_blocks(self, booking_id: str) -> List[SlotOverlapBlock]:
        try:
            return cast(
                List[SlotOverlapBlock],
                self.db.query(SlotOverlapBlock)
                .filter(SlotOverlapBlock.booking_id == booking_id)
                .order_by(SlotOverlapBlock.slot_id.asc())
                .all(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load overlap blocks for %s: %s", booking_id, str(exc))
            raise RepositoryException("Failed to load overlap blocks") from exc

    def delete_overlap_blocks(self, booking_id: str) -> int:
        try:
            deleted = (
                self.db.query(SlotOverlapBlock)
                .filter(SlotOverlapBlock.booking_id == booking_id)
                .delete(synchronize_session=False)
            )
            self.db.flush()
            return int(deleted or 0)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to delete overlap blocks for %s: %s", booking_id, str(exc))
            raise RepositoryException("Failed to delete overlap blocks") from exc

    def active_blocked_totals(self, slot_ids: List[str]) -> Dict[str, int]:
        """Sum of overlap blocks per slot that belong to bookings still holding capacity."""
        if not slot_ids:
            return {}
        try:
            rows = (
                self.db.query(SlotOverlapBlock.slot_id, func.sum(SlotOverlapBlock.quantity))
                .join(Booking, Booking.id == SlotOverlapBlock.booking_id)
                .filter(
                    SlotOverlapBlock.slot_id.in_(slot_ids),
                    Booking.status.in_(sorted(ACTIVE_STATUSES)),
                )
                .group_by(SlotOverlapBlock.slot_id)
                .all()
            )
            return {slot_id: int(total or 0) for slot_id, total in rows}
        except SQLAlchemyError as exc:
            self.logger.error("Failed to total overlap blocks: %s", str(exc))
            raise RepositoryException("Failed to total overlap blocks") from exc
