# backend/bookati/repositories/slot_hold_repository.py
"""Queries for temporary checkout holds on slot capacity."""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Dict, List, Optional, cast

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.slot import SlotHold
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SlotHoldRepository(BaseRepository[SlotHold]):
    def __init__(self, db: Session):
        super().__init__(db, SlotHold)

    def get_for_update(self, hold_id: str) -> Optional[SlotHold]:
        """Lock a hold row so only one admission can redeem it."""
        query = self.db.query(SlotHold).filter(SlotHold.id == hold_id)
        return cast(Optional[SlotHold], self.lock_one(query, "slot_hold", hold_id))

    def held_quantity(
        self, slot_id: str, *, now: datetime, exclude_hold_id: Optional[str] = None
    ) -> int:
        """Capacity held on a slot by unexpired holds, optionally ignoring one hold."""
        try:
            query = self.db.query(func.coalesce(func.sum(SlotHold.reserved_capacity), 0)).filter(
                SlotHold.slot_id == slot_id,
                SlotHold.expires_at > now,
            )
            if exclude_hold_id:
                query = query.filter(SlotHold.id != exclude_hold_id)
            return int(query.scalar() or 0)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to total holds for slot %s: %s", slot_id, str(exc))
            raise RepositoryException("Failed to total slot holds") from exc

    def held_by_slot(self, slot_ids: List[str], *, now: datetime) -> Dict[str, int]:
        if not slot_ids:
            return {}
        try:
            rows = (
                self.db.query(SlotHold.slot_id, func.sum(SlotHold.reserved_capacity))
                .filter(SlotHold.slot_id.in_(slot_ids), SlotHold.expires_at > now)
                .group_by(SlotHold.slot_id)
                .all()
            )
            return {slot_id: int(total or 0) for slot_id, total in rows}
        except SQLAlchemyError as exc:
            self.logger.error("Failed to total holds: %s", str(exc))
            raise RepositoryException("Failed to total slot holds") from exc

    def delete_expired(self, *, now: datetime) -> int:
        try:
            deleted = (
                self.db.query(SlotHold)
                .filter(SlotHold.expires_at <= now)
                .delete(synchronize_session=False)
            )
            self.db.flush()
            return int(deleted or 0)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to delete expired holds: %s", str(exc))
            raise RepositoryException("Failed to delete expired holds") from exc
