# backend/bookati/repositories/booking_repository.py
"""
Booking Repository for the booking core.

Data access for bookings: row locks for lifecycle changes and the
aggregate queries used to rebuild slot counters.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, cast

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.booking import ACTIVE_STATUSES, Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking rows."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)

    def get_for_update(self, booking_id: str) -> Optional[Booking]:
        query = self.db.query(Booking).filter(Booking.id == booking_id)
        return cast(Optional[Booking], self.lock_one(query, "booking", booking_id))

    def active_totals_by_slot(self, slot_ids: List[str]) -> Dict[str, int]:
        """Sum of visitor_count per slot over bookings that hold capacity."""
        if not slot_ids:
            return {}
        try:
            rows = (
                self.db.query(Booking.slot_id, func.sum(Booking.visitor_count))
                .filter(
                    Booking.slot_id.in_(slot_ids),
                    Booking.status.in_(sorted(ACTIVE_STATUSES)),
                )
                .group_by(Booking.slot_id)
                .all()
            )
            return {slot_id: int(total or 0) for slot_id, total in rows}
        except SQLAlchemyError as exc:
            self.logger.error("Failed to total active bookings: %s", str(exc))
            raise RepositoryException("Failed to total active bookings") from exc
