# backend/bookati/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...events.dispatcher import BookingSideEffectDispatcher
from ...services.booking_admission import BookingAdmissionService
from ...services.package_coverage import PackageCoverageResolver
from ...services.slot_hold_service import SlotHoldService
from ...services.slot_ledger import SlotLedger
from .database import get_db

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_side_effect_dispatcher() -> BookingSideEffectDispatcher:
    """Process-wide dispatcher; its collaborators keep their own idempotency state."""
    return BookingSideEffectDispatcher()


def get_slot_ledger(db: Session = Depends(get_db)) -> SlotLedger:
    return SlotLedger(db)


def get_booking_admission_service(
    db: Session = Depends(get_db),
    dispatcher: BookingSideEffectDispatcher = Depends(get_side_effect_dispatcher),
) -> BookingAdmissionService:
    """
    Get booking admission service instance.

    Args:
        db: Database session
        dispatcher: Post-commit side-effect dispatcher

    Returns:
        BookingAdmissionService instance
    """
    return BookingAdmissionService(db, dispatcher=dispatcher)


def get_package_coverage_resolver(db: Session = Depends(get_db)) -> PackageCoverageResolver:
    return PackageCoverageResolver(db)


def get_slot_hold_service(
    db: Session = Depends(get_db), ledger: SlotLedger = Depends(get_slot_ledger)
) -> SlotHoldService:
    return SlotHoldService(db, ledger=ledger)
