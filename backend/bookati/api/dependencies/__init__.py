# backend/bookati/api/dependencies/__init__.py
"""
Centralized dependency injection for FastAPI routes.
"""

from .database import get_db
from .services import (
    get_booking_admission_service,
    get_package_coverage_resolver,
    get_side_effect_dispatcher,
    get_slot_hold_service,
    get_slot_ledger,
)

__all__ = [
    "get_db",
    "get_booking_admission_service",
    "get_package_coverage_resolver",
    "get_side_effect_dispatcher",
    "get_slot_hold_service",
    "get_slot_ledger",
]
