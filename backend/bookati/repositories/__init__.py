"""
Repository layer for the booking core.

Repositories encapsulate queries and row locks; they never commit.
"""

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .customer_repository import CustomerRepository
from .factory import RepositoryFactory
from .package_repository import PackageRepository
from .slot_hold_repository import SlotHoldRepository
from .slot_repository import SlotRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "CustomerRepository",
    "PackageRepository",
    "RepositoryFactory",
    "SlotHoldRepository",
    "SlotRepository",
]
