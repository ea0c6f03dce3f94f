# backend/bookati/repositories/factory.py
"""
Repository Factory for the booking core.

Provides centralized creation of repository instances so services never
construct repositories directly.
"""

from typing import TYPE_CHECKING, Any

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .booking_repository import BookingRepository
    from .customer_repository import CustomerRepository
    from .package_repository import PackageRepository
    from .slot_hold_repository import SlotHoldRepository
    from .slot_repository import SlotRepository


class RepositoryFactory:
    """Factory class for creating repository instances."""

    @staticmethod
    def create_base_repository(db: Session, model: Any) -> BaseRepository:
        """Create a generic base repository for any model."""
        return BaseRepository(db, model)

    @staticmethod
    def create_slot_repository(db: Session) -> "SlotRepository":
        from .slot_repository import SlotRepository

        return SlotRepository(db)

    @staticmethod
    def create_slot_hold_repository(db: Session) -> "SlotHoldRepository":
        from .slot_hold_repository import SlotHoldRepository

        return SlotHoldRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_package_repository(db: Session) -> "PackageRepository":
        from .package_repository import PackageRepository

        return PackageRepository(db)

    @staticmethod
    def create_customer_repository(db: Session) -> "CustomerRepository":
        from .customer_repository import CustomerRepository

        return CustomerRepository(db)
