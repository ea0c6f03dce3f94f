"""Reload helpers for asserting on committed state."""

from sqlalchemy.orm import Session

from bookati.models.booking import Booking
from bookati.models.package import PackageSubscription, PackageSubscriptionUsage
from bookati.models.slot import Slot


def reload_slot(db: Session, slot: Slot) -> Slot:
    db.expire_all()
    return db.query(Slot).filter(Slot.id == slot.id).one()


def reload_booking(db: Session, booking: Booking) -> Booking:
    db.expire_all()
    return db.query(Booking).filter(Booking.id == booking.id).one()


def usage_for(db: Session, subscription: PackageSubscription) -> PackageSubscriptionUsage:
    db.expire_all()
    return (
        db.query(PackageSubscriptionUsage)
        .filter(PackageSubscriptionUsage.subscription_id == subscription.id)
        .one()
    )


def assert_conserved(slot: Slot) -> None:
    total = slot.available_capacity + slot.booked_count + slot.blocked_count
    assert total == slot.original_capacity, (
        f"slot {slot.id}: {slot.available_capacity} + {slot.booked_count} + "
        f"{slot.blocked_count} != {slot.original_capacity}"
    )
