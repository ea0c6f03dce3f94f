"""Booking domain events and their post-commit dispatcher."""

from bookati.events.booking_events import (
    BookingAdmitted,
    BookingCancelled,
    BookingGroupAdmitted,
    BookingSlotChanged,
    Event,
    PackageExhausted,
)
from bookati.events.dispatcher import BookingSideEffectDispatcher

__all__ = [
    "BookingAdmitted",
    "BookingCancelled",
    "BookingGroupAdmitted",
    "BookingSideEffectDispatcher",
    "BookingSlotChanged",
    "Event",
    "PackageExhausted",
]
