"""
Rescheduling a booking to another slot.
"""

from datetime import time

import pytest

from bookati.core.exceptions import (
    BusinessRuleException,
    InsufficientCapacityException,
    ValidationException,
)
from bookati.models.tenant import Service
from bookati.services.booking_admission import BookingAdmissionService
from bookati.services.slot_ledger import SlotLedger
from tests.helpers.capacity import assert_conserved, reload_booking, reload_slot


def _book(admission, slot, visitor_count):
    return admission.admit(
        tenant_id=slot.tenant_id,
        service_id=slot.service_id,
        slot_id=slot.id,
        visitor_count=visitor_count,
        price_per_unit="20.00",
    )


class TestChangeSlot:
    def test_moves_capacity_between_slots(self, db, admission, make_slot, ticket_client):
        old = make_slot(5)
        new = make_slot(5)
        booking = _book(admission, old, 3)
        ticket_client.reset_mock()

        moved = admission.change_slot(booking.id, new.id)

        assert moved.slot_id == new.id
        old = reload_slot(db, old)
        new = reload_slot(db, new)
        assert (old.available_capacity, old.booked_count) == (5, 0)
        assert (new.available_capacity, new.booked_count) == (2, 3)
        assert_conserved(old)
        assert_conserved(new)

        request = ticket_client.issue_ticket.call_args.args[0]
        assert request.slot_id == new.id
        assert request.supersedes_slot_id == old.id
        assert request.idempotency_key == f"{booking.id}:{new.id}"

    def test_full_target_leaves_original_reservation_intact(self, db, admission, make_slot):
        old = make_slot(5)
        new = make_slot(2)
        booking = _book(admission, old, 3)

        with pytest.raises(InsufficientCapacityException) as exc_info:
            admission.change_slot(booking.id, new.id)

        assert exc_info.value.available == 2
        assert exc_info.value.requested == 3
        assert reload_booking(db, booking).slot_id == old.id
        old = reload_slot(db, old)
        new = reload_slot(db, new)
        assert (old.available_capacity, old.booked_count) == (2, 3)
        assert (new.available_capacity, new.booked_count) == (2, 0)

    def test_same_slot_is_a_no_op(self, db, admission, make_slot, ticket_client):
        slot = make_slot(5)
        booking = _book(admission, slot, 2)
        ticket_client.reset_mock()

        admission.change_slot(booking.id, slot.id)

        slot = reload_slot(db, slot)
        assert (slot.available_capacity, slot.booked_count) == (3, 2)
        ticket_client.issue_ticket.assert_not_called()

    def test_cancelled_booking_cannot_be_moved(self, db, admission, make_slot):
        old = make_slot(5)
        new = make_slot(5)
        booking = _book(admission, old, 2)
        admission.cancel(booking.id)

        with pytest.raises(BusinessRuleException) as exc_info:
            admission.change_slot(booking.id, new.id)

        assert exc_info.value.code == "BOOKING_NOT_ACTIVE"
        assert reload_slot(db, new).available_capacity == 5

    def test_target_must_belong_to_the_same_service(self, db, admission, make_slot, tenant):
        old = make_slot(5)
        other_service = Service(tenant_id=tenant.id, name="Sunset cruise")
        db.add(other_service)
        db.commit()
        foreign = make_slot(5)
        foreign.service_id = other_service.id
        db.commit()
        booking = _book(admission, old, 1)

        with pytest.raises(ValidationException):
            admission.change_slot(booking.id, foreign.id)

        assert reload_booking(db, booking).slot_id == old.id

    def test_own_overlap_block_counts_toward_target(self, db, make_slot, dispatcher):
        admission = BookingAdmissionService(
            db, dispatcher=dispatcher, ledger=SlotLedger(db, enforce_overlap=True)
        )
        first = make_slot(2, start=time(14, 0), end=time(15, 0), resource_id="GUIDE-9")
        second = make_slot(2, start=time(14, 30), end=time(15, 30), resource_id="GUIDE-9")
        booking = _book(admission, first, 2)
        assert reload_slot(db, second).available_capacity == 0

        admission.change_slot(booking.id, second.id)

        first = reload_slot(db, first)
        second = reload_slot(db, second)
        assert (second.available_capacity, second.booked_count, second.blocked_count) == (0, 2, 0)
        assert (first.available_capacity, first.booked_count, first.blocked_count) == (0, 0, 2)
        assert_conserved(first)
        assert_conserved(second)
