"""
Grouped (bulk) admissions: one visitor on each of several slots.
"""

from decimal import Decimal

import pytest

from bookati.core.exceptions import InsufficientCapacityException, ValidationException
from bookati.models.booking import Booking
from tests.helpers.capacity import reload_slot, usage_for


def _admit_bulk(admission, slots, price="10.00", **kwargs):
    return admission.admit_bulk(
        tenant_id=slots[0].tenant_id,
        service_id=slots[0].service_id,
        slot_ids=[slot.id for slot in slots],
        price_per_unit=price,
        **kwargs,
    )


def test_group_is_invoiced_once_for_its_paid_units(
    db, admission, make_slot, make_subscription, customer, invoice_client, ticket_client
):
    slots = [make_slot(5) for _ in range(3)]
    subscription = make_subscription(customer, 2)

    bookings = _admit_bulk(admission, slots, customer_id=customer.id)

    assert [b.slot_id for b in bookings] == [s.id for s in slots]
    assert len({b.booking_group_id for b in bookings}) == 1
    assert [b.package_covered_quantity for b in bookings] == [1, 1, 0]
    assert [b.total_price for b in bookings] == [Decimal("0"), Decimal("0"), Decimal("10.00")]
    assert bookings[2].package_subscription_id is None
    assert usage_for(db, subscription).remaining_quantity == 0

    invoice_client.create_invoice.assert_called_once()
    request = invoice_client.create_invoice.call_args.args[0]
    assert request.reference_id == bookings[0].booking_group_id
    assert request.paid_quantity == 1
    assert request.total_price == Decimal("10.00")
    assert request.booking_ids == tuple(b.id for b in bookings)
    assert ticket_client.issue_ticket.call_count == 3


def test_fully_covered_group_is_not_invoiced(
    admission, make_slot, make_subscription, customer, invoice_client
):
    slots = [make_slot(5) for _ in range(2)]
    make_subscription(customer, 5)

    bookings = _admit_bulk(admission, slots, customer_id=customer.id)

    assert all(b.total_price == Decimal("0") for b in bookings)
    invoice_client.create_invoice.assert_not_called()


def test_guest_group_bills_every_unit(admission, make_slot, invoice_client):
    slots = [make_slot(5) for _ in range(3)]

    _admit_bulk(admission, slots, price="8.00")

    request = invoice_client.create_invoice.call_args.args[0]
    assert request.paid_quantity == 3
    assert request.total_price == Decimal("24.00")


def test_one_full_slot_rolls_back_the_whole_group(
    db, admission, make_slot, make_subscription, customer, invoice_client
):
    open_slot = make_slot(5)
    full_slot = make_slot(1)
    subscription = make_subscription(customer, 3)
    admission.admit(
        tenant_id=full_slot.tenant_id,
        service_id=full_slot.service_id,
        slot_id=full_slot.id,
        visitor_count=1,
        price_per_unit="10.00",
    )
    invoice_client.reset_mock()

    with pytest.raises(InsufficientCapacityException) as exc_info:
        _admit_bulk(admission, [open_slot, full_slot], customer_id=customer.id)

    assert exc_info.value.details["slot_id"] == full_slot.id
    assert db.query(Booking).count() == 1
    assert reload_slot(db, open_slot).available_capacity == 5
    assert usage_for(db, subscription).remaining_quantity == 3
    invoice_client.create_invoice.assert_not_called()


@pytest.mark.parametrize("slot_ids", [[], ["01ARZ3NDEKTSV4RRFFQ69G5FAV"] * 2])
def test_group_needs_distinct_slots(admission, tenant, service, slot_ids):
    with pytest.raises(ValidationException):
        admission.admit_bulk(
            tenant_id=tenant.id, service_id=service.id, slot_ids=slot_ids, price_per_unit="1"
        )
