"""
Database CHECK constraints backing the booking billing split and slot counters.
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from bookati.models.booking import Booking
from bookati.models.package import PackageSubscriptionUsage


def _booking(slot, **overrides):
    fields = dict(
        tenant_id=slot.tenant_id,
        service_id=slot.service_id,
        slot_id=slot.id,
        customer_name="Guest",
        visitor_count=2,
        package_covered_quantity=0,
        paid_quantity=2,
        unit_price=Decimal("15.00"),
        total_price=Decimal("30.00"),
    )
    fields.update(overrides)
    return Booking(**fields)


def _assert_rejected(db, entity):
    db.add(entity)
    with pytest.raises(IntegrityError):
        db.flush()
    db.rollback()


def test_valid_booking_is_accepted(db, make_slot):
    slot = make_slot(5)
    booking = _booking(slot)
    db.add(booking)
    db.commit()

    assert booking.status == "pending"
    assert booking.payment_status == "unpaid"
    assert booking.holds_capacity


def test_fully_covered_booking_must_be_free(db, make_slot, make_subscription, customer):
    slot = make_slot(5)
    subscription = make_subscription(customer, 5)

    _assert_rejected(
        db,
        _booking(
            slot,
            customer_id=customer.id,
            package_covered_quantity=2,
            paid_quantity=0,
            package_subscription_id=subscription.id,
            total_price=Decimal("30.00"),
        ),
    )


def test_split_must_add_up(db, make_slot):
    slot = make_slot(5)
    _assert_rejected(db, _booking(slot, paid_quantity=1))


def test_subscription_only_with_coverage(db, make_slot, make_subscription, customer):
    slot = make_slot(5)
    subscription = make_subscription(customer, 5)
    _assert_rejected(db, _booking(slot, package_subscription_id=subscription.id))


def test_unknown_status_is_rejected(db, make_slot):
    slot = make_slot(5)
    _assert_rejected(db, _booking(slot, status="no_show"))


@pytest.mark.parametrize(
    "field,value",
    [("available_capacity", 6), ("available_capacity", -1), ("booked_count", -1)],
)
def test_slot_counters_stay_in_range(db, make_slot, field, value):
    slot = make_slot(5)
    setattr(slot, field, value)

    with pytest.raises(IntegrityError):
        db.flush()
    db.rollback()


def test_package_balance_must_be_conserved(db, customer, make_subscription):
    subscription = make_subscription(customer, 3)
    usage = (
        db.query(PackageSubscriptionUsage)
        .filter(PackageSubscriptionUsage.subscription_id == subscription.id)
        .one()
    )
    usage.remaining_quantity = 1

    with pytest.raises(IntegrityError):
        db.flush()
    db.rollback()
