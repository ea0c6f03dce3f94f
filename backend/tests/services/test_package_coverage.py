from datetime import datetime, timedelta, timezone

from bookati.models.package import BookingPackageConsumption, PackageSubscription
from bookati.repositories.package_repository import PackageRepository
from bookati.services.package_coverage import PackageCoverageResolver, take_allocations
from tests.helpers.capacity import usage_for


def test_take_allocations_splits_in_order():
    allocations = (("sub-a", 2), ("sub-b", 3))

    taken, rest = take_allocations(allocations, 3)

    assert taken == (("sub-a", 2), ("sub-b", 1))
    assert rest == (("sub-b", 2),)


def test_take_allocations_beyond_what_is_left():
    taken, rest = take_allocations((("sub-a", 1),), 2)
    assert taken == (("sub-a", 1),)
    assert rest == ()
    assert take_allocations((), 1) == ((), ())


def test_preview_quotes_without_touching_balances(db, tenant, service, customer, make_subscription):
    subscription = make_subscription(customer, 3)
    resolver = PackageCoverageResolver(db)

    quote = resolver.preview(
        tenant_id=tenant.id, customer_id=customer.id, service_id=service.id, quantity=5
    )

    assert quote.covered_quantity == 3
    assert quote.paid_quantity == 2
    assert quote.subscription_id == subscription.id
    assert not quote.is_fully_covered
    assert usage_for(db, subscription).remaining_quantity == 3


def test_guest_gets_no_coverage(db, tenant, service):
    quote = PackageCoverageResolver(db).preview(
        tenant_id=tenant.id, customer_id=None, service_id=service.id, quantity=4
    )
    assert (quote.covered_quantity, quote.paid_quantity, quote.subscription_id) == (0, 4, None)


def test_inactive_subscription_is_not_eligible(db, tenant, service, customer, make_subscription):
    subscription = make_subscription(customer, 5)
    db.query(PackageSubscription).filter(PackageSubscription.id == subscription.id).update(
        {"is_active": False}
    )
    db.commit()
    resolver = PackageCoverageResolver(db)

    assert resolver.remaining_capacity(
        tenant_id=tenant.id, customer_id=customer.id, service_id=service.id
    ) == 0
    result = resolver.resolve_and_consume(
        tenant_id=tenant.id, customer_id=customer.id, service_id=service.id, quantity=2
    )
    assert result.covered_quantity == 0


def test_remaining_capacity_sums_subscriptions(db, tenant, service, customer, make_subscription):
    make_subscription(customer, 3)
    make_subscription(customer, 4)

    remaining = PackageCoverageResolver(db).remaining_capacity(
        tenant_id=tenant.id, customer_id=customer.id, service_id=service.id
    )

    assert remaining == 7


def test_resolve_and_consume_in_own_transaction(db, tenant, service, customer, make_subscription):
    now = datetime.now(timezone.utc)
    first = make_subscription(customer, 2, subscribed_at=now - timedelta(days=2))
    second = make_subscription(customer, 2, subscribed_at=now - timedelta(days=1))

    result = PackageCoverageResolver(db).resolve_and_consume(
        tenant_id=tenant.id,
        customer_id=customer.id,
        service_id=service.id,
        quantity=3,
        use_transaction=True,
    )

    assert result.allocations == ((first.id, 2), (second.id, 1))
    assert result.exhausted == ((first.id, service.id),)
    assert usage_for(db, first).remaining_quantity == 0
    assert usage_for(db, second).remaining_quantity == 1


def test_restore_never_exceeds_original(db, admission, make_slot, make_subscription, customer):
    slot = make_slot(10)
    subscription = make_subscription(customer, 5)
    booking = admission.admit(
        tenant_id=slot.tenant_id,
        service_id=slot.service_id,
        slot_id=slot.id,
        visitor_count=3,
        price_per_unit="10.00",
        customer_id=customer.id,
    )
    # An operator already handed one unit back by hand
    usage = usage_for(db, subscription)
    usage.used_quantity = 1
    usage.remaining_quantity = 4
    db.commit()

    restored = PackageCoverageResolver(db).restore_for_booking(booking.id, use_transaction=True)

    assert restored == 1
    usage = usage_for(db, subscription)
    assert usage.remaining_quantity == 5
    assert usage.used_quantity == 0
    assert db.query(BookingPackageConsumption).count() == 0


def test_restore_for_booking_without_consumption(db):
    assert PackageCoverageResolver(db).restore_for_booking("01ARZ3NDEKTSV4RRFFQ69G5FAV") == 0


def test_restore_and_consume_lock_balances_in_the_same_order(
    db, tenant, service, customer, make_subscription
):
    first = make_subscription(customer, 2)
    second = make_subscription(customer, 2)
    # The subscription with the higher id is the older one, so id order and precedence differ
    older, newer = sorted([first, second], key=lambda sub: sub.id, reverse=True)
    older.subscribed_at = datetime.now(timezone.utc) - timedelta(days=30)
    db.commit()
    repository = PackageRepository(db)

    consumed = repository.lock_eligible_usage(
        tenant_id=tenant.id, customer_id=customer.id, service_id=service.id
    )
    restored = repository.lock_usage_rows([(newer.id, service.id), (older.id, service.id)])
    db.rollback()

    assert [usage.subscription_id for usage in consumed] == [older.id, newer.id]
    assert [usage.subscription_id for usage in restored] == [older.id, newer.id]
