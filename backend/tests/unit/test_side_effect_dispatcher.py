from decimal import Decimal
from unittest.mock import Mock

from bookati.events.booking_events import (
    BookingAdmitted,
    BookingCancelled,
    BookingGroupAdmitted,
    BookingSlotChanged,
    PackageExhausted,
)
from bookati.events.dispatcher import BookingSideEffectDispatcher
from bookati.monitoring.prometheus_metrics import REGISTRY


def _invoice_count(outcome):
    value = REGISTRY.get_sample_value("bookati_invoice_dispatch_total", {"outcome": outcome})
    return value or 0.0


def _admitted(**overrides):
    fields = dict(
        booking_id="b1",
        tenant_id="t1",
        service_id="svc1",
        slot_id="s1",
        customer_id="c1",
        visitor_count=3,
        package_covered_quantity=1,
        paid_quantity=2,
        unit_price=Decimal("15.00"),
        total_price=Decimal("30.00"),
    )
    fields.update(overrides)
    return BookingAdmitted(**fields)


def _dispatcher():
    return BookingSideEffectDispatcher(
        invoice_client=Mock(), ticket_client=Mock(), package_notifier=Mock()
    )


def test_admitted_booking_is_invoiced_and_ticketed():
    dispatcher = _dispatcher()
    created_before = _invoice_count("created")

    dispatcher.dispatch([_admitted()])

    request = dispatcher.invoice_client.create_invoice.call_args.args[0]
    assert (request.reference_id, request.paid_quantity) == ("b1", 2)
    assert dispatcher.ticket_client.issue_ticket.call_count == 1
    assert _invoice_count("created") == created_before + 1


def test_fully_covered_booking_is_skipped():
    dispatcher = _dispatcher()
    skipped_before = _invoice_count("skipped")

    dispatcher.dispatch(
        [_admitted(package_covered_quantity=3, paid_quantity=0, total_price=Decimal("0"))]
    )

    dispatcher.invoice_client.create_invoice.assert_not_called()
    dispatcher.ticket_client.issue_ticket.assert_called_once()
    assert _invoice_count("skipped") == skipped_before + 1


def test_grouped_bookings_are_invoiced_through_the_group_event():
    dispatcher = _dispatcher()
    member = dict(
        booking_group_id="g1",
        visitor_count=1,
        package_covered_quantity=0,
        paid_quantity=1,
        total_price=Decimal("15.00"),
    )
    events = [
        _admitted(booking_id="b1", **member),
        _admitted(booking_id="b2", **member),
        BookingGroupAdmitted(
            booking_group_id="g1",
            tenant_id="t1",
            service_id="svc1",
            customer_id=None,
            booking_ids=("b1", "b2"),
            unit_price=Decimal("15.00"),
            paid_quantity=2,
            total_price=Decimal("30.00"),
        ),
    ]

    dispatcher.dispatch(events)

    dispatcher.invoice_client.create_invoice.assert_called_once()
    request = dispatcher.invoice_client.create_invoice.call_args.args[0]
    assert request.reference_id == "g1"
    assert request.booking_ids == ("b1", "b2")
    assert dispatcher.ticket_client.issue_ticket.call_count == 2


def test_collaborator_failures_are_contained():
    dispatcher = _dispatcher()
    dispatcher.invoice_client.create_invoice.side_effect = RuntimeError("boom")
    dispatcher.ticket_client.issue_ticket.side_effect = RuntimeError("boom")
    dispatcher.package_notifier.package_exhausted.side_effect = RuntimeError("boom")
    failed_before = _invoice_count("failed")

    dispatcher.dispatch(
        [
            _admitted(),
            PackageExhausted(
                subscription_id="sub1", service_id="svc1", tenant_id="t1", customer_id="c1"
            ),
            BookingCancelled(
                booking_id="b1",
                tenant_id="t1",
                slot_id="s1",
                released_quantity=3,
                restored_package_units=1,
            ),
        ]
    )

    assert _invoice_count("failed") == failed_before + 1
    dispatcher.package_notifier.package_exhausted.assert_called_once()


def test_slot_change_reissues_ticket_only():
    dispatcher = _dispatcher()

    dispatcher.dispatch(
        [
            BookingSlotChanged(
                booking_id="b1", tenant_id="t1", old_slot_id="s1", new_slot_id="s2", visitor_count=2
            )
        ]
    )

    request = dispatcher.ticket_client.issue_ticket.call_args.args[0]
    assert request.supersedes_slot_id == "s1"
    assert request.idempotency_key == "b1:s2"
    dispatcher.invoice_client.create_invoice.assert_not_called()
