"""
Side-effect dispatcher - routes committed booking events to collaborators.

Runs after the admitting transaction has committed. A failing collaborator
is logged and never propagates: the booking is already durable and the HTTP
response must not depend on invoice or ticket delivery.
"""
import logging
from typing import Callable, Dict, Iterable, Optional, Type

from bookati.events.booking_events import (
    BookingAdmitted,
    BookingCancelled,
    BookingGroupAdmitted,
    BookingSlotChanged,
    Event,
    PackageExhausted,
)
from bookati.integrations.invoicing import (
    InvoiceClient,
    InvoiceRequest,
    LoggingInvoiceClient,
    should_invoice,
)
from bookati.integrations.tickets import (
    LoggingPackageNotifier,
    LoggingTicketClient,
    PackageNotifier,
    TicketClient,
    TicketRequest,
)
from bookati.monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


class BookingSideEffectDispatcher:
    """Calls invoice, ticket and notification ports for committed events."""

    def __init__(
        self,
        invoice_client: Optional[InvoiceClient] = None,
        ticket_client: Optional[TicketClient] = None,
        package_notifier: Optional[PackageNotifier] = None,
    ):
        self.invoice_client = invoice_client or LoggingInvoiceClient()
        self.ticket_client = ticket_client or LoggingTicketClient()
        self.package_notifier = package_notifier or LoggingPackageNotifier()
        self._handlers: Dict[Type, Callable[[Event], None]] = {
            BookingAdmitted: self._on_booking_admitted,
            BookingGroupAdmitted: self._on_group_admitted,
            BookingSlotChanged: self._on_slot_changed,
            BookingCancelled: self._on_cancelled,
            PackageExhausted: self._on_package_exhausted,
        }

    def dispatch(self, events: Iterable[Event]) -> None:
        for event in events:
            handler = self._handlers.get(type(event))
            if handler is None:
                logger.debug("No side effects registered for %s", type(event).__name__)
                continue
            try:
                handler(event)
            except Exception as exc:
                logger.error(
                    "Side effect for %s failed: %s",
                    type(event).__name__,
                    str(exc),
                    extra={"event": event.to_dict()},
                )

    # Invoices

    def _invoice(self, request_kwargs: dict) -> None:
        paid_quantity = request_kwargs["paid_quantity"]
        total_price = request_kwargs["total_price"]
        reference_id = request_kwargs["reference_id"]
        if not should_invoice(paid_quantity, total_price):
            prometheus_metrics.record_invoice_dispatch("skipped")
            logger.debug("No invoice for %s: nothing billable", reference_id)
            return
        try:
            invoice_id = self.invoice_client.create_invoice(InvoiceRequest(**request_kwargs))
            prometheus_metrics.record_invoice_dispatch("created")
            logger.info("Invoice %s created for %s", invoice_id, reference_id)
        except Exception as exc:
            prometheus_metrics.record_invoice_dispatch("failed")
            logger.error(f"Failed to create invoice for booking {reference_id}: {str(exc)}")

    # Tickets

    def _ticket(self, request: TicketRequest) -> None:
        try:
            self.ticket_client.issue_ticket(request)
        except Exception as exc:
            logger.error(f"Failed to issue ticket for booking {request.booking_id}: {str(exc)}")

    # Handlers

    def _on_booking_admitted(self, event: BookingAdmitted) -> None:
        # Grouped bookings are billed once through BookingGroupAdmitted
        if event.booking_group_id is None:
            self._invoice(
                {
                    "reference_id": event.booking_id,
                    "tenant_id": event.tenant_id,
                    "customer_id": event.customer_id,
                    "paid_quantity": event.paid_quantity,
                    "unit_price": event.unit_price,
                    "total_price": event.total_price,
                    "booking_ids": (event.booking_id,),
                }
            )
        self._ticket(
            TicketRequest(
                booking_id=event.booking_id,
                slot_id=event.slot_id,
                visitor_count=event.visitor_count,
            )
        )

    def _on_group_admitted(self, event: BookingGroupAdmitted) -> None:
        self._invoice(
            {
                "reference_id": event.booking_group_id,
                "tenant_id": event.tenant_id,
                "customer_id": event.customer_id,
                "paid_quantity": event.paid_quantity,
                "unit_price": event.unit_price,
                "total_price": event.total_price,
                "booking_ids": tuple(event.booking_ids),
            }
        )

    def _on_slot_changed(self, event: BookingSlotChanged) -> None:
        self._ticket(
            TicketRequest(
                booking_id=event.booking_id,
                slot_id=event.new_slot_id,
                visitor_count=event.visitor_count,
                supersedes_slot_id=event.old_slot_id,
            )
        )

    def _on_cancelled(self, event: BookingCancelled) -> None:
        logger.info(
            "Booking %s cancelled: %s units released, %s package units restored",
            event.booking_id,
            event.released_quantity,
            event.restored_package_units,
        )

    def _on_package_exhausted(self, event: PackageExhausted) -> None:
        try:
            self.package_notifier.package_exhausted(
                tenant_id=event.tenant_id,
                customer_id=event.customer_id,
                subscription_id=event.subscription_id,
                service_id=event.service_id,
            )
        except Exception as exc:
            logger.error(
                f"Failed to send exhaustion notice for subscription {event.subscription_id}: "
                f"{str(exc)}"
            )
