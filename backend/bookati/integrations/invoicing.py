# backend/bookati/integrations/invoicing.py
"""
Invoice collaborator port.

The accounting system only ever sees billable work: an invoice is created
iff the paid quantity and the total price are both positive. ``should_invoice``
is the single statement of that rule and ``InvoiceRequest`` refuses to be
built for anything else.
"""

from dataclasses import dataclass, field
from decimal import Decimal
import logging
from typing import Any, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


def should_invoice(paid_quantity: int, total_price: Any) -> bool:
    """True when a booking (or group of bookings) has something to bill."""
    return int(paid_quantity) > 0 and Decimal(str(total_price)) > 0


@dataclass(frozen=True)
class InvoiceRequest:
    """What the accounting system needs to bill a booking or a booking group."""

    reference_id: str
    tenant_id: str
    customer_id: Optional[str]
    paid_quantity: int
    unit_price: Decimal
    total_price: Decimal
    booking_ids: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not should_invoice(self.paid_quantity, self.total_price):
            raise ValueError(
                f"Refusing to invoice {self.reference_id}: paid_quantity={self.paid_quantity}, "
                f"total_price={self.total_price}"
            )


class InvoiceClient(Protocol):
    def create_invoice(self, request: InvoiceRequest) -> Optional[str]:
        """Create an invoice and return the provider's invoice id."""
        ...


class LoggingInvoiceClient:
    """Default client: records the request in the log instead of calling a provider."""

    def create_invoice(self, request: InvoiceRequest) -> Optional[str]:
        logger.info(
            "Invoice requested for %s: %s units, total %s",
            request.reference_id,
            request.paid_quantity,
            request.total_price,
        )
        return None
