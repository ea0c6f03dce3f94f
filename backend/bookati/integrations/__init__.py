from .invoicing import InvoiceClient, InvoiceRequest, LoggingInvoiceClient, should_invoice
from .tickets import (
    LoggingPackageNotifier,
    LoggingTicketClient,
    PackageNotifier,
    TicketClient,
    TicketRequest,
)

__all__ = [
    "InvoiceClient",
    "InvoiceRequest",
    "LoggingInvoiceClient",
    "LoggingPackageNotifier",
    "LoggingTicketClient",
    "PackageNotifier",
    "TicketClient",
    "TicketRequest",
    "should_invoice",
]
