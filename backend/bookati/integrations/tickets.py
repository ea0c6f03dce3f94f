# backend/bookati/integrations/tickets.py
"""Ticket and package-notification collaborator ports."""

from dataclasses import dataclass
import logging
from threading import Lock
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TicketRequest:
    booking_id: str
    slot_id: str
    visitor_count: int
    supersedes_slot_id: Optional[str] = None

    @property
    def idempotency_key(self) -> str:
        """One ticket per (booking, slot); a reschedule yields a new key."""
        return f"{self.booking_id}:{self.slot_id}"


class TicketClient(Protocol):
    def issue_ticket(self, request: TicketRequest) -> None:
        ...


class PackageNotifier(Protocol):
    def package_exhausted(
        self, *, tenant_id: str, customer_id: Optional[str], subscription_id: str, service_id: str
    ) -> None:
        ...


class LoggingTicketClient:
    """Default client: logs a ticket unless the booking already holds one for that slot."""

    def __init__(self) -> None:
        self._current_slot: Dict[str, str] = {}
        self._lock = Lock()

    def issue_ticket(self, request: TicketRequest) -> None:
        with self._lock:
            if self._current_slot.get(request.booking_id) == request.slot_id:
                logger.debug("Ticket %s already issued", request.idempotency_key)
                return
            self._current_slot[request.booking_id] = request.slot_id
        if request.supersedes_slot_id:
            logger.info(
                "Ticket %s issued, superseding slot %s",
                request.idempotency_key,
                request.supersedes_slot_id,
            )
        else:
            logger.info("Ticket %s issued", request.idempotency_key)


class LoggingPackageNotifier:
    def package_exhausted(
        self, *, tenant_id: str, customer_id: Optional[str], subscription_id: str, service_id: str
    ) -> None:
        logger.info(
            "Package subscription %s exhausted for service %s (customer %s)",
            subscription_id,
            service_id,
            customer_id,
        )
