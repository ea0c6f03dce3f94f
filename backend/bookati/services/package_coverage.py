# backend/bookati/services/package_coverage.py
"""
Package Coverage Resolver for the booking core.

Decides how many of a booking's units are paid for by the customer's package
subscriptions and how many must be billed, and moves the package balance
accordingly. Balances are consumed oldest subscription first (then by id),
across as many subscriptions as needed.

Coverage requires a resolved customer id. Guests and unknown customers get
zero coverage, which is not an error: the booking is simply billed in full.
"""

from dataclasses import dataclass, field
import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

Allocation = Tuple[str, int]


@dataclass(frozen=True)
class CoverageResult:
    """Split of a requested quantity into package-covered and paid units."""

    requested_quantity: int
    covered_quantity: int
    paid_quantity: int
    subscription_id: Optional[str] = None
    allocations: Tuple[Allocation, ...] = field(default_factory=tuple)
    exhausted: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    @property
    def is_fully_covered(self) -> bool:
        return self.covered_quantity == self.requested_quantity

    @classmethod
    def uncovered(cls, quantity: int) -> "CoverageResult":
        return cls(requested_quantity=quantity, covered_quantity=0, paid_quantity=quantity)


def take_allocations(
    allocations: Tuple[Allocation, ...], quantity: int
) -> Tuple[Tuple[Allocation, ...], Tuple[Allocation, ...]]:
    """
    Split ``allocations`` into the first ``quantity`` units and the rest.

    Used by grouped bookings, where one coverage result is spread over
    several bookings in order.
    """
    taken: List[Allocation] = []
    rest: List[Allocation] = []
    needed = quantity
    for subscription_id, units in allocations:
        if needed <= 0:
            rest.append((subscription_id, units))
            continue
        used = min(units, needed)
        taken.append((subscription_id, used))
        needed -= used
        if units > used:
            rest.append((subscription_id, units - used))
    return tuple(taken), tuple(rest)


class PackageCoverageResolver(BaseService):
    """Resolve, consume and restore package coverage."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.package_repository = RepositoryFactory.create_package_repository(db)

    def preview(
        self,
        *,
        tenant_id: str,
        customer_id: Optional[str],
        service_id: str,
        quantity: int,
    ) -> CoverageResult:
        """Quote coverage without locking or changing any balance."""
        if customer_id is None or quantity <= 0:
            return CoverageResult.uncovered(max(quantity, 0))

        usages = self.package_repository.get_eligible_usage(
            tenant_id=tenant_id, customer_id=customer_id, service_id=service_id
        )
        remaining = quantity
        allocations: List[Allocation] = []
        for usage in usages:
            if remaining <= 0:
                break
            units = min(int(usage.remaining_quantity), remaining)
            if units > 0:
                allocations.append((usage.subscription_id, units))
                remaining -= units

        covered = quantity - remaining
        return CoverageResult(
            requested_quantity=quantity,
            covered_quantity=covered,
            paid_quantity=remaining,
            subscription_id=allocations[0][0] if allocations else None,
            allocations=tuple(allocations),
        )

    def remaining_capacity(self, *, tenant_id: str, customer_id: str, service_id: str) -> int:
        """Units a customer can still book for a service across all active subscriptions."""
        return self.package_repository.total_remaining(
            tenant_id=tenant_id, customer_id=customer_id, service_id=service_id
        )

    @BaseService.measure_operation("resolve_and_consume")
    def resolve_and_consume(
        self,
        *,
        tenant_id: str,
        customer_id: Optional[str],
        service_id: str,
        quantity: int,
        use_transaction: bool = False,
    ) -> CoverageResult:
        """
        Lock eligible balances and consume up to ``quantity`` units from them.

        Runs inside the caller's transaction by default so the balance change
        commits or rolls back with the booking. Balances that reach zero get
        an exhaustion record; ``CoverageResult.exhausted`` lists only the
        records created by this call.
        """
        if customer_id is None or quantity <= 0:
            return CoverageResult.uncovered(max(quantity, 0))

        def _consume() -> CoverageResult:
            usages = self.package_repository.lock_eligible_usage(
                tenant_id=tenant_id, customer_id=customer_id, service_id=service_id
            )
            remaining = quantity
            allocations: List[Allocation] = []
            exhausted: List[Tuple[str, str]] = []

            for usage in usages:
                if remaining <= 0:
                    break
                units = min(int(usage.remaining_quantity), remaining)
                if units <= 0:
                    continue

                usage.remaining_quantity = int(usage.remaining_quantity) - units
                usage.used_quantity = int(usage.used_quantity) + units
                allocations.append((usage.subscription_id, units))
                remaining -= units

                if usage.remaining_quantity == 0 and self._record_exhaustion(
                    usage.subscription_id, service_id
                ):
                    exhausted.append((usage.subscription_id, service_id))

            self.package_repository.flush()
            covered = quantity - remaining
            if covered:
                self.logger.info(
                    "Covered %s of %s units for customer %s on service %s",
                    covered,
                    quantity,
                    customer_id,
                    service_id,
                )
            return CoverageResult(
                requested_quantity=quantity,
                covered_quantity=covered,
                paid_quantity=remaining,
                subscription_id=allocations[0][0] if allocations else None,
                allocations=tuple(allocations),
                exhausted=tuple(exhausted),
            )

        if use_transaction:
            with self.transaction():
                return _consume()
        return _consume()

    def _record_exhaustion(self, subscription_id: str, service_id: str) -> bool:
        existing = self.package_repository.get_exhaustion(
            subscription_id=subscription_id, service_id=service_id
        )
        if existing is not None:
            return False
        self.package_repository.create_exhaustion(
            subscription_id=subscription_id, service_id=service_id
        )
        return True

    def record_consumption(
        self, *, booking_id: str, service_id: str, allocations: Tuple[Allocation, ...]
    ) -> None:
        """Persist which subscriptions a booking drew from."""
        for subscription_id, units in allocations:
            self.package_repository.create_consumption(
                booking_id=booking_id,
                subscription_id=subscription_id,
                service_id=service_id,
                quantity=units,
            )

    @BaseService.measure_operation("restore_for_booking")
    def restore_for_booking(self, booking_id: str, *, use_transaction: bool = False) -> int:
        """
        Give back every unit a booking consumed and drop its consumption records.

        Balances never rise above ``original_quantity``. Returns the units restored.
        """

        def _restore() -> int:
            consumptions = self.package_repository.get_consumptions(booking_id)
            if not consumptions:
                return 0
            usages = self.package_repository.lock_usage_rows(
                [(record.subscription_id, record.service_id) for record in consumptions]
            )
            by_key = {(usage.subscription_id, usage.service_id): usage for usage in usages}

            restored = 0
            for record in consumptions:
                usage = by_key.get((record.subscription_id, record.service_id))
                if usage is None:
                    self.logger.warning(
                        "Package balance for subscription %s is gone; %s units not restored",
                        record.subscription_id,
                        record.quantity,
                    )
                    continue
                before = int(usage.remaining_quantity)
                usage.used_quantity = max(0, int(usage.used_quantity) - int(record.quantity))
                usage.remaining_quantity = int(usage.original_quantity) - int(usage.used_quantity)
                restored += int(usage.remaining_quantity) - before

            self.package_repository.delete_consumptions(booking_id)
            self.package_repository.flush()
            self.logger.info("Restored %s package units for booking %s", restored, booking_id)
            return restored

        if use_transaction:
            with self.transaction():
                return _restore()
        return _restore()
