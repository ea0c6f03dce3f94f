# backend/bookati/services/booking_admission.py
"""
Booking Admission Service for the booking core.

The transactional unit that creates bookings. One transaction:

1. validate tenant, service and slot
2. consume package coverage (locks package balances)
3. reserve slot capacity (locks the slot and, with overlap blocking, its
   overlapping slots)
4. price the billable part and check the billing invariant
5. insert the booking, its consumption records and overlap blocks

Any failure rolls everything back: no package units are spent and no
capacity is taken for a booking that was not created. Invoices and tickets
are produced only after commit and cannot undo it.

Locks are always taken bookings first, then package balances, then slots in
id order, so admissions, cancellations and reschedules never wait on each
other in a cycle.
"""

from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import ulid

from ..core.config import settings
from ..core.exceptions import (
    BookingInvariantViolation,
    BusinessRuleException,
    DomainException,
    InsufficientCapacityException,
    LockTimeoutException,
    NotFoundException,
    SlotHoldException,
    ValidationException,
)
from ..events.booking_events import (
    BookingAdmitted,
    BookingCancelled,
    BookingGroupAdmitted,
    BookingSlotChanged,
    Event,
    PackageExhausted,
)
from ..events.dispatcher import BookingSideEffectDispatcher
from ..models.booking import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Booking,
    BookingStatus,
    PaymentStatus,
)
from ..models.slot import Slot
from ..models.tenant import Service, Tenant
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .capacity_lifecycle import CapacityLifecycle
from .customer_resolution import CustomerResolver
from .package_coverage import CoverageResult, PackageCoverageResolver, take_allocations
from .slot_hold_service import SlotHoldService
from .slot_ledger import SlotLedger

logger = logging.getLogger(__name__)


def _admission_outcome(exc: Exception) -> str:
    if isinstance(exc, InsufficientCapacityException):
        return "insufficient_capacity"
    if isinstance(exc, LockTimeoutException):
        return "lock_timeout"
    if isinstance(exc, BookingInvariantViolation):
        return "invariant_violation"
    if isinstance(exc, SlotHoldException):
        return "invalid_hold"
    return "rejected"


class BookingAdmissionService(BaseService):
    """Admit, reschedule and close bookings."""

    def __init__(
        self,
        db: Session,
        dispatcher: Optional[BookingSideEffectDispatcher] = None,
        ledger: Optional[SlotLedger] = None,
    ):
        super().__init__(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.slot_repository = RepositoryFactory.create_slot_repository(db)
        self.hold_repository = RepositoryFactory.create_slot_hold_repository(db)
        self.tenant_repository = RepositoryFactory.create_base_repository(db, Tenant)
        self.service_repository = RepositoryFactory.create_base_repository(db, Service)
        self.ledger = ledger or SlotLedger(db)
        self.coverage = PackageCoverageResolver(db)
        self.customers = CustomerResolver(db)
        self.holds = SlotHoldService(db, ledger=self.ledger)
        self.lifecycle = CapacityLifecycle(db, ledger=self.ledger, coverage=self.coverage)
        self.dispatcher = dispatcher or BookingSideEffectDispatcher()

    # Public operations

    @BaseService.measure_operation("admit")
    def admit(
        self,
        *,
        tenant_id: str,
        service_id: str,
        slot_id: str,
        visitor_count: int,
        price_per_unit: Any,
        customer_id: Optional[str] = None,
        customer_name: str = "Guest",
        customer_phone: Optional[str] = None,
        customer_email: Optional[str] = None,
        status: str = BookingStatus.PENDING.value,
        hold_id: Optional[str] = None,
        session_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Booking:
        """
        Create one booking for ``visitor_count`` visitors on ``slot_id``.

        Args:
            customer_id: resolved customer; unknown ids are booked as guests
            price_per_unit: price of one billable unit, >= 0
            status: initial status, one of pending, confirmed, checked_in
            hold_id: checkout hold to redeem; requires the owning session_id

        Returns:
            The committed booking

        Raises:
            InsufficientCapacityException: the slot cannot take visitor_count
            LockTimeoutException: a row lock wait expired; safe to retry from scratch
            BookingInvariantViolation: the billing split broke an invariant (a bug)
            NotFoundException / ValidationException / BusinessRuleException: bad input
        """
        unit_price = self._validate_request(visitor_count, price_per_unit, status)

        try:
            with self.transaction():
                self._validate_tenant_and_service(tenant_id, service_id)
                self._validate_slot(
                    self.slot_repository.get_by_id(slot_id), slot_id, tenant_id, service_id
                )
                customer = self.customers.resolve(tenant_id, customer_id)
                resolved_customer_id = customer.id if customer is not None else None

                hold = None
                if hold_id:
                    hold = self.holds.redeem(
                        hold_id, session_id=session_id, slot_id=slot_id, quantity=visitor_count
                    )

                coverage = self.coverage.resolve_and_consume(
                    tenant_id=tenant_id,
                    customer_id=resolved_customer_id,
                    service_id=service_id,
                    quantity=visitor_count,
                )
                reservation = self.ledger.try_reserve(
                    slot_id, visitor_count, exclude_hold_id=hold_id
                )

                booking = self._insert_booking(
                    tenant_id=tenant_id,
                    service_id=service_id,
                    slot_id=slot_id,
                    customer_id=resolved_customer_id,
                    customer_name=customer.name if customer is not None else customer_name,
                    customer_phone=customer_phone,
                    customer_email=customer_email,
                    visitor_count=visitor_count,
                    covered_quantity=coverage.covered_quantity,
                    subscription_id=coverage.subscription_id,
                    unit_price=unit_price,
                    status=status,
                    notes=notes,
                )
                self.coverage.record_consumption(
                    booking_id=booking.id, service_id=service_id, allocations=coverage.allocations
                )
                self.ledger.record_overlap_blocks(booking.id, reservation)
                if hold is not None:
                    self.hold_repository.delete(hold)
        except DomainException as exc:
            prometheus_metrics.record_admission(_admission_outcome(exc))
            raise

        prometheus_metrics.record_admission("admitted")
        prometheus_metrics.inc_package_units_consumed(coverage.covered_quantity)
        self.log_operation(
            "admit",
            booking_id=booking.id,
            slot_id=slot_id,
            visitor_count=visitor_count,
            covered=coverage.covered_quantity,
        )

        events: List[Event] = [self._admitted_event(booking)]
        events.extend(self._exhaustion_events(coverage, tenant_id, resolved_customer_id))
        self._handle_post_commit(events, booking.id)
        return booking

    @BaseService.measure_operation("admit_bulk")
    def admit_bulk(
        self,
        *,
        tenant_id: str,
        service_id: str,
        slot_ids: List[str],
        price_per_unit: Any,
        customer_id: Optional[str] = None,
        customer_name: str = "Guest",
        customer_phone: Optional[str] = None,
        customer_email: Optional[str] = None,
        status: str = BookingStatus.PENDING.value,
        notes: Optional[str] = None,
    ) -> List[Booking]:
        """
        Book one visitor on each of ``slot_ids`` under a shared booking group.

        Package coverage is resolved once for the whole group: the first N
        bookings (in the given slot order) are covered, the rest are paid.
        All bookings commit together or not at all. The group is invoiced at
        most once, for its summed paid quantity.
        """
        if not slot_ids:
            raise ValidationException("At least one slot is required")
        if len(set(slot_ids)) != len(slot_ids):
            raise ValidationException("Each slot may appear only once in a group booking")
        unit_price = self._validate_request(len(slot_ids), price_per_unit, status)
        group_id = str(ulid.ULID())

        try:
            with self.transaction():
                self._validate_tenant_and_service(tenant_id, service_id)
                for slot_id in slot_ids:
                    self._validate_slot(
                        self.slot_repository.get_by_id(slot_id), slot_id, tenant_id, service_id
                    )
                customer = self.customers.resolve(tenant_id, customer_id)
                resolved_customer_id = customer.id if customer is not None else None

                coverage = self.coverage.resolve_and_consume(
                    tenant_id=tenant_id,
                    customer_id=resolved_customer_id,
                    service_id=service_id,
                    quantity=len(slot_ids),
                )
                locked = self.ledger.lock_for_reservation(slot_ids)

                bookings: List[Booking] = []
                remaining_allocations = coverage.allocations
                for slot_id in slot_ids:
                    reservation = self.ledger.reserve_locked(locked[slot_id], 1, locked)
                    mine, remaining_allocations = take_allocations(remaining_allocations, 1)
                    covered = sum(units for _, units in mine)
                    booking = self._insert_booking(
                        tenant_id=tenant_id,
                        service_id=service_id,
                        slot_id=slot_id,
                        customer_id=resolved_customer_id,
                        customer_name=customer.name if customer is not None else customer_name,
                        customer_phone=customer_phone,
                        customer_email=customer_email,
                        visitor_count=1,
                        covered_quantity=covered,
                        subscription_id=mine[0][0] if mine else None,
                        unit_price=unit_price,
                        status=status,
                        notes=notes,
                        booking_group_id=group_id,
                    )
                    self.coverage.record_consumption(
                        booking_id=booking.id, service_id=service_id, allocations=mine
                    )
                    self.ledger.record_overlap_blocks(booking.id, reservation)
                    bookings.append(booking)
        except DomainException as exc:
            prometheus_metrics.record_admission(_admission_outcome(exc))
            raise

        prometheus_metrics.record_admission("admitted")
        prometheus_metrics.inc_package_units_consumed(coverage.covered_quantity)
        self.log_operation(
            "admit_bulk",
            booking_group_id=group_id,
            bookings=len(bookings),
            covered=coverage.covered_quantity,
        )

        events: List[Event] = [self._admitted_event(booking) for booking in bookings]
        events.append(
            BookingGroupAdmitted(
                booking_group_id=group_id,
                tenant_id=tenant_id,
                service_id=service_id,
                customer_id=resolved_customer_id,
                booking_ids=tuple(booking.id for booking in bookings),
                unit_price=unit_price,
                paid_quantity=sum(int(booking.paid_quantity) for booking in bookings),
                total_price=sum(
                    (Decimal(booking.total_price) for booking in bookings), Decimal("0")
                ),
            )
        )
        events.extend(self._exhaustion_events(coverage, tenant_id, resolved_customer_id))
        self._handle_post_commit(events, group_id)
        return bookings

    @BaseService.measure_operation("change_slot")
    def change_slot(self, booking_id: str, new_slot_id: str) -> Booking:
        """
        Move a booking to another slot of the same tenant and service.

        The new slot is checked before anything is released; on
        InsufficientCapacityException the original reservation is untouched.
        Moving to the current slot is a no-op.
        """
        with self.transaction():
            booking = self._get_booking_for_update(booking_id)
            old_slot_id = str(booking.slot_id)
            if old_slot_id == new_slot_id:
                return booking
            if booking.status in TERMINAL_STATUSES:
                raise BusinessRuleException(
                    f"Cannot reschedule a {booking.status} booking",
                    code="BOOKING_NOT_ACTIVE",
                    details={"booking_id": booking_id, "status": booking.status},
                )
            self._validate_slot(
                self.slot_repository.get_by_id(new_slot_id),
                new_slot_id,
                booking.tenant_id,
                booking.service_id,
            )

            quantity = int(booking.visitor_count)
            old_blocks = self.slot_repository.get_overlap_blocks(booking.id)
            locked = self.ledger.lock_for_reservation(
                [new_slot_id], extra_ids=[old_slot_id] + [block.slot_id for block in old_blocks]
            )
            new_slot = locked[new_slot_id]
            old_slot = locked.get(old_slot_id)
            if old_slot is None:
                raise NotFoundException(
                    f"Slot {old_slot_id} not found", details={"slot_id": old_slot_id}
                )

            # Capacity this booking itself blocks on the new slot comes back on release
            own_block = sum(int(b.quantity) for b in old_blocks if b.slot_id == new_slot_id)
            self.ledger.ensure_capacity(
                new_slot, quantity, credit=own_block, operation="change_slot"
            )

            self.ledger.release_blocks_locked(booking.id, locked)
            self.ledger.release_locked(old_slot, quantity)
            reservation = self.ledger.reserve_locked(new_slot, quantity, locked)
            booking.slot_id = new_slot_id
            self.booking_repository.flush()
            self.ledger.record_overlap_blocks(booking.id, reservation)

        self.log_operation(
            "change_slot", booking_id=booking_id, old_slot_id=old_slot_id, new_slot_id=new_slot_id
        )
        self._handle_post_commit(
            [
                BookingSlotChanged(
                    booking_id=booking.id,
                    tenant_id=booking.tenant_id,
                    old_slot_id=old_slot_id,
                    new_slot_id=new_slot_id,
                    visitor_count=quantity,
                )
            ],
            booking.id,
        )
        return booking

    @BaseService.measure_operation("update_status")
    def update_status(
        self, booking_id: str, new_status: str, reason: Optional[str] = None
    ) -> Booking:
        """
        Apply a status change through the capacity transition table.

        Raises:
            InvalidStatusTransitionException: the booking is already cancelled or completed
        """
        with self.transaction():
            booking = self._get_booking_for_update(booking_id)
            outcome = self.lifecycle.apply(booking, new_status, reason)

        events: List[Event] = []
        if outcome.previous_status != outcome.new_status:
            self.log_operation(
                "update_status",
                booking_id=booking_id,
                previous_status=outcome.previous_status,
                new_status=outcome.new_status,
            )
            if outcome.new_status == BookingStatus.CANCELLED.value:
                events.append(
                    BookingCancelled(
                        booking_id=booking.id,
                        tenant_id=booking.tenant_id,
                        slot_id=booking.slot_id,
                        released_quantity=outcome.released_quantity,
                        restored_package_units=outcome.restored_package_units,
                        reason=reason,
                    )
                )
        self._handle_post_commit(events, booking.id)
        return booking

    def cancel(self, booking_id: str, reason: Optional[str] = None) -> Booking:
        return self.update_status(booking_id, BookingStatus.CANCELLED.value, reason)

    def complete(self, booking_id: str) -> Booking:
        return self.update_status(booking_id, BookingStatus.COMPLETED.value)

    # Validation

    def _validate_request(self, visitor_count: int, price_per_unit: Any, status: str) -> Decimal:
        if int(visitor_count) < 1:
            raise ValidationException(
                "Visitor count must be at least 1", details={"visitor_count": visitor_count}
            )
        if status not in ACTIVE_STATUSES:
            raise ValidationException(
                f"A new booking cannot start as {status}",
                details={"status": status, "allowed": sorted(ACTIVE_STATUSES)},
            )
        try:
            unit_price = Decimal(str(price_per_unit))
        except ArithmeticError as exc:
            raise ValidationException(
                "Price per unit must be a number", details={"price_per_unit": str(price_per_unit)}
            ) from exc
        if not unit_price.is_finite() or unit_price < 0:
            raise ValidationException(
                "Price per unit cannot be negative", details={"price_per_unit": str(price_per_unit)}
            )
        return self._money(unit_price)

    def _validate_tenant_and_service(self, tenant_id: str, service_id: str) -> Service:
        tenant = self.tenant_repository.get_by_id(tenant_id)
        if tenant is None:
            raise NotFoundException("Tenant not found", details={"tenant_id": tenant_id})
        if not tenant.is_active:
            raise BusinessRuleException(
                "Tenant is not active", code="TENANT_INACTIVE", details={"tenant_id": tenant_id}
            )
        service = self.service_repository.get_by_id(service_id)
        if service is None or service.tenant_id != tenant_id:
            raise NotFoundException(
                "Service not found or does not belong to tenant",
                details={"service_id": service_id, "tenant_id": tenant_id},
            )
        if not service.is_active:
            raise BusinessRuleException(
                "Service is not active", code="SERVICE_INACTIVE", details={"service_id": service_id}
            )
        return service

    @staticmethod
    def _validate_slot(
        slot: Optional[Slot], slot_id: str, tenant_id: str, service_id: str
    ) -> Slot:
        if slot is None:
            raise NotFoundException(f"Slot {slot_id} not found", details={"slot_id": slot_id})
        if slot.tenant_id != tenant_id or slot.service_id != service_id:
            raise ValidationException(
                "Slot does not belong to this tenant and service",
                details={"slot_id": slot_id, "service_id": service_id},
            )
        if not slot.is_available:
            raise BusinessRuleException(
                "Slot is not available", code="SLOT_UNAVAILABLE", details={"slot_id": slot_id}
            )
        return slot

    def _get_booking_for_update(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_for_update(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return booking

    # Pricing and persistence

    @staticmethod
    def _money(value: Decimal) -> Decimal:
        return value.quantize(settings.currency_quantum, rounding=ROUND_HALF_UP)

    def _insert_booking(
        self,
        *,
        tenant_id: str,
        service_id: str,
        slot_id: str,
        customer_id: Optional[str],
        customer_name: str,
        customer_phone: Optional[str],
        customer_email: Optional[str],
        visitor_count: int,
        covered_quantity: int,
        subscription_id: Optional[str],
        unit_price: Decimal,
        status: str,
        notes: Optional[str],
        booking_group_id: Optional[str] = None,
    ) -> Booking:
        paid_quantity = visitor_count - covered_quantity
        total_price = self._money(unit_price * paid_quantity)
        self._check_billing_invariant(
            visitor_count, covered_quantity, paid_quantity, total_price, subscription_id
        )

        try:
            return self.booking_repository.create(
                tenant_id=tenant_id,
                service_id=service_id,
                slot_id=slot_id,
                customer_id=customer_id,
                booking_group_id=booking_group_id,
                customer_name=customer_name,
                customer_phone=customer_phone,
                customer_email=customer_email,
                visitor_count=visitor_count,
                package_covered_quantity=covered_quantity,
                paid_quantity=paid_quantity,
                package_subscription_id=subscription_id,
                unit_price=unit_price,
                total_price=total_price,
                status=status,
                payment_status=(
                    PaymentStatus.PAID.value
                    if covered_quantity == visitor_count
                    else PaymentStatus.UNPAID.value
                ),
                notes=notes,
            )
        except IntegrityError as exc:
            self.logger.critical(
                "Booking insert violated a database constraint on slot %s: %s",
                slot_id,
                str(exc.orig),
                exc_info=True,
            )
            raise BookingInvariantViolation(
                "Booking violates a billing or capacity constraint",
                details={"slot_id": slot_id, "constraint_error": str(exc.orig)},
            ) from exc

    def _check_billing_invariant(
        self,
        visitor_count: int,
        covered_quantity: int,
        paid_quantity: int,
        total_price: Decimal,
        subscription_id: Optional[str],
    ) -> None:
        details = {
            "visitor_count": visitor_count,
            "package_covered_quantity": covered_quantity,
            "paid_quantity": paid_quantity,
            "total_price": str(total_price),
        }
        problem = None
        if covered_quantity < 0 or paid_quantity < 0:
            problem = "Coverage split has a negative part"
        elif covered_quantity + paid_quantity != visitor_count:
            problem = "Covered and paid quantities do not add up to the visitor count"
        elif covered_quantity == visitor_count and total_price != 0:
            problem = "Fully package-covered booking has a non-zero price"
        elif (covered_quantity > 0) != (subscription_id is not None):
            problem = "Package subscription must be set exactly when units are covered"
        if problem:
            self.logger.critical("%s: %s", problem, details)
            raise BookingInvariantViolation(problem, details=details)

    # Post-commit

    def _admitted_event(self, booking: Booking) -> BookingAdmitted:
        return BookingAdmitted(
            booking_id=booking.id,
            tenant_id=booking.tenant_id,
            service_id=booking.service_id,
            slot_id=booking.slot_id,
            customer_id=booking.customer_id,
            visitor_count=int(booking.visitor_count),
            package_covered_quantity=int(booking.package_covered_quantity),
            paid_quantity=int(booking.paid_quantity),
            unit_price=Decimal(booking.unit_price),
            total_price=Decimal(booking.total_price),
            booking_group_id=booking.booking_group_id,
        )

    @staticmethod
    def _exhaustion_events(
        coverage: CoverageResult, tenant_id: str, customer_id: Optional[str]
    ) -> Iterable[PackageExhausted]:
        return [
            PackageExhausted(
                subscription_id=subscription_id,
                service_id=service_id,
                tenant_id=tenant_id,
                customer_id=customer_id,
            )
            for subscription_id, service_id in coverage.exhausted
        ]

    def _handle_post_commit(self, events: List[Event], reference_id: str) -> None:
        """Run side effects for committed work. Failures are logged, never raised."""
        if not events:
            return
        try:
            self.dispatcher.dispatch(events)
        except Exception as e:
            logger.error(f"Failed to dispatch side effects for {reference_id}: {str(e)}")
