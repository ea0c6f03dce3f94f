# backend/bookati/repositories/package_repository.py
"""
Package Repository for the booking core.

Encapsulates subscription balance queries and the consumption ledger used by
PackageCoverageResolver. Eligible balances are always returned in precedence
order: oldest subscription first (``subscribed_at``), ties broken by id.
Every lock on balances is taken in that same order.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple, cast

from sqlalchemy import and_, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException
from ..models.package import (
    BookingPackageConsumption,
    PackageExhaustionNotification,
    PackageSubscription,
    PackageSubscriptionUsage,
    SubscriptionStatus,
)
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

_PRECEDENCE = (
    PackageSubscription.subscribed_at.asc(),
    PackageSubscription.id.asc(),
    PackageSubscriptionUsage.service_id.asc(),
)


class PackageRepository(BaseRepository[PackageSubscriptionUsage]):
    """Repository for package balances and consumption records."""

    def __init__(self, db: Session):
        super().__init__(db, PackageSubscriptionUsage)

    def _eligible_usage_query(self, *, tenant_id: str, customer_id: str, service_id: str) -> Query:
        return (
            self.db.query(PackageSubscriptionUsage)
            .join(
                PackageSubscription,
                PackageSubscription.id == PackageSubscriptionUsage.subscription_id,
            )
            .filter(
                and_(
                    PackageSubscription.tenant_id == tenant_id,
                    PackageSubscription.customer_id == customer_id,
                    PackageSubscription.status == SubscriptionStatus.ACTIVE.value,
                    PackageSubscription.is_active.is_(True),
                    PackageSubscriptionUsage.service_id == service_id,
                    PackageSubscriptionUsage.remaining_quantity > 0,
                )
            )
            .order_by(*_PRECEDENCE)
        )

    def get_eligible_usage(
        self, *, tenant_id: str, customer_id: str, service_id: str
    ) -> List[PackageSubscriptionUsage]:
        """Return eligible balances without locking (read-only quotes)."""
        try:
            query = self._eligible_usage_query(
                tenant_id=tenant_id, customer_id=customer_id, service_id=service_id
            )
            return cast(List[PackageSubscriptionUsage], query.all())
        except SQLAlchemyError as exc:
            self.logger.error("Failed to get eligible package usage: %s", str(exc))
            raise RepositoryException("Failed to get eligible package usage") from exc

    def lock_eligible_usage(
        self, *, tenant_id: str, customer_id: str, service_id: str
    ) -> List[PackageSubscriptionUsage]:
        """Lock eligible balances in precedence order for consumption."""
        query = self._eligible_usage_query(
            tenant_id=tenant_id, customer_id=customer_id, service_id=service_id
        )
        return cast(
            List[PackageSubscriptionUsage],
            self.lock_rows(query, "package_usage", customer_id, of=PackageSubscriptionUsage),
        )

    def lock_usage_rows(self, keys: List[Tuple[str, str]]) -> List[PackageSubscriptionUsage]:
        """Lock balances named by ``(subscription_id, service_id)`` pairs, in precedence order."""
        if not keys:
            return []
        subscription_ids = sorted({sub_id for sub_id, _ in keys})
        service_ids = sorted({svc_id for _, svc_id in keys})
        query = (
            self.db.query(PackageSubscriptionUsage)
            .join(
                PackageSubscription,
                PackageSubscription.id == PackageSubscriptionUsage.subscription_id,
            )
            .filter(
                PackageSubscriptionUsage.subscription_id.in_(subscription_ids),
                PackageSubscriptionUsage.service_id.in_(service_ids),
            )
            .order_by(*_PRECEDENCE)
        )
        wanted = set(keys)
        rows = cast(
            List[PackageSubscriptionUsage],
            self.lock_rows(
                query, "package_usage", ",".join(subscription_ids), of=PackageSubscriptionUsage
            ),
        )
        return [row for row in rows if (row.subscription_id, row.service_id) in wanted]

    def total_remaining(self, *, tenant_id: str, customer_id: str, service_id: str) -> int:
        """Remaining units across all active subscriptions of a customer for a service."""
        try:
            total = (
                self.db.query(
                    func.coalesce(func.sum(PackageSubscriptionUsage.remaining_quantity), 0)
                )
                .join(
                    PackageSubscription,
                    PackageSubscription.id == PackageSubscriptionUsage.subscription_id,
                )
                .filter(
                    PackageSubscription.tenant_id == tenant_id,
                    PackageSubscription.customer_id == customer_id,
                    PackageSubscription.status == SubscriptionStatus.ACTIVE.value,
                    PackageSubscription.is_active.is_(True),
                    PackageSubscriptionUsage.service_id == service_id,
                )
                .scalar()
            )
            return int(total or 0)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to total package balance: %s", str(exc))
            raise RepositoryException("Failed to total package balance") from exc

    # Consumption ledger

    def create_consumption(
        self, *, booking_id: str, subscription_id: str, service_id: str, quantity: int
    ) -> BookingPackageConsumption:
        try:
            record = BookingPackageConsumption(
                booking_id=booking_id,
                subscription_id=subscription_id,
                service_id=service_id,
                quantity=quantity,
            )
            self.db.add(record)
            self.db.flush()
            return record
        except SQLAlchemyError as exc:
            self.logger.error(
                "Failed to record package consumption for booking %s: %s", booking_id, str(exc)
            )
            raise RepositoryException("Failed to record package consumption") from exc

    def get_consumptions(self, booking_id: str) -> List[BookingPackageConsumption]:
        try:
            return cast(
                List[BookingPackageConsumption],
                self.db.query(BookingPackageConsumption)
                .filter(BookingPackageConsumption.booking_id == booking_id)
                .order_by(BookingPackageConsumption.id.asc())
                .all(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load consumptions for %s: %s", booking_id, str(exc))
            raise RepositoryException("Failed to load package consumptions") from exc

    def delete_consumptions(self, booking_id: str) -> int:
        try:
            deleted = (
                self.db.query(BookingPackageConsumption)
                .filter(BookingPackageConsumption.booking_id == booking_id)
                .delete(synchronize_session=False)
            )
            self.db.flush()
            return int(deleted or 0)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to delete consumptions for %s: %s", booking_id, str(exc))
            raise RepositoryException("Failed to delete package consumptions") from exc

    # Exhaustion notifications

    def get_exhaustion(
        self, *, subscription_id: str, service_id: str
    ) -> Optional[PackageExhaustionNotification]:
        try:
            return cast(
                Optional[PackageExhaustionNotification],
                self.db.query(PackageExhaustionNotification)
                .filter(
                    PackageExhaustionNotification.subscription_id == subscription_id,
                    PackageExhaustionNotification.service_id == service_id,
                )
                .first(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load exhaustion record: %s", str(exc))
            raise RepositoryException("Failed to load exhaustion record") from exc

    def create_exhaustion(
        self, *, subscription_id: str, service_id: str
    ) -> PackageExhaustionNotification:
        try:
            record = PackageExhaustionNotification(
                subscription_id=subscription_id, service_id=service_id
            )
            self.db.add(record)
            self.db.flush()
            return record
        except SQLAlchemyError as exc:
            self.logger.error("Failed to record package exhaustion: %s", str(exc))
            raise RepositoryException("Failed to record package exhaustion") from exc
