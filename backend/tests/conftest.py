# backend/tests/conftest.py
"""
Pytest configuration with PRODUCTION DATABASE PROTECTION.

Tests run against an in-memory SQLite database by default. Set
TEST_DATABASE_URL to a PostgreSQL test database to exercise real row locks;
the same safety checks refuse anything that looks like a hosted production
database.
"""

import os

# Set testing mode BEFORE any bookati imports
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional
from unittest.mock import Mock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from bookati.database import Base, build_engine
from bookati.events.dispatcher import BookingSideEffectDispatcher
import bookati.models  # noqa: F401
from bookati.models.package import (
    Package,
    PackageService,
    PackageSubscription,
    PackageSubscriptionUsage,
)
from bookati.models.slot import Slot
from bookati.models.tenant import Customer, Service, Tenant
from bookati.services.booking_admission import BookingAdmissionService

# ============================================================================
# PRODUCTION DATABASE PROTECTION
# ============================================================================

PRODUCTION_INDICATORS = [
    "supabase.com",
    "supabase.co",
    "amazonaws.com",
    "cloud.google.com",
    "database.azure.com",
    "neon.tech",
    "railway.app",
    "render.com",
    "aiven.io",
]


def _validate_test_database_url(database_url: str) -> None:
    """
    Validate that we're not using a production database for tests.

    Raises:
        RuntimeError: If the database URL appears to be a production database
    """
    url_lower = database_url.lower()
    for indicator in PRODUCTION_INDICATORS:
        if indicator in url_lower:
            raise RuntimeError(
                f"Refusing to run tests: database URL contains production indicator "
                f"'{indicator}'. Set TEST_DATABASE_URL to a local test database."
            )


# ============================================================================
# TEST DATABASE CONFIGURATION
# ============================================================================

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")
_validate_test_database_url(TEST_DATABASE_URL)

IS_POSTGRES = TEST_DATABASE_URL.startswith("postgresql")

if IS_POSTGRES:
    test_engine = build_engine(TEST_DATABASE_URL)
else:
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

TestSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=test_engine, expire_on_commit=False
)


@pytest.fixture(scope="function")
def db():
    """Fresh schema and session for each test."""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()

    yield session

    session.rollback()
    session.close()
    Base.metadata.drop_all(bind=test_engine)


# ============================================================================
# Domain fixtures
# ============================================================================


@pytest.fixture
def tenant(db: Session) -> Tenant:
    tenant = Tenant(name="Harbour Tours")
    db.add(tenant)
    db.commit()
    return tenant


@pytest.fixture
def service(db: Session, tenant: Tenant) -> Service:
    service = Service(tenant_id=tenant.id, name="Boat tour", base_price=Decimal("15.00"))
    db.add(service)
    db.commit()
    return service


@pytest.fixture
def customer(db: Session, tenant: Tenant) -> Customer:
    customer = Customer(tenant_id=tenant.id, name="Ana Silva", phone="+351 912 345 678")
    db.add(customer)
    db.commit()
    return customer


@pytest.fixture
def make_slot(db: Session, tenant: Tenant, service: Service):
    """Create slots; each call gets a distinct start hour unless one is given."""
    counter = {"hour": 8}

    def _make_slot(
        capacity: int,
        *,
        start: Optional[time] = None,
        end: Optional[time] = None,
        resource_id: Optional[str] = None,
        slot_date: Optional[date] = None,
        is_available: bool = True,
    ) -> Slot:
        if start is None:
            start = time(counter["hour"], 0)
            counter["hour"] += 1
        if end is None:
            end = (datetime.combine(date.today(), start) + timedelta(hours=1)).time()
        slot = Slot(
            tenant_id=tenant.id,
            service_id=service.id,
            resource_id=resource_id,
            slot_date=slot_date or date.today() + timedelta(days=1),
            start_time=start,
            end_time=end,
            original_capacity=capacity,
            available_capacity=capacity,
            booked_count=0,
            blocked_count=0,
            is_available=is_available,
        )
        db.add(slot)
        db.commit()
        return slot

    return _make_slot


@pytest.fixture
def make_subscription(db: Session, tenant: Tenant, service: Service):
    """Create an active subscription with ``units`` of ``service`` for a customer."""

    def _make_subscription(
        customer: Customer,
        units: int,
        *,
        subscribed_at: Optional[datetime] = None,
    ) -> PackageSubscription:
        package = Package(tenant_id=tenant.id, name=f"{units}-pack")
        db.add(package)
        db.flush()
        db.add(PackageService(package_id=package.id, service_id=service.id, capacity_total=units))
        subscription = PackageSubscription(
            tenant_id=tenant.id,
            customer_id=customer.id,
            package_id=package.id,
            subscribed_at=subscribed_at or datetime.now(timezone.utc),
        )
        db.add(subscription)
        db.flush()
        db.add(
            PackageSubscriptionUsage(
                subscription_id=subscription.id,
                service_id=service.id,
                original_quantity=units,
                remaining_quantity=units,
                used_quantity=0,
            )
        )
        db.commit()
        return subscription

    return _make_subscription


@pytest.fixture
def invoice_client() -> Mock:
    return Mock()


@pytest.fixture
def ticket_client() -> Mock:
    return Mock()


@pytest.fixture
def package_notifier() -> Mock:
    return Mock()


@pytest.fixture
def dispatcher(invoice_client, ticket_client, package_notifier) -> BookingSideEffectDispatcher:
    return BookingSideEffectDispatcher(
        invoice_client=invoice_client,
        ticket_client=ticket_client,
        package_notifier=package_notifier,
    )


@pytest.fixture
def admission(db: Session, dispatcher: BookingSideEffectDispatcher) -> BookingAdmissionService:
    return BookingAdmissionService(db, dispatcher=dispatcher)

