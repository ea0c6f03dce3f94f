# backend/bookati/models/tenant.py
"""Tenant, service and customer records referenced by the booking core."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Tenant(Base):
    """A business account that owns services, slots and bookings."""

    __tablename__ = "tenants"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(200), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self) -> str:
        return f"<Tenant {self.id} active={self.is_active}>"


class Service(Base):
    """A bookable offering of a tenant."""

    __tablename__ = "services"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(26), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(200), nullable=False)
    base_price = Column(Numeric(10, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("ix_services_tenant", "tenant_id"),)

    def __repr__(self) -> str:
        return f"<Service {self.id} tenant={self.tenant_id}>"


class Customer(Base):
    """A tenant's customer. Guest bookings carry no customer row."""

    __tablename__ = "customers"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(26), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(200), nullable=False)
    phone = Column(String(32), nullable=True)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("ix_customers_tenant_phone", "tenant_id", "phone"),)

    def __repr__(self) -> str:
        return f"<Customer {self.id} tenant={self.tenant_id}>"
