# backend/bookati/repositories/customer_repository.py
"""Customer lookups scoped to a tenant."""

from __future__ import annotations

import logging
from typing import List, Optional, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.tenant import Customer
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CustomerRepository(BaseRepository[Customer]):
    def __init__(self, db: Session):
        super().__init__(db, Customer)

    def get_in_tenant(self, tenant_id: str, customer_id: str) -> Optional[Customer]:
        try:
            return cast(
                Optional[Customer],
                self.db.query(Customer)
                .filter(Customer.id == customer_id, Customer.tenant_id == tenant_id)
                .first(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to load customer %s: %s", customer_id, str(exc))
            raise RepositoryException("Failed to load customer") from exc

    def list_with_phone(self, tenant_id: str) -> List[Customer]:
        try:
            return cast(
                List[Customer],
                self.db.query(Customer)
                .filter(Customer.tenant_id == tenant_id, Customer.phone.isnot(None))
                .order_by(Customer.id.asc())
                .all(),
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to list customers for tenant %s: %s", tenant_id, str(exc))
            raise RepositoryException("Failed to list customers") from exc
