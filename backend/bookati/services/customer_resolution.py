# backend/bookati/services/customer_resolution.py
"""
Customer identity resolution.

Two tiers:
- ``resolve`` is authoritative: an exact customer id inside the tenant. Only
  its result may flow into package coverage.
- ``suggest_by_phone`` is a heuristic used to pre-fill a form. It never
  grants package coverage.
"""

import logging
import re
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.tenant import Customer
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

PHONE_MATCH_DIGITS = 9

_NON_DIGITS = re.compile(r"\D+")


def normalize_phone(phone: Optional[str]) -> str:
    """Digits only, without an international ``00`` prefix."""
    digits = _NON_DIGITS.sub("", phone or "")
    if digits.startswith("00"):
        digits = digits[2:]
    return digits


def phones_match(left: Optional[str], right: Optional[str]) -> bool:
    a = normalize_phone(left)
    b = normalize_phone(right)
    if len(a) < PHONE_MATCH_DIGITS or len(b) < PHONE_MATCH_DIGITS:
        return bool(a) and a == b
    return a[-PHONE_MATCH_DIGITS:] == b[-PHONE_MATCH_DIGITS:]


class CustomerResolver(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.customer_repository = RepositoryFactory.create_customer_repository(db)

    def resolve(self, tenant_id: str, customer_id: Optional[str]) -> Optional[Customer]:
        """Exact match within the tenant, or None (treated as a guest)."""
        if not customer_id:
            return None
        customer = self.customer_repository.get_in_tenant(tenant_id, customer_id)
        if customer is None:
            self.logger.info(
                "Customer %s not found in tenant %s; booking proceeds as guest",
                customer_id,
                tenant_id,
            )
        return customer

    def suggest_by_phone(self, tenant_id: str, phone: str) -> List[Customer]:
        if not normalize_phone(phone):
            return []
        return [
            customer
            for customer in self.customer_repository.list_with_phone(tenant_id)
            if phones_match(customer.phone, phone)
        ]
