# backend/bookati/routes/v1/packages.py
"""
Package coverage routes - API v1

Endpoints:
    GET /coverage - Quote how a quantity would be split between package and paid units
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...api.dependencies import get_package_coverage_resolver
from ...schemas.booking import CoveragePreviewResponse
from ...services.package_coverage import PackageCoverageResolver

logger = logging.getLogger(__name__)

router = APIRouter(tags=["packages-v1"])


@router.get("/coverage", response_model=CoveragePreviewResponse)
async def preview_coverage(
    tenant_id: str = Query(...),
    service_id: str = Query(...),
    quantity: int = Query(..., ge=1),
    customer_id: Optional[str] = Query(None),
    resolver: PackageCoverageResolver = Depends(get_package_coverage_resolver),
) -> CoveragePreviewResponse:
    """Read-only: nothing is locked or consumed."""

    def _quote() -> CoveragePreviewResponse:
        result = resolver.preview(
            tenant_id=tenant_id, customer_id=customer_id, service_id=service_id, quantity=quantity
        )
        remaining = (
            resolver.remaining_capacity(
                tenant_id=tenant_id, customer_id=customer_id, service_id=service_id
            )
            if customer_id
            else 0
        )
        return CoveragePreviewResponse(
            requested_quantity=result.requested_quantity,
            covered_quantity=result.covered_quantity,
            paid_quantity=result.paid_quantity,
            subscription_id=result.subscription_id,
            remaining_capacity=remaining,
        )

    return await asyncio.to_thread(_quote)
