# backend/bookati/routes/v1/slots.py
"""
Slot capacity routes - API v1

Endpoints:
    POST /{slot_id}/holds - Hold capacity during checkout
    DELETE /holds/expired - Purge expired holds
    POST /recalculate - Rebuild slot counters from active bookings
"""

import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, status
from fastapi.params import Path

from ...api.dependencies import get_slot_hold_service, get_slot_ledger
from ...core.exceptions import DomainException
from ...schemas.booking import CapacityRecalculationResponse, SlotHoldCreate, SlotHoldResponse
from ...services.slot_hold_service import SlotHoldService
from ...services.slot_ledger import SlotLedger
from .bookings import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["slots-v1"])


@router.post(
    "/{slot_id}/holds", response_model=SlotHoldResponse, status_code=status.HTTP_201_CREATED
)
async def create_slot_hold(
    slot_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    payload: SlotHoldCreate = Body(...),
    hold_service: SlotHoldService = Depends(get_slot_hold_service),
) -> SlotHoldResponse:
    try:
        hold = await asyncio.to_thread(
            hold_service.acquire_hold,
            slot_id,
            payload.session_id,
            payload.quantity,
            payload.ttl_seconds,
        )
        return SlotHoldResponse.model_validate(hold)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/holds/expired")
async def purge_expired_holds(
    hold_service: SlotHoldService = Depends(get_slot_hold_service),
) -> dict:
    deleted = await asyncio.to_thread(hold_service.cleanup_expired_holds)
    return {"deleted": deleted}


@router.post("/recalculate", response_model=CapacityRecalculationResponse)
async def recalculate_capacities(
    slot_ids: Optional[List[str]] = Body(None, embed=True),
    ledger: SlotLedger = Depends(get_slot_ledger),
) -> CapacityRecalculationResponse:
    """Admin repair path; safe to run at any time."""
    try:
        results = await asyncio.to_thread(ledger.recalculate_capacities, slot_ids)
    except DomainException as e:
        handle_domain_exception(e)
    changed = sum(1 for row in results if row["before"] != row["after"])
    return CapacityRecalculationResponse(slots=results, changed=changed)
