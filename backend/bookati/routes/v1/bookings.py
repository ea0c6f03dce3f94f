# backend/bookati/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingAdmissionService.

Endpoints:
    POST / - Admit a booking
    POST /bulk - Admit one visitor on each of several slots
    GET /{booking_id} - Booking details
    POST /{booking_id}/reschedule - Move a booking to another slot
    POST /{booking_id}/status - Apply a status transition
    POST /{booking_id}/cancel - Cancel a booking
    POST /{booking_id}/complete - Mark a booking as completed
"""

import asyncio
import logging
from decimal import Decimal
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.params import Path

from ...api.dependencies import get_booking_admission_service
from ...core.exceptions import DomainException, NotFoundException
from ...schemas.booking import (
    BookingCancelRequest,
    BookingCreate,
    BookingGroupCreate,
    BookingGroupResponse,
    BookingRescheduleRequest,
    BookingResponse,
    BookingStatusUpdate,
)
from ...services.booking_admission import BookingAdmissionService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate = Body(...),
    booking_service: BookingAdmissionService = Depends(get_booking_admission_service),
) -> BookingResponse:
    """
    Admit a booking.

    Returns 409 with ``available`` and ``requested`` in the details when the
    slot cannot take the visitors, and 503 with Retry-After when a row lock
    could not be obtained in time.
    """
    try:
        booking = await asyncio.to_thread(
            booking_service.admit,
            tenant_id=payload.tenant_id,
            service_id=payload.service_id,
            slot_id=payload.slot_id,
            visitor_count=payload.visitor_count,
            price_per_unit=payload.price_per_unit,
            customer_id=payload.customer_id,
            customer_name=payload.customer_name,
            customer_phone=payload.customer_phone,
            customer_email=payload.customer_email,
            status=payload.status,
            hold_id=payload.hold_id,
            session_id=payload.session_id,
            notes=payload.notes,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/bulk", response_model=BookingGroupResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_group(
    payload: BookingGroupCreate = Body(...),
    booking_service: BookingAdmissionService = Depends(get_booking_admission_service),
) -> BookingGroupResponse:
    """Admit one visitor per slot; the group commits together or not at all."""
    try:
        bookings = await asyncio.to_thread(
            booking_service.admit_bulk,
            tenant_id=payload.tenant_id,
            service_id=payload.service_id,
            slot_ids=payload.slot_ids,
            price_per_unit=payload.price_per_unit,
            customer_id=payload.customer_id,
            customer_name=payload.customer_name,
            customer_phone=payload.customer_phone,
            customer_email=payload.customer_email,
            status=payload.status,
            notes=payload.notes,
        )
        return BookingGroupResponse(
            booking_group_id=bookings[0].booking_group_id,
            bookings=[BookingResponse.model_validate(booking) for booking in bookings],
            paid_quantity=sum(int(booking.paid_quantity) for booking in bookings),
            total_price=sum((Decimal(booking.total_price) for booking in bookings), Decimal("0")),
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    booking_service: BookingAdmissionService = Depends(get_booking_admission_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.booking_repository.get_by_id, booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", details={"booking_id": booking_id})
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/reschedule", response_model=BookingResponse)
async def reschedule_booking(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    payload: BookingRescheduleRequest = Body(...),
    booking_service: BookingAdmissionService = Depends(get_booking_admission_service),
) -> BookingResponse:
    """Move a booking to another slot. On 409 the booking keeps its original slot."""
    try:
        booking = await asyncio.to_thread(booking_service.change_slot, booking_id, payload.slot_id)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    payload: BookingStatusUpdate = Body(...),
    booking_service: BookingAdmissionService = Depends(get_booking_admission_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            booking_service.update_status, booking_id, payload.status, payload.reason
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    payload: Optional[BookingCancelRequest] = Body(None),
    booking_service: BookingAdmissionService = Depends(get_booking_admission_service),
) -> BookingResponse:
    """Cancel a booking; slot capacity and package units are given back."""
    try:
        reason = payload.reason if payload is not None else None
        booking = await asyncio.to_thread(booking_service.cancel, booking_id, reason)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: str = Path(..., pattern=ULID_PATH_PATTERN),
    booking_service: BookingAdmissionService = Depends(get_booking_admission_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.complete, booking_id)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)
