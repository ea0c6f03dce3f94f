from .booking import (
    BookingCancelRequest,
    BookingCreate,
    BookingGroupCreate,
    BookingGroupResponse,
    BookingRescheduleRequest,
    BookingResponse,
    BookingStatusUpdate,
    CapacityRecalculationResponse,
    CoveragePreviewResponse,
    SlotHoldCreate,
    SlotHoldResponse,
)

__all__ = [
    "BookingCancelRequest",
    "BookingCreate",
    "BookingGroupCreate",
    "BookingGroupResponse",
    "BookingRescheduleRequest",
    "BookingResponse",
    "BookingStatusUpdate",
    "CapacityRecalculationResponse",
    "CoveragePreviewResponse",
    "SlotHoldCreate",
    "SlotHoldResponse",
]
