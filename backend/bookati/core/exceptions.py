# backend/bookati/core/exceptions.py
"""
Domain-specific exceptions for the booking core.

These exceptions carry business-focused messages plus structured details
so the API layer can build precise responses (for example, how many
tickets are still available on a slot).
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when request validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class InsufficientCapacityException(ConflictException):
    """Raised when a slot cannot admit the requested quantity."""

    def __init__(self, available: int, requested: int, slot_id: Optional[str] = None):
        self.available = max(0, int(available))
        self.requested = int(requested)
        self.slot_id = slot_id
        super().__init__(
            message=(
                f"Not enough tickets available. Only {self.available} available, "
                f"but {self.requested} requested."
            ),
            code="INSUFFICIENT_CAPACITY",
            details={
                "slot_id": slot_id,
                "available": self.available,
                "requested": self.requested,
            },
        )


class LockTimeoutException(ServiceException):
    """Raised when a row lock could not be obtained in time. Safe to retry."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        super().__init__(
            message=f"Timed out waiting for a lock on {resource}. Please retry.",
            code="LOCK_TIMEOUT",
            details={"resource": resource, "resource_id": resource_id},
        )

    def to_http_exception(self) -> HTTPException:
        exc = super().to_http_exception()
        exc.headers = {"Retry-After": "1"}
        return exc


class BookingInvariantViolation(ServiceException):
    """
    Raised when persisted booking state would break a billing invariant.

    This always indicates a bug upstream (for example a non-zero price on a
    fully package-covered booking) and must never be retried.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code="BOOKING_INVARIANT_VIOLATION",
            details=details or {},
        )


class InvalidStatusTransitionException(BusinessRuleException):
    """Raised when a booking status change is not allowed."""

    def __init__(self, current: str, requested: str):
        super().__init__(
            message=f"Cannot change booking status from {current} to {requested}",
            code="INVALID_STATUS_TRANSITION",
            details={"current_status": current, "requested_status": requested},
        )


class SlotHoldException(ConflictException):
    """Raised when a checkout hold cannot be redeemed."""

    def __init__(self, message: str, hold_id: Optional[str] = None):
        super().__init__(
            message=message,
            code="SLOT_HOLD_INVALID",
            details={"hold_id": hold_id},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
