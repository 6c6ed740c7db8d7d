# facility_booking/core/exceptions.py
"""
Domain-specific exceptions for the facility booking engine.

Every exception carries a stable error kind, a machine-readable code and a
human-readable message, so callers can tell "try a different input" from
"try again later". The API layer converts them to HTTP responses in one place.
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class ErrorKind(str, Enum):
    """Stable error categories exposed to callers."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    POLICY_VIOLATION = "policy_violation"
    STATE = "state"
    FORBIDDEN = "forbidden"
    INTERNAL = "internal"


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    kind: ErrorKind = ErrorKind.INTERNAL
    default_code: str = "INTERNAL_ERROR"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "kind": self.kind.value,
            "retryable": self.retryable,
            "details": self.details,
        }

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_dict())


class ValidationException(DomainException):
    """Raised when input is malformed or missing."""

    kind = ErrorKind.VALIDATION
    default_code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    kind = ErrorKind.NOT_FOUND
    default_code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when a write collides with existing data."""

    kind = ErrorKind.CONFLICT
    default_code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class PolicyViolationException(DomainException):
    """Raised when a booking policy rule is violated."""

    kind = ErrorKind.POLICY_VIOLATION
    default_code = "POLICY_VIOLATION"
    status_code = HTTP_422_UNPROCESSABLE


class StateException(DomainException):
    """Raised on an illegal lifecycle transition."""

    kind = ErrorKind.STATE
    default_code = "INVALID_TRANSITION"
    status_code = status.HTTP_409_CONFLICT


class ForbiddenException(DomainException):
    """Raised when the actor lacks permission for an action."""

    kind = ErrorKind.FORBIDDEN
    default_code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails for internal reasons."""

    kind = ErrorKind.INTERNAL
    default_code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class TransientStorageError(ServiceException):
    """Raised when storage conflicts persist after the bounded retries."""

    default_code = "TRANSIENT_STORAGE_ERROR"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail=self.to_dict(),
            headers={"Retry-After": "1"},
        )


# Specific booking exceptions


class FacilityNotBookableException(NotFoundException):
    """Facility is missing, inactive or unverified."""

    def __init__(self, facility_id: str, reason: str):
        super().__init__(
            message="Facility is not available for booking",
            code="FACILITY_NOT_BOOKABLE",
            details={"facility_id": facility_id, "reason": reason},
        )


class InvalidDurationException(ValidationException):
    def __init__(self, message: str, duration_minutes: int):
        super().__init__(
            message=message,
            code="INVALID_DURATION",
            details={"duration_minutes": duration_minutes},
        )


class PastDateException(PolicyViolationException):
    def __init__(self, booking_date: str, today: str):
        super().__init__(
            message="Cannot book for past dates",
            code="PAST_DATE",
            details={"booking_date": booking_date, "today": today},
        )


class AdvanceWindowExceededException(PolicyViolationException):
    def __init__(self, max_advance_days: int, last_bookable_date: str):
        super().__init__(
            message=f"Cannot book more than {max_advance_days} days in advance",
            code="ADVANCE_WINDOW_EXCEEDED",
            details={
                "max_advance_days": max_advance_days,
                "last_bookable_date": last_bookable_date,
            },
        )


class OutsideOperatingHoursException(PolicyViolationException):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="OUTSIDE_OPERATING_HOURS", details=details)


class UserBookingLimitExceededException(PolicyViolationException):
    def __init__(self, limit: int, active_count: int):
        super().__init__(
            message=f"You can have maximum {limit} active bookings at a time",
            code="USER_BOOKING_LIMIT_EXCEEDED",
            details={"limit": limit, "active_bookings": active_count},
        )


class CancellationNoticeException(PolicyViolationException):
    def __init__(self, required_hours: int, hours_until_start: float):
        super().__init__(
            message=f"Bookings can only be cancelled at least {required_hours} hours in advance",
            code="CANCELLATION_NOTICE",
            details={
                "required_hours": required_hours,
                "hours_until_start": round(hours_until_start, 2),
            },
        )


class SlotConflictException(ConflictException):
    """Raised when a booking overlaps an active booking for the same facility and date."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "Selected time slot is not available",
            code="SLOT_CONFLICT",
            details=details or {},
        )


class CodeGenerationFailedException(ConflictException):
    def __init__(self, attempts: int):
        super().__init__(
            message="Could not generate a unique booking code",
            code="CODE_GENERATION_FAILED",
            details={"attempts": attempts},
        )


class InvalidTransitionException(StateException):
    def __init__(self, booking_id: str, current: str, target: str):
        super().__init__(
            message=f"Booking cannot move from {current} to {target}",
            code="INVALID_TRANSITION",
            details={"booking_id": booking_id, "current_status": current, "target_status": target},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    Used when data access operations fail, such as connection issues,
    query failures, or constraint violations.
    """
