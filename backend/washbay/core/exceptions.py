# backend/washbay/core/exceptions.py
"""
Domain-specific exceptions for the booking engine.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

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

    def headers(self) -> Optional[Dict[str, str]]:
        return None

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
            headers=self.headers(),
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class ForbiddenException(DomainException):
    """Raised when the caller lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class RateLimitedException(DomainException):
    """Raised when a caller exceeded the booking attempt allowance."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, retry_after_seconds: int, message: Optional[str] = None):
        minutes = max(1, -(-retry_after_seconds // 60))
        super().__init__(
            message=message
            or f"Too many booking attempts. Please try again in {minutes} minutes.",
            code="RATE_LIMITED",
            details={"retry_after_seconds": retry_after_seconds},
        )
        self.retry_after_seconds = retry_after_seconds

    def headers(self) -> Optional[Dict[str, str]]:
        return {"Retry-After": str(max(0, int(self.retry_after_seconds)))}


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


class ServiceUnavailableException(DomainException):
    """Raised when a required backing store cannot answer."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


# Specific business exceptions


class InvalidDurationException(ValidationException):
    """Raised when a requested duration is zero or negative."""

    def __init__(self, duration_minutes: int):
        super().__init__(
            message="Duration must be a positive number of minutes",
            code="INVALID_DURATION",
            details={"duration_minutes": duration_minutes},
        )


class InvalidStatusTransitionException(BusinessRuleException):
    """Raised when a status change is not allowed by the booking lifecycle."""

    def __init__(self, current: str, requested: str):
        super().__init__(
            message=f"Cannot change booking status from {current} to {requested}",
            code="INVALID_STATUS_TRANSITION",
            details={"current_status": current, "requested_status": requested},
        )


class BookingNotModifiableException(BusinessRuleException):
    """Raised when a terminal booking is rescheduled or extended."""

    def __init__(self, booking_id: str, current: str):
        super().__init__(
            message=f"Booking is {current.lower()} and can no longer be changed",
            code="BOOKING_NOT_MODIFIABLE",
            details={"booking_id": booking_id, "status": current},
        )


class BookingHasInvoicesException(ValidationException):
    """Raised when deleting a booking that already carries invoices."""

    def __init__(self, booking_id: str, invoice_count: int):
        super().__init__(
            message="Booking has invoices and cannot be deleted. Cancel the booking instead.",
            code="BOOKING_HAS_INVOICES",
            details={"booking_id": booking_id, "invoice_count": invoice_count},
        )


class CalendarClosedException(BusinessRuleException):
    """Raised when the requested day or time is outside the working calendar."""

    def __init__(self, reason: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=f"We are closed at the requested time: {reason}",
            code="CALENDAR_CLOSED",
            details={"reason": reason, **(details or {})},
        )
        self.reason = reason


class CalendarUnavailableException(ServiceUnavailableException):
    """Raised when closed-date rules cannot be read; the day is never assumed open."""

    def __init__(self, message: str = "Calendar rules are temporarily unavailable"):
        super().__init__(message=message, code="CALENDAR_UNAVAILABLE")


class BookingConflictException(ConflictException):
    """Raised when a booking conflicts with existing bookings."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: str = "BOOKING_CONFLICT",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot conflicts with an existing booking",
            code=code,
            details=details or {},
        )


class SlotConflictException(BookingConflictException):
    """The requested interval overlaps an existing blocking booking."""

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message
            or "The selected time overlaps an existing booking. Please choose another time.",
            code="SLOT_CONFLICT",
            details=details,
        )


class SlotNoLongerAvailableException(SlotConflictException):
    """Another request committed an overlapping booking first; safe to retry with a new slot."""

    def __init__(self, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            "This time slot was just booked by someone else. Please pick another time.",
            details={"retryable": True, **(details or {})},
        )
        self.code = "SLOT_NO_LONGER_AVAILABLE"


class DuplicateBookingException(BookingConflictException):
    """The same customer already holds a booking starting at the same instant."""

    def __init__(self, existing_booking_id: str):
        super().__init__(
            "You already have a booking at this time. Cancel it first if you want to change it.",
            code="DUPLICATE_BOOKING",
            details={"existing_booking_id": existing_booking_id},
        )


class SuspiciousDuplicateException(BookingConflictException):
    """A booking at the same instant already uses this email or phone number."""

    def __init__(self, matched_on: str):
        super().__init__(
            "A booking at this time already exists with the same contact details. "
            "Please use different contact information or contact us.",
            code="SUSPICIOUS_DUPLICATE",
            details={"matched_on": matched_on},
        )


class UnpricedServiceException(BusinessRuleException):
    """Raised when a service has no price for the chosen vehicle type."""

    def __init__(self, missing: List[Dict[str, str]]):
        names = ", ".join(
            f"{item.get('service_name') or item['service_id']} "
            f"({item.get('vehicle_type_name') or item['vehicle_type_id']})"
            for item in missing
        )
        super().__init__(
            message=f"No price is configured for: {names}",
            code="UNPRICED_SERVICE",
            details={"missing": missing},
        )


class PersistenceFailureException(ServiceException):
    """Raised when the booking could not be written; nothing was persisted."""

    def __init__(self, operation: str):
        super().__init__(
            message="The booking could not be saved. Please try again.",
            code="PERSISTENCE_FAILURE",
            details={"operation": operation},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues or constraint violations
    that the service layer needs to translate.
    """
