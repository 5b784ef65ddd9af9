"""
Domain exceptions for the booking core.

Each error carries a stable machine-readable ``code`` and a human message.
Routers convert them with ``to_http_exception()``: not-found kinds become 404,
conflicts 409, invalid state or input 400.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: str = "INTERNAL_ERROR"

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
    """Raised when a business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDATION_ERROR"


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


class ConflictException(DomainException):
    """Raised when the request conflicts with the current state of a resource."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"


class ForbiddenException(DomainException):
    """Raised when the actor lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"


# Booking core errors


class ServiceNotFound(NotFoundException):
    default_code = "SERVICE_NOT_FOUND"

    def __init__(self, service_id: str) -> None:
        super().__init__("Service not found", details={"service_id": service_id})


class SlotNotFound(NotFoundException):
    default_code = "SLOT_NOT_FOUND"

    def __init__(self, slot_id: str) -> None:
        super().__init__("Slot not found", details={"slot_id": slot_id})


class BookingNotFound(NotFoundException):
    default_code = "BOOKING_NOT_FOUND"

    def __init__(self, booking_id: str) -> None:
        super().__init__("Booking not found", details={"booking_id": booking_id})


class ProfileNotFound(NotFoundException):
    default_code = "PROFILE_NOT_FOUND"

    def __init__(self, user_id: str) -> None:
        super().__init__("Provider profile not found", details={"user_id": user_id})


class SlotProviderMismatch(ValidationException):
    default_code = "SLOT_PROVIDER_MISMATCH"

    def __init__(self, slot_id: str, service_id: str) -> None:
        super().__init__(
            "Slot does not belong to this service's provider",
            details={"slot_id": slot_id, "service_id": service_id},
        )


class SlotAlreadyBooked(ConflictException):
    """The slot was already claimed. Retrying with a different slot is safe."""

    default_code = "SLOT_ALREADY_BOOKED"

    def __init__(self, slot_id: str) -> None:
        super().__init__("This slot is already booked", details={"slot_id": slot_id})


class SlotLocked(ConflictException):
    default_code = "SLOT_LOCKED"

    def __init__(self, slot_id: str) -> None:
        super().__init__(
            "Booked slots cannot be modified or deleted",
            details={"slot_id": slot_id},
        )


class InvalidBookingStatus(ValidationException):
    default_code = "INVALID_BOOKING_STATUS"

    def __init__(self, booking_id: str, current_status: str, action: str) -> None:
        super().__init__(
            f"Cannot {action.lower()} a booking that is {current_status}",
            details={"booking_id": booking_id, "status": current_status, "action": action},
        )


class CancellationWindowPassed(ValidationException):
    default_code = "CANCELLATION_WINDOW_PASSED"

    def __init__(self, window_minutes: int) -> None:
        super().__init__(
            f"Cancellations must be made at least {window_minutes} minutes before the slot",
            details={"window_minutes": window_minutes},
        )


class InvalidTimeRange(ValidationException):
    default_code = "INVALID_TIME_RANGE"

    def __init__(self, message: str = "End time must be after start time") -> None:
        super().__init__(message)


class NoSlotsGenerated(ValidationException):
    default_code = "NO_SLOTS_GENERATED"

    def __init__(self, slot_duration_minutes: int) -> None:
        super().__init__(
            f"Time window is shorter than one {slot_duration_minutes}-minute slot",
            details={"slot_duration_minutes": slot_duration_minutes},
        )


class Forbidden(ForbiddenException):
    def __init__(self, message: str = "You are not allowed to perform this action") -> None:
        super().__init__(message)
