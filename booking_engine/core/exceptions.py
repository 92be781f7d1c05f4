"""
Booking engine errors.

Each error knows the HTTP status it maps to, so routes can let them propagate and
the application-level handler renders them as structured responses the client can
branch on.
"""

from typing import Any

from fastapi import status


class BookingError(Exception):
    """Base class for all business-rule failures of the booking engine."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "booking_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": self.details}


class SessionNotFoundError(BookingError):
    """Missing, expired and foreign sessions all look the same to the caller."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "session_not_found"

    def __init__(self) -> None:
        super().__init__("Booking session not found or expired")


class InvalidSessionTokenError(BookingError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "invalid_session_token"


class BookingValidationError(BookingError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class IncompleteSessionError(BookingValidationError):
    code = "incomplete_session"

    def __init__(self, missing_fields: list[str]) -> None:
        self.missing_fields = missing_fields
        super().__init__(
            f"Missing required fields: {', '.join(missing_fields)}",
            details={"missing_fields": missing_fields},
        )


class InvalidStepTransitionError(BookingValidationError):
    code = "invalid_step_transition"


class SlotUnavailableError(BookingError):
    """The slot was taken (or closed) between selection and completion."""

    status_code = status.HTTP_409_CONFLICT
    code = "slot_unavailable"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__("Time slot no longer available", details={"reason": reason})


class DependencyError(BookingError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "dependency_failure"
