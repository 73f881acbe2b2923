"""
Typed failures raised by the booking core.

The route layer translates these into user-facing responses; every error
carries a stable ``error_code`` and a ``details`` dict for logging.
"""

from typing import Any


class BookingError(Exception):
    """Base class for all booking-core failures."""

    error_code = "BOOKING_ERROR"
    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details,
        }


class NotFoundError(BookingError):
    """Branch, chair, service or appointment is absent or not owned by the caller."""

    error_code = "NOT_FOUND"
    status_code = 404


class SlotTakenError(BookingError):
    """The requested chair/date/time is already held by a scheduled appointment."""

    error_code = "SLOT_TAKEN"
    status_code = 409

    def __init__(self, message: str = "Este horario ya no está disponible", details: dict[str, Any] | None = None):
        super().__init__(message, details)


class InvalidConfigurationError(BookingError):
    """Persisted schedule data is malformed."""

    error_code = "INVALID_CONFIGURATION"
    status_code = 500


class InvalidReferenceError(BookingError):
    """Branch, chair or service does not exist or belongs to another tenant."""

    error_code = "INVALID_REFERENCE"
    status_code = 403


class BookingValidationError(BookingError):
    """Missing or malformed request fields."""

    error_code = "VALIDATION_ERROR"
    status_code = 400
