"""
Booking validators.

Validators for request structure and for the constraints that must hold
before (and inside) the booking transactions.

Validators:
- validate_booking_request: Required fields and HH:MM / YYYY-MM-DD formats
- ensure_slot_free: Exact chair/date/time match against scheduled appointments
- resolve_booking_references: Branch, chair and service ownership
"""

from booking.validators.booking_validators import (
    BookingRequest,
    validate_booking_request,
)
from booking.validators.transaction_validators import (
    BookingReferences,
    ensure_slot_free,
    resolve_booking_references,
)

__all__ = [
    "BookingRequest",
    "BookingReferences",
    "validate_booking_request",
    "ensure_slot_free",
    "resolve_booking_references",
]
