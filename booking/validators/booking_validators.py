"""
Booking request validation.

Structural checks on the fields a caller sends before any database work:
- Required fields present and non-blank
- Ids are UUIDs, dates are YYYY-MM-DD, times are HH:MM (24h)

Everything raises BookingValidationError with the offending fields in details.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any
from uuid import UUID

from shared.exceptions import BookingValidationError
from shared.time_utils import normalize_hhmm, parse_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingRequest:
    """A validated, normalized booking request."""

    branch_id: UUID
    chair_id: UUID
    service_id: UUID
    client_name: str
    client_phone: str
    appointment_date: date
    appointment_time: str


def coerce_uuid(value: Any, field_name: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError) as e:
        raise BookingValidationError(
            f"Identificador inválido: {field_name}",
            details={"field": field_name, "value": str(value)},
        ) from e


def parse_request_date(value: Any, field_name: str = "date") -> date:
    try:
        return parse_date(value)
    except (TypeError, ValueError, AttributeError) as e:
        raise BookingValidationError(
            "Fecha inválida, se espera YYYY-MM-DD",
            details={"field": field_name, "value": str(value)},
        ) from e


def parse_request_time(value: Any, field_name: str = "time") -> str:
    try:
        return normalize_hhmm(value)
    except (TypeError, ValueError) as e:
        raise BookingValidationError(
            "Hora inválida, se espera HH:MM",
            details={"field": field_name, "value": str(value)},
        ) from e


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def require_fields(fields: dict[str, Any], message: str = "Faltan datos requeridos") -> None:
    """Raise BookingValidationError listing every blank entry of ``fields``."""
    missing = [name for name, value in fields.items() if _is_blank(value)]
    if missing:
        logger.warning(f"Request missing fields: {missing}")
        raise BookingValidationError(message, details={"missing_fields": missing})


def validate_booking_request(
    branch_id: Any,
    chair_id: Any,
    service_id: Any,
    client_name: Any,
    client_phone: Any,
    appointment_date: Any,
    appointment_time: Any,
) -> BookingRequest:
    """
    Validate and normalize the fields of a booking.

    Example:
        >>> validate_booking_request(b, c, s, "Juan", "5512345678", "2025-11-17", "09:30:00")
        BookingRequest(..., appointment_date=date(2025, 11, 17), appointment_time="09:30")

    Raises:
        BookingValidationError: Lists every missing field at once, or the first
            malformed one
    """
    require_fields(
        {
            "branchId": branch_id,
            "chairId": chair_id,
            "serviceId": service_id,
            "clientName": client_name,
            "clientPhone": client_phone,
            "date": appointment_date,
            "time": appointment_time,
        }
    )

    return BookingRequest(
        branch_id=coerce_uuid(branch_id, "branchId"),
        chair_id=coerce_uuid(chair_id, "chairId"),
        service_id=coerce_uuid(service_id, "serviceId"),
        client_name=str(client_name).strip(),
        client_phone=str(client_phone).strip(),
        appointment_date=parse_request_date(appointment_date),
        appointment_time=parse_request_time(appointment_time),
    )
