"""
Public booking endpoints (no authentication).

Reached from the per-chair booking link the shop shares with its clients:
- GET    /public/available-times - Bookable start times (same-day lead time applies)
- POST   /public/book - Create an appointment
- GET    /public/appointments - A client's scheduled appointments on the chair
- PATCH  /public/reschedule/{appointment_id} - Move a scheduled appointment
- DELETE /public/cancel/{appointment_id} - Cancel a scheduled appointment

The tenant is always derived from the branch; typed booking errors are
translated to HTTP responses by the handler in api.main.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Query, status

from api.dependencies import Notifier
from api.models.booking import (
    AppointmentResponse,
    BookingPayload,
    CancellationResponse,
    ReschedulePayload,
    TimeSlotResponse,
)
from booking.services.appointment_query_service import (
    list_client_appointments,
    serialize_appointment,
)
from booking.services.availability_service import get_available_slots
from booking.transactions import (
    BookingTransaction,
    CancellationTransaction,
    RescheduleTransaction,
)
from booking.validators.booking_validators import require_fields

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/public", tags=["public"])


@router.get("/available-times", response_model=list[TimeSlotResponse])
async def public_available_times(
    date: Annotated[str | None, Query()] = None,
    branch_id: Annotated[str | None, Query(alias="branchId")] = None,
    chair_id: Annotated[str | None, Query(alias="chairId")] = None,
    service_id: Annotated[str | None, Query(alias="serviceId")] = None,
):
    """Bookable start times for a chair and service on a date."""
    require_fields(
        {"date": date, "branchId": branch_id, "chairId": chair_id, "serviceId": service_id},
        message="Faltan parámetros requeridos",
    )
    return await get_available_slots(
        branch_id,
        chair_id,
        service_id,
        date,
        is_public_caller=True,
    )


@router.post("/book", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def public_book(payload: BookingPayload, notifier: Notifier):
    appointment = await BookingTransaction.execute(
        tenant_id=None,
        branch_id=payload.branch_id,
        chair_id=payload.chair_id,
        service_id=payload.service_id,
        client_name=payload.client_name,
        client_phone=payload.client_phone,
        appointment_date=payload.date,
        appointment_time=payload.time,
        notifier=notifier,
    )
    return AppointmentResponse(
        message="Cita reservada correctamente",
        appointment=serialize_appointment(appointment, with_details=False),
    )


@router.get("/appointments")
async def public_client_appointments(
    phone: Annotated[str | None, Query()] = None,
    branch_id: Annotated[str | None, Query(alias="branchId")] = None,
    chair_id: Annotated[str | None, Query(alias="chairId")] = None,
):
    """Scheduled appointments a phone number holds on this chair."""
    require_fields(
        {"phone": phone, "branchId": branch_id, "chairId": chair_id},
        message="Faltan parámetros requeridos",
    )
    return await list_client_appointments(phone, branch_id, chair_id)


@router.patch("/reschedule/{appointment_id}", response_model=AppointmentResponse)
async def public_reschedule(
    appointment_id: str,
    payload: ReschedulePayload,
    notifier: Notifier,
):
    require_fields({"date": payload.date, "time": payload.time})
    appointment = await RescheduleTransaction.execute(
        appointment_id,
        payload.date,
        payload.time,
        notifier=notifier,
    )
    return AppointmentResponse(
        message="Cita reprogramada correctamente",
        appointment=serialize_appointment(appointment),
    )


@router.delete("/cancel/{appointment_id}", response_model=CancellationResponse)
async def public_cancel(appointment_id: str, notifier: Notifier):
    return await CancellationTransaction.execute(appointment_id, notifier=notifier)
