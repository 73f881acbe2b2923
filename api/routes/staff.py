"""
Staff API Endpoints (Bearer JWT, tenant-scoped)

Provides REST endpoints for the staff daily board:
- GET    /api/available-times - Bookable start times (no same-day lead time)
- GET    /api/appointments - Appointments of the tenant by date and branch
- POST   /api/appointments - Book on behalf of a walk-in or phone client
- PATCH  /api/appointments/{id} - Change status and/or date/time
- DELETE /api/appointments/{id} - Delete an appointment
- GET    /api/metrics - Daily counters and revenue of a branch
- GET    /api/notifications - Pending board notifications (polling fallback)
- POST   /api/notifications/mark-read - Clear pending notifications
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Query, status

from api.dependencies import CurrentTenant, Notifier
from api.models.booking import (
    AppointmentResponse,
    AppointmentUpdatePayload,
    BookingPayload,
    CancellationResponse,
    NotificationsResponse,
    TimeSlotResponse,
)
from booking.services.appointment_query_service import (
    daily_metrics,
    list_appointments,
    serialize_appointment,
)
from booking.services.availability_service import get_available_slots
from booking.transactions import (
    BookingTransaction,
    CancellationTransaction,
    update_appointment,
)
from booking.validators.booking_validators import require_fields

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["staff"])


# =============================================================================
# Availability
# =============================================================================


@router.get("/available-times", response_model=list[TimeSlotResponse])
async def staff_available_times(
    tenant_id: CurrentTenant,
    date: Annotated[str | None, Query()] = None,
    branch_id: Annotated[str | None, Query(alias="branchId")] = None,
    chair_id: Annotated[str | None, Query(alias="chairId")] = None,
    service_id: Annotated[str | None, Query(alias="serviceId")] = None,
    include_unavailable: Annotated[bool, Query(alias="includeUnavailable")] = False,
):
    require_fields(
        {"date": date, "branchId": branch_id, "chairId": chair_id, "serviceId": service_id},
        message="Faltan parámetros requeridos",
    )
    return await get_available_slots(
        branch_id,
        chair_id,
        service_id,
        date,
        is_public_caller=False,
        tenant_id=tenant_id,
        include_unavailable=include_unavailable,
    )


# =============================================================================
# Appointments
# =============================================================================


@router.get("/appointments")
async def staff_list_appointments(
    tenant_id: CurrentTenant,
    date: Annotated[str | None, Query()] = None,
    branch: Annotated[str | None, Query()] = None,
):
    return await list_appointments(tenant_id, appointment_date=date, branch_id=branch)


@router.post("/appointments", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def staff_create_appointment(
    payload: BookingPayload,
    tenant_id: CurrentTenant,
    notifier: Notifier,
):
    appointment = await BookingTransaction.execute(
        tenant_id=tenant_id,
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
        message="Cita creada correctamente",
        appointment=serialize_appointment(appointment, with_details=False),
    )


@router.patch("/appointments/{appointment_id}", response_model=AppointmentResponse)
async def staff_update_appointment(
    appointment_id: str,
    payload: AppointmentUpdatePayload,
    tenant_id: CurrentTenant,
    notifier: Notifier,
):
    """
    Update an appointment.

    A new date/time (both required together) and a status change are
    validated up front and committed in one transaction, move first.
    """
    appointment = await update_appointment(
        appointment_id,
        tenant_id,
        status=payload.status,
        new_date=payload.date,
        new_time=payload.time,
        notifier=notifier,
    )
    return AppointmentResponse(
        message="Cita actualizada correctamente",
        appointment=serialize_appointment(appointment),
    )


@router.delete("/appointments/{appointment_id}", response_model=CancellationResponse)
async def staff_delete_appointment(
    appointment_id: str,
    tenant_id: CurrentTenant,
    notifier: Notifier,
):
    return await CancellationTransaction.execute(
        appointment_id,
        tenant_id=tenant_id,
        notifier=notifier,
    )


# =============================================================================
# Metrics
# =============================================================================


@router.get("/metrics")
async def staff_metrics(
    tenant_id: CurrentTenant,
    branch: Annotated[str | None, Query()] = None,
    date: Annotated[str | None, Query()] = None,
):
    """Appointments, completed, no-shows and revenue of a branch for one day (default today)."""
    require_fields({"branch": branch}, message="Faltan parámetros requeridos")
    return await daily_metrics(tenant_id, branch, date)


# =============================================================================
# Notifications (polling fallback)
# =============================================================================


@router.get("/notifications", response_model=NotificationsResponse)
async def staff_notifications(tenant_id: CurrentTenant, notifier: Notifier):
    items = notifier.get_pending(tenant_id) if notifier else []
    return NotificationsResponse(items=items, total=len(items))


@router.post("/notifications/mark-read")
async def staff_mark_notifications_read(tenant_id: CurrentTenant, notifier: Notifier):
    cleared = notifier.mark_read(tenant_id) if notifier else 0
    logger.info(f"Marked {cleared} notifications read", extra={"tenant_id": tenant_id})
    return {"success": True, "cleared": cleared}
