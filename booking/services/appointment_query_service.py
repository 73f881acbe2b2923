"""
Appointment query service - Read-only listings of the appointment ledger.

Three consumers:
- Staff daily board: every appointment of a tenant, optionally for one date
  and/or branch, with branch name, chair number and service name resolved
- Client "my appointments": the scheduled appointments a phone number holds
  on one chair, as reached from the public booking link
- Staff metrics: per-branch daily counters and revenue of completed services

Architecture:
- Read-only, no locks (the board may be momentarily stale)
- Rows are serialized to plain dicts in the JSON shape the clients expect
"""

import logging
from datetime import date, datetime
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import and_, case, func, select
from sqlalchemy.orm import selectinload

from booking.validators.booking_validators import coerce_uuid, parse_request_date
from database.connection import get_async_session
from database.models import Appointment, AppointmentStatus, Service
from shared.config import get_settings
from shared.exceptions import BookingValidationError

logger = logging.getLogger(__name__)

# Spanish weekday and month names for date formatting
WEEKDAYS_ES = ["lunes", "martes", "miércoles", "jueves", "viernes", "sábado", "domingo"]
MONTHS_ES = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre"
]


def format_date_spanish(day: date) -> str:
    """Format a date as a Spanish string ("lunes 17 de noviembre")."""
    return f"{WEEKDAYS_ES[day.weekday()]} {day.day} de {MONTHS_ES[day.month - 1]}"


def serialize_appointment(appointment: Appointment, with_details: bool = True) -> dict[str, Any]:
    """
    Render an appointment for the API.

    With ``with_details`` the service, chair and branch relationships must be
    loaded; without it only the appointment's own columns are read.
    """
    data = {
        "id": str(appointment.id),
        "tenantId": str(appointment.tenant_id),
        "branchId": str(appointment.branch_id),
        "chairId": str(appointment.chair_id),
        "serviceId": str(appointment.service_id),
        "clientName": appointment.client_name,
        "clientPhone": appointment.client_phone,
        "date": appointment.appointment_date.isoformat(),
        "time": appointment.appointment_time,
        "displayDate": format_date_spanish(appointment.appointment_date),
        "status": appointment.status.value,
        "createdAt": appointment.created_at.isoformat() if appointment.created_at else None,
    }
    if with_details:
        data.update(
            {
                "branchName": appointment.branch.name if appointment.branch else None,
                "chairNumber": appointment.chair.chair_number if appointment.chair else None,
                "serviceName": appointment.service.name if appointment.service else None,
                "serviceDuration": appointment.service.duration if appointment.service else None,
            }
        )
    return data


def _with_details():
    return select(Appointment).options(
        selectinload(Appointment.service),
        selectinload(Appointment.chair),
        selectinload(Appointment.branch),
    )


async def list_appointments(
    tenant_id: UUID,
    appointment_date: date | str | None = None,
    branch_id: UUID | str | None = None,
) -> list[dict[str, Any]]:
    """
    Staff board listing for a tenant.

    Args:
        tenant_id: Authenticated tenant
        appointment_date: Only this day (YYYY-MM-DD), or every day if None
        branch_id: Only this branch, or every branch if None

    Returns:
        Appointments of any status, newest date first, earliest time first
        within a day
    """
    conditions = [Appointment.tenant_id == tenant_id]
    if appointment_date:
        conditions.append(Appointment.appointment_date == parse_request_date(appointment_date))
    if branch_id:
        conditions.append(Appointment.branch_id == coerce_uuid(branch_id, "branch"))

    async with get_async_session() as session:
        result = await session.execute(
            _with_details()
            .where(and_(*conditions))
            .order_by(Appointment.appointment_date.desc(), Appointment.appointment_time.asc())
        )
        appointments = list(result.scalars().all())

    logger.debug(
        f"Listed {len(appointments)} appointments (date={appointment_date}, branch={branch_id})",
        extra={"tenant_id": tenant_id},
    )
    return [serialize_appointment(a) for a in appointments]


async def list_client_appointments(
    phone: str,
    branch_id: UUID | str,
    chair_id: UUID | str,
) -> list[dict[str, Any]]:
    """
    Scheduled appointments of a client phone on one chair, soonest first.

    Raises:
        BookingValidationError: Phone, branch or chair missing or malformed
    """
    if not phone or not str(phone).strip():
        raise BookingValidationError("Teléfono requerido", details={"missing_fields": ["phone"]})

    branch_uuid = coerce_uuid(branch_id, "branchId")
    chair_uuid = coerce_uuid(chair_id, "chairId")

    async with get_async_session() as session:
        result = await session.execute(
            _with_details()
            .where(
                and_(
                    Appointment.client_phone == str(phone).strip(),
                    Appointment.branch_id == branch_uuid,
                    Appointment.chair_id == chair_uuid,
                    Appointment.status == AppointmentStatus.SCHEDULED,
                )
            )
            .order_by(Appointment.appointment_date.asc(), Appointment.appointment_time.asc())
        )
        appointments = list(result.scalars().all())

    logger.info(
        f"Client lookup returned {len(appointments)} appointments",
        extra={"branch_id": branch_uuid, "chair_id": chair_uuid},
    )
    return [serialize_appointment(a) for a in appointments]


async def daily_metrics(
    tenant_id: UUID,
    branch_id: UUID | str,
    appointment_date: date | str | None = None,
) -> dict[str, Any]:
    """
    Staff board counters for one branch and day.

    Args:
        tenant_id: Authenticated tenant
        branch_id: Branch whose appointments are counted
        appointment_date: Day to count (YYYY-MM-DD); today in TIMEZONE if None

    Returns:
        dict: todayAppts (every status), completed, noShows and revenue (sum
        of the prices of completed appointments' services)
    """
    branch_uuid = coerce_uuid(branch_id, "branch")
    if appointment_date:
        target_date = parse_request_date(appointment_date)
    else:
        target_date = datetime.now(ZoneInfo(get_settings().TIMEZONE)).date()

    is_completed = Appointment.status == AppointmentStatus.COMPLETED
    stmt = (
        select(
            func.count(Appointment.id),
            func.coalesce(func.sum(case((is_completed, 1), else_=0)), 0),
            func.coalesce(
                func.sum(case((Appointment.status == AppointmentStatus.NO_SHOW, 1), else_=0)), 0
            ),
            func.coalesce(func.sum(case((is_completed, Service.price), else_=0)), 0),
        )
        .select_from(Appointment)
        .outerjoin(Service, Appointment.service_id == Service.id)
        .where(
            and_(
                Appointment.tenant_id == tenant_id,
                Appointment.branch_id == branch_uuid,
                Appointment.appointment_date == target_date,
            )
        )
    )

    async with get_async_session() as session:
        total, completed, no_shows, revenue = (await session.execute(stmt)).one()

    metrics = {
        "date": target_date.isoformat(),
        "todayAppts": int(total),
        "completed": int(completed),
        "noShows": int(no_shows),
        "revenue": float(revenue or 0),
    }
    logger.debug(f"Metrics: {metrics}", extra={"tenant_id": tenant_id, "branch_id": branch_uuid})
    return metrics
