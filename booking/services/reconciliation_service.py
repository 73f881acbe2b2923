"""
Reconciliation policy - Detect appointments left in "scheduled" after they ended.

Staff are expected to mark every appointment completed or no-show. An
appointment still scheduled more than RECONCILIATION_GRACE_MINUTES (15) past
its computed end time is eligible for reconciliation. This module only
evaluates the rule; it never transitions status. The reconciliation worker
flags eligible appointments on the staff board.
"""

import logging
from datetime import datetime, timedelta
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import and_, select
from sqlalchemy.orm import selectinload

from booking.services.availability_service import effective_duration
from database.connection import get_async_session
from database.models import Appointment, AppointmentStatus
from shared.config import get_settings
from shared.time_utils import parse_hhmm

logger = logging.getLogger(__name__)


def appointment_end(appointment: Appointment, tz: ZoneInfo) -> datetime:
    """Local end timestamp: date + start time + service duration (30 if unset)."""
    start_minutes = parse_hhmm(appointment.appointment_time)
    duration = effective_duration(appointment.service.duration if appointment.service else None)
    midnight = datetime.combine(appointment.appointment_date, datetime.min.time(), tzinfo=tz)
    return midnight + timedelta(minutes=start_minutes + duration)


def is_overdue(
    appointment: Appointment,
    now: datetime,
    grace_minutes: int = 15,
) -> bool:
    """
    True if a scheduled appointment ended more than ``grace_minutes`` ago.

    ``now`` must be timezone-aware; the appointment is read in now's zone.
    """
    if appointment.status != AppointmentStatus.SCHEDULED:
        return False
    end = appointment_end(appointment, now.tzinfo)
    return now > end + timedelta(minutes=grace_minutes)


async def find_overdue_appointments(
    now: datetime | None = None,
    tenant_id: UUID | None = None,
) -> list[Appointment]:
    """
    Scheduled appointments eligible for reconciliation, oldest first.

    Args:
        now: Current time (defaults to now in settings.TIMEZONE)
        tenant_id: Restrict to one tenant, or all tenants if None

    Returns:
        Appointments with service, chair and branch loaded
    """
    settings = get_settings()
    now = now or datetime.now(ZoneInfo(settings.TIMEZONE))

    conditions = [
        Appointment.status == AppointmentStatus.SCHEDULED,
        Appointment.appointment_date <= now.date(),
    ]
    if tenant_id is not None:
        conditions.append(Appointment.tenant_id == tenant_id)

    async with get_async_session() as session:
        result = await session.execute(
            select(Appointment)
            .options(
                selectinload(Appointment.service),
                selectinload(Appointment.chair),
                selectinload(Appointment.branch),
            )
            .where(and_(*conditions))
            .order_by(Appointment.appointment_date.asc(), Appointment.appointment_time.asc())
        )
        candidates = list(result.scalars().all())

    overdue = []
    for appointment in candidates:
        try:
            if is_overdue(appointment, now, settings.RECONCILIATION_GRACE_MINUTES):
                overdue.append(appointment)
        except ValueError:
            logger.error(
                f"Skipping appointment with malformed time {appointment.appointment_time!r}",
                extra={"appointment_id": appointment.id},
            )

    return overdue
