"""
DB-First Availability Service.

Computes which start times are bookable for a {branch, chair, service, date}.
The database is the single source of truth: the branch row supplies the
schedule, the service row the duration, and the appointments table the
scheduled bookings that block time on the chair.

Architecture:
- generate_slots() is a pure function over a parsed BranchSchedule and the
  chair's booked intervals (no I/O, trivially testable)
- get_available_slots() loads the inputs in one read-only session and calls it
- Reads take no locks; the booking guard re-checks at write time

Usage:
    from booking.services.availability_service import get_available_slots

    slots = await get_available_slots(
        branch_id=uuid,
        chair_id=uuid,
        service_id=uuid,
        target_date="2025-11-17",
        is_public_caller=True,
    )
    # [{"time": "09:00", "display": "09:00", "available": True}, ...]
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, TypedDict
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from booking.validators.booking_validators import coerce_uuid, parse_request_date
from database.connection import get_async_session
from database.models import Appointment, AppointmentStatus, Branch, Chair, Service
from shared.config import get_settings
from shared.exceptions import InvalidConfigurationError, NotFoundError
from shared.time_utils import (
    DAY_NAMES_EN,
    ceil_to_step,
    day_index,
    format_minutes,
    intervals_overlap,
    parse_hhmm,
)

logger = logging.getLogger(__name__)


class TimeSlot(TypedDict):
    """A candidate start time. Produced fresh on every call, never stored."""

    time: str
    display: str
    available: bool


@dataclass(frozen=True)
class BookedInterval:
    """A scheduled appointment's occupied [start, end) in minutes since midnight."""

    start: int
    end: int


@dataclass(frozen=True)
class BranchSchedule:
    """
    Parsed, validated schedule of a branch.

    Invariants (checked on construction):
    - open < close
    - lunch_start and lunch_end are both set or both None
    - if set, lunch_start < lunch_end and the window lies within [open, close)
    """

    work_days: frozenset[int]
    open_minutes: int
    close_minutes: int
    lunch_start: Optional[int] = None
    lunch_end: Optional[int] = None

    @classmethod
    def from_config(
        cls,
        work_days: Iterable[str] | None,
        start_time: str,
        end_time: str,
        lunch_start: str | None = None,
        lunch_end: str | None = None,
    ) -> "BranchSchedule":
        """
        Build a schedule from stored branch fields.

        Raises:
            InvalidConfigurationError: On malformed times, unknown day names,
                or violated schedule invariants
        """
        try:
            open_minutes = parse_hhmm(start_time)
            close_minutes = parse_hhmm(end_time)
            lunch_start_minutes = parse_hhmm(lunch_start) if lunch_start else None
            lunch_end_minutes = parse_hhmm(lunch_end) if lunch_end else None
        except ValueError as e:
            raise InvalidConfigurationError(
                f"Horario de sucursal inválido: {e}",
                details={"start_time": start_time, "end_time": end_time,
                         "lunch_start": lunch_start, "lunch_end": lunch_end},
            ) from e

        days: set[int] = set()
        for name in work_days or []:
            idx = day_index(name)
            if idx is None:
                raise InvalidConfigurationError(
                    f"Día laboral desconocido: {name!r}",
                    details={"work_days": list(work_days or [])},
                )
            days.add(idx)

        if open_minutes >= close_minutes:
            raise InvalidConfigurationError(
                "La hora de apertura debe ser anterior a la de cierre",
                details={"start_time": start_time, "end_time": end_time},
            )

        if (lunch_start_minutes is None) != (lunch_end_minutes is None):
            raise InvalidConfigurationError(
                "El horario de almuerzo necesita inicio y fin",
                details={"lunch_start": lunch_start, "lunch_end": lunch_end},
            )

        if lunch_start_minutes is not None and not (
            open_minutes <= lunch_start_minutes < lunch_end_minutes <= close_minutes
        ):
            raise InvalidConfigurationError(
                "El horario de almuerzo debe estar dentro del horario de la sucursal",
                details={"lunch_start": lunch_start, "lunch_end": lunch_end},
            )

        return cls(
            work_days=frozenset(days),
            open_minutes=open_minutes,
            close_minutes=close_minutes,
            lunch_start=lunch_start_minutes,
            lunch_end=lunch_end_minutes,
        )

    @classmethod
    def from_branch(cls, branch: Branch) -> "BranchSchedule":
        return cls.from_config(
            branch.work_days,
            branch.start_time,
            branch.end_time,
            branch.lunch_start,
            branch.lunch_end,
        )

    def is_work_day(self, target_date: date) -> bool:
        return target_date.weekday() in self.work_days

    def starts_in_lunch(self, minute: int) -> bool:
        """
        True when a slot STARTING at ``minute`` falls in the lunch window.

        Only the start is checked: a slot that begins before lunch and runs
        into it is not excluded here.
        """
        if self.lunch_start is None or self.lunch_end is None:
            return False
        return self.lunch_start <= minute < self.lunch_end


def effective_duration(duration: int | None, default: int | None = None) -> int:
    """Service duration in minutes; unset or non-positive means the default (30)."""
    if default is None:
        default = get_settings().DEFAULT_SERVICE_DURATION
    if duration is None or duration <= 0:
        return default
    return duration


def same_day_floor(
    target_date: date,
    now: datetime,
    lead_minutes: int = 30,
    step_minutes: int = 30,
) -> Optional[int]:
    """
    Earliest offerable start for a same-day public booking.

    ``ceil((now + lead) / step) * step``: at 10:05 the first offer is 11:00,
    at 10:00 it is 10:30. Returns None when ``target_date`` is not today.
    """
    if target_date != now.date():
        return None
    now_minutes = now.hour * 60 + now.minute
    return ceil_to_step(now_minutes + lead_minutes, step_minutes)


def generate_slots(
    schedule: BranchSchedule,
    service_duration: int,
    target_date: date,
    booked: Iterable[BookedInterval],
    floor_minutes: Optional[int] = None,
    step_minutes: int = 30,
    include_unavailable: bool = False,
) -> list[TimeSlot]:
    """
    Compute the ordered candidate start times for one chair on one day.

    Candidates start at the branch's open time and advance by ``step_minutes``
    while ``start + service_duration <= close``. A candidate is offered when:
    - its start is not inside the lunch window (start-only check)
    - its [start, start + duration) does not overlap any booked interval
    - it is not earlier than ``floor_minutes`` (same-day public lead time)

    Args:
        schedule: Parsed branch schedule
        service_duration: Duration in minutes of the requested service
        target_date: Calendar day being booked
        booked: Intervals held by scheduled appointments on this chair/day
        floor_minutes: Earliest start to offer, or None for no floor
        step_minutes: Spacing between candidates
        include_unavailable: Also return rejected candidates with available=False

    Returns:
        Slots ordered earliest to latest. Empty when the day is not a work day.
    """
    if not schedule.is_work_day(target_date):
        return []

    duration = effective_duration(service_duration)
    booked = list(booked)
    slots: list[TimeSlot] = []

    cursor = schedule.open_minutes
    while cursor + duration <= schedule.close_minutes:
        is_lunch = schedule.starts_in_lunch(cursor)
        has_conflict = any(
            intervals_overlap(cursor, cursor + duration, b.start, b.end) for b in booked
        )
        before_floor = floor_minutes is not None and cursor < floor_minutes

        available = not (is_lunch or has_conflict or before_floor)
        if available or include_unavailable:
            label = format_minutes(cursor)
            slots.append({"time": label, "display": label, "available": available})

        cursor += step_minutes

    return slots


async def load_booked_intervals(
    session: AsyncSession,
    chair_id: UUID,
    target_date: date,
) -> list[BookedInterval]:
    """
    Read the scheduled appointments of a chair on a day as minute intervals.

    Each appointment's duration comes from its service (30 if unset).
    """
    result = await session.execute(
        select(Appointment.appointment_time, Service.duration)
        .join(Service, Appointment.service_id == Service.id)
        .where(
            and_(
                Appointment.chair_id == chair_id,
                Appointment.appointment_date == target_date,
                Appointment.status == AppointmentStatus.SCHEDULED,
            )
        )
    )

    intervals = []
    for appointment_time, duration in result.all():
        try:
            start = parse_hhmm(appointment_time)
        except ValueError:
            logger.error(
                f"Skipping appointment with malformed time {appointment_time!r}",
                extra={"chair_id": chair_id},
            )
            continue
        intervals.append(BookedInterval(start=start, end=start + effective_duration(duration)))

    return intervals


async def get_available_slots(
    branch_id: UUID | str,
    chair_id: UUID | str,
    service_id: UUID | str,
    target_date: date | str,
    *,
    is_public_caller: bool,
    tenant_id: UUID | None = None,
    now: datetime | None = None,
    include_unavailable: bool = False,
    session: AsyncSession | None = None,
) -> list[TimeSlot]:
    """
    Get the bookable start times for a chair, service and date.

    Public callers (the client booking link) get a same-day lead-time floor;
    staff callers do not, so they can record walk-ins after the fact.

    Args:
        branch_id: Branch UUID
        chair_id: Chair UUID (must belong to the branch)
        service_id: Service UUID (must belong to the branch's tenant)
        target_date: Calendar date (date or YYYY-MM-DD)
        is_public_caller: Apply the same-day lead-time floor
        tenant_id: Authenticated tenant; scopes branch and service lookups
        now: Current local time (defaults to now in settings.TIMEZONE)
        include_unavailable: Also return rejected candidates flagged unavailable
        session: Optional existing database session

    Returns:
        Ordered list of {"time", "display", "available"}

    Raises:
        BookingValidationError: Malformed date or ids
        NotFoundError: Branch, chair or service not found (or not owned)
        InvalidConfigurationError: Branch schedule is malformed
    """
    settings = get_settings()
    branch_id = coerce_uuid(branch_id, "branchId")
    chair_id = coerce_uuid(chair_id, "chairId")
    service_id = coerce_uuid(service_id, "serviceId")
    target_date = parse_request_date(target_date)

    async def _compute(sess: AsyncSession) -> list[TimeSlot]:
        branch_stmt = select(Branch).where(Branch.id == branch_id)
        if tenant_id is not None:
            branch_stmt = branch_stmt.where(Branch.tenant_id == tenant_id)
        branch = (await sess.execute(branch_stmt)).scalar_one_or_none()
        if branch is None:
            raise NotFoundError("Sucursal no encontrada", details={"branch_id": str(branch_id)})

        schedule = BranchSchedule.from_branch(branch)

        if not schedule.is_work_day(target_date):
            logger.info(
                f"{target_date} ({DAY_NAMES_EN[target_date.weekday()]}) is not a work day",
                extra={"branch_id": branch_id},
            )
            return []

        service = (
            await sess.execute(
                select(Service).where(
                    Service.id == service_id,
                    Service.tenant_id == branch.tenant_id,
                )
            )
        ).scalar_one_or_none()
        if service is None:
            raise NotFoundError("Servicio no encontrado", details={"service_id": str(service_id)})

        chair = (
            await sess.execute(
                select(Chair).where(Chair.id == chair_id, Chair.branch_id == branch.id)
            )
        ).scalar_one_or_none()
        if chair is None:
            raise NotFoundError("Silla no encontrada", details={"chair_id": str(chair_id)})

        booked = await load_booked_intervals(sess, chair_id, target_date)

        floor = None
        if is_public_caller:
            current = now or datetime.now(ZoneInfo(settings.TIMEZONE))
            floor = same_day_floor(
                target_date,
                current,
                lead_minutes=settings.PUBLIC_LEAD_MINUTES,
                step_minutes=settings.SLOT_STEP_MINUTES,
            )

        slots = generate_slots(
            schedule,
            service.duration,
            target_date,
            booked,
            floor_minutes=floor,
            step_minutes=settings.SLOT_STEP_MINUTES,
            include_unavailable=include_unavailable,
        )

        logger.debug(
            f"Generated {len(slots)} slots for {target_date} "
            f"(booked={len(booked)}, floor={floor}, public={is_public_caller})",
            extra={"branch_id": branch_id, "chair_id": chair_id},
        )
        return slots

    if session is not None:
        return await _compute(session)

    async with get_async_session() as sess:
        return await _compute(sess)
