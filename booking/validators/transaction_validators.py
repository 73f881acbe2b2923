"""
Transaction Validators for the booking guard.

Checks that run INSIDE the booking/reschedule transaction, on the caller's
session, so that the check and the write commit or roll back together.

Validators:
- ensure_slot_free: Exact (chair, date, time) match against scheduled rows
- resolve_booking_references: Branch/chair/service exist and share a tenant
- is_serialization_failure: Recognize PostgreSQL SERIALIZABLE aborts
"""

import logging
from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import Appointment, AppointmentStatus, Branch, Chair, Service
from shared.exceptions import InvalidReferenceError, SlotTakenError

logger = logging.getLogger(__name__)

# SQLSTATE for serialization_failure
SERIALIZATION_FAILURE = "40001"


@dataclass(frozen=True)
class BookingReferences:
    """The rows a new appointment points at, resolved and ownership-checked."""

    tenant_id: UUID
    branch: Branch
    chair: Chair
    service: Service


async def ensure_slot_free(
    session: AsyncSession,
    chair_id: UUID,
    appointment_date: date,
    appointment_time: str,
    exclude_appointment_id: UUID | None = None,
) -> None:
    """
    Fail if a scheduled appointment already holds this exact chair/date/time.

    This is an exact-match check, not an interval-overlap check: the caller
    picked a time produced by the slot generator (which already excludes
    overlapping intervals), so the guard only needs to stop a second client
    claiming the identical slot between slot generation and booking.

    Args:
        session: Session with an active transaction
        chair_id: Chair UUID
        appointment_date: Calendar date
        appointment_time: Normalized HH:MM
        exclude_appointment_id: Ignore this appointment (rescheduling itself)

    Raises:
        SlotTakenError: If the slot is held

    Notes:
        - Uses SELECT FOR UPDATE on PostgreSQL (ignored by SQLite)
        - The partial unique index on appointments is the backstop if two
          transactions both pass this check
    """
    stmt = (
        select(Appointment.id)
        .where(Appointment.chair_id == chair_id)
        .where(Appointment.appointment_date == appointment_date)
        .where(Appointment.appointment_time == appointment_time)
        .where(Appointment.status == AppointmentStatus.SCHEDULED)
        .with_for_update()
    )
    if exclude_appointment_id is not None:
        stmt = stmt.where(Appointment.id != exclude_appointment_id)

    conflict_id = (await session.execute(stmt)).scalars().first()

    if conflict_id is not None:
        logger.warning(
            f"Slot taken: {appointment_date} {appointment_time}",
            extra={"chair_id": chair_id, "appointment_id": conflict_id},
        )
        raise SlotTakenError(
            details={
                "chair_id": str(chair_id),
                "date": appointment_date.isoformat(),
                "time": appointment_time,
                "conflicting_appointment_id": str(conflict_id),
            }
        )


async def resolve_booking_references(
    session: AsyncSession,
    tenant_id: UUID | None,
    branch_id: UUID,
    chair_id: UUID,
    service_id: UUID,
) -> BookingReferences:
    """
    Resolve and ownership-check the branch, chair and service of a booking.

    Authenticated (staff) calls pass ``tenant_id`` and the branch must belong
    to it. Public calls pass None and the tenant is derived from the branch,
    since the public link carries no tenant context.

    Raises:
        InvalidReferenceError: Branch missing or owned by another tenant, chair
            not in that branch, or service not offered by that tenant
    """
    branch = (
        await session.execute(select(Branch).where(Branch.id == branch_id))
    ).scalar_one_or_none()

    if branch is None or (tenant_id is not None and branch.tenant_id != tenant_id):
        raise InvalidReferenceError("Sucursal no válida", details={"branch_id": str(branch_id)})

    resolved_tenant = branch.tenant_id

    chair = (
        await session.execute(
            select(Chair).where(Chair.id == chair_id, Chair.branch_id == branch.id)
        )
    ).scalar_one_or_none()
    if chair is None:
        raise InvalidReferenceError("Silla no válida", details={"chair_id": str(chair_id)})

    service = (
        await session.execute(
            select(Service).where(Service.id == service_id, Service.tenant_id == resolved_tenant)
        )
    ).scalar_one_or_none()
    if service is None:
        raise InvalidReferenceError("Servicio no válido", details={"service_id": str(service_id)})

    return BookingReferences(
        tenant_id=resolved_tenant,
        branch=branch,
        chair=chair,
        service=service,
    )


def is_serialization_failure(exc: DBAPIError) -> bool:
    """True when PostgreSQL aborted the transaction under SERIALIZABLE isolation."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code == SERIALIZATION_FAILURE
