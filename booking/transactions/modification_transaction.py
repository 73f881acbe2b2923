"""
Appointment modification - reschedule and staff edits (move and/or status).

Both operations update the appointment row in place inside one transaction
and notify the staff board after commit. Moving an appointment onto a slot
(reschedule, or returning a completed/no-show appointment to scheduled) goes
through the same exact-slot check and unique-index backstop as booking.
"""

import logging
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import select, text
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from booking.services.notification_service import (
    NotificationSink,
    NotificationType,
    build_appointment_event,
    dispatch_notification,
)
from booking.validators.booking_validators import (
    coerce_uuid,
    parse_request_date,
    parse_request_time,
    require_fields,
)
from booking.validators.transaction_validators import ensure_slot_free, is_serialization_failure
from database.connection import get_async_session, is_postgres
from database.models import Appointment, AppointmentStatus
from shared.exceptions import (
    BookingError,
    BookingValidationError,
    NotFoundError,
    SlotTakenError,
)

logger = logging.getLogger(__name__)


async def load_appointment_for_update(
    session: AsyncSession,
    appointment_id: UUID,
    tenant_id: UUID | None = None,
    scheduled_only: bool = False,
) -> Appointment:
    """
    Lock and load an appointment with its service, chair and branch.

    Raises:
        NotFoundError: Missing, owned by another tenant, or (with
            scheduled_only) no longer scheduled
    """
    stmt = (
        select(Appointment)
        .options(
            selectinload(Appointment.service),
            selectinload(Appointment.chair),
            selectinload(Appointment.branch),
        )
        .where(Appointment.id == appointment_id)
        .with_for_update()
    )
    if tenant_id is not None:
        stmt = stmt.where(Appointment.tenant_id == tenant_id)
    if scheduled_only:
        stmt = stmt.where(Appointment.status == AppointmentStatus.SCHEDULED)

    appointment = (await session.execute(stmt)).scalar_one_or_none()
    if appointment is None:
        raise NotFoundError(
            "Cita no encontrada", details={"appointment_id": str(appointment_id)}
        )
    return appointment


def parse_status(value: Any) -> AppointmentStatus:
    if isinstance(value, AppointmentStatus):
        return value
    try:
        return AppointmentStatus(str(value).strip().lower())
    except ValueError as e:
        raise BookingValidationError(
            "Estado inválido",
            details={
                "status": str(value),
                "allowed": [s.value for s in AppointmentStatus],
            },
        ) from e


class RescheduleTransaction:
    """
    Move a scheduled appointment to a new date/time on the same chair.

    The new slot is checked with the appointment itself excluded, so moving
    to a slot it already holds is a no-op rather than a conflict.
    """

    @staticmethod
    async def execute(
        appointment_id: Any,
        new_date: date | str,
        new_time: str,
        *,
        tenant_id: UUID | None = None,
        notifier: NotificationSink | None = None,
    ) -> Appointment:
        """
        Execute the reschedule transaction.

        Args:
            appointment_id: Appointment UUID
            new_date: YYYY-MM-DD
            new_time: HH:MM (24h)
            tenant_id: Staff tenant scope, or None for the public link
            notifier: Optional sink for the staff board notification

        Returns:
            The updated Appointment

        Raises:
            BookingValidationError: Malformed id, date or time
            NotFoundError: Appointment missing, foreign, or not scheduled
            SlotTakenError: The new slot is held by another appointment
        """
        appointment_id = coerce_uuid(appointment_id, "appointmentId")
        target_date = parse_request_date(new_date, "date")
        target_time = parse_request_time(new_time, "time")

        trace_id = f"reschedule_{appointment_id}"
        logger.info(
            f"[{trace_id}] Rescheduling to {target_date} {target_time}",
            extra={"tenant_id": tenant_id, "appointment_id": appointment_id},
        )

        async with get_async_session() as session:
            try:
                if is_postgres(session):
                    await session.execute(text("SET TRANSACTION ISOLATION LEVEL SERIALIZABLE"))

                appointment = await load_appointment_for_update(
                    session, appointment_id, tenant_id, scheduled_only=True
                )
                previous = {
                    "previousDate": appointment.appointment_date.isoformat(),
                    "previousTime": appointment.appointment_time,
                }

                await ensure_slot_free(
                    session,
                    appointment.chair_id,
                    target_date,
                    target_time,
                    exclude_appointment_id=appointment.id,
                )

                appointment.appointment_date = target_date
                appointment.appointment_time = target_time
                await session.flush()
                await session.commit()

            except IntegrityError as e:
                await session.rollback()
                logger.warning(f"[{trace_id}] Lost reschedule race (unique slot index)")
                raise SlotTakenError(
                    details={"date": target_date.isoformat(), "time": target_time}
                ) from e

            except BookingError:
                await session.rollback()
                raise

            except DBAPIError as e:
                await session.rollback()
                if is_serialization_failure(e):
                    raise SlotTakenError(
                        details={"date": target_date.isoformat(), "time": target_time}
                    ) from e
                logger.error(f"[{trace_id}] Database error during reschedule: {e}", exc_info=True)
                raise

            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"[{trace_id}] Database error during reschedule: {e}", exc_info=True)
                raise

        logger.info(
            f"[{trace_id}] Reschedule committed",
            extra={"tenant_id": appointment.tenant_id, "appointment_id": appointment.id},
        )

        await dispatch_notification(
            notifier,
            build_appointment_event(
                NotificationType.APPOINTMENT_RESCHEDULED,
                appointment,
                service_name=appointment.service.name,
                chair_number=appointment.chair.chair_number,
                branch_name=appointment.branch.name,
                action="rescheduled",
                extra=previous,
            ),
            trace_id,
        )

        return appointment


async def update_appointment(
    appointment_id: Any,
    tenant_id: UUID,
    *,
    status: AppointmentStatus | str | None = None,
    new_date: date | str | None = None,
    new_time: str | None = None,
    notifier: NotificationSink | None = None,
) -> Appointment:
    """
    Staff edit of an appointment: a move, a status change, or both.

    Every input is validated before the row is touched, and the move and the
    status change commit together or not at all. The move is applied first
    (scheduled appointments only), then the status.

    Raises:
        BookingValidationError: Nothing to update, unknown status, or a
            malformed id, date or time
        NotFoundError: Appointment missing, owned by another tenant, or not
            scheduled when a move is requested
        SlotTakenError: The target slot is held by another appointment
    """
    appointment_id = coerce_uuid(appointment_id, "appointmentId")
    wants_move = new_date is not None or new_time is not None
    if not wants_move and status is None:
        raise BookingValidationError(
            "Nada que actualizar",
            details={"allowed_fields": ["status", "date", "time"]},
        )

    new_status = parse_status(status) if status is not None else None
    if wants_move:
        require_fields({"date": new_date, "time": new_time})
        target_date = parse_request_date(new_date, "date")
        target_time = parse_request_time(new_time, "time")

    trace_id = f"update_{appointment_id}"
    slot_details: dict[str, str] = {}

    async with get_async_session() as session:
        try:
            if is_postgres(session):
                await session.execute(text("SET TRANSACTION ISOLATION LEVEL SERIALIZABLE"))

            appointment = await load_appointment_for_update(
                session, appointment_id, tenant_id, scheduled_only=wants_move
            )
            previous = {
                "previousDate": appointment.appointment_date.isoformat(),
                "previousTime": appointment.appointment_time,
            }
            previous_status = appointment.status

            status_changed = new_status is not None and new_status != previous_status
            if not wants_move and not status_changed:
                logger.info(f"[{trace_id}] Status already {new_status.value}, nothing to do")
                return appointment

            if not wants_move:
                target_date = appointment.appointment_date
                target_time = appointment.appointment_time
            slot_details = {
                "chair_id": str(appointment.chair_id),
                "date": target_date.isoformat(),
                "time": target_time,
            }
            if wants_move or new_status == AppointmentStatus.SCHEDULED:
                await ensure_slot_free(
                    session,
                    appointment.chair_id,
                    target_date,
                    target_time,
                    exclude_appointment_id=appointment.id,
                )

            appointment.appointment_date = target_date
            appointment.appointment_time = target_time
            if status_changed:
                appointment.status = new_status
            await session.flush()
            await session.commit()

        except IntegrityError as e:
            await session.rollback()
            logger.warning(f"[{trace_id}] Lost slot race (unique slot index)")
            raise SlotTakenError(details=slot_details) from e

        except BookingError:
            await session.rollback()
            raise

        except DBAPIError as e:
            await session.rollback()
            if is_serialization_failure(e):
                raise SlotTakenError(details=slot_details) from e
            logger.error(f"[{trace_id}] Database error updating appointment: {e}", exc_info=True)
            raise

        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"[{trace_id}] Database error updating appointment: {e}", exc_info=True)
            raise

    logger.info(
        f"[{trace_id}] Update committed (moved={wants_move}, "
        f"status {previous_status.value} -> {appointment.status.value})",
        extra={"tenant_id": tenant_id, "appointment_id": appointment_id},
    )

    details = {
        "service_name": appointment.service.name,
        "chair_number": appointment.chair.chair_number,
        "branch_name": appointment.branch.name,
    }
    if wants_move:
        await dispatch_notification(
            notifier,
            build_appointment_event(
                NotificationType.APPOINTMENT_RESCHEDULED,
                appointment,
                action="rescheduled",
                extra=previous,
                **details,
            ),
            trace_id,
        )
    if status_changed:
        await dispatch_notification(
            notifier,
            build_appointment_event(
                NotificationType.APPOINTMENT_STATUS_CHANGED,
                appointment,
                action=new_status.value,
                extra={"previousStatus": previous_status.value},
                **details,
            ),
            trace_id,
        )

    return appointment


async def update_appointment_status(
    appointment_id: Any,
    status: AppointmentStatus | str,
    tenant_id: UUID,
    notifier: NotificationSink | None = None,
) -> Appointment:
    """
    Staff transition of an appointment to completed, no-show or scheduled.

    Returning an appointment to scheduled re-claims its slot, so it fails with
    SlotTakenError if another appointment was booked there in the meantime.
    """
    return await update_appointment(appointment_id, tenant_id, status=status, notifier=notifier)
