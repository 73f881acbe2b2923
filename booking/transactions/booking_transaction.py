"""
Booking Transaction Handler - the booking guard.

Creates appointments with the database as the single source of truth:
- Request validation (required fields, HH:MM / YYYY-MM-DD formats)
- Exact-slot check for the chair/date/time among scheduled appointments
- Reference resolution (branch, chair and service share one tenant)
- Insert + commit under SERIALIZABLE isolation on PostgreSQL
- Staff board notification AFTER commit (fire-and-forget, non-blocking)

Concurrency:
    Two clients can both see 10:00 as free and both submit. The exact-slot
    check catches the common case; the partial unique index
    uq_appointments_scheduled_slot (and SERIALIZABLE on PostgreSQL) catches
    the rest. Either way the loser gets SlotTakenError and the winner's row is
    the only one persisted.

BookingTransaction.execute() is the single entry point for creating
appointments, used by both the public booking link and the staff API.
"""

import logging
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError

from booking.services.notification_service import (
    NotificationSink,
    NotificationType,
    build_appointment_event,
    dispatch_notification,
)
from booking.validators.booking_validators import validate_booking_request
from booking.validators.transaction_validators import (
    ensure_slot_free,
    is_serialization_failure,
    resolve_booking_references,
)
from database.connection import get_async_session, is_postgres
from database.models import Appointment, AppointmentStatus
from shared.exceptions import BookingError, SlotTakenError

logger = logging.getLogger(__name__)


class BookingTransaction:
    """
    Atomic transaction handler for creating appointments.

    Flow:
    1. Validate request fields
    2. Open a transaction (SERIALIZABLE on PostgreSQL)
    3. Reject if the exact chair/date/time is already scheduled
    4. Resolve branch, chair and service for the tenant
    5. Insert the appointment (status=scheduled) and commit
    6. Notify the staff board (failures are logged, never raised)
    """

    @staticmethod
    async def execute(
        tenant_id: UUID | None,
        branch_id: Any,
        chair_id: Any,
        service_id: Any,
        client_name: Any,
        client_phone: Any,
        appointment_date: date | str,
        appointment_time: str,
        notifier: NotificationSink | None = None,
    ) -> Appointment:
        """
        Execute the atomic booking transaction.

        Args:
            tenant_id: Authenticated tenant (staff flow), or None for the public
                flow, in which case the tenant is derived from the branch
            branch_id: Branch UUID
            chair_id: Chair UUID (must belong to the branch)
            service_id: Service UUID (must belong to the tenant)
            client_name: Client display name
            client_phone: Client contact phone
            appointment_date: YYYY-MM-DD
            appointment_time: HH:MM (24h)
            notifier: Optional sink for the staff board notification

        Returns:
            The persisted Appointment (status=scheduled)

        Raises:
            BookingValidationError: Missing or malformed fields
            SlotTakenError: The slot is held, or a concurrent booking won it
            InvalidReferenceError: Branch/chair/service missing or foreign

        Example:
            >>> appointment = await BookingTransaction.execute(
            ...     tenant_id=None,
            ...     branch_id="...", chair_id="...", service_id="...",
            ...     client_name="Juan", client_phone="5512345678",
            ...     appointment_date="2025-11-17", appointment_time="10:00",
            ... )
        """
        request = validate_booking_request(
            branch_id,
            chair_id,
            service_id,
            client_name,
            client_phone,
            appointment_date,
            appointment_time,
        )

        trace_id = f"{request.chair_id}_{request.appointment_date}_{request.appointment_time}"
        logger.info(
            f"[{trace_id}] Starting booking transaction",
            extra={
                "tenant_id": tenant_id,
                "branch_id": request.branch_id,
                "chair_id": request.chair_id,
            },
        )

        async with get_async_session() as session:
            try:
                if is_postgres(session):
                    await session.execute(text("SET TRANSACTION ISOLATION LEVEL SERIALIZABLE"))

                await ensure_slot_free(
                    session,
                    request.chair_id,
                    request.appointment_date,
                    request.appointment_time,
                )

                refs = await resolve_booking_references(
                    session,
                    tenant_id,
                    request.branch_id,
                    request.chair_id,
                    request.service_id,
                )

                appointment = Appointment(
                    tenant_id=refs.tenant_id,
                    branch_id=refs.branch.id,
                    chair_id=refs.chair.id,
                    service_id=refs.service.id,
                    client_name=request.client_name,
                    client_phone=request.client_phone,
                    appointment_date=request.appointment_date,
                    appointment_time=request.appointment_time,
                    status=AppointmentStatus.SCHEDULED,
                )
                session.add(appointment)
                await session.flush()
                await session.commit()

            except IntegrityError as e:
                await session.rollback()
                logger.warning(
                    f"[{trace_id}] Lost booking race (unique slot index): {e.orig}",
                    extra={"chair_id": request.chair_id},
                )
                raise SlotTakenError(
                    details={
                        "chair_id": str(request.chair_id),
                        "date": request.appointment_date.isoformat(),
                        "time": request.appointment_time,
                    }
                ) from e

            except BookingError:
                await session.rollback()
                raise

            except DBAPIError as e:
                await session.rollback()
                if is_serialization_failure(e):
                    logger.warning(f"[{trace_id}] Serialization failure, slot taken concurrently")
                    raise SlotTakenError(
                        details={
                            "chair_id": str(request.chair_id),
                            "date": request.appointment_date.isoformat(),
                            "time": request.appointment_time,
                        }
                    ) from e
                logger.error(f"[{trace_id}] Database error during booking: {e}", exc_info=True)
                raise

            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"[{trace_id}] Database error during booking: {e}", exc_info=True)
                raise

        logger.info(
            f"[{trace_id}] Booking committed: appointment {appointment.id}",
            extra={"tenant_id": appointment.tenant_id, "appointment_id": appointment.id},
        )

        event_type = (
            NotificationType.PUBLIC_BOOKING if tenant_id is None else NotificationType.ADMIN_BOOKING
        )
        await dispatch_notification(
            notifier,
            build_appointment_event(
                event_type,
                appointment,
                service_name=refs.service.name,
                chair_number=refs.chair.chair_number,
                branch_name=refs.branch.name,
                action="created",
            ),
            trace_id,
        )

        return appointment
