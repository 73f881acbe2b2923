"""
Cancellation Transaction Handler.

Cancelling deletes the appointment row, which frees its slot immediately.
The staff board is notified after commit.
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from booking.services.notification_service import (
    NotificationSink,
    NotificationType,
    build_appointment_event,
    dispatch_notification,
)
from booking.transactions.modification_transaction import load_appointment_for_update
from booking.validators.booking_validators import coerce_uuid
from database.connection import get_async_session
from shared.exceptions import BookingError

logger = logging.getLogger(__name__)


class CancellationTransaction:
    """Delete an appointment and acknowledge it."""

    @staticmethod
    async def execute(
        appointment_id: Any,
        *,
        tenant_id: UUID | None = None,
        notifier: NotificationSink | None = None,
    ) -> dict[str, Any]:
        """
        Execute the cancellation.

        The public link (tenant_id=None) can only cancel scheduled
        appointments; staff can delete any appointment of their tenant.

        Returns:
            {"success": True, "appointment_id": str, "message": str}

        Raises:
            BookingValidationError: Malformed id
            NotFoundError: Appointment missing, foreign, or (public) not scheduled
        """
        appointment_id = coerce_uuid(appointment_id, "appointmentId")
        trace_id = f"cancel_{appointment_id}"

        async with get_async_session() as session:
            try:
                appointment = await load_appointment_for_update(
                    session,
                    appointment_id,
                    tenant_id,
                    scheduled_only=tenant_id is None,
                )
                event = build_appointment_event(
                    NotificationType.APPOINTMENT_CANCELLED,
                    appointment,
                    service_name=appointment.service.name,
                    chair_number=appointment.chair.chair_number,
                    branch_name=appointment.branch.name,
                    action="cancelled",
                )

                await session.delete(appointment)
                await session.commit()

            except BookingError:
                await session.rollback()
                raise

            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"[{trace_id}] Database error during cancellation: {e}", exc_info=True)
                raise

        logger.info(
            f"[{trace_id}] Appointment cancelled",
            extra={"tenant_id": event.tenant_id, "appointment_id": appointment_id},
        )

        await dispatch_notification(notifier, event, trace_id)

        return {
            "success": True,
            "appointment_id": str(appointment_id),
            "message": "Cita cancelada correctamente",
        }
