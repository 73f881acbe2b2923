"""
Reconciliation Worker - Flags appointments left in "scheduled" after they ended.

This worker runs periodically (every RECONCILIATION_INTERVAL_SECONDS, default
5 minutes) to find scheduled appointments more than 15 minutes past their end
time and publish an appointment_overdue notification for each, so staff can
mark them completed or no-show.

Flow:
1. Query overdue scheduled appointments (reconciliation_service)
2. Publish appointment_overdue for each one not already flagged
3. Forget flags for appointments that are no longer overdue

The worker never changes appointment status.

Runs inside the API process (started/stopped by the app lifecycle), or
standalone:
    python -m booking.workers.reconciliation_worker
"""

import asyncio
import logging
import signal
from datetime import datetime
from typing import Any
from uuid import UUID

from booking.services.notification_service import (
    NotificationService,
    NotificationSink,
    NotificationType,
    RedisNotificationSink,
    build_appointment_event,
    dispatch_notification,
)
from booking.services.reconciliation_service import find_overdue_appointments
from shared.config import get_settings
from shared.logging_config import configure_logging

logger = logging.getLogger(__name__)


async def run_reconciliation_cycle(
    notifier: NotificationSink | None,
    already_flagged: set[UUID],
    now: datetime | None = None,
) -> int:
    """
    Run one reconciliation sweep.

    Args:
        notifier: Sink for appointment_overdue events
        already_flagged: Ids flagged by earlier cycles; updated in place
        now: Current time (defaults to now in settings.TIMEZONE)

    Returns:
        int: Number of appointments newly flagged in this cycle
    """
    overdue = await find_overdue_appointments(now=now)
    overdue_ids = {a.id for a in overdue}

    flagged = 0
    for appointment in overdue:
        if appointment.id in already_flagged:
            continue

        event = build_appointment_event(
            NotificationType.APPOINTMENT_OVERDUE,
            appointment,
            service_name=appointment.service.name if appointment.service else None,
            chair_number=appointment.chair.chair_number if appointment.chair else None,
            branch_name=appointment.branch.name if appointment.branch else None,
            action="needs_reconciliation",
        )
        if await dispatch_notification(notifier, event, f"reconcile_{appointment.id}"):
            already_flagged.add(appointment.id)
            flagged += 1

    # Completed, no-show and cancelled appointments drop out of the overdue set
    already_flagged.intersection_update(overdue_ids)

    if flagged:
        logger.info(f"Reconciliation flagged {flagged} overdue appointments")
    else:
        logger.debug(f"Reconciliation found {len(overdue)} overdue, none new")

    return flagged


async def run_reconciliation_worker(
    notifier: NotificationSink | None,
    interval_seconds: float | None = None,
) -> None:
    """
    Run reconciliation sweeps until cancelled.

    A failing cycle is logged and retried on the next interval.
    """
    interval = interval_seconds or get_settings().RECONCILIATION_INTERVAL_SECONDS
    already_flagged: set[UUID] = set()

    logger.info(f"Reconciliation worker started (interval={interval}s)")

    try:
        while True:
            try:
                await run_reconciliation_cycle(notifier, already_flagged)
            except Exception as e:
                logger.error(f"Error in reconciliation cycle: {e}", exc_info=True)

            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        logger.info("Reconciliation worker shutting down gracefully...")
        raise


async def async_main() -> None:
    """Standalone entry point: forwards overdue flags to Redis until SIGTERM/SIGINT."""
    settings = get_settings()
    notifier = NotificationService(
        ttl_seconds=settings.NOTIFICATION_TTL_SECONDS,
        purge_interval_seconds=settings.NOTIFICATION_PURGE_INTERVAL_SECONDS,
        forward_to=[RedisNotificationSink()],
    )
    await notifier.start()

    worker = asyncio.create_task(run_reconciliation_worker(notifier))

    def _request_shutdown(*_: Any) -> None:
        logger.info("Received shutdown signal, stopping reconciliation worker...")
        worker.cancel()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await worker
    except asyncio.CancelledError:
        pass
    finally:
        await notifier.stop()


if __name__ == "__main__":
    configure_logging()
    asyncio.run(async_main())
