"""
Notification service - Booking events for the staff board.

Bookings, reschedules, cancellations and reconciliation flags are published as
NotificationEvents. The NotificationService keeps each event pollable per
tenant for a fixed TTL (the polling fallback used by staff clients without a
live socket) and forwards it to any configured sinks, e.g. Redis pub/sub on
``branch-{id}`` / ``tenant-{id}`` channels for real-time transport.

Lifecycle:
    service = NotificationService(ttl_seconds=30)
    await service.start()      # begins the periodic TTL purge
    await service.publish(event)
    service.get_pending(tenant_id)
    await service.stop()

Notification delivery is a non-critical side channel: callers go through
dispatch_notification(), which logs and discards failures so that a booking
never depends on it.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum as PyEnum
from typing import Any, Protocol
from uuid import UUID, uuid4

from database.models import Appointment
from shared.redis_client import publish_to_channel

logger = logging.getLogger(__name__)


class NotificationType(str, PyEnum):
    """Type of staff board notification."""

    PUBLIC_BOOKING = "public_booking"
    ADMIN_BOOKING = "admin_booking"
    APPOINTMENT_RESCHEDULED = "appointment_rescheduled"
    APPOINTMENT_CANCELLED = "appointment_cancelled"
    APPOINTMENT_STATUS_CHANGED = "appointment_status_changed"
    APPOINTMENT_OVERDUE = "appointment_overdue"  # Flagged by reconciliation


@dataclass
class NotificationEvent:
    """A single event describing a change on the appointment board."""

    type: NotificationType
    tenant_id: UUID
    branch_id: UUID
    chair_id: UUID | None = None
    data: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "tenantId": str(self.tenant_id),
            "branchId": str(self.branch_id),
            "chairId": str(self.chair_id) if self.chair_id else None,
            "data": self.data,
            "createdAt": self.created_at.isoformat(),
        }


class NotificationSink(Protocol):
    """Anything that can receive a NotificationEvent."""

    async def publish(self, event: NotificationEvent) -> None: ...


def build_appointment_event(
    event_type: NotificationType,
    appointment: Appointment,
    *,
    service_name: str | None = None,
    chair_number: int | None = None,
    branch_name: str | None = None,
    action: str | None = None,
    extra: dict[str, Any] | None = None,
) -> NotificationEvent:
    """Describe an appointment change in the shape the staff board expects."""
    data: dict[str, Any] = {
        "appointmentId": str(appointment.id),
        "clientName": appointment.client_name,
        "clientPhone": appointment.client_phone,
        "serviceName": service_name,
        "chairNumber": chair_number,
        "branchName": branch_name,
        "date": appointment.appointment_date.isoformat(),
        "time": appointment.appointment_time,
    }
    if action:
        data["action"] = action
    if extra:
        data.update(extra)

    return NotificationEvent(
        type=event_type,
        tenant_id=appointment.tenant_id,
        branch_id=appointment.branch_id,
        chair_id=appointment.chair_id,
        data=data,
    )


class RedisNotificationSink:
    """Forward events to Redis pub/sub, one message per branch and tenant channel."""

    def __init__(self, publisher: Callable[[str, dict[str, Any]], Any] = publish_to_channel):
        self._publisher = publisher

    async def publish(self, event: NotificationEvent) -> None:
        message = event.to_dict()
        for channel in (f"branch-{event.branch_id}", f"tenant-{event.tenant_id}"):
            await self._publisher(channel, message)


@dataclass
class _PendingEntry:
    event: NotificationEvent
    expires_at: float


class NotificationService:
    """
    Per-tenant pollable notification store with TTL and explicit lifecycle.

    Events stay retrievable through get_pending() until they expire or the
    tenant marks them read. The purge task only runs between start() and
    stop(); expired entries are also dropped lazily on read.
    """

    def __init__(
        self,
        ttl_seconds: float = 30,
        purge_interval_seconds: float = 5,
        forward_to: list[NotificationSink] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.purge_interval_seconds = purge_interval_seconds
        self._forward_to = list(forward_to or [])
        self._clock = clock
        self._pending: dict[UUID, list[_PendingEntry]] = {}
        self._purge_task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._purge_task is not None and not self._purge_task.done()

    async def start(self) -> None:
        if self.is_running:
            return
        self._purge_task = asyncio.create_task(self._purge_loop())
        logger.info(
            f"Notification service started (ttl={self.ttl_seconds}s, "
            f"sinks={len(self._forward_to)})"
        )

    async def stop(self) -> None:
        if self._purge_task is not None:
            self._purge_task.cancel()
            try:
                await self._purge_task
            except asyncio.CancelledError:
                pass
            self._purge_task = None
        self._pending.clear()
        logger.info("Notification service stopped")

    async def publish(self, event: NotificationEvent) -> None:
        """
        Store the event for polling and forward it to every sink.

        A failing sink is logged and skipped; the pollable copy is kept.
        """
        self._pending.setdefault(event.tenant_id, []).append(
            _PendingEntry(event=event, expires_at=self._clock() + self.ttl_seconds)
        )
        logger.info(
            f"Notification stored: {event.type.value}",
            extra={"tenant_id": event.tenant_id, "branch_id": event.branch_id},
        )

        for sink in self._forward_to:
            try:
                await sink.publish(event)
            except Exception as e:
                logger.warning(
                    f"Notification sink {type(sink).__name__} failed: {e}",
                    extra={"tenant_id": event.tenant_id},
                )

    def get_pending(self, tenant_id: UUID) -> list[dict[str, Any]]:
        """Unexpired notifications for a tenant, oldest first."""
        self.purge_expired()
        return [entry.event.to_dict() for entry in self._pending.get(tenant_id, [])]

    def mark_read(self, tenant_id: UUID) -> int:
        """Drop every pending notification of a tenant. Returns how many were dropped."""
        return len(self._pending.pop(tenant_id, []))

    def purge_expired(self) -> int:
        now = self._clock()
        removed = 0
        for tenant_id in list(self._pending):
            entries = self._pending[tenant_id]
            kept = [e for e in entries if e.expires_at > now]
            removed += len(entries) - len(kept)
            if kept:
                self._pending[tenant_id] = kept
            else:
                del self._pending[tenant_id]
        return removed

    async def _purge_loop(self) -> None:
        while True:
            await asyncio.sleep(self.purge_interval_seconds)
            removed = self.purge_expired()
            if removed:
                logger.debug(f"Purged {removed} expired notifications")


async def dispatch_notification(
    notifier: NotificationSink | None,
    event: NotificationEvent,
    trace_id: str = "",
) -> bool:
    """
    Publish an event without letting failures reach the caller.

    Returns:
        True if the event was handed to the notifier, False if there is no
        notifier or it raised (logged at WARNING)
    """
    if notifier is None:
        return False
    try:
        await notifier.publish(event)
        return True
    except Exception as e:
        logger.warning(
            f"[{trace_id}] Failed to dispatch {event.type.value} notification: {e}",
            extra={"tenant_id": event.tenant_id},
        )
        return False
