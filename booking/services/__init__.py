"""
Booking services module.

Services:
- availability_service: DB-first slot generation
- notification_service: Staff board events with TTL and Redis forwarding
- appointment_query_service: Staff board and client appointment listings
- reconciliation_service: Overdue scheduled appointment detection
"""

from booking.services.availability_service import (
    BranchSchedule,
    generate_slots,
    get_available_slots,
)
from booking.services.notification_service import (
    NotificationEvent,
    NotificationService,
    NotificationType,
)

__all__ = [
    "BranchSchedule",
    "generate_slots",
    "get_available_slots",
    "NotificationEvent",
    "NotificationService",
    "NotificationType",
]
