"""
Atomic transaction handlers for the appointment ledger.

Each handler runs its checks and its write in one database transaction
(SERIALIZABLE on PostgreSQL), relies on the partial unique index on
scheduled (chair, date, time) as a backstop, logs with a trace_id, and
notifies the staff board only after commit.

Transaction handlers:
- BookingTransaction: Create appointments (public link and staff)
- RescheduleTransaction: Move an appointment to a new date/time
- CancellationTransaction: Delete an appointment
- update_appointment: Staff edit, move and/or status in one transaction
- update_appointment_status: Staff transitions (completed / no-show / scheduled)
"""

from booking.transactions.booking_transaction import BookingTransaction
from booking.transactions.cancellation_transaction import CancellationTransaction
from booking.transactions.modification_transaction import (
    RescheduleTransaction,
    update_appointment,
    update_appointment_status,
)

__all__ = [
    "BookingTransaction",
    "CancellationTransaction",
    "RescheduleTransaction",
    "update_appointment",
    "update_appointment_status",
]
