"""
Integration tests for BookingTransaction against a real database.

Tests coverage:
- Public and staff bookings persist as scheduled and notify the board
- Exact-slot conflicts raise SlotTakenError without side effects
- Ownership checks raise InvalidReferenceError
- Validation happens before any database work
- Two concurrent bookings of one slot: exactly one wins
- Notification failures never fail a committed booking
"""

import asyncio

import pytest
from sqlalchemy import func, select

from booking.services.notification_service import NotificationType
from booking.transactions import BookingTransaction
from database.connection import get_async_session
from database.models import Appointment, AppointmentStatus
from shared.exceptions import BookingValidationError, InvalidReferenceError, SlotTakenError


async def count_appointments() -> int:
    async with get_async_session() as session:
        return (await session.execute(select(func.count(Appointment.id)))).scalar_one()


def booking_kwargs(shop, when, time="10:00", **overrides):
    kwargs = {
        "tenant_id": None,
        "branch_id": str(shop.branch_id),
        "chair_id": str(shop.chair_id),
        "service_id": str(shop.haircut_id),
        "client_name": "Juan Pérez",
        "client_phone": "5512345678",
        "appointment_date": when.isoformat(),
        "appointment_time": time,
    }
    kwargs.update(overrides)
    return kwargs


class TestBookingSuccess:
    @pytest.mark.asyncio
    async def test_public_booking_derives_tenant(self, shop, future_monday, notifier):
        appointment = await BookingTransaction.execute(
            **booking_kwargs(shop, future_monday), notifier=notifier
        )

        assert appointment.tenant_id == shop.tenant_id
        assert appointment.status == AppointmentStatus.SCHEDULED
        assert appointment.appointment_time == "10:00"
        assert appointment.appointment_date == future_monday

        async with get_async_session() as session:
            stored = await session.get(Appointment, appointment.id)
            assert stored.client_phone == "5512345678"

        assert len(notifier.events) == 1
        event = notifier.events[0]
        assert event.type == NotificationType.PUBLIC_BOOKING
        assert event.data["serviceName"] == "Corte"
        assert event.data["chairNumber"] == 1
        assert event.data["branchName"] == "Centro"

    @pytest.mark.asyncio
    async def test_staff_booking_is_admin_booking(self, shop, future_monday, notifier):
        await BookingTransaction.execute(
            **booking_kwargs(shop, future_monday, tenant_id=shop.tenant_id), notifier=notifier
        )
        assert notifier.events[0].type == NotificationType.ADMIN_BOOKING

    @pytest.mark.asyncio
    async def test_time_is_normalized(self, shop, future_monday):
        appointment = await BookingTransaction.execute(
            **booking_kwargs(shop, future_monday, time="09:30:00")
        )
        assert appointment.appointment_time == "09:30"

    @pytest.mark.asyncio
    async def test_single_digit_fields_rejected(self, shop, future_monday):
        with pytest.raises(BookingValidationError):
            await BookingTransaction.execute(**booking_kwargs(shop, future_monday, time="9:5"))
        assert await count_appointments() == 0

    @pytest.mark.asyncio
    async def test_notification_failure_keeps_booking(self, shop, future_monday, failing_notifier):
        appointment = await BookingTransaction.execute(
            **booking_kwargs(shop, future_monday), notifier=failing_notifier
        )

        assert appointment.id is not None
        assert await count_appointments() == 1

    @pytest.mark.asyncio
    async def test_same_time_on_other_chair_is_fine(self, shop, future_monday):
        await BookingTransaction.execute(**booking_kwargs(shop, future_monday))
        await BookingTransaction.execute(
            **booking_kwargs(shop, future_monday, chair_id=str(shop.other_chair_id))
        )
        assert await count_appointments() == 2


class TestBookingRejections:
    @pytest.mark.asyncio
    async def test_exact_slot_taken(self, shop, future_monday, notifier):
        await BookingTransaction.execute(**booking_kwargs(shop, future_monday))

        with pytest.raises(SlotTakenError) as exc_info:
            await BookingTransaction.execute(
                **booking_kwargs(shop, future_monday, client_name="Otro"), notifier=notifier
            )

        assert exc_info.value.details["time"] == "10:00"
        assert await count_appointments() == 1
        assert notifier.events == []

    @pytest.mark.asyncio
    async def test_slot_freed_by_completed_status_is_bookable(self, shop, future_monday):
        first = await BookingTransaction.execute(**booking_kwargs(shop, future_monday))
        async with get_async_session() as session:
            stored = await session.get(Appointment, first.id)
            stored.status = AppointmentStatus.NO_SHOW
            await session.commit()

        await BookingTransaction.execute(**booking_kwargs(shop, future_monday))
        assert await count_appointments() == 2

    @pytest.mark.asyncio
    async def test_chair_from_other_branch(self, shop, future_monday):
        with pytest.raises(InvalidReferenceError):
            await BookingTransaction.execute(
                **booking_kwargs(shop, future_monday, chair_id=str(shop.foreign_chair_id))
            )
        assert await count_appointments() == 0

    @pytest.mark.asyncio
    async def test_service_from_other_tenant(self, shop, future_monday):
        with pytest.raises(InvalidReferenceError):
            await BookingTransaction.execute(
                **booking_kwargs(shop, future_monday, service_id=str(shop.foreign_service_id))
            )

    @pytest.mark.asyncio
    async def test_staff_cannot_book_other_tenants_branch(self, shop, future_monday):
        with pytest.raises(InvalidReferenceError):
            await BookingTransaction.execute(
                **booking_kwargs(shop, future_monday, tenant_id=shop.foreign_tenant_id)
            )

    @pytest.mark.asyncio
    async def test_missing_fields(self, shop, future_monday):
        with pytest.raises(BookingValidationError) as exc_info:
            await BookingTransaction.execute(
                **booking_kwargs(shop, future_monday, client_phone="", appointment_time=None)
            )
        assert exc_info.value.details["missing_fields"] == ["clientPhone", "time"]
        assert await count_appointments() == 0


class TestConcurrentBooking:
    @pytest.mark.asyncio
    async def test_two_clients_same_slot_one_wins(self, shop, future_monday):
        results = await asyncio.gather(
            BookingTransaction.execute(**booking_kwargs(shop, future_monday, client_name="A")),
            BookingTransaction.execute(**booking_kwargs(shop, future_monday, client_name="B")),
            return_exceptions=True,
        )

        successes = [r for r in results if isinstance(r, Appointment)]
        failures = [r for r in results if isinstance(r, SlotTakenError)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert await count_appointments() == 1

    @pytest.mark.asyncio
    async def test_unique_index_is_the_backstop(self, shop, future_monday):
        """Even with the exact-slot check bypassed, the index rejects a duplicate."""
        from unittest.mock import patch

        await BookingTransaction.execute(**booking_kwargs(shop, future_monday))

        async def no_check(*args, **kwargs):
            return None

        with patch("booking.transactions.booking_transaction.ensure_slot_free", no_check):
            with pytest.raises(SlotTakenError):
                await BookingTransaction.execute(**booking_kwargs(shop, future_monday))

        assert await count_appointments() == 1
