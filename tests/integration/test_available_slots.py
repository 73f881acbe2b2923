"""
Integration tests for get_available_slots() reading schedule, catalog and ledger
from the database.
"""

from datetime import datetime
from uuid import uuid4
from zoneinfo import ZoneInfo

import pytest

from booking.services.availability_service import get_available_slots, load_booked_intervals
from booking.transactions import BookingTransaction, update_appointment_status
from database.connection import get_async_session
from database.models import Branch
from shared.exceptions import BookingValidationError, InvalidConfigurationError, NotFoundError

MADRID_TZ = ZoneInfo("Europe/Madrid")


async def book(shop, when, time, service_id=None):
    return await BookingTransaction.execute(
        tenant_id=None,
        branch_id=shop.branch_id,
        chair_id=shop.chair_id,
        service_id=service_id or shop.haircut_id,
        client_name="Cliente",
        client_phone="5500000000",
        appointment_date=when,
        appointment_time=time,
    )


def times(slots):
    return [s["time"] for s in slots]


class TestAvailableSlots:
    @pytest.mark.asyncio
    async def test_booked_appointment_blocks_its_interval(self, shop, future_monday):
        await book(shop, future_monday, "10:00", service_id=shop.beard_combo_id)  # 10:00-11:00

        slots = times(
            await get_available_slots(
                shop.branch_id, shop.chair_id, shop.haircut_id, future_monday, is_public_caller=True
            )
        )

        assert "09:30" in slots
        assert "10:00" not in slots
        assert "10:30" not in slots
        assert "11:00" in slots
        assert "14:00" not in slots
        assert slots[-1] == "17:30"

    @pytest.mark.asyncio
    async def test_other_chair_is_unaffected(self, shop, future_monday):
        await book(shop, future_monday, "10:00")
        slots = times(
            await get_available_slots(
                shop.branch_id, shop.other_chair_id, shop.haircut_id, future_monday,
                is_public_caller=True,
            )
        )
        assert "10:00" in slots

    @pytest.mark.asyncio
    async def test_completed_appointments_do_not_block(self, shop, future_monday):
        appointment = await book(shop, future_monday, "10:00")
        await update_appointment_status(appointment.id, "completed", shop.tenant_id)

        slots = times(
            await get_available_slots(
                shop.branch_id, shop.chair_id, shop.haircut_id, future_monday, is_public_caller=False
            )
        )
        assert "10:00" in slots

    @pytest.mark.asyncio
    async def test_unset_service_duration_counts_as_thirty(self, shop, future_monday):
        await book(shop, future_monday, "10:00", service_id=shop.unset_duration_id)

        async with get_async_session() as session:
            intervals = await load_booked_intervals(session, shop.chair_id, future_monday)

        assert [(i.start, i.end) for i in intervals] == [(600, 630)]

    @pytest.mark.asyncio
    async def test_closed_day_returns_empty_before_service_lookup(self, shop, future_sunday):
        slots = await get_available_slots(
            shop.branch_id, shop.chair_id, uuid4(), future_sunday, is_public_caller=True
        )
        assert slots == []

    @pytest.mark.asyncio
    async def test_string_arguments(self, shop, future_monday):
        slots = await get_available_slots(
            str(shop.branch_id), str(shop.chair_id), str(shop.haircut_id),
            future_monday.isoformat(), is_public_caller=True,
        )
        assert times(slots)[0] == "09:00"

    @pytest.mark.asyncio
    async def test_include_unavailable(self, shop, future_monday):
        await book(shop, future_monday, "10:00")
        slots = await get_available_slots(
            shop.branch_id, shop.chair_id, shop.haircut_id, future_monday,
            is_public_caller=False, include_unavailable=True,
        )
        flagged = {s["time"]: s["available"] for s in slots}
        assert flagged["10:00"] is False
        assert flagged["09:30"] is True


class TestSameDayFloor:
    @pytest.mark.asyncio
    async def test_public_caller_gets_lead_time(self, shop, future_monday):
        now = datetime.combine(future_monday, datetime.min.time(), tzinfo=MADRID_TZ).replace(
            hour=10, minute=5
        )
        slots = times(
            await get_available_slots(
                shop.branch_id, shop.chair_id, shop.haircut_id, future_monday,
                is_public_caller=True, now=now,
            )
        )
        assert slots[0] == "11:00"

    @pytest.mark.asyncio
    async def test_staff_caller_has_no_floor(self, shop, future_monday):
        now = datetime.combine(future_monday, datetime.min.time(), tzinfo=MADRID_TZ).replace(
            hour=16, minute=0
        )
        slots = times(
            await get_available_slots(
                shop.branch_id, shop.chair_id, shop.haircut_id, future_monday,
                is_public_caller=False, tenant_id=shop.tenant_id, now=now,
            )
        )
        assert slots[0] == "09:00"


class TestLookupFailures:
    @pytest.mark.asyncio
    async def test_unknown_branch(self, shop, future_monday):
        with pytest.raises(NotFoundError):
            await get_available_slots(
                uuid4(), shop.chair_id, shop.haircut_id, future_monday, is_public_caller=True
            )

    @pytest.mark.asyncio
    async def test_branch_of_other_tenant(self, shop, future_monday):
        with pytest.raises(NotFoundError):
            await get_available_slots(
                shop.foreign_branch_id, shop.foreign_chair_id, shop.foreign_service_id,
                future_monday, is_public_caller=False, tenant_id=shop.tenant_id,
            )

    @pytest.mark.asyncio
    async def test_unknown_service(self, shop, future_monday):
        with pytest.raises(NotFoundError) as exc_info:
            await get_available_slots(
                shop.branch_id, shop.chair_id, uuid4(), future_monday, is_public_caller=True
            )
        assert "service_id" in exc_info.value.details

    @pytest.mark.asyncio
    async def test_service_of_other_tenant(self, shop, future_monday):
        with pytest.raises(NotFoundError):
            await get_available_slots(
                shop.branch_id, shop.chair_id, shop.foreign_service_id, future_monday,
                is_public_caller=True,
            )

    @pytest.mark.asyncio
    async def test_chair_outside_branch(self, shop, future_monday):
        with pytest.raises(NotFoundError) as exc_info:
            await get_available_slots(
                shop.branch_id, shop.foreign_chair_id, shop.haircut_id, future_monday,
                is_public_caller=True,
            )
        assert "chair_id" in exc_info.value.details

    @pytest.mark.asyncio
    async def test_malformed_date(self, shop):
        with pytest.raises(BookingValidationError):
            await get_available_slots(
                shop.branch_id, shop.chair_id, shop.haircut_id, "next monday",
                is_public_caller=True,
            )

    @pytest.mark.asyncio
    async def test_malformed_schedule(self, shop, future_monday):
        async with get_async_session() as session:
            branch = await session.get(Branch, shop.branch_id)
            branch.end_time = "08:00"
            await session.commit()

        with pytest.raises(InvalidConfigurationError):
            await get_available_slots(
                shop.branch_id, shop.chair_id, shop.haircut_id, future_monday,
                is_public_caller=True,
            )
