"""Integration tests for the staff board and client appointment listings."""

import pytest

from booking.services.appointment_query_service import (
    daily_metrics,
    list_appointments,
    list_client_appointments,
)
from booking.transactions import BookingTransaction, update_appointment_status
from shared.exceptions import BookingValidationError


async def book(shop, when, time, phone="5511111111", chair_id=None, service_id=None):
    return await BookingTransaction.execute(
        tenant_id=None,
        branch_id=shop.branch_id,
        chair_id=chair_id or shop.chair_id,
        service_id=service_id or shop.haircut_id,
        client_name="Cliente",
        client_phone=phone,
        appointment_date=when,
        appointment_time=time,
    )


class TestListAppointments:
    @pytest.mark.asyncio
    async def test_board_order_and_details(self, shop, future_monday, future_tuesday):
        await book(shop, future_monday, "12:00")
        await book(shop, future_monday, "09:00")
        await book(shop, future_tuesday, "10:00")

        board = await list_appointments(shop.tenant_id)

        assert [(a["date"], a["time"]) for a in board] == [
            (future_tuesday.isoformat(), "10:00"),
            (future_monday.isoformat(), "09:00"),
            (future_monday.isoformat(), "12:00"),
        ]
        first = board[0]
        assert first["branchName"] == "Centro"
        assert first["chairNumber"] == 1
        assert first["serviceName"] == "Corte"
        assert first["status"] == "scheduled"

    @pytest.mark.asyncio
    async def test_filter_by_date_and_branch(self, shop, future_monday, future_tuesday):
        await book(shop, future_monday, "09:00")
        await book(shop, future_tuesday, "10:00")

        by_date = await list_appointments(shop.tenant_id, appointment_date=future_monday.isoformat())
        assert [a["time"] for a in by_date] == ["09:00"]

        by_branch = await list_appointments(shop.tenant_id, branch_id=str(shop.branch_id))
        assert len(by_branch) == 2

        other_branch = await list_appointments(shop.tenant_id, branch_id=str(shop.foreign_branch_id))
        assert other_branch == []

    @pytest.mark.asyncio
    async def test_includes_every_status(self, shop, future_monday):
        appointment = await book(shop, future_monday, "09:00")
        await update_appointment_status(appointment.id, "no-show", shop.tenant_id)

        board = await list_appointments(shop.tenant_id)
        assert board[0]["status"] == "no-show"

    @pytest.mark.asyncio
    async def test_tenant_isolation(self, shop, future_monday):
        await book(shop, future_monday, "09:00")
        assert await list_appointments(shop.foreign_tenant_id) == []


class TestListClientAppointments:
    @pytest.mark.asyncio
    async def test_scheduled_on_chair_soonest_first(self, shop, future_monday, future_tuesday):
        await book(shop, future_tuesday, "10:00")
        await book(shop, future_monday, "16:00")
        done = await book(shop, future_monday, "09:00")
        await update_appointment_status(done.id, "completed", shop.tenant_id)
        await book(shop, future_monday, "11:00", chair_id=shop.other_chair_id)
        await book(shop, future_monday, "12:00", phone="5599999999")

        mine = await list_client_appointments("5511111111", shop.branch_id, shop.chair_id)

        assert [(a["date"], a["time"]) for a in mine] == [
            (future_monday.isoformat(), "16:00"),
            (future_tuesday.isoformat(), "10:00"),
        ]
        assert mine[0]["displayDate"].startswith("lunes")

    @pytest.mark.asyncio
    async def test_phone_required(self, shop):
        with pytest.raises(BookingValidationError):
            await list_client_appointments(" ", shop.branch_id, shop.chair_id)


class TestDailyMetrics:
    @pytest.mark.asyncio
    async def test_counts_and_revenue(self, shop, future_monday, future_tuesday):
        done = await book(shop, future_monday, "09:00")
        combo = await book(shop, future_monday, "10:00", service_id=shop.beard_combo_id)
        missed = await book(shop, future_monday, "12:00")
        await book(shop, future_monday, "16:00")
        await book(shop, future_tuesday, "09:00")

        await update_appointment_status(done.id, "completed", shop.tenant_id)
        await update_appointment_status(combo.id, "completed", shop.tenant_id)
        await update_appointment_status(missed.id, "no-show", shop.tenant_id)

        metrics = await daily_metrics(shop.tenant_id, str(shop.branch_id), future_monday.isoformat())

        assert metrics == {
            "date": future_monday.isoformat(),
            "todayAppts": 4,
            "completed": 2,
            "noShows": 1,
            "revenue": 400.0,
        }

    @pytest.mark.asyncio
    async def test_empty_day(self, shop, future_sunday):
        metrics = await daily_metrics(shop.tenant_id, shop.branch_id, future_sunday)
        assert metrics["todayAppts"] == 0
        assert metrics["revenue"] == 0.0

    @pytest.mark.asyncio
    async def test_other_tenant_sees_nothing(self, shop, future_monday):
        appointment = await book(shop, future_monday, "09:00")
        await update_appointment_status(appointment.id, "completed", shop.tenant_id)

        metrics = await daily_metrics(shop.foreign_tenant_id, shop.branch_id, future_monday)
        assert metrics["todayAppts"] == 0
        assert metrics["completed"] == 0

    @pytest.mark.asyncio
    async def test_malformed_branch(self, shop, future_monday):
        with pytest.raises(BookingValidationError):
            await daily_metrics(shop.tenant_id, "not-a-uuid", future_monday)
