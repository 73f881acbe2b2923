"""
Fixtures for integration tests against a real SQLite database.

Every test gets a freshly created schema (dropped afterwards) and a seeded
shop: one tenant with a Monday-Saturday branch (09:00-18:00, lunch
14:00-15:00), two chairs and two services, plus a second tenant to check
ownership boundaries.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

import pytest

from database.connection import create_all, drop_all, engine, get_async_session
from database.models import Branch, Chair, Service, Tenant


@dataclass
class ShopIds:
    tenant_id: UUID
    branch_id: UUID
    chair_id: UUID
    other_chair_id: UUID
    haircut_id: UUID  # 30 minutes
    beard_combo_id: UUID  # 60 minutes
    unset_duration_id: UUID  # duration NULL -> 30
    foreign_tenant_id: UUID
    foreign_branch_id: UUID
    foreign_chair_id: UUID
    foreign_service_id: UUID


@pytest.fixture(autouse=True)
async def database():
    """Create the schema before each test and drop it afterwards."""
    await create_all()
    yield
    await drop_all()
    await engine.dispose()


@pytest.fixture
async def shop() -> ShopIds:
    async with get_async_session() as session:
        tenant = Tenant(shop_name="Barbería Centro")
        foreign_tenant = Tenant(shop_name="Barbería Norte")
        session.add_all([tenant, foreign_tenant])
        await session.flush()

        branch = Branch(
            tenant_id=tenant.id,
            name="Centro",
            work_days=["Lunes", "Martes", "Miércoles", "Jueves", "Viernes", "Sábado"],
            start_time="09:00",
            end_time="18:00",
            lunch_start="14:00",
            lunch_end="15:00",
        )
        foreign_branch = Branch(
            tenant_id=foreign_tenant.id,
            name="Norte",
            work_days=["Monday", "Tuesday"],
            start_time="10:00",
            end_time="14:00",
        )
        session.add_all([branch, foreign_branch])
        await session.flush()

        chair = Chair(branch_id=branch.id, chair_number=1)
        other_chair = Chair(branch_id=branch.id, chair_number=2)
        foreign_chair = Chair(branch_id=foreign_branch.id, chair_number=1)
        haircut = Service(tenant_id=tenant.id, name="Corte", duration=30, price=Decimal("150.00"))
        beard_combo = Service(
            tenant_id=tenant.id, name="Corte + Barba", duration=60, price=Decimal("250.00")
        )
        unset_duration = Service(tenant_id=tenant.id, name="Consulta", duration=None)
        foreign_service = Service(
            tenant_id=foreign_tenant.id, name="Corte Norte", duration=30, price=Decimal("100.00")
        )
        session.add_all(
            [chair, other_chair, foreign_chair, haircut, beard_combo, unset_duration, foreign_service]
        )
        await session.commit()

        return ShopIds(
            tenant_id=tenant.id,
            branch_id=branch.id,
            chair_id=chair.id,
            other_chair_id=other_chair.id,
            haircut_id=haircut.id,
            beard_combo_id=beard_combo.id,
            unset_duration_id=unset_duration.id,
            foreign_tenant_id=foreign_tenant.id,
            foreign_branch_id=foreign_branch.id,
            foreign_chair_id=foreign_chair.id,
            foreign_service_id=foreign_service.id,
        )


class RecordingNotifier:
    """Notification sink that remembers what it was given."""

    def __init__(self):
        self.events = []

    async def publish(self, event):
        self.events.append(event)


class FailingNotifier:
    async def publish(self, event):
        raise RuntimeError("notification transport down")


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def failing_notifier() -> FailingNotifier:
    return FailingNotifier()
