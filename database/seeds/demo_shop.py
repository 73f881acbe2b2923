"""
Seed data script for a demo barbershop.

Creates one tenant with a single branch (Monday to Saturday, 09:00-18:00,
lunch 14:00-15:00), three chairs and a short service catalog, so the booking
link and the staff board can be tried locally.

Can be run standalone: python -m database.seeds.demo_shop
"""

import asyncio
from decimal import Decimal

from sqlalchemy import select

from database.connection import get_async_session
from database.models import Branch, Chair, Service, Tenant

DEMO_SHOP_NAME = "Barbería Demo"

DEMO_BRANCH = {
    "name": "Centro",
    "work_days": ["Lunes", "Martes", "Miércoles", "Jueves", "Viernes", "Sábado"],
    "start_time": "09:00",
    "end_time": "18:00",
    "lunch_start": "14:00",
    "lunch_end": "15:00",
}

DEMO_SERVICES = [
    {"name": "Corte de cabello", "duration": 30, "price": Decimal("150.00")},
    {"name": "Corte + Barba", "duration": 60, "price": Decimal("250.00")},
    {"name": "Arreglo de barba", "duration": 30, "price": Decimal("120.00")},
    {"name": "Afeitado clásico", "duration": 45, "price": Decimal("180.00")},
]

DEMO_CHAIR_COUNT = 3


async def seed_demo_shop() -> None:
    """
    Seed the demo tenant, branch, chairs and services.

    Idempotent: does nothing if a tenant with the demo name already exists.
    """
    async with get_async_session() as session:
        existing = await session.execute(select(Tenant).where(Tenant.shop_name == DEMO_SHOP_NAME))
        if existing.scalar_one_or_none() is not None:
            print(f"✓ Demo shop '{DEMO_SHOP_NAME}' already seeded, skipping")
            return

        tenant = Tenant(shop_name=DEMO_SHOP_NAME)
        session.add(tenant)
        await session.flush()

        branch = Branch(tenant_id=tenant.id, **DEMO_BRANCH)
        session.add(branch)
        await session.flush()

        for number in range(1, DEMO_CHAIR_COUNT + 1):
            session.add(Chair(branch_id=branch.id, chair_number=number))

        for service_data in DEMO_SERVICES:
            session.add(Service(tenant_id=tenant.id, **service_data))

        await session.commit()

        print("✓ Demo shop seed completed:")
        print(f"  - Tenant: {tenant.id} ({DEMO_SHOP_NAME})")
        print(f"  - Branch: {branch.id} ({branch.name})")
        print(f"  - Chairs: {DEMO_CHAIR_COUNT}")
        print(f"  - Services: {len(DEMO_SERVICES)}")


if __name__ == "__main__":
    asyncio.run(seed_demo_shop())
