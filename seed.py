"""Seed script — populates the database with sample hosting customers for testing."""

import asyncio
from datetime import date
from decimal import Decimal

from hosting_admin.config import get_settings
from hosting_admin.database.engine import Database
from hosting_admin.models.hosting import (
    BillingCycle,
    HostingCustomer,
    HostingPlan,
    HostingStatus,
)


def sample_customers() -> list[HostingCustomer]:
    return [
        HostingCustomer(
            customer_name="Alice Johnson",
            customer_email="alice@example.com",
            domain="alicebakes.com.au",
            plan=HostingPlan.STARTER,
            billing_cycle=BillingCycle.YEARLY,
            amount=Decimal("120.00"),
            status=HostingStatus.ACTIVE,
            start_date=date(2025, 3, 1),
            renewal_date=date(2026, 3, 1),
        ),
        HostingCustomer(
            customer_name="Bob Smith",
            customer_email="bob@example.com",
            domain="smithplumbing.com",
            plan=HostingPlan.BUSINESS,
            billing_cycle=BillingCycle.MONTHLY,
            amount=Decimal("29.00"),
            status=HostingStatus.ACTIVE,
            start_date=date(2025, 6, 15),
            renewal_date=date(2026, 11, 15),
            external_customer_ref="cus_seed_bob",
            external_subscription_ref="sub_seed_bob",
        ),
        HostingCustomer(
            customer_name="Carol Davis",
            customer_email="carol@example.com",
            domain="davisdesign.studio",
            plan=HostingPlan.PREMIUM,
            billing_cycle=BillingCycle.YEARLY,
            amount=Decimal("480.00"),
            status=HostingStatus.SUSPENDED,
            start_date=date(2024, 9, 1),
            renewal_date=date(2025, 9, 1),
            external_customer_ref="cus_seed_carol",
            external_subscription_ref="sub_seed_carol",
        ),
    ]


async def seed() -> None:
    """Insert sample hosting customers into the database."""
    database = Database(get_settings().database_url)
    await database.init()
    customers = sample_customers()
    async with database.session() as session:
        session.add_all(customers)
    await database.dispose()
    print(f"✅ Seeded {len(customers)} hosting customers into the database.")


if __name__ == "__main__":
    asyncio.run(seed())
