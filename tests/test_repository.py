"""Tests for the repositories."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from hosting_admin.database.repository import AdminRepository, HostingCustomerRepository

from conftest import make_customer


@pytest.mark.asyncio
async def test_get_or_create_admin_uses_local_part(db_session: AsyncSession):
    repo = AdminRepository(db_session)
    admin = await repo.get_or_create("jane.doe@example.com")

    assert admin.id is not None
    assert admin.display_name == "jane.doe"
    assert admin.role == "admin"
    assert (await repo.get_or_create("jane.doe@example.com")).id == admin.id


@pytest.mark.asyncio
async def test_find_admin_no_match(db_session: AsyncSession):
    assert await AdminRepository(db_session).find_by_email("nobody@example.com") is None


@pytest.mark.asyncio
async def test_find_by_customer_ref(db_session: AsyncSession):
    db_session.add_all(
        [
            make_customer(domain="one.com", external_customer_ref="cus_1"),
            make_customer(domain="two.com", external_customer_ref="cus_2"),
            make_customer(domain="three.com"),
        ]
    )
    await db_session.commit()
    repo = HostingCustomerRepository(db_session)

    match = await repo.find_by_customer_ref("cus_2")
    assert match is not None
    assert match.domain == "two.com"
    assert await repo.find_by_customer_ref("cus_404") is None


@pytest.mark.asyncio
async def test_processed_event_ledger(db_session: AsyncSession):
    repo = HostingCustomerRepository(db_session)

    assert await repo.is_processed("evt_1") is False
    await repo.mark_processed("evt_1", "invoice.payment_failed")
    assert await repo.is_processed("evt_1") is True
    assert await repo.is_processed("evt_2") is False
