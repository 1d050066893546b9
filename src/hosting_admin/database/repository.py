"""Repositories — data access layer for admins, credentials and hosting customers."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from hosting_admin.models.admin import DEFAULT_ROLE, AdminAccount
from hosting_admin.models.base import utcnow
from hosting_admin.models.credentials import AdminSession, OneTimeCode
from hosting_admin.models.hosting import HostingCustomer, PricingPlan, ProcessedBillingEvent


class AdminRepository:
    """Encapsulates all database queries related to admin accounts."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_email(self, email: str) -> AdminAccount | None:
        stmt = select(AdminAccount).where(AdminAccount.email == email)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(self, email: str) -> AdminAccount:
        """Return the admin for *email*, provisioning it on first sight.

        The display name defaults to the local part of the address.
        """
        admin = await self.find_by_email(email)
        if admin is None:
            admin = AdminAccount(
                email=email, display_name=email.split("@")[0], role=DEFAULT_ROLE
            )
            self._session.add(admin)
            await self._session.flush()
        return admin


class CredentialRepository:
    """Stores one-time codes and sessions, always by hash."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # ── One-time codes ───────────────────────────────────

    async def replace_code(
        self, email: str, code_hash: str, created_at: datetime, expires_at: datetime
    ) -> OneTimeCode:
        """Delete every code for *email* and store the new one."""
        await self._session.execute(
            delete(OneTimeCode).where(OneTimeCode.subject_email == email)
        )
        row = OneTimeCode(
            subject_email=email,
            code_hash=code_hash,
            created_at=created_at,
            expires_at=expires_at,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def find_live_code(
        self, code_hash: str, now: datetime | None = None
    ) -> OneTimeCode | None:
        stmt = (
            select(OneTimeCode)
            .where(
                OneTimeCode.code_hash == code_hash,
                OneTimeCode.expires_at > (now or utcnow()),
            )
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def delete_codes_by_hash(self, code_hash: str) -> None:
        await self._session.execute(
            delete(OneTimeCode).where(OneTimeCode.code_hash == code_hash)
        )

    async def codes_for(self, email: str) -> list[OneTimeCode]:
        stmt = select(OneTimeCode).where(OneTimeCode.subject_email == email)
        result = await self._session.execute(stmt)
        return list(result.scalars())

    # ── Sessions ─────────────────────────────────────────

    async def add_session(self, row: AdminSession) -> AdminSession:
        self._session.add(row)
        await self._session.flush()
        return row

    async def find_live_session(
        self, token_hash: str, now: datetime | None = None
    ) -> AdminSession | None:
        stmt = select(AdminSession).where(
            AdminSession.token_hash == token_hash,
            AdminSession.expires_at > (now or utcnow()),
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def delete_session(self, token_hash: str) -> None:
        await self._session.execute(
            delete(AdminSession).where(AdminSession.token_hash == token_hash)
        )

    async def purge_expired(self, now: datetime | None = None) -> int:
        """Delete expired codes and sessions; return the number of rows removed."""
        now = now or utcnow()
        codes = await self._session.execute(
            delete(OneTimeCode).where(OneTimeCode.expires_at <= now)
        )
        sessions = await self._session.execute(
            delete(AdminSession).where(AdminSession.expires_at <= now)
        )
        return (codes.rowcount or 0) + (sessions.rowcount or 0)


class HostingCustomerRepository:
    """Queries over hosting customers and the processed-event ledger."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, customer_id: int) -> HostingCustomer | None:
        return await self._session.get(HostingCustomer, customer_id)

    async def list_by_renewal(self) -> list[HostingCustomer]:
        """All hosting customers, soonest renewal first."""
        stmt = select(HostingCustomer).order_by(
            HostingCustomer.renewal_date.asc().nulls_last(), HostingCustomer.id
        )
        result = await self._session.execute(stmt)
        return list(result.scalars())

    async def add(self, customer: HostingCustomer) -> HostingCustomer:
        self._session.add(customer)
        await self._session.flush()
        return customer

    async def delete(self, customer: HostingCustomer) -> None:
        await self._session.delete(customer)

    async def find_by_customer_ref(self, customer_ref: str) -> HostingCustomer | None:
        """Look up the hosting customer linked to a Stripe customer id."""
        stmt = (
            select(HostingCustomer)
            .where(HostingCustomer.external_customer_ref == customer_ref)
            .order_by(HostingCustomer.id)
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def is_processed(self, event_id: str) -> bool:
        return await self._session.get(ProcessedBillingEvent, event_id) is not None

    async def mark_processed(self, event_id: str, event_type: str) -> None:
        self._session.add(ProcessedBillingEvent(event_id=event_id, event_type=event_type))
        await self._session.flush()


class PricingPlanRepository:
    """CRUD over the hosting plan catalogue."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, plan_id: int) -> PricingPlan | None:
        return await self._session.get(PricingPlan, plan_id)

    async def list_by_price(self) -> list[PricingPlan]:
        stmt = select(PricingPlan).order_by(PricingPlan.monthly_price, PricingPlan.id)
        result = await self._session.execute(stmt)
        return list(result.scalars())

    async def add(self, plan: PricingPlan) -> PricingPlan:
        self._session.add(plan)
        await self._session.flush()
        return plan

    async def delete(self, plan: PricingPlan) -> None:
        await self._session.delete(plan)
