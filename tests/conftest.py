"""Shared fixtures: in-memory database, test settings, mocked mail transport."""

from __future__ import annotations

import json
import uuid
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from hosting_admin.config import Settings
from hosting_admin.database.engine import Database
from hosting_admin.models.hosting import (
    BillingCycle,
    HostingCustomer,
    HostingPlan,
    HostingStatus,
)
from hosting_admin.services.email_service import EmailService
from hosting_admin.webhook.signing import build_signature_header

WEBHOOK_SECRET = "whsec_test_secret"
ADMIN_EMAIL = "a@x.com"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite://",
        admin_emails=f"{ADMIN_EMAIL}, Admin@Example.com",
        cookie_secure=False,
        smtp_host="",
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret=WEBHOOK_SECRET,
        app_base_url="https://admin.example.com/",
    )


@pytest_asyncio.fixture
async def database():
    """A fresh in-memory database with all tables created."""
    db = Database("sqlite+aiosqlite://")
    await db.init()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database: Database):
    async with database.session_factory() as session:
        yield session


@pytest.fixture
def email_service(settings: Settings) -> EmailService:
    """Mocked email service — never actually sends emails."""
    svc = EmailService(settings)
    svc.send_login_code = AsyncMock()
    svc.send_payment_failed = AsyncMock()
    svc.send_renewal_reminder = AsyncMock()
    return svc


def make_customer(**overrides) -> HostingCustomer:
    fields = dict(
        customer_name="Alice Johnson",
        customer_email="alice@example.com",
        domain="alicebakes.com.au",
        plan=HostingPlan.STARTER,
        billing_cycle=BillingCycle.YEARLY,
        amount=Decimal("120.00"),
        status=HostingStatus.ACTIVE,
        start_date=date(2025, 3, 1),
        renewal_date=date(2026, 3, 1),
    )
    fields.update(overrides)
    return HostingCustomer(**fields)


def make_event(event_type: str, obj: dict, event_id: str | None = None) -> dict:
    return {
        "id": event_id or f"evt_{uuid.uuid4().hex[:16]}",
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }


def signed(event: dict, secret: str = WEBHOOK_SECRET) -> tuple[str, dict[str, str]]:
    """Serialise *event* and return it with a valid Stripe-Signature header."""
    payload = json.dumps(event)
    return payload, {
        "Content-Type": "application/json",
        "Stripe-Signature": build_signature_header(payload, secret),
    }
