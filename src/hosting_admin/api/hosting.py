"""Hosting customer administration.

Endpoints
---------
GET    /api/hosting                  → list customers, soonest renewal first
POST   /api/hosting                  → create a customer
PUT    /api/hosting/{id}             → edit a customer (partial)
DELETE /api/hosting/{id}             → remove a customer
POST   /api/hosting/{id}/notify      → email a renewal reminder
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from hosting_admin.api.deps import Services, get_db, get_services, require_admin
from hosting_admin.database.repository import HostingCustomerRepository
from hosting_admin.exceptions import NotFound, ValidationError
from hosting_admin.models.base import utcnow
from hosting_admin.models.hosting import (
    BillingCycle,
    HostingCustomer,
    HostingPlan,
    HostingStatus,
)
from hosting_admin.services.otp_issuer import normalize_email
from hosting_admin.services.session_manager import SessionInfo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/hosting", tags=["hosting"])


# ── Request / response models ────────────────────────────

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HostingCustomerCreate(_CamelModel):
    customer_name: str = Field(min_length=1)
    customer_email: str
    domain: str = Field(min_length=1)
    plan: HostingPlan
    status: HostingStatus = HostingStatus.ACTIVE
    start_date: date
    renewal_date: date
    amount: Decimal = Field(ge=0)
    billing_cycle: BillingCycle = BillingCycle.YEARLY
    external_customer_ref: str | None = Field(default=None, alias="stripeCustomerId")
    external_subscription_ref: str | None = Field(
        default=None, alias="stripeSubscriptionId"
    )
    notes: str | None = None


class HostingCustomerUpdate(_CamelModel):
    customer_name: str | None = Field(default=None, min_length=1)
    customer_email: str | None = None
    domain: str | None = Field(default=None, min_length=1)
    plan: HostingPlan | None = None
    status: HostingStatus | None = None
    start_date: date | None = None
    renewal_date: date | None = None
    amount: Decimal | None = Field(default=None, ge=0)
    billing_cycle: BillingCycle | None = None
    external_customer_ref: str | None = Field(default=None, alias="stripeCustomerId")
    external_subscription_ref: str | None = Field(
        default=None, alias="stripeSubscriptionId"
    )
    notes: str | None = None


class HostingCustomerOut(_CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_name: str
    customer_email: str
    domain: str
    plan: HostingPlan
    status: HostingStatus
    start_date: date | None
    renewal_date: date | None
    amount: float
    billing_cycle: BillingCycle
    external_customer_ref: str | None = Field(alias="stripeCustomerId")
    external_subscription_ref: str | None = Field(alias="stripeSubscriptionId")
    notes: str | None
    created_at: datetime
    updated_at: datetime


# Fields an update may not clear.
_REQUIRED = frozenset(
    {"customer_name", "customer_email", "domain", "plan", "status", "amount", "billing_cycle"}
)


# ── Endpoints ────────────────────────────────────────────

@router.get("")
async def list_customers(
    admin: SessionInfo = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    customers = await HostingCustomerRepository(db).list_by_renewal()
    return [
        HostingCustomerOut.model_validate(c).model_dump(mode="json", by_alias=True)
        for c in customers
    ]


@router.post("")
async def create_customer(
    body: HostingCustomerCreate,
    admin: SessionInfo = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    fields = body.model_dump()
    fields["customer_email"] = normalize_email(body.customer_email)
    customer = await HostingCustomerRepository(db).add(HostingCustomer(**fields))
    await db.commit()

    logger.info("%s created hosting customer %s (%s)", admin.email, customer.id, customer.domain)
    return {"success": True, "id": customer.id}


@router.put("/{customer_id}")
async def update_customer(
    customer_id: int,
    body: HostingCustomerUpdate,
    admin: SessionInfo = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    customer = await _get_or_404(db, customer_id)

    changes = body.model_dump(exclude_unset=True)
    cleared = sorted(k for k in _REQUIRED if k in changes and changes[k] is None)
    if cleared:
        raise ValidationError(f"Fields cannot be cleared: {', '.join(cleared)}")
    if "customer_email" in changes:
        changes["customer_email"] = normalize_email(changes["customer_email"])

    for name, value in changes.items():
        setattr(customer, name, value)
    customer.updated_at = utcnow()
    await db.commit()

    if "status" in changes:
        logger.info(
            "%s set hosting customer %s status to %s",
            admin.email,
            customer.id,
            customer.status.value,
        )
    return {"success": True}


@router.delete("/{customer_id}")
async def delete_customer(
    customer_id: int,
    admin: SessionInfo = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    customer = await _get_or_404(db, customer_id)
    await HostingCustomerRepository(db).delete(customer)
    await db.commit()

    logger.info("%s deleted hosting customer %s", admin.email, customer_id)
    return {"success": True}


@router.post("/{customer_id}/notify")
async def notify_renewal(
    customer_id: int,
    admin: SessionInfo = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    customer = await _get_or_404(db, customer_id)
    if customer.renewal_date is None:
        raise ValidationError("Hosting customer has no renewal date")

    await services.email.send_renewal_reminder(customer)
    logger.info("%s sent renewal reminder for %s", admin.email, customer.domain)
    return {"success": True}


async def _get_or_404(db: AsyncSession, customer_id: int) -> HostingCustomer:
    customer = await HostingCustomerRepository(db).get(customer_id)
    if customer is None:
        raise NotFound("Hosting customer not found")
    return customer
