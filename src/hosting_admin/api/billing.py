"""Admin billing endpoints — plan catalogue and Stripe redirects.

Endpoints
---------
GET    /api/plans                    → list plans, cheapest first
POST   /api/plans                    → create a plan (and its Stripe product/prices)
PUT    /api/plans/{id}               → edit a plan (partial)
DELETE /api/plans/{id}               → remove a plan
POST   /api/plans/checkout           → hosted checkout URL for a hosting customer
POST   /api/plans/portal             → billing-portal URL for a linked Stripe customer
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from hosting_admin.api.deps import Services, get_db, get_services, require_admin
from hosting_admin.database.repository import PricingPlanRepository
from hosting_admin.exceptions import BillingProviderError, NotFound, ValidationError
from hosting_admin.models.base import utcnow
from hosting_admin.models.hosting import PricingPlan
from hosting_admin.services.billing_gateway import BillingGateway
from hosting_admin.services.otp_issuer import normalize_email
from hosting_admin.services.session_manager import SessionInfo

logger = logging.getLogger(__name__)

router = APIRouter(tags=["billing"])


# ── Request / response models ────────────────────────────

class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PlanCreate(_CamelModel):
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    monthly_price: Decimal = Field(ge=0)
    yearly_price: Decimal = Field(ge=0)
    features: list[str] = Field(default_factory=list)
    stripe_product_id: str | None = None
    stripe_price_id_monthly: str | None = None
    stripe_price_id_yearly: str | None = None


class PlanUpdate(_CamelModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, min_length=1)
    monthly_price: Decimal | None = Field(default=None, ge=0)
    yearly_price: Decimal | None = Field(default=None, ge=0)
    features: list[str] | None = None
    stripe_product_id: str | None = None
    stripe_price_id_monthly: str | None = None
    stripe_price_id_yearly: str | None = None


class PlanOut(_CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str
    monthly_price: float
    yearly_price: float
    features: list[str]
    stripe_product_id: str | None
    stripe_price_id_monthly: str | None
    stripe_price_id_yearly: str | None
    created_at: datetime
    updated_at: datetime


class CheckoutRequest(_CamelModel):
    price_id: str = ""
    customer_email: str = ""
    hosting_customer_id: int | None = None


class PortalRequest(_CamelModel):
    stripe_customer_id: str = ""


_REQUIRED = frozenset({"name", "description", "monthly_price", "yearly_price", "features"})


# ── Plan catalogue ───────────────────────────────────────

@router.get("/api/plans")
async def list_plans(
    admin: SessionInfo = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    plans = await PricingPlanRepository(db).list_by_price()
    return [PlanOut.model_validate(p).model_dump(mode="json", by_alias=True) for p in plans]


@router.post("/api/plans")
async def create_plan(
    body: PlanCreate,
    admin: SessionInfo = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    services: Services = Depends(get_services),
):
    plan = PricingPlan(**body.model_dump())
    if not plan.stripe_product_id and services.gateway.configured:
        await _provision_stripe_catalogue(services.gateway, plan)

    await PricingPlanRepository(db).add(plan)
    await db.commit()

    logger.info("%s created plan %s (%s)", admin.email, plan.id, plan.name)
    return {"success": True, "id": plan.id}


@router.put("/api/plans/{plan_id}")
async def update_plan(
    plan_id: int,
    body: PlanUpdate,
    admin: SessionInfo = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    plan = await _get_plan_or_404(db, plan_id)

    changes = body.model_dump(exclude_unset=True)
    cleared = sorted(k for k in _REQUIRED if k in changes and changes[k] is None)
    if cleared:
        raise ValidationError(f"Fields cannot be cleared: {', '.join(cleared)}")

    for name, value in changes.items():
        setattr(plan, name, value)
    plan.updated_at = utcnow()
    await db.commit()
    return {"success": True}


@router.delete("/api/plans/{plan_id}")
async def delete_plan(
    plan_id: int,
    admin: SessionInfo = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    plan = await _get_plan_or_404(db, plan_id)
    await PricingPlanRepository(db).delete(plan)
    await db.commit()

    logger.info("%s deleted plan %s", admin.email, plan_id)
    return {"success": True}


# ── Stripe redirects ─────────────────────────────────────

@router.post("/api/plans/checkout")
async def create_checkout(
    body: CheckoutRequest,
    admin: SessionInfo = Depends(require_admin),
    services: Services = Depends(get_services),
):
    if not body.price_id or not body.customer_email:
        raise ValidationError("Price ID and customer email are required")

    url = await services.gateway.create_checkout_session(
        body.price_id,
        normalize_email(body.customer_email),
        body.hosting_customer_id,
    )
    logger.info(
        "%s created checkout for hosting customer %s", admin.email, body.hosting_customer_id
    )
    return {"url": url}


@router.post("/api/plans/portal")
async def create_portal(
    body: PortalRequest,
    admin: SessionInfo = Depends(require_admin),
    services: Services = Depends(get_services),
):
    if not body.stripe_customer_id:
        raise ValidationError("Stripe customer ID is required")

    url = await services.gateway.create_portal_session(body.stripe_customer_id)
    return {"url": url}


# ── Helpers ──────────────────────────────────────────────

async def _provision_stripe_catalogue(gateway: BillingGateway, plan: PricingPlan) -> None:
    """Create the Stripe product and recurring prices for a new plan.

    A provider failure leaves the plan without Stripe ids; they can be
    filled in later through an update.
    """
    try:
        plan.stripe_product_id = await gateway.create_product(plan.name, plan.description)
        if plan.monthly_price > 0:
            plan.stripe_price_id_monthly = await gateway.create_price(
                plan.stripe_product_id, plan.monthly_price, "month"
            )
        if plan.yearly_price > 0:
            plan.stripe_price_id_yearly = await gateway.create_price(
                plan.stripe_product_id, plan.yearly_price, "year"
            )
    except BillingProviderError:
        logger.warning("Stripe catalogue setup failed for plan %r, saved without it", plan.name)


async def _get_plan_or_404(db: AsyncSession, plan_id: int) -> PricingPlan:
    plan = await PricingPlanRepository(db).get(plan_id)
    if plan is None:
        raise NotFound("Plan not found")
    return plan
