"""SQLAlchemy models for hosting customers, pricing plans and the billing-event ledger."""

from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import JSON, Date, DateTime, Enum, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hosting_admin.models.base import Base, utcnow


class HostingStatus(str, enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class HostingPlan(str, enum.Enum):
    STARTER = "starter"
    BUSINESS = "business"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class BillingCycle(str, enum.Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


def _values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class HostingCustomer(Base):
    """A customer's hosting subscription.

    ``status`` changes only through billing webhooks or an explicit admin
    edit.  ``external_customer_ref`` / ``external_subscription_ref`` hold
    the Stripe customer and subscription ids once checkout has linked them.
    """

    __tablename__ = "hosting_customers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_name: Mapped[str] = mapped_column(String(256), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(256), nullable=False)
    domain: Mapped[str] = mapped_column(String(256), nullable=False)
    plan: Mapped[HostingPlan] = mapped_column(
        Enum(HostingPlan, native_enum=False, values_callable=_values), nullable=False
    )
    billing_cycle: Mapped[BillingCycle] = mapped_column(
        Enum(BillingCycle, native_enum=False, values_callable=_values),
        nullable=False,
        default=BillingCycle.YEARLY,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    status: Mapped[HostingStatus] = mapped_column(
        Enum(HostingStatus, native_enum=False, values_callable=_values),
        nullable=False,
        default=HostingStatus.ACTIVE,
    )
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    renewal_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    external_customer_ref: Mapped[str | None] = mapped_column(String(128), nullable=True)
    external_subscription_ref: Mapped[str | None] = mapped_column(
        String(128), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    __table_args__ = (
        Index("ix_hosting_customers_external_customer_ref", "external_customer_ref"),
    )

    def __repr__(self) -> str:
        return (
            f"<HostingCustomer id={self.id} domain={self.domain!r} "
            f"status={self.status.value}>"
        )


class PricingPlan(Base):
    """A sellable hosting plan and its Stripe product and prices."""

    __tablename__ = "hosting_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    monthly_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    yearly_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)
    features: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    stripe_product_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    stripe_price_id_monthly: Mapped[str | None] = mapped_column(String(128), nullable=True)
    stripe_price_id_yearly: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )

    def __repr__(self) -> str:
        return f"<PricingPlan id={self.id} name={self.name!r}>"


class ProcessedBillingEvent(Base):
    """Ledger of provider events already applied, keyed by event id."""

    __tablename__ = "processed_billing_events"

    event_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(128), nullable=False)
    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
