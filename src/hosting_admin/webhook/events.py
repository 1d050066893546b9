"""Typed views of the Stripe webhook payloads this service reacts to.

Stripe objects may arrive with references either as bare ids or as
expanded objects; ``StripeRef`` collapses both to the id.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


def _ref(value: Any) -> str | None:
    if isinstance(value, dict):
        return value.get("id")
    return value or None


StripeRef = Annotated[str | None, BeforeValidator(_ref)]


class _StripeObject(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CheckoutSessionObject(_StripeObject):
    customer: StripeRef = None
    subscription: StripeRef = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @field_validator("metadata", mode="before")
    @classmethod
    def _none_metadata(cls, value: Any) -> Any:
        return value or {}

    @property
    def hosting_customer_id(self) -> int | None:
        raw = self.metadata.get("hosting_customer_id") or self.metadata.get(
            "hostingCustomerId"
        )
        if raw is None or not (raw.isascii() and raw.isdigit()):
            return None
        return int(raw)


class SubscriptionObject(_StripeObject):
    id: str
    customer: StripeRef = None
    status: str = ""


class InvoiceObject(_StripeObject):
    customer: StripeRef = None
    subscription: StripeRef = None
    parent: dict[str, Any] | None = None

    @property
    def subscription_ref(self) -> str | None:
        """Subscription id, from the legacy field or ``parent.subscription_details``."""
        if self.subscription:
            return self.subscription
        details = (self.parent or {}).get("subscription_details") or {}
        return _ref(details.get("subscription"))


class EventData(_StripeObject):
    object: dict[str, Any]


class BillingEvent(_StripeObject):
    """A verified Stripe event envelope."""

    id: str
    type: str
    data: EventData

    def typed_object(self) -> _StripeObject | None:
        """Validate ``data.object`` for the event types this service handles."""
        model = _OBJECT_MODELS.get(self.type)
        return model.model_validate(self.data.object) if model else None

    def checkout_session(self) -> CheckoutSessionObject:
        return CheckoutSessionObject.model_validate(self.data.object)

    def subscription(self) -> SubscriptionObject:
        return SubscriptionObject.model_validate(self.data.object)

    def invoice(self) -> InvoiceObject:
        return InvoiceObject.model_validate(self.data.object)


_OBJECT_MODELS: dict[str, type[_StripeObject]] = {
    CHECKOUT_COMPLETED: CheckoutSessionObject,
    SUBSCRIPTION_UPDATED: SubscriptionObject,
    SUBSCRIPTION_DELETED: SubscriptionObject,
    INVOICE_PAYMENT_SUCCEEDED: InvoiceObject,
    INVOICE_PAYMENT_FAILED: InvoiceObject,
}
