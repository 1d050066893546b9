"""Billing gateway — thin async wrapper around the Stripe SDK.

The SDK is synchronous, so API calls run in a worker thread.  Webhook
payloads are verified against the signing secret and converted to typed
``BillingEvent`` models before anything else sees them.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

import stripe
from pydantic import ValidationError as PydanticValidationError

from hosting_admin.config import Settings
from hosting_admin.exceptions import BillingProviderError, SignatureError, ValidationError
from hosting_admin.webhook.events import BillingEvent

logger = logging.getLogger(__name__)

PRICE_CURRENCY = "aud"


class BillingGateway:
    """Async facade over the Stripe calls the back-office needs."""

    def __init__(self, settings: Settings) -> None:
        self._api_key = settings.stripe_secret_key
        self._webhook_secret = settings.stripe_webhook_secret
        self._base_url = settings.app_base_url.rstrip("/")

    # ── Webhooks ─────────────────────────────────────────

    def parse_event(self, payload: bytes, signature: str | None) -> BillingEvent:
        """Verify *payload* against the ``Stripe-Signature`` header and parse it.

        Raises ``SignatureError`` before any parsing when the secret or the
        header is missing or the signature does not match.  The envelope and,
        for handled event types, ``data.object`` are validated here so that a
        malformed event is a ``ValidationError`` rather than a processing
        failure.
        """
        if not signature or not self._webhook_secret:
            raise SignatureError("Missing stripe signature or webhook secret")

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ValidationError("Webhook payload is not UTF-8") from exc

        try:
            stripe.WebhookSignature.verify_header(
                body, signature, self._webhook_secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
            )
        except stripe.SignatureVerificationError as exc:
            logger.warning("Webhook signature verification failed: %s", exc)
            raise SignatureError() from exc

        try:
            event = BillingEvent.model_validate_json(body)
            event.typed_object()
        except PydanticValidationError as exc:
            raise ValidationError("Malformed webhook payload") from exc
        return event

    # ── Subscriptions ────────────────────────────────────

    async def retrieve_subscription_period_end(self, subscription_id: str) -> datetime:
        """Return the end of the subscription's current paid period (UTC)."""
        sub = await self._call(
            stripe.Subscription.retrieve, subscription_id, api_key=self._api_key
        )
        period_end = sub.get("current_period_end")
        if period_end is None:
            # Newer API versions report the period on the subscription items.
            items = (sub.get("items") or {}).get("data") or []
            period_end = max(
                (item["current_period_end"] for item in items), default=None
            )
        if period_end is None:
            raise BillingProviderError(
                f"Subscription {subscription_id} has no current period end"
            )
        return datetime.fromtimestamp(int(period_end), tz=UTC)

    # ── Catalogue ────────────────────────────────────────

    @property
    def configured(self) -> bool:
        """True when a Stripe secret key is set."""
        return bool(self._api_key)

    async def create_product(self, name: str, description: str) -> str:
        """Create a Stripe product for a hosting plan and return its id."""
        product = await self._call(
            stripe.Product.create,
            api_key=self._api_key,
            name=name,
            description=description,
        )
        return product.id

    async def create_price(self, product_id: str, amount: Decimal, interval: str) -> str:
        """Create a recurring AUD price (``interval`` is ``month`` or ``year``)."""
        price = await self._call(
            stripe.Price.create,
            api_key=self._api_key,
            product=product_id,
            unit_amount=int((amount * 100).to_integral_value(ROUND_HALF_UP)),
            currency=PRICE_CURRENCY,
            recurring={"interval": interval},
        )
        return price.id

    # ── Redirect sessions ────────────────────────────────

    async def create_checkout_session(
        self,
        price_id: str,
        customer_email: str,
        hosting_customer_id: int | None = None,
    ) -> str:
        """Create a subscription checkout and return its hosted URL."""
        metadata = (
            {"hosting_customer_id": str(hosting_customer_id)}
            if hosting_customer_id is not None
            else {}
        )
        session = await self._call(
            stripe.checkout.Session.create,
            api_key=self._api_key,
            mode="subscription",
            payment_method_types=["card"],
            customer_email=customer_email,
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=f"{self._base_url}/admin/hosting?checkout=success",
            cancel_url=f"{self._base_url}/admin/hosting?checkout=cancelled",
            metadata=metadata,
        )
        return session.url

    async def create_portal_session(self, customer_ref: str) -> str:
        """Create a customer billing-portal session and return its URL."""
        session = await self._call(
            stripe.billing_portal.Session.create,
            api_key=self._api_key,
            customer=customer_ref,
            return_url=f"{self._base_url}/admin/hosting",
        )
        return session.url

    # ── Private helpers ──────────────────────────────────

    async def _call(self, func, *args, **kwargs):
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except stripe.StripeError as exc:
            logger.error("Stripe request failed: %s", exc)
            raise BillingProviderError(str(exc)) from exc
