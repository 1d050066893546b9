"""Billing event reconciler — applies Stripe webhook events to hosting customers."""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING

from hosting_admin.database.repository import HostingCustomerRepository
from hosting_admin.models.base import utcnow
from hosting_admin.models.hosting import HostingCustomer, HostingStatus
from hosting_admin.services.billing_gateway import BillingGateway
from hosting_admin.services.email_service import EmailService
from hosting_admin.webhook import events

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


class ReconcileOutcome(str, enum.Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    UNMATCHED = "unmatched"
    IGNORED = "ignored"


class BillingEventReconciler:
    """Drives ``HostingCustomer.status`` from verified billing events.

    State machine
    -------------
    * ``* -> active`` on checkout completion.
    * ``active <-> suspended`` on subscription updates and invoice results.
    * ``active/suspended -> cancelled`` on subscription deletion.  Once
      cancelled, only a checkout for a new subscription re-activates the
      record; every other event is ignored.

    Subscription and invoice events that name a subscription other than
    the one on record are stale deliveries and are ignored.

    Every handler is safe to replay: event ids are recorded in a ledger
    and the updates themselves converge to the same state.  Events that
    match no hosting customer are acknowledged without effect.
    """

    def __init__(self, gateway: BillingGateway, email_service: EmailService) -> None:
        self._gateway = gateway
        self._email = email_service
        self._handlers = {
            events.CHECKOUT_COMPLETED: self._checkout_completed,
            events.SUBSCRIPTION_UPDATED: self._subscription_updated,
            events.SUBSCRIPTION_DELETED: self._subscription_deleted,
            events.INVOICE_PAYMENT_SUCCEEDED: self._invoice_payment_succeeded,
            events.INVOICE_PAYMENT_FAILED: self._invoice_payment_failed,
        }

    async def handle(
        self, db: AsyncSession, event: events.BillingEvent
    ) -> ReconcileOutcome:
        repo = HostingCustomerRepository(db)
        if await repo.is_processed(event.id):
            logger.info("Event %s (%s) already processed", event.id, event.type)
            return ReconcileOutcome.DUPLICATE

        handler = self._handlers.get(event.type)
        if handler is None:
            logger.info("Unhandled event type: %s", event.type)
            outcome = ReconcileOutcome.IGNORED
        else:
            outcome = await handler(repo, event)

        await repo.mark_processed(event.id, event.type)
        logger.info("Event %s (%s) -> %s", event.id, event.type, outcome.value)
        return outcome

    # ── Handlers ─────────────────────────────────────────

    async def _checkout_completed(
        self, repo: HostingCustomerRepository, event: events.BillingEvent
    ) -> ReconcileOutcome:
        session = event.checkout_session()
        customer_id = session.hosting_customer_id
        if customer_id is None or not session.customer:
            logger.info("Checkout %s carries no hosting customer link", event.id)
            return ReconcileOutcome.IGNORED

        customer = await repo.get(customer_id)
        if customer is None:
            logger.warning("Checkout references unknown hosting customer %s", customer_id)
            return ReconcileOutcome.UNMATCHED
        if _is_closed(customer, session.subscription):
            return ReconcileOutcome.IGNORED

        customer.external_customer_ref = session.customer
        customer.external_subscription_ref = session.subscription
        _set_status(customer, HostingStatus.ACTIVE)
        return ReconcileOutcome.APPLIED

    async def _subscription_updated(
        self, repo: HostingCustomerRepository, event: events.BillingEvent
    ) -> ReconcileOutcome:
        sub = event.subscription()
        customer = await _linked(repo, sub.customer, event)
        if customer is None:
            return ReconcileOutcome.UNMATCHED
        if _is_stale(customer, sub.id) or _is_cancelled(customer):
            return ReconcileOutcome.IGNORED

        status = HostingStatus.ACTIVE if sub.status == "active" else HostingStatus.SUSPENDED
        customer.external_subscription_ref = sub.id
        _set_status(customer, status)
        return ReconcileOutcome.APPLIED

    async def _subscription_deleted(
        self, repo: HostingCustomerRepository, event: events.BillingEvent
    ) -> ReconcileOutcome:
        sub = event.subscription()
        customer = await _linked(repo, sub.customer, event)
        if customer is None:
            return ReconcileOutcome.UNMATCHED
        if _is_stale(customer, sub.id) or _is_cancelled(customer):
            return ReconcileOutcome.IGNORED

        customer.external_subscription_ref = sub.id
        _set_status(customer, HostingStatus.CANCELLED)
        return ReconcileOutcome.APPLIED

    async def _invoice_payment_succeeded(
        self, repo: HostingCustomerRepository, event: events.BillingEvent
    ) -> ReconcileOutcome:
        invoice = event.invoice()
        subscription_ref = invoice.subscription_ref
        if not subscription_ref:
            return ReconcileOutcome.IGNORED

        customer = await _linked(repo, invoice.customer, event)
        if customer is None:
            return ReconcileOutcome.UNMATCHED
        if _is_stale(customer, subscription_ref) or _is_cancelled(customer):
            return ReconcileOutcome.IGNORED

        period_end = await self._gateway.retrieve_subscription_period_end(subscription_ref)
        customer.renewal_date = period_end.date()
        _set_status(customer, HostingStatus.ACTIVE)
        return ReconcileOutcome.APPLIED

    async def _invoice_payment_failed(
        self, repo: HostingCustomerRepository, event: events.BillingEvent
    ) -> ReconcileOutcome:
        invoice = event.invoice()
        customer = await _linked(repo, invoice.customer, event)
        if customer is None:
            return ReconcileOutcome.UNMATCHED
        if _is_stale(customer, invoice.subscription_ref) or _is_cancelled(customer):
            return ReconcileOutcome.IGNORED

        _set_status(customer, HostingStatus.SUSPENDED)
        if customer.customer_email:
            await self._email.send_payment_failed(customer)
        return ReconcileOutcome.APPLIED


# ── Helpers ──────────────────────────────────────────────

async def _linked(
    repo: HostingCustomerRepository, customer_ref: str | None, event: events.BillingEvent
) -> HostingCustomer | None:
    if not customer_ref:
        return None
    customer = await repo.find_by_customer_ref(customer_ref)
    if customer is None:
        logger.info(
            "No hosting customer linked to %s for event %s", customer_ref, event.id
        )
    return customer


def _is_closed(customer: HostingCustomer, subscription_ref: str | None) -> bool:
    """True when *customer* is cancelled and the event concerns that same subscription."""
    if customer.status is not HostingStatus.CANCELLED:
        return False
    same = subscription_ref is None or subscription_ref == customer.external_subscription_ref
    if same:
        logger.info("Hosting customer %s is cancelled, event ignored", customer.id)
    return same


def _is_stale(customer: HostingCustomer, subscription_ref: str | None) -> bool:
    """True when the event names a subscription other than the recorded one."""
    recorded = customer.external_subscription_ref
    stale = bool(subscription_ref and recorded and subscription_ref != recorded)
    if stale:
        logger.info(
            "Hosting customer %s is on %s, event for %s ignored",
            customer.id,
            recorded,
            subscription_ref,
        )
    return stale


def _is_cancelled(customer: HostingCustomer) -> bool:
    if customer.status is HostingStatus.CANCELLED:
        logger.info("Hosting customer %s is cancelled, event ignored", customer.id)
        return True
    return False


def _set_status(customer: HostingCustomer, status: HostingStatus) -> None:
    if customer.status is not status:
        logger.info(
            "Hosting customer %s: %s -> %s",
            customer.id,
            customer.status.value,
            status.value,
        )
    customer.status = status
    customer.updated_at = utcnow()
