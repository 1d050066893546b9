"""Tests for the BillingEventReconciler state machine."""

from __future__ import annotations

from datetime import UTC, date, datetime
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from hosting_admin.models.hosting import HostingStatus
from hosting_admin.services.billing_gateway import BillingGateway
from hosting_admin.services.billing_reconciler import BillingEventReconciler, ReconcileOutcome
from hosting_admin.webhook import events
from hosting_admin.webhook.events import BillingEvent

from conftest import make_customer, make_event

PERIOD_END = datetime(2027, 4, 30, 23, 59, 59, tzinfo=UTC)


@pytest.fixture
def gateway(settings) -> BillingGateway:
    gw = BillingGateway(settings)
    gw.retrieve_subscription_period_end = AsyncMock(return_value=PERIOD_END)
    return gw


@pytest.fixture
def reconciler(gateway, email_service) -> BillingEventReconciler:
    return BillingEventReconciler(gateway, email_service)


@pytest_asyncio.fixture
async def unlinked(db_session):
    customer = make_customer(status=HostingStatus.SUSPENDED)
    db_session.add(customer)
    await db_session.commit()
    return customer


@pytest_asyncio.fixture
async def linked(db_session):
    customer = make_customer(
        external_customer_ref="cus_123", external_subscription_ref="sub_123"
    )
    db_session.add(customer)
    await db_session.commit()
    return customer


def _event(event_type: str, obj: dict, event_id: str | None = None) -> BillingEvent:
    return BillingEvent.model_validate(make_event(event_type, obj, event_id))


def _checkout(customer_id, event_id=None, subscription="sub_123") -> BillingEvent:
    return _event(
        events.CHECKOUT_COMPLETED,
        {
            "customer": "cus_123",
            "subscription": subscription,
            "metadata": {"hosting_customer_id": str(customer_id)},
        },
        event_id,
    )


def _snapshot(customer) -> tuple:
    return (
        customer.status,
        customer.external_customer_ref,
        customer.external_subscription_ref,
        customer.renewal_date,
    )


# ──────────────────────────────────────────────────────────
# checkout.session.completed
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_checkout_links_and_activates(db_session, reconciler, unlinked):
    outcome = await reconciler.handle(db_session, _checkout(unlinked.id))

    assert outcome is ReconcileOutcome.APPLIED
    assert unlinked.status is HostingStatus.ACTIVE
    assert unlinked.external_customer_ref == "cus_123"
    assert unlinked.external_subscription_ref == "sub_123"


@pytest.mark.asyncio
async def test_checkout_replay_is_idempotent(db_session, reconciler, unlinked):
    event = _checkout(unlinked.id, event_id="evt_checkout_1")

    assert await reconciler.handle(db_session, event) is ReconcileOutcome.APPLIED
    once = _snapshot(unlinked)
    assert await reconciler.handle(db_session, event) is ReconcileOutcome.DUPLICATE

    assert _snapshot(unlinked) == once


@pytest.mark.asyncio
async def test_checkout_redelivered_under_new_id_converges(db_session, reconciler, unlinked):
    await reconciler.handle(db_session, _checkout(unlinked.id))
    once = _snapshot(unlinked)
    await reconciler.handle(db_session, _checkout(unlinked.id))

    assert _snapshot(unlinked) == once


@pytest.mark.asyncio
async def test_checkout_legacy_metadata_key(db_session, reconciler, unlinked):
    event = _event(
        events.CHECKOUT_COMPLETED,
        {"customer": "cus_9", "subscription": "sub_9", "metadata": {"hostingCustomerId": str(unlinked.id)}},
    )
    assert await reconciler.handle(db_session, event) is ReconcileOutcome.APPLIED
    assert unlinked.external_customer_ref == "cus_9"


@pytest.mark.asyncio
async def test_checkout_without_link_or_unknown_id_creates_nothing(db_session, reconciler, unlinked):
    no_link = _event(events.CHECKOUT_COMPLETED, {"customer": "cus_1", "metadata": None})
    unknown = _checkout(99999)

    assert await reconciler.handle(db_session, no_link) is ReconcileOutcome.IGNORED
    assert await reconciler.handle(db_session, unknown) is ReconcileOutcome.UNMATCHED
    assert unlinked.status is HostingStatus.SUSPENDED
    assert unlinked.external_customer_ref is None


@pytest.mark.asyncio
async def test_checkout_with_new_subscription_reactivates_cancelled(db_session, reconciler, linked):
    linked.status = HostingStatus.CANCELLED

    same = _checkout(linked.id, subscription="sub_123")
    fresh = _checkout(linked.id, subscription="sub_456")

    assert await reconciler.handle(db_session, same) is ReconcileOutcome.IGNORED
    assert linked.status is HostingStatus.CANCELLED
    assert await reconciler.handle(db_session, fresh) is ReconcileOutcome.APPLIED
    assert linked.status is HostingStatus.ACTIVE
    assert linked.external_subscription_ref == "sub_456"


@pytest.mark.asyncio
@pytest.mark.parametrize("raw_id", ["²", "١٢", "-1", "3.0"])
async def test_checkout_with_non_ascii_or_non_integer_id_is_ignored(
    db_session, reconciler, unlinked, raw_id
):
    event = _event(
        events.CHECKOUT_COMPLETED,
        {"customer": "cus_123", "subscription": "sub_1", "metadata": {"hosting_customer_id": raw_id}},
    )

    assert await reconciler.handle(db_session, event) is ReconcileOutcome.IGNORED
    assert unlinked.external_customer_ref is None


# ──────────────────────────────────────────────────────────
# customer.subscription.*
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "provider_status, expected",
    [
        ("active", HostingStatus.ACTIVE),
        ("past_due", HostingStatus.SUSPENDED),
        ("unpaid", HostingStatus.SUSPENDED),
        ("trialing", HostingStatus.SUSPENDED),
    ],
)
async def test_subscription_updated_maps_status(
    db_session, reconciler, linked, provider_status, expected
):
    event = _event(
        events.SUBSCRIPTION_UPDATED,
        {"id": "sub_123", "customer": "cus_123", "status": provider_status},
    )
    assert await reconciler.handle(db_session, event) is ReconcileOutcome.APPLIED
    assert linked.status is expected


@pytest.mark.asyncio
async def test_subscription_updated_accepts_expanded_customer(db_session, reconciler, linked):
    linked.status = HostingStatus.SUSPENDED
    event = _event(
        events.SUBSCRIPTION_UPDATED,
        {"id": "sub_123", "customer": {"id": "cus_123", "object": "customer"}, "status": "active"},
    )
    await reconciler.handle(db_session, event)
    assert linked.status is HostingStatus.ACTIVE


@pytest.mark.asyncio
async def test_subscription_deleted_is_terminal(db_session, reconciler, linked):
    deleted = _event(
        events.SUBSCRIPTION_DELETED,
        {"id": "sub_123", "customer": "cus_123", "status": "canceled"},
    )
    late_update = _event(
        events.SUBSCRIPTION_UPDATED,
        {"id": "sub_123", "customer": "cus_123", "status": "active"},
    )
    late_invoice = _event(
        events.INVOICE_PAYMENT_SUCCEEDED, {"customer": "cus_123", "subscription": "sub_123"}
    )

    assert await reconciler.handle(db_session, deleted) is ReconcileOutcome.APPLIED
    assert linked.status is HostingStatus.CANCELLED
    assert await reconciler.handle(db_session, late_update) is ReconcileOutcome.IGNORED
    assert await reconciler.handle(db_session, late_invoice) is ReconcileOutcome.IGNORED
    assert linked.status is HostingStatus.CANCELLED


@pytest.mark.asyncio
async def test_subscription_event_for_unlinked_customer_is_acknowledged(
    db_session, reconciler, unlinked
):
    event = _event(
        events.SUBSCRIPTION_DELETED, {"id": "sub_x", "customer": "cus_unknown", "status": "canceled"}
    )
    assert await reconciler.handle(db_session, event) is ReconcileOutcome.UNMATCHED
    assert unlinked.status is HostingStatus.SUSPENDED


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "event_type, provider_status",
    [(events.SUBSCRIPTION_DELETED, "canceled"), (events.SUBSCRIPTION_UPDATED, "past_due")],
)
async def test_event_for_superseded_subscription_is_ignored(
    db_session, reconciler, linked, event_type, provider_status
):
    event = _event(
        event_type, {"id": "sub_OLD", "customer": "cus_123", "status": provider_status}
    )

    assert await reconciler.handle(db_session, event) is ReconcileOutcome.IGNORED
    assert linked.status is HostingStatus.ACTIVE
    assert linked.external_subscription_ref == "sub_123"


@pytest.mark.asyncio
async def test_invoice_for_superseded_subscription_is_ignored(
    db_session, reconciler, email_service, linked
):
    event = _event(
        events.INVOICE_PAYMENT_FAILED, {"customer": "cus_123", "subscription": "sub_OLD"}
    )

    assert await reconciler.handle(db_session, event) is ReconcileOutcome.IGNORED
    assert linked.status is HostingStatus.ACTIVE
    email_service.send_payment_failed.assert_not_called()


@pytest.mark.asyncio
async def test_only_checkout_reactivates_cancelled_customer(db_session, reconciler, linked):
    linked.status = HostingStatus.CANCELLED
    other_update = _event(
        events.SUBSCRIPTION_UPDATED,
        {"id": "sub_456", "customer": "cus_123", "status": "active"},
    )

    assert await reconciler.handle(db_session, other_update) is ReconcileOutcome.IGNORED
    assert linked.status is HostingStatus.CANCELLED
    assert linked.external_subscription_ref == "sub_123"

    checkout = _checkout(linked.id, subscription="sub_456")
    assert await reconciler.handle(db_session, checkout) is ReconcileOutcome.APPLIED
    assert linked.status is HostingStatus.ACTIVE


@pytest.mark.asyncio
async def test_subscription_update_records_first_subscription(db_session, reconciler):
    customer = make_customer(external_customer_ref="cus_789")
    db_session.add(customer)
    await db_session.commit()
    event = _event(
        events.SUBSCRIPTION_UPDATED, {"id": "sub_789", "customer": "cus_789", "status": "active"}
    )

    assert await reconciler.handle(db_session, event) is ReconcileOutcome.APPLIED
    assert customer.external_subscription_ref == "sub_789"


# ──────────────────────────────────────────────────────────
# invoice.payment_*
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_payment_succeeded_sets_renewal_date(db_session, reconciler, gateway, linked):
    linked.status = HostingStatus.SUSPENDED
    event = _event(
        events.INVOICE_PAYMENT_SUCCEEDED, {"customer": "cus_123", "subscription": "sub_123"}
    )

    assert await reconciler.handle(db_session, event) is ReconcileOutcome.APPLIED
    gateway.retrieve_subscription_period_end.assert_awaited_once_with("sub_123")
    assert linked.status is HostingStatus.ACTIVE
    assert linked.renewal_date == date(2027, 4, 30)


@pytest.mark.asyncio
async def test_payment_succeeded_reads_parent_subscription(db_session, reconciler, gateway, linked):
    event = _event(
        events.INVOICE_PAYMENT_SUCCEEDED,
        {
            "customer": "cus_123",
            "parent": {"subscription_details": {"subscription": "sub_123"}},
        },
    )
    await reconciler.handle(db_session, event)
    gateway.retrieve_subscription_period_end.assert_awaited_once_with("sub_123")


@pytest.mark.asyncio
async def test_one_off_invoice_is_ignored(db_session, reconciler, gateway, linked):
    event = _event(events.INVOICE_PAYMENT_SUCCEEDED, {"customer": "cus_123"})

    assert await reconciler.handle(db_session, event) is ReconcileOutcome.IGNORED
    gateway.retrieve_subscription_period_end.assert_not_awaited()
    assert linked.renewal_date == date(2026, 3, 1)


@pytest.mark.asyncio
async def test_payment_failed_suspends_and_notifies_once(
    db_session, reconciler, email_service, linked
):
    event = _event(
        events.INVOICE_PAYMENT_FAILED,
        {"customer": "cus_123", "subscription": "sub_123"},
        event_id="evt_failed_1",
    )

    assert await reconciler.handle(db_session, event) is ReconcileOutcome.APPLIED
    assert await reconciler.handle(db_session, event) is ReconcileOutcome.DUPLICATE

    assert linked.status is HostingStatus.SUSPENDED
    email_service.send_payment_failed.assert_awaited_once_with(linked)


@pytest.mark.asyncio
async def test_payment_failed_for_unknown_customer_sends_nothing(
    db_session, reconciler, email_service, linked
):
    event = _event(events.INVOICE_PAYMENT_FAILED, {"customer": "cus_other"})

    assert await reconciler.handle(db_session, event) is ReconcileOutcome.UNMATCHED
    email_service.send_payment_failed.assert_not_called()
    assert linked.status is HostingStatus.ACTIVE


# ──────────────────────────────────────────────────────────
# Other events
# ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_unknown_event_type_is_ignored(db_session, reconciler, linked):
    event = _event("customer.created", {"id": "cus_123"})

    assert await reconciler.handle(db_session, event) is ReconcileOutcome.IGNORED
    assert linked.status is HostingStatus.ACTIVE
