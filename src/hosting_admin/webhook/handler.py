"""Stripe webhook handler — receives signed billing events."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from hosting_admin.api.deps import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhook"])


# ──────────────────────────────────────────────────────────────
# POST /api/webhooks/stripe — Billing events
# ──────────────────────────────────────────────────────────────
@router.post("/api/webhooks/stripe")
async def receive_event(
    request: Request, services: Services = Depends(get_services)
) -> JSONResponse:
    """Verify and apply a Stripe webhook event.

    Signature or payload problems raise before any database work and are
    answered with 400.  Processing failures answer 500 so Stripe retries;
    handlers are idempotent, which makes the retry safe.
    """
    payload = await request.body()
    event = services.gateway.parse_event(payload, request.headers.get("stripe-signature"))

    try:
        async with services.database.session() as db_session:
            await services.reconciler.handle(db_session, event)
    except Exception:
        logger.exception("Webhook processing error for event %s", event.id)
        return JSONResponse({"error": "Webhook processing failed"}, status_code=500)

    return JSONResponse({"received": True})
