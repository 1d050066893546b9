"""Interactive webhook simulator — post signed Stripe events to a running server."""

import json
import time
import uuid

import httpx

from hosting_admin.config import get_settings
from hosting_admin.webhook import events
from hosting_admin.webhook.signing import build_signature_header

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
BOLD = "\033[1m"
RESET = "\033[0m"

MENU = {
    "1": events.CHECKOUT_COMPLETED,
    "2": events.SUBSCRIPTION_UPDATED,
    "3": events.SUBSCRIPTION_DELETED,
    "4": events.INVOICE_PAYMENT_SUCCEEDED,
    "5": events.INVOICE_PAYMENT_FAILED,
}


def build_object(event_type: str, customer_ref: str, subscription_ref: str) -> dict:
    if event_type == events.CHECKOUT_COMPLETED:
        hosting_id = input(f"{YELLOW}Hosting customer id: {RESET}").strip()
        return {
            "object": "checkout.session",
            "customer": customer_ref,
            "subscription": subscription_ref,
            "metadata": {"hosting_customer_id": hosting_id},
        }
    if event_type in (events.SUBSCRIPTION_UPDATED, events.SUBSCRIPTION_DELETED):
        status = "canceled"
        if event_type == events.SUBSCRIPTION_UPDATED:
            status = input(f"{YELLOW}Subscription status [active]: {RESET}").strip() or "active"
        return {
            "object": "subscription",
            "id": subscription_ref,
            "customer": customer_ref,
            "status": status,
        }
    return {"object": "invoice", "customer": customer_ref, "subscription": subscription_ref}


def main() -> None:
    settings = get_settings()
    url = "http://127.0.0.1:8000/api/webhooks/stripe"

    print(f"\n{BOLD}{'=' * 52}")
    print("  💳  Hosting Admin — Stripe Event Simulator")
    print(f"{'=' * 52}{RESET}\n")
    if not settings.stripe_webhook_secret:
        print(f"{RED}STRIPE_WEBHOOK_SECRET is not set; events will be rejected.{RESET}")

    customer_ref = input(f"{YELLOW}Stripe customer id [cus_seed_bob]: {RESET}").strip() or "cus_seed_bob"
    subscription_ref = input(f"{YELLOW}Subscription id [sub_seed_bob]: {RESET}").strip() or "sub_seed_bob"
    last_payload: str | None = None

    while True:
        print(f"{DIM}" + "  ".join(f"{k}) {v}" for k, v in MENU.items()) + f"  r) replay  q) quit{RESET}")
        try:
            choice = input(f"{BLUE}{BOLD}Event:{RESET} ").strip().lower()
        except (KeyboardInterrupt, EOFError):
            print(f"\n{DIM}Goodbye!{RESET}")
            break

        if choice == "q":
            print(f"{DIM}Goodbye!{RESET}")
            break
        if choice == "r":
            if last_payload is None:
                continue
            payload = last_payload
        elif choice in MENU:
            event_type = MENU[choice]
            payload = json.dumps(
                {
                    "id": f"evt_sim_{uuid.uuid4().hex[:16]}",
                    "object": "event",
                    "type": event_type,
                    "created": int(time.time()),
                    "data": {"object": build_object(event_type, customer_ref, subscription_ref)},
                }
            )
        else:
            continue

        headers = {
            "Content-Type": "application/json",
            "Stripe-Signature": build_signature_header(payload, settings.stripe_webhook_secret),
        }
        resp = httpx.post(url, content=payload, headers=headers)
        colour = GREEN if resp.status_code == 200 else RED
        print(f"{colour}{BOLD}Server:{RESET} {resp.status_code} {resp.text}\n")
        last_payload = payload


if __name__ == "__main__":
    main()
