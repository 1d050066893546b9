"""Build ``Stripe-Signature`` headers for locally generated events.

Used by the event simulator and the test-suite; production traffic is
signed by Stripe itself.
"""

import hashlib
import hmac
import time


def build_signature_header(payload: str, secret: str, timestamp: int | None = None) -> str:
    """Return a ``t=…,v1=…`` header that ``stripe.WebhookSignature`` accepts."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"
