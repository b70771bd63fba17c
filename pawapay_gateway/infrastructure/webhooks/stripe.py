"""Stripe webhook signature check and event logging"""

import hashlib
import hmac
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from pawapay_gateway.domain.exceptions import SignatureError
from pawapay_gateway.infrastructure.observability.logging import log_callback
from pawapay_gateway.infrastructure.webhooks.base import InboundWebhook, WebhookHandler

logger = logging.getLogger(__name__)

PERMITTED_EVENTS = (
    "checkout.session.completed",
    "payment_intent.succeeded",
    "payment_intent.payment_failed",
)
DEFAULT_TOLERANCE_SECONDS = 300


def parse_stripe_signature(header: str) -> Tuple[Optional[int], List[str]]:
    """Split 't=...,v1=...,v1=...' into the timestamp and v1 signatures"""
    timestamp = None
    signatures = []
    for item in header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                return None, []
        elif key == "v1" and value:
            signatures.append(value)
    return timestamp, signatures


def compute_stripe_signature(secret: str, timestamp: int, raw_body: bytes) -> str:
    signed_payload = f"{timestamp}.".encode("utf-8") + raw_body
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


class StripeWebhookHandler(WebhookHandler):
    provider = "stripe"

    def __init__(self, webhook_secret: str | None, tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS):
        self.webhook_secret = webhook_secret
        self.tolerance_seconds = tolerance_seconds

    def verify(self, inbound: InboundWebhook) -> None:
        if not self.webhook_secret:
            raise SignatureError("Stripe webhook secret is not configured")

        header = next((v for k, v in inbound.headers.items() if k.lower() == "stripe-signature"), None)
        if not header:
            raise SignatureError("Missing stripe-signature header")

        timestamp, signatures = parse_stripe_signature(header)
        if timestamp is None or not signatures:
            raise SignatureError("Malformed stripe-signature header")
        if abs(int(time.time()) - timestamp) > self.tolerance_seconds:
            raise SignatureError("Stripe signature timestamp outside tolerance")

        expected = compute_stripe_signature(self.webhook_secret, timestamp, inbound.raw_body)
        if not any(hmac.compare_digest(expected, candidate) for candidate in signatures):
            raise SignatureError("Stripe signature mismatch")

    async def process(self, event: Dict[str, Any]) -> None:
        event_type = event.get("type")
        if event_type not in PERMITTED_EVENTS:
            logger.warning("Unhandled Stripe event type", extra={"event_type": event_type})
            return

        data = event.get("data", {}).get("object", {}) if isinstance(event.get("data"), dict) else {}
        log_callback(self.provider, event_type, data.get("id") or event.get("id"), data.get("status"))
