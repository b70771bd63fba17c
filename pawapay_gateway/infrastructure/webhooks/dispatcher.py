"""Routes inbound callbacks to provider handlers and decides the acknowledgment"""

import logging
from typing import Mapping

from pawapay_gateway.domain.exceptions import MalformedPayloadError, SignatureError
from pawapay_gateway.infrastructure.observability.metrics import (
    record_webhook,
    webhook_processing_failure_counter,
)
from pawapay_gateway.infrastructure.webhooks.base import InboundWebhook, WebhookHandler, WebhookResult

logger = logging.getLogger(__name__)

ACKNOWLEDGED = {"received": True}


class WebhookDispatcher:
    """
    Verify, parse, then process a provider callback.

    Only a failed signature (401), an unreadable body (400), an unknown
    provider (400) or a non-POST method (405) produce a non-success
    response. Once a verified event is parsed it is acknowledged with 200,
    even if processing fails, because providers redeliver the whole
    webhook on any error.
    """

    def __init__(self, handlers: Mapping[str, WebhookHandler]):
        self.handlers = {name.lower(): handler for name, handler in handlers.items()}

    async def dispatch(self, provider: str, inbound: InboundWebhook) -> WebhookResult:
        provider = provider.lower()

        if inbound.method.upper() != "POST":
            logger.error("Invalid webhook method", extra={"method": inbound.method, "provider": provider})
            return WebhookResult(405, {"error": "Method not allowed"})

        handler = self.handlers.get(provider)
        if handler is None:
            logger.error("Unknown webhook provider", extra={"provider": provider})
            record_webhook(provider, "unknown_provider")
            return WebhookResult(400, {"error": "Unknown webhook provider"})

        try:
            handler.verify(inbound)
        except SignatureError as e:
            logger.warning(f"Rejected {provider} callback: {e}", extra={"provider": provider})
            record_webhook(provider, "invalid_signature")
            return WebhookResult(401, {"error": "Invalid signature"})

        try:
            event = handler.parse(inbound)
        except MalformedPayloadError as e:
            logger.warning(f"Malformed {provider} callback: {e}", extra={"provider": provider})
            record_webhook(provider, "malformed")
            return WebhookResult(400, {"error": "Invalid JSON payload"})

        try:
            await handler.process(event)
        except Exception:
            # Acknowledged anyway; alerting relies on this log line and counter
            logger.exception("Callback processing failed after receipt", extra={"provider": provider})
            webhook_processing_failure_counter.labels(provider=provider).inc()

        record_webhook(provider, "acknowledged")
        return WebhookResult(200, dict(ACKNOWLEDGED))
