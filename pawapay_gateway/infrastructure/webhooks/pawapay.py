"""PawaPay deposit and payout callbacks"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from pawapay_gateway.domain.exceptions import SignatureError
from pawapay_gateway.domain.models import TransactionStatus
from pawapay_gateway.infrastructure.database.repositories import TransactionRepository
from pawapay_gateway.infrastructure.observability.logging import log_callback
from pawapay_gateway.infrastructure.signing.verifier import CallbackVerifier
from pawapay_gateway.infrastructure.webhooks.base import InboundWebhook, WebhookHandler

logger = logging.getLogger(__name__)


def _failure_reason(event: Dict[str, Any]) -> Optional[str]:
    reason = event.get("failureReason") or event.get("rejectionReason")
    if isinstance(reason, dict):
        code = reason.get("failureCode") or reason.get("rejectionCode")
        message = reason.get("failureMessage") or reason.get("rejectionMessage")
        return ": ".join(part for part in (code, message) if part) or None
    return str(reason) if reason else None


class PawaPayWebhookHandler(WebhookHandler):
    """Verifies PawaPay signatures and applies callback statuses to stored transactions"""

    provider = "pawapay"

    def __init__(self, verifier: CallbackVerifier | None, db: Session):
        self.verifier = verifier
        self.db = db

    def verify(self, inbound: InboundWebhook) -> None:
        if self.verifier is None:
            # No public key means nothing can be trusted
            raise SignatureError("PawaPay callback public key is not configured")
        if not self.verifier.verify(
            inbound.headers,
            inbound.raw_body,
            method=inbound.method,
            authority=inbound.authority,
            path=inbound.path,
        ):
            raise SignatureError("PawaPay callback signature is invalid")

    async def process(self, event: Dict[str, Any]) -> None:
        if "depositId" in event:
            self._apply("deposit", event["depositId"], event)
        elif "payoutId" in event:
            self._apply("payout", event["payoutId"], event)
        else:
            logger.warning("Unhandled PawaPay callback type", extra={"keys": sorted(event.keys())})

    def _apply(self, event_type: str, transaction_id: str, event: Dict[str, Any]) -> None:
        status = TransactionStatus.parse(event.get("status"))
        log_callback(self.provider, event_type, transaction_id, status.value)

        repository = TransactionRepository(self.db)
        try:
            updated = repository.update_status(transaction_id, status, _failure_reason(event))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        if updated is None:
            logger.warning(
                "Callback for unknown transaction",
                extra={"event_type": event_type, "transaction_id": transaction_id},
            )
