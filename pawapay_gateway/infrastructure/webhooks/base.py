"""Shared types for inbound provider callbacks"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from pawapay_gateway.domain.exceptions import MalformedPayloadError


@dataclass(frozen=True)
class InboundWebhook:
    """Callback request as received, body untouched"""

    method: str
    authority: str
    path: str
    headers: Mapping[str, str]
    raw_body: bytes


@dataclass(frozen=True)
class WebhookResult:
    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)


def parse_json_object(raw_body: bytes) -> Dict[str, Any]:
    """Parse a callback body that must be a JSON object"""
    try:
        event = json.loads(raw_body)
    except ValueError as e:
        raise MalformedPayloadError(f"Invalid JSON payload: {e}") from e
    if not isinstance(event, dict):
        raise MalformedPayloadError("Callback payload is not a JSON object")
    return event


class WebhookHandler(ABC):
    """One provider's verification, parsing and processing of callbacks"""

    provider: str

    @abstractmethod
    def verify(self, inbound: InboundWebhook) -> None:
        """Raise SignatureError unless the callback is authentic"""

    def parse(self, inbound: InboundWebhook) -> Dict[str, Any]:
        """Raise MalformedPayloadError if the body is unusable"""
        return parse_json_object(inbound.raw_body)

    @abstractmethod
    async def process(self, event: Dict[str, Any]) -> None:
        """Apply a verified event; errors here never reach the provider"""
