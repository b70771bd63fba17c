"""Unit tests for webhook dispatch and acknowledgment policy"""

import pytest
from typing import Any, Dict

from pawapay_gateway.domain.exceptions import MalformedPayloadError, SignatureError
from pawapay_gateway.infrastructure.webhooks.base import InboundWebhook, WebhookHandler, parse_json_object
from pawapay_gateway.infrastructure.webhooks.dispatcher import WebhookDispatcher


class FakeHandler(WebhookHandler):
    provider = "fake"

    def __init__(self, valid: bool = True, fail_processing: bool = False):
        self.valid = valid
        self.fail_processing = fail_processing
        self.processed: list[Dict[str, Any]] = []

    def verify(self, inbound: InboundWebhook) -> None:
        if not self.valid:
            raise SignatureError("bad signature")

    async def process(self, event: Dict[str, Any]) -> None:
        if self.fail_processing:
            raise RuntimeError("database unavailable")
        self.processed.append(event)


def _inbound(body: bytes = b'{"depositId": "abc", "status": "COMPLETED"}', method: str = "POST") -> InboundWebhook:
    return InboundWebhook(
        method=method,
        authority="gateway.example.org",
        path="/webhooks/fake",
        headers={"content-type": "application/json"},
        raw_body=body,
    )


async def test_verified_event_is_processed_and_acknowledged():
    handler = FakeHandler()
    result = await WebhookDispatcher({"fake": handler}).dispatch("fake", _inbound())

    assert result.status_code == 200
    assert result.body == {"received": True}
    assert handler.processed == [{"depositId": "abc", "status": "COMPLETED"}]


async def test_provider_name_is_case_insensitive():
    result = await WebhookDispatcher({"Fake": FakeHandler()}).dispatch("FAKE", _inbound())
    assert result.status_code == 200


async def test_invalid_signature_is_401_and_not_processed():
    handler = FakeHandler(valid=False)
    result = await WebhookDispatcher({"fake": handler}).dispatch("fake", _inbound())

    assert result.status_code == 401
    assert result.body == {"error": "Invalid signature"}
    assert handler.processed == []


async def test_malformed_body_is_400():
    handler = FakeHandler()
    result = await WebhookDispatcher({"fake": handler}).dispatch("fake", _inbound(b"{not json"))

    assert result.status_code == 400
    assert result.body == {"error": "Invalid JSON payload"}
    assert handler.processed == []


async def test_unknown_provider_is_400():
    result = await WebhookDispatcher({"fake": FakeHandler()}).dispatch("paypal", _inbound())
    assert result.status_code == 400


async def test_non_post_is_405():
    result = await WebhookDispatcher({"fake": FakeHandler()}).dispatch("fake", _inbound(method="GET"))
    assert result.status_code == 405


async def test_processing_failure_is_still_acknowledged():
    """Once verified and parsed, the provider gets 200 even if processing fails"""
    handler = FakeHandler(fail_processing=True)
    result = await WebhookDispatcher({"fake": handler}).dispatch("fake", _inbound())

    assert result.status_code == 200
    assert result.body == {"received": True}


def test_parse_json_object_rejects_non_objects():
    with pytest.raises(MalformedPayloadError):
        parse_json_object(b"[1, 2, 3]")
    with pytest.raises(MalformedPayloadError):
        parse_json_object(b"\xff\xfe")
