"""Unit tests for the PawaPay API client"""

import asyncio
import json
import time
import pytest
import httpx
from unittest.mock import MagicMock

from pawapay_gateway.config import Settings
from pawapay_gateway.domain.exceptions import (
    ConfigurationError,
    FormatError,
    InvalidProviderResponseError,
    ProviderRejectedError,
    SignatureError,
    TransientNetworkError,
)
from pawapay_gateway.domain.models import SignatureConfig
from pawapay_gateway.infrastructure.clients.pawapay import PawaPayClient, build_gateway_client
from pawapay_gateway.infrastructure.clients.schemas import DepositRequest
from pawapay_gateway.infrastructure.signing.digest import content_digest
from pawapay_gateway.infrastructure.signing.verifier import CallbackVerifier


DEPOSIT_ID = "f4401bd2-1568-4140-bf2d-eb77d2b2b639"
PAYOUT_ID = "8917c345-4791-4285-a416-62f24b6982db"


@pytest.fixture
def deposit() -> DepositRequest:
    return DepositRequest(
        amount="100",
        currency="KES",
        country="KEN",
        correspondent="MPESA_KEN",
        msisdn="254700000001",
        statement_description="Donation to CCF",
    )


class RecordingHandler:
    """httpx.MockTransport handler that records requests and replies with a fixed response"""

    def __init__(self, status_code: int = 200, payload=None, delay: float = 0.0):
        self.status_code = status_code
        self.payload = payload if payload is not None else {"depositId": DEPOSIT_ID, "status": "ACCEPTED"}
        self.delay = delay
        self.requests: list[httpx.Request] = []

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        return httpx.Response(self.status_code, json=self.payload)


def _client(handler, signature_config: SignatureConfig | None = None, timeout: float = 2.0) -> PawaPayClient:
    return PawaPayClient(
        api_key="test-api-key",
        environment="sandbox",
        signature_config=signature_config,
        timeout=timeout,
        transport=httpx.MockTransport(handler),
    )


async def test_deposit_request_shape(deposit: DepositRequest):
    """Body carries depositId plus camelCase fields; auth and idempotency headers set"""
    handler = RecordingHandler()
    result = await _client(handler).initiate_deposit(DEPOSIT_ID, deposit)

    assert result.status == "ACCEPTED"
    assert result.deposit_id == DEPOSIT_ID

    request = handler.requests[0]
    assert request.method == "POST"
    assert request.url == httpx.URL("https://api.sandbox.pawapay.io/deposits")
    assert request.headers["authorization"] == "Bearer test-api-key"
    assert request.headers["content-type"] == "application/json"
    assert request.headers["idempotency-key"] == DEPOSIT_ID
    assert json.loads(request.content) == {
        "depositId": DEPOSIT_ID,
        "amount": "100",
        "currency": "KES",
        "country": "KEN",
        "correspondent": "MPESA_KEN",
        "msisdn": "254700000001",
        "statementDescription": "Donation to CCF",
    }


async def test_unsigned_client_sends_no_signature_headers(deposit: DepositRequest):
    handler = RecordingHandler()
    await _client(handler).initiate_deposit(DEPOSIT_ID, deposit)

    headers = handler.requests[0].headers
    for name in ("signature", "signature-input", "content-digest", "signature-date"):
        assert name not in headers


async def test_signed_request_digest_covers_sent_bytes(
    deposit: DepositRequest, signature_config: SignatureConfig, ec_p256_key, public_pem_of
):
    """The digest and signature are over exactly the bytes on the wire, depositId included"""
    handler = RecordingHandler()
    await _client(handler, signature_config).initiate_deposit(DEPOSIT_ID, deposit)

    request = handler.requests[0]
    assert request.headers["content-digest"] == content_digest(request.content)
    assert request.headers["accept-digest"] == "sha-256,sha-512"

    verifier = CallbackVerifier(public_pem_of(ec_p256_key))
    assert verifier.verify(request.headers, request.content, "POST", "api.sandbox.pawapay.io", "/deposits")


async def test_mapping_payload_is_accepted():
    handler = RecordingHandler()
    await _client(handler).initiate_deposit(
        DEPOSIT_ID,
        {"amount": "10", "currency": "KES", "country": "KEN", "correspondent": "MPESA_KEN", "msisdn": "254700000001"},
    )
    assert json.loads(handler.requests[0].content)["amount"] == "10"


async def test_invalid_amount_is_rejected_before_sending(deposit: DepositRequest):
    handler = RecordingHandler()
    with pytest.raises(FormatError):
        await _client(handler).initiate_deposit(DEPOSIT_ID, deposit.model_copy(update={"amount": "100.50"}))
    assert handler.requests == []


async def test_unknown_correspondent_is_format_error(deposit: DepositRequest):
    handler = RecordingHandler()
    with pytest.raises(FormatError):
        await _client(handler).initiate_deposit(DEPOSIT_ID, deposit.model_copy(update={"correspondent": "NOPE"}))
    assert handler.requests == []


async def test_non_uuid_id_is_format_error(deposit: DepositRequest):
    handler = RecordingHandler()
    with pytest.raises(FormatError):
        await _client(handler).initiate_deposit("deposit-1", deposit)
    assert handler.requests == []


async def test_invalid_payload_is_format_error():
    handler = RecordingHandler()
    with pytest.raises(FormatError):
        await _client(handler).initiate_payout(PAYOUT_ID, {"amount": "10", "currency": "kes"})
    assert handler.requests == []


async def test_signing_failure_sends_nothing(deposit: DepositRequest, signature_config: SignatureConfig):
    handler = RecordingHandler()
    client = _client(handler, signature_config)
    client.signer._private_key = MagicMock()
    client.signer._private_key.sign.side_effect = ValueError("key unavailable")

    with pytest.raises(SignatureError):
        await client.initiate_deposit(DEPOSIT_ID, deposit)
    assert handler.requests == []


async def test_provider_rejection_is_typed(deposit: DepositRequest):
    handler = RecordingHandler(
        status_code=400,
        payload={"depositId": DEPOSIT_ID, "status": "REJECTED", "rejectionReason": {"rejectionCode": "INVALID_AMOUNT"}},
    )
    with pytest.raises(ProviderRejectedError) as exc_info:
        await _client(handler).initiate_deposit(DEPOSIT_ID, deposit)

    assert exc_info.value.status_code == 400
    assert exc_info.value.status_text == "Bad Request"
    assert exc_info.value.body["rejectionReason"]["rejectionCode"] == "INVALID_AMOUNT"


async def test_timeout_is_transient_and_bounded(deposit: DepositRequest):
    """A hung provider surfaces as TransientNetworkError within the deadline"""
    handler = RecordingHandler(delay=5.0)
    start = time.perf_counter()

    with pytest.raises(TransientNetworkError):
        await _client(handler, timeout=0.05).initiate_deposit(DEPOSIT_ID, deposit)

    assert time.perf_counter() - start < 2.0


async def test_connection_error_is_transient(deposit: DepositRequest):
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransientNetworkError):
        await _client(refuse).initiate_deposit(DEPOSIT_ID, deposit)


async def test_concurrent_calls_have_independent_deadlines(deposit: DepositRequest):
    """One hung call times out without affecting a concurrent fast one"""

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/deposits":
            await asyncio.sleep(5.0)
        return httpx.Response(200, json={"correspondent": "MPESA_KEN"})

    client = _client(handler, timeout=0.2)
    slow, fast = await asyncio.gather(
        client.initiate_deposit(DEPOSIT_ID, deposit),
        client.predict_correspondent("254700000001", "KEN"),
        return_exceptions=True,
    )

    assert isinstance(slow, TransientNetworkError)
    assert fast == "MPESA_KEN"


async def test_invalid_json_is_invalid_provider_response():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>gateway</html>")

    with pytest.raises(InvalidProviderResponseError):
        await _client(handler).get_active_configuration()


async def test_predict_correspondent_without_result():
    handler = RecordingHandler(payload={"country": "KEN"})
    with pytest.raises(InvalidProviderResponseError):
        await _client(handler).predict_correspondent("254700000001", "KEN")


async def test_status_check_unwraps_list():
    handler = RecordingHandler(payload=[{"depositId": DEPOSIT_ID, "status": "COMPLETED"}])
    result = await _client(handler).check_deposit_status(DEPOSIT_ID)

    assert result.status == "COMPLETED"
    assert handler.requests[0].method == "GET"
    assert handler.requests[0].url.path == f"/deposits/{DEPOSIT_ID}"


async def test_status_check_for_unknown_transaction():
    handler = RecordingHandler(payload=[])
    with pytest.raises(InvalidProviderResponseError):
        await _client(handler).check_payout_status(PAYOUT_ID)


async def test_resend_callback_is_unsigned_post(signature_config: SignatureConfig):
    handler = RecordingHandler(payload={"status": "ACCEPTED"})
    await _client(handler, signature_config).resend_payout_callback(PAYOUT_ID)

    request = handler.requests[0]
    assert request.method == "POST"
    assert request.url.path == f"/payouts/{PAYOUT_ID}/callback/resend"
    assert "signature" not in request.headers


async def test_availability_is_parsed():
    handler = RecordingHandler(
        payload=[
            {
                "country": "KEN",
                "correspondents": [
                    {"correspondent": "MPESA_KEN", "operationTypes": [{"operationType": "DEPOSIT", "status": "OPERATIONAL"}]}
                ],
            }
        ]
    )
    availability = await _client(handler).check_availability("KEN")

    assert handler.requests[0].url.params["country"] == "KEN"
    assert PawaPayClient.is_operation_available(availability, "KEN", "MPESA_KEN", "DEPOSIT") is True


async def test_same_deposit_id_yields_one_provider_transaction(provider, provider_transport, deposit):
    """Retrying with the same id is deduplicated by the provider via Idempotency-Key"""
    client = PawaPayClient(api_key="test-api-key", transport=provider_transport)

    first = await client.initiate_deposit(DEPOSIT_ID, deposit)
    second = await client.initiate_deposit(DEPOSIT_ID, deposit)

    assert first.status == "ACCEPTED"
    assert second.status == "DUPLICATE_IGNORED"
    assert list(provider.state.transactions) == [DEPOSIT_ID]

    await client.initiate_deposit(PAYOUT_ID, deposit)
    assert len(provider.state.transactions) == 2


async def test_production_environment_base_url():
    handler = RecordingHandler(payload={"merchantId": "m"})
    client = PawaPayClient(api_key="k", environment="production", transport=httpx.MockTransport(handler))
    await client.get_active_configuration()

    assert handler.requests[0].url.host == "api.pawapay.io"


def test_missing_api_key_is_configuration_error():
    with pytest.raises(ConfigurationError):
        PawaPayClient(api_key="")


def test_unknown_environment_is_configuration_error():
    with pytest.raises(ConfigurationError):
        PawaPayClient(api_key="k", environment="staging")


def test_build_gateway_client_from_settings(test_settings: Settings):
    client = build_gateway_client(test_settings)
    assert client.signer.enabled is True
    assert client.authority == "api.sandbox.pawapay.io"
    assert client.timeout == 2.0


def test_build_gateway_client_requires_key_id_with_private_key(test_settings: Settings):
    with pytest.raises(ConfigurationError):
        build_gateway_client(test_settings.model_copy(update={"pawapay_key_id": None}))


def test_build_gateway_client_rejects_unknown_algorithm(test_settings: Settings):
    with pytest.raises(ConfigurationError):
        build_gateway_client(test_settings.model_copy(update={"pawapay_signature_algorithm": "rsa-sha1"}))
