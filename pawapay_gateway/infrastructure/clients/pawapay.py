"""PawaPay mobile-money API client"""

import asyncio
import logging
import time
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional, Type, TypeVar
from urllib.parse import quote, urlsplit

import httpx
from pydantic import BaseModel, ValidationError

from pawapay_gateway.config import Settings, settings
from pawapay_gateway.domain.amounts import validate_transaction_amount
from pawapay_gateway.domain.exceptions import (
    ConfigurationError,
    FormatError,
    InvalidProviderResponseError,
    ProviderRejectedError,
    TransientNetworkError,
)
from pawapay_gateway.domain.models import Environment, OperationType, SignatureConfig
from pawapay_gateway.infrastructure.clients import availability
from pawapay_gateway.infrastructure.clients.schemas import (
    BulkPayoutRequest,
    CountryAvailability,
    DepositRequest,
    PaymentPageSessionRequest,
    PaymentPageSessionResponse,
    PayoutRequest,
    TransactionLimits,
    TransactionRequest,
    TransactionResponse,
)
from pawapay_gateway.infrastructure.observability.logging import log_gateway_call
from pawapay_gateway.infrastructure.observability.metrics import record_gateway_call
from pawapay_gateway.infrastructure.signing.digest import serialize_body
from pawapay_gateway.infrastructure.signing.signer import RequestSigner

logger = logging.getLogger(__name__)

BASE_URLS = {
    Environment.SANDBOX: "https://api.sandbox.pawapay.io",
    Environment.PRODUCTION: "https://api.pawapay.io",
}

ModelT = TypeVar("ModelT", bound=BaseModel)


def _require_uuid(value: str, field: str) -> str:
    try:
        uuid.UUID(str(value))
    except ValueError as e:
        raise FormatError(f"{field} must be a UUID, got {value!r}") from e
    return str(value)


def _coerce(model: Type[ModelT], payload: Any) -> ModelT:
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise FormatError(f"Invalid {model.__name__}: {e}") from e


def _check_amount(request: TransactionRequest) -> None:
    if request.correspondent and not validate_transaction_amount(request.amount, request.correspondent):
        raise FormatError(f"Amount {request.amount!r} is not valid for correspondent {request.correspondent}")


class PawaPayClient:
    """
    Client for the PawaPay merchant API.

    Holds no mutable state after construction, so one instance can serve
    concurrent callers. Every call gets its own HTTP client and deadline.
    """

    def __init__(
        self,
        api_key: str,
        environment: Environment | str = Environment.SANDBOX,
        signature_config: SignatureConfig | None = None,
        timeout: float | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not api_key:
            raise ConfigurationError("PawaPay API key is required")
        try:
            self.environment = Environment(environment)
        except ValueError as e:
            raise ConfigurationError(f"Unknown PawaPay environment: {environment}") from e

        self._api_key = api_key
        self.base_url = (base_url or BASE_URLS[self.environment]).rstrip("/")
        self.authority = urlsplit(self.base_url).netloc
        self.signer = RequestSigner(signature_config)
        self.timeout = timeout or settings.http_timeout_seconds
        self._transport = transport

    # Read-only endpoints

    async def check_availability(self, country: str) -> List[CountryAvailability]:
        """Fetch current correspondent availability; never cached"""
        response = await self._request("check_availability", "GET", "/availability", params={"country": country})
        data = self._json(response, "check_availability")
        if not isinstance(data, list):
            raise InvalidProviderResponseError("Availability response is not a list")
        return [self._parse(CountryAvailability, item, "check_availability") for item in data]

    async def predict_correspondent(self, msisdn: str, country: str) -> str:
        """Predict the correspondent (MMO) serving a phone number"""
        response = await self._request(
            "predict_correspondent",
            "GET",
            "/predict-correspondent",
            params={"msisdn": msisdn, "country": country},
        )
        data = self._json(response, "predict_correspondent")
        correspondent = data.get("correspondent") if isinstance(data, dict) else None
        if not correspondent:
            raise InvalidProviderResponseError("Correspondent not returned in response")
        return correspondent

    async def get_active_configuration(self) -> Dict[str, Any]:
        response = await self._request("get_active_configuration", "GET", "/active-configuration")
        data = self._json(response, "get_active_configuration")
        if not isinstance(data, dict):
            raise InvalidProviderResponseError("Active configuration response is not an object")
        return data

    async def get_transaction_limits(self, mmo_id: str, country: str) -> TransactionLimits:
        response = await self._request(
            "get_transaction_limits",
            "GET",
            "/configuration/limits",
            params={"mmoId": mmo_id, "country": country},
        )
        return self._parse(TransactionLimits, self._json(response, "get_transaction_limits"), "get_transaction_limits")

    async def check_deposit_status(self, deposit_id: str) -> TransactionResponse:
        response = await self._request(
            "check_deposit_status", "GET", f"/deposits/{quote(deposit_id, safe='')}", transaction_id=deposit_id
        )
        return self._transaction(response, "check_deposit_status")

    async def check_payout_status(self, payout_id: str) -> TransactionResponse:
        response = await self._request(
            "check_payout_status", "GET", f"/payouts/{quote(payout_id, safe='')}", transaction_id=payout_id
        )
        return self._transaction(response, "check_payout_status")

    # Financial mutations

    async def initiate_deposit(self, deposit_id: str, payload: DepositRequest | Mapping[str, Any]) -> TransactionResponse:
        """
        Request a deposit (collection) from a customer's wallet.

        The deposit_id must be generated by the caller before the first
        attempt and reused on every retry of the same deposit.

        Raises:
            FormatError: Invalid id, payload or amount precision (nothing sent)
            SignatureError: Signing configured but failed (nothing sent)
            TransientNetworkError: Outcome unknown; check status or retry with the same id
            ProviderRejectedError: PawaPay refused the request
        """
        deposit_id = _require_uuid(deposit_id, "depositId")
        request = _coerce(DepositRequest, payload)
        _check_amount(request)
        body = {"depositId": deposit_id, **request.to_wire()}
        response = await self._send_signed("initiate_deposit", "/deposits", body, idempotency_key=deposit_id)
        return self._transaction(response, "initiate_deposit")

    async def initiate_payout(self, payout_id: str, payload: PayoutRequest | Mapping[str, Any]) -> TransactionResponse:
        """Send money to a recipient's wallet; same idempotency rules as deposits"""
        payout_id = _require_uuid(payout_id, "payoutId")
        request = _coerce(PayoutRequest, payload)
        _check_amount(request)
        body = {"payoutId": payout_id, **request.to_wire()}
        response = await self._send_signed("initiate_payout", "/payouts", body, idempotency_key=payout_id)
        return self._transaction(response, "initiate_payout")

    async def initiate_bulk_payout(
        self, bulk_payout_id: str, payload: BulkPayoutRequest | Mapping[str, Any]
    ) -> TransactionResponse:
        bulk_payout_id = _require_uuid(bulk_payout_id, "bulkPayoutId")
        request = _coerce(BulkPayoutRequest, payload)
        for item in request.payouts:
            _require_uuid(item.payout_id, "payoutId")
            _check_amount(item)
        body = {"bulkPayoutId": bulk_payout_id, **request.to_wire()}
        response = await self._send_signed(
            "initiate_bulk_payout", "/bulk-payouts", body, idempotency_key=bulk_payout_id
        )
        return self._transaction(response, "initiate_bulk_payout")

    async def create_payment_page_session(
        self, payload: PaymentPageSessionRequest | Mapping[str, Any]
    ) -> PaymentPageSessionResponse:
        """Create a hosted payment page session; its depositId is the idempotency key"""
        request = _coerce(PaymentPageSessionRequest, payload)
        _require_uuid(request.deposit_id, "depositId")
        response = await self._send_signed(
            "create_payment_page_session",
            "/v1/widget/sessions",
            request.to_wire(),
            idempotency_key=request.deposit_id,
        )
        return self._parse(
            PaymentPageSessionResponse,
            self._json(response, "create_payment_page_session"),
            "create_payment_page_session",
        )

    async def resend_deposit_callback(self, deposit_id: str) -> None:
        await self._request(
            "resend_deposit_callback",
            "POST",
            f"/deposits/{quote(deposit_id, safe='')}/callback/resend",
            transaction_id=deposit_id,
        )

    async def resend_payout_callback(self, payout_id: str) -> None:
        await self._request(
            "resend_payout_callback",
            "POST",
            f"/payouts/{quote(payout_id, safe='')}/callback/resend",
            transaction_id=payout_id,
        )

    @staticmethod
    def is_operation_available(
        availability_data: Iterable[CountryAvailability],
        country: str,
        correspondent: str,
        operation_type: OperationType | str,
    ) -> bool:
        """Pure check over data returned by check_availability"""
        return availability.is_operation_available(availability_data, country, correspondent, operation_type)

    # Transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    async def _send_signed(
        self, operation: str, path: str, body: Dict[str, Any], idempotency_key: str
    ) -> httpx.Response:
        # Serialize once: these bytes are digested, signed and sent
        content = serialize_body(body)
        headers = self._headers()
        signature = self.signer.sign("POST", path, content, self.authority)
        if signature is not None:
            headers.update(signature.as_headers())
        headers["Idempotency-Key"] = idempotency_key
        return await self._request(
            operation, "POST", path, content=content, headers=headers, transaction_id=idempotency_key
        )

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
        transaction_id: Optional[str] = None,
    ) -> httpx.Response:
        """
        Perform one HTTP call under a total deadline of self.timeout seconds.

        Raises:
            TransientNetworkError: On timeout or transport failure
            ProviderRejectedError: On non-2xx status
        """
        start = time.perf_counter()
        outcome = "ok"
        status_code = None
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self._transport
            ) as client:
                response = await asyncio.wait_for(
                    client.request(method, path, params=params, content=content, headers=headers or self._headers()),
                    timeout=self.timeout,
                )
            status_code = response.status_code

            if not response.is_success:
                outcome = "rejected"
                raise ProviderRejectedError(
                    f"PawaPay {operation} failed",
                    status_code=response.status_code,
                    status_text=response.reason_phrase,
                    body=self._error_body(response),
                )
            return response

        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            outcome = "transient"
            raise TransientNetworkError(f"PawaPay {operation} timed out after {self.timeout}s") from e
        except httpx.RequestError as e:
            outcome = "transient"
            raise TransientNetworkError(f"PawaPay {operation} network error: {e}") from e
        finally:
            duration = time.perf_counter() - start
            record_gateway_call(operation, outcome, duration)
            log_gateway_call(operation, outcome, duration * 1000, transaction_id, status_code)

    @staticmethod
    def _error_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def _json(response: httpx.Response, operation: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            record_gateway_call(operation, "invalid_response", 0.0)
            raise InvalidProviderResponseError(f"PawaPay {operation} returned invalid JSON") from e

    @staticmethod
    def _parse(model: Type[ModelT], data: Any, operation: str) -> ModelT:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            record_gateway_call(operation, "invalid_response", 0.0)
            raise InvalidProviderResponseError(f"PawaPay {operation} returned unexpected data: {e}") from e

    def _transaction(self, response: httpx.Response, operation: str) -> TransactionResponse:
        data = self._json(response, operation)
        # Status endpoints answer with a one-element list
        if isinstance(data, list):
            if not data:
                raise InvalidProviderResponseError(f"PawaPay {operation} returned no transaction")
            data = data[0]
        return self._parse(TransactionResponse, data, operation)


def build_gateway_client(
    config: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> PawaPayClient:
    """
    Build the process-wide client from settings, failing fast on bad config.

    Raises:
        ConfigurationError: Missing API key, half-configured signing, or
            unusable key material
    """
    config = config or settings

    signature_config = None
    if config.pawapay_private_key or config.pawapay_key_id:
        if not (config.pawapay_private_key and config.pawapay_key_id):
            raise ConfigurationError("PAWAPAY_PRIVATE_KEY and PAWAPAY_KEY_ID must be set together")
        signature_config = SignatureConfig(
            key_id=config.pawapay_key_id,
            private_key=config.pawapay_private_key,
            algorithm=config.pawapay_signature_algorithm,
        )

    client = PawaPayClient(
        api_key=config.pawapay_api_key,
        environment=config.pawapay_environment,
        signature_config=signature_config,
        timeout=config.http_timeout_seconds,
        transport=transport,
    )
    logger.info(
        "PawaPay client configured",
        extra={"environment": client.environment.value, "signing": client.signer.enabled},
    )
    return client
