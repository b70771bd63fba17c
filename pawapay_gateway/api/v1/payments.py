"""/v1/pawapay - mobile-money payment endpoints"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from pawapay_gateway.api.dependencies import get_gateway_client, get_request_id
from pawapay_gateway.api.v1.schemas import (
    BulkPayoutCommand,
    CorrespondentResponse,
    DepositCommand,
    PayoutCommand,
    ResendCallbackRequest,
    SuccessResponse,
)
from pawapay_gateway.domain.amounts import validate_transaction_amount
from pawapay_gateway.domain.exceptions import (
    CorrespondentUnavailableError,
    DomainException,
    FormatError,
    InvalidProviderResponseError,
    ProviderRejectedError,
    SignatureError,
    TransientNetworkError,
)
from pawapay_gateway.domain.models import (
    OperationType,
    PaymentTransaction,
    TransactionKind,
    TransactionStatus,
)
from pawapay_gateway.infrastructure.clients.availability import ensure_operation_available
from pawapay_gateway.infrastructure.clients.pawapay import PawaPayClient
from pawapay_gateway.infrastructure.clients.schemas import (
    CountryAvailability,
    PaymentPageSessionRequest,
    PaymentPageSessionResponse,
    TransactionLimits,
    TransactionRequest,
    TransactionResponse,
)
from pawapay_gateway.infrastructure.database.repositories import TransactionRepository
from pawapay_gateway.infrastructure.database.session import get_db
from pawapay_gateway.infrastructure.observability.metrics import gating_rejection_counter

router = APIRouter(prefix="/pawapay")
logger = logging.getLogger(__name__)

CHECK_STATUS_MESSAGE = "Network error occurred. Please check transaction status before retrying."


def to_http_exception(error: DomainException, request_id: str) -> HTTPException:
    """Translate a domain error into the response the caller sees"""
    if isinstance(error, FormatError):
        logging.warning(f"Invalid payment request: {error}", extra={"request_id": request_id})
        return HTTPException(status_code=422, detail=str(error))

    if isinstance(error, CorrespondentUnavailableError):
        gating_rejection_counter.labels(operation_type=error.operation_type).inc()
        logging.warning(f"Correspondent unavailable: {error}", extra={"request_id": request_id})
        return HTTPException(status_code=503, detail={"error": str(error), "status": error.status})

    if isinstance(error, TransientNetworkError):
        logging.error(f"PawaPay network error: {error}", extra={"request_id": request_id})
        return HTTPException(status_code=503, detail={"error": CHECK_STATUS_MESSAGE, "action": "CHECK_STATUS"})

    if isinstance(error, ProviderRejectedError):
        logging.warning(f"PawaPay rejected request: {error}", extra={"request_id": request_id})
        return HTTPException(
            status_code=error.status_code,
            detail={"error": str(error), "provider_response": error.body},
        )

    if isinstance(error, InvalidProviderResponseError):
        logging.error(f"Unexpected PawaPay response: {error}", extra={"request_id": request_id})
        return HTTPException(status_code=502, detail="Payment provider returned an invalid response")

    if isinstance(error, SignatureError):
        logging.error(f"Request signing failed: {error}", extra={"request_id": request_id})
        return HTTPException(status_code=500, detail="Request signing failed")

    logging.error(f"Unexpected payment error: {error}", extra={"request_id": request_id})
    return HTTPException(status_code=500, detail="Internal server error")


def _check_amount(payload: TransactionRequest) -> None:
    if payload.correspondent and not validate_transaction_amount(payload.amount, payload.correspondent):
        raise FormatError(f"Amount {payload.amount!r} is not valid for correspondent {payload.correspondent}")


async def _gate(client: PawaPayClient, payload: TransactionRequest, operation_type: OperationType) -> None:
    """Refuse before any mutation if the named correspondent is not OPERATIONAL"""
    if payload.correspondent:
        availability = await client.check_availability(payload.country)
        ensure_operation_available(availability, payload.country, payload.correspondent, operation_type)


async def _gate_all(client: PawaPayClient, items: List[TransactionRequest], operation_type: OperationType) -> None:
    """Gate every item, fetching availability once per distinct country"""
    by_country: Dict[str, List[CountryAvailability]] = {}
    for item in items:
        if not item.correspondent:
            continue
        if item.country not in by_country:
            by_country[item.country] = await client.check_availability(item.country)
        ensure_operation_available(by_country[item.country], item.country, item.correspondent, operation_type)


def _record_pending(db: Session, transaction: PaymentTransaction) -> None:
    """Record a transaction before it is sent; retries keep the existing row"""
    repository = TransactionRepository(db)
    if repository.find(transaction.id) is None:
        repository.save(transaction)
        db.commit()


def _record_outcome(db: Session, transaction_id: str, status: TransactionStatus, reason: str | None = None) -> None:
    TransactionRepository(db).update_status(transaction_id, status, reason)
    db.commit()


def _pending(transaction_id: str, kind: TransactionKind, payload: TransactionRequest) -> PaymentTransaction:
    return PaymentTransaction(
        id=transaction_id,
        kind=kind,
        status=TransactionStatus.PENDING,
        amount=payload.amount,
        currency=payload.currency,
        country=payload.country,
        correspondent=payload.correspondent,
        msisdn=payload.msisdn,
    )


@router.get("/availability", response_model=List[CountryAvailability], response_model_by_alias=True)
async def check_availability(
    request: Request,
    country: str = Query(..., min_length=2, description="ISO country code"),
    client: PawaPayClient = Depends(get_gateway_client),
):
    try:
        return await client.check_availability(country)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request)) from e


@router.get("/predict-correspondent", response_model=CorrespondentResponse)
async def predict_correspondent(
    request: Request,
    msisdn: str = Query(..., min_length=6),
    country: str = Query(..., min_length=2),
    client: PawaPayClient = Depends(get_gateway_client),
):
    try:
        return CorrespondentResponse(correspondent=await client.predict_correspondent(msisdn, country))
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request)) from e


@router.get("/configuration")
async def get_active_configuration(request: Request, client: PawaPayClient = Depends(get_gateway_client)):
    try:
        return await client.get_active_configuration()
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request)) from e


@router.get("/limits", response_model=TransactionLimits, response_model_by_alias=True)
async def get_transaction_limits(
    request: Request,
    mmo_id: str = Query(..., alias="mmoId"),
    country: str = Query(..., min_length=2),
    client: PawaPayClient = Depends(get_gateway_client),
):
    try:
        return await client.get_transaction_limits(mmo_id, country)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request)) from e


@router.get("/deposits/{deposit_id}")
async def check_deposit_status(
    deposit_id: str,
    request: Request,
    db: Session = Depends(get_db),
    client: PawaPayClient = Depends(get_gateway_client),
) -> Dict[str, Any]:
    try:
        result = await client.check_deposit_status(deposit_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request)) from e

    _record_outcome(db, deposit_id, TransactionStatus.parse(result.status))
    return result.to_wire()


@router.get("/payouts/{payout_id}")
async def check_payout_status(
    payout_id: str,
    request: Request,
    db: Session = Depends(get_db),
    client: PawaPayClient = Depends(get_gateway_client),
) -> Dict[str, Any]:
    try:
        result = await client.check_payout_status(payout_id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request)) from e

    _record_outcome(db, payout_id, TransactionStatus.parse(result.status))
    return result.to_wire()


async def _initiate(
    request_id: str,
    db: Session,
    transaction_id: str,
    call,
    item_ids: List[str] | None = None,
) -> TransactionResponse:
    """
    Send a recorded transaction and store the provider's verdict.

    A rejection also fails the per-item rows named in item_ids.
    """
    try:
        result = await call()
    except ProviderRejectedError as e:
        for item_id in [transaction_id, *(item_ids or [])]:
            TransactionRepository(db).update_status(item_id, TransactionStatus.FAILED, str(e))
        db.commit()
        raise to_http_exception(e, request_id) from e
    except DomainException as e:
        # Unknown outcome stays PENDING until a callback or status check
        raise to_http_exception(e, request_id) from e

    _record_outcome(db, transaction_id, TransactionStatus.parse(result.status))
    return result


@router.post("/deposits")
async def initiate_deposit(
    body: DepositCommand,
    request: Request,
    db: Session = Depends(get_db),
    client: PawaPayClient = Depends(get_gateway_client),
) -> Dict[str, Any]:
    """
    Start a deposit (donation) from a customer's mobile-money wallet.

    Flow:
    1. Gate on live correspondent availability (503 if not OPERATIONAL)
    2. Validate amount precision for the correspondent
    3. Record the deposit as PENDING under its client-generated id
    4. Send the signed request with that id as Idempotency-Key
    5. Store the provider's status
    """
    request_id = get_request_id(request)
    payload = body.provider_payload()

    try:
        await _gate(client, payload, OperationType.DEPOSIT)
        _check_amount(payload)
    except DomainException as e:
        raise to_http_exception(e, request_id) from e

    _record_pending(db, _pending(body.deposit_id, TransactionKind.DEPOSIT, payload))
    result = await _initiate(
        request_id, db, body.deposit_id, lambda: client.initiate_deposit(body.deposit_id, payload)
    )
    return result.to_wire()


@router.post("/payouts")
async def initiate_payout(
    body: PayoutCommand,
    request: Request,
    db: Session = Depends(get_db),
    client: PawaPayClient = Depends(get_gateway_client),
) -> Dict[str, Any]:
    """Send funds to a publisher's wallet; same flow as deposits"""
    request_id = get_request_id(request)
    payload = body.provider_payload()

    try:
        await _gate(client, payload, OperationType.PAYOUT)
        _check_amount(payload)
    except DomainException as e:
        raise to_http_exception(e, request_id) from e

    _record_pending(db, _pending(body.payout_id, TransactionKind.PAYOUT, payload))
    result = await _initiate(
        request_id, db, body.payout_id, lambda: client.initiate_payout(body.payout_id, payload)
    )
    return result.to_wire()


@router.post("/bulk-payouts")
async def initiate_bulk_payout(
    body: BulkPayoutCommand,
    request: Request,
    db: Session = Depends(get_db),
    client: PawaPayClient = Depends(get_gateway_client),
) -> Dict[str, Any]:
    request_id = get_request_id(request)
    payload = body.provider_payload()

    try:
        await _gate_all(client, payload.payouts, OperationType.PAYOUT)
        for item in payload.payouts:
            _check_amount(item)
    except DomainException as e:
        raise to_http_exception(e, request_id) from e

    for item in payload.payouts:
        _record_pending(db, _pending(item.payout_id, TransactionKind.PAYOUT, item))
    _record_pending(
        db,
        PaymentTransaction(id=body.bulk_payout_id, kind=TransactionKind.BULK_PAYOUT, status=TransactionStatus.PENDING),
    )

    result = await _initiate(
        request_id,
        db,
        body.bulk_payout_id,
        lambda: client.initiate_bulk_payout(body.bulk_payout_id, payload),
        item_ids=[item.payout_id for item in payload.payouts],
    )
    return result.to_wire()


@router.post("/payment-page/sessions", response_model=PaymentPageSessionResponse, response_model_by_alias=True)
async def create_payment_page_session(
    body: PaymentPageSessionRequest,
    request: Request,
    db: Session = Depends(get_db),
    client: PawaPayClient = Depends(get_gateway_client),
):
    """Create a hosted payment page; the deposit is tracked under its depositId"""
    try:
        result = await client.create_payment_page_session(body)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request)) from e

    _record_pending(
        db,
        PaymentTransaction(
            id=body.deposit_id,
            kind=TransactionKind.DEPOSIT,
            status=TransactionStatus.PENDING,
            amount=body.amount,
            country=body.country,
            msisdn=body.msisdn,
        ),
    )
    return result


@router.post("/callbacks/resend", response_model=SuccessResponse)
async def resend_callback(
    body: ResendCallbackRequest,
    request: Request,
    client: PawaPayClient = Depends(get_gateway_client),
):
    try:
        if body.type == "deposit":
            await client.resend_deposit_callback(body.id)
        else:
            await client.resend_payout_callback(body.id)
    except DomainException as e:
        raise to_http_exception(e, get_request_id(request)) from e

    return SuccessResponse()
