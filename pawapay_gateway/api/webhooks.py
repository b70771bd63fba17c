"""POST /webhooks/{provider} - inbound payment provider callbacks"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.requests import ClientDisconnect

from pawapay_gateway.api.dependencies import get_webhook_dispatcher
from pawapay_gateway.infrastructure.observability.metrics import record_webhook
from pawapay_gateway.infrastructure.webhooks.base import InboundWebhook
from pawapay_gateway.infrastructure.webhooks.dispatcher import WebhookDispatcher

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/webhooks/{provider}")
async def receive_webhook(
    provider: str,
    request: Request,
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
) -> JSONResponse:
    """
    Receive a provider callback.

    The body is read as raw bytes before any JSON parsing because the
    signature digest covers the exact bytes sent.
    """
    try:
        raw_body = await request.body()
    except ClientDisconnect:
        logger.error("Client disconnected while reading webhook body", extra={"provider": provider})
        record_webhook(provider, "malformed")
        return JSONResponse({"error": "Failed to read request body"}, status_code=400)

    inbound = InboundWebhook(
        method=request.method,
        authority=request.headers.get("host", request.url.netloc),
        path=request.url.path,
        headers=dict(request.headers),
        raw_body=raw_body,
    )
    result = await dispatcher.dispatch(provider, inbound)
    return JSONResponse(result.body, status_code=result.status_code)
