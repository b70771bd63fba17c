"""FastAPI application factory"""

import httpx
from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from pawapay_gateway.api import webhooks
from pawapay_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from pawapay_gateway.api.v1 import payments, transactions
from pawapay_gateway.config import Settings, settings
from pawapay_gateway.infrastructure.clients.pawapay import build_gateway_client
from pawapay_gateway.infrastructure.observability.logging import setup_logging
from pawapay_gateway.infrastructure.signing.verifier import CallbackVerifier


def create_app(
    config: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    The PawaPay client and callback verifier are built once here; invalid
    configuration raises ConfigurationError so the process refuses to start.
    Run with `uvicorn --factory pawapay_gateway.api.main:create_app`.
    """
    config = config or settings
    setup_logging(config.log_level, config.service_name)

    gateway_client = build_gateway_client(config, transport=transport)
    callback_verifier = (
        CallbackVerifier(config.pawapay_public_key, config.callback_clock_skew_seconds)
        if config.pawapay_public_key
        else None
    )

    app = FastAPI(
        title="PawaPay Gateway",
        description="Mobile-money deposits, payouts and provider callbacks",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.settings = config
    app.state.gateway_client = gateway_client
    app.state.callback_verifier = callback_verifier

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {
            "status": "ok",
            "service": config.service_name,
            "environment": gateway_client.environment.value,
            "signing": gateway_client.signer.enabled,
            "callback_verification": callback_verifier is not None,
        }

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(webhooks.router, tags=["webhooks"])

    return app
