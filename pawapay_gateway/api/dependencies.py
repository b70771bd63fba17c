"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from pawapay_gateway.infrastructure.clients.pawapay import PawaPayClient
from pawapay_gateway.infrastructure.database.repositories import TransactionRepository
from pawapay_gateway.infrastructure.database.session import get_db
from pawapay_gateway.infrastructure.webhooks.dispatcher import WebhookDispatcher
from pawapay_gateway.infrastructure.webhooks.pawapay import PawaPayWebhookHandler
from pawapay_gateway.infrastructure.webhooks.stripe import StripeWebhookHandler


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_gateway_client(request: Request) -> PawaPayClient:
    """The single PawaPay client built at startup"""
    return request.app.state.gateway_client


def get_transaction_repository(db: Session = Depends(get_db)) -> TransactionRepository:
    return TransactionRepository(db)


def get_webhook_dispatcher(request: Request, db: Session = Depends(get_db)) -> WebhookDispatcher:
    """Dispatcher bound to this request's database session"""
    state = request.app.state
    return WebhookDispatcher(
        {
            "pawapay": PawaPayWebhookHandler(state.callback_verifier, db),
            "stripe": StripeWebhookHandler(state.settings.stripe_webhook_secret),
        }
    )
