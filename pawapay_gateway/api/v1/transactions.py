"""GET /v1/transactions - locally tracked deposits and payouts"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from pawapay_gateway.api.dependencies import get_transaction_repository
from pawapay_gateway.api.v1.schemas import TransactionItem, TransactionListResponse
from pawapay_gateway.domain.models import PaymentTransaction, TransactionKind, TransactionStatus
from pawapay_gateway.infrastructure.database.repositories import TransactionRepository

router = APIRouter()


def _item(transaction: PaymentTransaction) -> TransactionItem:
    return TransactionItem(
        id=transaction.id,
        kind=transaction.kind.value,
        status=transaction.status.value,
        status_reason=transaction.status_reason,
        amount=transaction.amount,
        currency=transaction.currency,
        country=transaction.country,
        correspondent=transaction.correspondent,
    )


@router.get("/transactions", response_model=TransactionListResponse)
def list_transactions(
    kind: Optional[TransactionKind] = Query(None),
    status: Optional[TransactionStatus] = Query(None),
    country: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    repository: TransactionRepository = Depends(get_transaction_repository),
):
    """Most recent transactions first"""
    transactions = repository.list(kind=kind, status=status, country=country, limit=limit)
    return TransactionListResponse(transactions=[_item(t) for t in transactions])


@router.get("/transactions/{transaction_id}", response_model=TransactionItem)
def get_transaction(
    transaction_id: str,
    repository: TransactionRepository = Depends(get_transaction_repository),
):
    transaction = repository.find(transaction_id)
    if transaction is None:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return _item(transaction)
