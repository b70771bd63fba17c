"""Data access layer for payment transactions"""

from typing import List, Optional

from sqlalchemy.orm import Session

from pawapay_gateway.domain.models import PaymentTransaction, TransactionKind, TransactionStatus
from pawapay_gateway.infrastructure.database.models import PaymentTransactionRecord


def _to_domain(record: PaymentTransactionRecord) -> PaymentTransaction:
    return PaymentTransaction(
        id=record.id,
        kind=TransactionKind(record.kind),
        status=TransactionStatus(record.status),
        amount=record.amount,
        currency=record.currency,
        country=record.country,
        correspondent=record.correspondent,
        msisdn=record.msisdn,
        status_reason=record.status_reason,
    )


class TransactionRepository:
    """Repository for deposits, payouts and bulk payouts"""

    def __init__(self, db: Session):
        self.db = db

    def save(self, transaction: PaymentTransaction) -> PaymentTransaction:
        """Insert or update a transaction by id"""
        record = self.db.get(PaymentTransactionRecord, transaction.id)
        if record is None:
            record = PaymentTransactionRecord(id=transaction.id)
            self.db.add(record)

        record.kind = transaction.kind.value
        record.status = transaction.status.value
        record.status_reason = transaction.status_reason
        record.amount = transaction.amount
        record.currency = transaction.currency
        record.country = transaction.country
        record.correspondent = transaction.correspondent
        record.msisdn = transaction.msisdn

        self.db.flush()
        return _to_domain(record)

    def find(self, transaction_id: str) -> Optional[PaymentTransaction]:
        record = self.db.get(PaymentTransactionRecord, transaction_id)
        return _to_domain(record) if record else None

    def list(
        self,
        kind: Optional[TransactionKind] = None,
        status: Optional[TransactionStatus] = None,
        country: Optional[str] = None,
        limit: int = 50,
    ) -> List[PaymentTransaction]:
        """Most recent transactions first, optionally filtered"""
        query = self.db.query(PaymentTransactionRecord)
        if kind is not None:
            query = query.filter(PaymentTransactionRecord.kind == kind.value)
        if status is not None:
            query = query.filter(PaymentTransactionRecord.status == status.value)
        if country is not None:
            query = query.filter(PaymentTransactionRecord.country == country)

        records = query.order_by(PaymentTransactionRecord.created_at.desc()).limit(limit).all()
        return [_to_domain(r) for r in records]

    def update_status(
        self,
        transaction_id: str,
        status: TransactionStatus,
        status_reason: Optional[str] = None,
    ) -> Optional[PaymentTransaction]:
        """
        Apply a status reported by the provider.

        Terminal states are never overwritten by a later non-terminal one,
        and nothing moves back to PENDING, since callbacks can arrive out
        of order or be redelivered.
        """
        record = self.db.get(PaymentTransactionRecord, transaction_id)
        if record is None:
            return None

        current = TransactionStatus(record.status)
        if current.is_terminal and not status.is_terminal:
            return _to_domain(record)
        if status is TransactionStatus.PENDING and current is not TransactionStatus.PENDING:
            return _to_domain(record)

        record.status = status.value
        record.status_reason = status_reason
        self.db.flush()
        return _to_domain(record)
