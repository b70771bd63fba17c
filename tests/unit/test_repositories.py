"""Unit tests for transaction persistence"""

from sqlalchemy.orm import Session

from pawapay_gateway.domain.models import PaymentTransaction, TransactionKind, TransactionStatus
from pawapay_gateway.infrastructure.database.repositories import TransactionRepository


def _deposit(transaction_id: str, country: str = "KEN") -> PaymentTransaction:
    return PaymentTransaction(
        id=transaction_id,
        kind=TransactionKind.DEPOSIT,
        status=TransactionStatus.PENDING,
        amount="100",
        currency="KES",
        country=country,
        correspondent="MPESA_KEN",
        msisdn="254700000001",
    )


def test_save_and_find(db: Session):
    repository = TransactionRepository(db)
    repository.save(_deposit("dep-1"))

    found = repository.find("dep-1")
    assert found.status == TransactionStatus.PENDING
    assert found.amount == "100"
    assert repository.find("missing") is None


def test_save_is_upsert(db: Session):
    repository = TransactionRepository(db)
    repository.save(_deposit("dep-1"))
    repository.save(_deposit("dep-1", country="GHA"))

    assert len(repository.list()) == 1
    assert repository.find("dep-1").country == "GHA"


def test_list_filters(db: Session):
    repository = TransactionRepository(db)
    repository.save(_deposit("dep-1"))
    repository.save(_deposit("dep-2", country="GHA"))
    repository.save(
        PaymentTransaction(id="pay-1", kind=TransactionKind.PAYOUT, status=TransactionStatus.COMPLETED, country="KEN")
    )

    assert {t.id for t in repository.list(kind=TransactionKind.DEPOSIT)} == {"dep-1", "dep-2"}
    assert {t.id for t in repository.list(country="KEN")} == {"dep-1", "pay-1"}
    assert [t.id for t in repository.list(status=TransactionStatus.COMPLETED)] == ["pay-1"]
    assert len(repository.list(limit=1)) == 1


def test_update_status_records_reason(db: Session):
    repository = TransactionRepository(db)
    repository.save(_deposit("dep-1"))

    updated = repository.update_status("dep-1", TransactionStatus.FAILED, "INSUFFICIENT_BALANCE")
    assert updated.status == TransactionStatus.FAILED
    assert updated.status_reason == "INSUFFICIENT_BALANCE"


def test_terminal_status_is_not_overwritten(db: Session):
    """A late ACCEPTED must not undo a COMPLETED delivered earlier"""
    repository = TransactionRepository(db)
    repository.save(_deposit("dep-1"))
    repository.update_status("dep-1", TransactionStatus.COMPLETED)

    result = repository.update_status("dep-1", TransactionStatus.ACCEPTED)
    assert result.status == TransactionStatus.COMPLETED
    assert repository.find("dep-1").status == TransactionStatus.COMPLETED


def test_update_unknown_transaction_returns_none(db: Session):
    assert TransactionRepository(db).update_status("missing", TransactionStatus.COMPLETED) is None


def test_status_never_moves_back_to_pending(db: Session):
    repository = TransactionRepository(db)
    repository.save(_deposit("dep-1"))
    repository.update_status("dep-1", TransactionStatus.ACCEPTED)

    assert repository.update_status("dep-1", TransactionStatus.PENDING).status == TransactionStatus.ACCEPTED
