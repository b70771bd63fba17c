"""SQLAlchemy ORM models for locally tracked payments"""

from sqlalchemy import Column, DateTime, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class PaymentTransactionRecord(Base):
    """Deposit, payout or bulk payout initiated through PawaPay"""

    __tablename__ = "payment_transaction"

    id = Column(Text, primary_key=True)  # caller-generated UUID / idempotency key
    kind = Column(Text, nullable=False, index=True)
    status = Column(Text, nullable=False, default="PENDING", index=True)
    status_reason = Column(Text, nullable=True)
    amount = Column(Text, nullable=True)  # decimal string, exactly as sent
    currency = Column(Text, nullable=True)
    country = Column(Text, nullable=True, index=True)
    correspondent = Column(Text, nullable=True)
    msisdn = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
