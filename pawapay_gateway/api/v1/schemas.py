"""Pydantic schemas for API request/response validation"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from pawapay_gateway.infrastructure.clients.schemas import (
    BulkPayoutRequest,
    DepositRequest,
    PayoutRequest,
    UUIDString,
)


class DepositCommand(DepositRequest):
    """Request body for POST /v1/pawapay/deposits"""

    deposit_id: UUIDString = Field(..., description="Client-generated UUID, reused on retry")

    def provider_payload(self) -> DepositRequest:
        return DepositRequest(**self.model_dump(exclude={"deposit_id"}))


class PayoutCommand(PayoutRequest):
    """Request body for POST /v1/pawapay/payouts"""

    payout_id: UUIDString = Field(..., description="Client-generated UUID, reused on retry")

    def provider_payload(self) -> PayoutRequest:
        return PayoutRequest(**self.model_dump(exclude={"payout_id"}))


class BulkPayoutCommand(BulkPayoutRequest):
    """Request body for POST /v1/pawapay/bulk-payouts"""

    bulk_payout_id: UUIDString

    def provider_payload(self) -> BulkPayoutRequest:
        return BulkPayoutRequest(**self.model_dump(exclude={"bulk_payout_id"}))


class ResendCallbackRequest(BaseModel):
    """Request body for POST /v1/pawapay/callbacks/resend"""

    type: Literal["deposit", "payout"]
    id: str = Field(..., min_length=1)


class SuccessResponse(BaseModel):
    success: bool = True


class CorrespondentResponse(BaseModel):
    correspondent: str


class TransactionItem(BaseModel):
    """Locally tracked transaction"""

    id: str
    kind: str
    status: str
    status_reason: Optional[str] = None
    amount: Optional[str] = None
    currency: Optional[str] = None
    country: Optional[str] = None
    correspondent: Optional[str] = None


class TransactionListResponse(BaseModel):
    transactions: List[TransactionItem]
