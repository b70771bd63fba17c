"""Pydantic models for PawaPay request and response bodies"""

import uuid
from decimal import Decimal
from typing import Annotated, Any, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def uuid_string(value: str) -> str:
    """Transaction ids are client-generated UUIDs; keep them as strings"""
    uuid.UUID(value)
    return value


UUIDString = Annotated[str, AfterValidator(uuid_string)]


class PawaPayModel(BaseModel):
    """Base model speaking the provider's camelCase wire format"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class MetadataField(PawaPayModel):
    field_name: str = Field(..., min_length=1)
    field_value: str
    is_pii: Optional[bool] = Field(default=None, alias="isPII")


class TransactionRequest(PawaPayModel):
    """Fields shared by deposits and payouts"""

    amount: str = Field(..., min_length=1, description="Decimal amount as a string, e.g. '100.50'")
    currency: str = Field(..., pattern=r"^[A-Z]{3}$")
    country: str = Field(..., pattern=r"^[A-Z]{2,3}$")
    msisdn: str = Field(..., pattern=r"^\d{6,15}$")
    correspondent: Optional[str] = None
    statement_description: Optional[str] = Field(default=None, min_length=4, max_length=22)
    reason: Optional[str] = None
    metadata: Optional[List[MetadataField]] = None


class DepositRequest(TransactionRequest):
    """Body of POST /deposits, without the depositId"""


class PayoutRequest(TransactionRequest):
    """Body of POST /payouts, without the payoutId"""


class BulkPayoutItem(PayoutRequest):
    payout_id: UUIDString


class BulkPayoutRequest(PawaPayModel):
    """Body of POST /bulk-payouts, without the bulkPayoutId"""

    payouts: List[BulkPayoutItem] = Field(..., min_length=1)


class PaymentPageSessionRequest(PawaPayModel):
    """Hosted payment page session; depositId is the idempotency key"""

    deposit_id: UUIDString
    return_url: str = Field(..., min_length=1)
    statement_description: Optional[str] = None
    amount: Optional[str] = None
    msisdn: Optional[str] = None
    language: Optional[Literal["EN", "FR"]] = None
    country: Optional[str] = None
    reason: Optional[str] = None
    metadata: Optional[List[MetadataField]] = None


class PaymentPageSessionResponse(PawaPayModel):
    redirect_url: str


class TransactionResponse(PawaPayModel):
    """Provider acknowledgement or status of a deposit/payout"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    status: str
    deposit_id: Optional[str] = None
    payout_id: Optional[str] = None
    bulk_payout_id: Optional[str] = None
    transaction_id: Optional[str] = None
    created: Optional[str] = None
    status_reason: Optional[str] = None
    expected_settlement_time: Optional[str] = None
    rejection_reason: Optional[Any] = None
    failure_reason: Optional[Any] = None


class TransactionLimits(PawaPayModel):
    mmo_id: str
    country: str
    currency: str
    min_amount: Decimal
    max_amount: Decimal


class OperationAvailability(PawaPayModel):
    operation_type: str
    status: str


class CorrespondentAvailability(PawaPayModel):
    correspondent: str
    operation_types: List[OperationAvailability] = Field(default_factory=list)


class CountryAvailability(PawaPayModel):
    country: str
    correspondents: List[CorrespondentAvailability] = Field(default_factory=list)
