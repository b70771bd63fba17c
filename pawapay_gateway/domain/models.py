"""Domain models - pure Python dataclasses representing payment entities"""

from dataclasses import dataclass
from enum import Enum


class Environment(str, Enum):
    SANDBOX = "sandbox"
    PRODUCTION = "production"


class SignatureAlgorithm(str, Enum):
    ECDSA_P256_SHA256 = "ecdsa-p256-sha256"
    ECDSA_P384_SHA384 = "ecdsa-p384-sha384"
    RSA_PSS_SHA512 = "rsa-pss-sha512"
    RSA_V1_5_SHA256 = "rsa-v1_5-sha256"


class OperationType(str, Enum):
    DEPOSIT = "DEPOSIT"
    PAYOUT = "PAYOUT"


class AvailabilityStatus(str, Enum):
    OPERATIONAL = "OPERATIONAL"
    DELAYED = "DELAYED"
    CLOSED = "CLOSED"


class TransactionKind(str, Enum):
    DEPOSIT = "DEPOSIT"
    PAYOUT = "PAYOUT"
    BULK_PAYOUT = "BULK_PAYOUT"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @classmethod
    def parse(cls, value: str | None) -> "TransactionStatus":
        """Map a provider status onto ours; anything unrecognised stays PENDING"""
        if value is None:
            return cls.PENDING
        try:
            return cls(value.upper())
        except ValueError:
            return cls.PENDING

    @property
    def is_terminal(self) -> bool:
        return self in (TransactionStatus.COMPLETED, TransactionStatus.FAILED, TransactionStatus.CANCELLED)


@dataclass(frozen=True)
class SignatureConfig:
    """Key material used to sign outbound financial requests"""

    key_id: str
    private_key: str  # PEM
    algorithm: SignatureAlgorithm = SignatureAlgorithm.ECDSA_P256_SHA256


@dataclass(frozen=True)
class SignatureHeaders:
    """Output of request signing, serialized to HTTP headers at the transport edge"""

    content_digest: str
    signature_date: str
    signature: str
    signature_input: str
    accept_signature: str
    accept_digest: str

    def as_headers(self) -> dict[str, str]:
        return {
            "Content-Digest": self.content_digest,
            "Signature-Date": self.signature_date,
            "Signature": self.signature,
            "Signature-Input": self.signature_input,
            "Accept-Signature": self.accept_signature,
            "Accept-Digest": self.accept_digest,
        }


@dataclass
class PaymentTransaction:
    """Deposit, payout or bulk payout as tracked locally"""

    id: str  # caller-generated UUID, doubles as the idempotency key
    kind: TransactionKind
    status: TransactionStatus
    amount: str | None = None
    currency: str | None = None
    country: str | None = None
    correspondent: str | None = None
    msisdn: str | None = None
    status_reason: str | None = None
