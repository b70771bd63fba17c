"""Verification of signed PawaPay callbacks"""

import base64
import binascii
import hmac
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Mapping, Optional, Tuple

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding

from pawapay_gateway.domain.exceptions import ConfigurationError
from pawapay_gateway.domain.models import SignatureAlgorithm
from pawapay_gateway.infrastructure.signing.digest import content_digest
from pawapay_gateway.infrastructure.signing.signer import (
    ALGORITHM_CURVES,
    ALGORITHM_HASHES,
    COVERED_COMPONENTS,
    SIGNATURE_LABEL,
    build_signature_base,
    check_key_matches,
)
from pawapay_gateway.utils.date_utils import epoch_seconds, utc_now

logger = logging.getLogger(__name__)

REQUIRED_HEADERS = ("content-digest", "signature-date", "signature", "signature-input")

_SIGNATURE_RE = re.compile(rf"^\s*{SIGNATURE_LABEL}=:([A-Za-z0-9+/=]+):\s*$")
_SIGNATURE_INPUT_RE = re.compile(rf"^\s*{SIGNATURE_LABEL}=(\((?P<components>[^)]*)\)(?P<params>.*?))\s*$")
_COMPONENT_RE = re.compile(r'"([^"]+)"')


@dataclass(frozen=True)
class SignatureInput:
    """Parsed sig-pp member of a Signature-Input header"""

    components: Tuple[str, ...]
    params: Dict[str, str]
    raw: str  # serialized inner list with parameters, as received

    @property
    def algorithm(self) -> Optional[str]:
        return self.params.get("alg")

    def int_param(self, name: str) -> Optional[int]:
        value = self.params.get(name)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None


def parse_signature_input(value: str) -> Optional[SignatureInput]:
    match = _SIGNATURE_INPUT_RE.match(value)
    if match is None:
        return None

    components = tuple(_COMPONENT_RE.findall(match.group("components")))
    params: Dict[str, str] = {}
    for item in match.group("params").split(";"):
        if not item.strip():
            continue
        key, sep, raw_value = item.partition("=")
        if not sep:
            return None
        params[key.strip()] = raw_value.strip().strip('"')

    return SignatureInput(components=components, params=params, raw=match.group(1))


def parse_signature(value: str) -> Optional[bytes]:
    match = _SIGNATURE_RE.match(value)
    if match is None:
        return None
    try:
        return base64.b64decode(match.group(1), validate=True)
    except (binascii.Error, ValueError):
        return None


class CallbackVerifier:
    """Checks Content-Digest and the asymmetric signature of inbound callbacks"""

    def __init__(self, public_key_pem: str, max_clock_skew_seconds: int = 300):
        try:
            self.public_key = serialization.load_pem_public_key(public_key_pem.encode("utf-8"))
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise ConfigurationError(f"Unable to load callback public key: {e}") from e
        self.max_clock_skew_seconds = max_clock_skew_seconds

    def verify(
        self,
        headers: Mapping[str, str],
        raw_body: bytes,
        method: str = "POST",
        authority: str = "",
        path: str = "/",
        now: datetime | None = None,
    ) -> bool:
        """
        Verify a callback against the configured public key.

        Args:
            headers: Request headers (any casing)
            raw_body: Body bytes exactly as received
            method: Inbound HTTP method
            authority: Host the callback was addressed to
            path: Inbound request path
            now: Verification time (defaults to current UTC time)

        Returns:
            True only if the digest matches the body and the signature
            over the rebuilt signature base verifies
        """
        lowered = {key.lower(): value for key, value in headers.items()}

        missing = [name for name in REQUIRED_HEADERS if not lowered.get(name)]
        if missing:
            logger.warning("Callback missing signature headers", extra={"missing": missing})
            return False

        received_digest = lowered["content-digest"]
        if not hmac.compare_digest(received_digest.encode("utf-8"), content_digest(raw_body).encode("utf-8")):
            logger.warning("Callback content digest mismatch")
            return False

        signature = parse_signature(lowered["signature"])
        if signature is None:
            logger.warning("Callback signature has invalid format")
            return False

        signature_input = parse_signature_input(lowered["signature-input"])
        if signature_input is None or not signature_input.algorithm:
            logger.warning("Callback signature-input has invalid format or no algorithm")
            return False

        if signature_input.components != COVERED_COMPONENTS:
            logger.warning(
                "Callback signature does not cover the required components",
                extra={"components": list(signature_input.components)},
            )
            return False

        if not self._within_validity(signature_input, now or utc_now()):
            logger.warning("Callback signature expired or not yet valid")
            return False

        values = {
            "@method": method.upper(),
            "@authority": authority,
            "@path": path,
            "signature-date": lowered["signature-date"],
            "content-digest": received_digest,
            "content-type": lowered.get("content-type", ""),
        }
        base = build_signature_base(signature_input.components, values, signature_input.raw)

        if not self._verify_bytes(signature_input.algorithm, signature, base.encode("utf-8")):
            logger.warning("Callback signature verification failed", extra={"alg": signature_input.algorithm})
            return False

        return True

    def _within_validity(self, signature_input: SignatureInput, now: datetime) -> bool:
        current = epoch_seconds(now)
        created = signature_input.int_param("created")
        expires = signature_input.int_param("expires")
        if created is None or expires is None:
            return False
        if created - self.max_clock_skew_seconds > current:
            return False
        if expires + self.max_clock_skew_seconds < current:
            return False
        return True

    def _verify_bytes(self, alg: str, signature: bytes, data: bytes) -> bool:
        try:
            algorithm = SignatureAlgorithm(alg)
            check_key_matches(self.public_key, algorithm)
        except (ValueError, ConfigurationError):
            return False

        hash_algorithm = ALGORITHM_HASHES[algorithm]()
        try:
            if algorithm in ALGORITHM_CURVES:
                self.public_key.verify(signature, data, ec.ECDSA(hash_algorithm))
            elif algorithm is SignatureAlgorithm.RSA_PSS_SHA512:
                self.public_key.verify(
                    signature,
                    data,
                    padding.PSS(mgf=padding.MGF1(hash_algorithm), salt_length=padding.PSS.AUTO),
                    hash_algorithm,
                )
            else:
                self.public_key.verify(signature, data, padding.PKCS1v15(), hash_algorithm)
        except (InvalidSignature, ValueError, TypeError):
            return False
        return True
