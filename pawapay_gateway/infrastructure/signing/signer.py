"""HTTP message signing for PawaPay financial requests"""

import base64
import logging
from datetime import datetime, timedelta
from typing import Any, Mapping, Sequence

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa

from pawapay_gateway.domain.exceptions import ConfigurationError, SignatureError
from pawapay_gateway.domain.models import SignatureAlgorithm, SignatureConfig, SignatureHeaders
from pawapay_gateway.infrastructure.signing.digest import content_digest, serialize_body
from pawapay_gateway.utils.date_utils import epoch_seconds, iso_timestamp, utc_now

logger = logging.getLogger(__name__)

SIGNATURE_LABEL = "sig-pp"
CONTENT_TYPE = "application/json"
SIGNATURE_TTL = timedelta(seconds=60)

# Order is part of the protocol: the receiver rebuilds the base in this order
COVERED_COMPONENTS = (
    "@method",
    "@authority",
    "@path",
    "signature-date",
    "content-digest",
    "content-type",
)

ACCEPT_SIGNATURE = "rsa-pss-sha512,ecdsa-p256-sha256,rsa-v1_5-sha256,ecdsa-p384-sha384"
ACCEPT_DIGEST = "sha-256,sha-512"

ALGORITHM_HASHES = {
    SignatureAlgorithm.ECDSA_P256_SHA256: hashes.SHA256,
    SignatureAlgorithm.ECDSA_P384_SHA384: hashes.SHA384,
    SignatureAlgorithm.RSA_PSS_SHA512: hashes.SHA512,
    SignatureAlgorithm.RSA_V1_5_SHA256: hashes.SHA256,
}

ALGORITHM_CURVES = {
    SignatureAlgorithm.ECDSA_P256_SHA256: ec.SECP256R1,
    SignatureAlgorithm.ECDSA_P384_SHA384: ec.SECP384R1,
}


def signature_params(
    components: Sequence[str],
    algorithm: str,
    key_id: str,
    created: int,
    expires: int,
) -> str:
    """Inner list serialization used both in Signature-Input and the @signature-params line"""
    covered = " ".join(f'"{name}"' for name in components)
    return f'({covered});alg="{algorithm}";keyid="{key_id}";created={created};expires={expires}'


def build_signature_base(components: Sequence[str], values: Mapping[str, str], params: str) -> str:
    """
    Build the canonical signature base.

    One line per covered component as `"<name>": <value>`, then the
    `"@signature-params"` line, joined with newlines.
    """
    lines = [f'"{name}": {values[name]}' for name in components]
    lines.append(f'"@signature-params": {params}')
    return "\n".join(lines)


def resolve_algorithm(algorithm: SignatureAlgorithm | str) -> SignatureAlgorithm:
    try:
        return SignatureAlgorithm(algorithm)
    except ValueError as e:
        raise ConfigurationError(f"Unsupported signature algorithm: {algorithm}") from e


def check_key_matches(key: Any, algorithm: SignatureAlgorithm) -> None:
    """Raise ConfigurationError if the key type cannot produce/verify the algorithm"""
    if algorithm in ALGORITHM_CURVES:
        curve = ALGORITHM_CURVES[algorithm]
        if not isinstance(key, (ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey)):
            raise ConfigurationError(f"{algorithm.value} requires an EC key")
        if not isinstance(key.curve, curve):
            raise ConfigurationError(f"{algorithm.value} requires curve {curve.name}")
    elif not isinstance(key, (rsa.RSAPrivateKey, rsa.RSAPublicKey)):
        raise ConfigurationError(f"{algorithm.value} requires an RSA key")


class RequestSigner:
    """Signs outbound requests; a signer without config is a no-op"""

    def __init__(self, config: SignatureConfig | None = None):
        self.config = config
        self._algorithm: SignatureAlgorithm | None = None
        self._private_key = None

        if config is None:
            return

        self._algorithm = resolve_algorithm(config.algorithm)
        try:
            self._private_key = serialization.load_pem_private_key(
                config.private_key.encode("utf-8"), password=None
            )
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise ConfigurationError(f"Unable to load signing key {config.key_id}: {e}") from e
        check_key_matches(self._private_key, self._algorithm)

    @property
    def enabled(self) -> bool:
        return self.config is not None

    def sign(
        self,
        method: str,
        path: str,
        body: Any,
        authority: str,
        now: datetime | None = None,
    ) -> SignatureHeaders | None:
        """
        Sign a request.

        Args:
            method: HTTP method, e.g. "POST"
            path: Request path, e.g. "/deposits"
            body: Exact body bytes to be transmitted (or a JSON object,
                serialized with serialize_body)
            authority: Host the request is sent to
            now: Signing time (defaults to current UTC time)

        Returns:
            Signature headers, or None when signing is not configured

        Raises:
            SignatureError: If the signature cannot be produced
        """
        if self.config is None:
            return None

        raw = body if isinstance(body, (bytes, bytearray)) else serialize_body(body)
        now = now or utc_now()
        created = epoch_seconds(now)
        expires = epoch_seconds(now + SIGNATURE_TTL)
        signature_date = iso_timestamp(now)
        digest = content_digest(raw)

        params = signature_params(
            COVERED_COMPONENTS, self._algorithm.value, self.config.key_id, created, expires
        )
        base = build_signature_base(
            COVERED_COMPONENTS,
            {
                "@method": method.upper(),
                "@authority": authority,
                "@path": path,
                "signature-date": signature_date,
                "content-digest": digest,
                "content-type": CONTENT_TYPE,
            },
            params,
        )

        signature = base64.b64encode(self._sign_bytes(base.encode("utf-8"))).decode("ascii")

        return SignatureHeaders(
            content_digest=digest,
            signature_date=signature_date,
            signature=f"{SIGNATURE_LABEL}=:{signature}:",
            signature_input=f"{SIGNATURE_LABEL}={params}",
            accept_signature=ACCEPT_SIGNATURE,
            accept_digest=ACCEPT_DIGEST,
        )

    def _sign_bytes(self, data: bytes) -> bytes:
        algorithm = self._algorithm
        hash_algorithm = ALGORITHM_HASHES[algorithm]()
        try:
            if algorithm in ALGORITHM_CURVES:
                return self._private_key.sign(data, ec.ECDSA(hash_algorithm))
            if algorithm is SignatureAlgorithm.RSA_PSS_SHA512:
                return self._private_key.sign(
                    data,
                    padding.PSS(mgf=padding.MGF1(hash_algorithm), salt_length=padding.PSS.DIGEST_LENGTH),
                    hash_algorithm,
                )
            return self._private_key.sign(data, padding.PKCS1v15(), hash_algorithm)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            logger.error("Request signing failed", extra={"key_id": self.config.key_id})
            raise SignatureError(f"Error signing request: {e}") from e
