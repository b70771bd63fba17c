"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class FormatError(DomainException):
    """Amount string or correspondent is not acceptable to the provider"""

    pass


class ConfigurationError(DomainException):
    """Required settings are missing or unusable"""

    pass


class SignatureError(DomainException):
    """Outbound request could not be signed, or an inbound signature is invalid"""

    pass


class CorrespondentUnavailableError(DomainException):
    """Correspondent is not OPERATIONAL for the requested operation"""

    def __init__(self, country: str, correspondent: str, operation_type: str, status: str | None = None):
        self.country = country
        self.correspondent = correspondent
        self.operation_type = operation_type
        self.status = status
        super().__init__(
            f"{correspondent} ({country}) is not available for {operation_type}: {status or 'UNKNOWN'}"
        )


class GatewayError(DomainException):
    """PawaPay API call did not complete successfully"""

    pass


class TransientNetworkError(GatewayError):
    """
    Outcome of the call is unknown (timeout, connection failure).

    Retry only with the same idempotency key.
    """

    pass


class ProviderRejectedError(GatewayError):
    """PawaPay answered with a non-2xx status"""

    def __init__(self, message: str, status_code: int, status_text: str = "", body: object = None):
        self.status_code = status_code
        self.status_text = status_text
        self.body = body
        super().__init__(f"{message}: {status_code} {status_text}".rstrip())


class InvalidProviderResponseError(GatewayError):
    """PawaPay answered 2xx with a body we could not interpret"""

    pass


class MalformedPayloadError(DomainException):
    """Inbound callback body could not be read or parsed"""

    pass
