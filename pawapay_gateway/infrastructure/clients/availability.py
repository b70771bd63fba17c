"""Correspondent availability gating over already-fetched availability data"""

from typing import Iterable, Optional

from pawapay_gateway.domain.exceptions import CorrespondentUnavailableError
from pawapay_gateway.domain.models import AvailabilityStatus, OperationType
from pawapay_gateway.infrastructure.clients.schemas import CountryAvailability


def operation_status(
    availability: Iterable[CountryAvailability],
    country: str,
    correspondent: str,
    operation_type: OperationType | str,
) -> Optional[str]:
    """Return the advertised status for one operation, or None if not listed"""
    try:
        operation_type = OperationType(operation_type).value
    except ValueError:
        return None

    country_data = next((c for c in availability if c.country == country), None)
    if country_data is None:
        return None

    correspondent_data = next(
        (c for c in country_data.correspondents if c.correspondent == correspondent), None
    )
    if correspondent_data is None:
        return None

    operation = next(
        (op for op in correspondent_data.operation_types if op.operation_type == operation_type), None
    )
    return operation.status if operation else None


def is_operation_available(
    availability: Iterable[CountryAvailability],
    country: str,
    correspondent: str,
    operation_type: OperationType | str,
) -> bool:
    """True only when the operation is listed and exactly OPERATIONAL"""
    status = operation_status(list(availability), country, correspondent, operation_type)
    return status == AvailabilityStatus.OPERATIONAL.value


def ensure_operation_available(
    availability: Iterable[CountryAvailability],
    country: str,
    correspondent: str,
    operation_type: OperationType | str,
) -> None:
    """
    Gate a deposit or payout on fresh availability data.

    Raises:
        CorrespondentUnavailableError: If the operation is missing or not OPERATIONAL
    """
    status = operation_status(list(availability), country, correspondent, operation_type)
    if status != AvailabilityStatus.OPERATIONAL.value:
        raise CorrespondentUnavailableError(
            country=country,
            correspondent=correspondent,
            operation_type=getattr(operation_type, "value", operation_type),
            status=status,
        )
