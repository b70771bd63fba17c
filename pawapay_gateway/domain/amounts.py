"""Per-correspondent amount precision rules"""

import re
from typing import Dict, Optional

from pawapay_gateway.domain.exceptions import FormatError

# Maximum decimal places accepted by each correspondent, None = whole numbers only.
# Mirrors the provider's published table; keep in sync by hand when correspondents change.
DECIMAL_RULES: Dict[str, Optional[int]] = {
    # Benin
    "MTN_MOMO_BEN": None,
    "MOOV_BEN": None,
    # Burkina Faso
    "ORANGE_BFA": None,
    "MOOV_BFA": None,
    # Cameroon
    "MTN_MOMO_CMR": None,
    "ORANGE_CMR": None,
    # Cote d'Ivoire
    "MTN_MOMO_CIV": None,
    "ORANGE_CIV": None,
    # Congo-Brazzaville
    "AIRTEL_COG": None,
    "MTN_MOMO_COG": None,
    # DRC
    "VODACOM_MPESA_COD": 2,
    "AIRTEL_COD": 2,
    "ORANGE_COD": 2,
    # Gabon
    "AIRTEL_GAB": None,
    # Ghana
    "MTN_MOMO_GHA": 2,
    "AIRTELTIGO_GHA": 2,
    "VODAFONE_GHA": 2,
    # Kenya
    "MPESA_KEN": None,
    # Malawi
    "AIRTEL_MWI": 2,
    "TNM_MWI": 2,
    # Mozambique
    "VODACOM_MOZ": 2,
    # Nigeria
    "AIRTEL_NGA": 2,
    "MTN_MOMO_NGA": 2,
    # Rwanda
    "AIRTEL_RWA": None,
    "MTN_MOMO_RWA": None,
    # Senegal
    "FREE_SEN": None,
    "ORANGE_SEN": None,
    # Sierra Leone
    "ORANGE_SLE": 2,
    # Tanzania
    "AIRTEL_TZA": None,
    "VODACOM_TZA": None,
    "TIGO_TZA": None,
    "HALOTEL_TZA": None,
    # Uganda
    "AIRTEL_OAPI_UGA": None,
    "MTN_MOMO_UGA": None,
    # Zambia
    "AIRTEL_OAPI_ZMB": 2,
    "MTN_MOMO_ZMB": 2,
    "ZAMTEL_ZMB": 2,
}

_AMOUNT_PATTERN = re.compile(r"([0-9]+)(?:\.([0-9]+))?")


def validate_transaction_amount(amount: str, correspondent: str) -> bool:
    """
    Check an amount string against the correspondent's decimal-place rule.

    This is a predicate, not a normalizer: nothing is rounded.

    Args:
        amount: Amount exactly as it will be sent, e.g. "100" or "100.50"
        correspondent: PawaPay correspondent code, e.g. "MTN_MOMO_GHA"

    Returns:
        True if the provider will accept the amount's precision

    Raises:
        FormatError: If the correspondent has no known rule
    """
    if correspondent not in DECIMAL_RULES:
        raise FormatError(f"Unknown correspondent: {correspondent}")

    if not isinstance(amount, str):
        return False

    match = _AMOUNT_PATTERN.fullmatch(amount)
    if match is None:
        return False

    fraction = match.group(2)
    max_places = DECIMAL_RULES[correspondent]

    if max_places is None:
        return fraction is None

    return fraction is None or len(fraction) <= max_places
