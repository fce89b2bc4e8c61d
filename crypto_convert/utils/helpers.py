"""
Number formatting and small validation helpers shared by the conversion code.
"""

import math
from decimal import Decimal
from typing import Any, Mapping, Optional

# Decimal places applied to results
CRYPTO_PRECISION = 8
FIAT_PRECISION = 4


def format_number(value: Any, precision: Optional[int] = None) -> float:
    """
    Coerces a number or numeric string to float, optionally rounded.

    Args:
        value: An int, float, Decimal or numeric string (e.g. ``"1.5"``).
        precision: Decimal places to round to. ``None`` leaves the value unrounded.

    Returns:
        float: The parsed value, or ``nan`` if the input is not numeric.
    """
    if isinstance(value, bool) or value is None:
        return math.nan

    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return math.nan
        try:
            number = float(text)
        except ValueError:
            return math.nan
    else:
        return math.nan

    if not math.isfinite(number):
        return math.nan

    if precision is not None:
        number = round(number, precision)
    return number


def is_empty(mapping: Optional[Mapping]) -> bool:
    """True when the mapping is missing or has no keys."""
    return not mapping
