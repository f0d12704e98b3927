"""
Amount normalization.

Extractors and operators send amounts as numbers, as French-formatted
strings ("1 234,56"), as empty strings or not at all. Everything is
turned into `Decimal` here; nothing in this module raises on bad input.
"""

import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional


CENT = Decimal("0.01")

_WHITESPACE = re.compile(r"\s+")
# Leading numeric prefix, as a lenient float parser reads it ("120.50 EUR" -> 120.50)
_NUMERIC_PREFIX = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Parse a number or a locale-formatted numeric string.
    
    - whitespace (thousands separators, NBSP) is removed
    - the first comma is the decimal separator
    - trailing garbage after a numeric prefix is ignored
    
    Returns None for None, "", booleans, non-numeric text and
    non-finite values.
    """
    if value is None or isinstance(value, bool):
        return None
    
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    
    if isinstance(value, int):
        return Decimal(value)
    
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return Decimal(str(value))
    
    if isinstance(value, str):
        cleaned = _WHITESPACE.sub("", value).replace(",", ".", 1)
        match = _NUMERIC_PREFIX.match(cleaned)
        if match is None:
            return None
        try:
            parsed = Decimal(match.group())
        except InvalidOperation:
            return None
        return parsed if parsed.is_finite() else None
    
    return None


def round2(value: Any) -> Decimal:
    """
    Round to cents, half away from zero.
    
    Floats are converted through `str()` so that 2.005 rounds to 2.01
    and not to the binary neighbour 2.00.
    """
    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)
