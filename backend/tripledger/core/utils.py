"""
Utility functions for the application.
"""
from typing import Any, Dict, Optional
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Parse a numeric value into an unrounded Decimal.
    Floats go through str() so 0.1 stays 0.1 instead of 0.1000000000000000055.
    Returns None for values that are not finite numbers.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        value = str(value)
    try:
        number = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not number.is_finite():
        return None
    return number


def to_money(value: Any) -> Optional[Decimal]:
    """Normalize a numeric value to a two-decimal Decimal, or None."""
    number = to_decimal(value)
    if number is None:
        return None
    return number.quantize(CENT, rounding=ROUND_HALF_UP)


def format_error(message: str, details: Any = None) -> Dict[str, Any]:
    """Format error response."""
    response = {"error": message}
    if details:
        response["details"] = details
    return response
