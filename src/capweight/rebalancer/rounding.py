"""Decimal rounding helpers for order sizes."""

from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal


def _exponent(decimals: int) -> Decimal:
    return Decimal(1).scaleb(-decimals)


def floor_decimal(value: Decimal, decimals: int) -> Decimal:
    """Round ``value`` toward negative infinity to ``decimals`` places."""
    return value.quantize(_exponent(decimals), rounding=ROUND_FLOOR)


def ceil_decimal(value: Decimal, decimals: int) -> Decimal:
    """Round ``value`` toward positive infinity to ``decimals`` places."""
    return value.quantize(_exponent(decimals), rounding=ROUND_CEILING)
