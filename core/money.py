"""Decimal helpers for currency amounts"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convert without going through binary float rounding"""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(value: Number) -> Decimal:
    """Round to cents for display and for charging"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


__all__ = ["CENT", "to_decimal", "quantize"]
