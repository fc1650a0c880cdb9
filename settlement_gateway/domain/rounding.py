"""Rounding and formatting primitives shared by the offer calculators"""

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal]

CENT = Decimal("0.01")
RATE_PLACES = Decimal("0.000001")


def round_up_100(value: Number) -> Decimal:
    """
    Round up to the next whole hundred.

    The small epsilon keeps exact hundreds from being pushed up a bucket by
    float noise: 12300.0000001 -> 12300, 12300.5 -> 12400.
    """
    return Decimal(math.ceil((float(value) - 0.001) / 100) * 100)


def round_to_2_decimals(value: Number) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def round_rate(value: Number) -> Decimal:
    return Decimal(str(value)).quantize(RATE_PLACES, rounding=ROUND_HALF_UP)


def format_currency(value: Number) -> str:
    """$12,345.67 style; whole amounts drop the cents"""
    amount = round_to_2_decimals(value)
    if amount == amount.to_integral_value():
        return f"${amount:,.0f}"
    return f"${amount:,.2f}"


def format_percent(value: Number) -> str:
    text = f"{Decimal(str(value)):f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text}%"
