"""
Module: formatting
Purpose: Display helpers for amounts and dates used in notifications and emails
Author: Portal Development Team
Date: 2024
"""

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from portal.core.config import settings

Number = Union[Decimal, int, float, str]


def to_decimal(value: Optional[Number]) -> Decimal:
    """Convert a number (or None) to a two-place Decimal."""
    if value is None or value == "":
        return Decimal("0.00")
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def group_indian(integer_part: str) -> str:
    """
    Group digits the Indian way: last three digits, then pairs.

    >>> group_indian("1234567")
    '12,34,567'
    """
    if len(integer_part) <= 3:
        return integer_part

    head, tail = integer_part[:-3], integer_part[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_inr(amount: Optional[Number], with_symbol: bool = True) -> str:
    """
    Format an amount with Indian digit grouping.
    Trailing zero paise are dropped, so 1500 renders as 1,500.

    Args:
        amount: Amount to format
        with_symbol: Prefix the currency symbol

    Returns:
        str: e.g. "₹12,34,567.5" or "-₹500"
    """
    value = to_decimal(amount)
    sign = "-" if value < 0 else ""
    integer_part, _, fraction = f"{abs(value):.2f}".partition(".")
    fraction = fraction.rstrip("0")

    text = group_indian(integer_part) + (f".{fraction}" if fraction else "")
    symbol = settings.CURRENCY_SYMBOL if with_symbol else ""
    return f"{sign}{symbol}{text}"


def format_signed_inr(amount: Optional[Number]) -> str:
    """Amount with an explicit + for money in and - for money out."""
    value = to_decimal(amount)
    prefix = "+" if value >= 0 else "-"
    return f"{prefix}{format_inr(abs(value))}"


def format_date(value: Optional[Union[date, datetime, str]]) -> str:
    """Render a date as DD/MM/YYYY."""
    if value is None or value == "":
        return "N/A"
    if isinstance(value, str):
        try:
            value = date.fromisoformat(value[:10])
        except ValueError:
            return value
    return value.strftime("%d/%m/%Y")
