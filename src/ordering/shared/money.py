"""Helpers for monetary amounts.

Amounts are carried as floats rounded to two decimal places. Payment
processors expect integer minor units (paise, cents).
"""

from enum import Enum


class Currency(Enum):
    INR = "INR"
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"


def round_money(amount) -> float:
    return round(float(amount or 0.0), 2)


def to_minor_units(amount: float) -> int:
    """Convert a major-unit amount to integer minor units (100.50 -> 10050)."""
    return int(round(float(amount) * 100))


def from_minor_units(amount: int) -> float:
    return round_money(int(amount) / 100)
