"""
Money Primitives Module

Fixed-point decimal helpers for every amount handled by the ledger.
NEVER uses float for monetary values: amounts are Decimal, rounded to
two places with ROUND_HALF_UP.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from typing import Iterable, Union
import re

# Set global decimal context for financial precision
getcontext().prec = 28

CENT = Decimal('0.01')
ZERO = Decimal('0.00')

AmountLike = Union[Decimal, str, int]


def to_amount(value: AmountLike) -> Decimal:
    """
    Convert a value to a two-place Decimal amount.

    Args:
        value: Decimal, int, or numeric string

    Returns:
        Decimal rounded half-up to cents

    Raises:
        ValueError: If value is a float or cannot be parsed
    """
    if isinstance(value, float):
        raise ValueError("Monetary values must not be floats")
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Cannot convert '{value}' to an amount")
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def round_to(value: Decimal, places: int) -> Decimal:
    """Round a Decimal half-up to the given number of places"""
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def divide_evenly(total: Decimal, parts: int) -> Decimal:
    """
    Split a total into equal parts, rounded half-up to cents.

    The rounding remainder is not redistributed, so
    ``divide_evenly(total, n) * n`` may differ from total by up to n cents.
    """
    if parts <= 0:
        raise ValueError("Cannot divide an amount into non-positive parts")
    return to_amount(Decimal(total) / Decimal(parts))


def percentage_of(part: Decimal, whole: Decimal, places: int = 4) -> Decimal:
    """Percentage that part represents of whole; zero when whole is zero"""
    if whole == 0:
        return round_to(Decimal('0'), places)
    return round_to(Decimal(part) / Decimal(whole) * Decimal('100'), places)


def sum_amounts(amounts: Iterable[Decimal]) -> Decimal:
    """Sum amounts starting from ZERO so an empty iterable yields 0.00"""
    total = ZERO
    for amount in amounts:
        total += amount
    return to_amount(total)


def decimal_from_string(value: str) -> Decimal:
    """
    Safely convert user input to a Decimal amount

    Accepts currency symbols, thousands separators and a single comma used
    as a decimal separator ("1.234,50" style inputs are not supported).

    Raises:
        ValueError: If string cannot be converted to a valid amount
    """
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")

    clean_value = re.sub(r'[^\d.,\-+]', '', value.strip())

    if ',' in clean_value and '.' in clean_value:
        clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        whole, fraction = clean_value.split(',')
        if len(fraction) <= 2:
            clean_value = f"{whole}.{fraction}"
        else:
            clean_value = clean_value.replace(',', '')

    try:
        return to_amount(Decimal(clean_value))
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal")
