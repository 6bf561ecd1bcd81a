"""
Late Fee Module

The single late-fee formula used wherever a penalty is computed: skipping a
term, a term lapsing into delinquency, and paying a delinquent term.
"""

from decimal import Decimal

from .money import to_amount


DEFAULT_LATE_FEE_RATE = Decimal('0.05')    # 5% of the term amount
DEFAULT_MINIMUM_LATE_FEE = Decimal('50.00')


def late_fee(
    amount_per_term: Decimal,
    rate: Decimal = DEFAULT_LATE_FEE_RATE,
    minimum: Decimal = DEFAULT_MINIMUM_LATE_FEE
) -> Decimal:
    """
    Penalty for a missed or skipped term

    Args:
        amount_per_term: Scheduled amount of the term
        rate: Percentage fee as a fraction
        minimum: Floor applied when the percentage fee is smaller

    Returns:
        max(round(amount_per_term * rate, 2), minimum)
    """
    percentage_fee = to_amount(Decimal(amount_per_term) * rate)
    return max(percentage_fee, to_amount(minimum))
