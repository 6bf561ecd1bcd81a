"""
Installment Scheduler Module

Generates the ordered due dates and per-term amount of an installment plan
from its start date, frequency, optional explicit day and term count.
Schedules are generated once at plan creation and never regenerated.
"""

from decimal import Decimal
from datetime import date, timedelta
from dataclasses import dataclass
from typing import List, Optional

from .calendar_utils import (
    add_months, with_day, next_or_same_weekday, parse_weekday, parse_day_of_month
)
from .errors import ValidationError
from .models import PaymentFrequency
from .money import divide_evenly


@dataclass(frozen=True)
class ScheduledTerm:
    """Single entry in an installment schedule"""
    term_number: int
    due_date: date


@dataclass(frozen=True)
class Schedule:
    amount_per_term: Decimal
    terms: List[ScheduledTerm]

    @property
    def due_dates(self) -> List[date]:
        return [term.due_date for term in self.terms]


def parse_frequency(value) -> PaymentFrequency:
    """Accepts an enum member or a case-insensitive name such as "Monthly" """
    if isinstance(value, PaymentFrequency):
        return value
    if value is None or not str(value).strip():
        raise ValidationError("Payment frequency is required for installment expenses")
    try:
        return PaymentFrequency(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Unsupported payment frequency: {value}")


def amount_per_term(total_amount: Decimal, term_count: int) -> Decimal:
    """round(total / term_count, 2, HALF_UP); the remainder is not redistributed"""
    return divide_evenly(total_amount, term_count)


def first_due_date(start_date: date, frequency: PaymentFrequency, due_day: Optional[str]) -> date:
    """
    First due date of a plan

    Without an explicit day (or with an invalid one) this is the start date.
    Monthly with day D: D of the start month if not yet passed, else D of
    the next month. Weekly with weekday W: the same-or-next W.
    """
    if frequency == PaymentFrequency.MONTHLY:
        day = parse_day_of_month(due_day)
        if day is not None:
            if start_date.day <= day:
                return with_day(start_date, day)
            return with_day(add_months(start_date, 1), day)
    elif frequency == PaymentFrequency.WEEKLY:
        weekday = parse_weekday(due_day)
        if weekday is not None:
            return next_or_same_weekday(start_date, weekday)
    return start_date


def next_due_date(current: date, frequency: PaymentFrequency, due_day: Optional[str]) -> date:
    """Due date following current"""
    if frequency == PaymentFrequency.WEEKLY:
        following_week = current + timedelta(days=7)
        weekday = parse_weekday(due_day)
        if weekday is None:
            return following_week
        return next_or_same_weekday(following_week, weekday)

    following_month = add_months(current, 1)
    day = parse_day_of_month(due_day)
    if day is None:
        return following_month
    return with_day(following_month, day)


def generate_schedule(
    start_date: Optional[date],
    frequency,
    due_day: Optional[str],
    term_count: Optional[int],
    total_amount: Decimal
) -> Schedule:
    """
    Generate the full schedule of a plan

    Args:
        start_date: Plan start date
        frequency: PaymentFrequency or its name
        due_day: Optional weekday name (weekly) or day of month 1-28 (monthly)
        term_count: Number of terms, must be positive
        total_amount: Amount borrowed

    Returns:
        Schedule with the per-term amount and terms numbered from 1

    Raises:
        ValidationError: If start date, frequency or a positive term count is missing
    """
    if start_date is None:
        raise ValidationError("Installment start date is required for installment expenses")
    frequency = parse_frequency(frequency)
    if term_count is None or term_count <= 0:
        raise ValidationError("Payment terms must be greater than 0")

    terms = []
    due = first_due_date(start_date, frequency, due_day)
    for number in range(1, term_count + 1):
        terms.append(ScheduledTerm(term_number=number, due_date=due))
        due = next_due_date(due, frequency, due_day)

    return Schedule(amount_per_term=amount_per_term(total_amount, term_count), terms=terms)
