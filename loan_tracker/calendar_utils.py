"""
Calendar Arithmetic Module

Month stepping and weekday lookups used by the installment scheduler.
Explicit days of month are capped at 28 so that every month has them.
"""

from datetime import date, timedelta
from typing import Optional
import calendar


MAX_DAY_OF_MONTH = 28

WEEKDAYS = {
    "MONDAY": calendar.MONDAY,
    "TUESDAY": calendar.TUESDAY,
    "WEDNESDAY": calendar.WEDNESDAY,
    "THURSDAY": calendar.THURSDAY,
    "FRIDAY": calendar.FRIDAY,
    "SATURDAY": calendar.SATURDAY,
    "SUNDAY": calendar.SUNDAY,
}


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, clamping to the last day of the target month"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def with_day(value: date, day: int) -> date:
    """Same month as value, on the given day (clamped to month length)"""
    return value.replace(day=min(day, calendar.monthrange(value.year, value.month)[1]))


def next_or_same_weekday(value: date, weekday: int) -> date:
    """First date on or after value that falls on weekday (Monday == 0)"""
    return value + timedelta(days=(weekday - value.weekday()) % 7)


def parse_weekday(value: Optional[str]) -> Optional[int]:
    """Weekday number for a name like "friday"; None if blank or unknown"""
    if value is None:
        return None
    return WEEKDAYS.get(value.strip().upper())


def parse_day_of_month(value: Optional[str]) -> Optional[int]:
    """Day of month 1-28 from a string; None if blank, non-numeric or out of range"""
    if value is None:
        return None
    try:
        day = int(value.strip())
    except ValueError:
        return None
    if 1 <= day <= MAX_DAY_OF_MONTH:
        return day
    return None
