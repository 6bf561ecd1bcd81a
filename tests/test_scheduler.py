"""
Test suite for installment schedule generation
"""

import pytest
from decimal import Decimal
from datetime import date, timedelta

from loan_tracker.errors import ValidationError
from loan_tracker.models import PaymentFrequency
from loan_tracker.scheduler import (
    generate_schedule, first_due_date, next_due_date, parse_frequency, amount_per_term
)


class TestAmountPerTerm:
    """Test per-term amounts"""

    def test_even_amount(self):
        """Test amount per term for an even split"""
        schedule = generate_schedule(date(2024, 1, 1), "monthly", None, 4, Decimal("1000.00"))
        assert schedule.amount_per_term == Decimal("250.00")
        assert [term.term_number for term in schedule.terms] == [1, 2, 3, 4]

    @pytest.mark.parametrize("total,count", [
        ("1000.00", 3), ("100.00", 7), ("999.99", 12), ("0.10", 3)
    ])
    def test_rounding_drift_bounded_by_term_count(self, total, count):
        """Test rounding drift stays below one cent per term"""
        per_term = amount_per_term(Decimal(total), count)
        drift = abs(per_term * count - Decimal(total))
        assert drift <= Decimal("0.01") * count


class TestMonthlySchedule:
    """Test monthly due dates"""

    def test_day_not_yet_passed_uses_start_month(self):
        """Test first due date in the start month"""
        assert first_due_date(date(2024, 1, 10), PaymentFrequency.MONTHLY, "15") == date(2024, 1, 15)

    def test_day_on_start_date_counts(self):
        """Test a due day equal to the start day"""
        assert first_due_date(date(2024, 1, 15), PaymentFrequency.MONTHLY, "15") == date(2024, 1, 15)

    def test_day_passed_moves_to_next_month(self):
        """Test first due date moves to the next month"""
        assert first_due_date(date(2024, 1, 20), PaymentFrequency.MONTHLY, "15") == date(2024, 2, 15)

    def test_every_due_date_lands_on_day(self):
        """Test every monthly due date lands on the due day"""
        schedule = generate_schedule(date(2024, 1, 31), "MONTHLY", "28", 14, Decimal("1400.00"))
        assert all(due.day == 28 for due in schedule.due_dates)
        assert schedule.due_dates[0] == date(2024, 2, 28)
        assert schedule.due_dates[-1] == date(2025, 3, 28)

    def test_without_day_adds_one_month(self):
        """Test monthly schedule without a due day"""
        schedule = generate_schedule(date(2024, 1, 31), "monthly", None, 3, Decimal("300.00"))
        assert schedule.due_dates == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 29)]

    def test_invalid_day_falls_back_silently(self):
        """Test an invalid monthly due day falls back"""
        schedule = generate_schedule(date(2024, 1, 10), "monthly", "31", 2, Decimal("200.00"))
        assert schedule.due_dates == [date(2024, 1, 10), date(2024, 2, 10)]


class TestWeeklySchedule:
    """Test weekly due dates"""

    def test_first_date_is_same_or_next_weekday(self):
        """Test first weekly due date on the weekday"""
        assert first_due_date(date(2024, 1, 1), PaymentFrequency.WEEKLY, "FRIDAY") == date(2024, 1, 5)
        assert first_due_date(date(2024, 1, 5), PaymentFrequency.WEEKLY, "friday") == date(2024, 1, 5)

    def test_explicit_weekday_spacing_is_seven_days(self):
        """Test weekly due dates are seven days apart"""
        schedule = generate_schedule(date(2024, 1, 3), "weekly", "Monday", 10, Decimal("1000.00"))
        dates = schedule.due_dates
        assert all(due.weekday() == 0 for due in dates)
        assert all(b - a == timedelta(days=7) for a, b in zip(dates, dates[1:]))

    def test_without_day_adds_seven_days(self):
        """Test weekly schedule without a weekday"""
        assert next_due_date(date(2024, 1, 3), PaymentFrequency.WEEKLY, None) == date(2024, 1, 10)

    def test_invalid_weekday_falls_back_silently(self):
        """Test an invalid weekday falls back"""
        schedule = generate_schedule(date(2024, 1, 3), "weekly", "Funday", 2, Decimal("100.00"))
        assert schedule.due_dates == [date(2024, 1, 3), date(2024, 1, 10)]


class TestScheduleValidation:
    """Test rejected plans"""

    def test_missing_start_date(self):
        """Test schedule without a start date"""
        with pytest.raises(ValidationError, match="start date"):
            generate_schedule(None, "monthly", None, 4, Decimal("1000.00"))

    def test_missing_frequency(self):
        """Test schedule without a frequency"""
        with pytest.raises(ValidationError, match="frequency"):
            generate_schedule(date(2024, 1, 1), "  ", None, 4, Decimal("1000.00"))

    def test_unsupported_frequency(self):
        """Test schedule with an unsupported frequency"""
        with pytest.raises(ValidationError):
            parse_frequency("daily")

    @pytest.mark.parametrize("count", [0, -1, None])
    def test_non_positive_term_count(self, count):
        """Test schedule with a non-positive term count"""
        with pytest.raises(ValidationError, match="greater than 0"):
            generate_schedule(date(2024, 1, 1), "monthly", None, count, Decimal("1000.00"))
