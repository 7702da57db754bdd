"""
Tests for billing_modules.recurring.calendar -- schedule date arithmetic.

Covers next-billing-date computation, month-end clamping, billing
periods and their keys, due dates and the period descriptions printed
on invoice lines.
"""

from datetime import date, timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from billing_kernel.exceptions import InvalidBillingDayError
from billing_modules.recurring.calendar import (
    BillingFrequency,
    BillingPeriod,
    IntervalUnit,
    add_months,
    calculate_days_overdue,
    calculate_next_billing_date,
    calendar_period,
    clamp_day,
    compute_billing_period,
    compute_due_date,
    format_period_description,
    is_billing_day,
    last_day_of_month,
    period_key,
)

START = date(2026, 1, 1)


# =============================================================================
# Month arithmetic
# =============================================================================


class TestMonthArithmetic:
    def test_clamp_day_february(self):
        assert clamp_day(2026, 2, 31) == date(2026, 2, 28)
        assert clamp_day(2028, 2, 31) == date(2028, 2, 29)

    def test_clamp_day_thirty_day_month(self):
        assert clamp_day(2026, 4, 31) == date(2026, 4, 30)

    def test_add_months_restores_anchor(self):
        feb = add_months(date(2026, 1, 31), 1)
        assert feb == date(2026, 2, 28)
        assert add_months(feb, 1, anchor_day=31) == date(2026, 3, 31)

    def test_add_months_across_year(self):
        assert add_months(date(2026, 11, 15), 3) == date(2027, 2, 15)

    def test_add_months_negative(self):
        assert add_months(date(2026, 3, 31), -1) == date(2026, 2, 28)

    def test_last_day_of_month(self):
        assert last_day_of_month(2026, 2) == 28
        assert last_day_of_month(2028, 2) == 29
        assert last_day_of_month(2026, 12) == 31

    @given(
        year=st.integers(min_value=2000, max_value=2100),
        month=st.integers(min_value=1, max_value=12),
        months=st.integers(min_value=-36, max_value=36),
        anchor=st.integers(min_value=1, max_value=31),
    )
    def test_add_months_always_clamps(self, year, month, months, anchor):
        result = add_months(date(year, month, 1), months, anchor_day=anchor)

        shifted = (year * 12 + month - 1) + months
        assert (result.year * 12 + result.month - 1) == shifted
        if result.day < anchor:
            # clamped: the next day already belongs to the following month
            assert (result + timedelta(days=1)).day == 1
        else:
            assert result.day == anchor


# =============================================================================
# Next billing date
# =============================================================================


class TestNextBillingDate:
    def test_upcoming_day_this_month(self):
        result = calculate_next_billing_date(
            15, BillingFrequency.MONTHLY, START, date(2026, 3, 10)
        )
        assert result == date(2026, 3, 15)

    def test_on_billing_day_moves_to_next_period(self):
        result = calculate_next_billing_date(
            15, BillingFrequency.MONTHLY, START, date(2026, 3, 15)
        )
        assert result == date(2026, 4, 15)

    def test_skip_current_always_advances(self):
        result = calculate_next_billing_date(
            15, BillingFrequency.MONTHLY, START, date(2026, 3, 10), skip_current=True
        )
        assert result == date(2026, 4, 15)

    def test_day_31_in_february(self):
        result = calculate_next_billing_date(
            31, BillingFrequency.MONTHLY, START, date(2026, 1, 31)
        )
        assert result == date(2026, 2, 28)

    def test_day_31_in_leap_february(self):
        result = calculate_next_billing_date(
            31, BillingFrequency.MONTHLY, date(2028, 1, 1), date(2028, 1, 31)
        )
        assert result == date(2028, 2, 29)

    def test_day_31_returns_after_february(self):
        result = calculate_next_billing_date(
            31, BillingFrequency.MONTHLY, START, date(2026, 2, 28)
        )
        assert result == date(2026, 3, 31)

    def test_day_31_in_thirty_day_month(self):
        result = calculate_next_billing_date(
            31, BillingFrequency.MONTHLY, START, date(2026, 3, 31)
        )
        assert result == date(2026, 4, 30)

    def test_quarterly(self):
        result = calculate_next_billing_date(
            15, BillingFrequency.QUARTERLY, START, date(2026, 3, 15)
        )
        assert result == date(2026, 6, 15)

    def test_annually(self):
        result = calculate_next_billing_date(
            15, BillingFrequency.ANNUALLY, START, date(2026, 3, 15)
        )
        assert result == date(2027, 3, 15)

    def test_future_start_date(self):
        result = calculate_next_billing_date(
            15, BillingFrequency.MONTHLY, date(2026, 6, 1), date(2026, 3, 1)
        )
        assert result == date(2026, 6, 15)

    def test_custom_days(self):
        result = calculate_next_billing_date(
            15,
            BillingFrequency.CUSTOM,
            START,
            date(2026, 3, 15),
            custom_interval_value=10,
            custom_interval_unit=IntervalUnit.DAYS,
        )
        assert result == date(2026, 3, 25)

    def test_custom_months(self):
        result = calculate_next_billing_date(
            15,
            BillingFrequency.CUSTOM,
            START,
            date(2026, 3, 15),
            custom_interval_value=2,
            custom_interval_unit=IntervalUnit.MONTHS,
        )
        assert result == date(2026, 5, 15)

    def test_custom_without_interval_is_monthly(self):
        result = calculate_next_billing_date(
            15, BillingFrequency.CUSTOM, START, date(2026, 3, 15)
        )
        assert result == date(2026, 4, 15)

    def test_accepts_string_frequency(self):
        result = calculate_next_billing_date(15, "QUARTERLY", START, date(2026, 3, 15))
        assert result == date(2026, 6, 15)

    @pytest.mark.parametrize("day", [0, 32, -1])
    def test_invalid_billing_day(self, day):
        with pytest.raises(InvalidBillingDayError, match="between 1 and 31"):
            calculate_next_billing_date(day, BillingFrequency.MONTHLY, START, date(2026, 3, 1))

    @given(
        day=st.integers(min_value=1, max_value=31),
        frequency=st.sampled_from(
            [BillingFrequency.MONTHLY, BillingFrequency.QUARTERLY, BillingFrequency.ANNUALLY]
        ),
        today=st.dates(min_value=date(2020, 1, 1), max_value=date(2035, 12, 31)),
        skip=st.booleans(),
    )
    def test_result_is_after_today_and_clamped(self, day, frequency, today, skip):
        result = calculate_next_billing_date(day, frequency, START, today, skip_current=skip)
        assert result > today
        assert result.day == min(day, last_day_of_month(result.year, result.month))


# =============================================================================
# Periods
# =============================================================================


class TestPeriods:
    def test_monthly_period(self):
        period = calendar_period(BillingFrequency.MONTHLY, date(2028, 2, 10))
        assert period == BillingPeriod(date(2028, 2, 1), date(2028, 2, 29))

    def test_quarterly_period(self):
        period = calendar_period(BillingFrequency.QUARTERLY, date(2026, 5, 20))
        assert period == BillingPeriod(date(2026, 4, 1), date(2026, 6, 30))

    def test_annual_period(self):
        period = calendar_period(BillingFrequency.ANNUALLY, date(2026, 5, 20))
        assert period == BillingPeriod(date(2026, 1, 1), date(2026, 12, 31))

    def test_custom_falls_back_to_month(self):
        period = calendar_period(BillingFrequency.CUSTOM, date(2026, 4, 3))
        assert period == BillingPeriod(date(2026, 4, 1), date(2026, 4, 30))

    def test_period_contains(self):
        period = BillingPeriod(date(2026, 3, 1), date(2026, 3, 31))
        assert period.contains(date(2026, 3, 31))
        assert not period.contains(date(2026, 4, 1))

    @pytest.mark.parametrize(
        "frequency,expected",
        [
            (BillingFrequency.MONTHLY, "2026-03"),
            (BillingFrequency.QUARTERLY, "2026-Q1"),
            (BillingFrequency.ANNUALLY, "2026"),
            (BillingFrequency.CUSTOM, "2026-03"),
        ],
    )
    def test_period_key(self, frequency, expected):
        assert period_key(frequency, date(2026, 3, 15)) == expected

    def test_fourth_quarter_key(self):
        assert period_key(BillingFrequency.QUARTERLY, date(2026, 12, 31)) == "2026-Q4"

    def test_custom_days_billing_period(self):
        period = compute_billing_period(
            BillingFrequency.CUSTOM,
            date(2026, 3, 15),
            next_billing_date=date(2026, 3, 25),
            custom_interval_value=10,
            custom_interval_unit=IntervalUnit.DAYS,
        )
        assert period == BillingPeriod(date(2026, 3, 15), date(2026, 3, 25))

    def test_custom_months_billing_period(self):
        period = compute_billing_period(
            BillingFrequency.CUSTOM,
            date(2026, 3, 15),
            next_billing_date=date(2026, 5, 15),
            custom_interval_value=2,
            custom_interval_unit=IntervalUnit.MONTHS,
        )
        assert period == BillingPeriod(date(2026, 3, 15), date(2026, 5, 15))

    def test_custom_without_base_is_calendar_month(self):
        period = compute_billing_period(BillingFrequency.CUSTOM, date(2026, 3, 15))
        assert period == BillingPeriod(date(2026, 3, 1), date(2026, 3, 31))


# =============================================================================
# Due dates, descriptions, overdue days
# =============================================================================


class TestDueDate:
    def test_defaults_to_billing_day(self):
        assert compute_due_date(date(2026, 3, 1), 15, None) == date(2026, 3, 15)

    def test_due_day_before_billing_day_rolls_to_next_month(self):
        assert compute_due_date(date(2026, 3, 1), 15, 5) == date(2026, 4, 5)

    def test_due_day_clamped(self):
        assert compute_due_date(date(2026, 2, 1), 28, 31) == date(2026, 2, 28)


class TestPeriodDescription:
    march = BillingPeriod(date(2026, 3, 1), date(2026, 3, 31))

    def test_monthly(self):
        assert (
            format_period_description("Payroll", BillingFrequency.MONTHLY, self.march)
            == "Payroll - Mar 2026"
        )

    def test_quarterly(self):
        assert (
            format_period_description("Payroll", BillingFrequency.QUARTERLY, self.march)
            == "Payroll - Q1 2026"
        )

    def test_annually(self):
        assert (
            format_period_description("Payroll", BillingFrequency.ANNUALLY, self.march)
            == "Payroll - 2026"
        )

    def test_custom_range(self):
        period = BillingPeriod(date(2026, 3, 15), date(2026, 5, 15))
        assert (
            format_period_description("Payroll", BillingFrequency.CUSTOM, period)
            == "Payroll - Mar 15 to May 15, 2026"
        )

    def test_missing_description(self):
        assert (
            format_period_description(None, BillingFrequency.MONTHLY, self.march)
            == "Services - Mar 2026"
        )


class TestBillingDayAndOverdue:
    def test_day_31_bills_on_last_day_of_april(self):
        assert is_billing_day(31, date(2026, 4, 30))
        assert not is_billing_day(31, date(2026, 4, 29))

    def test_days_overdue(self):
        assert calculate_days_overdue(date(2026, 3, 1), date(2026, 3, 15)) == 14

    def test_not_yet_due_is_zero(self):
        assert calculate_days_overdue(date(2026, 3, 20), date(2026, 3, 15)) == 0
