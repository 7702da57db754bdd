"""
Recurring Schedule Calculator (``billing_modules.recurring.calendar``).

Responsibility
--------------
Pure calendar arithmetic for recurring billing: the next billing date of a
schedule, the period an invoice covers, its due date, the period key used
for duplicate detection and the human-readable period description.

Architecture position
---------------------
**Modules layer** -- pure functions.  "Today" is always an argument; nothing
here reads a clock.  Callers derive ``today`` from a BusinessCalendar.

Invariants enforced
-------------------
- A day-of-month anchor is clamped to the last valid day of the target
  month (31 in February becomes 28 or 29).
- After advancing by whole months the anchor is re-applied, so a schedule
  clamped to Feb 28 returns to the 31st in March.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum

from dateutil.relativedelta import relativedelta

from billing_kernel.exceptions import InvalidBillingDayError


class BillingFrequency(str, Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    ANNUALLY = "ANNUALLY"
    CUSTOM = "CUSTOM"


class IntervalUnit(str, Enum):
    DAYS = "DAYS"
    MONTHS = "MONTHS"


_MONTHS_PER_PERIOD = {
    BillingFrequency.MONTHLY: 1,
    BillingFrequency.QUARTERLY: 3,
    BillingFrequency.ANNUALLY: 12,
}


@dataclass(frozen=True)
class BillingPeriod:
    """Inclusive date range covered by one invoice."""

    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


# =============================================================================
# Month arithmetic
# =============================================================================


def last_day_of_month(year: int, month: int) -> int:
    return clamp_day(year, month, 31).day


def clamp_day(year: int, month: int, day: int) -> date:
    """``day`` in the given month, clamped to the month's length."""
    return date(year, month, 1) + relativedelta(day=day)


def add_months(day: date, months: int, anchor_day: int | None = None) -> date:
    """Shift ``day`` by whole months, re-applying ``anchor_day`` (default: day.day)."""
    return day + relativedelta(months=months, day=anchor_day or day.day)


def _validate_billing_day(billing_day_of_month: int) -> None:
    if not 1 <= billing_day_of_month <= 31:
        raise InvalidBillingDayError(billing_day_of_month)


# =============================================================================
# Next billing date
# =============================================================================


def calculate_next_billing_date(
    billing_day_of_month: int,
    frequency: BillingFrequency,
    start_date: date,
    today: date,
    skip_current: bool = False,
    custom_interval_value: int | None = None,
    custom_interval_unit: IntervalUnit | None = None,
) -> date:
    """
    Compute the next billing date for a schedule.

    Args:
        billing_day_of_month: Anchor day (1-31).
        frequency: Billing frequency.
        start_date: First date the schedule may bill.
        today: Business-local "now".
        skip_current: Always move past the current candidate (used right
            after a successful generation).
        custom_interval_value: Interval length for CUSTOM schedules.
        custom_interval_unit: DAYS or MONTHS for CUSTOM schedules.

    Returns:
        The next billing date.
    """
    _validate_billing_day(billing_day_of_month)
    frequency = BillingFrequency(frequency)

    candidate = clamp_day(today.year, today.month, billing_day_of_month)

    if candidate < start_date:
        candidate = clamp_day(start_date.year, start_date.month, billing_day_of_month)

    if candidate > today and not skip_current:
        return candidate

    if frequency is BillingFrequency.CUSTOM:
        if custom_interval_value and custom_interval_unit:
            unit = IntervalUnit(custom_interval_unit)
            if unit is IntervalUnit.DAYS:
                return today + timedelta(days=custom_interval_value)
            return add_months(candidate, custom_interval_value, billing_day_of_month)
        return add_months(candidate, 1, billing_day_of_month)

    return add_months(candidate, _MONTHS_PER_PERIOD[frequency], billing_day_of_month)


# =============================================================================
# Periods
# =============================================================================


def calendar_period(frequency: BillingFrequency, today: date) -> BillingPeriod:
    """
    Calendar month, quarter or year containing ``today``.

    CUSTOM falls back to the calendar month.  This is the window the period
    guard uses for duplicate detection.
    """
    frequency = BillingFrequency(frequency)
    if frequency is BillingFrequency.QUARTERLY:
        first_month = ((today.month - 1) // 3) * 3 + 1
        start = date(today.year, first_month, 1)
        end = start + relativedelta(months=2, day=31)
    elif frequency is BillingFrequency.ANNUALLY:
        start = date(today.year, 1, 1)
        end = date(today.year, 12, 31)
    else:
        start = date(today.year, today.month, 1)
        end = clamp_day(today.year, today.month, 31)
    return BillingPeriod(start=start, end=end)


def compute_billing_period(
    frequency: BillingFrequency,
    today: date,
    next_billing_date: date | None = None,
    start_date: date | None = None,
    custom_interval_value: int | None = None,
    custom_interval_unit: IntervalUnit | None = None,
) -> BillingPeriod:
    """
    Service period printed on a generated invoice.

    Calendar frequencies cover the calendar month/quarter/year of ``today``.
    CUSTOM schedules with an interval cover the interval ending on the
    schedule's next billing date (or start date when never billed).
    """
    frequency = BillingFrequency(frequency)
    if frequency is not BillingFrequency.CUSTOM:
        return calendar_period(frequency, today)

    base = next_billing_date or start_date
    if base is None or not (custom_interval_value and custom_interval_unit):
        return calendar_period(BillingFrequency.MONTHLY, today)

    if IntervalUnit(custom_interval_unit) is IntervalUnit.DAYS:
        start = base - timedelta(days=custom_interval_value)
    else:
        start = add_months(base, -custom_interval_value)
    return BillingPeriod(start=start, end=base)


def period_key(frequency: BillingFrequency, today: date) -> str:
    """Idempotency key of the duplicate-detection period: 2026-02, 2026-Q1, 2026."""
    frequency = BillingFrequency(frequency)
    if frequency is BillingFrequency.QUARTERLY:
        return f"{today.year}-Q{(today.month - 1) // 3 + 1}"
    if frequency is BillingFrequency.ANNUALLY:
        return f"{today.year}"
    return f"{today.year}-{today.month:02d}"


def compute_due_date(period_start: date, billing_day_of_month: int, due_day_of_month: int | None) -> date:
    """Due day in the period's first month, or the next month when it precedes the billing day."""
    due_day = due_day_of_month or billing_day_of_month
    due = clamp_day(period_start.year, period_start.month, due_day)
    if due_day < billing_day_of_month:
        due = add_months(due, 1, due_day)
    return due


def format_period_description(
    description: str | None,
    frequency: BillingFrequency,
    period: BillingPeriod,
) -> str:
    """Line-item description with the billed period appended."""
    text = description or "Services"
    frequency = BillingFrequency(frequency)
    start = period.start
    if frequency is BillingFrequency.MONTHLY:
        return f"{text} - {start:%b %Y}"
    if frequency is BillingFrequency.QUARTERLY:
        return f"{text} - Q{(start.month - 1) // 3 + 1} {start:%Y}"
    if frequency is BillingFrequency.ANNUALLY:
        return f"{text} - {start:%Y}"
    end = period.end
    return f"{text} - {start:%b} {start.day} to {end:%b} {end.day}, {end:%Y}"


def is_billing_day(billing_day_of_month: int, today: date) -> bool:
    """True when ``today`` is the (clamped) billing day of its month."""
    return clamp_day(today.year, today.month, billing_day_of_month) == today


def calculate_days_overdue(due_date: date, today: date) -> int:
    """Whole days past due, never negative.  Dates only, no time of day."""
    return max(0, (today - due_date).days)
