"""Recurring billing: schedule calendar, period guard, schedule lifecycle."""

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
from billing_modules.recurring.models import (
    RunStatus,
    ScheduledBilling,
    ScheduledBillingRun,
    ScheduleStatus,
)
from billing_modules.recurring.period_guard import (
    BillingPeriodGuard,
    PeriodCheck,
    current_period_bounds,
)
from billing_modules.recurring.workflows import SCHEDULE_WORKFLOW

__all__ = [
    "BillingFrequency",
    "BillingPeriod",
    "BillingPeriodGuard",
    "IntervalUnit",
    "PeriodCheck",
    "RunStatus",
    "SCHEDULE_WORKFLOW",
    "ScheduleStatus",
    "ScheduledBilling",
    "ScheduledBillingRun",
    "add_months",
    "calculate_days_overdue",
    "calculate_next_billing_date",
    "calendar_period",
    "clamp_day",
    "compute_billing_period",
    "compute_due_date",
    "current_period_bounds",
    "format_period_description",
    "is_billing_day",
    "last_day_of_month",
    "period_key",
]
