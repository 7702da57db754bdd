"""
Billing Period Guard (``billing_modules.recurring.period_guard``).

Responsibility
--------------
Decides whether a scheduled billing has already been invoiced for its
current period.  The period is the calendar month, quarter or year that
contains the business date; CUSTOM schedules use the calendar month.

A SUCCESS run dated inside the period blocks generation unless the invoice
it produced has since been voided or cancelled.

Architecture position
---------------------
**Modules layer** -- reads run history and invoices through the
BillingRepository.  Advisory only: the ``uq_invoices_period_lock``
constraint is the hard backstop when two writers pass the guard together.
Callers must evaluate the guard inside the same transaction as the write.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from uuid import UUID

from billing_kernel.domain.calendar import BusinessCalendar
from billing_kernel.logging_config import get_logger
from billing_modules.recurring.calendar import (
    BillingFrequency,
    BillingPeriod,
    calendar_period,
    period_key,
)
from billing_modules.recurring.models import RunStatus, ScheduledBilling

logger = get_logger("modules.recurring.period_guard")


def current_period_bounds(frequency: BillingFrequency, today: date) -> BillingPeriod:
    """Inclusive bounds of the period containing ``today``."""
    return calendar_period(frequency, today)


@dataclass(frozen=True)
class PeriodCheck:
    already_billed: bool
    period: BillingPeriod
    period_key: str
    blocking_run_id: UUID | None = None
    blocking_invoice_id: UUID | None = None


class BillingPeriodGuard:
    """Duplicate-period check for scheduled billings."""

    def __init__(self, repository, calendar: BusinessCalendar):
        self._repository = repository
        self._calendar = calendar

    def check(self, schedule: ScheduledBilling, today: date) -> PeriodCheck:
        period = current_period_bounds(schedule.frequency, today)
        key = period_key(schedule.frequency, today)
        runs = self._repository.list_runs(
            schedule.id,
            status=RunStatus.SUCCESS,
            since=self._calendar.start_of_day(period.start),
            until=self._calendar.start_of_day(period.end + timedelta(days=1)),
        )

        for run in runs:
            if run.invoice_id is not None:
                invoice = self._repository.get_invoice(run.invoice_id)
                if invoice is not None and not invoice.blocks_period:
                    continue
            logger.info(
                "billing_period_already_billed",
                extra={
                    "schedule_id": str(schedule.id),
                    "period_key": key,
                    "run_id": str(run.id),
                },
            )
            return PeriodCheck(
                already_billed=True,
                period=period,
                period_key=key,
                blocking_run_id=run.id,
                blocking_invoice_id=run.invoice_id,
            )

        return PeriodCheck(already_billed=False, period=period, period_key=key)
