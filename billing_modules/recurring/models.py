"""
Recurring Billing Domain Models (``billing_modules.recurring.models``).

Responsibility
--------------
Frozen dataclass value objects for recurring billing definitions and their
append-only run history.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``; updates go through ``dataclasses.replace``.
* Dates are absolute instants (UTC-aware ``datetime``).  Business dates are
  derived with ``BusinessCalendar``.
* ``custom_interval_value`` / ``custom_interval_unit`` are only meaningful
  when ``frequency`` is CUSTOM.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from billing_modules.recurring.calendar import BillingFrequency, IntervalUnit
from billing_modules.tax.calculator import VatType


class ScheduleStatus(str, Enum):
    """Scheduled billing lifecycle states."""
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    ENDED = "ENDED"


class RunStatus(str, Enum):
    """Outcome of one generation attempt."""
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


@dataclass(frozen=True)
class ScheduledBilling:
    """A recurring billing definition bound to one contract and one billing entity."""
    id: UUID
    contract_id: UUID
    billing_entity_id: UUID
    billing_amount: Decimal
    frequency: BillingFrequency
    billing_day_of_month: int
    start_date: datetime
    status: ScheduleStatus = ScheduleStatus.PENDING
    description: str | None = None
    vat_type: VatType = VatType.VAT
    is_vat_inclusive: bool = False
    has_withholding: bool = False
    withholding_rate: Decimal | None = None
    withholding_code: str | None = None
    due_day_of_month: int | None = None
    custom_interval_value: int | None = None
    custom_interval_unit: IntervalUnit | None = None
    end_date: datetime | None = None
    next_billing_date: datetime | None = None
    auto_approve: bool = False
    auto_send_enabled: bool = True
    remarks: str | None = None
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    rejected_by_id: UUID | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None

    @property
    def effective_due_day(self) -> int:
        return self.due_day_of_month or self.billing_day_of_month


@dataclass(frozen=True)
class ScheduledBillingRun:
    """Immutable record of one generation attempt."""
    id: UUID
    scheduled_billing_id: UUID
    run_date: datetime
    status: RunStatus
    invoice_id: UUID | None = None
    error_message: str | None = None
    period_key: str | None = None
    job_run_id: UUID | None = None
