"""
billing_batch.domain.types -- Pure frozen dataclasses for the sweep.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from billing_kernel.domain.calendar import DEFAULT_BUSINESS_TIMEZONE

SWEEP_JOB_NAME = "daily-billing-check"


# =============================================================================
# Status enums
# =============================================================================


class JobStatus(str, Enum):
    """Job-run lifecycle status."""

    RUNNING = "running"
    COMPLETED = "completed"  # Ran to the end; per-item failures are in errors
    FAILED = "failed"  # Aborted outside the per-item loop


class JobTrigger(str, Enum):
    SCHEDULED = "scheduled"  # Fired by the cron scheduler
    MANUAL = "manual"  # trigger_now() or an operator


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True)
class SweepResult:
    """Counters for one sweep.

    ``processed`` counts invoices generated; ``failed`` counts items whose
    generation raised.  Auto-send failures are listed in ``errors`` without
    counting as failed items, since the invoice itself was created.
    """

    processed: int = 0
    auto_sent: int = 0
    pending_approval: int = 0
    skipped: int = 0
    failed: int = 0
    errors: tuple[str, ...] = ()

    def merge(self, other: SweepResult) -> SweepResult:
        return SweepResult(
            processed=self.processed + other.processed,
            auto_sent=self.auto_sent + other.auto_sent,
            pending_approval=self.pending_approval + other.pending_approval,
            skipped=self.skipped + other.skipped,
            failed=self.failed + other.failed,
            errors=self.errors + other.errors,
        )


@dataclass(frozen=True)
class JobRun:
    """Immutable snapshot of one sweep execution."""

    run_id: UUID
    job_name: str
    trigger: JobTrigger
    status: JobStatus
    started_at: datetime
    completed_at: datetime | None = None
    result: SweepResult | None = None
    error_message: str | None = None
    actor_id: UUID | None = None


# =============================================================================
# Scheduler
# =============================================================================


@dataclass(frozen=True)
class SchedulerConfig:
    enabled: bool = True
    cron_expression: str = "0 8 * * *"
    timezone: str = DEFAULT_BUSINESS_TIMEZONE


@dataclass(frozen=True)
class SchedulerStatus:
    running: bool
    config: SchedulerConfig
    last_run: JobRun | None = None
    next_run: datetime | None = None
