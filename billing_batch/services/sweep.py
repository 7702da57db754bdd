"""
DailySweepJob -- the daily billing sweep ("daily-billing-check").

Contract:
    ``run()`` records a RUNNING job run, bills every due scheduled billing
    and direct-billed contract one at a time, and finishes the job run as
    COMPLETED with counters and an error list.  Anything raised outside
    the per-item handling marks the job run FAILED instead.

Architecture: billing_batch/services.  Depends on the BillingRepository
    port and the billing_modules services; never touches ORM models of
    billing_modules directly.

Invariants enforced:
    - SAVEPOINT isolation per item: one schedule's failure rolls back only
      its own writes and is recorded as a FAILED run.
    - Every due schedule gets exactly one ScheduledBillingRun per sweep
      (SUCCESS, SKIPPED or FAILED).
    - The period guard runs before generation; the period lock on invoices
      rejects a duplicate that slips past it.
    - All timestamps from the injected Clock.

Non-goals:
    - Does NOT call ``session.commit()`` -- caller controls boundaries.
    - Does NOT lock against a second sweep running concurrently.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from typing import assert_never
from uuid import UUID, uuid4

from billing_kernel.domain.calendar import BusinessCalendar
from billing_kernel.domain.clock import Clock
from billing_kernel.exceptions import DuplicatePeriodInvoiceError, InvalidScheduleTransitionError
from billing_kernel.logging_config import LogContext, get_logger
from billing_modules.invoicing.contract_billing import ContractBillingService
from billing_modules.invoicing.generator import InvoiceGenerator
from billing_modules.invoicing.lifecycle import (
    AutoPolicyDecision,
    AutoPolicyOutcome,
    InvoiceLifecycleService,
)
from billing_modules.invoicing.models import Contract, Invoice
from billing_modules.recurring.models import (
    RunStatus,
    ScheduledBilling,
    ScheduledBillingRun,
    ScheduleStatus,
)
from billing_modules.recurring.period_guard import BillingPeriodGuard
from billing_modules.recurring.service import ScheduleService

from billing_batch.domain.types import (
    SWEEP_JOB_NAME,
    JobRun,
    JobStatus,
    JobTrigger,
    SweepResult,
)
from billing_batch.services.job_runs import JobRunStore

logger = get_logger("batch.sweep")

ALREADY_BILLED_MESSAGE = "Invoice already exists for this billing period"

# Fixed actor for unattended sweeps.
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")


def _error_text(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class DailySweepJob:
    """Generates the day's invoices.

    Contract:
        - ``run()`` sweeps scheduled billings, then direct-billed contracts.
        - ``run_now()`` bills a single schedule on demand.
    """

    def __init__(
        self,
        repository,
        job_runs: JobRunStore,
        generator: InvoiceGenerator,
        lifecycle: InvoiceLifecycleService,
        guard: BillingPeriodGuard,
        schedules: ScheduleService,
        contracts: ContractBillingService,
        clock: Clock,
        calendar: BusinessCalendar,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ):
        self._repository = repository
        self._job_runs = job_runs
        self._generator = generator
        self._lifecycle = lifecycle
        self._guard = guard
        self._schedules = schedules
        self._contracts = contracts
        self._clock = clock
        self._calendar = calendar
        self._actor_id = actor_id

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def run(
        self, trigger: JobTrigger = JobTrigger.SCHEDULED, today: date | None = None
    ) -> JobRun:
        today = today or self._calendar.today(self._clock)
        job_run = self._job_runs.start(SWEEP_JOB_NAME, trigger, self._clock.now(), self._actor_id)

        with LogContext.bind(
            job_run_id=str(job_run.run_id),
            actor_id=str(self._actor_id),
            correlation_id=str(uuid4()),
        ):
            logger.info(
                "sweep_started",
                extra={"trigger": trigger.value, "business_date": today.isoformat()},
            )
            # No enclosing savepoint: finished items stay written when a later step fails.
            try:
                result = self._sweep_schedules(today, job_run.run_id)
                result = result.merge(self._sweep_contracts(today))
            except Exception as exc:
                logger.exception("sweep_failed")
                return self._job_runs.finish(
                    replace(
                        job_run,
                        status=JobStatus.FAILED,
                        completed_at=self._clock.now(),
                        error_message=_error_text(exc),
                    ),
                    self._actor_id,
                )

            finished = self._job_runs.finish(
                replace(
                    job_run,
                    status=JobStatus.COMPLETED,
                    completed_at=self._clock.now(),
                    result=result,
                ),
                self._actor_id,
            )
            logger.info(
                "sweep_completed",
                extra={
                    "processed": result.processed,
                    "auto_sent": result.auto_sent,
                    "pending_approval": result.pending_approval,
                    "skipped": result.skipped,
                    "failed": result.failed,
                    "error_count": len(result.errors),
                },
            )
            return finished

    def run_now(
        self, schedule_id: UUID, actor_id: UUID, today: date | None = None
    ) -> AutoPolicyOutcome:
        """
        Bill one schedule immediately, outside the daily sweep.

        Raises:
            InvalidScheduleTransitionError: the schedule has ENDED.
            DuplicatePeriodInvoiceError: the current period is already billed.
        """
        today = today or self._calendar.today(self._clock)
        schedule = self._schedules.get(schedule_id)
        if schedule.status is ScheduleStatus.ENDED:
            raise InvalidScheduleTransitionError(str(schedule.id), schedule.status.value, "run")

        check = self._guard.check(schedule, today)
        if check.already_billed:
            raise DuplicatePeriodInvoiceError(str(schedule.id), check.period_key)

        with LogContext.bind(schedule_id=str(schedule.id), actor_id=str(actor_id)):
            with self._repository.savepoint():
                invoice = self._generate(schedule, today, check.period_key, None, actor_id)
            outcome = self._lifecycle.apply_auto_policy(invoice, schedule, actor_id)
            logger.info(
                "schedule_run_now",
                extra={"invoice_id": str(invoice.id), "decision": outcome.decision.value},
            )
            return outcome

    # -------------------------------------------------------------------------
    # Scheduled billings
    # -------------------------------------------------------------------------

    def _sweep_schedules(self, today: date, job_run_id: UUID) -> SweepResult:
        due = self._schedules.list_due(today)
        logger.info("sweep_schedules_due", extra={"count": len(due)})

        result = SweepResult()
        for schedule in due:
            with LogContext.bind(schedule_id=str(schedule.id)):
                result = result.merge(self._process_schedule(schedule, today, job_run_id))
        return result

    def _process_schedule(
        self, schedule: ScheduledBilling, today: date, job_run_id: UUID
    ) -> SweepResult:
        try:
            with self._repository.savepoint():
                check = self._guard.check(schedule, today)
                if check.already_billed:
                    self._record_run(
                        schedule,
                        RunStatus.SKIPPED,
                        job_run_id,
                        today,
                        period_key=check.period_key,
                        error_message=ALREADY_BILLED_MESSAGE,
                    )
                    return SweepResult(skipped=1)
                invoice = self._generate(
                    schedule, today, check.period_key, job_run_id, self._actor_id
                )
        except Exception as exc:
            logger.exception("sweep_item_failed", extra={"item_kind": "schedule"})
            self._record_run(
                schedule, RunStatus.FAILED, job_run_id, today, error_message=_error_text(exc)
            )
            return SweepResult(failed=1, errors=(f"Schedule {schedule.id}: {_error_text(exc)}",))

        return self._release(
            invoice,
            lambda: self._lifecycle.apply_auto_policy(invoice, schedule, self._actor_id),
        )

    def _generate(
        self,
        schedule: ScheduledBilling,
        today: date,
        period_key: str,
        job_run_id: UUID | None,
        actor_id: UUID,
    ) -> Invoice:
        """Generate, record the SUCCESS run and advance the schedule."""
        generated = self._generator.generate_from_schedule(schedule, today, actor_id)
        self._record_run(
            schedule,
            RunStatus.SUCCESS,
            job_run_id,
            today,
            invoice_id=generated.invoice.id,
            period_key=period_key,
            actor_id=actor_id,
        )
        self._schedules.update_next_billing_date(
            schedule.id, actor_id, skip_current=True, today=today
        )
        return generated.invoice

    def _run_instant(self, today: date) -> datetime:
        """Clock time when sweeping the clock's own business date, else the start of ``today``."""
        now = self._clock.now()
        if self._calendar.to_local_date(now) == today:
            return now
        return self._calendar.start_of_day(today)

    def _record_run(
        self,
        schedule: ScheduledBilling,
        status: RunStatus,
        job_run_id: UUID | None,
        today: date,
        *,
        invoice_id: UUID | None = None,
        period_key: str | None = None,
        error_message: str | None = None,
        actor_id: UUID | None = None,
    ) -> ScheduledBillingRun:
        return self._repository.add_run(
            ScheduledBillingRun(
                id=uuid4(),
                scheduled_billing_id=schedule.id,
                run_date=self._run_instant(today),
                status=status,
                invoice_id=invoice_id,
                error_message=error_message,
                period_key=period_key,
                job_run_id=job_run_id,
            ),
            actor_id or self._actor_id,
        )

    # -------------------------------------------------------------------------
    # Direct-billed contracts
    # -------------------------------------------------------------------------

    def _sweep_contracts(self, today: date) -> SweepResult:
        due = self._contracts.due_contracts(today)
        logger.info("sweep_contracts_due", extra={"count": len(due)})

        result = SweepResult()
        for contract in due:
            result = result.merge(self._process_contract(contract, today))
        return result

    def _process_contract(self, contract: Contract, today: date) -> SweepResult:
        try:
            with self._repository.savepoint():
                outcome = self._contracts.bill(contract, today, self._actor_id)
        except Exception as exc:
            logger.exception(
                "sweep_item_failed",
                extra={"item_kind": "contract", "contract_id": str(contract.id)},
            )
            return SweepResult(failed=1, errors=(f"Contract {contract.id}: {_error_text(exc)}",))

        if outcome.skipped:
            return SweepResult(skipped=1)

        invoice = outcome.result.invoice
        return self._release(
            invoice,
            lambda: self._lifecycle.release(
                invoice, invoice.billing_frequency, contract.auto_send_enabled, self._actor_id
            ),
        )

    # -------------------------------------------------------------------------
    # Shared
    # -------------------------------------------------------------------------

    def _release(self, invoice: Invoice, apply_policy) -> SweepResult:
        """Apply the automation policy to a generated invoice and count the outcome."""
        try:
            with self._repository.savepoint():
                outcome = apply_policy()
        except Exception as exc:
            logger.exception("sweep_auto_send_error", extra={"invoice_id": str(invoice.id)})
            return SweepResult(
                processed=1,
                errors=(f"{invoice.billing_no}: Auto-send error: {_error_text(exc)}",),
            )

        match outcome.decision:
            case AutoPolicyDecision.AUTO_SENT:
                return SweepResult(processed=1, auto_sent=1)
            case AutoPolicyDecision.SEND_FAILED:
                return SweepResult(
                    processed=1,
                    errors=(f"{invoice.billing_no}: Auto-send failed: {outcome.error}",),
                )
            case AutoPolicyDecision.PENDING_APPROVAL | AutoPolicyDecision.PENDING_RENEWAL_REVIEW:
                return SweepResult(processed=1, pending_approval=1)
            case AutoPolicyDecision.APPROVED_NOT_SENT:
                return SweepResult(processed=1)
            case _:
                assert_never(outcome.decision)
