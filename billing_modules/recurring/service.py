"""
Scheduled Billing Service (``billing_modules.recurring.service``).

Responsibility
--------------
Create, edit and drive the lifecycle of recurring billing definitions:
approve, reject, pause, resume and end.  Keeps ``next_billing_date``
current and answers "which schedules bill today?" for the daily sweep.

Architecture position
---------------------
**Modules layer** -- service over the BillingRepository.  Transitions are
validated against ``SCHEDULE_WORKFLOW``.

Invariants enforced
-------------------
* New schedules are PENDING and only become ACTIVE through ``approve``.
* ``next_billing_date`` is recomputed whenever the anchor, frequency,
  start date or custom interval change, and on resume.
* ``end`` and ``reject`` stamp ``end_date``.

Failure modes
-------------
* ScheduledBillingNotFoundError, ContractNotFoundError,
  BillingEntityNotFoundError for missing references.
* InvalidScheduleTransitionError for an action the current status does
  not allow.
* InvalidBillingDayError, InvalidAmountError, MissingReasonError for bad
  input.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from billing_kernel.db.types import to_decimal
from billing_kernel.domain.calendar import BusinessCalendar
from billing_kernel.domain.clock import Clock
from billing_kernel.exceptions import (
    BillingEntityNotFoundError,
    ContractNotFoundError,
    InvalidAmountError,
    InvalidBillingDayError,
    InvalidScheduleTransitionError,
    MissingReasonError,
    ScheduledBillingNotFoundError,
)
from billing_kernel.logging_config import get_logger
from billing_modules.notifications.models import AuditAction
from billing_modules.notifications.service import (
    SCHEDULE_ENTITY,
    AuditService,
    NotificationService,
)
from billing_modules.recurring.calendar import (
    BillingFrequency,
    IntervalUnit,
    calculate_next_billing_date,
    last_day_of_month,
)
from billing_modules.recurring.models import ScheduledBilling, ScheduleStatus
from billing_modules.recurring.workflows import SCHEDULE_WORKFLOW
from billing_modules.tax.calculator import VatType

logger = get_logger("modules.recurring.service")

_UPDATABLE_FIELDS = frozenset({
    "billing_amount",
    "description",
    "vat_type",
    "is_vat_inclusive",
    "has_withholding",
    "withholding_rate",
    "withholding_code",
    "frequency",
    "billing_day_of_month",
    "due_day_of_month",
    "custom_interval_value",
    "custom_interval_unit",
    "start_date",
    "end_date",
    "auto_approve",
    "auto_send_enabled",
    "remarks",
})

_SCHEDULING_FIELDS = frozenset({
    "frequency",
    "billing_day_of_month",
    "start_date",
    "custom_interval_value",
    "custom_interval_unit",
})


def _validate_day(day: int | None) -> None:
    if day is not None and not 1 <= day <= 31:
        raise InvalidBillingDayError(day)


def _validate_amount(amount: Decimal) -> Decimal:
    value = to_decimal(amount)
    if value <= 0:
        raise InvalidAmountError("billing_amount", amount)
    return value


class ScheduleService:
    """Lifecycle operations for scheduled billings."""

    def __init__(
        self,
        repository,
        clock: Clock,
        calendar: BusinessCalendar,
        audit: AuditService,
        notifications: NotificationService,
    ):
        self._repository = repository
        self._clock = clock
        self._calendar = calendar
        self._audit = audit
        self._notifications = notifications

    # -------------------------------------------------------------------------
    # Create / update
    # -------------------------------------------------------------------------

    def create(
        self,
        *,
        contract_id: UUID,
        billing_entity_id: UUID,
        billing_amount: Decimal,
        frequency: BillingFrequency,
        billing_day_of_month: int,
        start_date: date,
        actor_id: UUID,
        description: str | None = None,
        vat_type: VatType = VatType.VAT,
        is_vat_inclusive: bool = False,
        has_withholding: bool = False,
        withholding_rate: Decimal | None = None,
        withholding_code: str | None = None,
        due_day_of_month: int | None = None,
        custom_interval_value: int | None = None,
        custom_interval_unit: IntervalUnit | None = None,
        end_date: date | None = None,
        auto_approve: bool = False,
        auto_send_enabled: bool = True,
        remarks: str | None = None,
    ) -> ScheduledBilling:
        contract = self._repository.get_contract(contract_id)
        if contract is None:
            raise ContractNotFoundError(str(contract_id))
        if self._repository.get_billing_entity(billing_entity_id) is None:
            raise BillingEntityNotFoundError(str(billing_entity_id))
        _validate_day(billing_day_of_month)
        _validate_day(due_day_of_month)
        amount = _validate_amount(billing_amount)

        frequency = BillingFrequency(frequency)
        today = self._calendar.today(self._clock)
        next_date = calculate_next_billing_date(
            billing_day_of_month,
            frequency,
            start_date,
            today,
            custom_interval_value=custom_interval_value,
            custom_interval_unit=custom_interval_unit,
        )

        schedule = ScheduledBilling(
            id=uuid4(),
            contract_id=contract_id,
            billing_entity_id=billing_entity_id,
            billing_amount=amount,
            frequency=frequency,
            billing_day_of_month=billing_day_of_month,
            start_date=self._calendar.start_of_day(start_date),
            status=ScheduleStatus.PENDING,
            description=description,
            vat_type=VatType(vat_type),
            is_vat_inclusive=is_vat_inclusive,
            has_withholding=has_withholding,
            withholding_rate=withholding_rate,
            withholding_code=withholding_code,
            due_day_of_month=due_day_of_month or billing_day_of_month,
            custom_interval_value=custom_interval_value,
            custom_interval_unit=custom_interval_unit,
            end_date=self._calendar.start_of_day(end_date) if end_date else None,
            next_billing_date=self._calendar.start_of_day(next_date),
            auto_approve=auto_approve,
            auto_send_enabled=auto_send_enabled,
            remarks=remarks,
        )
        saved = self._repository.add_scheduled_billing(schedule, actor_id)

        self._audit.record(
            SCHEDULE_ENTITY,
            saved.id,
            AuditAction.SCHEDULE_CREATED,
            actor_id,
            {
                "companyName": contract.company_name,
                "billingAmount": saved.billing_amount,
                "frequency": saved.frequency,
                "nextBillingDate": next_date,
            },
        )
        self._notifications.notify_schedule_pending(saved, contract.company_name)
        logger.info(
            "schedule_created",
            extra={
                "schedule_id": str(saved.id),
                "frequency": saved.frequency.value,
                "next_billing_date": next_date.isoformat(),
            },
        )
        return saved

    def update(self, schedule_id: UUID, actor_id: UUID, **changes: Any) -> ScheduledBilling:
        """
        Edit a schedule's billing terms.

        Status is not editable here; use the lifecycle operations.  Date
        arguments are business-local dates.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update fields: {sorted(unknown)}")

        schedule = self._require(schedule_id)
        if schedule.status is ScheduleStatus.ENDED:
            raise InvalidScheduleTransitionError(str(schedule_id), schedule.status.value, "update")

        _validate_day(changes.get("billing_day_of_month"))
        _validate_day(changes.get("due_day_of_month"))
        if "billing_amount" in changes:
            changes["billing_amount"] = _validate_amount(changes["billing_amount"])
        if "frequency" in changes:
            changes["frequency"] = BillingFrequency(changes["frequency"])
        if "vat_type" in changes:
            changes["vat_type"] = VatType(changes["vat_type"])
        if "start_date" in changes:
            changes["start_date"] = self._calendar.start_of_day(changes["start_date"])
        if "end_date" in changes and changes["end_date"] is not None:
            changes["end_date"] = self._calendar.start_of_day(changes["end_date"])

        updated = replace(schedule, **changes)
        if _SCHEDULING_FIELDS & set(changes):
            updated = replace(
                updated, next_billing_date=self._compute_next(updated, skip_current=False)
            )

        saved = self._repository.update_scheduled_billing(updated, actor_id)
        self._audit.record(
            SCHEDULE_ENTITY, saved.id, AuditAction.SCHEDULE_UPDATED, actor_id, changes
        )
        logger.info(
            "schedule_updated",
            extra={"schedule_id": str(saved.id), "fields": sorted(changes)},
        )
        return saved

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def approve(self, schedule_id: UUID, actor_id: UUID) -> ScheduledBilling:
        schedule = self._require(schedule_id)
        status = self._next_status(schedule, "approve")
        saved = self._repository.update_scheduled_billing(
            replace(
                schedule,
                status=status,
                approved_by_id=actor_id,
                approved_at=self._clock.now(),
            ),
            actor_id,
        )
        company = self._company_name(saved)
        self._audit.record(
            SCHEDULE_ENTITY,
            saved.id,
            AuditAction.SCHEDULE_APPROVED,
            actor_id,
            {"companyName": company},
        )
        self._notifications.notify_schedule_approved(saved, company)
        logger.info("schedule_approved", extra={"schedule_id": str(saved.id)})
        return saved

    def reject(self, schedule_id: UUID, actor_id: UUID, reason: str) -> ScheduledBilling:
        schedule = self._require(schedule_id)
        status = self._next_status(schedule, "reject", reason)
        now = self._clock.now()
        saved = self._repository.update_scheduled_billing(
            replace(
                schedule,
                status=status,
                rejected_by_id=actor_id,
                rejected_at=now,
                rejection_reason=reason.strip(),
                end_date=now,
            ),
            actor_id,
        )
        company = self._company_name(saved)
        self._audit.record(
            SCHEDULE_ENTITY,
            saved.id,
            AuditAction.SCHEDULE_REJECTED,
            actor_id,
            {"companyName": company, "reason": saved.rejection_reason},
        )
        self._notifications.notify_schedule_rejected(saved, company, saved.rejection_reason)
        logger.info("schedule_rejected", extra={"schedule_id": str(saved.id)})
        return saved

    def pause(self, schedule_id: UUID, actor_id: UUID) -> ScheduledBilling:
        schedule = self._require(schedule_id)
        status = self._next_status(schedule, "pause")
        saved = self._repository.update_scheduled_billing(replace(schedule, status=status), actor_id)
        self._audit.record(SCHEDULE_ENTITY, saved.id, AuditAction.SCHEDULE_PAUSED, actor_id)
        logger.info("schedule_paused", extra={"schedule_id": str(saved.id)})
        return saved

    def resume(self, schedule_id: UUID, actor_id: UUID) -> ScheduledBilling:
        schedule = self._require(schedule_id)
        status = self._next_status(schedule, "resume")
        resumed = replace(schedule, status=status)
        resumed = replace(resumed, next_billing_date=self._compute_next(resumed, skip_current=False))
        saved = self._repository.update_scheduled_billing(resumed, actor_id)
        self._audit.record(
            SCHEDULE_ENTITY,
            saved.id,
            AuditAction.SCHEDULE_RESUMED,
            actor_id,
            {"nextBillingDate": saved.next_billing_date},
        )
        logger.info("schedule_resumed", extra={"schedule_id": str(saved.id)})
        return saved

    def end(self, schedule_id: UUID, actor_id: UUID) -> ScheduledBilling:
        schedule = self._require(schedule_id)
        status = self._next_status(schedule, "end")
        saved = self._repository.update_scheduled_billing(
            replace(schedule, status=status, end_date=self._clock.now()),
            actor_id,
        )
        self._audit.record(SCHEDULE_ENTITY, saved.id, AuditAction.SCHEDULE_ENDED, actor_id)
        logger.info("schedule_ended", extra={"schedule_id": str(saved.id)})
        return saved

    # -------------------------------------------------------------------------
    # Sweep support
    # -------------------------------------------------------------------------

    def update_next_billing_date(
        self,
        schedule_id: UUID,
        actor_id: UUID,
        skip_current: bool = True,
        today: date | None = None,
    ) -> ScheduledBilling:
        """Move ``next_billing_date`` forward from ``today`` (default: the clock's business date)."""
        schedule = self._require(schedule_id)
        next_instant = self._compute_next(schedule, skip_current=skip_current, today=today)
        saved = self._repository.update_scheduled_billing(
            replace(schedule, next_billing_date=next_instant), actor_id
        )
        logger.debug(
            "schedule_next_billing_date_advanced",
            extra={
                "schedule_id": str(saved.id),
                "next_billing_date": self._calendar.to_local_date(next_instant).isoformat(),
            },
        )
        return saved

    def list_due(self, today: date | None = None) -> list[ScheduledBilling]:
        """
        ACTIVE schedules billing on ``today``.

        On the last day of a month this includes schedules anchored past the
        month's length, so day 31 still bills in April.
        """
        today = today or self._calendar.today(self._clock)
        as_of = max(self._clock.now(), self._calendar.start_of_day(today))
        is_month_end = today.day == last_day_of_month(today.year, today.month)
        return self._repository.list_due_schedules(as_of, today.day, is_month_end)

    def get(self, schedule_id: UUID) -> ScheduledBilling:
        return self._require(schedule_id)

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _require(self, schedule_id: UUID) -> ScheduledBilling:
        schedule = self._repository.get_scheduled_billing(schedule_id)
        if schedule is None:
            raise ScheduledBillingNotFoundError(str(schedule_id))
        return schedule

    def _next_status(
        self, schedule: ScheduledBilling, action: str, reason: str | None = None
    ) -> ScheduleStatus:
        transition = SCHEDULE_WORKFLOW.find_transition(schedule.status.value, action)
        if transition is None:
            logger.warning(
                "schedule_transition_rejected",
                extra={
                    "schedule_id": str(schedule.id),
                    "status": schedule.status.value,
                    "action": action,
                },
            )
            raise InvalidScheduleTransitionError(str(schedule.id), schedule.status.value, action)
        if transition.requires_reason and not (reason and reason.strip()):
            raise MissingReasonError(action)
        return ScheduleStatus(transition.to_state)

    def _compute_next(
        self, schedule: ScheduledBilling, skip_current: bool, today: date | None = None
    ):
        next_date = calculate_next_billing_date(
            schedule.billing_day_of_month,
            schedule.frequency,
            self._calendar.to_local_date(schedule.start_date),
            today or self._calendar.today(self._clock),
            skip_current=skip_current,
            custom_interval_value=schedule.custom_interval_value,
            custom_interval_unit=schedule.custom_interval_unit,
        )
        return self._calendar.start_of_day(next_date)

    def _company_name(self, schedule: ScheduledBilling) -> str:
        contract = self._repository.get_contract(schedule.contract_id)
        return contract.company_name if contract else str(schedule.contract_id)
