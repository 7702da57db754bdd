"""
Direct contract billing (``billing_modules.invoicing.contract_billing``).

Contracts that carry their own ``billing_day_of_month`` are billed
without a scheduled billing definition.  Each is billed at most once per
calendar month: a live (not VOID or CANCELLED) invoice dated this month
skips it.  After billing, the contract's ``next_due_date`` moves to next
month's billing day.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, timedelta
from uuid import UUID

from billing_kernel.domain.calendar import BusinessCalendar
from billing_kernel.domain.clock import Clock
from billing_kernel.exceptions import BillingEntityNotFoundError
from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.generator import GenerationResult, InvoiceGenerator
from billing_modules.invoicing.models import Contract
from billing_modules.notifications.models import AuditAction
from billing_modules.notifications.service import CONTRACT_ENTITY, AuditService
from billing_modules.recurring.calendar import (
    BillingFrequency,
    add_months,
    calendar_period,
    last_day_of_month,
)

logger = get_logger("modules.invoicing.contract_billing")


def map_payment_plan_to_frequency(payment_plan: str | None) -> BillingFrequency:
    """Free-text payment plan to a billing frequency; anything unrecognised is monthly."""
    plan = (payment_plan or "").lower()
    if "annual" in plan or "yearly" in plan:
        return BillingFrequency.ANNUALLY
    if "quarter" in plan:
        return BillingFrequency.QUARTERLY
    return BillingFrequency.MONTHLY


def next_contract_due_date(billing_day_of_month: int, today: date) -> date:
    """The billing day in the month after ``today``, clamped to that month."""
    return add_months(today.replace(day=1), 1, anchor_day=billing_day_of_month)


@dataclass(frozen=True)
class ContractBillingOutcome:
    contract: Contract
    result: GenerationResult | None = None
    skipped_reason: str | None = None

    @property
    def skipped(self) -> bool:
        return self.result is None


class ContractBillingService:
    def __init__(
        self,
        repository,
        generator: InvoiceGenerator,
        clock: Clock,
        calendar: BusinessCalendar,
        audit: AuditService,
    ):
        self._repository = repository
        self._generator = generator
        self._clock = clock
        self._calendar = calendar
        self._audit = audit

    def due_contracts(self, today: date) -> list[Contract]:
        """ACTIVE contracts whose billing day is ``today`` (later days too on month end)."""
        is_month_end = today.day == last_day_of_month(today.year, today.month)
        return self._repository.list_contracts_due(today.day, is_month_end)

    def bill(self, contract: Contract, today: date, actor_id: UUID) -> ContractBillingOutcome:
        month = calendar_period(BillingFrequency.MONTHLY, today)
        if self._repository.has_live_contract_invoice(
            contract.id,
            self._calendar.start_of_day(month.start),
            self._calendar.start_of_day(month.end + timedelta(days=1)),
        ):
            logger.info(
                "contract_billing_skipped",
                extra={"contract_id": str(contract.id), "reason": "already_billed"},
            )
            return ContractBillingOutcome(contract, skipped_reason="Already billed this month")

        billable = replace(contract, billing_entity_id=self._billing_entity_id(contract))
        result = self._generator.generate_from_contract(
            billable,
            today,
            actor_id,
            frequency=map_payment_plan_to_frequency(contract.payment_plan),
        )

        next_due = next_contract_due_date(contract.billing_day_of_month or today.day, today)
        updated = self._repository.update_contract_next_due_date(
            contract.id, self._calendar.start_of_day(next_due), actor_id
        )
        self._audit.record(
            CONTRACT_ENTITY,
            contract.id,
            AuditAction.CONTRACT_NEXT_DUE_ADVANCED,
            actor_id,
            {"billingNo": result.invoice.billing_no, "nextDueDate": next_due},
        )
        logger.info(
            "contract_billed",
            extra={
                "contract_id": str(contract.id),
                "invoice_id": str(result.invoice.id),
                "next_due_date": next_due.isoformat(),
            },
        )
        return ContractBillingOutcome(updated, result=result)

    def _billing_entity_id(self, contract: Contract) -> UUID:
        if contract.billing_entity_id is not None:
            return contract.billing_entity_id
        if contract.partner_id is not None:
            partner = self._repository.get_partner(contract.partner_id)
            if partner is not None and partner.billing_entity_id is not None:
                return partner.billing_entity_id
        raise BillingEntityNotFoundError(f"no billing entity for contract {contract.id}")
