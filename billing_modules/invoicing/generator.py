"""
Invoice Generation Orchestrator (``billing_modules.invoicing.generator``).

Responsibility
--------------
Turns a generation request into a persisted Invoice with its line items:
resolves the recipient, runs the tax calculator per line, allocates the
entity's next billing number, and records provenance in the audit log.

Architecture position
---------------------
**Modules layer** -- orchestrator over the BillingRepository port.  Never
touches ORM models or the Session directly.

Invariants enforced
-------------------
* ``net_amount == gross_amount - withholding_tax`` on the invoice and
  every line, since lines come from ``calculate_billing`` and the header
  is their sum.
* The entity's invoice counter is advanced only after the invoice row has
  been flushed.  Any failure before that leaves the counter unchanged.
* Scheduled invoices carry the period key; the persistence layer rejects a
  second live invoice for the same schedule and period.

Failure modes
-------------
* BillingEntityNotFoundError, ContractNotFoundError, PartnerNotFoundError
  when a referenced row is missing.
* ValidationError when no source (contract, schedule or custom recipient)
  is given.
* DuplicatePeriodInvoiceError from the repository.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from billing_kernel.db.types import to_decimal
from billing_kernel.domain.calendar import BusinessCalendar
from billing_kernel.domain.clock import Clock
from billing_kernel.exceptions import (
    BillingEntityNotFoundError,
    ContractNotFoundError,
    InvalidAmountError,
    PartnerNotFoundError,
    ValidationError,
)
from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.lifecycle import auto_release_allowed
from billing_modules.invoicing.models import (
    Contract,
    GenerationSource,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
)
from billing_modules.invoicing.numbering import generate_billing_no
from billing_modules.invoicing.recipients import (
    CustomBillTo,
    Recipient,
    custom_recipient,
    resolve_recipient,
)
from billing_modules.notifications.models import AuditAction
from billing_modules.notifications.service import INVOICE_ENTITY, AuditService
from billing_modules.recurring.calendar import (
    BillingFrequency,
    compute_billing_period,
    compute_due_date,
    format_period_description,
    period_key,
)
from billing_modules.recurring.models import ScheduledBilling
from billing_modules.settings.provider import SettingsProvider
from billing_modules.tax.calculator import (
    BillingAmounts,
    DiscountType,
    VatType,
    calculate_billing,
    sum_amounts,
)
from billing_modules.tax.withholding import get_withholding_preset

logger = get_logger("modules.invoicing.generator")

DEFAULT_DESCRIPTION = "Professional Services"


@dataclass(frozen=True)
class LineItemInput:
    """One itemised charge; always treated as VAT-exclusive."""
    description: str
    amount: Decimal
    period_start: date | None = None
    period_end: date | None = None
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = None


@dataclass(frozen=True)
class GenerationRequest:
    """
    Everything needed to materialise one invoice.

    Exactly one source is expected: ``contract_id`` (optionally with
    ``scheduled_billing_id``) or ``custom_bill_to``.  When ``line_items`` is
    empty a single line is computed from ``billing_amount`` honouring
    ``is_vat_inclusive``.
    """
    billing_entity_id: UUID
    due_date: date
    actor_id: UUID
    billing_amount: Decimal = Decimal("0")
    contract_id: UUID | None = None
    scheduled_billing_id: UUID | None = None
    custom_bill_to: CustomBillTo | None = None
    vat_type: VatType = VatType.VAT
    is_vat_inclusive: bool = False
    has_withholding: bool = False
    withholding_rate: Decimal | None = None
    withholding_code: str | None = None
    period_start: date | None = None
    period_end: date | None = None
    period_key: str | None = None
    billing_frequency: BillingFrequency = BillingFrequency.MONTHLY
    auto_approve: bool = False
    description: str | None = None
    remarks: str | None = None
    line_items: tuple[LineItemInput, ...] = ()

    @property
    def source(self) -> GenerationSource:
        if self.scheduled_billing_id is not None:
            return GenerationSource.SCHEDULED
        if self.contract_id is not None:
            return GenerationSource.CONTRACT
        return GenerationSource.ADHOC


@dataclass(frozen=True)
class GenerationResult:
    invoice: Invoice
    auto_approved: bool


def _product_label(contract: Contract) -> str | None:
    if not contract.product_type:
        return None
    return contract.product_type[:1].upper() + contract.product_type[1:].lower()


class InvoiceGenerator:
    """Materialises invoices from contracts, schedules and ad-hoc requests."""

    def __init__(
        self,
        repository,
        clock: Clock,
        calendar: BusinessCalendar,
        settings: SettingsProvider,
        audit: AuditService,
    ):
        self._repository = repository
        self._clock = clock
        self._calendar = calendar
        self._settings = settings
        self._audit = audit

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def generate(self, request: GenerationRequest) -> GenerationResult:
        if request.contract_id is None and request.custom_bill_to is None:
            raise ValidationError(
                "Must provide contract_id, scheduled_billing_id or custom_bill_to"
            )

        entity = self._repository.get_billing_entity(request.billing_entity_id)
        if entity is None:
            raise BillingEntityNotFoundError(str(request.billing_entity_id))

        recipient, contract = self._resolve(request)
        description = request.description or (contract and _product_label(contract)) or DEFAULT_DESCRIPTION

        settings = self._settings.get_settings()
        withholding_code = request.withholding_code or settings.default_withholding_code
        preset = get_withholding_preset(withholding_code)
        if preset is not None:
            withholding_code = preset.code
        if request.withholding_rate is not None:
            withholding_rate = request.withholding_rate
        elif request.withholding_code and preset is not None:
            withholding_rate = preset.rate
        else:
            withholding_rate = settings.default_withholding_rate
        is_vat_client = VatType(request.vat_type) is VatType.VAT

        invoice_id = uuid4()
        lines, amounts = self._build_lines(
            invoice_id,
            request,
            description,
            is_vat_client=is_vat_client,
            withholding_rate=withholding_rate,
            vat_rate=settings.vat_rate,
        )
        totals = sum_amounts(amounts)

        now = self._clock.now()
        status = InvoiceStatus.APPROVED if request.auto_approve else InvoiceStatus.PENDING

        sequence = self._repository.peek_next_invoice_no(entity.id)
        billing_no = generate_billing_no(entity.invoice_prefix, sequence)

        invoice = Invoice(
            id=invoice_id,
            billing_no=billing_no,
            billing_entity_id=entity.id,
            customer_name=recipient.name,
            statement_date=now,
            due_date=self._calendar.start_of_day(request.due_date),
            service_fee=totals.service_fee,
            vat_amount=totals.vat_amount,
            gross_amount=totals.gross_amount,
            withholding_tax=totals.withholding_tax,
            net_amount=totals.net_amount,
            status=status,
            source=request.source,
            contract_id=request.contract_id,
            partner_id=recipient.partner_id,
            scheduled_billing_id=request.scheduled_billing_id,
            attention=recipient.attention,
            customer_address=recipient.address,
            customer_emails=recipient.emails,
            customer_tin=recipient.tin,
            period_start=self._instant(request.period_start),
            period_end=self._instant(request.period_end),
            period_key=request.period_key,
            discount_amount=totals.discount_amount if totals.discount_amount > 0 else None,
            vat_type=VatType(request.vat_type),
            has_withholding=request.has_withholding,
            withholding_rate=withholding_rate if request.has_withholding else None,
            withholding_code=withholding_code if request.has_withholding else None,
            billing_frequency=BillingFrequency(request.billing_frequency),
            billing_model=recipient.billing_model,
            remarks=request.remarks,
            approved_by_id=request.actor_id if request.auto_approve else None,
            approved_at=now if request.auto_approve else None,
            line_items=lines,
        )

        saved = self._repository.add_invoice(invoice, request.actor_id)
        self._repository.advance_invoice_no(entity.id, sequence, request.actor_id)

        self._audit.record(
            INVOICE_ENTITY,
            saved.id,
            AuditAction.INVOICE_AUTO_APPROVED if request.auto_approve else AuditAction.INVOICE_CREATED,
            request.actor_id,
            {
                "billingNo": billing_no,
                "customerName": recipient.name,
                "amount": totals.net_amount,
                "source": request.source,
            },
        )

        logger.info(
            "invoice_generated",
            extra={
                "invoice_id": str(saved.id),
                "billing_no": billing_no,
                "source": request.source.value,
                "status": status.value,
                "net_amount": str(totals.net_amount),
                "line_count": len(lines),
            },
        )
        return GenerationResult(invoice=saved, auto_approved=request.auto_approve)

    def generate_from_schedule(
        self, schedule: ScheduledBilling, today: date, actor_id: UUID
    ) -> GenerationResult:
        """
        Generate the invoice for ``schedule``'s current period.

        The caller is responsible for the period guard; this only builds the
        request (period, due date, description) and generates.
        """
        next_billing = (
            self._calendar.to_local_date(schedule.next_billing_date)
            if schedule.next_billing_date
            else None
        )
        period = compute_billing_period(
            schedule.frequency,
            today,
            next_billing_date=next_billing,
            start_date=self._calendar.to_local_date(schedule.start_date),
            custom_interval_value=schedule.custom_interval_value,
            custom_interval_unit=schedule.custom_interval_unit,
        )
        request = GenerationRequest(
            billing_entity_id=schedule.billing_entity_id,
            due_date=compute_due_date(
                period.start, schedule.billing_day_of_month, schedule.due_day_of_month
            ),
            actor_id=actor_id,
            billing_amount=schedule.billing_amount,
            contract_id=schedule.contract_id,
            scheduled_billing_id=schedule.id,
            vat_type=schedule.vat_type,
            is_vat_inclusive=schedule.is_vat_inclusive,
            has_withholding=schedule.has_withholding,
            withholding_rate=schedule.withholding_rate,
            withholding_code=schedule.withholding_code,
            period_start=period.start,
            period_end=period.end,
            period_key=period_key(schedule.frequency, today),
            billing_frequency=schedule.frequency,
            auto_approve=schedule.auto_approve and auto_release_allowed(schedule.frequency),
            description=format_period_description(
                schedule.description, schedule.frequency, period
            ),
            remarks=schedule.remarks,
        )
        return self.generate(request)

    def generate_from_contract(
        self,
        contract: Contract,
        today: date,
        actor_id: UUID,
        frequency: BillingFrequency = BillingFrequency.MONTHLY,
    ) -> GenerationResult:
        """Legacy direct billing of a contract's monthly fee for the month of ``today``."""
        if contract.billing_entity_id is None:
            raise BillingEntityNotFoundError(f"contract {contract.id} has no billing entity")
        period = compute_billing_period(BillingFrequency.MONTHLY, today)
        due = (
            self._calendar.to_local_date(contract.next_due_date)
            if contract.next_due_date
            else today
        )
        request = GenerationRequest(
            billing_entity_id=contract.billing_entity_id,
            due_date=due,
            actor_id=actor_id,
            billing_amount=contract.monthly_fee,
            contract_id=contract.id,
            vat_type=contract.vat_type,
            has_withholding=contract.has_withholding,
            withholding_rate=contract.withholding_rate,
            withholding_code=contract.withholding_code,
            period_start=period.start,
            period_end=period.end,
            billing_frequency=frequency,
            auto_approve=contract.auto_approve and auto_release_allowed(frequency),
        )
        return self.generate(request)

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _resolve(self, request: GenerationRequest) -> tuple[Recipient, Contract | None]:
        if request.contract_id is None:
            return custom_recipient(request.custom_bill_to), None

        contract = self._repository.get_contract(request.contract_id)
        if contract is None:
            raise ContractNotFoundError(str(request.contract_id))

        partner = None
        if contract.partner_id is not None:
            partner = self._repository.get_partner(contract.partner_id)
            if partner is None:
                raise PartnerNotFoundError(str(contract.partner_id), str(contract.id))
        return resolve_recipient(contract, partner), contract

    def _build_lines(
        self,
        invoice_id: UUID,
        request: GenerationRequest,
        description: str,
        *,
        is_vat_client: bool,
        withholding_rate: Decimal,
        vat_rate: Decimal,
    ) -> tuple[tuple[InvoiceLineItem, ...], list[BillingAmounts]]:
        if request.line_items:
            inputs = request.line_items
            inclusive = False
        else:
            if request.billing_amount is None or to_decimal(request.billing_amount) <= 0:
                raise InvalidAmountError("billing_amount", request.billing_amount)
            inputs = (
                LineItemInput(
                    description=description,
                    amount=request.billing_amount,
                    period_start=request.period_start,
                    period_end=request.period_end,
                ),
            )
            inclusive = request.is_vat_inclusive

        lines: list[InvoiceLineItem] = []
        amounts: list[BillingAmounts] = []
        for line_no, item in enumerate(inputs, start=1):
            calc = calculate_billing(
                item.amount,
                is_vat_inclusive=inclusive,
                is_vat_client=is_vat_client,
                has_withholding=request.has_withholding,
                withholding_rate=withholding_rate,
                vat_rate=vat_rate,
                discount_type=item.discount_type,
                discount_value=item.discount_value,
            )
            discounted = calc.discount_amount > 0
            lines.append(
                InvoiceLineItem(
                    id=uuid4(),
                    invoice_id=invoice_id,
                    line_no=line_no,
                    description=item.description,
                    quantity=1,
                    unit_price=calc.service_fee,
                    service_fee=calc.service_fee,
                    vat_amount=calc.vat_amount,
                    gross_amount=calc.gross_amount,
                    withholding_tax=calc.withholding_tax,
                    net_amount=calc.net_amount,
                    discount_type=DiscountType(item.discount_type) if discounted else None,
                    discount_value=item.discount_value if discounted else None,
                    discount_amount=calc.discount_amount if discounted else None,
                    period_start=self._instant(item.period_start or request.period_start),
                    period_end=self._instant(item.period_end or request.period_end),
                    contract_id=request.contract_id,
                )
            )
            amounts.append(calc)
        return tuple(lines), amounts

    def _instant(self, day: date | None):
        return self._calendar.start_of_day(day) if day else None
