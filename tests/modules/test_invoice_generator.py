"""
Tests for InvoiceGenerator -- amounts, numbering, recipients and provenance
of generated invoices.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_kernel.exceptions import (
    BillingEntityNotFoundError,
    ContractNotFoundError,
    DuplicatePeriodInvoiceError,
    InvalidAmountError,
    PartnerNotFoundError,
    ValidationError,
)
from billing_modules.invoicing.generator import GenerationRequest, LineItemInput
from billing_modules.invoicing.models import (
    BillingModel,
    GenerationSource,
    InvoiceStatus,
)
from billing_modules.invoicing.recipients import CustomBillTo
from billing_modules.notifications.models import AuditAction
from billing_modules.recurring.calendar import BillingFrequency
from billing_modules.tax.calculator import DiscountType, VatType

from tests.helpers import (
    BUSINESS_DATE,
    SWEEP_INSTANT,
    TEST_ACTOR_ID,
    create_active_schedule,
    seed_contract,
    seed_entity,
    seed_partner,
)


@pytest.fixture
def entity(repo):
    return seed_entity(repo, prefix="ABBA")


@pytest.fixture
def contract(repo, entity):
    return seed_contract(repo, entity)


def _request(entity, contract=None, **overrides):
    values = dict(
        billing_entity_id=entity.id,
        due_date=date(2026, 3, 31),
        actor_id=TEST_ACTOR_ID,
        billing_amount=Decimal("10000.00"),
        contract_id=contract.id if contract else None,
    )
    values.update(overrides)
    return GenerationRequest(**values)


# =============================================================================
# Amounts
# =============================================================================


class TestAmounts:
    def test_vat_exclusive_fee(self, orchestrator, entity, contract):
        invoice = orchestrator.generator.generate(_request(entity, contract)).invoice

        assert invoice.service_fee == Decimal("10000.00")
        assert invoice.vat_amount == Decimal("1200.00")
        assert invoice.gross_amount == Decimal("11200.00")
        assert invoice.withholding_tax == Decimal("0")
        assert invoice.net_amount == Decimal("11200.00")
        assert invoice.discount_amount is None

    def test_vat_inclusive_fee(self, orchestrator, entity, contract):
        invoice = orchestrator.generator.generate(
            _request(entity, contract, billing_amount=Decimal("11200.00"), is_vat_inclusive=True)
        ).invoice

        assert invoice.service_fee == Decimal("10000.00")
        assert invoice.gross_amount == Decimal("11200.00")

    def test_withholding_uses_default_rate_and_code(self, orchestrator, entity, contract):
        invoice = orchestrator.generator.generate(
            _request(entity, contract, has_withholding=True)
        ).invoice

        assert invoice.withholding_tax == Decimal("200.00")
        assert invoice.net_amount == Decimal("11000.00")
        assert invoice.withholding_rate == Decimal("0.02")
        assert invoice.withholding_code == "WC160"

    def test_explicit_withholding_rate(self, orchestrator, entity, contract):
        invoice = orchestrator.generator.generate(
            _request(
                entity,
                contract,
                has_withholding=True,
                withholding_rate=Decimal("0.05"),
                withholding_code="WC158",
            )
        ).invoice

        assert invoice.withholding_tax == Decimal("500.00")
        assert invoice.withholding_code == "WC158"

    def test_preset_code_supplies_rate(self, orchestrator, entity, contract):
        invoice = orchestrator.generator.generate(
            _request(entity, contract, has_withholding=True, withholding_code="wc010")
        ).invoice

        assert invoice.withholding_rate == Decimal("0.10")
        assert invoice.withholding_tax == Decimal("1000.00")
        assert invoice.withholding_code == "WC010"

    def test_unknown_code_uses_default_rate(self, orchestrator, entity, contract):
        invoice = orchestrator.generator.generate(
            _request(entity, contract, has_withholding=True, withholding_code="WC999")
        ).invoice

        assert invoice.withholding_rate == Decimal("0.02")
        assert invoice.withholding_code == "WC999"

    def test_no_withholding_leaves_rate_unset(self, orchestrator, entity, contract):
        invoice = orchestrator.generator.generate(_request(entity, contract)).invoice

        assert invoice.withholding_rate is None
        assert invoice.withholding_code is None

    def test_non_vat_client(self, orchestrator, entity, contract):
        invoice = orchestrator.generator.generate(
            _request(entity, contract, vat_type=VatType.NON_VAT)
        ).invoice

        assert invoice.vat_amount == Decimal("0")
        assert invoice.gross_amount == Decimal("10000.00")
        assert invoice.vat_type is VatType.NON_VAT

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
    def test_non_positive_amount_rejected(self, orchestrator, repo, entity, contract, amount):
        with pytest.raises(InvalidAmountError) as exc_info:
            orchestrator.generator.generate(_request(entity, contract, billing_amount=amount))

        assert exc_info.value.field == "billing_amount"
        assert repo.peek_next_invoice_no(entity.id) == 1


class TestLineItems:
    def test_lines_summed_into_header(self, orchestrator, entity, contract):
        invoice = orchestrator.generator.generate(
            _request(
                entity,
                contract,
                billing_amount=Decimal("0"),
                line_items=(
                    LineItemInput(description="Payroll", amount=Decimal("5000.00")),
                    LineItemInput(
                        description="Timekeeping",
                        amount=Decimal("3000.00"),
                        discount_type=DiscountType.PERCENTAGE,
                        discount_value=Decimal("10"),
                    ),
                ),
            )
        ).invoice

        first, second = invoice.line_items
        assert (first.line_no, second.line_no) == (1, 2)
        assert second.service_fee == Decimal("2700.00")
        assert second.vat_amount == Decimal("324.00")
        assert second.discount_amount == Decimal("300.00")
        assert second.discount_type is DiscountType.PERCENTAGE
        assert first.discount_type is None

        assert invoice.service_fee == Decimal("7700.00")
        assert invoice.vat_amount == Decimal("924.00")
        assert invoice.gross_amount == Decimal("8624.00")
        assert invoice.discount_amount == Decimal("300.00")

    def test_line_items_are_vat_exclusive(self, orchestrator, entity, contract):
        invoice = orchestrator.generator.generate(
            _request(
                entity,
                contract,
                is_vat_inclusive=True,
                line_items=(LineItemInput(description="Setup", amount=Decimal("1000.00")),),
            )
        ).invoice

        assert invoice.service_fee == Decimal("1000.00")
        assert invoice.vat_amount == Decimal("120.00")

    def test_every_line_balances(self, orchestrator, entity, contract):
        invoice = orchestrator.generator.generate(
            _request(
                entity,
                contract,
                has_withholding=True,
                line_items=(
                    LineItemInput(description="A", amount=Decimal("1234.56")),
                    LineItemInput(
                        description="B",
                        amount=Decimal("999.99"),
                        discount_type=DiscountType.FIXED,
                        discount_value=Decimal("99.99"),
                    ),
                ),
            )
        ).invoice

        for line in invoice.line_items:
            assert line.net_amount == line.gross_amount - line.withholding_tax
        assert invoice.net_amount == invoice.gross_amount - invoice.withholding_tax


# =============================================================================
# Numbering
# =============================================================================


class TestNumbering:
    def test_sequential_billing_numbers(self, orchestrator, repo, entity, contract):
        first = orchestrator.generator.generate(_request(entity, contract)).invoice
        second = orchestrator.generator.generate(_request(entity, contract)).invoice

        assert first.billing_no == "ABBA0000000001"
        assert second.billing_no == "ABBA0000000002"
        assert repo.peek_next_invoice_no(entity.id) == 3

    def test_counter_continues_from_entity(self, orchestrator, repo):
        entity = seed_entity(repo, prefix="FLEX", next_invoice_no=42)
        contract = seed_contract(repo, entity)

        invoice = orchestrator.generator.generate(_request(entity, contract)).invoice

        assert invoice.billing_no == "FLEX0000000042"

    def test_counter_untouched_when_generation_fails(self, orchestrator, repo, entity):
        with pytest.raises(ContractNotFoundError):
            orchestrator.generator.generate(_request(entity, contract_id=uuid4()))

        assert repo.peek_next_invoice_no(entity.id) == 1


# =============================================================================
# Recipients and sources
# =============================================================================


class TestRecipients:
    def test_direct_contract(self, orchestrator, entity, contract):
        result = orchestrator.generator.generate(_request(entity, contract))
        invoice = result.invoice

        assert invoice.customer_name == "Acme Trading Corp"
        assert invoice.attention == "Juan Dela Cruz"
        assert invoice.customer_emails == ("ap@acme.ph", "finance@acme.ph")
        assert invoice.customer_tin == "123-456-789-000"
        assert invoice.billing_model is BillingModel.DIRECT
        assert invoice.source is GenerationSource.CONTRACT
        assert invoice.line_items[0].description == "Payroll"

    def test_consolidated_partner(self, orchestrator, repo, entity):
        partner = seed_partner(repo, BillingModel.GLOBE_INNOVE)
        contract = seed_contract(repo, entity, partner_id=partner.id)

        invoice = orchestrator.generator.generate(_request(entity, contract)).invoice

        assert invoice.customer_name == "Innove Communications Inc."
        assert invoice.customer_emails == ("billing@innove.ph",)
        assert invoice.partner_id == partner.id
        assert invoice.billing_model is BillingModel.GLOBE_INNOVE

    def test_custom_bill_to(self, orchestrator, entity):
        invoice = orchestrator.generator.generate(
            _request(
                entity,
                custom_bill_to=CustomBillTo(
                    name="Walk-in Client", emails="owner@walkin.ph; invalid"
                ),
            )
        ).invoice

        assert invoice.customer_name == "Walk-in Client"
        assert invoice.source is GenerationSource.ADHOC
        assert invoice.contract_id is None
        assert invoice.line_items[0].description == "Professional Services"

    def test_description_override(self, orchestrator, entity, contract):
        invoice = orchestrator.generator.generate(
            _request(entity, contract, description="Retainer")
        ).invoice
        assert invoice.line_items[0].description == "Retainer"

    def test_missing_source(self, orchestrator, entity):
        with pytest.raises(ValidationError, match="Must provide"):
            orchestrator.generator.generate(_request(entity))

    def test_unknown_entity(self, orchestrator, contract):
        with pytest.raises(BillingEntityNotFoundError):
            orchestrator.generator.generate(
                GenerationRequest(
                    billing_entity_id=uuid4(),
                    due_date=BUSINESS_DATE,
                    actor_id=TEST_ACTOR_ID,
                    billing_amount=Decimal("1"),
                    contract_id=contract.id,
                )
            )

    def test_missing_partner(self, orchestrator, repo, entity):
        contract = seed_contract(repo, entity, partner_id=uuid4())
        with pytest.raises(PartnerNotFoundError):
            orchestrator.generator.generate(_request(entity, contract))


# =============================================================================
# Status and provenance
# =============================================================================


class TestStatusAndAudit:
    def test_pending_by_default(self, orchestrator, repo, entity, contract):
        result = orchestrator.generator.generate(_request(entity, contract))
        invoice = result.invoice

        assert invoice.status is InvoiceStatus.PENDING
        assert result.auto_approved is False
        assert invoice.statement_date == SWEEP_INSTANT
        assert invoice.approved_at is None

        entries = repo.list_audit_entries(entity_id=invoice.id)
        assert [e.action for e in entries] == [AuditAction.INVOICE_CREATED]
        assert entries[0].details["billingNo"] == "ABBA0000000001"
        assert entries[0].details["amount"] == "11200.00"

    def test_auto_approve(self, orchestrator, repo, entity, contract):
        result = orchestrator.generator.generate(_request(entity, contract, auto_approve=True))
        invoice = result.invoice

        assert invoice.status is InvoiceStatus.APPROVED
        assert invoice.approved_by_id == TEST_ACTOR_ID
        assert invoice.approved_at == SWEEP_INSTANT
        assert repo.list_audit_entries(entity_id=invoice.id)[0].action is (
            AuditAction.INVOICE_AUTO_APPROVED
        )

    def test_due_date_is_local_midnight(self, orchestrator, calendar, entity, contract):
        invoice = orchestrator.generator.generate(_request(entity, contract)).invoice
        assert calendar.to_local_date(invoice.due_date) == date(2026, 3, 31)


# =============================================================================
# From schedules and contracts
# =============================================================================


class TestFromSchedule:
    def test_monthly_schedule(self, orchestrator, calendar, entity, contract):
        schedule = create_active_schedule(
            orchestrator, contract, entity, description="Payroll Services"
        )

        invoice = orchestrator.generator.generate_from_schedule(
            schedule, BUSINESS_DATE, TEST_ACTOR_ID
        ).invoice

        assert invoice.source is GenerationSource.SCHEDULED
        assert invoice.scheduled_billing_id == schedule.id
        assert invoice.period_key == "2026-03"
        assert calendar.to_local_date(invoice.period_start) == date(2026, 3, 1)
        assert calendar.to_local_date(invoice.period_end) == date(2026, 3, 31)
        assert calendar.to_local_date(invoice.due_date) == date(2026, 3, 15)
        assert invoice.line_items[0].description == "Payroll Services - Mar 2026"

    def test_default_period_description(self, orchestrator, entity, contract):
        schedule = create_active_schedule(orchestrator, contract, entity)
        invoice = orchestrator.generator.generate_from_schedule(
            schedule, BUSINESS_DATE, TEST_ACTOR_ID
        ).invoice
        assert invoice.line_items[0].description == "Services - Mar 2026"

    def test_due_day_before_billing_day_rolls_to_next_month(
        self, orchestrator, calendar, entity, contract
    ):
        schedule = create_active_schedule(orchestrator, contract, entity, due_day_of_month=5)
        invoice = orchestrator.generator.generate_from_schedule(
            schedule, BUSINESS_DATE, TEST_ACTOR_ID
        ).invoice
        assert calendar.to_local_date(invoice.due_date) == date(2026, 4, 5)

    def test_auto_approve_honoured_for_monthly(self, orchestrator, entity, contract):
        schedule = create_active_schedule(orchestrator, contract, entity, auto_approve=True)
        result = orchestrator.generator.generate_from_schedule(
            schedule, BUSINESS_DATE, TEST_ACTOR_ID
        )
        assert result.invoice.status is InvoiceStatus.APPROVED

    def test_annual_schedule_never_auto_approved(self, orchestrator, entity, contract):
        schedule = create_active_schedule(
            orchestrator,
            contract,
            entity,
            frequency=BillingFrequency.ANNUALLY,
            auto_approve=True,
        )
        result = orchestrator.generator.generate_from_schedule(
            schedule, BUSINESS_DATE, TEST_ACTOR_ID
        )

        assert result.auto_approved is False
        assert result.invoice.status is InvoiceStatus.PENDING
        assert result.invoice.period_key == "2026"

    def test_second_invoice_for_period_rejected(self, orchestrator, repo, entity, contract):
        schedule = create_active_schedule(orchestrator, contract, entity)
        orchestrator.generator.generate_from_schedule(schedule, BUSINESS_DATE, TEST_ACTOR_ID)

        with pytest.raises(DuplicatePeriodInvoiceError) as exc_info:
            orchestrator.generator.generate_from_schedule(
                schedule, BUSINESS_DATE, TEST_ACTOR_ID
            )

        assert exc_info.value.period_key == "2026-03"
        assert repo.peek_next_invoice_no(entity.id) == 2
        assert len(repo.list_invoices(scheduled_billing_id=schedule.id)) == 1


class TestFromContract:
    def test_contract_monthly_fee(self, orchestrator, calendar, repo, entity):
        contract = seed_contract(repo, entity, billing_day_of_month=15, has_withholding=True)

        invoice = orchestrator.generator.generate_from_contract(
            contract, BUSINESS_DATE, TEST_ACTOR_ID
        ).invoice

        assert invoice.source is GenerationSource.CONTRACT
        assert invoice.net_amount == Decimal("11000.00")
        assert calendar.to_local_date(invoice.due_date) == BUSINESS_DATE
        assert invoice.period_key is None

    def test_contract_without_entity(self, orchestrator, repo):
        contract = seed_contract(repo, None)
        with pytest.raises(BillingEntityNotFoundError):
            orchestrator.generator.generate_from_contract(contract, BUSINESS_DATE, TEST_ACTOR_ID)
