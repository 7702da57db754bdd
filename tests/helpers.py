"""
Shared test doubles and seed helpers for the billing engine tests.

Imported by ``tests/conftest.py`` and directly by test modules that need
to seed rows beyond what the fixtures provide.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from billing_modules.follow_up.models import EmailTemplate, TemplateType
from billing_modules.invoicing.generator import GenerationRequest
from billing_modules.invoicing.models import (
    BillingEntity,
    BillingModel,
    Contract,
    Invoice,
    InvoiceStatus,
    Partner,
)
from billing_modules.ports import EmailMessage, SendResult
from billing_modules.recurring.calendar import BillingFrequency

TEST_ACTOR_ID = UUID("00000000-0000-0000-0000-0000000000aa")

# 08:00 on 2026-03-15 in Asia/Manila
SWEEP_INSTANT = datetime(2026, 3, 15, 0, 0, 0, tzinfo=timezone.utc)
BUSINESS_DATE = date(2026, 3, 15)


# =============================================================================
# Fake collaborators
# =============================================================================


class FakeEmailSender:
    """Records every message; fails or raises on demand."""

    def __init__(self):
        self.sent: list[EmailMessage] = []
        self.fail_with: str | None = None
        self.raise_with: Exception | None = None

    def send(self, message: EmailMessage) -> SendResult:
        if self.raise_with is not None:
            raise self.raise_with
        if self.fail_with is not None:
            return SendResult(success=False, error=self.fail_with)
        self.sent.append(message)
        return SendResult(success=True, message_id=f"msg-{len(self.sent)}")


class FakePdfRenderer:
    def __init__(self):
        self.rendered: list = []
        self.fail = False

    def render_invoice_pdf(self, invoice, branding) -> bytes:
        if self.fail:
            raise RuntimeError("renderer crashed")
        self.rendered.append((invoice.billing_no, branding))
        return b"%PDF-1.4 " + invoice.billing_no.encode()


# =============================================================================
# Seed helpers
# =============================================================================


def seed_entity(
    repo, prefix: str = "ABBA", next_invoice_no: int = 1, code: str | None = None
) -> BillingEntity:
    return repo.add_billing_entity(
        BillingEntity(
            id=uuid4(),
            code=code or f"E{uuid4().hex[:6].upper()}",
            name="Yahshua Outsourcing",
            invoice_prefix=prefix,
            next_invoice_no=next_invoice_no,
            email="billing@example.ph",
        ),
        TEST_ACTOR_ID,
    )


def seed_contract(repo, entity: BillingEntity | None = None, **overrides) -> Contract:
    values = dict(
        id=uuid4(),
        company_name="Acme Trading Corp",
        monthly_fee=Decimal("10000.00"),
        contact_person="Juan Dela Cruz",
        address="Makati City",
        emails="ap@acme.ph, finance@acme.ph",
        tin="123-456-789-000",
        billing_entity_id=entity.id if entity else None,
        product_type="PAYROLL",
    )
    values.update(overrides)
    return repo.add_contract(Contract(**values), TEST_ACTOR_ID)


def seed_partner(
    repo, billing_model: BillingModel = BillingModel.GLOBE_INNOVE, **overrides
) -> Partner:
    values = dict(
        id=uuid4(),
        code=f"P{uuid4().hex[:6].upper()}",
        name="Globe Innove",
        billing_model=billing_model,
        invoice_to="Innove Communications Inc.",
        attention="Accounts Payable",
        address="BGC, Taguig",
        emails="billing@innove.ph",
    )
    values.update(overrides)
    return repo.add_partner(Partner(**values), TEST_ACTOR_ID)


def seed_follow_up_templates(repo, entity_id: UUID | None = None) -> list[EmailTemplate]:
    templates = []
    for level in (1, 2, 3):
        templates.append(
            repo.add_email_template(
                EmailTemplate(
                    id=uuid4(),
                    name=f"Follow-up level {level}",
                    template_type=TemplateType.FOLLOW_UP,
                    subject=f"Reminder {level}: Bill No. {{{{billingNo}}}}",
                    greeting="Dear {{customerName}},",
                    body=(
                        "Bill {{billingNo}} for {{totalAmount}} was due on {{dueDate}} "
                        "and is {{daysOverdue}} days overdue."
                    ),
                    closing="Regards,\n{{companyName}}",
                    follow_up_level=level,
                    billing_entity_id=entity_id,
                ),
                TEST_ACTOR_ID,
            )
        )
    return templates


def create_active_schedule(
    orchestrator,
    contract: Contract,
    entity: BillingEntity,
    *,
    frequency: BillingFrequency = BillingFrequency.MONTHLY,
    billing_day_of_month: int = 15,
    billing_amount: Decimal = Decimal("10000.00"),
    start_date: date = date(2026, 1, 1),
    **kwargs,
):
    """Create a schedule and approve it so the sweep picks it up."""
    schedule = orchestrator.schedules.create(
        contract_id=contract.id,
        billing_entity_id=entity.id,
        billing_amount=billing_amount,
        frequency=frequency,
        billing_day_of_month=billing_day_of_month,
        start_date=start_date,
        actor_id=TEST_ACTOR_ID,
        **kwargs,
    )
    return orchestrator.schedules.approve(schedule.id, TEST_ACTOR_ID)


def generate_invoice(
    orchestrator,
    entity: BillingEntity,
    contract: Contract,
    *,
    status: InvoiceStatus = InvoiceStatus.PENDING,
    **overrides,
) -> Invoice:
    """Generate a contract invoice and walk it to ``status`` (PENDING, APPROVED or SENT)."""
    values = dict(
        billing_entity_id=entity.id,
        due_date=date(2026, 3, 1),
        actor_id=TEST_ACTOR_ID,
        billing_amount=Decimal("10000.00"),
        contract_id=contract.id,
    )
    values.update(overrides)
    invoice = orchestrator.generator.generate(GenerationRequest(**values)).invoice
    if status in (InvoiceStatus.APPROVED, InvoiceStatus.SENT):
        invoice = orchestrator.lifecycle.approve(invoice.id, TEST_ACTOR_ID)
    if status is InvoiceStatus.SENT:
        invoice = orchestrator.lifecycle.send(invoice.id, TEST_ACTOR_ID).invoice
    return invoice
