"""
Invoicing Domain Models (``billing_modules.invoicing.models``).

Responsibility
--------------
Frozen dataclass value objects for contracts, billing partners, issuing
billing entities, invoices, their line items and outbound email logs.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``net_amount == gross_amount - withholding_tax`` on every Invoice and
  InvoiceLineItem produced by the generator.
* ``last_follow_up_level`` is 0..3 and only ever increases.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from billing_modules.recurring.calendar import BillingFrequency
from billing_modules.tax.calculator import DiscountType, VatType

MAX_FOLLOW_UP_LEVEL = 3


class InvoiceStatus(str, Enum):
    """Invoice lifecycle states."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    SENT = "SENT"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    VOID = "VOID"


# Invoices in these states never count against a billing period.
NON_BLOCKING_STATUSES = frozenset({InvoiceStatus.VOID, InvoiceStatus.CANCELLED})


class BillingModel(str, Enum):
    """How a partner's contracts are invoiced."""
    DIRECT = "DIRECT"
    GLOBE_INNOVE = "GLOBE_INNOVE"
    RCBC_CONSOLIDATED = "RCBC_CONSOLIDATED"

    @property
    def is_consolidated(self) -> bool:
        return self is not BillingModel.DIRECT


class ContractStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    STOPPED = "STOPPED"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHECK = "CHECK"
    HITPAY = "HITPAY"


class EmailStatus(str, Enum):
    QUEUED = "QUEUED"
    SENT = "SENT"
    FAILED = "FAILED"


class GenerationSource(str, Enum):
    """Where a generated invoice came from (recorded in the audit log)."""
    SCHEDULED = "scheduled"
    CONTRACT = "contract"
    ADHOC = "adhoc"


@dataclass(frozen=True)
class BillingEntity:
    """The legal entity issuing invoices; owns its own invoice sequence."""
    id: UUID
    code: str
    name: str
    invoice_prefix: str = "INV"
    next_invoice_no: int = 1
    address: str | None = None
    email: str | None = None
    tin: str | None = None
    bank_name: str | None = None
    bank_account_name: str | None = None
    bank_account_no: str | None = None


@dataclass(frozen=True)
class Partner:
    """A billing partner; consolidated partners receive their contracts' invoices."""
    id: UUID
    code: str
    name: str
    billing_model: BillingModel = BillingModel.DIRECT
    invoice_to: str | None = None
    attention: str | None = None
    address: str | None = None
    emails: str | None = None
    billing_entity_id: UUID | None = None


@dataclass(frozen=True)
class Contract:
    """A standing agreement with a client.  Read-only here except next_due_date."""
    id: UUID
    company_name: str
    monthly_fee: Decimal
    status: ContractStatus = ContractStatus.ACTIVE
    vat_type: VatType = VatType.VAT
    has_withholding: bool = False
    withholding_rate: Decimal | None = None
    withholding_code: str | None = None
    contact_person: str | None = None
    address: str | None = None
    emails: str | None = None
    tin: str | None = None
    partner_id: UUID | None = None
    billing_entity_id: UUID | None = None
    billing_day_of_month: int | None = None
    next_due_date: datetime | None = None
    payment_plan: str | None = None
    product_type: str | None = None
    auto_approve: bool = False
    auto_send_enabled: bool = True


@dataclass(frozen=True)
class InvoiceLineItem:
    """One independently taxed line of an invoice."""
    id: UUID
    invoice_id: UUID
    line_no: int
    description: str
    quantity: int
    unit_price: Decimal
    service_fee: Decimal
    vat_amount: Decimal
    gross_amount: Decimal
    withholding_tax: Decimal
    net_amount: Decimal
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = None
    discount_amount: Decimal | None = None
    period_start: datetime | None = None
    period_end: datetime | None = None
    contract_id: UUID | None = None


@dataclass(frozen=True)
class Invoice:
    """The billable document."""
    id: UUID
    billing_no: str
    billing_entity_id: UUID
    customer_name: str
    statement_date: datetime
    due_date: datetime
    service_fee: Decimal
    vat_amount: Decimal
    gross_amount: Decimal
    withholding_tax: Decimal
    net_amount: Decimal
    status: InvoiceStatus = InvoiceStatus.PENDING
    source: GenerationSource = GenerationSource.ADHOC
    contract_id: UUID | None = None
    partner_id: UUID | None = None
    scheduled_billing_id: UUID | None = None
    attention: str | None = None
    customer_address: str | None = None
    customer_emails: tuple[str, ...] = ()
    customer_tin: str | None = None
    period_start: datetime | None = None
    period_end: datetime | None = None
    period_key: str | None = None
    discount_amount: Decimal | None = None
    vat_type: VatType = VatType.VAT
    has_withholding: bool = False
    withholding_rate: Decimal | None = None
    withholding_code: str | None = None
    billing_frequency: BillingFrequency = BillingFrequency.MONTHLY
    billing_model: BillingModel = BillingModel.DIRECT
    remarks: str | None = None
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    rejected_by_id: UUID | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    sent_at: datetime | None = None
    email_status: EmailStatus | None = None
    email_sent_at: datetime | None = None
    email_error: str | None = None
    voided_by_id: UUID | None = None
    voided_at: datetime | None = None
    void_reason: str | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    paid_at: datetime | None = None
    paid_amount: Decimal | None = None
    payment_method: PaymentMethod | None = None
    payment_reference: str | None = None
    follow_up_enabled: bool = True
    follow_up_count: int = 0
    last_follow_up_level: int = 0
    last_follow_up_at: datetime | None = None
    line_items: tuple[InvoiceLineItem, ...] = ()

    @property
    def primary_email(self) -> str | None:
        return self.customer_emails[0] if self.customer_emails else None

    @property
    def blocks_period(self) -> bool:
        """Whether this invoice counts as 'already billed' for its period."""
        return self.status not in NON_BLOCKING_STATUSES


@dataclass(frozen=True)
class EmailLog:
    """One outbound invoice email attempt."""
    id: UUID
    invoice_id: UUID
    to_emails: tuple[str, ...]
    subject: str
    status: EmailStatus = EmailStatus.QUEUED
    message_id: str | None = None
    error: str | None = None
    sent_at: datetime | None = None
