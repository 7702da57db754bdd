"""
Invoicing ORM Models (``billing_modules.invoicing.orm``).

Responsibility
--------------
SQLAlchemy persistence for billing entities, partners, contracts, invoices,
invoice line items and email logs.  Maps the frozen dataclasses in
``models.py`` to tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``billing_kernel.db.base``
and sibling ``models.py``.

Invariants enforced
-------------------
* billing_no is unique (uq_invoices_billing_no).
* period_lock is unique when set (uq_invoices_period_lock): at most one
  live invoice per scheduled billing and period.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import TrackedBase


def _join_emails(emails) -> str | None:
    return ",".join(emails) if emails else None


def _split_emails(value: str | None) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())


# ---------------------------------------------------------------------------
# 1. BillingEntityModel
# ---------------------------------------------------------------------------


class BillingEntityModel(TrackedBase):
    """
    ORM model for issuing legal entities.

    Guarantees:
        - code is unique.
        - next_invoice_no only changes through the repository's
          advance_invoice_no(), after the invoice row is flushed.
    """

    __tablename__ = "billing_entities"

    __table_args__ = (UniqueConstraint("code", name="uq_billing_entities_code"),)

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    invoice_prefix: Mapped[str] = mapped_column(String(20), default="INV")
    next_invoice_no: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    tin: Mapped[str | None] = mapped_column(String(50), nullable=True)
    bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    bank_account_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    bank_account_no: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def to_dto(self):
        from billing_modules.invoicing.models import BillingEntity

        return BillingEntity(
            id=self.id,
            code=self.code,
            name=self.name,
            invoice_prefix=self.invoice_prefix,
            next_invoice_no=self.next_invoice_no,
            address=self.address,
            email=self.email,
            tin=self.tin,
            bank_name=self.bank_name,
            bank_account_name=self.bank_account_name,
            bank_account_no=self.bank_account_no,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "BillingEntityModel":
        return cls(
            id=dto.id,
            code=dto.code,
            name=dto.name,
            invoice_prefix=dto.invoice_prefix,
            next_invoice_no=dto.next_invoice_no,
            address=dto.address,
            email=dto.email,
            tin=dto.tin,
            bank_name=dto.bank_name,
            bank_account_name=dto.bank_account_name,
            bank_account_no=dto.bank_account_no,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<BillingEntityModel {self.code}: next={self.next_invoice_no}>"


# ---------------------------------------------------------------------------
# 2. PartnerModel
# ---------------------------------------------------------------------------


class PartnerModel(TrackedBase):
    __tablename__ = "partners"

    __table_args__ = (UniqueConstraint("code", name="uq_partners_code"),)

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    billing_model: Mapped[str] = mapped_column(String(30), default="DIRECT")
    invoice_to: Mapped[str | None] = mapped_column(String(255), nullable=True)
    attention: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    emails: Mapped[str | None] = mapped_column(Text, nullable=True)
    billing_entity_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("billing_entities.id"), nullable=True
    )

    def to_dto(self):
        from billing_modules.invoicing.models import BillingModel, Partner

        return Partner(
            id=self.id,
            code=self.code,
            name=self.name,
            billing_model=BillingModel(self.billing_model),
            invoice_to=self.invoice_to,
            attention=self.attention,
            address=self.address,
            emails=self.emails,
            billing_entity_id=self.billing_entity_id,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "PartnerModel":
        return cls(
            id=dto.id,
            code=dto.code,
            name=dto.name,
            billing_model=dto.billing_model.value,
            invoice_to=dto.invoice_to,
            attention=dto.attention,
            address=dto.address,
            emails=dto.emails,
            billing_entity_id=dto.billing_entity_id,
            created_by_id=created_by_id,
        )


# ---------------------------------------------------------------------------
# 3. ContractModel
# ---------------------------------------------------------------------------


class ContractModel(TrackedBase):
    """
    ORM model for client contracts.

    Contracts are created by the external import; the engine only updates
    next_due_date after legacy contract billing.
    """

    __tablename__ = "contracts"

    __table_args__ = (
        Index("idx_contracts_status_day", "status", "billing_day_of_month"),
        Index("idx_contracts_partner_id", "partner_id"),
    )

    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    monthly_fee: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="ACTIVE")
    vat_type: Mapped[str] = mapped_column(String(20), default="VAT")
    has_withholding: Mapped[bool] = mapped_column(Boolean, default=False)
    withholding_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    withholding_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    contact_person: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    emails: Mapped[str | None] = mapped_column(Text, nullable=True)
    tin: Mapped[str | None] = mapped_column(String(50), nullable=True)
    partner_id: Mapped[UUID | None] = mapped_column(ForeignKey("partners.id"), nullable=True)
    billing_entity_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("billing_entities.id"), nullable=True
    )
    billing_day_of_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    next_due_date: Mapped[datetime | None] = mapped_column(nullable=True)
    payment_plan: Mapped[str | None] = mapped_column(String(50), nullable=True)
    product_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    auto_approve: Mapped[bool] = mapped_column(Boolean, default=False)
    auto_send_enabled: Mapped[bool] = mapped_column(Boolean, default=True)

    def to_dto(self):
        from billing_modules.invoicing.models import Contract, ContractStatus
        from billing_modules.tax.calculator import VatType

        return Contract(
            id=self.id,
            company_name=self.company_name,
            monthly_fee=self.monthly_fee,
            status=ContractStatus(self.status),
            vat_type=VatType(self.vat_type),
            has_withholding=self.has_withholding,
            withholding_rate=self.withholding_rate,
            withholding_code=self.withholding_code,
            contact_person=self.contact_person,
            address=self.address,
            emails=self.emails,
            tin=self.tin,
            partner_id=self.partner_id,
            billing_entity_id=self.billing_entity_id,
            billing_day_of_month=self.billing_day_of_month,
            next_due_date=self.next_due_date,
            payment_plan=self.payment_plan,
            product_type=self.product_type,
            auto_approve=self.auto_approve,
            auto_send_enabled=self.auto_send_enabled,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "ContractModel":
        return cls(
            id=dto.id,
            company_name=dto.company_name,
            monthly_fee=dto.monthly_fee,
            status=dto.status.value,
            vat_type=dto.vat_type.value,
            has_withholding=dto.has_withholding,
            withholding_rate=dto.withholding_rate,
            withholding_code=dto.withholding_code,
            contact_person=dto.contact_person,
            address=dto.address,
            emails=dto.emails,
            tin=dto.tin,
            partner_id=dto.partner_id,
            billing_entity_id=dto.billing_entity_id,
            billing_day_of_month=dto.billing_day_of_month,
            next_due_date=dto.next_due_date,
            payment_plan=dto.payment_plan,
            product_type=dto.product_type,
            auto_approve=dto.auto_approve,
            auto_send_enabled=dto.auto_send_enabled,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<ContractModel {self.company_name}>"


# ---------------------------------------------------------------------------
# 4. InvoiceModel
# ---------------------------------------------------------------------------


class InvoiceModel(TrackedBase):
    """
    ORM model for invoices.

    Lines are stored in a child table via the ``lines`` relationship.

    Guarantees:
        - billing_no is unique.
        - period_lock is unique when not NULL.
        - customer_emails stored comma-separated.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("billing_no", name="uq_invoices_billing_no"),
        UniqueConstraint("period_lock", name="uq_invoices_period_lock"),
        Index("idx_invoices_status", "status"),
        Index("idx_invoices_contract_id", "contract_id"),
        Index("idx_invoices_scheduled_billing_id", "scheduled_billing_id"),
        Index("idx_invoices_due_date", "due_date"),
    )

    billing_no: Mapped[str] = mapped_column(String(50), nullable=False)
    billing_entity_id: Mapped[UUID] = mapped_column(
        ForeignKey("billing_entities.id"), nullable=False
    )
    contract_id: Mapped[UUID | None] = mapped_column(ForeignKey("contracts.id"), nullable=True)
    partner_id: Mapped[UUID | None] = mapped_column(ForeignKey("partners.id"), nullable=True)
    scheduled_billing_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("scheduled_billings.id"), nullable=True
    )
    source: Mapped[str] = mapped_column(String(20), default="adhoc")
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    attention: Mapped[str | None] = mapped_column(String(255), nullable=True)
    customer_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    customer_emails: Mapped[str | None] = mapped_column(Text, nullable=True)
    customer_tin: Mapped[str | None] = mapped_column(String(50), nullable=True)
    statement_date: Mapped[datetime] = mapped_column(nullable=False)
    due_date: Mapped[datetime] = mapped_column(nullable=False)
    period_start: Mapped[datetime | None] = mapped_column(nullable=True)
    period_end: Mapped[datetime | None] = mapped_column(nullable=True)
    period_key: Mapped[str | None] = mapped_column(String(20), nullable=True)
    period_lock: Mapped[str | None] = mapped_column(String(80), nullable=True)
    service_fee: Mapped[Decimal] = mapped_column(nullable=False)
    vat_amount: Mapped[Decimal] = mapped_column(nullable=False)
    gross_amount: Mapped[Decimal] = mapped_column(nullable=False)
    withholding_tax: Mapped[Decimal] = mapped_column(nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(nullable=False)
    discount_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    vat_type: Mapped[str] = mapped_column(String(20), default="VAT")
    has_withholding: Mapped[bool] = mapped_column(Boolean, default=False)
    withholding_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    withholding_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    billing_frequency: Mapped[str] = mapped_column(String(20), default="MONTHLY")
    billing_model: Mapped[str] = mapped_column(String(30), default="DIRECT")
    status: Mapped[str] = mapped_column(String(20), default="PENDING")
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    email_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    email_sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    email_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    voided_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(nullable=True)
    void_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(20), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    follow_up_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    follow_up_count: Mapped[int] = mapped_column(Integer, default=0)
    last_follow_up_level: Mapped[int] = mapped_column(Integer, default=0)
    last_follow_up_at: Mapped[datetime | None] = mapped_column(nullable=True)

    lines: Mapped[list["InvoiceLineItemModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="InvoiceLineItemModel.line_no",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from billing_modules.invoicing.models import (
            BillingModel,
            EmailStatus,
            GenerationSource,
            Invoice,
            InvoiceStatus,
            PaymentMethod,
        )
        from billing_modules.recurring.calendar import BillingFrequency
        from billing_modules.tax.calculator import VatType

        return Invoice(
            id=self.id,
            billing_no=self.billing_no,
            billing_entity_id=self.billing_entity_id,
            customer_name=self.customer_name,
            statement_date=self.statement_date,
            due_date=self.due_date,
            service_fee=self.service_fee,
            vat_amount=self.vat_amount,
            gross_amount=self.gross_amount,
            withholding_tax=self.withholding_tax,
            net_amount=self.net_amount,
            status=InvoiceStatus(self.status),
            source=GenerationSource(self.source),
            contract_id=self.contract_id,
            partner_id=self.partner_id,
            scheduled_billing_id=self.scheduled_billing_id,
            attention=self.attention,
            customer_address=self.customer_address,
            customer_emails=_split_emails(self.customer_emails),
            customer_tin=self.customer_tin,
            period_start=self.period_start,
            period_end=self.period_end,
            period_key=self.period_key,
            discount_amount=self.discount_amount,
            vat_type=VatType(self.vat_type),
            has_withholding=self.has_withholding,
            withholding_rate=self.withholding_rate,
            withholding_code=self.withholding_code,
            billing_frequency=BillingFrequency(self.billing_frequency),
            billing_model=BillingModel(self.billing_model),
            remarks=self.remarks,
            approved_by_id=self.approved_by_id,
            approved_at=self.approved_at,
            rejected_by_id=self.rejected_by_id,
            rejected_at=self.rejected_at,
            rejection_reason=self.rejection_reason,
            sent_at=self.sent_at,
            email_status=EmailStatus(self.email_status) if self.email_status else None,
            email_sent_at=self.email_sent_at,
            email_error=self.email_error,
            voided_by_id=self.voided_by_id,
            voided_at=self.voided_at,
            void_reason=self.void_reason,
            cancelled_at=self.cancelled_at,
            cancel_reason=self.cancel_reason,
            paid_at=self.paid_at,
            paid_amount=self.paid_amount,
            payment_method=PaymentMethod(self.payment_method) if self.payment_method else None,
            payment_reference=self.payment_reference,
            follow_up_enabled=self.follow_up_enabled,
            follow_up_count=self.follow_up_count,
            last_follow_up_level=self.last_follow_up_level,
            last_follow_up_at=self.last_follow_up_at,
            line_items=tuple(line.to_dto() for line in self.lines),
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "InvoiceModel":
        """Create ORM model (with lines) from frozen dataclass."""
        model = cls(id=dto.id, created_by_id=created_by_id)
        model.apply_dto(dto)
        model.lines = [
            InvoiceLineItemModel.from_dto(line, created_by_id) for line in dto.line_items
        ]
        return model

    def apply_dto(self, dto) -> None:
        """Copy header fields from ``dto``.  Lines are immutable after creation."""
        self.billing_no = dto.billing_no
        self.billing_entity_id = dto.billing_entity_id
        self.contract_id = dto.contract_id
        self.partner_id = dto.partner_id
        self.scheduled_billing_id = dto.scheduled_billing_id
        self.source = dto.source.value
        self.customer_name = dto.customer_name
        self.attention = dto.attention
        self.customer_address = dto.customer_address
        self.customer_emails = _join_emails(dto.customer_emails)
        self.customer_tin = dto.customer_tin
        self.statement_date = dto.statement_date
        self.due_date = dto.due_date
        self.period_start = dto.period_start
        self.period_end = dto.period_end
        self.period_key = dto.period_key
        self.service_fee = dto.service_fee
        self.vat_amount = dto.vat_amount
        self.gross_amount = dto.gross_amount
        self.withholding_tax = dto.withholding_tax
        self.net_amount = dto.net_amount
        self.discount_amount = dto.discount_amount
        self.vat_type = dto.vat_type.value
        self.has_withholding = dto.has_withholding
        self.withholding_rate = dto.withholding_rate
        self.withholding_code = dto.withholding_code
        self.billing_frequency = dto.billing_frequency.value
        self.billing_model = dto.billing_model.value
        self.status = dto.status.value
        self.remarks = dto.remarks
        self.approved_by_id = dto.approved_by_id
        self.approved_at = dto.approved_at
        self.rejected_by_id = dto.rejected_by_id
        self.rejected_at = dto.rejected_at
        self.rejection_reason = dto.rejection_reason
        self.sent_at = dto.sent_at
        self.email_status = dto.email_status.value if dto.email_status else None
        self.email_sent_at = dto.email_sent_at
        self.email_error = dto.email_error
        self.voided_by_id = dto.voided_by_id
        self.voided_at = dto.voided_at
        self.void_reason = dto.void_reason
        self.cancelled_at = dto.cancelled_at
        self.cancel_reason = dto.cancel_reason
        self.paid_at = dto.paid_at
        self.paid_amount = dto.paid_amount
        self.payment_method = dto.payment_method.value if dto.payment_method else None
        self.payment_reference = dto.payment_reference
        self.follow_up_enabled = dto.follow_up_enabled
        self.follow_up_count = dto.follow_up_count
        self.last_follow_up_level = dto.last_follow_up_level
        self.last_follow_up_at = dto.last_follow_up_at
        self.period_lock = _period_lock(dto)

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.billing_no} {self.status}>"


def _period_lock(dto) -> str | None:
    """Uniqueness slot for live scheduled invoices; freed by VOID/CANCELLED."""
    if dto.scheduled_billing_id is None or dto.period_key is None:
        return None
    if not dto.blocks_period:
        return None
    return f"{dto.scheduled_billing_id}:{dto.period_key}"


# ---------------------------------------------------------------------------
# 5. InvoiceLineItemModel
# ---------------------------------------------------------------------------


class InvoiceLineItemModel(TrackedBase):
    __tablename__ = "invoice_line_items"

    __table_args__ = (
        Index("idx_invoice_line_items_invoice_id", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    service_fee: Mapped[Decimal] = mapped_column(nullable=False)
    vat_amount: Mapped[Decimal] = mapped_column(nullable=False)
    gross_amount: Mapped[Decimal] = mapped_column(nullable=False)
    withholding_tax: Mapped[Decimal] = mapped_column(nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(nullable=False)
    discount_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    discount_value: Mapped[Decimal | None] = mapped_column(nullable=True)
    discount_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    period_start: Mapped[datetime | None] = mapped_column(nullable=True)
    period_end: Mapped[datetime | None] = mapped_column(nullable=True)
    contract_id: Mapped[UUID | None] = mapped_column(nullable=True)

    invoice: Mapped["InvoiceModel"] = relationship(back_populates="lines")

    def to_dto(self):
        from billing_modules.invoicing.models import InvoiceLineItem
        from billing_modules.tax.calculator import DiscountType

        return InvoiceLineItem(
            id=self.id,
            invoice_id=self.invoice_id,
            line_no=self.line_no,
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            service_fee=self.service_fee,
            vat_amount=self.vat_amount,
            gross_amount=self.gross_amount,
            withholding_tax=self.withholding_tax,
            net_amount=self.net_amount,
            discount_type=DiscountType(self.discount_type) if self.discount_type else None,
            discount_value=self.discount_value,
            discount_amount=self.discount_amount,
            period_start=self.period_start,
            period_end=self.period_end,
            contract_id=self.contract_id,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "InvoiceLineItemModel":
        return cls(
            id=dto.id,
            invoice_id=dto.invoice_id,
            line_no=dto.line_no,
            description=dto.description,
            quantity=dto.quantity,
            unit_price=dto.unit_price,
            service_fee=dto.service_fee,
            vat_amount=dto.vat_amount,
            gross_amount=dto.gross_amount,
            withholding_tax=dto.withholding_tax,
            net_amount=dto.net_amount,
            discount_type=dto.discount_type.value if dto.discount_type else None,
            discount_value=dto.discount_value,
            discount_amount=dto.discount_amount,
            period_start=dto.period_start,
            period_end=dto.period_end,
            contract_id=dto.contract_id,
            created_by_id=created_by_id,
        )


# ---------------------------------------------------------------------------
# 6. EmailLogModel
# ---------------------------------------------------------------------------


class EmailLogModel(TrackedBase):
    __tablename__ = "email_logs"

    __table_args__ = (Index("idx_email_logs_invoice_id", "invoice_id"),)

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    to_emails: Mapped[str] = mapped_column(Text, nullable=False)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="QUEUED")
    message_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dto(self):
        from billing_modules.invoicing.models import EmailLog, EmailStatus

        return EmailLog(
            id=self.id,
            invoice_id=self.invoice_id,
            to_emails=_split_emails(self.to_emails),
            subject=self.subject,
            status=EmailStatus(self.status),
            message_id=self.message_id,
            error=self.error,
            sent_at=self.sent_at,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "EmailLogModel":
        return cls(
            id=dto.id,
            invoice_id=dto.invoice_id,
            to_emails=_join_emails(dto.to_emails) or "",
            subject=dto.subject,
            status=dto.status.value,
            message_id=dto.message_id,
            error=dto.error,
            sent_at=dto.sent_at,
            created_by_id=created_by_id,
        )
