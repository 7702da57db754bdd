"""
Recurring Billing ORM Models (``billing_modules.recurring.orm``).

Responsibility
--------------
SQLAlchemy persistence for scheduled billings and their run history.  Maps
the frozen dataclasses in ``models.py`` to tables.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``billing_kernel.db.base``
and sibling ``models.py``.  Only ``billing_modules.repository`` queries
these models.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase


class ScheduledBillingModel(TrackedBase):
    """
    ORM model for recurring billing definitions.

    Guarantees:
        - status, frequency, vat_type stored as enum values.
        - next_billing_date, start_date, end_date are UTC instants.
    """

    __tablename__ = "scheduled_billings"

    __table_args__ = (
        Index("idx_scheduled_billings_status_day", "status", "billing_day_of_month"),
        Index("idx_scheduled_billings_contract_id", "contract_id"),
        Index("idx_scheduled_billings_next_billing_date", "next_billing_date"),
    )

    contract_id: Mapped[UUID] = mapped_column(ForeignKey("contracts.id"), nullable=False)
    billing_entity_id: Mapped[UUID] = mapped_column(
        ForeignKey("billing_entities.id"), nullable=False
    )
    billing_amount: Mapped[Decimal] = mapped_column(nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    vat_type: Mapped[str] = mapped_column(String(20), default="VAT")
    is_vat_inclusive: Mapped[bool] = mapped_column(Boolean, default=False)
    has_withholding: Mapped[bool] = mapped_column(Boolean, default=False)
    withholding_rate: Mapped[Decimal | None] = mapped_column(nullable=True)
    withholding_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    frequency: Mapped[str] = mapped_column(String(20), nullable=False)
    billing_day_of_month: Mapped[int] = mapped_column(Integer, nullable=False)
    due_day_of_month: Mapped[int | None] = mapped_column(Integer, nullable=True)
    custom_interval_value: Mapped[int | None] = mapped_column(Integer, nullable=True)
    custom_interval_unit: Mapped[str | None] = mapped_column(String(10), nullable=True)
    start_date: Mapped[datetime] = mapped_column(nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(nullable=True)
    next_billing_date: Mapped[datetime | None] = mapped_column(nullable=True)
    auto_approve: Mapped[bool] = mapped_column(Boolean, default=False)
    auto_send_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    status: Mapped[str] = mapped_column(String(20), default="PENDING")
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from billing_modules.recurring.calendar import BillingFrequency, IntervalUnit
        from billing_modules.recurring.models import ScheduledBilling, ScheduleStatus
        from billing_modules.tax.calculator import VatType

        return ScheduledBilling(
            id=self.id,
            contract_id=self.contract_id,
            billing_entity_id=self.billing_entity_id,
            billing_amount=self.billing_amount,
            frequency=BillingFrequency(self.frequency),
            billing_day_of_month=self.billing_day_of_month,
            start_date=self.start_date,
            status=ScheduleStatus(self.status),
            description=self.description,
            vat_type=VatType(self.vat_type),
            is_vat_inclusive=self.is_vat_inclusive,
            has_withholding=self.has_withholding,
            withholding_rate=self.withholding_rate,
            withholding_code=self.withholding_code,
            due_day_of_month=self.due_day_of_month,
            custom_interval_value=self.custom_interval_value,
            custom_interval_unit=(
                IntervalUnit(self.custom_interval_unit) if self.custom_interval_unit else None
            ),
            end_date=self.end_date,
            next_billing_date=self.next_billing_date,
            auto_approve=self.auto_approve,
            auto_send_enabled=self.auto_send_enabled,
            remarks=self.remarks,
            approved_by_id=self.approved_by_id,
            approved_at=self.approved_at,
            rejected_by_id=self.rejected_by_id,
            rejected_at=self.rejected_at,
            rejection_reason=self.rejection_reason,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "ScheduledBillingModel":
        """Create ORM model from frozen dataclass."""
        model = cls(id=dto.id, created_by_id=created_by_id)
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto) -> None:
        """Copy every mutable field from ``dto`` onto this row."""
        self.contract_id = dto.contract_id
        self.billing_entity_id = dto.billing_entity_id
        self.billing_amount = dto.billing_amount
        self.description = dto.description
        self.vat_type = dto.vat_type.value
        self.is_vat_inclusive = dto.is_vat_inclusive
        self.has_withholding = dto.has_withholding
        self.withholding_rate = dto.withholding_rate
        self.withholding_code = dto.withholding_code
        self.frequency = dto.frequency.value
        self.billing_day_of_month = dto.billing_day_of_month
        self.due_day_of_month = dto.due_day_of_month
        self.custom_interval_value = dto.custom_interval_value
        self.custom_interval_unit = (
            dto.custom_interval_unit.value if dto.custom_interval_unit else None
        )
        self.start_date = dto.start_date
        self.end_date = dto.end_date
        self.next_billing_date = dto.next_billing_date
        self.auto_approve = dto.auto_approve
        self.auto_send_enabled = dto.auto_send_enabled
        self.status = dto.status.value
        self.remarks = dto.remarks
        self.approved_by_id = dto.approved_by_id
        self.approved_at = dto.approved_at
        self.rejected_by_id = dto.rejected_by_id
        self.rejected_at = dto.rejected_at
        self.rejection_reason = dto.rejection_reason

    def __repr__(self) -> str:
        return f"<ScheduledBillingModel {self.id} {self.frequency} day={self.billing_day_of_month}>"


class ScheduledBillingRunModel(TrackedBase):
    """
    ORM model for generation attempts.

    Guarantees:
        - Append-only: the repository exposes no update for runs.
        - period_key is set on SUCCESS runs.
    """

    __tablename__ = "scheduled_billing_runs"

    __table_args__ = (
        Index(
            "idx_scheduled_billing_runs_schedule_date",
            "scheduled_billing_id",
            "run_date",
        ),
        Index("idx_scheduled_billing_runs_status", "status"),
    )

    scheduled_billing_id: Mapped[UUID] = mapped_column(
        ForeignKey("scheduled_billings.id"), nullable=False
    )
    run_date: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    invoice_id: Mapped[UUID | None] = mapped_column(ForeignKey("invoices.id"), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    period_key: Mapped[str | None] = mapped_column(String(20), nullable=True)
    job_run_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def to_dto(self):
        from billing_modules.recurring.models import RunStatus, ScheduledBillingRun

        return ScheduledBillingRun(
            id=self.id,
            scheduled_billing_id=self.scheduled_billing_id,
            run_date=self.run_date,
            status=RunStatus(self.status),
            invoice_id=self.invoice_id,
            error_message=self.error_message,
            period_key=self.period_key,
            job_run_id=self.job_run_id,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "ScheduledBillingRunModel":
        return cls(
            id=dto.id,
            scheduled_billing_id=dto.scheduled_billing_id,
            run_date=dto.run_date,
            status=dto.status.value,
            invoice_id=dto.invoice_id,
            error_message=dto.error_message,
            period_key=dto.period_key,
            job_run_id=dto.job_run_id,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<ScheduledBillingRunModel {self.scheduled_billing_id} {self.status}>"
