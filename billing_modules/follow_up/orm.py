"""
Follow-Up ORM Models (``billing_modules.follow_up.orm``).

Persistence for email templates and follow-up logs.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase


class EmailTemplateModel(TrackedBase):
    """
    ORM model for billing and follow-up email templates.

    A row with NULL billing_entity_id applies to every entity unless the
    entity has its own template for the same type and level.
    """

    __tablename__ = "email_templates"

    __table_args__ = (
        Index(
            "idx_email_templates_lookup",
            "billing_entity_id",
            "template_type",
            "follow_up_level",
        ),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    template_type: Mapped[str] = mapped_column(String(20), nullable=False)
    follow_up_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    billing_entity_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("billing_entities.id"), nullable=True
    )
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    greeting: Mapped[str] = mapped_column(Text, default="")
    body: Mapped[str] = mapped_column(Text, default="")
    closing: Mapped[str] = mapped_column(Text, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    def to_dto(self):
        from billing_modules.follow_up.models import EmailTemplate, TemplateType

        return EmailTemplate(
            id=self.id,
            name=self.name,
            template_type=TemplateType(self.template_type),
            subject=self.subject,
            greeting=self.greeting,
            body=self.body,
            closing=self.closing,
            follow_up_level=self.follow_up_level,
            billing_entity_id=self.billing_entity_id,
            is_active=self.is_active,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "EmailTemplateModel":
        return cls(
            id=dto.id,
            name=dto.name,
            template_type=dto.template_type.value,
            follow_up_level=dto.follow_up_level,
            billing_entity_id=dto.billing_entity_id,
            subject=dto.subject,
            greeting=dto.greeting,
            body=dto.body,
            closing=dto.closing,
            is_active=dto.is_active,
            created_by_id=created_by_id,
        )


class FollowUpLogModel(TrackedBase):
    __tablename__ = "follow_up_logs"

    __table_args__ = (Index("idx_follow_up_logs_invoice_level", "invoice_id", "level"),)

    invoice_id: Mapped[UUID] = mapped_column(ForeignKey("invoices.id"), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    recipients: Mapped[str] = mapped_column(Text, nullable=False)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="QUEUED")
    template_id: Mapped[UUID | None] = mapped_column(nullable=True)
    template_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    message_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(nullable=True)
    sent_by_id: Mapped[UUID | None] = mapped_column(nullable=True)

    def to_dto(self):
        from billing_modules.follow_up.models import FollowUpLog, FollowUpStatus

        return FollowUpLog(
            id=self.id,
            invoice_id=self.invoice_id,
            level=self.level,
            recipients=tuple(r for r in self.recipients.split(",") if r),
            subject=self.subject,
            status=FollowUpStatus(self.status),
            template_id=self.template_id,
            template_name=self.template_name,
            message_id=self.message_id,
            error=self.error,
            sent_at=self.sent_at,
            sent_by_id=self.sent_by_id,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "FollowUpLogModel":
        model = cls(id=dto.id, created_by_id=created_by_id)
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto) -> None:
        self.invoice_id = dto.invoice_id
        self.level = dto.level
        self.recipients = ",".join(dto.recipients)
        self.subject = dto.subject
        self.status = dto.status.value
        self.template_id = dto.template_id
        self.template_name = dto.template_name
        self.message_id = dto.message_id
        self.error = dto.error
        self.sent_at = dto.sent_at
        self.sent_by_id = dto.sent_by_id
