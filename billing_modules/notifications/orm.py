"""
Notification and Audit ORM Models (``billing_modules.notifications.orm``).

Audit rows are append-only; the repository exposes no update or delete.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import Base


class NotificationModel(Base):
    __tablename__ = "notifications"

    __table_args__ = (
        Index("idx_notifications_user_read", "user_id", "is_read"),
        Index("idx_notifications_type", "type"),
    )

    type: Mapped[str] = mapped_column(String(30), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    entity_id: Mapped[UUID | None] = mapped_column(nullable=True)
    link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def to_dto(self):
        from billing_modules.notifications.models import Notification, NotificationType

        return Notification(
            id=self.id,
            type=NotificationType(self.type),
            title=self.title,
            message=self.message,
            created_at=self.created_at,
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            link=self.link,
            user_id=self.user_id,
            is_read=self.is_read,
        )

    @classmethod
    def from_dto(cls, dto) -> "NotificationModel":
        return cls(
            id=dto.id,
            type=dto.type.value,
            title=dto.title,
            message=dto.message,
            entity_type=dto.entity_type,
            entity_id=dto.entity_id,
            link=dto.link,
            user_id=dto.user_id,
            is_read=dto.is_read,
            created_at=dto.created_at,
        )


class AuditLogModel(Base):
    """
    Audit log row.

    Guarantees:
        - Append-only.
        - details is a JSON object of primitive values.
    """

    __tablename__ = "audit_logs"

    __table_args__ = (
        Index("idx_audit_logs_entity", "entity_type", "entity_id"),
        Index("idx_audit_logs_action", "action"),
        Index("idx_audit_logs_occurred", "occurred_at"),
    )

    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(nullable=False)
    actor_id: Mapped[UUID] = mapped_column(nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)
    details: Mapped[dict] = mapped_column(JSON, default=dict)

    def to_dto(self):
        from billing_modules.notifications.models import AuditAction, AuditEntry

        return AuditEntry(
            id=self.id,
            action=AuditAction(self.action),
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            actor_id=self.actor_id,
            occurred_at=self.occurred_at,
            details=dict(self.details or {}),
        )

    @classmethod
    def from_dto(cls, dto) -> "AuditLogModel":
        return cls(
            id=dto.id,
            action=dto.action.value,
            entity_type=dto.entity_type,
            entity_id=dto.entity_id,
            actor_id=dto.actor_id,
            occurred_at=dto.occurred_at,
            details=dict(dto.details),
        )
