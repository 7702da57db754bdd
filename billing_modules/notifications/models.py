"""
Notification and Audit Domain Models (``billing_modules.notifications.models``).

Frozen value objects for in-app notifications and append-only audit entries.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID


class NotificationType(str, Enum):
    INVOICE_PENDING = "INVOICE_PENDING"
    INVOICE_APPROVED = "INVOICE_APPROVED"
    INVOICE_REJECTED = "INVOICE_REJECTED"
    INVOICE_SENT = "INVOICE_SENT"
    INVOICE_PAID = "INVOICE_PAID"
    INVOICE_OVERDUE = "INVOICE_OVERDUE"
    INVOICE_FOLLOW_UP = "INVOICE_FOLLOW_UP"
    INVOICE_VOID = "INVOICE_VOID"
    SCHEDULE_PENDING = "SCHEDULE_PENDING"
    SCHEDULE_APPROVED = "SCHEDULE_APPROVED"
    SCHEDULE_REJECTED = "SCHEDULE_REJECTED"
    SYSTEM = "SYSTEM"


class AuditAction(str, Enum):
    """Types of auditable billing actions."""

    # Invoice lifecycle
    INVOICE_CREATED = "INVOICE_CREATED"
    INVOICE_AUTO_APPROVED = "INVOICE_AUTO_APPROVED"
    INVOICE_APPROVED = "INVOICE_APPROVED"
    INVOICE_REJECTED = "INVOICE_REJECTED"
    INVOICE_SENT = "INVOICE_SENT"
    INVOICE_AUTO_SENT = "INVOICE_AUTO_SENT"
    INVOICE_SEND_FAILED = "INVOICE_SEND_FAILED"
    INVOICE_VOIDED = "INVOICE_VOIDED"
    INVOICE_CANCELLED = "INVOICE_CANCELLED"
    INVOICE_PAID = "INVOICE_PAID"

    # Follow-up
    INVOICE_FOLLOW_UP_SENT = "INVOICE_FOLLOW_UP_SENT"
    FOLLOW_UP_TOGGLED = "FOLLOW_UP_TOGGLED"

    # Schedule lifecycle
    SCHEDULE_CREATED = "SCHEDULE_CREATED"
    SCHEDULE_UPDATED = "SCHEDULE_UPDATED"
    SCHEDULE_APPROVED = "SCHEDULE_APPROVED"
    SCHEDULE_REJECTED = "SCHEDULE_REJECTED"
    SCHEDULE_PAUSED = "SCHEDULE_PAUSED"
    SCHEDULE_RESUMED = "SCHEDULE_RESUMED"
    SCHEDULE_ENDED = "SCHEDULE_ENDED"

    # Contracts
    CONTRACT_NEXT_DUE_ADVANCED = "CONTRACT_NEXT_DUE_ADVANCED"


@dataclass(frozen=True)
class Notification:
    id: UUID
    type: NotificationType
    title: str
    message: str
    created_at: datetime
    entity_type: str | None = None
    entity_id: UUID | None = None
    link: str | None = None
    user_id: UUID | None = None
    is_read: bool = False


@dataclass(frozen=True)
class AuditEntry:
    id: UUID
    action: AuditAction
    entity_type: str
    entity_id: UUID
    actor_id: UUID
    occurred_at: datetime
    details: dict[str, Any] = field(default_factory=dict)
