"""
Follow-Up Domain Models (``billing_modules.follow_up.models``).

Frozen value objects for email templates, follow-up logs and the results
returned by the escalation engine.  ZERO I/O.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class TemplateType(str, Enum):
    BILLING = "BILLING"
    FOLLOW_UP = "FOLLOW_UP"


class FollowUpStatus(str, Enum):
    QUEUED = "QUEUED"
    SENT = "SENT"
    FAILED = "FAILED"


@dataclass(frozen=True)
class EmailTemplate:
    """Subject and body parts with ``{{placeholder}}`` markers."""
    id: UUID
    name: str
    template_type: TemplateType
    subject: str
    greeting: str
    body: str
    closing: str
    follow_up_level: int | None = None
    billing_entity_id: UUID | None = None
    is_active: bool = True


@dataclass(frozen=True)
class FollowUpLog:
    """One escalation email; levels per invoice are 1, 2, 3 in order."""
    id: UUID
    invoice_id: UUID
    level: int
    recipients: tuple[str, ...]
    subject: str
    status: FollowUpStatus = FollowUpStatus.QUEUED
    template_id: UUID | None = None
    template_name: str | None = None
    message_id: str | None = None
    error: str | None = None
    sent_at: datetime | None = None
    sent_by_id: UUID | None = None


@dataclass(frozen=True)
class FollowUpEligibility:
    can_send: bool
    next_level: int
    reason: str | None = None


@dataclass(frozen=True)
class FollowUpResult:
    success: bool
    level: int
    log_id: UUID | None = None
    message_id: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    text_body: str
    html_body: str
