"""
Notification and Audit Services (``billing_modules.notifications.service``).

Responsibility
--------------
``NotificationService`` builds the in-app notifications raised by the
invoice and schedule lifecycles.  ``AuditService`` appends audit entries.
Both write through the BillingRepository and stamp times from the injected
Clock.

Architecture position
---------------------
**Modules layer** -- stateless services over the repository port.

Invariants enforced
-------------------
* Audit entries are append-only.
* Audit ``details`` are JSON-safe: Decimal, UUID, datetime and Enum values
  are stringified before they reach the repository.
* A notification without a ``user_id`` is a broadcast to every approver.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from billing_kernel.domain.clock import Clock
from billing_kernel.logging_config import get_logger
from billing_modules.notifications.models import (
    AuditAction,
    AuditEntry,
    Notification,
    NotificationType,
)

logger = get_logger("modules.notifications")

INVOICE_ENTITY = "Invoice"
SCHEDULE_ENTITY = "ScheduledBilling"
CONTRACT_ENTITY = "Contract"

_PAYMENT_METHOD_LABELS = {
    "CASH": "Cash",
    "BANK_TRANSFER": "Bank Transfer",
    "CHECK": "Check",
    "HITPAY": "HitPay",
}


def _json_safe(value: Any) -> Any:
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_json_safe(v) for v in value]
    return value


def _invoice_label(invoice) -> str:
    return invoice.billing_no or str(invoice.id)[:8]


class AuditService:
    """Append-only audit trail."""

    def __init__(self, repository, clock: Clock):
        self._repository = repository
        self._clock = clock

    def record(
        self,
        entity_type: str,
        entity_id: UUID,
        action: AuditAction,
        actor_id: UUID,
        details: dict[str, Any] | None = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            id=uuid4(),
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            details=_json_safe(details or {}),
        )
        saved = self._repository.add_audit_entry(entry)
        logger.info(
            "audit_recorded",
            extra={
                "action": action.value,
                "entity_type": entity_type,
                "entity_id": str(entity_id),
            },
        )
        return saved

    def history(self, entity_id: UUID) -> list[AuditEntry]:
        return self._repository.list_audit_entries(entity_id=entity_id)


class NotificationService:
    """In-app notifications for invoice and schedule events."""

    def __init__(self, repository, clock: Clock):
        self._repository = repository
        self._clock = clock

    def notify(
        self,
        type: NotificationType,
        title: str,
        message: str,
        *,
        entity_type: str | None = None,
        entity_id: UUID | None = None,
        link: str | None = None,
        user_id: UUID | None = None,
    ) -> Notification:
        notification = Notification(
            id=uuid4(),
            type=type,
            title=title,
            message=message,
            created_at=self._clock.now(),
            entity_type=entity_type,
            entity_id=entity_id,
            link=link,
            user_id=user_id,
        )
        saved = self._repository.add_notification(notification)
        logger.debug(
            "notification_created",
            extra={"type": type.value, "entity_id": str(entity_id) if entity_id else None},
        )
        return saved

    # -------------------------------------------------------------------------
    # Invoice events
    # -------------------------------------------------------------------------

    def notify_invoice_pending(self, invoice) -> Notification:
        return self.notify(
            NotificationType.INVOICE_PENDING,
            "Invoice Pending Approval",
            f"Invoice {_invoice_label(invoice)} for {invoice.customer_name} needs approval",
            entity_type=INVOICE_ENTITY,
            entity_id=invoice.id,
            link="/dashboard/pending",
        )

    def notify_annual_renewal_pending(self, invoice) -> Notification:
        return self.notify(
            NotificationType.INVOICE_PENDING,
            "Annual Invoice Pending Renewal Review",
            f"Invoice {_invoice_label(invoice)} for {invoice.customer_name} requires "
            "approval. Please review contract renewal before sending.",
            entity_type=INVOICE_ENTITY,
            entity_id=invoice.id,
            link="/dashboard/pending",
        )

    def notify_invoice_approved(self, invoice, approver: str | None = None) -> Notification:
        by = f" by {approver}" if approver else ""
        return self.notify(
            NotificationType.INVOICE_APPROVED,
            "Invoice Approved",
            f"Invoice {_invoice_label(invoice)} for {invoice.customer_name} was approved{by}",
            entity_type=INVOICE_ENTITY,
            entity_id=invoice.id,
            link="/dashboard/approved",
        )

    def notify_invoice_rejected(
        self, invoice, reason: str | None = None, rejector: str | None = None
    ) -> Notification:
        by = f" by {rejector}" if rejector else ""
        reason_text = f": {reason}" if reason else ""
        return self.notify(
            NotificationType.INVOICE_REJECTED,
            "Invoice Rejected",
            f"Invoice {_invoice_label(invoice)} for {invoice.customer_name} "
            f"was rejected{by}{reason_text}",
            entity_type=INVOICE_ENTITY,
            entity_id=invoice.id,
            link="/dashboard/rejected",
        )

    def notify_invoice_sent(self, invoice) -> Notification:
        return self.notify(
            NotificationType.INVOICE_SENT,
            "Invoice Sent",
            f"Invoice {_invoice_label(invoice)} was sent to {invoice.customer_name} "
            f"({invoice.primary_email})",
            entity_type=INVOICE_ENTITY,
            entity_id=invoice.id,
            link="/dashboard/invoices",
        )

    def notify_invoice_overdue(self, invoice, days_overdue: int) -> Notification:
        return self.notify(
            NotificationType.INVOICE_OVERDUE,
            "Invoice Overdue",
            f"Invoice {_invoice_label(invoice)} for {invoice.customer_name} "
            f"is {days_overdue} days overdue",
            entity_type=INVOICE_ENTITY,
            entity_id=invoice.id,
            link="/dashboard/invoices",
        )

    def notify_invoice_paid(self, invoice) -> Notification:
        method = invoice.payment_method.value if invoice.payment_method else ""
        label = _PAYMENT_METHOD_LABELS.get(method, method)
        return self.notify(
            NotificationType.INVOICE_PAID,
            "Invoice Paid",
            f"Invoice {_invoice_label(invoice)} for {invoice.customer_name} "
            f"was marked as paid ({label})",
            entity_type=INVOICE_ENTITY,
            entity_id=invoice.id,
            link="/dashboard/invoices",
        )

    def notify_invoice_void(self, invoice, reason: str, voider: str | None = None) -> Notification:
        by = f" by {voider}" if voider else ""
        return self.notify(
            NotificationType.INVOICE_VOID,
            "Invoice Voided",
            f"Invoice {_invoice_label(invoice)} has been voided{by}. Reason: {reason}",
            entity_type=INVOICE_ENTITY,
            entity_id=invoice.id,
            link=f"/dashboard/invoices/{invoice.id}",
        )

    def notify_follow_up_sent(self, invoice, level: int) -> Notification:
        return self.notify(
            NotificationType.INVOICE_FOLLOW_UP,
            f"Follow-up {level} Sent",
            f"Follow-up email (level {level}) sent for invoice {_invoice_label(invoice)} "
            f"to {invoice.customer_name}",
            entity_type=INVOICE_ENTITY,
            entity_id=invoice.id,
            link="/dashboard/invoices",
        )

    # -------------------------------------------------------------------------
    # Schedule events
    # -------------------------------------------------------------------------

    def notify_schedule_pending(self, schedule, company_name: str) -> Notification:
        return self.notify(
            NotificationType.SCHEDULE_PENDING,
            "Schedule Pending Approval",
            f"Scheduled billing for {company_name} needs approval",
            entity_type=SCHEDULE_ENTITY,
            entity_id=schedule.id,
            link="/scheduled-billings",
        )

    def notify_schedule_approved(
        self, schedule, company_name: str, user_id: UUID | None = None
    ) -> Notification:
        return self.notify(
            NotificationType.SCHEDULE_APPROVED,
            "Schedule Approved",
            f"Your scheduled billing for {company_name} has been approved",
            entity_type=SCHEDULE_ENTITY,
            entity_id=schedule.id,
            link="/scheduled-billings",
            user_id=user_id,
        )

    def notify_schedule_rejected(
        self, schedule, company_name: str, reason: str, user_id: UUID | None = None
    ) -> Notification:
        return self.notify(
            NotificationType.SCHEDULE_REJECTED,
            "Schedule Rejected",
            f"Your scheduled billing for {company_name} was rejected: {reason}",
            entity_type=SCHEDULE_ENTITY,
            entity_id=schedule.id,
            link="/scheduled-billings",
            user_id=user_id,
        )

    def notify_system(self, title: str, message: str) -> Notification:
        return self.notify(NotificationType.SYSTEM, title, message)
