"""
Follow-Up Escalation Service (``billing_modules.follow_up.service``).

Responsibility
--------------
Sends the level 1, 2 and 3 reminder emails for SENT, unpaid invoices,
records each attempt as a FollowUpLog and keeps the invoice's follow-up
counters current.

Architecture position
---------------------
**Modules layer** -- service over the BillingRepository.  Rendering and
transport go through the InvoiceMailer so follow-ups share the billing
email's attachment and error handling.

Invariants enforced
-------------------
* Levels are sent strictly in order: the only sendable level is
  ``last_follow_up_level + 1``.
* Level 3 is the ceiling whether or not follow-ups are enabled.
* The invoice's counters change only after a successful send.

Failure modes
-------------
* FollowUpNotAllowedError with an operator-facing reason when the
  invoice is not eligible or the requested level is out of order.
* MissingTemplateError when no template exists for the level.
* A transport failure is returned as ``FollowUpResult(success=False)``.
"""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID, uuid4

from billing_kernel.domain.calendar import BusinessCalendar
from billing_kernel.domain.clock import Clock
from billing_kernel.exceptions import (
    BillingEntityNotFoundError,
    FollowUpNotAllowedError,
    InvoiceNotFoundError,
    MissingTemplateError,
)
from billing_kernel.logging_config import get_logger
from billing_modules.follow_up.models import (
    FollowUpEligibility,
    FollowUpLog,
    FollowUpResult,
    FollowUpStatus,
)
from billing_modules.follow_up.templates import render_template
from billing_modules.invoicing.delivery import EMAIL_DISABLED_ERROR, InvoiceMailer
from billing_modules.invoicing.models import MAX_FOLLOW_UP_LEVEL, Invoice, InvoiceStatus
from billing_modules.invoicing.recipients import valid_emails
from billing_modules.notifications.models import AuditAction
from billing_modules.notifications.service import (
    INVOICE_ENTITY,
    AuditService,
    NotificationService,
)
from billing_modules.ports import EmailMessage, SendResult
from billing_modules.recurring.calendar import calculate_days_overdue
from billing_modules.settings.provider import SettingsProvider

logger = get_logger("modules.follow_up.service")


def can_send_follow_up(invoice: Invoice, has_email: bool) -> FollowUpEligibility:
    """Whether the next follow-up may be sent, and if not, why."""
    next_level = invoice.last_follow_up_level + 1
    if invoice.status is not InvoiceStatus.SENT:
        return FollowUpEligibility(
            False, next_level, "Invoice must be in SENT status to send follow-up"
        )
    if not invoice.follow_up_enabled:
        return FollowUpEligibility(False, next_level, "Follow-up is disabled for this invoice")
    if invoice.last_follow_up_level >= MAX_FOLLOW_UP_LEVEL:
        return FollowUpEligibility(
            False, next_level, f"Maximum follow-up level ({MAX_FOLLOW_UP_LEVEL}) reached"
        )
    if not has_email:
        return FollowUpEligibility(False, next_level, "No email address for this customer")
    return FollowUpEligibility(True, next_level)


class FollowUpService:
    def __init__(
        self,
        repository,
        clock: Clock,
        calendar: BusinessCalendar,
        settings: SettingsProvider,
        mailer: InvoiceMailer,
        audit: AuditService,
        notifications: NotificationService,
    ):
        self._repository = repository
        self._clock = clock
        self._calendar = calendar
        self._settings = settings
        self._mailer = mailer
        self._audit = audit
        self._notifications = notifications

    def eligibility(self, invoice_id: UUID) -> FollowUpEligibility:
        invoice = self._require(invoice_id)
        return can_send_follow_up(invoice, bool(valid_emails(invoice.customer_emails)))

    def send_follow_up(
        self, invoice_id: UUID, actor_id: UUID, level: int | None = None
    ) -> FollowUpResult:
        invoice = self._require(invoice_id)
        recipients = valid_emails(invoice.customer_emails)
        eligibility = can_send_follow_up(invoice, bool(recipients))
        level = eligibility.next_level if level is None else level

        if level > MAX_FOLLOW_UP_LEVEL:
            raise FollowUpNotAllowedError(
                str(invoice.id), f"Maximum follow-up level ({MAX_FOLLOW_UP_LEVEL}) reached"
            )
        if not eligibility.can_send:
            raise FollowUpNotAllowedError(str(invoice.id), eligibility.reason)
        if level != eligibility.next_level:
            raise FollowUpNotAllowedError(
                str(invoice.id),
                f"Follow-up level {level} is out of order; next level is {eligibility.next_level}",
            )

        template = self._settings.get_follow_up_template(invoice.billing_entity_id, level)
        if template is None:
            raise MissingTemplateError(level)
        entity = self._repository.get_billing_entity(invoice.billing_entity_id)
        if entity is None:
            raise BillingEntityNotFoundError(str(invoice.billing_entity_id))

        values = self._mailer.template_values(invoice, entity)
        rendered = render_template(template, values)
        attachment = self._mailer.render_attachment(
            invoice, entity, f"Invoice-{invoice.billing_no}.pdf"
        )

        log = self._repository.add_follow_up_log(
            FollowUpLog(
                id=uuid4(),
                invoice_id=invoice.id,
                level=level,
                recipients=recipients,
                subject=rendered.subject,
                template_id=template.id,
                template_name=template.name,
                sent_by_id=actor_id,
            ),
            actor_id,
        )

        settings = self._settings.get_settings()
        if settings.email_enabled:
            result = self._mailer.send_message(
                EmailMessage(
                    to=recipients,
                    subject=rendered.subject,
                    text_body=rendered.text_body,
                    html_body=rendered.html_body,
                    attachments=(attachment,) if attachment else (),
                    bcc=(settings.email_bcc_address,) if settings.email_bcc_address else (),
                    reply_to=settings.email_reply_to,
                ),
                invoice_id=invoice.id,
            )
        else:
            result = SendResult(success=False, error=EMAIL_DISABLED_ERROR)

        if not result.success:
            self._repository.update_follow_up_log(
                replace(log, status=FollowUpStatus.FAILED, error=result.error), actor_id
            )
            logger.warning(
                "follow_up_failed",
                extra={"invoice_id": str(invoice.id), "level": level, "error": result.error},
            )
            return FollowUpResult(success=False, level=level, log_id=log.id, error=result.error)

        now = self._clock.now()
        self._repository.update_follow_up_log(
            replace(log, status=FollowUpStatus.SENT, message_id=result.message_id, sent_at=now),
            actor_id,
        )
        saved = self._repository.update_invoice(
            replace(
                invoice,
                follow_up_count=invoice.follow_up_count + 1,
                last_follow_up_level=level,
                last_follow_up_at=now,
            ),
            actor_id,
        )
        days_overdue = calculate_days_overdue(
            self._calendar.to_local_date(invoice.due_date), self._calendar.today(self._clock)
        )
        self._audit.record(
            INVOICE_ENTITY,
            saved.id,
            AuditAction.INVOICE_FOLLOW_UP_SENT,
            actor_id,
            {
                "level": level,
                "to": list(recipients),
                "subject": rendered.subject,
                "daysOverdue": days_overdue,
            },
        )
        self._notifications.notify_follow_up_sent(saved, level)
        logger.info(
            "follow_up_sent",
            extra={
                "invoice_id": str(saved.id),
                "level": level,
                "days_overdue": days_overdue,
                "message_id": result.message_id,
            },
        )
        return FollowUpResult(
            success=True, level=level, log_id=log.id, message_id=result.message_id
        )

    def set_follow_up_enabled(self, invoice_id: UUID, enabled: bool, actor_id: UUID) -> Invoice:
        invoice = self._require(invoice_id)
        saved = self._repository.update_invoice(
            replace(invoice, follow_up_enabled=enabled), actor_id
        )
        self._audit.record(
            INVOICE_ENTITY,
            saved.id,
            AuditAction.FOLLOW_UP_TOGGLED,
            actor_id,
            {"enabled": enabled},
        )
        logger.info(
            "follow_up_toggled", extra={"invoice_id": str(saved.id), "enabled": enabled}
        )
        return saved

    def get_follow_up_history(self, invoice_id: UUID) -> list[FollowUpLog]:
        return self._repository.list_follow_up_logs(invoice_id)

    def _require(self, invoice_id: UUID) -> Invoice:
        invoice = self._repository.get_invoice(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice
