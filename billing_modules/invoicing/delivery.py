"""
Invoice email delivery (``billing_modules.invoicing.delivery``).

Responsibility
--------------
Builds the billing email for an invoice (entity template when configured,
built-in wording otherwise), attaches the rendered PDF, hands the message
to the EmailSender and records the attempt as an EmailLog.  The invoice's
``email_status``, ``email_sent_at`` and ``email_error`` mirror the latest
attempt.

Architecture position
---------------------
**Modules layer** -- adapter between the invoice lifecycle and the
EmailSender / PdfRenderer ports.  Does not change invoice status; that is
the lifecycle's job.

Failure modes
-------------
* A PDF render failure is logged and the mail goes out without an
  attachment.
* A transport failure is recorded on the EmailLog and the invoice, and
  returned in ``DeliveryOutcome``.  Nothing is retried.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from uuid import UUID, uuid4

from billing_kernel.domain.calendar import BusinessCalendar
from billing_kernel.domain.clock import Clock
from billing_kernel.exceptions import BillingEntityNotFoundError, NoRecipientEmailError
from billing_kernel.logging_config import get_logger
from billing_modules.follow_up.models import RenderedEmail
from billing_modules.follow_up.templates import (
    placeholder_values,
    render_template,
    text_to_html,
    wrap_html,
)
from billing_modules.invoicing.models import BillingEntity, EmailLog, EmailStatus, Invoice
from billing_modules.invoicing.recipients import valid_emails
from billing_modules.ports import (
    EmailAttachment,
    EmailMessage,
    EmailSender,
    PdfRenderer,
    SendResult,
)
from billing_modules.recurring.calendar import calculate_days_overdue
from billing_modules.settings.provider import SettingsProvider

logger = get_logger("modules.invoicing.delivery")

EMAIL_DISABLED_ERROR = "Email service not configured"


def billing_subject(billing_no: str, client_name: str) -> str:
    return f"Bill No. {billing_no} | {client_name}"


def default_billing_body(
    *, client_name: str, service_type: str, period_description: str, sender_name: str
) -> str:
    return (
        "A blessed day, Beloved Client!\n\n"
        f"Please see attached Billing for the {service_type} for {client_name}, "
        f"covering {period_description}.\n\n"
        "Kindly reply to this email to confirm receipt.\n\n"
        "Also, if paid already, kindly provide a copy of proof of payment attached "
        "with your corresponding 2307.\n\n"
        "Please don't hesitate to contact us if you have any questions or concerns.\n\n"
        f"Thank you for trusting {sender_name}.\n\n"
        "GOD bless,\n\n"
        f"{sender_name} Billing Team"
    )


@dataclass(frozen=True)
class DeliveryOutcome:
    invoice: Invoice
    email_log: EmailLog | None
    success: bool
    message_id: str | None = None
    error: str | None = None


class InvoiceMailer:
    """Sends invoices through the EmailSender port."""

    def __init__(
        self,
        repository,
        sender: EmailSender,
        pdf_renderer: PdfRenderer,
        settings: SettingsProvider,
        clock: Clock,
        calendar: BusinessCalendar,
    ):
        self._repository = repository
        self._sender = sender
        self._pdf_renderer = pdf_renderer
        self._settings = settings
        self._clock = clock
        self._calendar = calendar

    def compose(self, invoice: Invoice, entity: BillingEntity) -> RenderedEmail:
        template = self._settings.get_billing_template(entity.id)
        if template is not None:
            return render_template(template, self.template_values(invoice, entity))

        due = self._calendar.to_local_date(invoice.due_date)
        text_body = default_billing_body(
            client_name=invoice.customer_name,
            service_type=(
                invoice.line_items[0].description if invoice.line_items else "Professional Services"
            ),
            period_description=f"the month of {due:%B %Y}",
            sender_name=entity.name,
        )
        return RenderedEmail(
            subject=billing_subject(invoice.billing_no, invoice.customer_name),
            text_body=text_body,
            html_body=wrap_html(text_to_html(text_body)),
        )

    def deliver(self, invoice: Invoice, actor_id: UUID) -> DeliveryOutcome:
        recipients = valid_emails(invoice.customer_emails)
        if not recipients:
            raise NoRecipientEmailError(str(invoice.id))

        entity = self._repository.get_billing_entity(invoice.billing_entity_id)
        if entity is None:
            raise BillingEntityNotFoundError(str(invoice.billing_entity_id))

        settings = self._settings.get_settings()
        rendered = self.compose(invoice, entity)
        attachment = self.render_attachment(invoice, entity, f"{invoice.billing_no}.pdf")

        log = self._repository.add_email_log(
            EmailLog(
                id=uuid4(),
                invoice_id=invoice.id,
                to_emails=recipients,
                subject=rendered.subject,
                status=EmailStatus.QUEUED,
            ),
            actor_id,
        )

        if settings.email_enabled:
            result = self.send_message(
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

        now = self._clock.now()
        if result.success:
            log = replace(log, status=EmailStatus.SENT, message_id=result.message_id, sent_at=now)
            invoice = replace(
                invoice, email_status=EmailStatus.SENT, email_sent_at=now, email_error=None
            )
            logger.info(
                "invoice_email_sent",
                extra={
                    "invoice_id": str(invoice.id),
                    "billing_no": invoice.billing_no,
                    "recipient_count": len(recipients),
                    "message_id": result.message_id,
                },
            )
        else:
            log = replace(log, status=EmailStatus.FAILED, error=result.error)
            invoice = replace(invoice, email_status=EmailStatus.FAILED, email_error=result.error)
            logger.warning(
                "invoice_email_failed",
                extra={
                    "invoice_id": str(invoice.id),
                    "billing_no": invoice.billing_no,
                    "error": result.error,
                },
            )

        log = self._repository.update_email_log(log, actor_id)
        return DeliveryOutcome(
            invoice=invoice,
            email_log=log,
            success=result.success,
            message_id=result.message_id,
            error=result.error,
        )

    def render_attachment(
        self, invoice: Invoice, entity: BillingEntity, filename: str
    ) -> EmailAttachment | None:
        """The invoice PDF, or None when rendering fails."""
        try:
            content = self._pdf_renderer.render_invoice_pdf(
                invoice, self._settings.get_branding(entity.code)
            )
        except Exception:
            logger.exception(
                "invoice_pdf_render_failed",
                extra={"invoice_id": str(invoice.id), "billing_no": invoice.billing_no},
            )
            return None
        return EmailAttachment(filename=filename, content=content)

    def send_message(self, message: EmailMessage, invoice_id: UUID) -> SendResult:
        """Hand ``message`` to the transport; a raising transport counts as a failed send."""
        try:
            return self._sender.send(message)
        except Exception as exc:
            logger.exception("email_transport_error", extra={"invoice_id": str(invoice_id)})
            return SendResult(success=False, error=str(exc) or exc.__class__.__name__)

    def template_values(self, invoice: Invoice, entity: BillingEntity) -> dict[str, str]:
        """Placeholder values for ``invoice``; dates are business-local."""
        due = self._calendar.to_local_date(invoice.due_date)
        return placeholder_values(
            invoice,
            company_name=entity.name,
            due_date=due,
            period_start=(
                self._calendar.to_local_date(invoice.period_start) if invoice.period_start else None
            ),
            period_end=(
                self._calendar.to_local_date(invoice.period_end) if invoice.period_end else None
            ),
            days_overdue=calculate_days_overdue(due, self._calendar.today(self._clock)),
        )
