"""
Invoice Lifecycle Service (``billing_modules.invoicing.lifecycle``).

Responsibility
--------------
Drives invoices through ``INVOICE_WORKFLOW``: approve, reject, send, void,
mark paid and cancel.  Also holds the automation policy the daily sweep
applies to freshly generated scheduled invoices.

Architecture position
---------------------
**Modules layer** -- service over the BillingRepository and the
InvoiceMailer.  Every status change is validated against the workflow
table before anything is written.

Invariants enforced
-------------------
* Only PENDING invoices are approved or rejected; only APPROVED invoices
  are sent; only SENT invoices are paid.
* A failed send leaves the invoice APPROVED with ``email_status=FAILED``.
* Annual invoices are never released automatically; they wait for a
  human renewal review.
* Voiding or cancelling frees the billing period for regeneration.

Failure modes
-------------
* InvoiceNotFoundError for an unknown id.
* InvalidInvoiceTransitionError for an action the status does not allow.
* MissingReasonError, InvalidAmountError, InvalidPaymentMethodError,
  NoRecipientEmailError for bad input.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import assert_never
from uuid import UUID

from billing_kernel.db.types import to_decimal
from billing_kernel.domain.clock import Clock
from billing_kernel.exceptions import (
    EmailDeliveryError,
    InvalidAmountError,
    InvalidInvoiceTransitionError,
    InvalidPaymentMethodError,
    InvoiceNotFoundError,
    MissingReasonError,
    NoRecipientEmailError,
)
from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.delivery import InvoiceMailer
from billing_modules.invoicing.models import Invoice, InvoiceStatus, PaymentMethod
from billing_modules.invoicing.recipients import valid_emails
from billing_modules.invoicing.workflows import resolve_transition
from billing_modules.notifications.models import AuditAction
from billing_modules.notifications.service import (
    INVOICE_ENTITY,
    AuditService,
    NotificationService,
)
from billing_modules.recurring.calendar import BillingFrequency
from billing_modules.recurring.models import ScheduledBilling

logger = get_logger("modules.invoicing.lifecycle")


def auto_release_allowed(frequency: BillingFrequency) -> bool:
    """Whether invoices of ``frequency`` may be auto-approved and auto-sent."""
    match frequency:
        case BillingFrequency.MONTHLY | BillingFrequency.QUARTERLY | BillingFrequency.CUSTOM:
            return True
        case BillingFrequency.ANNUALLY:
            return False
        case _:
            assert_never(frequency)


class AutoPolicyDecision(str, Enum):
    AUTO_SENT = "AUTO_SENT"
    SEND_FAILED = "SEND_FAILED"
    APPROVED_NOT_SENT = "APPROVED_NOT_SENT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    PENDING_RENEWAL_REVIEW = "PENDING_RENEWAL_REVIEW"


@dataclass(frozen=True)
class AutoPolicyOutcome:
    decision: AutoPolicyDecision
    invoice: Invoice
    error: str | None = None

    @property
    def awaiting_approval(self) -> bool:
        return self.decision in (
            AutoPolicyDecision.PENDING_APPROVAL,
            AutoPolicyDecision.PENDING_RENEWAL_REVIEW,
        )


@dataclass(frozen=True)
class SendOutcome:
    invoice: Invoice
    success: bool
    message_id: str | None = None
    error: str | None = None

    def raise_for_status(self) -> None:
        if not self.success:
            raise EmailDeliveryError(str(self.invoice.id), self.error or "unknown error")


class InvoiceLifecycleService:
    """Status transitions for invoices."""

    def __init__(
        self,
        repository,
        clock: Clock,
        mailer: InvoiceMailer,
        audit: AuditService,
        notifications: NotificationService,
    ):
        self._repository = repository
        self._clock = clock
        self._mailer = mailer
        self._audit = audit
        self._notifications = notifications

    # -------------------------------------------------------------------------
    # Approval
    # -------------------------------------------------------------------------

    def approve(
        self, invoice_id: UUID, actor_id: UUID, approver_name: str | None = None
    ) -> Invoice:
        invoice = self._require(invoice_id)
        status = self._next_status(invoice, "approve")
        saved = self._repository.update_invoice(
            replace(
                invoice,
                status=status,
                approved_by_id=actor_id,
                approved_at=self._clock.now(),
            ),
            actor_id,
        )
        self._audit.record(
            INVOICE_ENTITY,
            saved.id,
            AuditAction.INVOICE_APPROVED,
            actor_id,
            {"billingNo": saved.billing_no},
        )
        self._notifications.notify_invoice_approved(saved, approver_name)
        logger.info(
            "invoice_approved",
            extra={"invoice_id": str(saved.id), "billing_no": saved.billing_no},
        )
        return saved

    def reject(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        reason: str,
        rejector_name: str | None = None,
    ) -> Invoice:
        invoice = self._require(invoice_id)
        status = self._next_status(invoice, "reject", reason)
        saved = self._repository.update_invoice(
            replace(
                invoice,
                status=status,
                rejected_by_id=actor_id,
                rejected_at=self._clock.now(),
                rejection_reason=reason.strip(),
            ),
            actor_id,
        )
        self._audit.record(
            INVOICE_ENTITY,
            saved.id,
            AuditAction.INVOICE_REJECTED,
            actor_id,
            {"billingNo": saved.billing_no, "reason": saved.rejection_reason},
        )
        self._notifications.notify_invoice_rejected(saved, saved.rejection_reason, rejector_name)
        logger.info(
            "invoice_rejected",
            extra={"invoice_id": str(saved.id), "billing_no": saved.billing_no},
        )
        return saved

    # -------------------------------------------------------------------------
    # Delivery
    # -------------------------------------------------------------------------

    def send(self, invoice_id: UUID, actor_id: UUID, automated: bool = False) -> SendOutcome:
        """
        Email an APPROVED invoice and mark it SENT.

        A transport failure is not raised: the invoice stays APPROVED, the
        failure is recorded on it and returned.  Call
        ``raise_for_status()`` on the outcome to turn it into an
        EmailDeliveryError.
        """
        invoice = self._require(invoice_id)
        status = self._next_status(invoice, "send")
        if not valid_emails(invoice.customer_emails):
            raise NoRecipientEmailError(str(invoice.id))

        delivery = self._mailer.deliver(invoice, actor_id)
        if not delivery.success:
            saved = self._repository.update_invoice(delivery.invoice, actor_id)
            self._audit.record(
                INVOICE_ENTITY,
                saved.id,
                AuditAction.INVOICE_SEND_FAILED,
                actor_id,
                {"billingNo": saved.billing_no, "error": delivery.error, "automated": automated},
            )
            return SendOutcome(invoice=saved, success=False, error=delivery.error)

        saved = self._repository.update_invoice(
            replace(delivery.invoice, status=status, sent_at=self._clock.now()),
            actor_id,
        )
        self._audit.record(
            INVOICE_ENTITY,
            saved.id,
            AuditAction.INVOICE_AUTO_SENT if automated else AuditAction.INVOICE_SENT,
            actor_id,
            {
                "billingNo": saved.billing_no,
                "to": list(saved.customer_emails),
                "messageId": delivery.message_id,
            },
        )
        self._notifications.notify_invoice_sent(saved)
        logger.info(
            "invoice_sent",
            extra={
                "invoice_id": str(saved.id),
                "billing_no": saved.billing_no,
                "automated": automated,
            },
        )
        return SendOutcome(invoice=saved, success=True, message_id=delivery.message_id)

    # -------------------------------------------------------------------------
    # Closing states
    # -------------------------------------------------------------------------

    def void(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        reason: str,
        voider_name: str | None = None,
    ) -> Invoice:
        invoice = self._require(invoice_id)
        status = self._next_status(invoice, "void", reason)
        saved = self._repository.update_invoice(
            replace(
                invoice,
                status=status,
                voided_by_id=actor_id,
                voided_at=self._clock.now(),
                void_reason=reason.strip(),
            ),
            actor_id,
        )
        self._audit.record(
            INVOICE_ENTITY,
            saved.id,
            AuditAction.INVOICE_VOIDED,
            actor_id,
            {
                "billingNo": saved.billing_no,
                "previousStatus": invoice.status,
                "reason": saved.void_reason,
            },
        )
        self._notifications.notify_invoice_void(saved, saved.void_reason, voider_name)
        logger.info(
            "invoice_voided",
            extra={
                "invoice_id": str(saved.id),
                "billing_no": saved.billing_no,
                "previous_status": invoice.status.value,
            },
        )
        return saved

    def cancel(self, invoice_id: UUID, actor_id: UUID, reason: str) -> Invoice:
        invoice = self._require(invoice_id)
        status = self._next_status(invoice, "cancel", reason)
        saved = self._repository.update_invoice(
            replace(
                invoice,
                status=status,
                cancelled_at=self._clock.now(),
                cancel_reason=reason.strip(),
            ),
            actor_id,
        )
        self._audit.record(
            INVOICE_ENTITY,
            saved.id,
            AuditAction.INVOICE_CANCELLED,
            actor_id,
            {"billingNo": saved.billing_no, "reason": saved.cancel_reason},
        )
        logger.info("invoice_cancelled", extra={"invoice_id": str(saved.id)})
        return saved

    def mark_paid(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        amount: Decimal,
        method: PaymentMethod | str,
        reference: str | None = None,
        paid_at: datetime | None = None,
    ) -> Invoice:
        paid_amount = to_decimal(amount)
        if paid_amount <= 0:
            raise InvalidAmountError("paid_amount", amount)
        try:
            payment_method = PaymentMethod(method)
        except ValueError:
            raise InvalidPaymentMethodError(str(method)) from None

        invoice = self._require(invoice_id)
        status = self._next_status(invoice, "mark_paid")
        saved = self._repository.update_invoice(
            replace(
                invoice,
                status=status,
                paid_amount=paid_amount,
                payment_method=payment_method,
                payment_reference=reference,
                paid_at=paid_at or self._clock.now(),
            ),
            actor_id,
        )
        self._audit.record(
            INVOICE_ENTITY,
            saved.id,
            AuditAction.INVOICE_PAID,
            actor_id,
            {
                "billingNo": saved.billing_no,
                "amount": paid_amount,
                "method": payment_method,
                "reference": reference,
            },
        )
        self._notifications.notify_invoice_paid(saved)
        logger.info(
            "invoice_paid",
            extra={
                "invoice_id": str(saved.id),
                "amount": str(paid_amount),
                "method": payment_method.value,
            },
        )
        return saved

    # -------------------------------------------------------------------------
    # Automation
    # -------------------------------------------------------------------------

    def apply_auto_policy(
        self, invoice: Invoice, schedule: ScheduledBilling, actor_id: UUID
    ) -> AutoPolicyOutcome:
        """Decide what happens to a freshly generated scheduled invoice."""
        return self.release(invoice, schedule.frequency, schedule.auto_send_enabled, actor_id)

    def release(
        self,
        invoice: Invoice,
        frequency: BillingFrequency,
        auto_send_enabled: bool,
        actor_id: UUID,
    ) -> AutoPolicyOutcome:
        """
        Annual invoices stay PENDING for renewal review.  Other PENDING
        invoices raise an approval notification.  APPROVED invoices are
        sent when ``auto_send_enabled``.
        """
        if not auto_release_allowed(frequency):
            self._notifications.notify_annual_renewal_pending(invoice)
            return AutoPolicyOutcome(AutoPolicyDecision.PENDING_RENEWAL_REVIEW, invoice)

        if invoice.status is InvoiceStatus.PENDING:
            self._notifications.notify_invoice_pending(invoice)
            return AutoPolicyOutcome(AutoPolicyDecision.PENDING_APPROVAL, invoice)

        if invoice.status is not InvoiceStatus.APPROVED or not auto_send_enabled:
            return AutoPolicyOutcome(AutoPolicyDecision.APPROVED_NOT_SENT, invoice)

        try:
            outcome = self.send(invoice.id, actor_id, automated=True)
        except NoRecipientEmailError as exc:
            logger.warning(
                "invoice_auto_send_skipped",
                extra={"invoice_id": str(invoice.id), "error": str(exc)},
            )
            return AutoPolicyOutcome(AutoPolicyDecision.SEND_FAILED, invoice, str(exc))

        if outcome.success:
            return AutoPolicyOutcome(AutoPolicyDecision.AUTO_SENT, outcome.invoice)
        return AutoPolicyOutcome(AutoPolicyDecision.SEND_FAILED, outcome.invoice, outcome.error)

    def get(self, invoice_id: UUID) -> Invoice:
        return self._require(invoice_id)

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _require(self, invoice_id: UUID) -> Invoice:
        invoice = self._repository.get_invoice(invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def _next_status(
        self, invoice: Invoice, action: str, reason: str | None = None
    ) -> InvoiceStatus:
        transition = resolve_transition(invoice.status, action)
        if transition is None:
            logger.warning(
                "invoice_transition_rejected",
                extra={
                    "invoice_id": str(invoice.id),
                    "status": invoice.status.value,
                    "action": action,
                },
            )
            raise InvalidInvoiceTransitionError(str(invoice.id), invoice.status.value, action)
        if transition.requires_reason and not (reason and reason.strip()):
            raise MissingReasonError(action)
        return InvoiceStatus(transition.to_state)
