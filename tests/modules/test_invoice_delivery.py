"""
Tests for InvoiceMailer -- billing email composition, PDF attachment and
EmailLog bookkeeping.
"""

from uuid import uuid4

import pytest

from billing_kernel.exceptions import NoRecipientEmailError
from billing_modules.follow_up.models import EmailTemplate, TemplateType
from billing_modules.invoicing.delivery import EMAIL_DISABLED_ERROR, billing_subject
from billing_modules.invoicing.models import EmailStatus, InvoiceStatus

from tests.helpers import (
    SWEEP_INSTANT,
    TEST_ACTOR_ID,
    generate_invoice,
    seed_contract,
    seed_entity,
)


@pytest.fixture
def entity(repo):
    return seed_entity(repo, prefix="ABBA")


@pytest.fixture
def contract(repo, entity):
    return seed_contract(repo, entity)


@pytest.fixture
def invoice(orchestrator, entity, contract):
    return generate_invoice(orchestrator, entity, contract, status=InvoiceStatus.APPROVED)


class TestCompose:
    def test_subject(self):
        assert billing_subject("ABBA0000000001", "Acme") == "Bill No. ABBA0000000001 | Acme"

    def test_default_body(self, orchestrator, sender, invoice):
        orchestrator.mailer.deliver(invoice, TEST_ACTOR_ID)

        message = sender.sent[0]
        assert message.subject == "Bill No. ABBA0000000001 | Acme Trading Corp"
        assert (
            "Billing for the Payroll for Acme Trading Corp, covering the month of March 2026"
            in message.text_body
        )
        assert message.text_body.endswith("Yahshua Outsourcing Billing Team")
        assert message.html_body.startswith("<!DOCTYPE html>")

    def test_entity_billing_template(self, orchestrator, repo, sender, entity, invoice):
        repo.add_email_template(
            EmailTemplate(
                id=uuid4(),
                name="ABBA billing",
                template_type=TemplateType.BILLING,
                subject="Statement {{billingNo}}",
                greeting="Hello {{customerName}},",
                body="Amount due: {{totalAmount}}",
                closing="{{companyName}}",
                billing_entity_id=entity.id,
            ),
            TEST_ACTOR_ID,
        )

        orchestrator.mailer.deliver(invoice, TEST_ACTOR_ID)

        message = sender.sent[0]
        assert message.subject == "Statement ABBA0000000001"
        assert "Amount due: ₱11,200.00" in message.text_body


class TestDeliver:
    def test_success(self, orchestrator, repo, sender, invoice):
        outcome = orchestrator.mailer.deliver(invoice, TEST_ACTOR_ID)

        assert outcome.success is True
        assert outcome.message_id == "msg-1"
        assert outcome.invoice.email_status is EmailStatus.SENT
        assert outcome.invoice.email_sent_at == SWEEP_INSTANT
        # status changes belong to the lifecycle
        assert outcome.invoice.status is InvoiceStatus.APPROVED

        log = repo.list_email_logs(invoice.id)[0]
        assert log.status is EmailStatus.SENT
        assert log.message_id == "msg-1"
        assert log.to_emails == ("ap@acme.ph", "finance@acme.ph")

    def test_pdf_attached(self, orchestrator, sender, pdf_renderer, invoice):
        orchestrator.mailer.deliver(invoice, TEST_ACTOR_ID)

        (attachment,) = sender.sent[0].attachments
        assert attachment.filename == "ABBA0000000001.pdf"
        assert attachment.content_type == "application/pdf"
        assert attachment.content.startswith(b"%PDF")
        assert pdf_renderer.rendered[0][0] == "ABBA0000000001"

    def test_pdf_failure_sends_without_attachment(
        self, orchestrator, sender, pdf_renderer, invoice, captured_logs
    ):
        pdf_renderer.fail = True

        outcome = orchestrator.mailer.deliver(invoice, TEST_ACTOR_ID)

        assert outcome.success is True
        assert sender.sent[0].attachments == ()
        assert any(r["message"] == "invoice_pdf_render_failed" for r in captured_logs())

    def test_email_disabled(self, orchestrator, repo, sender, invoice):
        orchestrator.settings.set_setting("email.enabled", False, TEST_ACTOR_ID)

        outcome = orchestrator.mailer.deliver(invoice, TEST_ACTOR_ID)

        assert outcome.success is False
        assert outcome.error == EMAIL_DISABLED_ERROR
        assert sender.sent == []
        log = repo.list_email_logs(invoice.id)[0]
        assert log.status is EmailStatus.FAILED
        assert log.error == EMAIL_DISABLED_ERROR

    def test_transport_failure(self, orchestrator, repo, sender, invoice):
        sender.fail_with = "550 mailbox unavailable"

        outcome = orchestrator.mailer.deliver(invoice, TEST_ACTOR_ID)

        assert outcome.success is False
        assert outcome.invoice.email_status is EmailStatus.FAILED
        assert outcome.invoice.email_error == "550 mailbox unavailable"
        assert repo.list_email_logs(invoice.id)[0].status is EmailStatus.FAILED

    def test_raising_transport_counts_as_failure(self, orchestrator, sender, invoice):
        sender.raise_with = ConnectionError("connection refused")

        outcome = orchestrator.mailer.deliver(invoice, TEST_ACTOR_ID)

        assert outcome.success is False
        assert outcome.error == "connection refused"

    def test_bcc_and_reply_to(self, orchestrator, sender, invoice):
        orchestrator.settings.set_setting("email.bccAddress", "archive@yahshua.ph", TEST_ACTOR_ID)
        orchestrator.settings.set_setting("email.replyTo", "billing@yahshua.ph", TEST_ACTOR_ID)

        orchestrator.mailer.deliver(invoice, TEST_ACTOR_ID)

        message = sender.sent[0]
        assert message.bcc == ("archive@yahshua.ph",)
        assert message.reply_to == "billing@yahshua.ph"

    def test_no_recipient(self, orchestrator, repo, entity):
        contract = seed_contract(repo, entity, emails=None)
        invoice = generate_invoice(orchestrator, entity, contract, status=InvoiceStatus.APPROVED)

        with pytest.raises(NoRecipientEmailError):
            orchestrator.mailer.deliver(invoice, TEST_ACTOR_ID)
