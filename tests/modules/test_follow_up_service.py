"""
Tests for FollowUpService -- eligibility, level ordering and the counters
kept on the invoice.
"""

from dataclasses import replace

import pytest

from billing_kernel.exceptions import FollowUpNotAllowedError, MissingTemplateError
from billing_modules.follow_up.models import FollowUpStatus
from billing_modules.invoicing.delivery import EMAIL_DISABLED_ERROR
from billing_modules.invoicing.models import InvoiceStatus
from billing_modules.notifications.models import AuditAction, NotificationType

from tests.helpers import (
    SWEEP_INSTANT,
    TEST_ACTOR_ID,
    generate_invoice,
    seed_contract,
    seed_entity,
    seed_follow_up_templates,
)


@pytest.fixture
def entity(repo):
    return seed_entity(repo, prefix="ABBA")


@pytest.fixture
def contract(repo, entity):
    return seed_contract(repo, entity)


@pytest.fixture
def templates(repo):
    return seed_follow_up_templates(repo)


@pytest.fixture
def sent_invoice(orchestrator, entity, contract):
    # due 2026-03-01, so 14 days overdue on the business date
    return generate_invoice(orchestrator, entity, contract, status=InvoiceStatus.SENT)


# =============================================================================
# Eligibility
# =============================================================================


class TestEligibility:
    def test_sent_invoice_is_eligible(self, orchestrator, sent_invoice):
        eligibility = orchestrator.follow_up.eligibility(sent_invoice.id)

        assert eligibility.can_send is True
        assert eligibility.next_level == 1
        assert eligibility.reason is None

    @pytest.mark.parametrize("status", [InvoiceStatus.PENDING, InvoiceStatus.APPROVED])
    def test_unsent_invoice(self, orchestrator, entity, contract, status):
        invoice = generate_invoice(orchestrator, entity, contract, status=status)

        eligibility = orchestrator.follow_up.eligibility(invoice.id)

        assert eligibility.can_send is False
        assert eligibility.reason == "Invoice must be in SENT status to send follow-up"

    def test_disabled(self, orchestrator, repo, sent_invoice):
        orchestrator.follow_up.set_follow_up_enabled(sent_invoice.id, False, TEST_ACTOR_ID)

        eligibility = orchestrator.follow_up.eligibility(sent_invoice.id)

        assert eligibility.reason == "Follow-up is disabled for this invoice"
        assert repo.list_audit_entries(
            entity_id=sent_invoice.id, action=AuditAction.FOLLOW_UP_TOGGLED
        )

    def test_no_email(self, orchestrator, repo, sent_invoice):
        repo.update_invoice(replace(sent_invoice, customer_emails=()), TEST_ACTOR_ID)

        eligibility = orchestrator.follow_up.eligibility(sent_invoice.id)

        assert eligibility.reason == "No email address for this customer"


# =============================================================================
# Sending
# =============================================================================


class TestSendFollowUp:
    def test_first_follow_up(self, orchestrator, repo, sender, templates, sent_invoice):
        result = orchestrator.follow_up.send_follow_up(sent_invoice.id, TEST_ACTOR_ID)

        assert result.success is True
        assert result.level == 1

        message = sender.sent[-1]
        assert message.subject == "Reminder 1: Bill No. ABBA0000000001"
        assert "is 14 days overdue" in message.text_body
        assert message.attachments[0].filename == "Invoice-ABBA0000000001.pdf"

        invoice = orchestrator.lifecycle.get(sent_invoice.id)
        assert invoice.follow_up_count == 1
        assert invoice.last_follow_up_level == 1
        assert invoice.last_follow_up_at == SWEEP_INSTANT

        (log,) = orchestrator.follow_up.get_follow_up_history(sent_invoice.id)
        assert log.status is FollowUpStatus.SENT
        assert log.template_id == templates[0].id
        assert log.id == result.log_id

        entry = repo.list_audit_entries(
            entity_id=sent_invoice.id, action=AuditAction.INVOICE_FOLLOW_UP_SENT
        )[0]
        assert entry.details["daysOverdue"] == 14
        notification = repo.list_notifications(type=NotificationType.INVOICE_FOLLOW_UP)[0]
        assert notification.title == "Follow-up 1 Sent"

    def test_levels_in_order_until_ceiling(self, orchestrator, templates, sent_invoice):
        levels = [
            orchestrator.follow_up.send_follow_up(sent_invoice.id, TEST_ACTOR_ID).level
            for _ in range(3)
        ]
        assert levels == [1, 2, 3]

        with pytest.raises(FollowUpNotAllowedError, match=r"Maximum follow-up level \(3\) reached"):
            orchestrator.follow_up.send_follow_up(sent_invoice.id, TEST_ACTOR_ID)

        history = orchestrator.follow_up.get_follow_up_history(sent_invoice.id)
        assert sorted(log.level for log in history) == [1, 2, 3]

    def test_out_of_order_level(self, orchestrator, templates, sent_invoice):
        with pytest.raises(FollowUpNotAllowedError) as exc_info:
            orchestrator.follow_up.send_follow_up(sent_invoice.id, TEST_ACTOR_ID, level=3)

        assert exc_info.value.reason == "Follow-up level 3 is out of order; next level is 1"

    def test_level_above_ceiling(self, orchestrator, templates, sent_invoice):
        with pytest.raises(FollowUpNotAllowedError, match="Maximum follow-up level"):
            orchestrator.follow_up.send_follow_up(sent_invoice.id, TEST_ACTOR_ID, level=4)

    def test_disabled_invoice(self, orchestrator, templates, sent_invoice):
        orchestrator.follow_up.set_follow_up_enabled(sent_invoice.id, False, TEST_ACTOR_ID)

        with pytest.raises(FollowUpNotAllowedError, match="disabled"):
            orchestrator.follow_up.send_follow_up(sent_invoice.id, TEST_ACTOR_ID)

    def test_paid_invoice(self, orchestrator, templates, sent_invoice):
        orchestrator.lifecycle.mark_paid(sent_invoice.id, TEST_ACTOR_ID, "11200.00", "CASH")

        with pytest.raises(FollowUpNotAllowedError, match="SENT status"):
            orchestrator.follow_up.send_follow_up(sent_invoice.id, TEST_ACTOR_ID)

    def test_missing_template(self, orchestrator, sent_invoice):
        with pytest.raises(MissingTemplateError) as exc_info:
            orchestrator.follow_up.send_follow_up(sent_invoice.id, TEST_ACTOR_ID)

        assert exc_info.value.level == 1

    def test_transport_failure_leaves_counters(self, orchestrator, sender, templates, sent_invoice):
        sender.fail_with = "Mailbox full"

        result = orchestrator.follow_up.send_follow_up(sent_invoice.id, TEST_ACTOR_ID)

        assert result.success is False
        assert result.error == "Mailbox full"
        invoice = orchestrator.lifecycle.get(sent_invoice.id)
        assert invoice.follow_up_count == 0
        assert invoice.last_follow_up_level == 0
        (log,) = orchestrator.follow_up.get_follow_up_history(sent_invoice.id)
        assert log.status is FollowUpStatus.FAILED
        assert log.error == "Mailbox full"

    def test_email_disabled(self, orchestrator, templates, sent_invoice):
        orchestrator.settings.set_setting("email.enabled", "false", TEST_ACTOR_ID)

        result = orchestrator.follow_up.send_follow_up(sent_invoice.id, TEST_ACTOR_ID)

        assert result.success is False
        assert result.error == EMAIL_DISABLED_ERROR

    def test_failed_level_can_be_retried(self, orchestrator, sender, templates, sent_invoice):
        sender.fail_with = "Mailbox full"
        orchestrator.follow_up.send_follow_up(sent_invoice.id, TEST_ACTOR_ID)

        sender.fail_with = None
        result = orchestrator.follow_up.send_follow_up(sent_invoice.id, TEST_ACTOR_ID)

        assert result.success is True
        assert result.level == 1
