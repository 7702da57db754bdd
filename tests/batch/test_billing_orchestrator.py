"""
Tests for BillingOrchestrator -- service wiring and settings-file support.
"""

from decimal import Decimal
from uuid import UUID

import pytest
import yaml

from billing_batch.orchestrator import BillingOrchestrator
from billing_batch.services.sweep import SYSTEM_ACTOR_ID
from tests.helpers import TEST_ACTOR_ID, generate_invoice, seed_contract, seed_entity


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "billing.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "tax": {"vatRate": "0.10"},
                "scheduler": {"timezone": "Asia/Tokyo", "cronExpression": "0 7 * * 1-5"},
            }
        )
    )
    return path


class TestWiring:
    def test_services_share_repository_and_clock(self, orchestrator, session, clock):
        assert orchestrator.session is session
        assert orchestrator.clock is clock
        assert orchestrator.actor_id == SYSTEM_ACTOR_ID
        assert orchestrator.calendar.timezone_name == "Asia/Manila"
        assert orchestrator.repository.get_billing_entity(UUID(int=0)) is None

    def test_services_see_each_others_writes(self, orchestrator, repo):
        entity = seed_entity(orchestrator.repository)
        contract = seed_contract(orchestrator.repository, entity)

        invoice = generate_invoice(orchestrator, entity, contract)

        assert orchestrator.lifecycle.get(invoice.id) == invoice
        # same session as the test repository
        assert repo.get_invoice(invoice.id).billing_no == invoice.billing_no

    def test_custom_actor(self, session, sender, pdf_renderer, clock):
        orchestrator = BillingOrchestrator.from_session(
            session, sender, pdf_renderer, clock=clock, actor_id=TEST_ACTOR_ID
        )

        job_run = orchestrator.sweep_job.run()

        assert job_run.actor_id == TEST_ACTOR_ID


class TestSettingsFile:
    def test_file_values_reach_services(
        self, session, sender, pdf_renderer, clock, settings_file
    ):
        orchestrator = BillingOrchestrator.from_session(
            session, sender, pdf_renderer, clock=clock, settings_file=settings_file
        )
        entity = seed_entity(orchestrator.repository)
        contract = seed_contract(orchestrator.repository, entity)

        invoice = generate_invoice(orchestrator, entity, contract)

        assert orchestrator.calendar.timezone_name == "Asia/Tokyo"
        assert invoice.vat_amount == Decimal("1000.00")
        assert invoice.gross_amount == Decimal("11000.00")

    def test_scheduler_config_from_file(
        self, session, session_factory, sender, pdf_renderer, clock, settings_file
    ):
        orchestrator = BillingOrchestrator.from_session(
            session, sender, pdf_renderer, clock=clock, settings_file=settings_file
        )

        scheduler = orchestrator.create_scheduler(session_factory, settings_file=settings_file)

        config = scheduler.status().config
        assert config.cron_expression == "0 7 * * 1-5"
        assert config.timezone == "Asia/Tokyo"
        assert config.enabled is True

    def test_database_overrides_file(self, session, sender, pdf_renderer, clock, settings_file):
        orchestrator = BillingOrchestrator.from_session(
            session, sender, pdf_renderer, clock=clock, settings_file=settings_file
        )
        orchestrator.settings.set_setting("tax.vatRate", "0.12", TEST_ACTOR_ID)

        assert orchestrator.settings.get_settings().vat_rate == Decimal("0.12")
