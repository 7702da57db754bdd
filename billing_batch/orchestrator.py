"""
BillingOrchestrator -- DI container for the billing engine.

Contract:
    Wires the repository, settings, audit, notifications, generator,
    lifecycle, follow-up and sweep services around one Session.  Single
    place where all billing dependencies are composed.

Architecture: billing_batch (top-level).  This is the canonical entry
    point for running the sweep and for callers needing a fully wired
    service.

Invariants enforced:
    - Clock injection (all services receive the same Clock).
    - One BusinessCalendar, in the configured scheduler timezone.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session

from billing_kernel.domain.calendar import BusinessCalendar
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.logging_config import get_logger
from billing_modules.follow_up.service import FollowUpService
from billing_modules.invoicing.contract_billing import ContractBillingService
from billing_modules.invoicing.delivery import InvoiceMailer
from billing_modules.invoicing.generator import InvoiceGenerator
from billing_modules.invoicing.lifecycle import InvoiceLifecycleService
from billing_modules.notifications.service import AuditService, NotificationService
from billing_modules.ports import EmailSender, PdfRenderer
from billing_modules.recurring.period_guard import BillingPeriodGuard
from billing_modules.recurring.service import ScheduleService
from billing_modules.repository import SqlAlchemyBillingRepository
from billing_modules.settings.provider import SettingsProvider

from billing_batch.services.job_runs import JobRunStore
from billing_batch.services.scheduler import SweepScheduler, config_from_settings
from billing_batch.services.sweep import SYSTEM_ACTOR_ID, DailySweepJob

logger = get_logger("batch.orchestrator")


class BillingOrchestrator:
    """DI container for the billing engine.

    Contract:
        - ``from_session()`` factory creates a fully wired orchestrator.
        - Service attributes (``generator``, ``lifecycle``, ...) share one
          repository, clock and calendar.
        - ``create_scheduler()`` returns a SweepScheduler that builds a
          fresh orchestrator per sweep session.

    Non-goals:
        - Does NOT start the scheduler automatically -- caller decides.
        - Does NOT manage session lifecycle -- caller controls commits.
    """

    def __init__(
        self,
        session: Session,
        sender: EmailSender,
        pdf_renderer: PdfRenderer,
        clock: Clock | None = None,
        settings: SettingsProvider | None = None,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> None:
        self._session = session
        self._sender = sender
        self._pdf_renderer = pdf_renderer
        self.clock = clock or SystemClock()
        self.actor_id = actor_id
        self.repository = SqlAlchemyBillingRepository(session)
        self.settings = settings or SettingsProvider(self.repository, self.clock)
        self.calendar = BusinessCalendar(self.settings.get_settings().scheduler_timezone)

        self.audit = AuditService(self.repository, self.clock)
        self.notifications = NotificationService(self.repository, self.clock)
        self.generator = InvoiceGenerator(
            self.repository, self.clock, self.calendar, self.settings, self.audit
        )
        self.mailer = InvoiceMailer(
            self.repository, sender, pdf_renderer, self.settings, self.clock, self.calendar
        )
        self.lifecycle = InvoiceLifecycleService(
            self.repository, self.clock, self.mailer, self.audit, self.notifications
        )
        self.follow_up = FollowUpService(
            self.repository,
            self.clock,
            self.calendar,
            self.settings,
            self.mailer,
            self.audit,
            self.notifications,
        )
        self.schedules = ScheduleService(
            self.repository, self.clock, self.calendar, self.audit, self.notifications
        )
        self.guard = BillingPeriodGuard(self.repository, self.calendar)
        self.contracts = ContractBillingService(
            self.repository, self.generator, self.clock, self.calendar, self.audit
        )
        self.job_runs = JobRunStore(session)
        self.sweep_job = DailySweepJob(
            self.repository,
            self.job_runs,
            self.generator,
            self.lifecycle,
            self.guard,
            self.schedules,
            self.contracts,
            self.clock,
            self.calendar,
            actor_id=actor_id,
        )

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_session(
        cls,
        session: Session,
        sender: EmailSender,
        pdf_renderer: PdfRenderer,
        clock: Clock | None = None,
        settings_file: Path | str | None = None,
        actor_id: UUID = SYSTEM_ACTOR_ID,
    ) -> BillingOrchestrator:
        """Create a fully wired orchestrator, reading settings from the
        database and, when given, a YAML settings file."""
        effective_clock = clock or SystemClock()
        repository = SqlAlchemyBillingRepository(session)
        settings = SettingsProvider(
            repository, effective_clock, settings_file=settings_file
        )
        return cls(
            session=session,
            sender=sender,
            pdf_renderer=pdf_renderer,
            clock=effective_clock,
            settings=settings,
            actor_id=actor_id,
        )

    # -------------------------------------------------------------------------
    # Scheduler
    # -------------------------------------------------------------------------

    def create_scheduler(
        self,
        session_factory: Callable[[], Session],
        poll_interval_seconds: int = 30,
        settings_file: Path | str | None = None,
    ) -> SweepScheduler:
        """Create a SweepScheduler configured from the current settings.

        Args:
            session_factory: Callable returning a new session per sweep.
            poll_interval_seconds: Polling interval (default 30s).
            settings_file: YAML settings file for the per-sweep orchestrators.
        """
        clock = self.clock
        sender = self._sender
        pdf_renderer = self._pdf_renderer
        actor_id = self.actor_id

        def job_factory(session: Session) -> DailySweepJob:
            return BillingOrchestrator.from_session(
                session,
                sender,
                pdf_renderer,
                clock=clock,
                settings_file=settings_file,
                actor_id=actor_id,
            ).sweep_job

        config = config_from_settings(self.settings.get_settings())
        logger.info(
            "scheduler_created",
            extra={
                "cron_expression": config.cron_expression,
                "timezone": config.timezone,
                "enabled": config.enabled,
            },
        )
        return SweepScheduler(
            session_factory=session_factory,
            job_factory=job_factory,
            config=config,
            clock=clock,
            poll_interval_seconds=poll_interval_seconds,
        )

    @property
    def session(self) -> Session:
        return self._session
