"""
SweepScheduler -- In-process cron scheduler for the daily sweep.

Contract:
    Polls on a configurable interval, fires the sweep when the injected
    clock reaches the next fire time computed by ``next_fire_time()``
    (pure), and keeps last/next run state on the instance.

Architecture: billing_batch/services.  Uses billing_batch.domain.schedule
    for pure evaluation and DailySweepJob for execution.

Invariants enforced:
    - All timestamps from injected Clock.
    - Cron evaluation is pure (next_fire_time).
    - At most one sweep executes per scheduler instance at a time.
    - Graceful shutdown (stop signal is honoured between ticks).
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.exceptions import SweepAlreadyRunningError
from billing_kernel.logging_config import get_logger
from billing_modules.settings.models import BillingSettings

from billing_batch.domain.schedule import next_fire_time
from billing_batch.domain.types import (
    SWEEP_JOB_NAME,
    JobRun,
    JobTrigger,
    SchedulerConfig,
    SchedulerStatus,
)
from billing_batch.services.sweep import DailySweepJob

logger = get_logger("batch.scheduler")


def config_from_settings(settings: BillingSettings) -> SchedulerConfig:
    return SchedulerConfig(
        enabled=settings.scheduler_enabled,
        cron_expression=settings.scheduler_cron_expression,
        timezone=settings.scheduler_timezone,
    )


class SweepScheduler:
    """Fires the daily sweep from a cron expression.

    Contract:
        - ``tick()`` runs the sweep when it is due (public for testing).
        - ``start()`` / ``stop()`` for background thread operation.
        - ``trigger_now()`` runs the sweep immediately.
        - ``status()`` reports running state, config and last/next run.

    Non-goals:
        - NOT a distributed scheduler (no leader election).
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        job_factory: Callable[[Session], DailySweepJob],
        config: SchedulerConfig | None = None,
        clock: Clock | None = None,
        poll_interval_seconds: int = 30,
    ):
        self._session_factory = session_factory
        self._job_factory = job_factory
        self._config = config or SchedulerConfig()
        self._clock = clock or SystemClock()
        self._poll_interval = poll_interval_seconds
        self._stop_event = threading.Event()
        self._run_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._last_run: JobRun | None = None
        self._next_run: datetime | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start polling in a background thread.  No-op when disabled."""
        if self.is_running:
            return
        if not self._config.enabled:
            logger.info("scheduler_disabled")
            return

        self._next_run = self._compute_next_run()
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="billing-sweep-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "scheduler_started",
            extra={
                "cron_expression": self._config.cron_expression,
                "timezone": self._config.timezone,
                "next_run": self._next_run.isoformat(),
            },
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the polling thread to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._thread = None
        self._next_run = None
        logger.info("scheduler_stopped")

    def reconfigure(self, config: SchedulerConfig) -> None:
        """Apply a new cron expression, timezone or enabled flag."""
        was_running = self.is_running
        if was_running:
            self.stop()
        self._config = config
        if was_running:
            self.start()

    def tick(self) -> JobRun | None:
        """Run the sweep if it is due.  Returns the job run, or None when not due."""
        if not self._config.enabled:
            return None

        now = self._clock.now()
        if self._next_run is None:
            self._next_run = self._compute_next_run(now)
            return None
        if now < self._next_run:
            return None

        self._next_run = self._compute_next_run(now)
        try:
            return self._execute(JobTrigger.SCHEDULED)
        except SweepAlreadyRunningError:
            logger.warning("scheduler_tick_skipped_running")
            return None
        except Exception:
            logger.exception("scheduler_tick_failed")
            return None

    def trigger_now(self) -> JobRun:
        """Run the sweep immediately, regardless of the enabled flag.

        Raises:
            SweepAlreadyRunningError: if a sweep is executing on this instance.
        """
        return self._execute(JobTrigger.MANUAL)

    def status(self) -> SchedulerStatus:
        return SchedulerStatus(
            running=self.is_running,
            config=self._config,
            last_run=self._last_run,
            next_run=self._next_run,
        )

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _compute_next_run(self, now: datetime | None = None) -> datetime:
        return next_fire_time(
            self._config.cron_expression,
            self._config.timezone,
            now or self._clock.now(),
        )

    def _run_loop(self) -> None:
        """Background polling loop.  Exits when stop_event is set."""
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(timeout=self._poll_interval)

    def _execute(self, trigger: JobTrigger) -> JobRun:
        if not self._run_lock.acquire(blocking=False):
            raise SweepAlreadyRunningError(SWEEP_JOB_NAME)
        try:
            session = self._session_factory()
            try:
                job_run = self._job_factory(session).run(trigger)
                session.commit()
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()
        finally:
            self._run_lock.release()

        self._last_run = job_run
        logger.info(
            "scheduler_sweep_finished",
            extra={
                "trigger": trigger.value,
                "job_run_id": str(job_run.run_id),
                "status": job_run.status.value,
            },
        )
        return job_run
