"""
Pytest fixtures for the billing engine test suite.

Provides:
- In-memory SQLite sessions with the full schema
- A deterministic clock pinned to 2026-03-15 08:00 in Asia/Manila
- Fake email transport and PDF renderer
- A fully wired BillingOrchestrator over the test session

Seed helpers live in ``tests/helpers.py``.
"""

import json
import logging
from io import StringIO
from typing import Generator
from uuid import UUID

import pytest
from sqlalchemy.orm import Session, sessionmaker

from billing_kernel.db.engine import create_sqlite_engine
from billing_kernel.domain.calendar import BusinessCalendar
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from billing_modules._orm_registry import create_all_tables
from billing_modules.repository import SqlAlchemyBillingRepository

from billing_batch.orchestrator import BillingOrchestrator
from tests.helpers import (
    SWEEP_INSTANT,
    TEST_ACTOR_ID,
    FakeEmailSender,
    FakePdfRenderer,
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture billing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.sweep_job.run()
            logs = captured_logs()
            assert any(r["message"] == "sweep_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("billing_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    eng = create_sqlite_engine()
    create_all_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture
def repo(session) -> SqlAlchemyBillingRepository:
    return SqlAlchemyBillingRepository(session)


@pytest.fixture
def test_actor_id() -> UUID:
    """Provide a consistent test actor ID."""
    return TEST_ACTOR_ID


# =============================================================================
# Clock fixtures
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(fixed_time=SWEEP_INSTANT)


@pytest.fixture
def calendar():
    return BusinessCalendar("Asia/Manila")


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def sender():
    return FakeEmailSender()


@pytest.fixture
def pdf_renderer():
    return FakePdfRenderer()


@pytest.fixture
def orchestrator(session, sender, pdf_renderer, clock) -> BillingOrchestrator:
    return BillingOrchestrator.from_session(session, sender, pdf_renderer, clock=clock)
