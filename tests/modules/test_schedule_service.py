"""
Tests for billing_modules.recurring.service -- scheduled billing lifecycle.

The clock is pinned to 2026-03-15 08:00 Asia/Manila.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from billing_kernel.exceptions import (
    BillingEntityNotFoundError,
    ContractNotFoundError,
    InvalidAmountError,
    InvalidBillingDayError,
    InvalidScheduleTransitionError,
    MissingReasonError,
    ScheduledBillingNotFoundError,
)
from billing_modules.notifications.models import AuditAction, NotificationType
from billing_modules.recurring.calendar import BillingFrequency
from billing_modules.recurring.models import ScheduleStatus

from tests.helpers import (
    TEST_ACTOR_ID,
    create_active_schedule,
    seed_contract,
    seed_entity,
)


@pytest.fixture
def entity(repo):
    return seed_entity(repo)


@pytest.fixture
def contract(repo, entity):
    return seed_contract(repo, entity)


@pytest.fixture
def schedules(orchestrator):
    return orchestrator.schedules


def _create(schedules, contract, entity, **overrides):
    values = dict(
        contract_id=contract.id,
        billing_entity_id=entity.id,
        billing_amount=Decimal("10000.00"),
        frequency=BillingFrequency.MONTHLY,
        billing_day_of_month=15,
        start_date=date(2026, 1, 1),
        actor_id=TEST_ACTOR_ID,
    )
    values.update(overrides)
    return schedules.create(**values)


# =============================================================================
# Create
# =============================================================================


class TestCreate:
    def test_new_schedule_is_pending(self, schedules, contract, entity, calendar):
        schedule = _create(schedules, contract, entity)

        assert schedule.status is ScheduleStatus.PENDING
        assert schedule.billing_amount == Decimal("10000.00")
        assert schedule.due_day_of_month == 15
        # Created on its billing day: the next date is next month's.
        assert calendar.to_local_date(schedule.next_billing_date) == date(2026, 4, 15)
        assert calendar.to_local_date(schedule.start_date) == date(2026, 1, 1)

    def test_creation_is_audited_and_notified(self, schedules, contract, entity, repo):
        schedule = _create(schedules, contract, entity)

        audits = repo.list_audit_entries(schedule.id, AuditAction.SCHEDULE_CREATED)
        assert len(audits) == 1
        assert audits[0].details["companyName"] == "Acme Trading Corp"
        assert audits[0].details["billingAmount"] == "10000.00"

        notes = repo.list_notifications(NotificationType.SCHEDULE_PENDING, schedule.id)
        assert len(notes) == 1
        assert "Acme Trading Corp" in notes[0].message

    def test_future_start_date(self, schedules, contract, entity, calendar):
        schedule = _create(schedules, contract, entity, start_date=date(2026, 6, 1))
        assert calendar.to_local_date(schedule.next_billing_date) == date(2026, 6, 15)

    def test_unknown_contract(self, schedules, entity):
        with pytest.raises(ContractNotFoundError):
            schedules.create(
                contract_id=uuid4(),
                billing_entity_id=entity.id,
                billing_amount=Decimal("1"),
                frequency=BillingFrequency.MONTHLY,
                billing_day_of_month=1,
                start_date=date(2026, 1, 1),
                actor_id=TEST_ACTOR_ID,
            )

    def test_unknown_billing_entity(self, schedules, contract):
        with pytest.raises(BillingEntityNotFoundError):
            schedules.create(
                contract_id=contract.id,
                billing_entity_id=uuid4(),
                billing_amount=Decimal("1"),
                frequency=BillingFrequency.MONTHLY,
                billing_day_of_month=1,
                start_date=date(2026, 1, 1),
                actor_id=TEST_ACTOR_ID,
            )

    def test_invalid_billing_day(self, schedules, contract, entity):
        with pytest.raises(InvalidBillingDayError):
            _create(schedules, contract, entity, billing_day_of_month=32)

    def test_invalid_due_day(self, schedules, contract, entity):
        with pytest.raises(InvalidBillingDayError):
            _create(schedules, contract, entity, due_day_of_month=40)

    def test_non_positive_amount(self, schedules, contract, entity):
        with pytest.raises(InvalidAmountError, match="billing_amount"):
            _create(schedules, contract, entity, billing_amount=Decimal("0"))


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:
    def test_approve_activates(self, schedules, contract, entity, clock):
        schedule = _create(schedules, contract, entity)
        approved = schedules.approve(schedule.id, TEST_ACTOR_ID)

        assert approved.status is ScheduleStatus.ACTIVE
        assert approved.approved_by_id == TEST_ACTOR_ID
        assert approved.approved_at == clock.now()

    def test_approve_twice_rejected(self, schedules, contract, entity):
        schedule = _create(schedules, contract, entity)
        schedules.approve(schedule.id, TEST_ACTOR_ID)

        with pytest.raises(InvalidScheduleTransitionError) as exc_info:
            schedules.approve(schedule.id, TEST_ACTOR_ID)
        assert exc_info.value.from_status == "ACTIVE"
        assert exc_info.value.action == "approve"

    def test_approval_notifies(self, schedules, contract, entity, repo):
        schedule = _create(schedules, contract, entity)
        schedules.approve(schedule.id, TEST_ACTOR_ID)

        notes = repo.list_notifications(NotificationType.SCHEDULE_APPROVED, schedule.id)
        assert [n.title for n in notes] == ["Schedule Approved"]

    @pytest.mark.parametrize("reason", ["", "   "])
    def test_reject_requires_reason(self, schedules, contract, entity, reason):
        schedule = _create(schedules, contract, entity)
        with pytest.raises(MissingReasonError):
            schedules.reject(schedule.id, TEST_ACTOR_ID, reason)
        assert schedules.get(schedule.id).status is ScheduleStatus.PENDING

    def test_reject_ends_schedule(self, schedules, contract, entity, repo, clock):
        schedule = _create(schedules, contract, entity)
        rejected = schedules.reject(schedule.id, TEST_ACTOR_ID, "  wrong amount ")

        assert rejected.status is ScheduleStatus.ENDED
        assert rejected.rejection_reason == "wrong amount"
        assert rejected.end_date == clock.now()
        notes = repo.list_notifications(NotificationType.SCHEDULE_REJECTED, schedule.id)
        assert notes[0].message.endswith("was rejected: wrong amount")

    def test_active_schedule_cannot_be_rejected(self, orchestrator, contract, entity):
        schedule = create_active_schedule(orchestrator, contract, entity)
        with pytest.raises(InvalidScheduleTransitionError):
            orchestrator.schedules.reject(schedule.id, TEST_ACTOR_ID, "late")

    def test_pause_and_resume(self, schedules, contract, entity, clock, calendar):
        schedule = _create(schedules, contract, entity)
        schedules.approve(schedule.id, TEST_ACTOR_ID)

        paused = schedules.pause(schedule.id, TEST_ACTOR_ID)
        assert paused.status is ScheduleStatus.PAUSED

        clock.set_time(datetime(2026, 4, 20, 0, 0, tzinfo=timezone.utc))
        resumed = schedules.resume(schedule.id, TEST_ACTOR_ID)

        assert resumed.status is ScheduleStatus.ACTIVE
        assert calendar.to_local_date(resumed.next_billing_date) == date(2026, 5, 15)

    def test_pending_schedule_cannot_be_paused(self, schedules, contract, entity):
        schedule = _create(schedules, contract, entity)
        with pytest.raises(InvalidScheduleTransitionError):
            schedules.pause(schedule.id, TEST_ACTOR_ID)

    def test_active_schedule_cannot_be_resumed(self, schedules, contract, entity):
        schedule = _create(schedules, contract, entity)
        schedules.approve(schedule.id, TEST_ACTOR_ID)
        with pytest.raises(InvalidScheduleTransitionError):
            schedules.resume(schedule.id, TEST_ACTOR_ID)

    def test_end_from_paused(self, schedules, contract, entity, repo):
        schedule = _create(schedules, contract, entity)
        schedules.approve(schedule.id, TEST_ACTOR_ID)
        schedules.pause(schedule.id, TEST_ACTOR_ID)

        ended = schedules.end(schedule.id, TEST_ACTOR_ID)

        assert ended.status is ScheduleStatus.ENDED
        assert ended.end_date is not None
        assert repo.list_audit_entries(schedule.id, AuditAction.SCHEDULE_ENDED)

    def test_ended_is_terminal(self, schedules, contract, entity):
        schedule = _create(schedules, contract, entity)
        schedules.end(schedule.id, TEST_ACTOR_ID)

        for action in (schedules.approve, schedules.pause, schedules.resume, schedules.end):
            with pytest.raises(InvalidScheduleTransitionError):
                action(schedule.id, TEST_ACTOR_ID)

    def test_unknown_schedule(self, schedules):
        with pytest.raises(ScheduledBillingNotFoundError):
            schedules.get(uuid4())


# =============================================================================
# Update
# =============================================================================


class TestUpdate:
    def test_unknown_field_rejected(self, schedules, contract, entity):
        schedule = _create(schedules, contract, entity)
        with pytest.raises(ValueError, match="Cannot update fields"):
            schedules.update(schedule.id, TEST_ACTOR_ID, status=ScheduleStatus.ACTIVE)

    def test_changing_anchor_recomputes_next_date(self, schedules, contract, entity, calendar):
        schedule = _create(schedules, contract, entity)
        updated = schedules.update(schedule.id, TEST_ACTOR_ID, billing_day_of_month=20)

        assert updated.billing_day_of_month == 20
        assert calendar.to_local_date(updated.next_billing_date) == date(2026, 3, 20)

    def test_amount_change_keeps_next_date(self, schedules, contract, entity):
        schedule = _create(schedules, contract, entity)
        updated = schedules.update(schedule.id, TEST_ACTOR_ID, billing_amount="12500.50")

        assert updated.billing_amount == Decimal("12500.50")
        assert updated.next_billing_date == schedule.next_billing_date

    def test_update_is_audited(self, schedules, contract, entity, repo):
        schedule = _create(schedules, contract, entity)
        schedules.update(schedule.id, TEST_ACTOR_ID, remarks="PO 1234")

        audits = repo.list_audit_entries(schedule.id, AuditAction.SCHEDULE_UPDATED)
        assert audits[0].details == {"remarks": "PO 1234"}

    def test_ended_schedule_cannot_be_updated(self, schedules, contract, entity):
        schedule = _create(schedules, contract, entity)
        schedules.end(schedule.id, TEST_ACTOR_ID)
        with pytest.raises(InvalidScheduleTransitionError, match="Cannot update"):
            schedules.update(schedule.id, TEST_ACTOR_ID, remarks="x")

    def test_advance_after_generation(self, schedules, contract, entity, calendar):
        schedule = _create(schedules, contract, entity, billing_day_of_month=20)
        advanced = schedules.update_next_billing_date(schedule.id, TEST_ACTOR_ID)
        assert calendar.to_local_date(advanced.next_billing_date) == date(2026, 4, 20)


# =============================================================================
# Due schedules
# =============================================================================


class TestListDue:
    def test_only_active_schedules_on_their_day(self, orchestrator, repo, contract, entity):
        schedules = orchestrator.schedules
        due = create_active_schedule(orchestrator, contract, entity)
        _create(schedules, contract, entity)  # pending
        paused = create_active_schedule(orchestrator, contract, entity)
        schedules.pause(paused.id, TEST_ACTOR_ID)
        create_active_schedule(orchestrator, contract, entity, billing_day_of_month=16)

        assert [s.id for s in schedules.list_due()] == [due.id]

    def test_not_started_or_ended(self, orchestrator, contract, entity):
        schedules = orchestrator.schedules
        create_active_schedule(orchestrator, contract, entity, start_date=date(2026, 4, 1))
        ended = create_active_schedule(orchestrator, contract, entity)
        schedules.update(ended.id, TEST_ACTOR_ID, end_date=date(2026, 3, 10))

        assert schedules.list_due() == []

    def test_day_31_bills_on_month_end(self, orchestrator, contract, entity):
        schedule = create_active_schedule(
            orchestrator, contract, entity, billing_day_of_month=31
        )
        schedules = orchestrator.schedules

        assert [s.id for s in schedules.list_due(date(2026, 4, 30))] == [schedule.id]
        assert schedules.list_due(date(2026, 4, 29)) == []
