"""
Scheduled Billing Workflow (``billing_modules.recurring.workflows``).

Responsibility
--------------
Declares the lifecycle of a recurring billing definition.  A schedule is
created PENDING, becomes ACTIVE only through approval, may be paused and
resumed, and ends either by rejection or by an explicit end.

Architecture position
---------------------
**Modules layer** -- declarative workflow definition.  Imports canonical
Guard, Transition, Workflow from ``billing_kernel.domain.workflow``.
Consumed by ``ScheduleService``.

Invariants enforced
-------------------
* ENDED is terminal.
* ``reject`` requires a reason.
"""

from billing_kernel.domain.workflow import Guard, Transition, Workflow
from billing_kernel.logging_config import get_logger
from billing_modules.recurring.models import ScheduleStatus

logger = get_logger("modules.recurring.workflows")


_PENDING = ScheduleStatus.PENDING.value
_ACTIVE = ScheduleStatus.ACTIVE.value
_PAUSED = ScheduleStatus.PAUSED.value
_ENDED = ScheduleStatus.ENDED.value


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

NEXT_DATE_RECOMPUTED = Guard(
    name="next_date_recomputed",
    description="nextBillingDate is recalculated from today before the schedule reactivates",
)


# -----------------------------------------------------------------------------
# Schedule Workflow
# -----------------------------------------------------------------------------

SCHEDULE_WORKFLOW = Workflow(
    name="scheduled_billing",
    description="Recurring billing definition lifecycle",
    initial_states=(_PENDING,),
    states=(_PENDING, _ACTIVE, _PAUSED, _ENDED),
    terminal_states=(_ENDED,),
    transitions=(
        Transition(_PENDING, _ACTIVE, action="approve"),
        Transition(_PENDING, _ENDED, action="reject", requires_reason=True),
        Transition(_ACTIVE, _PAUSED, action="pause"),
        Transition(_PAUSED, _ACTIVE, action="resume", guard=NEXT_DATE_RECOMPUTED),
        Transition(_PENDING, _ENDED, action="end"),
        Transition(_ACTIVE, _ENDED, action="end"),
        Transition(_PAUSED, _ENDED, action="end"),
    ),
)

SCHEDULE_WORKFLOW.validate()

logger.info(
    "schedule_workflow_registered",
    extra={
        "workflow_name": SCHEDULE_WORKFLOW.name,
        "state_count": len(SCHEDULE_WORKFLOW.states),
        "transition_count": len(SCHEDULE_WORKFLOW.transitions),
    },
)
