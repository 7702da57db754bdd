"""
Invoice Workflow (``billing_modules.invoicing.workflows``).

Responsibility
--------------
The single transition table for the invoice lifecycle.

    PENDING  -> APPROVED | REJECTED | CANCELLED
    APPROVED -> SENT | VOID | CANCELLED
    SENT     -> PAID | VOID

REJECTED, PAID, VOID and CANCELLED are terminal.  A rejected invoice is
never revived; a new one is generated instead.

Architecture position
---------------------
**Modules layer** -- declarative workflow definition consumed by
``InvoiceLifecycleService``.
"""

from __future__ import annotations

from typing import assert_never

from billing_kernel.domain.workflow import Guard, Transition, Workflow
from billing_kernel.logging_config import get_logger
from billing_modules.invoicing.models import InvoiceStatus

logger = get_logger("modules.invoicing.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

HAS_VALID_RECIPIENT = Guard(
    name="has_valid_recipient",
    description="Invoice has at least one syntactically valid recipient email",
)

POSITIVE_PAYMENT = Guard(
    name="positive_payment",
    description="Paid amount is greater than zero and the method is recognised",
)


# -----------------------------------------------------------------------------
# Invoice Workflow
# -----------------------------------------------------------------------------

_S = InvoiceStatus

INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Invoice approval, delivery and settlement",
    initial_states=(_S.PENDING.value, _S.APPROVED.value),
    states=tuple(s.value for s in InvoiceStatus),
    terminal_states=(
        _S.REJECTED.value,
        _S.PAID.value,
        _S.VOID.value,
        _S.CANCELLED.value,
    ),
    transitions=(
        Transition(_S.PENDING.value, _S.APPROVED.value, action="approve"),
        Transition(_S.PENDING.value, _S.REJECTED.value, action="reject", requires_reason=True),
        Transition(_S.PENDING.value, _S.CANCELLED.value, action="cancel", requires_reason=True),
        Transition(_S.APPROVED.value, _S.SENT.value, action="send", guard=HAS_VALID_RECIPIENT),
        Transition(_S.APPROVED.value, _S.VOID.value, action="void", requires_reason=True),
        Transition(_S.APPROVED.value, _S.CANCELLED.value, action="cancel", requires_reason=True),
        Transition(_S.SENT.value, _S.PAID.value, action="mark_paid", guard=POSITIVE_PAYMENT),
        Transition(_S.SENT.value, _S.VOID.value, action="void", requires_reason=True),
    ),
)

INVOICE_WORKFLOW.validate()

logger.info(
    "invoice_workflow_registered",
    extra={
        "workflow_name": INVOICE_WORKFLOW.name,
        "state_count": len(INVOICE_WORKFLOW.states),
        "transition_count": len(INVOICE_WORKFLOW.transitions),
    },
)


def allowed_transitions(status: InvoiceStatus) -> tuple[Transition, ...]:
    """Transitions available from ``status``."""
    match status:
        case InvoiceStatus.PENDING | InvoiceStatus.APPROVED | InvoiceStatus.SENT:
            return tuple(
                t for t in INVOICE_WORKFLOW.transitions if t.from_state == status.value
            )
        case (
            InvoiceStatus.REJECTED
            | InvoiceStatus.PAID
            | InvoiceStatus.VOID
            | InvoiceStatus.CANCELLED
        ):
            return ()
        case _:
            assert_never(status)


def is_terminal(status: InvoiceStatus) -> bool:
    return not allowed_transitions(status)


def resolve_transition(status: InvoiceStatus, action: str) -> Transition | None:
    for transition in allowed_transitions(status):
        if transition.action == action:
            return transition
    return None
