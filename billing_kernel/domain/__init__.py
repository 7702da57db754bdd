"""
Pure domain layer.

Time and workflow value objects with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O (except SystemClock)
"""

from billing_kernel.domain.calendar import DEFAULT_BUSINESS_TIMEZONE, BusinessCalendar
from billing_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from billing_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "BusinessCalendar",
    "Clock",
    "DEFAULT_BUSINESS_TIMEZONE",
    "DeterministicClock",
    "Guard",
    "SystemClock",
    "Transition",
    "Workflow",
]
