"""
billing_batch.domain -- Pure types and schedule evaluation for the sweep.

ZERO I/O.  All types are frozen dataclasses.
"""

from billing_batch.domain.schedule import CronSpec, next_fire_time, parse_cron
from billing_batch.domain.types import (
    SWEEP_JOB_NAME,
    JobRun,
    JobStatus,
    JobTrigger,
    SchedulerConfig,
    SchedulerStatus,
    SweepResult,
)

__all__ = [
    "CronSpec",
    "JobRun",
    "JobStatus",
    "JobTrigger",
    "SWEEP_JOB_NAME",
    "SchedulerConfig",
    "SchedulerStatus",
    "SweepResult",
    "next_fire_time",
    "parse_cron",
]
