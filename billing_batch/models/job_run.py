"""
ORM model for sweep job runs.

Contract:
    JobRunModel persists one row per sweep execution with its counters and
    error list.  ``to_dto()`` / ``from_dto()`` / ``apply_dto()`` convert to
    and from the frozen ``JobRun``.

Architecture: billing_batch/models. Imports from billing_kernel.db.base only.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from billing_batch.domain.types import JobRun


class JobRunModel(TrackedBase):
    """Persistent record of one sweep execution."""

    __tablename__ = "job_runs"

    __table_args__ = (
        Index("ix_job_runs_name_started", "job_name", "started_at"),
        Index("ix_job_runs_status", "status"),
    )

    job_name: Mapped[str] = mapped_column(String(100), nullable=False)
    trigger: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    started_at: Mapped[datetime] = mapped_column(nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    processed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    auto_sent: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    pending_approval: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    skipped: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    errors: Mapped[list | None] = mapped_column(JSON, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> JobRun:
        from billing_batch.domain.types import JobRun, JobStatus, JobTrigger, SweepResult

        result = None
        if self.completed_at is not None:
            result = SweepResult(
                processed=self.processed,
                auto_sent=self.auto_sent,
                pending_approval=self.pending_approval,
                skipped=self.skipped,
                failed=self.failed,
                errors=tuple(self.errors or ()),
            )
        return JobRun(
            run_id=self.id,
            job_name=self.job_name,
            trigger=JobTrigger(self.trigger),
            status=JobStatus(self.status),
            started_at=self.started_at,
            completed_at=self.completed_at,
            result=result,
            error_message=self.error_message,
            actor_id=self.created_by_id,
        )

    @classmethod
    def from_dto(cls, dto: JobRun, created_by_id: UUID) -> JobRunModel:
        model = cls(
            id=dto.run_id,
            job_name=dto.job_name,
            trigger=dto.trigger.value,
            status=dto.status.value,
            started_at=dto.started_at,
            created_by_id=created_by_id,
            updated_by_id=None,
        )
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto: JobRun) -> None:
        self.status = dto.status.value
        self.completed_at = dto.completed_at
        self.error_message = dto.error_message
        result = dto.result
        self.processed = result.processed if result else 0
        self.auto_sent = result.auto_sent if result else 0
        self.pending_approval = result.pending_approval if result else 0
        self.skipped = result.skipped if result else 0
        self.failed = result.failed if result else 0
        self.errors = list(result.errors) if result else None

    def __repr__(self) -> str:
        return f"<JobRunModel {self.job_name} {self.status}>"
