"""
JobRunStore -- persistence for sweep job-run history.

Contract:
    ``start()`` inserts a RUNNING row, ``finish()`` writes the final status
    and counters, ``latest()`` returns the most recent run of a job.

Non-goals:
    - Does NOT call ``session.commit()`` -- caller controls boundaries.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from billing_batch.domain.types import JobRun, JobStatus, JobTrigger
from billing_batch.models.job_run import JobRunModel


class JobRunStore:
    def __init__(self, session: Session):
        self._session = session

    def start(
        self, job_name: str, trigger: JobTrigger, started_at: datetime, actor_id: UUID
    ) -> JobRun:
        run = JobRun(
            run_id=uuid4(),
            job_name=job_name,
            trigger=trigger,
            status=JobStatus.RUNNING,
            started_at=started_at,
            actor_id=actor_id,
        )
        self._session.add(JobRunModel.from_dto(run, actor_id))
        self._session.flush()
        return run

    def finish(self, run: JobRun, actor_id: UUID) -> JobRun:
        model = self._session.get(JobRunModel, run.run_id)
        if model is None:
            raise LookupError(f"JobRunModel {run.run_id} not found")
        model.apply_dto(run)
        model.updated_by_id = actor_id
        self._session.flush()
        return model.to_dto()

    def latest(self, job_name: str) -> JobRun | None:
        model = self._session.execute(
            select(JobRunModel)
            .where(JobRunModel.job_name == job_name)
            .order_by(JobRunModel.started_at.desc())
            .limit(1)
        ).scalar_one_or_none()
        return model.to_dto() if model else None

    def list_runs(self, job_name: str, limit: int = 20) -> list[JobRun]:
        rows = self._session.execute(
            select(JobRunModel)
            .where(JobRunModel.job_name == job_name)
            .order_by(JobRunModel.started_at.desc())
            .limit(limit)
        ).scalars().all()
        return [row.to_dto() for row in rows]
