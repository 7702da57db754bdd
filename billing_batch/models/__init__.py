"""
billing_batch.models -- ORM models for sweep job-run history.

Architecture: billing_batch/models. Imports from billing_kernel.db.base only.
"""

from billing_batch.models.job_run import JobRunModel

__all__ = ["JobRunModel"]
