"""
billing_batch -- Daily billing sweep and its in-process scheduler.

Runs the daily sweep over due scheduled billings and direct-billed
contracts, with per-item SAVEPOINT isolation and a persisted job-run
history, and fires it from a cron expression evaluated in the business
timezone.

Architecture:
    billing_batch/ is a top-level package.  Nothing in billing_kernel/ or
    billing_modules/ imports from it, apart from the ORM registry loading
    the job-run table.

Invariants:
    - SAVEPOINT isolation per schedule and per contract
    - Clock injection (no datetime.now() calls)
    - Cron evaluation is pure
    - One sweep at a time per scheduler instance
"""
