"""
Module ORM Registry (``billing_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy ORM model is imported so that ``Base.metadata``
holds the full schema before tables are created.  ``create_all_tables()``
is the one entry point deployments and ``tests/conftest.py``
use to build a database.

Architecture position
---------------------
**Modules layer** -- utility.  The batch job-run table is imported lazily
here so a single call yields the complete schema.
"""

from sqlalchemy.engine import Engine


def import_all_orm_models() -> None:
    """Import every ``*.orm`` module.  Idempotent."""
    # fmt: off
    import billing_modules.invoicing.orm  # noqa: F401
    import billing_modules.recurring.orm  # noqa: F401
    import billing_modules.follow_up.orm  # noqa: F401
    import billing_modules.notifications.orm  # noqa: F401
    import billing_modules.settings.orm  # noqa: F401
    import billing_batch.models  # noqa: F401  # job run history
    # fmt: on


def create_all_tables(engine: Engine | None = None) -> None:
    """Register all ORM models, then create every table."""
    from billing_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables(engine)
