"""Database layer - engine, base classes and types."""

from billing_kernel.db.base import UUID, Base, TrackedBase, UTCDateTime, UUIDString
from billing_kernel.db.engine import (
    create_sqlite_engine,
    create_tables,
    get_engine,
    get_session,
    session_scope,
)
from billing_kernel.db.types import Money, Rate, Sequence, round_money, to_decimal

__all__ = [
    "Base",
    "Money",
    "Rate",
    "Sequence",
    "TrackedBase",
    "UTCDateTime",
    "UUID",
    "UUIDString",
    "create_sqlite_engine",
    "create_tables",
    "get_engine",
    "get_session",
    "round_money",
    "session_scope",
    "to_decimal",
]
