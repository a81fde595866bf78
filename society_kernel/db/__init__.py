"""Database layer - engine, base classes and column types."""

from society_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from society_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    session_scope,
)
from society_kernel.db.types import Money

__all__ = [
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
]
