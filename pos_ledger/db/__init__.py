"""Database layer - engine, base classes and append-only enforcement."""

from pos_ledger.db.base import UUID, Base, TrackedBase, UUIDString
from pos_ledger.db.engine import (
    build_engine,
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "build_engine",
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
