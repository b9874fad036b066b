"""Database layer - engine handle, base classes, types, locks, guards."""

from ledger_kernel.db.base import UUID, Base, DocumentBase, LedgerRowBase, TrackedBase, UUIDString
from ledger_kernel.db.engine import LedgerDatabase, build_engine
from ledger_kernel.db.schema_lock import schema_lock

__all__ = [
    "Base",
    "DocumentBase",
    "LedgerDatabase",
    "LedgerRowBase",
    "TrackedBase",
    "UUID",
    "UUIDString",
    "build_engine",
    "schema_lock",
]
