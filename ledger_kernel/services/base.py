"""
BaseService -- abstract base for kernel and subledger services.

Responsibility:
    Common constructor and session contract.  Every service receives a
    SQLAlchemy ``Session`` and an optional ``Clock``; it persists with
    ``session.flush()`` and never commits or rolls back.

Invariants enforced:
    Transaction boundaries belong to the caller (``LedgerDatabase.session_scope``
    or the request-level operations in ledger_services), so a payment, its
    journal and the invoice status change land in one atomic unit of work.
"""

from abc import ABC

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for all services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide report queries -- those belong in selectors.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()

    @property
    def clock(self) -> Clock:
        return self._clock
