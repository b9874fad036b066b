"""
Module: ledger_kernel.selectors.base
Responsibility: Base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/ and models/.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - Results are frozen dataclasses, never ORM instances.
    - Balances are derived from JournalLine at query time; nothing is stored.
"""

from abc import ABC
from decimal import Decimal

from sqlalchemy.orm import Session

from ledger_kernel.db.types import ZERO, round_money


class BaseSelector(ABC):
    """Selectors accept the caller's Session and perform read-only queries."""

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def _money(value) -> Decimal:
        if value is None:
            return ZERO
        return round_money(Decimal(str(value)))
