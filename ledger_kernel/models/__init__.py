"""ORM models for the ledger kernel."""

from ledger_kernel.models.account import Account
from ledger_kernel.models.accounting_period import AccountingPeriod
from ledger_kernel.models.journal import Journal, JournalLine

__all__ = [
    "Account",
    "AccountingPeriod",
    "Journal",
    "JournalLine",
]
