"""
Kernel services.

All services are flush-only: the caller owns commit and rollback.
"""

from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.journal_service import JournalService, validate_lines
from ledger_kernel.services.period_service import PeriodService
from ledger_kernel.services.role_resolver import RoleResolver

__all__ = [
    "AccountService",
    "JournalService",
    "PeriodService",
    "RoleResolver",
    "validate_lines",
]
