"""
Expenses Module (``ledger_modules.expenses``).

Operating expenses: request, approve or reject, then pay out of a cash or
bank account with an expense journal.
"""

from ledger_modules.expenses.models import ExpenseInfo, ExpenseStatus, expense_role_for
from ledger_modules.expenses.service import ExpenseService

__all__ = [
    "ExpenseInfo",
    "ExpenseService",
    "ExpenseStatus",
    "expense_role_for",
]
