"""
Expense Domain Models (``ledger_modules.expenses.models``).

Frozen snapshots of operating expenses, their approval states and the
category keywords that pick the expense account.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain.roles import AccountRole


class ExpenseStatus(str, Enum):
    REQUESTED = "requested"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


# First match wins; categories matching nothing book to operating expenses.
CATEGORY_ROLES: tuple[tuple[tuple[str, ...], AccountRole], ...] = (
    (("gaji", "salary", "payroll"), AccountRole.SALARIES),
    (("transport", "ongkir", "shipping"), AccountRole.TRANSPORT),
    (("hpp", "modal"), AccountRole.COGS),
)


def expense_role_for(category: str) -> AccountRole:
    """Account role an expense of ``category`` is booked to."""
    lowered = category.lower()
    for keywords, role in CATEGORY_ROLES:
        if any(keyword in lowered for keyword in keywords):
            return role
    return AccountRole.OPERATING_EXPENSE


@dataclass(frozen=True)
class ExpenseInfo:
    id: UUID
    category: str
    amount: Decimal
    status: ExpenseStatus
    requested_by: str
    note: str | None
    decided_by: str | None
    decided_at: datetime | None
    paid_by: str | None
    paid_at: datetime | None
    account_id: int | None
    expense_account_id: int | None
    journal_id: int | None
