"""
Frozen data transfer objects returned by kernel services.

Services hand out these snapshots rather than ORM instances.  A
``JournalInfo`` has no setters and no save/delete path, so callers holding
one cannot mutate a posted journal through it.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from ledger_kernel.db.types import ZERO, to_decimal
from ledger_kernel.domain.references import JournalReference


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"

    @property
    def normal_balance(self) -> str:
        if self in (AccountType.ASSET, AccountType.EXPENSE):
            return "debit"
        return "credit"


@dataclass(frozen=True)
class LineSpec:
    """
    Caller-supplied journal leg.

    Exactly one of ``debit`` / ``credit`` must be positive; the journal
    service enforces this, the DTO only normalises the amounts to Decimal.
    """

    account_id: int
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    memo: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit", to_decimal(self.debit or ZERO))
        object.__setattr__(self, "credit", to_decimal(self.credit or ZERO))

    @classmethod
    def dr(cls, account_id: int, amount, memo: str | None = None) -> "LineSpec":
        return cls(account_id=account_id, debit=amount, memo=memo)

    @classmethod
    def cr(cls, account_id: int, amount, memo: str | None = None) -> "LineSpec":
        return cls(account_id=account_id, credit=amount, memo=memo)


@dataclass(frozen=True)
class AccountInfo:
    id: int
    code: str
    name: str
    account_type: AccountType
    parent_id: int | None
    is_active: bool

    @property
    def normal_balance(self) -> str:
        return self.account_type.normal_balance


@dataclass(frozen=True)
class PeriodInfo:
    id: int
    month: int
    year: int
    is_closed: bool
    closed_at: datetime | None
    closed_by: str | None


@dataclass(frozen=True)
class JournalLineInfo:
    line_seq: int
    account_id: int
    debit: Decimal
    credit: Decimal
    memo: str | None


@dataclass(frozen=True)
class JournalInfo:
    """Read-only snapshot of a posted journal."""

    id: int
    entry_date: date
    reference: JournalReference
    description: str | None
    created_by: str
    posted_at: datetime
    idempotency_key: str | None
    reversal_of_id: int | None
    lines: tuple[JournalLineInfo, ...]

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit
