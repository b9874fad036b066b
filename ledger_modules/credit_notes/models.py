"""
Credit Note Domain Models (``ledger_modules.credit_notes.models``).

Responsibility
--------------
Frozen value objects for customer credit notes and their lines.

Invariants enforced
-------------------
* ``CreditNoteLineSpec`` derives ``line_subtotal = qty * unit_price`` and
  ``line_total = line_subtotal + line_tax`` when they are not given.
* Amounts are ``Decimal`` at currency precision.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.db.types import ZERO, round_money, to_decimal


class CreditNoteMode(str, Enum):
    RECEIVABLE = "receivable"
    CASH_REFUND = "cash_refund"


class CreditNoteStatus(str, Enum):
    DRAFT = "draft"
    POSTED = "posted"
    REFUNDED = "refunded"


@dataclass(frozen=True)
class CreditNoteLineSpec:
    """Caller input for one credit note line."""

    qty: int
    unit_price: Decimal
    product_id: UUID | None = None
    description: str | None = None
    line_tax: Decimal = ZERO
    line_subtotal: Decimal | None = None
    line_total: Decimal | None = None

    def __post_init__(self) -> None:
        if isinstance(self.qty, bool) or not isinstance(self.qty, int) or self.qty <= 0:
            raise ValueError(f"qty must be a positive integer, got {self.qty!r}")
        object.__setattr__(self, "unit_price", to_decimal(self.unit_price))
        object.__setattr__(self, "line_tax", to_decimal(self.line_tax))
        if self.unit_price < 0 or self.line_tax < 0:
            raise ValueError("unit_price and line_tax must be non-negative")
        subtotal = (
            to_decimal(self.line_subtotal)
            if self.line_subtotal is not None
            else round_money(self.qty * self.unit_price)
        )
        object.__setattr__(self, "line_subtotal", subtotal)
        total = (
            to_decimal(self.line_total)
            if self.line_total is not None
            else subtotal + self.line_tax
        )
        object.__setattr__(self, "line_total", total)


@dataclass(frozen=True)
class CreditNoteLineInfo:
    line_seq: int
    product_id: UUID | None
    description: str | None
    qty: int
    unit_price: Decimal
    line_subtotal: Decimal
    line_tax: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class CreditNoteInfo:
    id: UUID
    credit_note_number: str
    invoice_id: str
    mode: CreditNoteMode
    status: CreditNoteStatus
    amount: Decimal
    tax_amount: Decimal
    reason: str | None
    created_by: str
    posted_at: datetime | None
    posted_by: str | None
    refunded_at: datetime | None
    refunded_by: str | None
    journal_id: int | None
    refund_journal_id: int | None
    lines: tuple[CreditNoteLineInfo, ...]

    @property
    def net_amount(self) -> Decimal:
        """Amount before tax (the sales-return portion)."""
        return self.amount - self.tax_amount

    @property
    def lines_total(self) -> Decimal:
        return sum((line.line_total for line in self.lines), ZERO)
