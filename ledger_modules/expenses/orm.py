"""
Module: ledger_modules.expenses.orm
Responsibility: SQLAlchemy ORM persistence for operating expenses.

Invariants enforced:
    - amount > 0.
    - account_id (source of funds), expense_account_id and journal_id are
      set together, when the expense is paid.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import DocumentBase, LedgerId


class Expense(DocumentBase):
    """An operating cost requested, approved and then paid out of a cash account."""

    __tablename__ = "expenses"

    __table_args__ = (
        Index("idx_expense_status", "status"),
        CheckConstraint("amount > 0", name="chk_expense_amount_positive"),
    )

    category: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="requested", nullable=False)
    requested_by: Mapped[str] = mapped_column(String(100), nullable=False)
    decided_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    account_id: Mapped[int | None] = mapped_column(
        LedgerId, ForeignKey("accounts.id"), nullable=True
    )
    expense_account_id: Mapped[int | None] = mapped_column(
        LedgerId, ForeignKey("accounts.id"), nullable=True
    )
    journal_id: Mapped[int | None] = mapped_column(
        LedgerId, ForeignKey("journals.id"), nullable=True
    )

    def to_dto(self):
        from ledger_modules.expenses.models import ExpenseInfo, ExpenseStatus

        return ExpenseInfo(
            id=self.id,
            category=self.category,
            amount=self.amount,
            status=ExpenseStatus(self.status),
            requested_by=self.requested_by,
            note=self.note,
            decided_by=self.decided_by,
            decided_at=self.decided_at,
            paid_by=self.paid_by,
            paid_at=self.paid_at,
            account_id=self.account_id,
            expense_account_id=self.expense_account_id,
            journal_id=self.journal_id,
        )

    def __repr__(self) -> str:
        return f"<Expense {self.category} {self.status} amount={self.amount}>"
