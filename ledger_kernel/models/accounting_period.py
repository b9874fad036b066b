"""
Module: ledger_kernel.models.accounting_period
Responsibility: ORM persistence for (month, year) accounting periods.
Architecture position: Kernel > Models.

Invariants enforced:
    - (month, year) is unique (uq_accounting_period_month_year).
    - month in 1..12 (ck_accounting_period_month).
    - Once is_closed is true the row is frozen (db/immutability.py).
"""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import LedgerRowBase, TrackedBase
from ledger_kernel.domain.dtos import PeriodInfo


class AccountingPeriod(LedgerRowBase, TrackedBase):
    """
    One calendar month of the books.

    States: open (is_closed=False) -> closed (terminal).  There is no
    reopen path in the kernel.
    """

    __tablename__ = "accounting_periods"

    __table_args__ = (
        UniqueConstraint("month", "year", name="uq_accounting_period_month_year"),
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_accounting_period_month"),
    )

    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    is_closed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    closed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        state = "closed" if self.is_closed else "open"
        return f"<AccountingPeriod {self.year}-{self.month:02d} {state}>"

    def to_dto(self) -> PeriodInfo:
        return PeriodInfo(
            id=self.id,
            month=self.month,
            year=self.year,
            is_closed=self.is_closed,
            closed_at=self.closed_at,
            closed_by=self.closed_by,
        )
