"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Read-side projections over the general ledger: trial
    balance, account balance, profit and loss, monthly VAT, and the audit
    query for the balance invariant.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Every figure is derived from JournalLine rows at query time.
    - Trial balance debit and credit totals are equal whenever every
      journal is balanced; ``unbalanced_journal_ids`` finds offenders.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.dtos import AccountType
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import Journal, JournalLine
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class TrialBalanceRow:
    account_id: int
    account_code: str
    account_name: str
    account_type: AccountType
    debit_total: Decimal
    credit_total: Decimal

    @property
    def balance(self) -> Decimal:
        """Balance on the account's normal side."""
        if self.account_type.normal_balance == "debit":
            return self.debit_total - self.credit_total
        return self.credit_total - self.debit_total


@dataclass(frozen=True)
class ProfitAndLoss:
    start: date
    end: date
    revenue: tuple[TrialBalanceRow, ...]
    expenses: tuple[TrialBalanceRow, ...]

    @property
    def total_revenue(self) -> Decimal:
        return sum((r.balance for r in self.revenue), ZERO)

    @property
    def total_expenses(self) -> Decimal:
        return sum((r.balance for r in self.expenses), ZERO)

    @property
    def net_income(self) -> Decimal:
        return self.total_revenue - self.total_expenses


@dataclass(frozen=True)
class VatSummary:
    month: int
    year: int
    output_vat: Decimal
    input_vat: Decimal

    @property
    def net_payable(self) -> Decimal:
        return self.output_vat - self.input_vat


class LedgerSelector(BaseSelector):
    """Read-only ledger projections."""

    def _totals(self, start: date | None = None, end: date | None = None) -> list[TrialBalanceRow]:
        stmt = (
            select(
                Account.id,
                Account.code,
                Account.name,
                Account.account_type,
                func.sum(JournalLine.debit).label("debit_total"),
                func.sum(JournalLine.credit).label("credit_total"),
            )
            .join(JournalLine, JournalLine.account_id == Account.id)
            .join(Journal, Journal.id == JournalLine.journal_id)
            .group_by(Account.id, Account.code, Account.name, Account.account_type)
            .order_by(Account.code)
        )
        if start is not None:
            stmt = stmt.where(Journal.entry_date >= start)
        if end is not None:
            stmt = stmt.where(Journal.entry_date <= end)

        return [
            TrialBalanceRow(
                account_id=row.id,
                account_code=row.code,
                account_name=row.name,
                account_type=AccountType(row.account_type),
                debit_total=self._money(row.debit_total),
                credit_total=self._money(row.credit_total),
            )
            for row in self.session.execute(stmt)
        ]

    def trial_balance(self, as_of: date | None = None) -> list[TrialBalanceRow]:
        """One row per account with postings dated on or before ``as_of``."""
        return self._totals(end=as_of)

    def account_balance(self, account_id: int, as_of: date | None = None) -> Decimal:
        """Normal-side balance of one account (zero if never posted)."""
        for row in self._totals(end=as_of):
            if row.account_id == account_id:
                return row.balance
        return ZERO

    def profit_and_loss(self, start: date, end: date) -> ProfitAndLoss:
        rows = self._totals(start=start, end=end)
        return ProfitAndLoss(
            start=start,
            end=end,
            revenue=tuple(r for r in rows if r.account_type == AccountType.REVENUE),
            expenses=tuple(r for r in rows if r.account_type == AccountType.EXPENSE),
        )

    def vat_monthly(
        self,
        month: int,
        year: int,
        vat_output_account_id: int,
        vat_input_account_id: int | None = None,
    ) -> VatSummary:
        """
        VAT collected (output, credit-normal) and VAT paid (input,
        debit-normal) for journals dated within (month, year).
        """
        start = date(year, month, 1)
        end = date(year + (month == 12), month % 12 + 1, 1)
        output_vat = ZERO
        input_vat = ZERO
        stmt = (
            select(
                JournalLine.account_id,
                func.sum(JournalLine.debit).label("debit_total"),
                func.sum(JournalLine.credit).label("credit_total"),
            )
            .join(Journal, Journal.id == JournalLine.journal_id)
            .where(Journal.entry_date >= start, Journal.entry_date < end)
            .group_by(JournalLine.account_id)
        )
        for row in self.session.execute(stmt):
            debit = self._money(row.debit_total)
            credit = self._money(row.credit_total)
            if row.account_id == vat_output_account_id:
                output_vat = credit - debit
            elif vat_input_account_id is not None and row.account_id == vat_input_account_id:
                input_vat = debit - credit
        return VatSummary(month=month, year=year, output_vat=output_vat, input_vat=input_vat)

    def unbalanced_journal_ids(self) -> list[int]:
        """
        Journals whose lines do not net to zero.

        Summed in Python over Decimal values so the check does not depend
        on the backend's numeric aggregation.
        """
        debit: dict[int, Decimal] = defaultdict(lambda: ZERO)
        credit: dict[int, Decimal] = defaultdict(lambda: ZERO)
        rows = self.session.execute(
            select(JournalLine.journal_id, JournalLine.debit, JournalLine.credit)
        )
        for journal_id, line_debit, line_credit in rows:
            debit[journal_id] += line_debit
            credit[journal_id] += line_credit
        return sorted(jid for jid in debit if debit[jid] != credit[jid])
