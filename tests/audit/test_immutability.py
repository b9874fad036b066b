"""
Append-only enforcement for the general ledger.

Posted journals and their lines cannot be edited or deleted through the
ORM, individually or in bulk.  Closed periods are frozen, and an account's
type is frozen once a journal line references it.
"""

from decimal import Decimal

import pytest
from sqlalchemy import delete, select, update

from ledger_kernel.domain.dtos import AccountType, LineSpec
from ledger_kernel.domain.references import JournalReference, ReferenceKind
from ledger_kernel.exceptions import (
    AccountTypeLockedError,
    ImmutabilityError,
    ImmutableJournalError,
    PeriodImmutableError,
)
from ledger_kernel.models.account import Account
from ledger_kernel.models.accounting_period import AccountingPeriod
from ledger_kernel.models.journal import Journal, JournalLine


@pytest.fixture
def posted(journal_service, chart, entry_date, test_actor):
    return journal_service.post_journal(
        entry_date,
        JournalReference(ReferenceKind.MANUAL, "AUD-1"),
        "Original",
        test_actor,
        [LineSpec.dr(chart["1101"], Decimal("100")), LineSpec.cr(chart["4100"], Decimal("100"))],
    )


class TestJournalImmutability:
    def test_update_rejected(self, session, posted):
        journal = session.get(Journal, posted.id)

        with pytest.raises(ImmutableJournalError) as exc_info:
            with session.begin_nested():
                journal.description = "tampered"
                session.flush()

        assert exc_info.value.operation == "update"
        session.expire_all()
        assert session.get(Journal, posted.id).description == "Original"

    def test_delete_rejected(self, session, posted):
        journal = session.get(Journal, posted.id)

        with pytest.raises(ImmutableJournalError):
            with session.begin_nested():
                session.delete(journal)
                session.flush()

        session.expire_all()
        assert session.get(Journal, posted.id) is not None

    def test_line_update_rejected(self, session, posted):
        line = session.execute(
            select(JournalLine).where(JournalLine.journal_id == posted.id, JournalLine.line_seq == 1)
        ).scalar_one()

        with pytest.raises(ImmutableJournalError):
            with session.begin_nested():
                line.debit = Decimal("999")
                session.flush()

        session.expire_all()
        assert session.get(JournalLine, line.id).debit == Decimal("100")

    def test_line_delete_rejected(self, session, posted):
        line = session.execute(
            select(JournalLine).where(JournalLine.journal_id == posted.id)
        ).scalars().first()

        with pytest.raises(ImmutableJournalError):
            with session.begin_nested():
                session.delete(line)
                session.flush()

    def test_bulk_update_rejected(self, session, posted):
        with pytest.raises(ImmutableJournalError) as exc_info:
            session.execute(
                update(Journal).where(Journal.id == posted.id).values(description="bulk")
            )
        assert exc_info.value.operation == "bulk update"

    def test_bulk_delete_rejected(self, session, posted):
        with pytest.raises(ImmutableJournalError):
            session.execute(delete(JournalLine).where(JournalLine.journal_id == posted.id))

    def test_violation_is_logged(self, session, posted, captured_logs):
        journal = session.get(Journal, posted.id)
        with pytest.raises(ImmutabilityError):
            with session.begin_nested():
                journal.created_by = "someone-else"
                session.flush()

        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked and blocked[-1]["entity_type"] == "Journal"


class TestClosedPeriodFrozen:
    def test_closed_period_row_cannot_change(self, session, period_service, open_periods, test_actor):
        period_service.close_period(2, 2026, test_actor)
        period = session.execute(
            select(AccountingPeriod).where(AccountingPeriod.month == 2, AccountingPeriod.year == 2026)
        ).scalar_one()

        with pytest.raises(PeriodImmutableError):
            with session.begin_nested():
                period.is_closed = False
                session.flush()

        session.expire_all()
        assert period_service.get_period(2, 2026).is_closed

    def test_closed_period_row_cannot_be_deleted(
        self, session, period_service, open_periods, test_actor
    ):
        period_service.close_period(3, 2026, test_actor)
        period = session.execute(
            select(AccountingPeriod).where(AccountingPeriod.month == 3, AccountingPeriod.year == 2026)
        ).scalar_one()

        with pytest.raises(PeriodImmutableError):
            with session.begin_nested():
                session.delete(period)
                session.flush()

    def test_open_period_row_can_change(self, session, open_periods):
        period = session.execute(
            select(AccountingPeriod).where(AccountingPeriod.month == 4, AccountingPeriod.year == 2026)
        ).scalar_one()
        session.delete(period)
        session.flush()

        assert session.get(AccountingPeriod, period.id) is None


class TestAccountTypeLock:
    def test_service_refuses_type_change_once_referenced(self, account_service, posted, chart):
        with pytest.raises(AccountTypeLockedError):
            account_service.update_account(chart["4100"], account_type=AccountType.EXPENSE)

        assert account_service.get_account(chart["4100"]).account_type == AccountType.REVENUE

    def test_orm_guard_refuses_type_change_once_referenced(self, session, posted, chart):
        account = session.get(Account, chart["1101"])

        with pytest.raises(AccountTypeLockedError):
            with session.begin_nested():
                account.account_type = AccountType.LIABILITY.value
                session.flush()

    def test_unreferenced_account_type_can_change(self, account_service, chart):
        info = account_service.update_account(chart["5500"], account_type="liability")
        assert info.account_type == AccountType.LIABILITY

    def test_rename_allowed_when_referenced(self, account_service, posted, chart):
        info = account_service.update_account(chart["4100"], name="Parts sales")
        assert info.name == "Parts sales"
