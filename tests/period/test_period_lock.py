"""
Period lock tests.

A closed (month, year) refuses every posting dated inside it.  Adjacent
periods are unaffected.  Closing is one-way.
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.domain.references import JournalReference, ReferenceKind
from ledger_kernel.exceptions import (
    AlreadyClosedError,
    InvalidPeriodError,
    PeriodAlreadyExistsError,
    PeriodClosedError,
    PeriodNotFoundError,
)


def _post(journal_service, chart, entry_date, actor):
    return journal_service.post_journal(
        entry_date,
        JournalReference(ReferenceKind.MANUAL, f"P-{entry_date.isoformat()}"),
        None,
        actor,
        [LineSpec.dr(chart["1101"], Decimal("40")), LineSpec.cr(chart["4100"], Decimal("40"))],
    )


class TestClosePeriod:
    def test_close_records_actor_and_time(
        self, period_service, open_periods, test_actor, deterministic_clock
    ):
        info = period_service.close_period(2, 2026, test_actor)

        assert info.is_closed
        assert info.closed_by == test_actor
        assert info.closed_at.replace(tzinfo=None) == deterministic_clock.now().replace(tzinfo=None)

    def test_posting_into_closed_period_rejected(
        self, period_service, journal_service, chart, test_actor
    ):
        period_service.close_period(2, 2026, test_actor)

        with pytest.raises(PeriodClosedError) as exc_info:
            _post(journal_service, chart, date(2026, 2, 15), test_actor)
        assert (exc_info.value.month, exc_info.value.year) == (2, 2026)

    def test_next_period_still_accepts(self, period_service, journal_service, chart, test_actor):
        period_service.close_period(2, 2026, test_actor)

        journal = _post(journal_service, chart, date(2026, 3, 1), test_actor)
        assert journal.entry_date == date(2026, 3, 1)

    def test_last_day_of_closed_month_rejected(
        self, period_service, journal_service, chart, test_actor
    ):
        period_service.close_period(2, 2026, test_actor)
        with pytest.raises(PeriodClosedError):
            _post(journal_service, chart, date(2026, 2, 28), test_actor)

    def test_close_twice(self, period_service, open_periods, test_actor):
        period_service.close_period(5, 2026, test_actor)
        with pytest.raises(AlreadyClosedError):
            period_service.close_period(5, 2026, test_actor)

    def test_close_unknown_period(self, period_service, open_periods, test_actor):
        with pytest.raises(PeriodNotFoundError):
            period_service.close_period(1, 2030, test_actor)

    @pytest.mark.parametrize("month", [0, 13, -1])
    def test_invalid_month(self, period_service, test_actor, month):
        with pytest.raises(InvalidPeriodError):
            period_service.close_period(month, 2026, test_actor)

    def test_earlier_journals_untouched(
        self, period_service, journal_service, ledger_selector, chart, test_actor
    ):
        _post(journal_service, chart, date(2026, 2, 10), test_actor)
        period_service.close_period(2, 2026, test_actor)

        assert ledger_selector.account_balance(chart["1101"]) == Decimal("40")

    def test_reversal_of_closed_period_journal_dated_in_open_period(
        self, period_service, journal_service, chart, test_actor
    ):
        original = _post(journal_service, chart, date(2026, 2, 10), test_actor)
        period_service.close_period(2, 2026, test_actor)

        reversal = journal_service.reverse_journal(original.id, date(2026, 3, 2), test_actor)
        assert reversal.reversal_of_id == original.id


class TestOpenPeriod:
    def test_ensure_year_opens_twelve_months(self, period_service):
        periods = period_service.ensure_year(2027)
        assert [p.month for p in periods] == list(range(1, 13))
        assert not any(p.is_closed for p in periods)

    def test_ensure_year_is_idempotent(self, period_service, open_periods):
        again = period_service.ensure_year(2026)
        assert [p.id for p in again] == [p.id for p in open_periods]

    def test_open_duplicate(self, period_service, open_periods):
        with pytest.raises(PeriodAlreadyExistsError):
            period_service.open_period(1, 2026)

    def test_is_open(self, period_service, open_periods, test_actor):
        period_service.close_period(6, 2026, test_actor)

        assert period_service.is_open(date(2026, 7, 1))
        assert not period_service.is_open(date(2026, 6, 30))
        assert not period_service.is_open(date(2029, 1, 1))

    def test_list_periods_ordered(self, period_service, open_periods):
        period_service.open_period(12, 2025)
        listed = period_service.list_periods()
        assert (listed[0].year, listed[0].month) == (2025, 12)
        assert len(period_service.list_periods(year=2026)) == 12
