"""
Journal posting tests.

Verifies:
- Balanced journals post with sequential lines and a typed reference
- Structural validation happens before any write
- Idempotency keys are unique
- Reversal mirrors the original and nets balances to zero
"""

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from sqlalchemy import func, select

from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.domain.references import JournalReference, ReferenceKind
from ledger_kernel.exceptions import (
    DuplicateJournalError,
    InvalidAccountError,
    JournalAlreadyReversedError,
    JournalNotFoundError,
    MalformedLineError,
    PeriodNotFoundError,
    UnbalancedJournalError,
)
from ledger_kernel.models.journal import Journal
from ledger_kernel.services.journal_service import validate_lines


def _manual(ref: str = "M-1") -> JournalReference:
    return JournalReference(ReferenceKind.MANUAL, ref)


def _journal_count(session) -> int:
    return session.execute(select(func.count(Journal.id))).scalar_one()


class TestPostJournal:
    def test_balanced_journal_posts(self, journal_service, chart, entry_date, test_actor):
        journal = journal_service.post_journal(
            entry_date=entry_date,
            reference=_manual(),
            description="Counter sale",
            created_by=test_actor,
            lines=[
                LineSpec.dr(chart["1101"], Decimal("100000")),
                LineSpec.cr(chart["4100"], Decimal("100000")),
            ],
        )

        assert journal.id is not None
        assert journal.is_balanced
        assert journal.total_debit == Decimal("100000")
        assert [line.line_seq for line in journal.lines] == [1, 2]
        assert journal.reference == _manual()
        assert journal.posted_at is not None

    def test_multi_line_journal(self, journal_service, chart, entry_date, test_actor):
        journal = journal_service.post_journal(
            entry_date=entry_date,
            reference=_manual(),
            description=None,
            created_by=test_actor,
            lines=[
                LineSpec.dr(chart["1101"], Decimal("111000")),
                LineSpec.cr(chart["4100"], Decimal("100000")),
                LineSpec.cr(chart["2201"], Decimal("11000")),
            ],
        )
        assert len(journal.lines) == 3
        assert journal.total_credit == Decimal("111000")

    def test_unbalanced_rejected_before_write(
        self, session, journal_service, chart, entry_date, test_actor
    ):
        before = _journal_count(session)
        with pytest.raises(UnbalancedJournalError) as exc_info:
            journal_service.post_journal(
                entry_date=entry_date,
                reference=_manual(),
                description=None,
                created_by=test_actor,
                lines=[
                    LineSpec.dr(chart["1101"], Decimal("100")),
                    LineSpec.cr(chart["4100"], Decimal("99.99")),
                ],
            )
        assert exc_info.value.code == "UNBALANCED_JOURNAL"
        assert _journal_count(session) == before

    def test_unknown_account_rejected(self, journal_service, chart, entry_date, test_actor):
        with pytest.raises(InvalidAccountError):
            journal_service.post_journal(
                entry_date=entry_date,
                reference=_manual(),
                description=None,
                created_by=test_actor,
                lines=[LineSpec.dr(999_999, Decimal("10")), LineSpec.cr(chart["4100"], Decimal("10"))],
            )

    def test_inactive_account_rejected(
        self, journal_service, account_service, chart, entry_date, test_actor
    ):
        account_service.deactivate(chart["5500"])
        with pytest.raises(InvalidAccountError):
            journal_service.post_journal(
                entry_date=entry_date,
                reference=_manual(),
                description=None,
                created_by=test_actor,
                lines=[LineSpec.dr(chart["5500"], Decimal("10")), LineSpec.cr(chart["1101"], Decimal("10"))],
            )

    def test_duplicate_idempotency_key(self, journal_service, chart, entry_date, test_actor):
        lines = [LineSpec.dr(chart["1101"], Decimal("5")), LineSpec.cr(chart["4100"], Decimal("5"))]
        first = journal_service.post_journal(
            entry_date, _manual(), None, test_actor, lines, idempotency_key="order-77"
        )
        with pytest.raises(DuplicateJournalError) as exc_info:
            journal_service.post_journal(
                entry_date, _manual(), None, test_actor, lines, idempotency_key="order-77"
            )
        assert exc_info.value.existing_journal_id == first.id
        assert journal_service.find_by_idempotency_key("order-77").id == first.id

    def test_date_without_period_rejected(self, journal_service, chart, test_actor):
        with pytest.raises(PeriodNotFoundError):
            journal_service.post_journal(
                date(2031, 5, 1),
                _manual(),
                None,
                test_actor,
                [LineSpec.dr(chart["1101"], Decimal("5")), LineSpec.cr(chart["4100"], Decimal("5"))],
            )

    def test_reference_must_be_typed(self, journal_service, chart, entry_date, test_actor):
        with pytest.raises(TypeError):
            journal_service.post_journal(
                entry_date,
                "manual:1",
                None,
                test_actor,
                [LineSpec.dr(chart["1101"], Decimal("5")), LineSpec.cr(chart["4100"], Decimal("5"))],
            )

    def test_find_by_reference(self, journal_service, chart, entry_date, test_actor):
        lines = [LineSpec.dr(chart["1101"], Decimal("5")), LineSpec.cr(chart["4100"], Decimal("5"))]
        journal_service.post_journal(entry_date, _manual("A"), None, test_actor, lines)
        journal_service.post_journal(entry_date, _manual("A"), None, test_actor, lines)
        journal_service.post_journal(entry_date, _manual("B"), None, test_actor, lines)

        assert len(journal_service.find_by_reference(_manual("A"))) == 2

    def test_posting_is_logged(self, journal_service, chart, entry_date, test_actor, captured_logs):
        journal = journal_service.post_journal(
            entry_date,
            _manual(),
            None,
            test_actor,
            [LineSpec.dr(chart["1101"], Decimal("5")), LineSpec.cr(chart["4100"], Decimal("5"))],
        )
        posted = [r for r in captured_logs() if r["message"] == "journal_posted"]
        assert posted and posted[-1]["journal_id"] == journal.id
        assert posted[-1]["reference"] == "manual:M-1"


class TestValidateLines:
    def test_single_line(self):
        with pytest.raises(MalformedLineError):
            validate_lines([LineSpec.dr(1, Decimal("5"))])

    def test_both_sides(self):
        with pytest.raises(MalformedLineError) as exc_info:
            validate_lines(
                [LineSpec(1, debit=Decimal("5"), credit=Decimal("5")), LineSpec.cr(2, Decimal("5"))]
            )
        assert exc_info.value.line_index == 0

    def test_neither_side(self):
        with pytest.raises(MalformedLineError):
            validate_lines([LineSpec(1), LineSpec.cr(2, Decimal("5"))])

    def test_negative_amount(self):
        with pytest.raises(MalformedLineError):
            validate_lines([LineSpec.dr(1, Decimal("-5")), LineSpec.cr(2, Decimal("-5"))])

    def test_sub_cent_amount(self):
        with pytest.raises(MalformedLineError):
            validate_lines([LineSpec.dr(1, Decimal("0.001")), LineSpec.cr(2, Decimal("0.001"))])

    def test_float_amount_refused(self):
        with pytest.raises(TypeError):
            LineSpec.dr(1, 0.1)

    def test_returns_totals(self):
        assert validate_lines(
            [LineSpec.dr(1, "10.50"), LineSpec.cr(2, "10"), LineSpec.cr(3, "0.50")]
        ) == (Decimal("10.50"), Decimal("10.50"))


class TestReversal:
    def _post_sale(self, journal_service, chart, entry_date, actor):
        return journal_service.post_journal(
            entry_date,
            _manual(),
            "Sale",
            actor,
            [LineSpec.dr(chart["1101"], Decimal("250")), LineSpec.cr(chart["4100"], Decimal("250"))],
        )

    def test_reversal_mirrors_original(self, journal_service, chart, entry_date, test_actor):
        original = self._post_sale(journal_service, chart, entry_date, test_actor)
        reversal = journal_service.reverse_journal(original.id, entry_date, test_actor)

        assert reversal.reversal_of_id == original.id
        assert reversal.reference == JournalReference(ReferenceKind.REVERSAL, str(original.id))
        assert [(l.account_id, l.debit, l.credit) for l in reversal.lines] == [
            (l.account_id, l.credit, l.debit) for l in original.lines
        ]

    def test_reversal_nets_balances_to_zero(
        self, journal_service, ledger_selector, chart, entry_date, test_actor
    ):
        original = self._post_sale(journal_service, chart, entry_date, test_actor)
        journal_service.reverse_journal(original.id, entry_date, test_actor)

        assert ledger_selector.account_balance(chart["1101"]) == Decimal("0")
        assert ledger_selector.account_balance(chart["4100"]) == Decimal("0")

    def test_second_reversal_rejected(self, journal_service, chart, entry_date, test_actor):
        original = self._post_sale(journal_service, chart, entry_date, test_actor)
        reversal = journal_service.reverse_journal(original.id, entry_date, test_actor)

        with pytest.raises(JournalAlreadyReversedError) as exc_info:
            journal_service.reverse_journal(original.id, entry_date, test_actor)
        assert exc_info.value.reversal_journal_id == reversal.id

    def test_reversal_can_be_reversed(self, journal_service, chart, entry_date, test_actor):
        original = self._post_sale(journal_service, chart, entry_date, test_actor)
        reversal = journal_service.reverse_journal(original.id, entry_date, test_actor)
        restored = journal_service.reverse_journal(reversal.id, entry_date, test_actor)

        assert restored.reversal_of_id == reversal.id
        assert restored.total_debit == original.total_debit

    def test_unknown_journal(self, journal_service, entry_date, test_actor):
        with pytest.raises(JournalNotFoundError):
            journal_service.reverse_journal(424242, entry_date, test_actor)


class TestBalanceProperty:
    @given(
        amounts=st.lists(
            st.decimals(min_value=Decimal("0.01"), max_value=Decimal("99999.99"), places=2),
            min_size=1,
            max_size=5,
        )
    )
    @settings(
        max_examples=25,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    def test_trial_balance_stays_balanced(
        self, journal_service, ledger_selector, chart, entry_date, test_actor, amounts
    ):
        """Debits split over several lines against one credit always net to zero."""
        total = sum(amounts, Decimal("0"))
        lines = [LineSpec.dr(chart["1101"], amount) for amount in amounts]
        lines.append(LineSpec.cr(chart["4100"], total))

        journal = journal_service.post_journal(entry_date, _manual(), None, test_actor, lines)

        assert journal.total_debit == journal.total_credit == total
        rows = ledger_selector.trial_balance()
        assert sum((r.debit_total for r in rows), Decimal("0")) == sum(
            (r.credit_total for r in rows), Decimal("0")
        )
        assert ledger_selector.unbalanced_journal_ids() == []
