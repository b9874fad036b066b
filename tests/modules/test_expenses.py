"""
Operating expenses: only approved expenses are paid, and paying books the
category's expense account against the chosen cash account.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.references import JournalReference, ReferenceKind
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.exceptions import (
    AccountRoleNotBoundError,
    ExpenseNotFoundError,
    ExpenseStateError,
    InvalidAmountError,
)
from ledger_modules.expenses.models import ExpenseStatus, expense_role_for

APPROVER = "finance-lead"


@pytest.fixture
def approved(expense_service, test_actor):
    expense = expense_service.record_expense("Listrik toko", Decimal("750000"), test_actor, note="January")
    return expense_service.approve_expense(expense.id, APPROVER)


class TestCategoryMapping:
    @pytest.mark.parametrize(
        "category, role",
        [
            ("Gaji karyawan", AccountRole.SALARIES),
            ("Monthly payroll", AccountRole.SALARIES),
            ("Ongkir supplier", AccountRole.TRANSPORT),
            ("HPP tambahan", AccountRole.COGS),
            ("Listrik", AccountRole.OPERATING_EXPENSE),
            ("Misc", AccountRole.OPERATING_EXPENSE),
        ],
    )
    def test_role_for_category(self, category, role):
        assert expense_role_for(category) == role


class TestLifecycle:
    def test_request_then_approve(self, expense_service, approved):
        assert approved.status == ExpenseStatus.APPROVED
        assert approved.decided_by == APPROVER
        assert approved.journal_id is None

    def test_reject(self, expense_service, test_actor):
        expense = expense_service.record_expense("Misc", Decimal("10"), test_actor)
        rejected = expense_service.reject_expense(expense.id, APPROVER)

        assert rejected.status == ExpenseStatus.REJECTED
        with pytest.raises(ExpenseStateError):
            expense_service.approve_expense(expense.id, APPROVER)

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1"), Decimal("0.001")])
    def test_invalid_amount(self, expense_service, test_actor, amount):
        with pytest.raises(InvalidAmountError):
            expense_service.record_expense("Misc", amount, test_actor)

    def test_blank_category(self, expense_service, test_actor):
        with pytest.raises(ValueError):
            expense_service.record_expense("  ", Decimal("10"), test_actor)

    def test_unknown_expense(self, expense_service):
        with pytest.raises(ExpenseNotFoundError):
            expense_service.approve_expense(uuid4(), APPROVER)


class TestPayExpense:
    def test_pay_posts_expense_against_cash(
        self, expense_service, journal_service, ledger_selector, approved, chart, test_actor, entry_date
    ):
        paid = expense_service.pay_expense(approved.id, "1101", test_actor, entry_date)

        assert paid.status == ExpenseStatus.PAID
        assert paid.account_id == chart["1101"]
        assert paid.expense_account_id == chart["5300"]
        journal = journal_service.get_journal(paid.journal_id)
        assert journal.reference == JournalReference(ReferenceKind.EXPENSE, str(approved.id))
        assert journal.idempotency_key == f"expense_payment_{approved.id}"
        assert journal.description == "Expense payment: Listrik toko - January"
        assert [(l.account_id, l.debit, l.credit) for l in journal.lines] == [
            (chart["5300"], Decimal("750000"), Decimal("0")),
            (chart["1101"], Decimal("0"), Decimal("750000")),
        ]
        assert ledger_selector.account_balance(chart["1101"]) == Decimal("-750000")

    def test_category_picks_account(self, expense_service, chart, test_actor, entry_date):
        expense = expense_service.record_expense("Gaji Januari", Decimal("3000000"), test_actor)
        expense_service.approve_expense(expense.id, APPROVER)

        paid = expense_service.pay_expense(expense.id, "1102", test_actor, entry_date)

        assert paid.expense_account_id == chart["5200"]
        assert paid.account_id == chart["1102"]

    def test_explicit_expense_account(self, expense_service, approved, chart, test_actor, entry_date):
        paid = expense_service.pay_expense(
            approved.id, "1101", test_actor, entry_date, expense_account_code="5500"
        )
        assert paid.expense_account_id == chart["5500"]

    def test_unapproved_cannot_be_paid(self, expense_service, chart, test_actor, entry_date):
        expense = expense_service.record_expense("Misc", Decimal("10"), test_actor)
        with pytest.raises(ExpenseStateError) as exc_info:
            expense_service.pay_expense(expense.id, "1101", test_actor, entry_date)
        assert exc_info.value.status == "requested"
        assert exc_info.value.action == "pay"

    def test_paid_twice_rejected(self, expense_service, approved, test_actor, entry_date):
        expense_service.pay_expense(approved.id, "1101", test_actor, entry_date)
        with pytest.raises(ExpenseStateError):
            expense_service.pay_expense(approved.id, "1101", test_actor, entry_date)

    def test_source_account_required(self, expense_service, approved, test_actor, entry_date):
        with pytest.raises(ValueError):
            expense_service.pay_expense(approved.id, "", test_actor, entry_date)

    def test_unknown_source_account(self, expense_service, approved, test_actor, entry_date):
        with pytest.raises(AccountRoleNotBoundError):
            expense_service.pay_expense(approved.id, "9999", test_actor, entry_date)
        assert expense_service.get_expense(approved.id).status == ExpenseStatus.APPROVED
