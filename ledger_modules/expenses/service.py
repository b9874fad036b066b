"""
Expense Service (``ledger_modules.expenses.service``).

Requested expenses are approved or rejected, and only approved ones are
paid.  Paying posts

    Dr expense account (from the category, or chosen) / Cr chosen cash account

in the caller's unit of work, keyed ``expense_payment_<expense_id>``.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.db.types import exceeds_money_precision, to_decimal
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.domain.references import JournalReference, ReferenceKind
from ledger_kernel.exceptions import (
    ExpenseNotFoundError,
    ExpenseStateError,
    InvalidAmountError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.role_resolver import RoleResolver
from ledger_modules.expenses.models import ExpenseInfo, ExpenseStatus, expense_role_for
from ledger_modules.expenses.orm import Expense

logger = get_logger("modules.expenses.service")


class ExpenseService(BaseService):
    def __init__(
        self,
        session,
        roles: RoleResolver,
        clock: Clock | None = None,
        journals: JournalService | None = None,
    ):
        super().__init__(session, clock)
        self._roles = roles
        self._journals = journals or JournalService(session, self.clock)

    def _load(self, expense_id: UUID, lock: bool = False) -> Expense:
        stmt = select(Expense).where(Expense.id == expense_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        expense = self.session.execute(stmt).scalar_one_or_none()
        if expense is None:
            raise ExpenseNotFoundError(expense_id)
        return expense

    def _decide(self, expense_id: UUID, status: ExpenseStatus, actor: str, action: str) -> ExpenseInfo:
        expense = self._load(expense_id, lock=True)
        if expense.status != ExpenseStatus.REQUESTED.value:
            raise ExpenseStateError(expense_id, expense.status, action)
        expense.status = status.value
        expense.decided_by = actor
        expense.decided_at = self.clock.now()
        self.session.flush()
        logger.info(
            "expense_decided",
            extra={"expense_id": expense_id, "status": status.value, "actor": actor},
        )
        return expense.to_dto()

    def record_expense(
        self,
        category: str,
        amount: Decimal,
        requested_by: str,
        note: str | None = None,
    ) -> ExpenseInfo:
        """Record a requested expense.  Nothing is posted until it is paid."""
        amount = to_decimal(amount)
        if amount <= 0:
            raise InvalidAmountError(amount)
        if exceeds_money_precision(amount):
            raise InvalidAmountError(amount, "amount exceeds 2 decimal places")
        category = category.strip()
        if not category:
            raise ValueError("expense category is required")

        expense = Expense(
            category=category,
            amount=amount,
            note=note,
            status=ExpenseStatus.REQUESTED.value,
            requested_by=requested_by,
        )
        self.session.add(expense)
        self.session.flush()
        logger.info(
            "expense_requested",
            extra={"expense_id": expense.id, "category": category, "amount": amount},
        )
        return expense.to_dto()

    def approve_expense(self, expense_id: UUID, approved_by: str) -> ExpenseInfo:
        return self._decide(expense_id, ExpenseStatus.APPROVED, approved_by, "approve")

    def reject_expense(self, expense_id: UUID, rejected_by: str) -> ExpenseInfo:
        return self._decide(expense_id, ExpenseStatus.REJECTED, rejected_by, "reject")

    def pay_expense(
        self,
        expense_id: UUID,
        account_code: str,
        paid_by: str,
        entry_date: date,
        expense_account_code: str | None = None,
    ) -> ExpenseInfo:
        """
        Pay an approved expense out of ``account_code``.

        The expense account is ``expense_account_code`` when given,
        otherwise the role the category maps to.

        Raises:
            ExpenseNotFoundError, ExpenseStateError (not approved),
            ValueError (no source account), AccountRoleNotBoundError
            (unknown or inactive account), any JournalService error.
        """
        if not account_code:
            raise ValueError("a source account is required to pay an expense")
        expense = self._load(expense_id, lock=True)
        if expense.status != ExpenseStatus.APPROVED.value:
            raise ExpenseStateError(expense_id, expense.status, "pay")

        source_id = self._roles.resolve_code(account_code)
        expense_account_id = (
            self._roles.resolve_code(expense_account_code)
            if expense_account_code
            else self._roles.resolve(expense_role_for(expense.category))
        )
        description = f"Expense payment: {expense.category}"
        if expense.note:
            description = f"{description} - {expense.note}"
        journal = self._journals.post_journal(
            entry_date=entry_date,
            reference=JournalReference(ReferenceKind.EXPENSE, str(expense.id)),
            description=description,
            created_by=paid_by,
            lines=[
                LineSpec.dr(expense_account_id, expense.amount),
                LineSpec.cr(source_id, expense.amount),
            ],
            idempotency_key=f"expense_payment_{expense.id}",
        )

        expense.status = ExpenseStatus.PAID.value
        expense.paid_by = paid_by
        expense.paid_at = self.clock.now()
        expense.account_id = source_id
        expense.expense_account_id = expense_account_id
        expense.journal_id = journal.id
        self.session.flush()

        logger.info(
            "expense_paid",
            extra={
                "expense_id": expense.id,
                "amount": expense.amount,
                "expense_account_id": expense_account_id,
                "account_id": source_id,
                "journal_id": journal.id,
            },
        )
        return expense.to_dto()

    def get_expense(self, expense_id: UUID) -> ExpenseInfo:
        return self._load(expense_id).to_dto()
