"""
Credit Note Service (``ledger_modules.credit_notes.service``).

Responsibility
--------------
Draft lifecycle and posting of customer credit notes.

States
------
``draft -> posted -> refunded``, linear, no skipping.

Postings
--------
* post (receivable):   Dr sales_returns (amount - tax), Dr vat_output (tax)
                       / Cr accounts_receivable (amount)
* post (cash_refund):  same debits / Cr cash or bank (amount)
* refund (receivable): Dr accounts_receivable / Cr cash or bank (amount)
* refund (cash_refund): status change only; cash already left at posting.

Invariants enforced
-------------------
* Sum(line_total) == amount at posting time, exact Decimal equality.
* The credit note row is locked ``FOR UPDATE`` for post and refund.
* Posted notes are frozen by the flush-time guards in ``guards.py``.
"""

from __future__ import annotations

import secrets
from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.db.types import ZERO, exceeds_money_precision, to_decimal
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.domain.references import JournalReference, ReferenceKind
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.exceptions import (
    AlreadyPostedError,
    CreditNoteNotFoundError,
    ImmutableCreditNoteError,
    InvalidAmountError,
    InvalidCreditNoteTransitionError,
    LineMismatchError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.role_resolver import RoleResolver
from ledger_modules.credit_notes.models import (
    CreditNoteInfo,
    CreditNoteLineSpec,
    CreditNoteMode,
    CreditNoteStatus,
)
from ledger_modules.credit_notes.orm import CreditNote, CreditNoteLine

logger = get_logger("modules.credit_notes.service")


def _validate_amounts(amount, tax_amount) -> tuple[Decimal, Decimal]:
    amount = to_decimal(amount)
    tax_amount = to_decimal(tax_amount)
    if amount <= 0:
        raise InvalidAmountError(amount)
    if tax_amount < 0 or tax_amount > amount:
        raise InvalidAmountError(tax_amount, "tax must be between zero and the amount")
    if exceeds_money_precision(amount) or exceeds_money_precision(tax_amount):
        raise InvalidAmountError(amount, "amount exceeds 2 decimal places")
    return amount, tax_amount


class CreditNoteService(BaseService):
    """
    Customer credit notes.

    Contract:
        Flush-only.  Posting and refund write the status change and the
        journal in the caller's transaction.
    """

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

    def _load(self, credit_note_id: UUID, lock: bool = False) -> CreditNote:
        stmt = select(CreditNote).where(CreditNote.id == credit_note_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        note = self.session.execute(stmt).scalar_one_or_none()
        if note is None:
            raise CreditNoteNotFoundError(credit_note_id)
        return note

    def _require_draft(self, note: CreditNote, operation: str) -> None:
        if note.status != CreditNoteStatus.DRAFT.value:
            raise ImmutableCreditNoteError(note.id, note.status, operation)

    def _generate_number(self) -> str:
        return f"CN-{self.clock.today():%Y%m%d}-{secrets.token_hex(3).upper()}"

    @staticmethod
    def _build_lines(lines: Sequence[CreditNoteLineSpec]) -> list[CreditNoteLine]:
        return [
            CreditNoteLine(
                line_seq=seq,
                product_id=spec.product_id,
                description=spec.description,
                qty=spec.qty,
                unit_price=spec.unit_price,
                line_subtotal=spec.line_subtotal,
                line_tax=spec.line_tax,
                line_total=spec.line_total,
            )
            for seq, spec in enumerate(lines, start=1)
        ]

    def _cash_account(self, payment_account_code: str | None) -> int:
        if payment_account_code:
            return self._roles.resolve_code(payment_account_code)
        return self._roles.resolve(AccountRole.CASH)

    # ------------------------------------------------------------------
    # Draft lifecycle
    # ------------------------------------------------------------------

    def create_draft(
        self,
        invoice_id: str,
        mode: CreditNoteMode | str,
        amount: Decimal,
        tax_amount: Decimal,
        lines: Sequence[CreditNoteLineSpec],
        created_by: str,
        reason: str | None = None,
    ) -> CreditNoteInfo:
        mode = CreditNoteMode(mode)
        amount, tax_amount = _validate_amounts(amount, tax_amount)
        note = CreditNote(
            credit_note_number=self._generate_number(),
            invoice_id=str(invoice_id),
            mode=mode.value,
            status=CreditNoteStatus.DRAFT.value,
            amount=amount,
            tax_amount=tax_amount,
            reason=reason.strip() if reason else None,
            created_by=created_by,
        )
        note.lines = self._build_lines(lines)
        self.session.add(note)
        self.session.flush()
        logger.info(
            "credit_note_drafted",
            extra={
                "credit_note_id": note.id,
                "credit_note_number": note.credit_note_number,
                "invoice_id": invoice_id,
                "mode": mode.value,
                "amount": amount,
            },
        )
        return note.to_dto()

    def replace_lines(
        self,
        credit_note_id: UUID,
        lines: Sequence[CreditNoteLineSpec],
        amount: Decimal | None = None,
        tax_amount: Decimal | None = None,
    ) -> CreditNoteInfo:
        """Swap the lines (and optionally the amounts) of a draft."""
        note = self._load(credit_note_id, lock=True)
        self._require_draft(note, "edit")
        if amount is not None or tax_amount is not None:
            note.amount, note.tax_amount = _validate_amounts(
                amount if amount is not None else note.amount,
                tax_amount if tax_amount is not None else note.tax_amount,
            )
        note.lines.clear()
        # Old rows must be gone before new rows reuse their line_seq
        self.session.flush()
        note.lines.extend(self._build_lines(lines))
        self.session.flush()
        return note.to_dto()

    def delete_draft(self, credit_note_id: UUID) -> None:
        note = self._load(credit_note_id, lock=True)
        self._require_draft(note, "delete")
        self.session.delete(note)
        self.session.flush()
        logger.info("credit_note_draft_deleted", extra={"credit_note_id": credit_note_id})

    def get_credit_note(self, credit_note_id: UUID) -> CreditNoteInfo:
        return self._load(credit_note_id).to_dto()

    # ------------------------------------------------------------------
    # Posting
    # ------------------------------------------------------------------

    def post_credit_note(
        self,
        credit_note_id: UUID,
        posted_by: str,
        entry_date: date,
        payment_account_code: str | None = None,
    ) -> CreditNoteInfo:
        """
        Post a draft credit note and its journal.

        Raises:
            CreditNoteNotFoundError: unknown id.
            AlreadyPostedError: status is not draft.
            LineMismatchError: Sum(line_total) != amount.
        """
        note = self._load(credit_note_id, lock=True)
        if note.status != CreditNoteStatus.DRAFT.value:
            raise AlreadyPostedError(note.id, note.status)

        lines_total = sum((line.line_total for line in note.lines), ZERO)
        if lines_total != note.amount:
            logger.warning(
                "credit_note_line_mismatch",
                extra={
                    "credit_note_id": note.id,
                    "amount": note.amount,
                    "lines_total": lines_total,
                },
            )
            raise LineMismatchError(note.id, note.amount, lines_total)

        net = note.amount - note.tax_amount
        journal_lines = []
        if net > 0:
            journal_lines.append(LineSpec.dr(self._roles.resolve(AccountRole.SALES_RETURNS), net))
        if note.tax_amount > 0:
            journal_lines.append(LineSpec.dr(self._roles.resolve(AccountRole.VAT_OUTPUT), note.tax_amount))
        if note.mode == CreditNoteMode.CASH_REFUND.value:
            credit_account = self._cash_account(payment_account_code)
        else:
            credit_account = self._roles.resolve(AccountRole.ACCOUNTS_RECEIVABLE)
        journal_lines.append(LineSpec.cr(credit_account, note.amount))

        journal = self._journals.post_journal(
            entry_date=entry_date,
            reference=JournalReference(ReferenceKind.CREDIT_NOTE, str(note.id)),
            description=f"Credit note {note.credit_note_number}",
            created_by=posted_by,
            lines=journal_lines,
            idempotency_key=f"credit_note_post_{note.id}",
        )

        note.status = CreditNoteStatus.POSTED.value
        note.posted_at = self.clock.now()
        note.posted_by = posted_by
        note.journal_id = journal.id
        self.session.flush()

        logger.info(
            "credit_note_posted",
            extra={
                "credit_note_id": note.id,
                "credit_note_number": note.credit_note_number,
                "mode": note.mode,
                "amount": note.amount,
                "journal_id": journal.id,
            },
        )
        return note.to_dto()

    def refund_credit_note(
        self,
        credit_note_id: UUID,
        refunded_by: str,
        entry_date: date,
        payment_account_code: str | None = None,
    ) -> CreditNoteInfo:
        """
        Move a posted credit note to ``refunded``.

        Receivable-mode notes post the cash-out journal here; cash-refund
        notes already credited cash at posting.

        Raises:
            InvalidCreditNoteTransitionError: status is not posted.
        """
        note = self._load(credit_note_id, lock=True)
        if note.status != CreditNoteStatus.POSTED.value:
            raise InvalidCreditNoteTransitionError(
                note.id, note.status, CreditNoteStatus.REFUNDED.value
            )

        refund_journal_id = None
        if note.mode == CreditNoteMode.RECEIVABLE.value:
            refund_journal_id = self._journals.post_journal(
                entry_date=entry_date,
                reference=JournalReference(ReferenceKind.CREDIT_NOTE_REFUND, str(note.id)),
                description=f"Refund payout for credit note {note.credit_note_number}",
                created_by=refunded_by,
                lines=[
                    LineSpec.dr(self._roles.resolve(AccountRole.ACCOUNTS_RECEIVABLE), note.amount),
                    LineSpec.cr(self._cash_account(payment_account_code), note.amount),
                ],
                idempotency_key=f"credit_note_refund_{note.id}",
            ).id

        note.status = CreditNoteStatus.REFUNDED.value
        note.refunded_at = self.clock.now()
        note.refunded_by = refunded_by
        note.refund_journal_id = refund_journal_id
        self.session.flush()

        logger.info(
            "credit_note_refunded",
            extra={
                "credit_note_id": note.id,
                "mode": note.mode,
                "amount": note.amount,
                "journal_id": refund_journal_id,
            },
        )
        return note.to_dto()
