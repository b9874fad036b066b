"""
JournalService -- the only write path into the general ledger.

Responsibility:
    Validates and posts balanced journals, and posts reversing journals as
    the sole correction mechanism.  Every balance movement in the system
    passes through ``post_journal``.

Architecture position:
    Kernel > Services.  Called by the subledger modules (inventory, AP,
    credit notes, COD) inside their own unit of work, and by the
    request-level ``post_journal`` operation.

Invariants enforced:
    - At least two lines; each line has exactly one positive side.
    - Sum(debit) == Sum(credit), exact Decimal equality.
    - Every account exists and is active.
    - The period for entry_date exists and is open, re-checked under a
      shared row lock in the same transaction that inserts the journal.
    - No update or delete method exists.  The ORM layer rejects any
      attempt made around this service (db/immutability.py).
    - idempotency_key, when given, is unique.

Failure modes (all raised before any write):
    MalformedLineError, UnbalancedJournalError, InvalidAccountError,
    DuplicateJournalError, PeriodNotFoundError, PeriodClosedError.

Audit relevance:
    ``journal_posted`` is logged with journal id, reference and totals.
"""

from datetime import date
from decimal import Decimal
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ledger_kernel.db.types import ZERO, exceeds_money_precision
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import JournalInfo, LineSpec
from ledger_kernel.domain.references import JournalReference, ReferenceKind
from ledger_kernel.exceptions import (
    DuplicateJournalError,
    InvalidAccountError,
    JournalAlreadyReversedError,
    JournalNotFoundError,
    MalformedLineError,
    UnbalancedJournalError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import Journal, JournalLine
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.period_service import PeriodService

logger = get_logger("services.journal")


def validate_lines(lines: Sequence[LineSpec]) -> tuple[Decimal, Decimal]:
    """
    Structural validation of journal legs.  Pure; no I/O.

    Returns:
        (total_debit, total_credit)

    Raises:
        MalformedLineError, UnbalancedJournalError.
    """
    if len(lines) < 2:
        raise MalformedLineError(None, f"a journal needs at least 2 lines, got {len(lines)}")

    total_debit = ZERO
    total_credit = ZERO
    for index, line in enumerate(lines):
        if line.debit < 0 or line.credit < 0:
            raise MalformedLineError(index, "debit and credit must be non-negative")
        if (line.debit > 0) == (line.credit > 0):
            raise MalformedLineError(index, "exactly one of debit/credit must be nonzero")
        if exceeds_money_precision(line.debit) or exceeds_money_precision(line.credit):
            raise MalformedLineError(index, "amount exceeds 2 decimal places")
        total_debit += line.debit
        total_credit += line.credit

    if total_debit != total_credit:
        raise UnbalancedJournalError(total_debit, total_credit)
    return total_debit, total_credit


class JournalService(BaseService):
    """
    Posts immutable, balanced journals.

    Contract:
        ``post_journal`` either inserts one Journal plus all of its lines in
        a single flush, or raises without writing anything.  Returned
        ``JournalInfo`` objects are frozen snapshots.

    Non-goals:
        - Does NOT commit.  The caller's unit of work decides.
        - Does NOT update or delete journals, ever.
    """

    def __init__(self, session, clock: Clock | None = None, periods: PeriodService | None = None):
        super().__init__(session, clock)
        self._periods = periods or PeriodService(session, self.clock)

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    def post_journal(
        self,
        entry_date: date,
        reference: JournalReference,
        description: str | None,
        created_by: str,
        lines: Sequence[LineSpec],
        idempotency_key: str | None = None,
    ) -> JournalInfo:
        """
        Validate and post a journal.

        Preconditions:
            ``lines`` carry Decimal (or int/str) amounts, never floats.

        Postconditions:
            One Journal and len(lines) JournalLine rows are flushed;
            ``posted_at`` is the clock time.

        Raises:
            MalformedLineError: fewer than 2 lines, a line with both or
                neither side, a negative side, or sub-cent precision.
            UnbalancedJournalError: debits != credits.
            InvalidAccountError: unknown or inactive account.
            DuplicateJournalError: idempotency_key already used.
            PeriodNotFoundError / PeriodClosedError: period gate.
        """
        return self._post(
            entry_date, reference, description, created_by, lines, idempotency_key, None
        )

    def reverse_journal(
        self,
        journal_id: int,
        entry_date: date,
        created_by: str,
        description: str | None = None,
    ) -> JournalInfo:
        """
        Post the mirror image of ``journal_id`` (debits and credits swapped).

        The reversal references the original (``reversal:<id>``) and sets
        ``reversal_of_id``.  Its date must fall in an open period; the
        original's period may be closed.

        Raises:
            JournalNotFoundError: unknown journal.
            JournalAlreadyReversedError: a reversal already exists.
        """
        original = self.session.get(Journal, journal_id)
        if original is None:
            raise JournalNotFoundError(journal_id)

        existing = self.session.execute(
            select(Journal.id).where(Journal.reversal_of_id == journal_id)
        ).scalar_one_or_none()
        if existing is not None:
            raise JournalAlreadyReversedError(journal_id, existing)

        swapped = [
            LineSpec(
                account_id=line.account_id,
                debit=line.credit,
                credit=line.debit,
                memo=line.memo,
            )
            for line in original.lines
        ]
        return self._post(
            entry_date,
            JournalReference(ReferenceKind.REVERSAL, str(journal_id)),
            description or f"Reversal of journal {journal_id}",
            created_by,
            swapped,
            f"reversal_{journal_id}",
            journal_id,
        )

    def _post(
        self,
        entry_date: date,
        reference: JournalReference,
        description: str | None,
        created_by: str,
        lines: Sequence[LineSpec],
        idempotency_key: str | None,
        reversal_of_id: int | None,
    ) -> JournalInfo:
        if not isinstance(reference, JournalReference):
            raise TypeError("reference must be a JournalReference")

        total_debit, _ = validate_lines(lines)
        self._validate_accounts(lines)

        if idempotency_key is not None:
            existing = self._find_id_by_key(idempotency_key)
            if existing is not None:
                raise DuplicateJournalError(idempotency_key, existing)

        # Period gate last, inside the inserting transaction
        self._periods.lock_period_for_posting(entry_date)

        journal = Journal(
            entry_date=entry_date,
            reference_type=reference.kind.value,
            reference_id=reference.ref_id,
            description=description,
            created_by=created_by,
            posted_at=self.clock.now(),
            idempotency_key=idempotency_key,
            reversal_of_id=reversal_of_id,
        )
        journal.lines = [
            JournalLine(
                line_seq=seq,
                account_id=line.account_id,
                debit=line.debit,
                credit=line.credit,
                memo=line.memo,
            )
            for seq, line in enumerate(lines, start=1)
        ]
        self.session.add(journal)
        try:
            self.session.flush()
        except IntegrityError as exc:
            if idempotency_key is not None and "idempotency" in str(exc.orig).lower():
                raise DuplicateJournalError(idempotency_key, None) from exc
            raise

        logger.info(
            "journal_posted",
            extra={
                "journal_id": journal.id,
                "reference": str(reference),
                "entry_date": entry_date,
                "line_count": len(lines),
                "total": total_debit,
                "reversal_of_id": reversal_of_id,
            },
        )
        return journal.to_dto()

    def _validate_accounts(self, lines: Sequence[LineSpec]) -> None:
        ids = {line.account_id for line in lines}
        accounts = {
            a.id: a
            for a in self.session.execute(select(Account).where(Account.id.in_(ids))).scalars()
        }
        for line in lines:
            account = accounts.get(line.account_id)
            if account is None:
                raise InvalidAccountError(line.account_id, "unknown account")
            if not account.is_active:
                raise InvalidAccountError(line.account_id, "account is inactive")

    def _find_id_by_key(self, idempotency_key: str) -> int | None:
        return self.session.execute(
            select(Journal.id).where(Journal.idempotency_key == idempotency_key)
        ).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_journal(self, journal_id: int) -> JournalInfo:
        journal = self.session.get(Journal, journal_id)
        if journal is None:
            raise JournalNotFoundError(journal_id)
        return journal.to_dto()

    def find_by_idempotency_key(self, idempotency_key: str) -> JournalInfo | None:
        journal = self.session.execute(
            select(Journal).where(Journal.idempotency_key == idempotency_key)
        ).scalar_one_or_none()
        return journal.to_dto() if journal else None

    def find_by_reference(self, reference: JournalReference) -> list[JournalInfo]:
        journals = self.session.execute(
            select(Journal)
            .where(
                Journal.reference_type == reference.kind.value,
                Journal.reference_id == reference.ref_id,
            )
            .order_by(Journal.id)
        ).scalars()
        return [j.to_dto() for j in journals]
