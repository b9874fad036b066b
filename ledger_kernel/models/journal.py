"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for Journal and JournalLine -- the general
    ledger.  Every balance in the system is derived from these rows.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/.  MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - Journals are append-only.  db/immutability.py rejects every UPDATE and
      DELETE of either table, including bulk statements.
    - Each line has exactly one positive side (ck_journal_line_one_side).
    - Sum(debit) == Sum(credit) per journal -- enforced by JournalService
      before the INSERT; the ledger selector exposes an audit query.
    - idempotency_key is unique when present (uq_journal_idempotency_key).

Failure modes:
    - ImmutableJournalError on flush of any modified/deleted row.
    - IntegrityError on duplicate idempotency_key (translated to
      DuplicateJournalError by JournalService).

Audit relevance:
    reference_type/reference_id link each journal to the business event
    that produced it; reversal_of_id links a reversal to its original.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import LedgerId, LedgerRowBase
from ledger_kernel.domain.dtos import JournalInfo, JournalLineInfo
from ledger_kernel.domain.references import JournalReference

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class Journal(LedgerRowBase):
    """
    One immutable accounting event.

    Contract:
        Created only by JournalService.post_journal (or reverse_journal),
        together with all of its lines in a single flush.  There is no
        draft status: a Journal row that exists is posted.
    """

    __tablename__ = "journals"

    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_journal_idempotency_key"),
        Index("idx_journal_date", "entry_date"),
        Index("idx_journal_reference", "reference_type", "reference_id"),
    )

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    reference_type: Mapped[str] = mapped_column(String(40), nullable=False)
    reference_id: Mapped[str] = mapped_column(String(64), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    posted_at: Mapped[datetime] = mapped_column(nullable=False)

    idempotency_key: Mapped[str | None] = mapped_column(String(128), nullable=True)

    reversal_of_id: Mapped[int | None] = mapped_column(
        LedgerId,
        ForeignKey("journals.id"),
        nullable=True,
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="journal",
        cascade="save-update, merge",
        lazy="selectin",
        order_by="JournalLine.line_seq",
    )

    def __repr__(self) -> str:
        return f"<Journal {self.id} {self.reference_type}:{self.reference_id}>"

    @property
    def reference(self) -> JournalReference:
        return JournalReference.of(self.reference_type, self.reference_id)

    def to_dto(self) -> JournalInfo:
        return JournalInfo(
            id=self.id,
            entry_date=self.entry_date,
            reference=self.reference,
            description=self.description,
            created_by=self.created_by,
            posted_at=self.posted_at,
            idempotency_key=self.idempotency_key,
            reversal_of_id=self.reversal_of_id,
            lines=tuple(
                JournalLineInfo(
                    line_seq=line.line_seq,
                    account_id=line.account_id,
                    debit=line.debit,
                    credit=line.credit,
                    memo=line.memo,
                )
                for line in self.lines
            ),
        )


class JournalLine(LedgerRowBase):
    """One debit or credit leg of a journal."""

    __tablename__ = "journal_lines"

    __table_args__ = (
        CheckConstraint("debit >= 0 AND credit >= 0", name="ck_journal_line_non_negative"),
        CheckConstraint(
            "(debit > 0 AND credit = 0) OR (credit > 0 AND debit = 0)",
            name="ck_journal_line_one_side",
        ),
        Index("idx_journal_line_journal", "journal_id"),
        Index("idx_journal_line_account", "account_id"),
    )

    journal_id: Mapped[int] = mapped_column(
        LedgerId,
        ForeignKey("journals.id"),
        nullable=False,
    )
    account_id: Mapped[int] = mapped_column(
        LedgerId,
        ForeignKey("accounts.id"),
        nullable=False,
    )

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False)

    debit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    credit: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    memo: Mapped[str | None] = mapped_column(String(255), nullable=True)

    journal: Mapped["Journal"] = relationship(back_populates="lines")
    account: Mapped["Account"] = relationship(back_populates="journal_lines")

    def __repr__(self) -> str:
        return (
            f"<JournalLine {self.journal_id}#{self.line_seq} acct={self.account_id} "
            f"dr={self.debit} cr={self.credit}>"
        )
