"""
Module: ledger_modules.credit_notes.orm
Responsibility: SQLAlchemy ORM persistence for customer credit notes and
    their lines.

Architecture position: Modules > Credit notes > ORM.  Customer invoices
    live outside the accounting core and are referenced by id with NO
    foreign key.

Invariants enforced:
    - All monetary fields use Decimal (Numeric(18, 2)), NEVER float.
    - credit_note_number is unique.
    - Posted and refunded notes, and their lines, are frozen except for
      the posted -> refunded transition (guards.py).

Failure modes:
    - ImmutableCreditNoteError at flush time on a forbidden change.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import DocumentBase, LedgerId, LedgerRowBase, TrackedBase, UUIDString


class CreditNote(DocumentBase):
    """Adjustment against a customer invoice."""

    __tablename__ = "credit_notes"

    __table_args__ = (
        UniqueConstraint("credit_note_number", name="uq_credit_note_number"),
        Index("idx_credit_note_invoice", "invoice_id"),
        CheckConstraint("amount > 0", name="chk_credit_note_amount_positive"),
        CheckConstraint(
            "tax_amount >= 0 AND tax_amount <= amount", name="chk_credit_note_tax_range"
        ),
    )

    credit_note_number: Mapped[str] = mapped_column(String(40), nullable=False)
    invoice_id: Mapped[str] = mapped_column(String(64), nullable=False)
    mode: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="draft", nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    posted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    posted_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    refunded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    refunded_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    journal_id: Mapped[int | None] = mapped_column(
        LedgerId, ForeignKey("journals.id"), nullable=True
    )
    refund_journal_id: Mapped[int | None] = mapped_column(
        LedgerId, ForeignKey("journals.id"), nullable=True
    )

    lines: Mapped[list["CreditNoteLine"]] = relationship(
        back_populates="credit_note",
        cascade="all, delete-orphan",
        order_by="CreditNoteLine.line_seq",
        lazy="selectin",
    )

    def to_dto(self):
        from ledger_modules.credit_notes.models import (
            CreditNoteInfo,
            CreditNoteMode,
            CreditNoteStatus,
        )

        return CreditNoteInfo(
            id=self.id,
            credit_note_number=self.credit_note_number,
            invoice_id=self.invoice_id,
            mode=CreditNoteMode(self.mode),
            status=CreditNoteStatus(self.status),
            amount=self.amount,
            tax_amount=self.tax_amount,
            reason=self.reason,
            created_by=self.created_by,
            posted_at=self.posted_at,
            posted_by=self.posted_by,
            refunded_at=self.refunded_at,
            refunded_by=self.refunded_by,
            journal_id=self.journal_id,
            refund_journal_id=self.refund_journal_id,
            lines=tuple(line.to_dto() for line in self.lines),
        )

    def __repr__(self) -> str:
        return f"<CreditNote {self.credit_note_number} {self.status} amount={self.amount}>"


class CreditNoteLine(LedgerRowBase, TrackedBase):
    __tablename__ = "credit_note_lines"

    __table_args__ = (
        UniqueConstraint("credit_note_id", "line_seq", name="uq_credit_note_line_seq"),
        CheckConstraint("qty > 0", name="chk_credit_note_line_qty_positive"),
    )

    credit_note_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("credit_notes.id"), nullable=False
    )
    line_seq: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[UUID | None] = mapped_column(nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    line_subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    line_tax: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    line_total: Mapped[Decimal] = mapped_column(nullable=False)

    credit_note: Mapped[CreditNote] = relationship(back_populates="lines")

    def to_dto(self):
        from ledger_modules.credit_notes.models import CreditNoteLineInfo

        return CreditNoteLineInfo(
            line_seq=self.line_seq,
            product_id=self.product_id,
            description=self.description,
            qty=self.qty,
            unit_price=self.unit_price,
            line_subtotal=self.line_subtotal,
            line_tax=self.line_tax,
            line_total=self.line_total,
        )
