"""
Module: ledger_modules.ar.orm
Responsibility: SQLAlchemy ORM persistence for customer payments verified
    against customer invoices.

Architecture position: Modules > AR > ORM.  Customer invoices and orders
    live outside the accounting core and are referenced by id with NO
    foreign key.

Invariants enforced:
    - At most one payment row per customer invoice (unique invoice_id).
    - A voided payment keeps its verification data; voiding only adds.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import DocumentBase, LedgerId


class CustomerPayment(DocumentBase):
    """A transfer the finance desk has checked against a customer invoice."""

    __tablename__ = "customer_payments"

    __table_args__ = (
        UniqueConstraint("invoice_id", name="uq_customer_payment_invoice"),
        Index("idx_customer_payment_status", "status"),
        CheckConstraint("amount > 0", name="chk_customer_payment_amount_positive"),
    )

    invoice_id: Mapped[str] = mapped_column(String(64), nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    account_id: Mapped[int] = mapped_column(LedgerId, ForeignKey("accounts.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="verified", nullable=False)
    proof_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified_by: Mapped[str] = mapped_column(String(100), nullable=False)
    verified_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    verify_journal_id: Mapped[int | None] = mapped_column(
        LedgerId, ForeignKey("journals.id"), nullable=True
    )
    voided_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    voided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    void_journal_id: Mapped[int | None] = mapped_column(
        LedgerId, ForeignKey("journals.id"), nullable=True
    )
    void_cogs_journal_id: Mapped[int | None] = mapped_column(
        LedgerId, ForeignKey("journals.id"), nullable=True
    )

    def to_dto(self):
        from ledger_modules.ar.models import (
            CustomerPaymentInfo,
            CustomerPaymentStatus,
            PaymentMethod,
        )

        return CustomerPaymentInfo(
            id=self.id,
            invoice_id=self.invoice_id,
            invoice_number=self.invoice_number,
            payment_method=PaymentMethod(self.payment_method),
            amount=self.amount,
            account_id=self.account_id,
            status=CustomerPaymentStatus(self.status),
            proof_url=self.proof_url,
            verified_by=self.verified_by,
            verified_at=self.verified_at,
            verify_journal_id=self.verify_journal_id,
            voided_by=self.voided_by,
            voided_at=self.voided_at,
            void_journal_id=self.void_journal_id,
            void_cogs_journal_id=self.void_cogs_journal_id,
        )

    def __repr__(self) -> str:
        return f"<CustomerPayment invoice={self.invoice_id} {self.status} amount={self.amount}>"
