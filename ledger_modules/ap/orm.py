"""
Module: ledger_modules.ap.orm
Responsibility: SQLAlchemy ORM persistence for supplier invoices and
    supplier payments.

Architecture position: Modules > AP > ORM.  Inherits from DocumentBase
    (UUID primary keys).  Suppliers and purchase orders live outside the
    accounting core and are referenced by id with NO foreign key; accounts
    and journals are kernel tables and carry real foreign keys.

Invariants enforced:
    - All monetary fields use Decimal (Numeric(18, 2)), NEVER float.
    - Status stored as String(20): unpaid, paid, overdue.
    - (supplier_id, invoice_number) is unique.
    - paid_total is derived from SupplierPayment rows, never stored.

Failure modes:
    - IntegrityError on a duplicate supplier invoice number.

Audit relevance:
    Each invoice and payment links to the journal it posted (journal_id).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import DocumentBase, LedgerId, UUIDString
from ledger_kernel.db.types import ZERO


class SupplierInvoice(DocumentBase):
    """
    Payable owed to a supplier.

    Guarantees:
        - payments are loaded in paid_at order.
    """

    __tablename__ = "supplier_invoices"

    __table_args__ = (
        UniqueConstraint("supplier_id", "invoice_number", name="uq_supplier_invoice_number"),
        Index("idx_supplier_invoice_status_due", "status", "due_date"),
        CheckConstraint("total > 0", name="chk_supplier_invoice_total_positive"),
    )

    supplier_id: Mapped[str] = mapped_column(String(64), nullable=False)
    purchase_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    total: Mapped[Decimal] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="unpaid", nullable=False)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    journal_id: Mapped[int | None] = mapped_column(
        LedgerId, ForeignKey("journals.id"), nullable=True
    )

    payments: Mapped[list["SupplierPayment"]] = relationship(
        back_populates="invoice",
        order_by="SupplierPayment.paid_at",
        lazy="selectin",
    )

    @property
    def paid_total(self) -> Decimal:
        return sum((p.amount for p in self.payments), ZERO)

    def to_dto(self):
        from ledger_modules.ap.models import SupplierInvoiceInfo, SupplierInvoiceStatus

        return SupplierInvoiceInfo(
            id=self.id,
            supplier_id=self.supplier_id,
            purchase_order_id=self.purchase_order_id,
            invoice_number=self.invoice_number,
            total=self.total,
            due_date=self.due_date,
            status=SupplierInvoiceStatus(self.status),
            paid_total=self.paid_total,
            created_by=self.created_by,
            journal_id=self.journal_id,
        )

    def __repr__(self) -> str:
        return f"<SupplierInvoice {self.invoice_number} {self.status} total={self.total}>"


class SupplierPayment(DocumentBase):
    """One payment against a supplier invoice."""

    __tablename__ = "supplier_payments"

    __table_args__ = (
        Index("idx_supplier_payment_invoice", "supplier_invoice_id"),
        CheckConstraint("amount > 0", name="chk_supplier_payment_amount_positive"),
    )

    supplier_invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("supplier_invoices.id"), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    account_id: Mapped[int] = mapped_column(LedgerId, ForeignKey("accounts.id"), nullable=False)
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(100), nullable=False)
    journal_id: Mapped[int | None] = mapped_column(
        LedgerId, ForeignKey("journals.id"), nullable=True
    )

    invoice: Mapped[SupplierInvoice] = relationship(back_populates="payments")

    def to_dto(self):
        from ledger_modules.ap.models import SupplierPaymentInfo

        return SupplierPaymentInfo(
            id=self.id,
            supplier_invoice_id=self.supplier_invoice_id,
            amount=self.amount,
            account_id=self.account_id,
            paid_at=self.paid_at,
            created_by=self.created_by,
            note=self.note,
            journal_id=self.journal_id,
        )

    def __repr__(self) -> str:
        return f"<SupplierPayment {self.id} amount={self.amount}>"
