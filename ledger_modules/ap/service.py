"""
Accounts Payable Service (``ledger_modules.ap.service``).

Responsibility
--------------
Records supplier invoices and payments and posts their journals in the
caller's unit of work:

* invoice:  Dr inventory          / Cr accounts_payable
* payment:  Dr accounts_payable   / Cr chosen cash or bank account

Architecture position
---------------------
**Modules layer** -- flush-only service over ``SupplierInvoice`` /
``SupplierPayment`` that posts through the kernel ``JournalService``.

Invariants enforced
-------------------
* Payments never exceed the invoice total.  An overpayment is rejected
  with the remaining balance, never clamped.
* The invoice row is locked ``FOR UPDATE`` before existing payments are
  summed, so two concurrent payments cannot both pass the check.
* Status becomes ``paid`` exactly when payments cover the total; otherwise
  it is left as it was (``overdue`` is flipped only by ``flag_overdue``).

Failure modes
-------------
* ``DuplicateSupplierInvoiceError`` when the supplier already has an
  invoice with the same number.
* ``InvoiceNotFoundError``, ``InvalidAmountError``, ``OverpaymentError``,
  plus any ``JournalService`` error.  All raised before the payment row is
  flushed, except journal errors, which abort the caller's transaction.

Audit relevance
---------------
``supplier_invoice_recorded``, ``supplier_payment_recorded`` and
``supplier_invoices_flagged_overdue`` are logged with ids and amounts.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ledger_kernel.db.types import ZERO, exceeds_money_precision, to_decimal
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.domain.references import JournalReference, ReferenceKind
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.exceptions import (
    DuplicateSupplierInvoiceError,
    InvalidAmountError,
    InvoiceNotFoundError,
    OverpaymentError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.role_resolver import RoleResolver
from ledger_modules.ap.models import (
    PaymentResult,
    SupplierInvoiceInfo,
    SupplierInvoiceStatus,
    SupplierPaymentInfo,
)
from ledger_modules.ap.orm import SupplierInvoice, SupplierPayment

logger = get_logger("modules.ap.service")


def _positive_amount(value) -> Decimal:
    amount = to_decimal(value)
    if amount <= 0:
        raise InvalidAmountError(amount)
    if exceeds_money_precision(amount):
        raise InvalidAmountError(amount, "amount exceeds 2 decimal places")
    return amount


class PayablesService(BaseService):
    """
    Supplier invoices and payments.

    Contract:
        Every write method flushes the document rows and posts its journal
        in the caller's transaction; nothing is committed here.

    Non-goals:
        - No scheduler.  ``flag_overdue`` is the hook an external job calls.
        - No credit handling for overpayments.
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

    def _load(self, invoice_id: UUID, lock: bool = False) -> SupplierInvoice:
        stmt = select(SupplierInvoice).where(SupplierInvoice.id == invoice_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        invoice = self.session.execute(stmt).scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(invoice_id)
        return invoice

    def _paid_total(self, invoice_id: UUID) -> Decimal:
        amounts = self.session.execute(
            select(SupplierPayment.amount).where(SupplierPayment.supplier_invoice_id == invoice_id)
        ).scalars()
        return sum(amounts, ZERO)

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    def record_supplier_invoice(
        self,
        supplier_id: str,
        purchase_order_id: str | None,
        invoice_number: str,
        total: Decimal,
        due_date: date,
        created_by: str,
        entry_date: date,
    ) -> SupplierInvoiceInfo:
        """Record a supplier invoice and post Dr inventory / Cr accounts payable."""
        total = _positive_amount(total)
        invoice = SupplierInvoice(
            supplier_id=str(supplier_id),
            purchase_order_id=str(purchase_order_id) if purchase_order_id is not None else None,
            invoice_number=invoice_number,
            total=total,
            due_date=due_date,
            status=SupplierInvoiceStatus.UNPAID.value,
            created_by=created_by,
        )
        try:
            with self.session.begin_nested():
                self.session.add(invoice)
        except IntegrityError as exc:
            existing = self.session.execute(
                select(SupplierInvoice.id).where(
                    SupplierInvoice.supplier_id == str(supplier_id),
                    SupplierInvoice.invoice_number == invoice_number,
                )
            ).scalar_one_or_none()
            if existing is None:
                raise
            raise DuplicateSupplierInvoiceError(supplier_id, invoice_number, existing) from exc

        journal = self._journals.post_journal(
            entry_date=entry_date,
            reference=JournalReference(ReferenceKind.SUPPLIER_INVOICE, str(invoice.id)),
            description=f"Supplier invoice {invoice_number}",
            created_by=created_by,
            lines=[
                LineSpec.dr(self._roles.resolve(AccountRole.INVENTORY), total),
                LineSpec.cr(self._roles.resolve(AccountRole.ACCOUNTS_PAYABLE), total),
            ],
            idempotency_key=f"supplier_invoice_{invoice.id}",
        )
        invoice.journal_id = journal.id
        self.session.flush()

        logger.info(
            "supplier_invoice_recorded",
            extra={
                "invoice_id": invoice.id,
                "supplier_id": supplier_id,
                "invoice_number": invoice_number,
                "total": total,
                "journal_id": journal.id,
            },
        )
        return invoice.to_dto()

    def get_invoice(self, invoice_id: UUID) -> SupplierInvoiceInfo:
        return self._load(invoice_id).to_dto()

    def list_payments(self, invoice_id: UUID) -> list[SupplierPaymentInfo]:
        return [p.to_dto() for p in self._load(invoice_id).payments]

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def record_supplier_payment(
        self,
        supplier_invoice_id: UUID,
        amount: Decimal,
        account_id: int,
        paid_at: datetime,
        created_by: str,
        note: str | None = None,
    ) -> PaymentResult:
        """
        Record a payment against a supplier invoice.

        Preconditions:
            ``account_id`` is the cash or bank account the money left from.

        Postconditions:
            One SupplierPayment row and one journal (Dr AP / Cr account_id)
            dated ``paid_at.date()``.  Invoice status is ``paid`` when the
            payments now cover the total.

        Raises:
            InvoiceNotFoundError, InvalidAmountError, OverpaymentError.
        """
        invoice = self._load(supplier_invoice_id, lock=True)
        amount = _positive_amount(amount)

        paid_before = self._paid_total(invoice.id)
        if paid_before + amount > invoice.total:
            logger.warning(
                "supplier_overpayment_rejected",
                extra={
                    "invoice_id": invoice.id,
                    "invoice_total": invoice.total,
                    "paid_total": paid_before,
                    "amount": amount,
                },
            )
            raise OverpaymentError(invoice.id, invoice.total, paid_before, amount)

        payment = SupplierPayment(
            invoice=invoice,
            amount=amount,
            account_id=account_id,
            paid_at=paid_at,
            note=note,
            created_by=created_by,
        )
        self.session.add(payment)
        self.session.flush()

        journal = self._journals.post_journal(
            entry_date=paid_at.date(),
            reference=JournalReference(ReferenceKind.SUPPLIER_PAYMENT, str(payment.id)),
            description=f"Payment of supplier invoice {invoice.invoice_number}",
            created_by=created_by,
            lines=[
                LineSpec.dr(self._roles.resolve(AccountRole.ACCOUNTS_PAYABLE), amount),
                LineSpec.cr(account_id, amount),
            ],
            idempotency_key=f"supplier_payment_{payment.id}",
        )
        payment.journal_id = journal.id

        paid_total = paid_before + amount
        if paid_total >= invoice.total:
            invoice.status = SupplierInvoiceStatus.PAID.value
        self.session.flush()

        logger.info(
            "supplier_payment_recorded",
            extra={
                "invoice_id": invoice.id,
                "payment_id": payment.id,
                "amount": amount,
                "paid_total": paid_total,
                "status": invoice.status,
                "journal_id": journal.id,
            },
        )
        return PaymentResult(
            payment=payment.to_dto(),
            invoice_status=SupplierInvoiceStatus(invoice.status),
            paid_total=paid_total,
            remaining=invoice.total - paid_total,
        )

    def flag_overdue(self, as_of: date | None = None) -> list[UUID]:
        """
        Flip unpaid invoices whose due date is before ``as_of`` to ``overdue``.

        Called by an external scheduler; returns the ids it changed.
        """
        as_of = as_of or self.clock.today()
        invoices = self.session.execute(
            select(SupplierInvoice)
            .where(
                SupplierInvoice.status == SupplierInvoiceStatus.UNPAID.value,
                SupplierInvoice.due_date < as_of,
            )
            .with_for_update()
        ).scalars().all()
        for invoice in invoices:
            invoice.status = SupplierInvoiceStatus.OVERDUE.value
        self.session.flush()

        flagged = [invoice.id for invoice in invoices]
        logger.info(
            "supplier_invoices_flagged_overdue",
            extra={"as_of": as_of, "count": len(flagged)},
        )
        return flagged
