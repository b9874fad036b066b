"""
Receivables Service (``ledger_modules.ar.service``).

Responsibility
--------------
Books customer transfers once the finance desk has checked the proof, and
backs a sale out again when a verified payment is voided:

* verify:  Dr bank (or chosen cash account)  / Cr accounts_receivable
* void:    Dr sales                          / Cr the account the payment went to
           Dr inventory                      / Cr cogs   (when a cost is given)

Architecture position
---------------------
**Modules layer** -- flush-only service over ``CustomerPayment`` that posts
through the kernel ``JournalService``.

Invariants enforced
-------------------
* One verified payment per customer invoice.  The verify journal's
  idempotency key is ``payment_verify_<invoice_id>``, so a second verify
  fails even if the payment row were lost.
* COD and cash-store invoices are never verified here; they become paid
  through COD settlement.
* Void is terminal.  The void journals are keyed ``payment_void_<invoice_id>``
  and ``payment_void_cogs_<invoice_id>``.

Audit relevance
---------------
``customer_payment_verified`` and ``customer_payment_voided`` are logged
with the invoice, amount and journal ids.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ledger_kernel.db.types import ZERO, exceeds_money_precision, to_decimal
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.domain.references import JournalReference, ReferenceKind
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.exceptions import (
    CustomerPaymentNotFoundError,
    InvalidAmountError,
    MissingPaymentProofError,
    PaymentStateError,
    SettlementOnlyPaymentError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.role_resolver import RoleResolver
from ledger_modules.ar.models import (
    CustomerPaymentInfo,
    CustomerPaymentStatus,
    PaymentMethod,
)
from ledger_modules.ar.orm import CustomerPayment

logger = get_logger("modules.ar.service")


def verify_idempotency_key(invoice_id: str) -> str:
    return f"payment_verify_{invoice_id}"


def void_idempotency_key(invoice_id: str) -> str:
    return f"payment_void_{invoice_id}"


def void_cogs_idempotency_key(invoice_id: str) -> str:
    return f"payment_void_cogs_{invoice_id}"


class ReceivablesService(BaseService):
    """
    Customer payment verification and voiding.

    Non-goals:
        - Does NOT move order statuses; the order workflow reacts to the
          returned payment.
        - Rejecting a proof has no ledger effect and is not handled here.
        - Does NOT return stock; voiding only reverses the cost posting.
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

    def _find(self, invoice_id: str, lock: bool = False) -> CustomerPayment | None:
        stmt = select(CustomerPayment).where(CustomerPayment.invoice_id == str(invoice_id))
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.session.execute(stmt).scalar_one_or_none()

    def verify_payment(
        self,
        invoice_id: str,
        invoice_number: str,
        amount: Decimal,
        payment_method: PaymentMethod | str,
        verified_by: str,
        entry_date: date,
        proof_url: str | None = None,
        account_code: str | None = None,
    ) -> CustomerPaymentInfo:
        """
        Record a checked transfer and move it out of accounts receivable.

        ``account_code`` overrides the account the money landed in; by
        default a manual transfer goes to the bank role.

        Raises:
            SettlementOnlyPaymentError: COD or cash-store invoice.
            MissingPaymentProofError: transfer without a proof.
            InvalidAmountError: amount <= 0 or sub-cent.
            PaymentStateError: the invoice already has a payment.
            Any JournalService error (period closed, duplicate key, ...).
        """
        invoice_id = str(invoice_id)
        method = PaymentMethod(payment_method)
        if method.settled_by_cod:
            raise SettlementOnlyPaymentError(invoice_id, method.value)
        if not proof_url:
            raise MissingPaymentProofError(invoice_id)
        amount = to_decimal(amount)
        if amount <= 0:
            raise InvalidAmountError(amount)
        if exceeds_money_precision(amount):
            raise InvalidAmountError(amount, "amount exceeds 2 decimal places")

        existing = self._find(invoice_id, lock=True)
        if existing is not None:
            raise PaymentStateError(invoice_id, existing.status, "verify")

        account_id = (
            self._roles.resolve_code(account_code)
            if account_code
            else self._roles.resolve(method.deposit_role)
        )
        payment = CustomerPayment(
            invoice_id=invoice_id,
            invoice_number=invoice_number,
            payment_method=method.value,
            amount=amount,
            account_id=account_id,
            status=CustomerPaymentStatus.VERIFIED.value,
            proof_url=proof_url,
            verified_by=verified_by,
            verified_at=self.clock.now(),
        )
        try:
            with self.session.begin_nested():
                self.session.add(payment)
        except IntegrityError as exc:
            winner = self._find(invoice_id)
            if winner is None:
                raise
            raise PaymentStateError(invoice_id, winner.status, "verify") from exc

        journal = self._journals.post_journal(
            entry_date=entry_date,
            reference=JournalReference(ReferenceKind.PAYMENT_VERIFY, invoice_id),
            description=f"Payment verified for invoice {invoice_number}",
            created_by=verified_by,
            lines=[
                LineSpec.dr(account_id, amount),
                LineSpec.cr(self._roles.resolve(AccountRole.ACCOUNTS_RECEIVABLE), amount),
            ],
            idempotency_key=verify_idempotency_key(invoice_id),
        )
        payment.verify_journal_id = journal.id
        self.session.flush()

        logger.info(
            "customer_payment_verified",
            extra={
                "invoice_id": invoice_id,
                "payment_method": method.value,
                "amount": amount,
                "journal_id": journal.id,
            },
        )
        return payment.to_dto()

    def void_payment(
        self,
        invoice_id: str,
        voided_by: str,
        entry_date: date,
        cost_amount: Decimal | None = None,
    ) -> CustomerPaymentInfo:
        """
        Void a verified payment and reverse the sale behind it.

        ``cost_amount`` is the cost of the goods on the invoice; when it is
        positive the COGS posting is reversed as well.

        Raises:
            CustomerPaymentNotFoundError: nothing was verified for the invoice.
            PaymentStateError: the payment is already voided.
            InvalidAmountError: negative cost.
        """
        invoice_id = str(invoice_id)
        cost = to_decimal(cost_amount) if cost_amount is not None else ZERO
        if cost < 0:
            raise InvalidAmountError(cost, "cost must not be negative")

        payment = self._find(invoice_id, lock=True)
        if payment is None:
            raise CustomerPaymentNotFoundError(invoice_id)
        if payment.status != CustomerPaymentStatus.VERIFIED.value:
            raise PaymentStateError(invoice_id, payment.status, "void")

        sale_journal = self._journals.post_journal(
            entry_date=entry_date,
            reference=JournalReference(ReferenceKind.PAYMENT_VOID, invoice_id),
            description=f"Sale reversed on payment void, invoice {payment.invoice_number}",
            created_by=voided_by,
            lines=[
                LineSpec.dr(self._roles.resolve(AccountRole.SALES), payment.amount),
                LineSpec.cr(payment.account_id, payment.amount),
            ],
            idempotency_key=void_idempotency_key(invoice_id),
        )

        cogs_journal_id = None
        if cost > 0:
            cogs_journal_id = self._journals.post_journal(
                entry_date=entry_date,
                reference=JournalReference(ReferenceKind.PAYMENT_VOID, invoice_id),
                description=f"COGS reversed on payment void, invoice {payment.invoice_number}",
                created_by=voided_by,
                lines=[
                    LineSpec.dr(self._roles.resolve(AccountRole.INVENTORY), cost),
                    LineSpec.cr(self._roles.resolve(AccountRole.COGS), cost),
                ],
                idempotency_key=void_cogs_idempotency_key(invoice_id),
            ).id

        payment.status = CustomerPaymentStatus.VOIDED.value
        payment.voided_by = voided_by
        payment.voided_at = self.clock.now()
        payment.void_journal_id = sale_journal.id
        payment.void_cogs_journal_id = cogs_journal_id
        self.session.flush()

        logger.info(
            "customer_payment_voided",
            extra={
                "invoice_id": invoice_id,
                "amount": payment.amount,
                "cost": cost,
                "journal_id": sale_journal.id,
                "cogs_journal_id": cogs_journal_id,
            },
        )
        return payment.to_dto()

    def get_payment(self, invoice_id: str) -> CustomerPaymentInfo:
        payment = self._find(invoice_id)
        if payment is None:
            raise CustomerPaymentNotFoundError(invoice_id)
        return payment.to_dto()

    def list_payments(self, status: CustomerPaymentStatus | str | None = None) -> list[CustomerPaymentInfo]:
        stmt = select(CustomerPayment).order_by(CustomerPayment.verified_at)
        if status is not None:
            stmt = stmt.where(CustomerPayment.status == CustomerPaymentStatus(status).value)
        return [row.to_dto() for row in self.session.execute(stmt).scalars()]
