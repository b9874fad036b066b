"""
ledger_services.operations -- request-level ledger operations.

Responsibility:
    One method per externally exposed operation.  Each method opens exactly
    one transaction through ``LedgerDatabase.session_scope()``, wires the
    kernel and module services for that session, and turns the outcome
    into an ``OperationResponse`` carrying an HTTP-style status code.

Architecture position:
    Services -- the outermost layer.  Imports kernel, modules and config;
    nothing imports it back.

Invariants enforced:
    - One operation == one transaction.  Any exception rolls the whole
      operation back before a response is built.
    - Typed ``LedgerError`` subclasses map to fixed status codes (see
      ``STATUS_BY_ERROR``); the body is
      ``{"error": code, "message": str, **structured fields}``.
    - Infrastructure failures (schema lock, ``OperationalError``) map to
      503 with ``retryable: true``.
    - Request amounts (str, int, float or Decimal) are converted once, by
      ``request_amount``; a float goes through ``str`` and text that is
      not a number is a 422 ``VALIDATION_ERROR``.  Services below this
      layer only ever see ``Decimal``.
    - Anything else propagates after rollback.  Errors are never swallowed.

Audit relevance:
    Every failure is logged at WARNING with its error code and the
    operation name before the response is returned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Mapping, Sequence
from uuid import UUID

from sqlalchemy.exc import OperationalError

from ledger_config import LedgerConfig, get_active_config
from ledger_kernel.db.engine import LedgerDatabase
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.domain.references import JournalReference
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.exceptions import (
    AccountError,
    AccountNotFoundError,
    AccountRoleNotBoundError,
    AlreadyClosedError,
    AlreadyPostedError,
    BackorderNotFoundError,
    BackorderStateError,
    CreditNoteNotFoundError,
    CustomerPaymentNotFoundError,
    DuplicateCollectionError,
    DuplicateJournalError,
    DuplicateSupplierInvoiceError,
    ExpenseNotFoundError,
    ExpenseStateError,
    ImmutabilityError,
    InfrastructureError,
    InsufficientStockError,
    InvalidCreditNoteTransitionError,
    InvoiceNotFoundError,
    JournalAlreadyReversedError,
    JournalNotFoundError,
    LedgerError,
    NothingToSettleError,
    OverpaymentError,
    PaymentStateError,
    PeriodAlreadyExistsError,
    PeriodBusyError,
    PeriodClosedError,
    PeriodNotFoundError,
    SettlementOnlyPaymentError,
    VoucherExhaustedError,
    VoucherNotFoundError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.period_service import PeriodService
from ledger_kernel.services.role_resolver import RoleResolver
from ledger_modules.ap.service import PayablesService
from ledger_modules.ar.service import ReceivablesService
from ledger_modules.cod.service import CodService
from ledger_modules.credit_notes.service import CreditNoteService
from ledger_modules.expenses.service import ExpenseService
from ledger_modules.inventory.service import InventoryCostingService

logger = get_logger("services.operations")

# Checked in order; the first isinstance match wins.
STATUS_BY_ERROR: tuple[tuple[type[Exception], int], ...] = (
    (PeriodNotFoundError, 404),
    (JournalNotFoundError, 404),
    (InvoiceNotFoundError, 404),
    (CreditNoteNotFoundError, 404),
    (BackorderNotFoundError, 404),
    (AccountNotFoundError, 404),
    (VoucherNotFoundError, 404),
    (CustomerPaymentNotFoundError, 404),
    (ExpenseNotFoundError, 404),
    (PeriodClosedError, 409),
    (AlreadyClosedError, 409),
    (PeriodBusyError, 409),
    (PeriodAlreadyExistsError, 409),
    (DuplicateJournalError, 409),
    (JournalAlreadyReversedError, 409),
    (InsufficientStockError, 409),
    (BackorderStateError, 409),
    (OverpaymentError, 409),
    (AlreadyPostedError, 409),
    (InvalidCreditNoteTransitionError, 409),
    (ImmutabilityError, 409),
    (NothingToSettleError, 409),
    (DuplicateCollectionError, 409),
    (VoucherExhaustedError, 409),
    (DuplicateSupplierInvoiceError, 409),
    (PaymentStateError, 409),
    (SettlementOnlyPaymentError, 409),
    (ExpenseStateError, 409),
    (AccountRoleNotBoundError, 422),
    (AccountError, 409),
    (InfrastructureError, 503),
    (LedgerError, 422),
)


@dataclass(frozen=True)
class OperationResponse:
    status: int
    body: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def _jsonable(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def request_amount(value: Any) -> Decimal | None:
    """
    Convert an amount taken from a request to ``Decimal``.

    JSON numbers arrive as floats; they are converted through ``str`` so
    ``100.5`` becomes ``Decimal("100.5")``.  Text that is not a number
    raises ``InvalidOperation``.  ``None`` passes through.
    """
    if value is None or isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"amount must be a number, got {value!r}")
    return Decimal(str(value))


def status_for(exc: Exception) -> int:
    if isinstance(exc, OperationalError):
        return 503
    for error_type, status in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 422


def error_body(exc: Exception) -> dict[str, Any]:
    """``{"error": code, "message": str, **structured fields}``."""
    if isinstance(exc, LedgerError):
        body: dict[str, Any] = {"error": exc.code, "message": exc.message}
        for key, value in vars(exc).items():
            if not key.startswith("_") and key not in ("message", "args"):
                body[key] = _jsonable(value)
        if exc.retryable:
            body["retryable"] = True
        return body
    if isinstance(exc, OperationalError):
        return {"error": "DATABASE_UNAVAILABLE", "message": str(exc.orig), "retryable": True}
    return {"error": "VALIDATION_ERROR", "message": str(exc)}


class LedgerOperations:
    """
    Request-level entry points.

    Contract:
        Construct once per process with a ``LedgerDatabase``.  Every public
        method is a complete unit of work and returns an
        ``OperationResponse``; callers never see a half-applied operation.
    """

    _HANDLED = (LedgerError, OperationalError, ValueError, InvalidOperation)

    def __init__(
        self,
        database: LedgerDatabase,
        config: LedgerConfig | None = None,
        clock: Clock | None = None,
    ):
        self._db = database
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()

    def _run(self, operation: str, actor_id: str | None, work: Callable) -> OperationResponse:
        with LogContext.bind(operation=operation, actor_id=actor_id):
            try:
                with self._db.session_scope() as session:
                    roles = RoleResolver(session, self._config.role_bindings)
                    return work(session, roles)
            except self._HANDLED as exc:
                status = status_for(exc)
                body = error_body(exc)
                logger.warning(
                    "operation_failed",
                    extra={"error_code": body["error"], "status": status},
                )
                return OperationResponse(status, body)

    def _entry_date(self, entry_date: date | None) -> date:
        return entry_date or self._clock.today()

    # ------------------------------------------------------------------
    # Journals and periods
    # ------------------------------------------------------------------

    def post_journal(
        self,
        reference_type: str,
        reference_id: str,
        lines: Sequence[Mapping[str, Any]],
        created_by: str,
        description: str | None = None,
        entry_date: date | None = None,
        idempotency_key: str | None = None,
    ) -> OperationResponse:
        """
        Post a manual journal.

        Each line is ``{"account_id" | "account_code", "debit", "credit", "memo"}``.
        """

        def work(session, roles):
            specs = [
                LineSpec(
                    account_id=(
                        line["account_id"]
                        if line.get("account_id") is not None
                        else roles.resolve_code(line["account_code"])
                    ),
                    debit=request_amount(line.get("debit")) or Decimal("0"),
                    credit=request_amount(line.get("credit")) or Decimal("0"),
                    memo=line.get("memo"),
                )
                for line in lines
            ]
            journal = JournalService(session, self._clock).post_journal(
                entry_date=self._entry_date(entry_date),
                reference=JournalReference.of(reference_type, reference_id),
                description=description,
                created_by=created_by,
                lines=specs,
                idempotency_key=idempotency_key,
            )
            return OperationResponse(
                201, {"journal_id": journal.id, "posted_at": journal.posted_at.isoformat()}
            )

        return self._run("post_journal", created_by, work)

    def reverse_journal(
        self, journal_id: int, created_by: str, entry_date: date | None = None
    ) -> OperationResponse:
        def work(session, roles):
            reversal = JournalService(session, self._clock).reverse_journal(
                journal_id, self._entry_date(entry_date), created_by
            )
            return OperationResponse(
                201, {"journal_id": reversal.id, "reversal_of_id": reversal.reversal_of_id}
            )

        return self._run("reverse_journal", created_by, work)

    def close_period(self, month: int, year: int, closed_by: str) -> OperationResponse:
        def work(session, roles):
            period = PeriodService(session, self._clock).close_period(month, year, closed_by)
            return OperationResponse(
                200,
                {
                    "month": period.month,
                    "year": period.year,
                    "is_closed": period.is_closed,
                    "closed_at": _jsonable(period.closed_at),
                },
            )

        return self._run("close_period", closed_by, work)

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    def record_movement(
        self,
        product_id: UUID,
        movement_type: str,
        qty: int,
        unit_cost: Decimal | str | float | None = None,
        reference_type: str | None = None,
        reference_id: str | None = None,
        allow_negative: bool = False,
        note: str | None = None,
    ) -> OperationResponse:
        def work(session, roles):
            reference = (
                JournalReference.of(reference_type, reference_id) if reference_type else None
            )
            result = InventoryCostingService(session, self._clock).record_movement(
                product_id=product_id,
                movement_type=movement_type,
                qty=qty,
                unit_cost=request_amount(unit_cost),
                reference=reference,
                allow_negative=allow_negative,
                note=note,
            )
            return OperationResponse(
                200,
                {
                    "on_hand_qty": result.on_hand_qty,
                    "avg_cost": str(result.avg_cost),
                    "total_cost": str(result.total_cost),
                },
            )

        return self._run("record_movement", None, work)

    # ------------------------------------------------------------------
    # Accounts payable
    # ------------------------------------------------------------------

    def record_supplier_payment(
        self,
        supplier_invoice_id: UUID,
        amount: Decimal | str | float,
        created_by: str,
        account_code: str | None = None,
        paid_at: datetime | None = None,
        note: str | None = None,
    ) -> OperationResponse:
        def work(session, roles):
            account_id = (
                roles.resolve_code(account_code) if account_code else roles.resolve(AccountRole.CASH)
            )
            result = PayablesService(session, roles, self._clock).record_supplier_payment(
                supplier_invoice_id=supplier_invoice_id,
                amount=request_amount(amount),
                account_id=account_id,
                paid_at=paid_at or self._clock.now(),
                created_by=created_by,
                note=note,
            )
            return OperationResponse(
                200,
                {
                    "payment_id": str(result.payment.id),
                    "status": result.invoice_status.value,
                    "paid_total": str(result.paid_total),
                },
            )

        return self._run("record_supplier_payment", created_by, work)

    # ------------------------------------------------------------------
    # Credit notes
    # ------------------------------------------------------------------

    def post_credit_note(
        self,
        credit_note_id: UUID,
        posted_by: str,
        entry_date: date | None = None,
        payment_account_code: str | None = None,
    ) -> OperationResponse:
        def work(session, roles):
            note = CreditNoteService(session, roles, self._clock).post_credit_note(
                credit_note_id, posted_by, self._entry_date(entry_date), payment_account_code
            )
            return OperationResponse(
                200, {"status": note.status.value, "journal_id": note.journal_id}
            )

        return self._run("post_credit_note", posted_by, work)

    def refund_credit_note(
        self,
        credit_note_id: UUID,
        refunded_by: str,
        entry_date: date | None = None,
        payment_account_code: str | None = None,
    ) -> OperationResponse:
        def work(session, roles):
            note = CreditNoteService(session, roles, self._clock).refund_credit_note(
                credit_note_id, refunded_by, self._entry_date(entry_date), payment_account_code
            )
            return OperationResponse(
                200, {"status": note.status.value, "journal_id": note.refund_journal_id}
            )

        return self._run("refund_credit_note", refunded_by, work)

    # ------------------------------------------------------------------
    # COD
    # ------------------------------------------------------------------

    def settle_driver(
        self,
        driver_id: str,
        received_by: str,
        entry_date: date | None = None,
        note: str | None = None,
        cash_account_code: str | None = None,
    ) -> OperationResponse:
        def work(session, roles):
            settlement = CodService(session, roles, self._clock).settle_driver(
                driver_id,
                received_by,
                self._entry_date(entry_date),
                note=note,
                cash_account_code=cash_account_code,
            )
            return OperationResponse(
                200,
                {
                    "settlement_id": str(settlement.id),
                    "driver_id": settlement.driver_id,
                    "total_amount": str(settlement.total_amount),
                    "collection_count": len(settlement.collection_ids),
                    "journal_id": settlement.journal_id,
                },
            )

        return self._run("settle_driver", received_by, work)

    # ------------------------------------------------------------------
    # Customer payments
    # ------------------------------------------------------------------

    def verify_payment(
        self,
        invoice_id: str,
        invoice_number: str,
        amount: Decimal | str | float,
        payment_method: str,
        verified_by: str,
        proof_url: str | None = None,
        entry_date: date | None = None,
        account_code: str | None = None,
    ) -> OperationResponse:
        def work(session, roles):
            payment = ReceivablesService(session, roles, self._clock).verify_payment(
                invoice_id=invoice_id,
                invoice_number=invoice_number,
                amount=request_amount(amount),
                payment_method=payment_method,
                verified_by=verified_by,
                entry_date=self._entry_date(entry_date),
                proof_url=proof_url,
                account_code=account_code,
            )
            return OperationResponse(
                200,
                {
                    "invoice_id": payment.invoice_id,
                    "status": payment.status.value,
                    "amount": str(payment.amount),
                    "journal_id": payment.verify_journal_id,
                },
            )

        return self._run("verify_payment", verified_by, work)

    def void_payment(
        self,
        invoice_id: str,
        voided_by: str,
        cost_amount: Decimal | str | float | None = None,
        entry_date: date | None = None,
    ) -> OperationResponse:
        def work(session, roles):
            payment = ReceivablesService(session, roles, self._clock).void_payment(
                invoice_id,
                voided_by,
                self._entry_date(entry_date),
                cost_amount=request_amount(cost_amount),
            )
            return OperationResponse(
                200,
                {
                    "invoice_id": payment.invoice_id,
                    "status": payment.status.value,
                    "journal_id": payment.void_journal_id,
                    "cogs_journal_id": payment.void_cogs_journal_id,
                },
            )

        return self._run("void_payment", voided_by, work)

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    def pay_expense(
        self,
        expense_id: UUID,
        account_code: str,
        paid_by: str,
        entry_date: date | None = None,
        expense_account_code: str | None = None,
    ) -> OperationResponse:
        def work(session, roles):
            expense = ExpenseService(session, roles, self._clock).pay_expense(
                expense_id,
                account_code,
                paid_by,
                self._entry_date(entry_date),
                expense_account_code=expense_account_code,
            )
            return OperationResponse(
                200,
                {
                    "expense_id": str(expense.id),
                    "status": expense.status.value,
                    "journal_id": expense.journal_id,
                },
            )

        return self._run("pay_expense", paid_by, work)
