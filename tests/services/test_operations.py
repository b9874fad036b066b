"""
Request-level operations.

Each call is one committed transaction.  Domain errors come back as
responses with a status code and a structured body; nothing from a failed
call is left behind.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from ledger_kernel.exceptions import DuplicateSupplierInvoiceError, SchemaLockTimeoutError
from ledger_kernel.services import JournalService, RoleResolver
from ledger_modules.ap.service import PayablesService
from ledger_modules.cod.service import CodService
from ledger_modules.credit_notes.models import CreditNoteLineSpec, CreditNoteMode
from ledger_modules.credit_notes.service import CreditNoteService
from ledger_modules.expenses.service import ExpenseService
from ledger_modules.inventory.service import InventoryCostingService
from ledger_services.operations import LedgerOperations, error_body, status_for

ACTOR = "ops-clerk"


@pytest.fixture
def ops(committed_database, ledger_config, deterministic_clock):
    return LedgerOperations(committed_database, ledger_config, deterministic_clock)


@pytest.fixture
def in_scope(committed_database, ledger_config, deterministic_clock):
    """Run ``fn(session, roles, clock)`` in its own committed transaction."""

    def _run(fn):
        with committed_database.session_scope() as session:
            roles = RoleResolver(session, ledger_config.role_bindings)
            return fn(session, roles, deterministic_clock)

    return _run


def _sale_lines(amount="100000"):
    return [
        {"account_code": "1101", "debit": Decimal(amount)},
        {"account_code": "4100", "credit": Decimal(amount), "memo": "counter sale"},
    ]


class TestPostJournal:
    def test_created(self, ops, in_scope):
        response = ops.post_journal("manual", "OPS-1", _sale_lines(), ACTOR, "Counter sale")

        assert response.status == 201
        assert response.ok
        journal = in_scope(lambda s, r, c: JournalService(s, c).get_journal(response.body["journal_id"]))
        assert journal.total_debit == Decimal("100000")
        assert journal.created_by == ACTOR

    def test_unbalanced_is_422_with_totals(self, ops):
        lines = [
            {"account_code": "1101", "debit": Decimal("100")},
            {"account_code": "4100", "credit": Decimal("90")},
        ]
        response = ops.post_journal("manual", "OPS-2", lines, ACTOR)

        assert response.status == 422
        assert not response.ok
        assert response.body["error"] == "UNBALANCED_JOURNAL"
        assert Decimal(response.body["total_debit"]) == Decimal("100")
        assert Decimal(response.body["total_credit"]) == Decimal("90")
        assert "message" in response.body

    def test_unknown_reference_type_is_validation_error(self, ops):
        response = ops.post_journal("bogus", "1", _sale_lines(), ACTOR)

        assert response.status == 422
        assert response.body["error"] == "VALIDATION_ERROR"

    def test_duplicate_key_is_409(self, ops):
        first = ops.post_journal("manual", "A", _sale_lines(), ACTOR, idempotency_key="k-1")
        second = ops.post_journal("manual", "A", _sale_lines(), ACTOR, idempotency_key="k-1")

        assert first.status == 201
        assert second.status == 409
        assert second.body["existing_journal_id"] == first.body["journal_id"]

    def test_closed_period_is_409(self, ops):
        assert ops.close_period(1, 2026, ACTOR).status == 200

        response = ops.post_journal("manual", "LATE", _sale_lines(), ACTOR, entry_date=date(2026, 1, 31))
        assert response.status == 409
        assert response.body["error"] == "PERIOD_CLOSED"

    def test_failure_is_logged_with_operation(self, ops, captured_logs):
        ops.post_journal("manual", "OPS-3", _sale_lines()[:1], ACTOR)

        failed = [r for r in captured_logs() if r["message"] == "operation_failed"]
        assert failed
        assert failed[-1]["operation"] == "post_journal"
        assert failed[-1]["actor_id"] == ACTOR
        assert failed[-1]["status"] == 422

    def test_float_amounts_post_exactly(self, ops, in_scope):
        lines = [
            {"account_code": "1101", "debit": 100.5},
            {"account_code": "4100", "credit": 100.5},
        ]
        response = ops.post_journal("manual", "F-1", lines, ACTOR)

        assert response.status == 201
        journal = in_scope(lambda s, r, c: JournalService(s, c).get_journal(response.body["journal_id"]))
        assert journal.total_debit == Decimal("100.5")

    def test_non_numeric_amount_is_validation_error(self, ops):
        lines = [
            {"account_code": "1101", "debit": "abc"},
            {"account_code": "4100", "credit": "abc"},
        ]
        response = ops.post_journal("manual", "F-2", lines, ACTOR)

        assert response.status == 422
        assert response.body["error"] == "VALIDATION_ERROR"


class TestReverseAndClose:
    def test_reverse(self, ops):
        posted = ops.post_journal("manual", "R-1", _sale_lines(), ACTOR)
        response = ops.reverse_journal(posted.body["journal_id"], ACTOR)

        assert response.status == 201
        assert response.body["reversal_of_id"] == posted.body["journal_id"]

    def test_reverse_twice_is_409(self, ops):
        posted = ops.post_journal("manual", "R-2", _sale_lines(), ACTOR)
        ops.reverse_journal(posted.body["journal_id"], ACTOR)

        assert ops.reverse_journal(posted.body["journal_id"], ACTOR).status == 409

    def test_reverse_unknown_is_404(self, ops):
        response = ops.reverse_journal(987654, ACTOR)
        assert response.status == 404
        assert response.body["error"] == "JOURNAL_NOT_FOUND"

    def test_close_period(self, ops):
        response = ops.close_period(2, 2026, ACTOR)

        assert response.status == 200
        assert response.body["is_closed"] is True
        assert response.body["month"] == 2
        assert response.body["closed_at"] is not None

    def test_close_twice_is_409(self, ops):
        ops.close_period(3, 2026, ACTOR)
        response = ops.close_period(3, 2026, ACTOR)

        assert response.status == 409
        assert response.body["error"] == "PERIOD_ALREADY_CLOSED"

    def test_close_unknown_period_is_404(self, ops):
        assert ops.close_period(1, 2040, ACTOR).status == 404


class TestRecordMovement:
    def test_moving_average(self, ops):
        product = uuid4()
        ops.record_movement(product, "in", 10, "5000")
        response = ops.record_movement(product, "in", 10, "7000")

        assert response.status == 200
        assert response.body["on_hand_qty"] == 20
        assert Decimal(response.body["avg_cost"]) == Decimal("6000")
        assert Decimal(response.body["total_cost"]) == Decimal("70000")

    def test_insufficient_stock_leaves_no_trace(self, ops, in_scope):
        product = uuid4()
        ops.record_movement(product, "in", 5, "1000")

        response = ops.record_movement(product, "out", 6)

        assert response.status == 409
        assert response.body["error"] == "INSUFFICIENT_STOCK"
        movements = in_scope(lambda s, r, c: InventoryCostingService(s, c).list_movements(product))
        assert len(movements) == 1
        assert ops.record_movement(product, "out", 5).body["on_hand_qty"] == 0

    def test_missing_cost_is_422(self, ops):
        response = ops.record_movement(uuid4(), "in", 5)
        assert response.status == 422
        assert response.body["error"] == "MISSING_UNIT_COST"

    def test_unknown_type_is_422(self, ops):
        response = ops.record_movement(uuid4(), "teleport", 5)
        assert response.status == 422
        assert response.body["error"] == "INVALID_MOVEMENT"

    def test_float_unit_cost_is_converted_exactly(self, ops):
        response = ops.record_movement(uuid4(), "in", 1, unit_cost=100.5)

        assert response.status == 200
        assert Decimal(response.body["avg_cost"]) == Decimal("100.5")

    def test_non_numeric_unit_cost_is_validation_error(self, ops):
        response = ops.record_movement(uuid4(), "in", 1, unit_cost="cheap")

        assert response.status == 422
        assert response.body["error"] == "VALIDATION_ERROR"


class TestSupplierPayment:
    @pytest.fixture
    def invoice_id(self, in_scope):
        def create(session, roles, clock):
            return PayablesService(session, roles, clock).record_supplier_invoice(
                supplier_id="SUP-1",
                purchase_order_id="PO-1",
                invoice_number="INV-OPS-1",
                total=Decimal("300000"),
                due_date=date(2026, 2, 28),
                created_by=ACTOR,
                entry_date=date(2026, 1, 15),
            ).id

        return in_scope(create)

    def test_partial_then_full(self, ops, invoice_id):
        first = ops.record_supplier_payment(invoice_id, "100000", ACTOR)
        second = ops.record_supplier_payment(invoice_id, Decimal("200000"), ACTOR, account_code="1102")

        assert first.status == 200
        assert first.body["status"] == "unpaid"
        assert Decimal(first.body["paid_total"]) == Decimal("100000")
        assert second.body["status"] == "paid"

    def test_overpayment_is_409(self, ops, invoice_id):
        response = ops.record_supplier_payment(invoice_id, "300000.01", ACTOR)

        assert response.status == 409
        assert response.body["error"] == "OVERPAYMENT"
        assert Decimal(response.body["remaining"]) == Decimal("300000")

    def test_float_amount_is_converted_exactly(self, ops, invoice_id):
        response = ops.record_supplier_payment(invoice_id, 100.5, ACTOR)

        assert response.status == 200
        assert Decimal(response.body["paid_total"]) == Decimal("100.5")

    def test_unknown_invoice_is_404(self, ops):
        assert ops.record_supplier_payment(uuid4(), "10", ACTOR).status == 404

    def test_unbound_account_code_is_422(self, ops, invoice_id):
        response = ops.record_supplier_payment(invoice_id, "10", ACTOR, account_code="9999")
        assert response.status == 422


class TestCreditNotes:
    @pytest.fixture
    def note_id(self, in_scope):
        def create(session, roles, clock):
            return CreditNoteService(session, roles, clock).create_draft(
                invoice_id="SI-900",
                mode=CreditNoteMode.RECEIVABLE,
                amount=Decimal("55500"),
                tax_amount=Decimal("5500"),
                lines=[
                    CreditNoteLineSpec(
                        qty=1,
                        unit_price=Decimal("50000"),
                        description="Chain kit",
                        line_tax=Decimal("5500"),
                    )
                ],
                created_by=ACTOR,
            ).id

        return in_scope(create)

    def test_post_then_refund(self, ops, note_id):
        posted = ops.post_credit_note(note_id, ACTOR)
        refunded = ops.refund_credit_note(note_id, ACTOR)

        assert posted.status == 200
        assert posted.body["status"] == "posted"
        assert posted.body["journal_id"] is not None
        assert refunded.status == 200
        assert refunded.body["status"] == "refunded"
        assert refunded.body["journal_id"] != posted.body["journal_id"]

    def test_post_twice_is_409(self, ops, note_id):
        ops.post_credit_note(note_id, ACTOR)
        assert ops.post_credit_note(note_id, ACTOR).status == 409

    def test_refund_draft_is_409(self, ops, note_id):
        assert ops.refund_credit_note(note_id, ACTOR).status == 409

    def test_unknown_note_is_404(self, ops):
        assert ops.post_credit_note(uuid4(), ACTOR).status == 404


class TestSettleDriver:
    def test_settle(self, ops, in_scope):
        def collect(session, roles, clock):
            service = CodService(session, roles, clock)
            for invoice, amount in (("C-1", "100000"), ("C-2", "150000"), ("C-3", "200000")):
                service.record_collection(invoice, "driver-1", Decimal(amount))

        in_scope(collect)
        response = ops.settle_driver("driver-1", ACTOR, note="shift 1")

        assert response.status == 200
        assert response.body["driver_id"] == "driver-1"
        assert response.body["collection_count"] == 3
        assert Decimal(response.body["total_amount"]) == Decimal("450000")
        assert response.body["journal_id"] is not None

    def test_nothing_to_settle_is_409(self, ops):
        response = ops.settle_driver("driver-idle", ACTOR)

        assert response.status == 409
        assert response.body["error"] == "NOTHING_TO_SETTLE"


class TestCustomerPayments:
    def _verify(self, ops, invoice_id="SI-700", amount="125000", method="transfer_manual"):
        return ops.verify_payment(
            invoice_id, "INV/2026/0700", amount, method, ACTOR, proof_url="https://files.example/p.jpg"
        )

    def test_verify_then_void(self, ops):
        verified = self._verify(ops)
        voided = ops.void_payment("SI-700", ACTOR, cost_amount=90000.25)

        assert verified.status == 200
        assert verified.body["status"] == "verified"
        assert verified.body["journal_id"] is not None
        assert voided.status == 200
        assert voided.body["status"] == "voided"
        assert voided.body["cogs_journal_id"] is not None

    def test_verify_twice_is_409(self, ops):
        self._verify(ops)
        response = self._verify(ops)

        assert response.status == 409
        assert response.body["error"] == "PAYMENT_STATE"

    def test_cod_invoice_is_409(self, ops):
        response = self._verify(ops, method="cod")
        assert response.status == 409
        assert response.body["error"] == "SETTLEMENT_ONLY_PAYMENT"

    def test_float_amount(self, ops):
        response = self._verify(ops, amount=100.5)
        assert Decimal(response.body["amount"]) == Decimal("100.5")

    def test_void_unknown_is_404(self, ops):
        assert ops.void_payment("SI-NONE", ACTOR).status == 404


class TestPayExpense:
    def test_pay_approved_expense(self, ops, in_scope):
        def approved(session, roles, clock):
            service = ExpenseService(session, roles, clock)
            expense = service.record_expense("Ongkir", Decimal("45000"), ACTOR)
            return service.approve_expense(expense.id, "lead").id

        expense_id = in_scope(approved)
        response = ops.pay_expense(expense_id, "1101", ACTOR)

        assert response.status == 200
        assert response.body["status"] == "paid"
        assert ops.pay_expense(expense_id, "1101", ACTOR).status == 409

    def test_unknown_expense_is_404(self, ops):
        response = ops.pay_expense(uuid4(), "1101", ACTOR)
        assert response.status == 404
        assert response.body["error"] == "EXPENSE_NOT_FOUND"


class TestErrorMapping:
    def test_schema_lock_timeout_is_retryable_503(self):
        exc = SchemaLockTimeoutError("parts_ledger_schema_lock", 30)

        assert status_for(exc) == 503
        body = error_body(exc)
        assert body["error"] == "SCHEMA_LOCK_TIMEOUT"
        assert body["retryable"] is True
        assert body["lock_name"] == "parts_ledger_schema_lock"
        assert body["timeout_sec"] == 30

    def test_database_unavailable_is_503(self):
        exc = OperationalError("SELECT 1", {}, Exception("connection refused"))

        assert status_for(exc) == 503
        assert error_body(exc) == {
            "error": "DATABASE_UNAVAILABLE",
            "message": "connection refused",
            "retryable": True,
        }

    def test_plain_value_error_is_422(self):
        assert status_for(ValueError("bad")) == 422
        assert error_body(ValueError("bad")) == {"error": "VALIDATION_ERROR", "message": "bad"}

    def test_duplicate_supplier_invoice_is_409(self):
        exc = DuplicateSupplierInvoiceError("SUP-1", "INV-9", "a1b2")

        assert status_for(exc) == 409
        body = error_body(exc)
        assert body["error"] == "DUPLICATE_SUPPLIER_INVOICE"
        assert body["existing_invoice_id"] == "a1b2"
