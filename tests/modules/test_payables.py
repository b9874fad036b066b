"""
Accounts payable: supplier invoices, payments, overdue flagging and aging.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.references import JournalReference, ReferenceKind
from ledger_kernel.exceptions import (
    DuplicateSupplierInvoiceError,
    InvalidAmountError,
    InvoiceNotFoundError,
    OverpaymentError,
)
from ledger_modules.ap.models import AgingBucket, SupplierInvoiceStatus

PAID_AT = datetime(2026, 1, 20, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def invoice(payables_service, test_actor, entry_date):
    return payables_service.record_supplier_invoice(
        supplier_id="SUP-7",
        purchase_order_id="PO-100",
        invoice_number="INV-2026-001",
        total=Decimal("1000000"),
        due_date=date(2026, 2, 14),
        created_by=test_actor,
        entry_date=entry_date,
    )


class TestSupplierInvoice:
    def test_invoice_posts_inventory_against_payables(
        self, invoice, journal_service, ledger_selector, chart
    ):
        assert invoice.status == SupplierInvoiceStatus.UNPAID
        assert invoice.paid_total == Decimal("0")

        journal = journal_service.get_journal(invoice.journal_id)
        assert journal.reference == JournalReference(ReferenceKind.SUPPLIER_INVOICE, str(invoice.id))
        assert ledger_selector.account_balance(chart["1300"]) == Decimal("1000000")
        assert ledger_selector.account_balance(chart["2100"]) == Decimal("1000000")

    def test_duplicate_invoice_number_is_typed(
        self, payables_service, invoice, ledger_selector, chart, test_actor, entry_date
    ):
        with pytest.raises(DuplicateSupplierInvoiceError) as exc_info:
            payables_service.record_supplier_invoice(
                "SUP-7", "PO-101", "INV-2026-001", Decimal("5"), date(2026, 2, 1), test_actor, entry_date
            )
        assert exc_info.value.existing_invoice_id == invoice.id

        # The failed insert is undone; the unit of work carries on.
        other = payables_service.record_supplier_invoice(
            "SUP-8", None, "INV-2026-001", Decimal("5"), date(2026, 2, 1), test_actor, entry_date
        )
        assert other.id != invoice.id
        assert ledger_selector.account_balance(chart["2100"]) == Decimal("1000005")

    @pytest.mark.parametrize("total", [Decimal("0"), Decimal("-5"), Decimal("1.005")])
    def test_invalid_total(self, payables_service, test_actor, entry_date, total):
        with pytest.raises(InvalidAmountError):
            payables_service.record_supplier_invoice(
                "SUP-7", None, "INV-X", total, date(2026, 2, 1), test_actor, entry_date
            )


class TestSupplierPayment:
    def test_partial_then_full_payment(self, payables_service, invoice, ledger_selector, chart, test_actor):
        first = payables_service.record_supplier_payment(
            invoice.id, Decimal("400000"), chart["1102"], PAID_AT, test_actor
        )
        assert first.invoice_status == SupplierInvoiceStatus.UNPAID
        assert first.paid_total == Decimal("400000")
        assert first.remaining == Decimal("600000")

        second = payables_service.record_supplier_payment(
            invoice.id, Decimal("600000"), chart["1101"], PAID_AT, test_actor, note="cash"
        )
        assert second.invoice_status == SupplierInvoiceStatus.PAID
        assert second.remaining == Decimal("0")

        assert ledger_selector.account_balance(chart["2100"]) == Decimal("0")
        assert ledger_selector.account_balance(chart["1102"]) == Decimal("-400000")
        assert len(payables_service.list_payments(invoice.id)) == 2

    def test_payment_journal_dated_on_payment(
        self, payables_service, journal_service, invoice, chart, test_actor
    ):
        result = payables_service.record_supplier_payment(
            invoice.id, Decimal("10"), chart["1102"], PAID_AT, test_actor
        )
        journal = journal_service.get_journal(result.payment.journal_id)

        assert journal.entry_date == PAID_AT.date()
        assert journal.idempotency_key == f"supplier_payment_{result.payment.id}"

    def test_overpayment_rejected_not_clamped(self, payables_service, invoice, chart, test_actor):
        payables_service.record_supplier_payment(
            invoice.id, Decimal("900000"), chart["1102"], PAID_AT, test_actor
        )

        with pytest.raises(OverpaymentError) as exc_info:
            payables_service.record_supplier_payment(
                invoice.id, Decimal("100000.01"), chart["1102"], PAID_AT, test_actor
            )

        assert Decimal(exc_info.value.remaining) == Decimal("100000")
        assert payables_service.get_invoice(invoice.id).paid_total == Decimal("900000")

    def test_zero_payment_rejected(self, payables_service, invoice, chart, test_actor):
        with pytest.raises(InvalidAmountError):
            payables_service.record_supplier_payment(invoice.id, Decimal("0"), chart["1102"], PAID_AT, test_actor)

    def test_unknown_invoice(self, payables_service, chart, test_actor):
        with pytest.raises(InvoiceNotFoundError):
            payables_service.record_supplier_payment(uuid4(), Decimal("1"), chart["1102"], PAID_AT, test_actor)


class TestOverdueAndAging:
    def test_flag_overdue(self, payables_service, invoice):
        assert payables_service.flag_overdue(date(2026, 2, 14)) == []

        flagged = payables_service.flag_overdue(date(2026, 2, 15))
        assert flagged == [invoice.id]
        assert payables_service.get_invoice(invoice.id).status == SupplierInvoiceStatus.OVERDUE

    def test_payment_on_overdue_invoice_marks_paid(self, payables_service, invoice, chart, test_actor):
        payables_service.flag_overdue(date(2026, 3, 1))
        result = payables_service.record_supplier_payment(
            invoice.id, Decimal("1000000"), chart["1102"], PAID_AT, test_actor
        )
        assert result.invoice_status == SupplierInvoiceStatus.PAID

    def test_aging_buckets(self, payables_service, payables_selector, chart, test_actor, entry_date):
        due_dates = {
            "A": date(2026, 4, 1),    # not yet due
            "B": date(2026, 2, 20),   # 40 days
            "C": date(2026, 1, 15),   # 76 days
            "D": date(2025, 12, 1),   # 121 days
        }
        invoices = {
            number: payables_service.record_supplier_invoice(
                "SUP-1", None, number, Decimal("100"), due, test_actor, entry_date
            )
            for number, due in due_dates.items()
        }
        payables_service.record_supplier_payment(
            invoices["B"].id, Decimal("30"), chart["1102"], PAID_AT, test_actor
        )

        report = payables_selector.aging(date(2026, 4, 1))

        buckets = {row.invoice_number: row.bucket for row in report.rows}
        assert buckets == {
            "A": AgingBucket.DAYS_0_30,
            "B": AgingBucket.DAYS_31_60,
            "C": AgingBucket.DAYS_61_90,
            "D": AgingBucket.OVER_90,
        }
        assert report.totals[AgingBucket.DAYS_31_60] == Decimal("70")
        assert report.total_outstanding == Decimal("370")

    def test_paid_invoices_leave_aging(self, payables_service, payables_selector, invoice, chart, test_actor):
        payables_service.record_supplier_payment(
            invoice.id, Decimal("1000000"), chart["1102"], PAID_AT, test_actor
        )
        assert payables_selector.aging(date(2026, 6, 1)).rows == ()

    @pytest.mark.parametrize(
        "days,bucket",
        [(0, "0-30"), (30, "0-30"), (31, "31-60"), (60, "31-60"), (61, "61-90"), (90, "61-90"), (91, ">90")],
    )
    def test_bucket_edges(self, days, bucket):
        assert AgingBucket.for_days(days).value == bucket
