"""
Accounts payable read side (``ledger_modules.ap.selectors``).

Aging of open supplier invoices by days past due.  Read-only.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date
from decimal import Decimal

from sqlalchemy import select

from ledger_kernel.db.types import ZERO
from ledger_kernel.selectors.base import BaseSelector
from ledger_modules.ap.models import (
    AgingBucket,
    AgingReport,
    AgingRow,
    SupplierInvoiceStatus,
)
from ledger_modules.ap.orm import SupplierInvoice

_OPEN = (SupplierInvoiceStatus.UNPAID.value, SupplierInvoiceStatus.OVERDUE.value)


class PayablesSelector(BaseSelector):
    def aging(self, as_of: date) -> AgingReport:
        """
        Outstanding balance of every open invoice, bucketed by days past
        due as of ``as_of``.  Invoices not yet due fall in ``0-30``.
        """
        invoices = self.session.execute(
            select(SupplierInvoice)
            .where(SupplierInvoice.status.in_(_OPEN))
            .order_by(SupplierInvoice.due_date, SupplierInvoice.invoice_number)
        ).scalars()

        rows = []
        totals: dict[AgingBucket, Decimal] = defaultdict(lambda: ZERO)
        for invoice in invoices:
            outstanding = invoice.total - invoice.paid_total
            if outstanding <= 0:
                continue
            days_overdue = max(0, (as_of - invoice.due_date).days)
            bucket = AgingBucket.for_days(days_overdue)
            rows.append(
                AgingRow(
                    invoice_id=invoice.id,
                    supplier_id=invoice.supplier_id,
                    invoice_number=invoice.invoice_number,
                    due_date=invoice.due_date,
                    outstanding=outstanding,
                    days_overdue=days_overdue,
                    bucket=bucket,
                )
            )
            totals[bucket] += outstanding

        return AgingReport(
            as_of=as_of,
            rows=tuple(rows),
            totals={bucket: totals[bucket] for bucket in AgingBucket},
        )
