"""
Accounts Payable Domain Models (``ledger_modules.ap.models``).

Responsibility
--------------
Frozen value objects for supplier invoices, supplier payments and the
aging report.

Architecture position
---------------------
**Modules layer** -- pure data definitions.  These objects flow *out of*
``PayablesService`` and ``PayablesSelector`` as immutable snapshots.

Invariants enforced
-------------------
* All monetary fields use ``Decimal`` (never ``float``).
* ``paid_total`` is always derived from payments, never stored.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.db.types import ZERO


class SupplierInvoiceStatus(str, Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    OVERDUE = "overdue"


class AgingBucket(str, Enum):
    """Days past due."""

    DAYS_0_30 = "0-30"
    DAYS_31_60 = "31-60"
    DAYS_61_90 = "61-90"
    OVER_90 = ">90"

    @classmethod
    def for_days(cls, days_overdue: int) -> "AgingBucket":
        if days_overdue <= 30:
            return cls.DAYS_0_30
        if days_overdue <= 60:
            return cls.DAYS_31_60
        if days_overdue <= 90:
            return cls.DAYS_61_90
        return cls.OVER_90


@dataclass(frozen=True)
class SupplierInvoiceInfo:
    id: UUID
    supplier_id: str
    purchase_order_id: str | None
    invoice_number: str
    total: Decimal
    due_date: date
    status: SupplierInvoiceStatus
    paid_total: Decimal
    created_by: str
    journal_id: int | None = None

    @property
    def remaining(self) -> Decimal:
        return self.total - self.paid_total


@dataclass(frozen=True)
class SupplierPaymentInfo:
    id: UUID
    supplier_invoice_id: UUID
    amount: Decimal
    account_id: int
    paid_at: datetime
    created_by: str
    note: str | None
    journal_id: int | None


@dataclass(frozen=True)
class PaymentResult:
    """Outcome of ``record_supplier_payment``."""

    payment: SupplierPaymentInfo
    invoice_status: SupplierInvoiceStatus
    paid_total: Decimal
    remaining: Decimal


@dataclass(frozen=True)
class AgingRow:
    invoice_id: UUID
    supplier_id: str
    invoice_number: str
    due_date: date
    outstanding: Decimal
    days_overdue: int
    bucket: AgingBucket


@dataclass(frozen=True)
class AgingReport:
    as_of: date
    rows: tuple[AgingRow, ...]
    totals: dict[AgingBucket, Decimal] = field(default_factory=dict)

    @property
    def total_outstanding(self) -> Decimal:
        return sum(self.totals.values(), ZERO)
