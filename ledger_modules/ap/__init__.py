"""
Accounts Payable Module (``ledger_modules.ap``).

Responsibility
--------------
Supplier invoices, supplier payments and payables aging.

Architecture position
---------------------
**Modules layer** -- ``PayablesService`` writes invoices and payments and
posts their journals through the kernel; ``PayablesSelector`` is the
read-only aging report.

Invariants enforced
-------------------
* Sum of payments never exceeds the invoice total (no clamping).
* Account ROLES are resolved to chart accounts at posting time.
"""

from ledger_modules.ap.models import (
    AgingBucket,
    AgingReport,
    AgingRow,
    PaymentResult,
    SupplierInvoiceInfo,
    SupplierInvoiceStatus,
    SupplierPaymentInfo,
)
from ledger_modules.ap.selectors import PayablesSelector
from ledger_modules.ap.service import PayablesService

__all__ = [
    "AgingBucket",
    "AgingReport",
    "AgingRow",
    "PayablesSelector",
    "PayablesService",
    "PaymentResult",
    "SupplierInvoiceInfo",
    "SupplierInvoiceStatus",
    "SupplierPaymentInfo",
]
