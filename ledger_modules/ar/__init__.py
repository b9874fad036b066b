"""
Receivables Module (``ledger_modules.ar``).

Responsibility
--------------
Customer transfers checked by the finance desk: verifying one clears
accounts receivable into the bank, voiding one reverses the sale.
"""

from ledger_modules.ar.models import (
    CustomerPaymentInfo,
    CustomerPaymentStatus,
    PaymentMethod,
)
from ledger_modules.ar.service import ReceivablesService

__all__ = [
    "CustomerPaymentInfo",
    "CustomerPaymentStatus",
    "PaymentMethod",
    "ReceivablesService",
]
