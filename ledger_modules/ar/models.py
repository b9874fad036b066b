"""
Receivables Domain Models (``ledger_modules.ar.models``).

Frozen snapshots of verified customer payments and the payment methods a
customer invoice can carry.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain.roles import AccountRole


class PaymentMethod(str, Enum):
    TRANSFER_MANUAL = "transfer_manual"
    COD = "cod"
    CASH_STORE = "cash_store"

    @property
    def settled_by_cod(self) -> bool:
        """COD and cash-store invoices are paid through a driver or till settlement."""
        return self in (PaymentMethod.COD, PaymentMethod.CASH_STORE)

    @property
    def deposit_role(self) -> AccountRole:
        if self == PaymentMethod.TRANSFER_MANUAL:
            return AccountRole.BANK
        return AccountRole.CASH


class CustomerPaymentStatus(str, Enum):
    VERIFIED = "verified"
    VOIDED = "voided"


@dataclass(frozen=True)
class CustomerPaymentInfo:
    id: UUID
    invoice_id: str
    invoice_number: str
    payment_method: PaymentMethod
    amount: Decimal
    account_id: int
    status: CustomerPaymentStatus
    proof_url: str | None
    verified_by: str
    verified_at: datetime
    verify_journal_id: int | None
    voided_by: str | None = None
    voided_at: datetime | None = None
    void_journal_id: int | None = None
    void_cogs_journal_id: int | None = None
