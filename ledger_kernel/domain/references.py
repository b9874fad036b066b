"""
Typed source-event references for journals and cost-ledger rows.

Every journal points back at the business event that produced it.  The
store keeps the pair as two columns (reference_type, reference_id); in
code the pair is a ``JournalReference`` whose kind is a closed enum, so a
misspelled kind fails at construction rather than at report time.
"""

from dataclasses import dataclass
from enum import Enum


class ReferenceKind(str, Enum):
    """Known source-event kinds."""

    ORDER = "order"
    ORDER_COGS = "order_cogs"
    SUPPLIER_INVOICE = "supplier_invoice"
    SUPPLIER_PAYMENT = "supplier_payment"
    PURCHASE_RECEIPT = "purchase_receipt"
    CREDIT_NOTE = "credit_note"
    CREDIT_NOTE_REFUND = "credit_note_refund"
    COD_SETTLEMENT = "cod_settlement"
    PAYMENT_VERIFY = "payment_verify"
    PAYMENT_VOID = "payment_void"
    EXPENSE = "expense"
    STOCK_ADJUSTMENT = "stock_adjustment"
    REVERSAL = "reversal"
    MANUAL = "manual"


@dataclass(frozen=True)
class JournalReference:
    """(kind, id) link from a ledger row to its source event."""

    kind: ReferenceKind
    ref_id: str

    def __post_init__(self) -> None:
        if not isinstance(self.kind, ReferenceKind):
            # Coerce raw strings from the persistence layer; unknown kinds raise ValueError
            object.__setattr__(self, "kind", ReferenceKind(self.kind))
        if self.ref_id is None or str(self.ref_id) == "":
            raise ValueError("reference id is required")
        object.__setattr__(self, "ref_id", str(self.ref_id))

    @classmethod
    def of(cls, kind: ReferenceKind | str, ref_id) -> "JournalReference":
        return cls(kind=ReferenceKind(kind), ref_id=str(ref_id))

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.ref_id}"
