"""
Credit Note Module (``ledger_modules.credit_notes``).

Responsibility
--------------
Customer credit notes against invoices, posted either as a receivable
reduction or as a cash refund.

Architecture position
---------------------
**Modules layer** -- ``CreditNoteService`` owns the draft lifecycle and the
posting journals; ``guards`` freezes posted notes at flush time.
"""

from ledger_modules.credit_notes.models import (
    CreditNoteInfo,
    CreditNoteLineInfo,
    CreditNoteLineSpec,
    CreditNoteMode,
    CreditNoteStatus,
)
from ledger_modules.credit_notes.service import CreditNoteService

__all__ = [
    "CreditNoteInfo",
    "CreditNoteLineInfo",
    "CreditNoteLineSpec",
    "CreditNoteMode",
    "CreditNoteService",
    "CreditNoteStatus",
]
