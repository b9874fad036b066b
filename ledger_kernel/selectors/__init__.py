"""Read-only selectors over the ledger store."""

from ledger_kernel.selectors.ledger_selector import (
    LedgerSelector,
    ProfitAndLoss,
    TrialBalanceRow,
    VatSummary,
)

__all__ = ["LedgerSelector", "ProfitAndLoss", "TrialBalanceRow", "VatSummary"]
