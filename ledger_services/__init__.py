"""Request-level operations over the ledger kernel and its modules."""

from ledger_services.operations import (
    LedgerOperations,
    OperationResponse,
    error_body,
    status_for,
)

__all__ = ["LedgerOperations", "OperationResponse", "error_body", "status_for"]
