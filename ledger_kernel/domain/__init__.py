"""Pure domain types for the ledger kernel: clock, references, DTOs."""
