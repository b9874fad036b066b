"""
Typed Exception Hierarchy for the Ledger Kernel.

Every error the accounting core raises is a subclass of ``LedgerError`` with:
  1. A TYPED class (catch by type, not by message)
  2. A machine-readable ``code`` attribute (stable, API-safe)
  3. Structured attributes naming the offending entity (ids, amounts)

Callers catch by type and render from the attributes:

    try:
        journals.post_journal(...)
    except PeriodClosedError as e:
        respond(409, error=e.code, month=e.month, year=e.year)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerError (base)
    |
    +-- PostingError
    |   +-- UnbalancedJournalError
    |   +-- MalformedLineError
    |   +-- InvalidAccountError
    |   +-- DuplicateJournalError
    |   +-- JournalNotFoundError
    |   +-- JournalAlreadyReversedError
    |
    +-- PeriodError
    |   +-- PeriodClosedError
    |   +-- PeriodNotFoundError
    |   +-- AlreadyClosedError
    |   +-- PeriodBusyError
    |   +-- PeriodAlreadyExistsError
    |   +-- InvalidPeriodError
    |
    +-- ImmutabilityError
    |   +-- ImmutableJournalError
    |   +-- PeriodImmutableError
    |   +-- ImmutableCreditNoteError
    |
    +-- AccountError
    |   +-- AccountNotFoundError
    |   +-- DuplicateAccountCodeError
    |   +-- AccountTypeLockedError
    |   +-- AccountHierarchyError
    |   +-- AccountRoleNotBoundError
    |
    +-- InventoryError
    |   +-- InsufficientStockError
    |   +-- MissingUnitCostError
    |   +-- UnexpectedUnitCostError
    |   +-- InvalidQuantityError
    |   +-- InvalidMovementError
    |   +-- BackorderNotFoundError
    |   +-- BackorderStateError
    |
    +-- PayablesError
    |   +-- InvoiceNotFoundError
    |   +-- OverpaymentError
    |   +-- InvalidAmountError
    |   +-- DuplicateSupplierInvoiceError
    |
    +-- CreditNoteError
    |   +-- CreditNoteNotFoundError
    |   +-- AlreadyPostedError
    |   +-- LineMismatchError
    |   +-- InvalidCreditNoteTransitionError
    |
    +-- CodError
    |   +-- NothingToSettleError
    |   +-- DuplicateCollectionError
    |
    +-- ReceivablesError
    |   +-- CustomerPaymentNotFoundError
    |   +-- PaymentStateError
    |   +-- SettlementOnlyPaymentError
    |   +-- MissingPaymentProofError
    |
    +-- ExpenseError
    |   +-- ExpenseNotFoundError
    |   +-- ExpenseStateError
    |
    +-- VoucherError
    |   +-- VoucherNotFoundError
    |   +-- VoucherInactiveError
    |   +-- VoucherNotStartedError
    |   +-- VoucherExpiredError
    |   +-- VoucherExhaustedError
    |
    +-- InfrastructureError (retryable)
        +-- SchemaLockError
            +-- SchemaLockTimeoutError
            +-- SchemaLockAcquireError
            +-- SchemaLockReleaseError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|--------------------------------------
Posting         | UNBALANCED_JOURNAL            | Sum of debits != sum of credits
                | MALFORMED_LINE                | Line has both/neither side, < 2 lines
                | INVALID_ACCOUNT               | Account unknown or inactive
                | DUPLICATE_JOURNAL             | Idempotency key already used
                | JOURNAL_NOT_FOUND             | Journal id unknown
                | JOURNAL_ALREADY_REVERSED      | Reversal already posted
----------------|-------------------------------|--------------------------------------
Period          | PERIOD_CLOSED                 | Posting dated in a closed period
                | PERIOD_NOT_FOUND              | No (month, year) row
                | PERIOD_ALREADY_CLOSED         | Closing a closed period
                | PERIOD_BUSY                   | Postings hold the period row
                | PERIOD_ALREADY_EXISTS         | (month, year) already opened
                | INVALID_PERIOD                | Month outside 1..12
----------------|-------------------------------|--------------------------------------
Immutability    | IMMUTABLE_JOURNAL             | Update/delete of a journal or line
                | PERIOD_IMMUTABLE              | Change to a closed period row
                | IMMUTABLE_CREDIT_NOTE         | Change to a posted credit note
----------------|-------------------------------|--------------------------------------
Account         | ACCOUNT_NOT_FOUND             | Account id/code unknown
                | DUPLICATE_ACCOUNT_CODE        | Code already in the chart
                | ACCOUNT_TYPE_LOCKED           | Type change after first posting
                | ACCOUNT_HIERARCHY_CYCLE       | Parent chain would loop
                | ACCOUNT_ROLE_NOT_BOUND        | Config role has no active account
----------------|-------------------------------|--------------------------------------
Inventory       | INSUFFICIENT_STOCK            | Outbound exceeds on-hand
                | MISSING_UNIT_COST             | Inbound without unit cost
                | UNEXPECTED_UNIT_COST          | Outbound with caller-supplied cost
                | INVALID_QUANTITY              | qty <= 0 or not an integer
                | INVALID_MOVEMENT              | Unknown type / negative unit cost
                | BACKORDER_NOT_FOUND           | Backorder id unknown
                | BACKORDER_STATE               | Terminal status / qty increase
----------------|-------------------------------|--------------------------------------
Payables        | INVOICE_NOT_FOUND             | Supplier invoice id unknown
                | OVERPAYMENT                   | Payments would exceed total
                | INVALID_AMOUNT                | Amount <= 0
                | DUPLICATE_SUPPLIER_INVOICE    | (supplier, invoice number) reused
----------------|-------------------------------|--------------------------------------
Credit notes    | CREDIT_NOTE_NOT_FOUND         | Credit note id unknown
                | CREDIT_NOTE_ALREADY_POSTED    | Post when status != draft
                | CREDIT_NOTE_LINE_MISMATCH     | Sum(line_total) != amount
                | INVALID_CREDIT_NOTE_TRANSITION| Refund from non-posted, edit posted
----------------|-------------------------------|--------------------------------------
COD             | NOTHING_TO_SETTLE             | Driver has no collected rows
                | DUPLICATE_COLLECTION          | Invoice already collected
----------------|-------------------------------|--------------------------------------
Receivables     | CUSTOMER_PAYMENT_NOT_FOUND    | No payment recorded for the invoice
                | PAYMENT_STATE                 | Verify twice, void unverified/voided
                | SETTLEMENT_ONLY_PAYMENT       | COD / cash-store paid via settlement
                | MISSING_PAYMENT_PROOF         | Transfer verified without proof
----------------|-------------------------------|--------------------------------------
Expenses        | EXPENSE_NOT_FOUND             | Expense id unknown
                | EXPENSE_STATE                 | Pay unapproved, approve paid, ...
----------------|-------------------------------|--------------------------------------
Voucher         | VOUCHER_NOT_FOUND ..          | Lookup / validity window / quota
                | VOUCHER_EXHAUSTED             |
----------------|-------------------------------|--------------------------------------
Infrastructure  | SCHEMA_LOCK_TIMEOUT           | Advisory lock busy past the timeout
                | SCHEMA_LOCK_ACQUIRE_FAILED    | Lock query returned an error
                | SCHEMA_LOCK_RELEASE_FAILED    | Release did not report success
"""

from decimal import Decimal


class LedgerError(Exception):
    """Base exception for all ledger kernel errors."""

    code: str = "LEDGER_ERROR"
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# =============================================================================
# Posting
# =============================================================================


class PostingError(LedgerError):
    """Base exception for journal posting errors."""

    code: str = "POSTING_ERROR"


class UnbalancedJournalError(PostingError):
    """Debits and credits do not sum to the same amount."""

    code: str = "UNBALANCED_JOURNAL"

    def __init__(self, total_debit: Decimal, total_credit: Decimal):
        self.total_debit = str(total_debit)
        self.total_credit = str(total_credit)
        super().__init__(
            f"Journal is unbalanced: debits={total_debit} credits={total_credit}"
        )


class MalformedLineError(PostingError):
    """A journal line is structurally invalid, or there are too few lines."""

    code: str = "MALFORMED_LINE"

    def __init__(self, line_index: int | None, reason: str):
        self.line_index = line_index
        self.reason = reason
        where = f"line {line_index}" if line_index is not None else "journal"
        super().__init__(f"Malformed {where}: {reason}")


class InvalidAccountError(PostingError):
    """An account referenced by a line is unknown or inactive."""

    code: str = "INVALID_ACCOUNT"

    def __init__(self, account_id: int, reason: str):
        self.account_id = account_id
        self.reason = reason
        super().__init__(f"Invalid account {account_id}: {reason}")


class DuplicateJournalError(PostingError):
    """The idempotency key was already used by a posted journal."""

    code: str = "DUPLICATE_JOURNAL"

    def __init__(self, idempotency_key: str, existing_journal_id: int | None):
        self.idempotency_key = idempotency_key
        self.existing_journal_id = existing_journal_id
        super().__init__(
            f"Journal with idempotency key {idempotency_key!r} already posted "
            f"as {existing_journal_id}"
        )


class JournalNotFoundError(PostingError):
    """Journal id unknown."""

    code: str = "JOURNAL_NOT_FOUND"

    def __init__(self, journal_id: int):
        self.journal_id = journal_id
        super().__init__(f"Journal not found: {journal_id}")


class JournalAlreadyReversedError(PostingError):
    """A reversal already exists for the journal."""

    code: str = "JOURNAL_ALREADY_REVERSED"

    def __init__(self, journal_id: int, reversal_journal_id: int | None):
        self.journal_id = journal_id
        self.reversal_journal_id = reversal_journal_id
        super().__init__(
            f"Journal {journal_id} already reversed by {reversal_journal_id}"
        )


# =============================================================================
# Periods
# =============================================================================


class PeriodError(LedgerError):
    """Base exception for accounting period errors."""

    code: str = "PERIOD_ERROR"


class PeriodClosedError(PeriodError):
    """Posting dated within a closed period."""

    code: str = "PERIOD_CLOSED"

    def __init__(self, month: int, year: int, entry_date: str | None = None):
        self.month = month
        self.year = year
        self.entry_date = entry_date
        super().__init__(
            f"Accounting period {year}-{month:02d} is closed"
            + (f" (entry date {entry_date})" if entry_date else "")
        )


class PeriodNotFoundError(PeriodError):
    """No period row exists for (month, year)."""

    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, month: int, year: int):
        self.month = month
        self.year = year
        super().__init__(f"Accounting period {year}-{month:02d} not found")


class AlreadyClosedError(PeriodError):
    """Attempt to close a period that is already closed."""

    code: str = "PERIOD_ALREADY_CLOSED"

    def __init__(self, month: int, year: int):
        self.month = month
        self.year = year
        super().__init__(f"Accounting period {year}-{month:02d} is already closed")


class PeriodBusyError(PeriodError):
    """In-flight postings hold the period row; the close must be retried."""

    code: str = "PERIOD_BUSY"
    retryable = True

    def __init__(self, month: int, year: int):
        self.month = month
        self.year = year
        super().__init__(
            f"Accounting period {year}-{month:02d} has journals being posted"
        )


class PeriodAlreadyExistsError(PeriodError):
    """(month, year) has already been opened."""

    code: str = "PERIOD_ALREADY_EXISTS"

    def __init__(self, month: int, year: int):
        self.month = month
        self.year = year
        super().__init__(f"Accounting period {year}-{month:02d} already exists")


class InvalidPeriodError(PeriodError):
    """Month outside 1..12 or otherwise unusable period key."""

    code: str = "INVALID_PERIOD"

    def __init__(self, month: int, year: int):
        self.month = month
        self.year = year
        super().__init__(f"Invalid accounting period month={month} year={year}")


# =============================================================================
# Immutability
# =============================================================================


class ImmutabilityError(LedgerError):
    """Base exception for append-only violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutableJournalError(ImmutabilityError):
    """Update or delete of a journal or journal line."""

    code: str = "IMMUTABLE_JOURNAL"

    def __init__(self, entity_type: str, entity_id, operation: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.operation = operation
        super().__init__(
            f"{entity_type} {entity_id} is immutable; {operation} rejected. "
            "Post a reversing journal instead."
        )


class PeriodImmutableError(ImmutabilityError):
    """Change to a closed accounting period row."""

    code: str = "PERIOD_IMMUTABLE"

    def __init__(self, month: int, year: int, operation: str):
        self.month = month
        self.year = year
        self.operation = operation
        super().__init__(
            f"Closed accounting period {year}-{month:02d} cannot be modified "
            f"({operation})"
        )


class ImmutableCreditNoteError(ImmutabilityError):
    """Change to a posted or refunded credit note."""

    code: str = "IMMUTABLE_CREDIT_NOTE"

    def __init__(self, credit_note_id, status: str, operation: str):
        self.credit_note_id = credit_note_id
        self.status = status
        self.operation = operation
        super().__init__(
            f"Credit note {credit_note_id} is {status}; {operation} rejected"
        )


# =============================================================================
# Accounts
# =============================================================================


class AccountError(LedgerError):
    """Base exception for chart of accounts errors."""

    code: str = "ACCOUNT_ERROR"


class AccountNotFoundError(AccountError):
    """Account id or code unknown."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_ref):
        self.account_ref = account_ref
        super().__init__(f"Account not found: {account_ref}")


class DuplicateAccountCodeError(AccountError):
    """Account code already present in the chart."""

    code: str = "DUPLICATE_ACCOUNT_CODE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account code already exists: {account_code}")


class AccountTypeLockedError(AccountError):
    """Type change on an account referenced by journal lines."""

    code: str = "ACCOUNT_TYPE_LOCKED"

    def __init__(self, account_id: int, current_type: str, requested_type: str):
        self.account_id = account_id
        self.current_type = current_type
        self.requested_type = requested_type
        super().__init__(
            f"Account {account_id} is referenced by journal lines; type cannot "
            f"change from {current_type} to {requested_type}"
        )


class AccountHierarchyError(AccountError):
    """Parent assignment would create a cycle."""

    code: str = "ACCOUNT_HIERARCHY_CYCLE"

    def __init__(self, account_id: int, parent_id: int):
        self.account_id = account_id
        self.parent_id = parent_id
        super().__init__(
            f"Setting parent of account {account_id} to {parent_id} creates a cycle"
        )


class AccountRoleNotBoundError(AccountError):
    """Configured account role has no active account in the chart."""

    code: str = "ACCOUNT_ROLE_NOT_BOUND"

    def __init__(self, role: str, account_code: str | None = None):
        self.role = role
        self.account_code = account_code
        super().__init__(
            f"Account role {role!r} is not bound to an active account"
            + (f" (code {account_code})" if account_code else "")
        )


# =============================================================================
# Inventory
# =============================================================================


class InventoryError(LedgerError):
    """Base exception for inventory costing errors."""

    code: str = "INVENTORY_ERROR"


class InsufficientStockError(InventoryError):
    """Outbound movement would drive on-hand quantity negative."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, product_id, on_hand_qty: int, requested_qty: int):
        self.product_id = product_id
        self.on_hand_qty = on_hand_qty
        self.requested_qty = requested_qty
        super().__init__(
            f"Insufficient stock for product {product_id}: on hand {on_hand_qty}, "
            f"requested {requested_qty}"
        )


class MissingUnitCostError(InventoryError):
    """Inbound movement without a unit cost."""

    code: str = "MISSING_UNIT_COST"

    def __init__(self, product_id, movement_type: str):
        self.product_id = product_id
        self.movement_type = movement_type
        super().__init__(
            f"Movement {movement_type} for product {product_id} requires unit_cost"
        )


class UnexpectedUnitCostError(InventoryError):
    """Outbound movement with a caller-supplied unit cost."""

    code: str = "UNEXPECTED_UNIT_COST"

    def __init__(self, product_id, movement_type: str):
        self.product_id = product_id
        self.movement_type = movement_type
        super().__init__(
            f"Movement {movement_type} for product {product_id} is costed at the "
            "current average; unit_cost must not be supplied"
        )


class InvalidQuantityError(InventoryError):
    """Quantity not a positive integer."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, product_id, qty):
        self.product_id = product_id
        self.qty = qty
        super().__init__(f"Invalid quantity {qty!r} for product {product_id}")


class InvalidMovementError(InventoryError):
    """Unknown movement type or negative unit cost."""

    code: str = "INVALID_MOVEMENT"

    def __init__(self, product_id, reason: str):
        self.product_id = product_id
        self.reason = reason
        super().__init__(f"Invalid movement for product {product_id}: {reason}")


class BackorderNotFoundError(InventoryError):
    code: str = "BACKORDER_NOT_FOUND"

    def __init__(self, backorder_id):
        self.backorder_id = backorder_id
        super().__init__(f"Backorder not found: {backorder_id}")


class BackorderStateError(InventoryError):
    """Transition from a terminal status, or an increase of qty_pending."""

    code: str = "BACKORDER_STATE"

    def __init__(self, backorder_id, status: str, reason: str):
        self.backorder_id = backorder_id
        self.status = status
        self.reason = reason
        super().__init__(f"Backorder {backorder_id} ({status}): {reason}")


# =============================================================================
# Payables
# =============================================================================


class PayablesError(LedgerError):
    """Base exception for supplier invoice/payment errors."""

    code: str = "PAYABLES_ERROR"


class InvoiceNotFoundError(PayablesError):
    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id):
        self.invoice_id = invoice_id
        super().__init__(f"Supplier invoice not found: {invoice_id}")


class OverpaymentError(PayablesError):
    """Payment would take the paid total above the invoice total."""

    code: str = "OVERPAYMENT"

    def __init__(self, invoice_id, invoice_total: Decimal, paid_total: Decimal, amount: Decimal):
        self.invoice_id = invoice_id
        self.invoice_total = str(invoice_total)
        self.paid_total = str(paid_total)
        self.amount = str(amount)
        self.remaining = str(invoice_total - paid_total)
        super().__init__(
            f"Payment {amount} on invoice {invoice_id} exceeds remaining balance "
            f"{invoice_total - paid_total}"
        )


class InvalidAmountError(PayablesError):
    """Amount must be positive and within currency precision."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount, reason: str = "amount must be greater than zero"):
        self.amount = str(amount)
        self.reason = reason
        super().__init__(f"Invalid amount {amount}: {reason}")


class DuplicateSupplierInvoiceError(PayablesError):
    """The supplier already has an invoice with this number."""

    code: str = "DUPLICATE_SUPPLIER_INVOICE"

    def __init__(self, supplier_id, invoice_number: str, existing_invoice_id=None):
        self.supplier_id = supplier_id
        self.invoice_number = invoice_number
        self.existing_invoice_id = existing_invoice_id
        super().__init__(
            f"Supplier {supplier_id} already has invoice {invoice_number}"
            + (f" ({existing_invoice_id})" if existing_invoice_id else "")
        )


# =============================================================================
# Credit notes
# =============================================================================


class CreditNoteError(LedgerError):
    """Base exception for credit note errors."""

    code: str = "CREDIT_NOTE_ERROR"


class CreditNoteNotFoundError(CreditNoteError):
    code: str = "CREDIT_NOTE_NOT_FOUND"

    def __init__(self, credit_note_id):
        self.credit_note_id = credit_note_id
        super().__init__(f"Credit note not found: {credit_note_id}")


class AlreadyPostedError(CreditNoteError):
    """Post attempted on a credit note that is not a draft."""

    code: str = "CREDIT_NOTE_ALREADY_POSTED"

    def __init__(self, credit_note_id, status: str):
        self.credit_note_id = credit_note_id
        self.status = status
        super().__init__(f"Credit note {credit_note_id} is already {status}")


class LineMismatchError(CreditNoteError):
    """Sum of line totals does not equal the credit note amount."""

    code: str = "CREDIT_NOTE_LINE_MISMATCH"

    def __init__(self, credit_note_id, amount: Decimal, lines_total: Decimal):
        self.credit_note_id = credit_note_id
        self.amount = str(amount)
        self.lines_total = str(lines_total)
        super().__init__(
            f"Credit note {credit_note_id} lines total {lines_total} "
            f"does not equal amount {amount}"
        )


class InvalidCreditNoteTransitionError(CreditNoteError):
    code: str = "INVALID_CREDIT_NOTE_TRANSITION"

    def __init__(self, credit_note_id, from_status: str, to_status: str):
        self.credit_note_id = credit_note_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Credit note {credit_note_id} cannot move from {from_status} to {to_status}"
        )


# =============================================================================
# COD
# =============================================================================


class CodError(LedgerError):
    """Base exception for COD reconciliation errors."""

    code: str = "COD_ERROR"


class NothingToSettleError(CodError):
    code: str = "NOTHING_TO_SETTLE"

    def __init__(self, driver_id):
        self.driver_id = driver_id
        super().__init__(f"Driver {driver_id} has no collected COD to settle")


class DuplicateCollectionError(CodError):
    code: str = "DUPLICATE_COLLECTION"

    def __init__(self, invoice_id, existing_collection_id):
        self.invoice_id = invoice_id
        self.existing_collection_id = existing_collection_id
        super().__init__(
            f"Invoice {invoice_id} already has COD collection {existing_collection_id}"
        )


# =============================================================================
# Receivables
# =============================================================================


class ReceivablesError(LedgerError):
    """Base exception for customer payment errors."""

    code: str = "RECEIVABLES_ERROR"


class CustomerPaymentNotFoundError(ReceivablesError):
    code: str = "CUSTOMER_PAYMENT_NOT_FOUND"

    def __init__(self, invoice_id):
        self.invoice_id = invoice_id
        super().__init__(f"No customer payment recorded for invoice {invoice_id}")


class PaymentStateError(ReceivablesError):
    """The payment's status does not allow the requested action."""

    code: str = "PAYMENT_STATE"

    def __init__(self, invoice_id, status: str, action: str):
        self.invoice_id = invoice_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} payment for invoice {invoice_id}: it is {status}")


class SettlementOnlyPaymentError(ReceivablesError):
    """COD and cash-store invoices become paid through COD settlement only."""

    code: str = "SETTLEMENT_ONLY_PAYMENT"

    def __init__(self, invoice_id, payment_method: str):
        self.invoice_id = invoice_id
        self.payment_method = payment_method
        super().__init__(
            f"Invoice {invoice_id} is paid by {payment_method}; it is settled, not verified"
        )


class MissingPaymentProofError(ReceivablesError):
    code: str = "MISSING_PAYMENT_PROOF"

    def __init__(self, invoice_id):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice {invoice_id} has no transfer proof to verify")


# =============================================================================
# Expenses
# =============================================================================


class ExpenseError(LedgerError):
    """Base exception for operating expense errors."""

    code: str = "EXPENSE_ERROR"


class ExpenseNotFoundError(ExpenseError):
    code: str = "EXPENSE_NOT_FOUND"

    def __init__(self, expense_id):
        self.expense_id = expense_id
        super().__init__(f"Expense not found: {expense_id}")


class ExpenseStateError(ExpenseError):
    code: str = "EXPENSE_STATE"

    def __init__(self, expense_id, status: str, action: str):
        self.expense_id = expense_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} expense {expense_id}: it is {status}")


# =============================================================================
# Vouchers
# =============================================================================


class VoucherError(LedgerError):
    """Base exception for voucher validation errors."""

    code: str = "VOUCHER_ERROR"

    def __init__(self, voucher_code: str, message: str):
        self.voucher_code = voucher_code
        super().__init__(message)


class VoucherNotFoundError(VoucherError):
    code: str = "VOUCHER_NOT_FOUND"

    def __init__(self, voucher_code: str):
        super().__init__(voucher_code, f"Voucher not found: {voucher_code}")


class VoucherInactiveError(VoucherError):
    code: str = "VOUCHER_INACTIVE"

    def __init__(self, voucher_code: str):
        super().__init__(voucher_code, f"Voucher {voucher_code} is not active")


class VoucherNotStartedError(VoucherError):
    code: str = "VOUCHER_NOT_STARTED"

    def __init__(self, voucher_code: str, starts_at: str):
        self.starts_at = starts_at
        super().__init__(voucher_code, f"Voucher {voucher_code} starts at {starts_at}")


class VoucherExpiredError(VoucherError):
    code: str = "VOUCHER_EXPIRED"

    def __init__(self, voucher_code: str, expires_at: str):
        self.expires_at = expires_at
        super().__init__(voucher_code, f"Voucher {voucher_code} expired at {expires_at}")


class VoucherExhaustedError(VoucherError):
    code: str = "VOUCHER_EXHAUSTED"

    def __init__(self, voucher_code: str, usage_limit: int):
        self.usage_limit = usage_limit
        super().__init__(
            voucher_code, f"Voucher {voucher_code} reached its usage limit {usage_limit}"
        )


# =============================================================================
# Infrastructure
# =============================================================================


class InfrastructureError(LedgerError):
    """Transient failures surfaced to the caller as retryable."""

    code: str = "INFRASTRUCTURE_ERROR"
    retryable = True


class SchemaLockError(InfrastructureError):
    code: str = "SCHEMA_LOCK_ERROR"

    def __init__(self, lock_name: str, message: str):
        self.lock_name = lock_name
        super().__init__(message)


class SchemaLockTimeoutError(SchemaLockError):
    code: str = "SCHEMA_LOCK_TIMEOUT"

    def __init__(self, lock_name: str, timeout_sec: int):
        self.timeout_sec = timeout_sec
        super().__init__(
            lock_name,
            f"Timed out after {timeout_sec}s waiting for schema lock {lock_name!r}",
        )


class SchemaLockAcquireError(SchemaLockError):
    code: str = "SCHEMA_LOCK_ACQUIRE_FAILED"

    def __init__(self, lock_name: str, detail: str):
        self.detail = detail
        super().__init__(lock_name, f"Failed to acquire schema lock {lock_name!r}: {detail}")


class SchemaLockReleaseError(SchemaLockError):
    code: str = "SCHEMA_LOCK_RELEASE_FAILED"

    def __init__(self, lock_name: str, detail: str):
        self.detail = detail
        super().__init__(lock_name, f"Failed to release schema lock {lock_name!r}: {detail}")
