"""
Account roles.

Subledger postings name the *role* an account plays ("inventory",
"accounts_payable") rather than a chart code.  Configuration binds each
role to a code; ``RoleResolver`` turns the code into an account id at
posting time.
"""

from enum import Enum


class AccountRole(str, Enum):
    CASH = "cash"
    BANK = "bank"
    ACCOUNTS_RECEIVABLE = "accounts_receivable"
    DRIVER_RECEIVABLE = "driver_receivable"
    INVENTORY = "inventory"
    VAT_INPUT = "vat_input"
    ACCOUNTS_PAYABLE = "accounts_payable"
    VAT_OUTPUT = "vat_output"
    REFUND_PAYABLE = "refund_payable"
    DEFERRED_REVENUE = "deferred_revenue"
    SALES = "sales"
    SALES_RETURNS = "sales_returns"
    STOCK_GAIN = "stock_gain"
    COGS = "cogs"
    SALARIES = "salaries"
    OPERATING_EXPENSE = "operating_expense"
    TRANSPORT = "transport"
    STOCK_LOSS = "stock_loss"


# Roles a caller may pick as the cash side of a payment or refund.
CASH_ROLES = frozenset({AccountRole.CASH, AccountRole.BANK})
