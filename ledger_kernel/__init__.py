"""
Ledger Kernel - double-entry accounting core for the parts retail back office.

- Balanced, immutable journals
- Accounting period close/lock
- Chart of accounts with locked structural fields
- Schema advisory lock for maintenance operations
"""

__version__ = "0.1.0"
