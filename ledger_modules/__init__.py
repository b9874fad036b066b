"""
Ledger Modules.

Subledgers built on the ledger kernel.  Each module contains:
- Domain models (frozen DTOs and enums)
- ORM persistence
- A flush-only service that posts through ``JournalService``

Modules:
- Inventory: moving-average costing, backorders, goods-out posting
- AP: supplier invoices and payments, aging
- Credit notes: customer credit notes (receivable or cash refund)
- COD: driver cash collections and settlements
- Vouchers: product discount vouchers
"""
