"""
Inventory Module (``ledger_modules.inventory``).

Responsibility
--------------
Moving-average inventory costing, backorder tracking, and the goods-out
flow that turns consumed cost into COGS journals.

Architecture position
---------------------
**Modules layer** -- ``InventoryCostingService`` owns the cost ledger and
the per-product snapshot; ``GoodsOutService`` composes it with
``BackorderService`` and the kernel ``JournalService``.
"""

from ledger_modules.inventory.backorders import BackorderService
from ledger_modules.inventory.fulfillment import GoodsOutService
from ledger_modules.inventory.models import (
    BackorderInfo,
    BackorderStatus,
    CostLedgerEntry,
    CostState,
    GoodsOutItem,
    GoodsOutResult,
    MovementResult,
    MovementType,
    SalesMode,
)
from ledger_modules.inventory.service import InventoryCostingService

__all__ = [
    "BackorderInfo",
    "BackorderService",
    "BackorderStatus",
    "CostLedgerEntry",
    "CostState",
    "GoodsOutItem",
    "GoodsOutResult",
    "GoodsOutService",
    "InventoryCostingService",
    "MovementResult",
    "MovementType",
    "SalesMode",
]
