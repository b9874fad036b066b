"""
Inventory Costing Domain Models (``ledger_modules.inventory.models``).

Responsibility
--------------
Frozen dataclass value objects and enums for the moving-average costing
engine, backorders and goods-out posting.

Architecture position
---------------------
**Modules layer** -- pure data definitions with zero I/O.  Consumed by
``helpers.py`` (the costing fold), ``service.py`` and ``fulfillment.py``.

Invariants enforced
-------------------
- All models are ``frozen=True`` (immutable after construction).
- Quantities are ``int``; costs are ``Decimal``, never ``float``.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.db.types import ZERO


class MovementType(str, Enum):
    IN = "in"
    OUT = "out"
    ADJUSTMENT_PLUS = "adjustment_plus"
    ADJUSTMENT_MINUS = "adjustment_minus"

    @property
    def is_inbound(self) -> bool:
        return self in (MovementType.IN, MovementType.ADJUSTMENT_PLUS)


class BackorderStatus(str, Enum):
    WAITING_STOCK = "waiting_stock"
    READY = "ready"
    FULFILLED = "fulfilled"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (BackorderStatus.FULFILLED, BackorderStatus.CANCELED)


class SalesMode(str, Enum):
    """How the customer pays for an order leaving the warehouse."""

    NON_COD = "non_cod"
    COD = "cod"


@dataclass(frozen=True)
class CostState:
    """Costing snapshot for one product."""

    on_hand_qty: int = 0
    avg_cost: Decimal = ZERO


@dataclass(frozen=True)
class AppliedMovement:
    """Outcome of folding one movement into a CostState."""

    state: CostState
    unit_cost: Decimal
    total_cost: Decimal


@dataclass(frozen=True)
class MovementResult:
    product_id: UUID
    movement_type: MovementType
    qty: int
    on_hand_qty: int
    avg_cost: Decimal
    unit_cost: Decimal
    total_cost: Decimal
    ledger_id: int


@dataclass(frozen=True)
class CostLedgerEntry:
    id: int
    product_id: UUID
    movement_type: MovementType
    qty: int
    unit_cost: Decimal
    total_cost: Decimal
    reference_type: str | None
    reference_id: str | None
    allow_negative: bool
    on_hand_after: int
    avg_cost_after: Decimal
    note: str | None = None


@dataclass(frozen=True)
class BackorderInfo:
    id: UUID
    order_item_id: str
    product_id: UUID
    qty_pending: int
    status: BackorderStatus
    notes: str | None
    queued_at: datetime | None


@dataclass(frozen=True)
class GoodsOutItem:
    """One order line leaving the warehouse."""

    order_item_id: str
    product_id: UUID
    qty: int


@dataclass(frozen=True)
class GoodsOutResult:
    order_id: str
    revenue: Decimal
    cogs: Decimal
    revenue_journal_id: int | None
    cogs_journal_id: int | None
    movements: tuple[MovementResult, ...]
    backorders: tuple[BackorderInfo, ...] = ()
