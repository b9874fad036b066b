"""
Module: ledger_modules.inventory.orm
Responsibility: SQLAlchemy ORM persistence for the inventory costing engine
    (append-only cost ledger, per-product cost snapshot) and backorders.

Architecture position: Modules > Inventory > ORM.  Inherits from the kernel
    bases in ledger_kernel.db.base.  Products live outside the accounting
    core and are referenced by UUID with NO foreign key.

Invariants enforced:
    - Unit and average costs are Numeric(18, 4); total_cost is Numeric(18, 2).
    - inventory_cost_ledger is append-only (guards.py).
    - One ProductCostState row per product (unique product_id).
    - Backorder.qty_pending never increases and terminal rows never change
      (guards.py).

Failure modes:
    - IntegrityError on a second ProductCostState for the same product.

Audit relevance:
    The cost ledger is the source of truth for the snapshot; the snapshot
    can be rebuilt from it at any time.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import DocumentBase, LedgerRowBase, TrackedBase
from ledger_kernel.db.types import UnitCostType


class InventoryCostLedger(LedgerRowBase, TrackedBase):
    """
    One stock movement's cost effect.

    Guarantees:
        - on_hand_after / avg_cost_after record the snapshot the movement
          produced, so a replay can be checked row by row.
    """

    __tablename__ = "inventory_cost_ledger"

    __table_args__ = (
        Index("idx_cost_ledger_product", "product_id", "id"),
        Index("idx_cost_ledger_reference", "reference_type", "reference_id"),
        CheckConstraint("qty > 0", name="chk_cost_ledger_qty_positive"),
    )

    product_id: Mapped[UUID] = mapped_column(nullable=False)
    movement_type: Mapped[str] = mapped_column(String(20), nullable=False)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(UnitCostType, nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(nullable=False)
    reference_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    reference_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    allow_negative: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    on_hand_after: Mapped[int] = mapped_column(Integer, nullable=False)
    avg_cost_after: Mapped[Decimal] = mapped_column(UnitCostType, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        from ledger_modules.inventory.models import CostLedgerEntry, MovementType

        return CostLedgerEntry(
            id=self.id,
            product_id=self.product_id,
            movement_type=MovementType(self.movement_type),
            qty=self.qty,
            unit_cost=self.unit_cost,
            total_cost=self.total_cost,
            reference_type=self.reference_type,
            reference_id=self.reference_id,
            allow_negative=self.allow_negative,
            on_hand_after=self.on_hand_after,
            avg_cost_after=self.avg_cost_after,
            note=self.note,
        )

    def __repr__(self) -> str:
        return (
            f"<InventoryCostLedger {self.id} {self.movement_type} "
            f"product={self.product_id} qty={self.qty}>"
        )


class ProductCostState(LedgerRowBase, TrackedBase):
    """Current costing snapshot per product.  Locked FOR UPDATE on every movement."""

    __tablename__ = "product_cost_states"

    __table_args__ = (UniqueConstraint("product_id", name="uq_product_cost_state_product"),)

    product_id: Mapped[UUID] = mapped_column(nullable=False)
    on_hand_qty: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    avg_cost: Mapped[Decimal] = mapped_column(UnitCostType, default=Decimal("0"), nullable=False)

    def to_dto(self):
        from ledger_modules.inventory.models import CostState

        return CostState(on_hand_qty=self.on_hand_qty, avg_cost=self.avg_cost)

    def __repr__(self) -> str:
        return (
            f"<ProductCostState product={self.product_id} "
            f"on_hand={self.on_hand_qty} avg={self.avg_cost}>"
        )


class Backorder(DocumentBase):
    """Pending fulfilment of an order line that stock could not cover."""

    __tablename__ = "backorders"

    __table_args__ = (
        Index("idx_backorder_product_status", "product_id", "status"),
        Index("idx_backorder_order_item", "order_item_id"),
        CheckConstraint("qty_pending >= 0", name="chk_backorder_qty_non_negative"),
    )

    order_item_id: Mapped[str] = mapped_column(String(64), nullable=False)
    product_id: Mapped[UUID] = mapped_column(nullable=False)
    qty_pending: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="waiting_stock", nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    queued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def to_dto(self):
        from ledger_modules.inventory.models import BackorderInfo, BackorderStatus

        return BackorderInfo(
            id=self.id,
            order_item_id=self.order_item_id,
            product_id=self.product_id,
            qty_pending=self.qty_pending,
            status=BackorderStatus(self.status),
            notes=self.notes,
            queued_at=self.queued_at,
        )

    def __repr__(self) -> str:
        return f"<Backorder {self.id} {self.status} pending={self.qty_pending}>"
