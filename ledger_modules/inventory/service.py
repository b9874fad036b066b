"""
Inventory Costing Service (``ledger_modules.inventory.service``).

Responsibility
--------------
Maintains the moving-average unit cost and on-hand quantity per product.
Every movement appends one ``InventoryCostLedger`` row and updates the
``ProductCostState`` snapshot in the same flush.

Architecture
------------
Layer: **Modules** -- stateful wrapper around the pure fold in
``helpers.apply_movement``.  Does NOT post journals: the caller turns the
returned ``total_cost`` into COGS / inventory lines inside the same unit
of work (see ``fulfillment.GoodsOutService``).

Invariants
----------
- Movements on one product are serialized by a ``FOR UPDATE`` lock on its
  ``ProductCostState`` row, taken before the snapshot is read.
- Ledger row and snapshot are written together or not at all.
- Replaying the ledger reproduces the snapshot exactly.

Failure Modes
-------------
- Fold errors (``InsufficientStockError`` and friends) are raised before
  anything is written for the movement.

Audit Relevance
---------------
``movement_recorded`` is logged per movement; ``cost_state_rebuilt`` and
``cost_state_drift_detected`` record reconciliation runs.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from ledger_kernel.domain.references import JournalReference
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.base import BaseService
from ledger_modules.inventory.helpers import apply_movement, replay_movements
from ledger_modules.inventory.models import (
    CostLedgerEntry,
    CostState,
    MovementResult,
    MovementType,
)
from ledger_modules.inventory.orm import InventoryCostLedger, ProductCostState

logger = get_logger("modules.inventory.service")


class InventoryCostingService(BaseService):
    """
    Moving-average costing engine.

    Contract:
        ``record_movement`` either writes one ledger row plus the updated
        snapshot, or raises having written nothing for the movement.

    Non-goals:
        - Does NOT post journals.
        - Does NOT create backorders; callers using ``allow_negative`` do.
    """

    def _lock_state(self, product_id: UUID) -> ProductCostState:
        """Return the product's snapshot row, locked FOR UPDATE (created on first use)."""
        stmt = (
            select(ProductCostState)
            .where(ProductCostState.product_id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        state = self.session.execute(stmt).scalar_one_or_none()
        if state is not None:
            return state

        try:
            with self.session.begin_nested():
                state = ProductCostState(product_id=product_id, on_hand_qty=0, avg_cost=Decimal("0"))
                self.session.add(state)
        except IntegrityError:
            # A concurrent first movement created the row; wait on its lock.
            state = self.session.execute(stmt).scalar_one()
        return state

    def record_movement(
        self,
        product_id: UUID,
        movement_type: MovementType | str,
        qty: int,
        unit_cost: Decimal | None = None,
        reference: JournalReference | None = None,
        allow_negative: bool = False,
        note: str | None = None,
    ) -> MovementResult:
        """
        Apply one stock movement.

        Args:
            product_id: Product being moved.
            movement_type: in, out, adjustment_plus or adjustment_minus.
            qty: Positive integer.
            unit_cost: Required for inbound movements; must be omitted for
                outbound ones, which are costed at the current average.
            reference: Source document of the movement.
            allow_negative: Backorder-tolerant mode for outbound movements.
            note: Free text stored on the ledger row.

        Raises:
            InvalidQuantityError, InvalidMovementError, MissingUnitCostError,
            UnexpectedUnitCostError, InsufficientStockError.
        """
        state_row = self._lock_state(product_id)
        applied = apply_movement(
            state_row.to_dto(),
            movement_type,
            qty,
            unit_cost=unit_cost,
            allow_negative=allow_negative,
            product_id=product_id,
        )
        movement_type = MovementType(movement_type)

        entry = InventoryCostLedger(
            product_id=product_id,
            movement_type=movement_type.value,
            qty=qty,
            unit_cost=applied.unit_cost,
            total_cost=applied.total_cost,
            reference_type=reference.kind.value if reference else None,
            reference_id=reference.ref_id if reference else None,
            allow_negative=allow_negative,
            on_hand_after=applied.state.on_hand_qty,
            avg_cost_after=applied.state.avg_cost,
            note=note,
        )
        self.session.add(entry)
        state_row.on_hand_qty = applied.state.on_hand_qty
        state_row.avg_cost = applied.state.avg_cost
        self.session.flush()

        logger.info(
            "movement_recorded",
            extra={
                "product_id": product_id,
                "movement_type": movement_type.value,
                "qty": qty,
                "unit_cost": applied.unit_cost,
                "total_cost": applied.total_cost,
                "on_hand_qty": applied.state.on_hand_qty,
                "avg_cost": applied.state.avg_cost,
                "allow_negative": allow_negative,
                "ledger_id": entry.id,
            },
        )
        if applied.state.on_hand_qty < 0:
            logger.warning(
                "negative_stock_recorded",
                extra={"product_id": product_id, "on_hand_qty": applied.state.on_hand_qty},
            )

        return MovementResult(
            product_id=product_id,
            movement_type=movement_type,
            qty=qty,
            on_hand_qty=applied.state.on_hand_qty,
            avg_cost=applied.state.avg_cost,
            unit_cost=applied.unit_cost,
            total_cost=applied.total_cost,
            ledger_id=entry.id,
        )

    def get_state(self, product_id: UUID) -> CostState:
        """Current snapshot; a product never moved has zero stock at zero cost."""
        row = self.session.execute(
            select(ProductCostState).where(ProductCostState.product_id == product_id)
        ).scalar_one_or_none()
        return row.to_dto() if row else CostState()

    def list_movements(self, product_id: UUID) -> list[CostLedgerEntry]:
        rows = self.session.execute(
            select(InventoryCostLedger)
            .where(InventoryCostLedger.product_id == product_id)
            .order_by(InventoryCostLedger.id)
        ).scalars()
        return [row.to_dto() for row in rows]

    def replay(self, product_id: UUID) -> CostState:
        """Fold the full ledger for ``product_id`` from an empty state."""
        rows = self.session.execute(
            select(InventoryCostLedger)
            .where(InventoryCostLedger.product_id == product_id)
            .order_by(InventoryCostLedger.id)
        ).scalars()
        return replay_movements(rows, product_id=product_id)

    def verify_state(self, product_id: UUID) -> bool:
        """True when the stored snapshot equals a replay of the ledger."""
        replayed = self.replay(product_id)
        stored = self.get_state(product_id)
        if replayed != stored:
            logger.warning(
                "cost_state_drift_detected",
                extra={
                    "product_id": product_id,
                    "stored_on_hand": stored.on_hand_qty,
                    "stored_avg_cost": stored.avg_cost,
                    "replayed_on_hand": replayed.on_hand_qty,
                    "replayed_avg_cost": replayed.avg_cost,
                },
            )
            return False
        return True

    def rebuild_state(self, product_id: UUID) -> CostState:
        """Overwrite the snapshot with a replay of the ledger."""
        state_row = self._lock_state(product_id)
        replayed = self.replay(product_id)
        state_row.on_hand_qty = replayed.on_hand_qty
        state_row.avg_cost = replayed.avg_cost
        self.session.flush()
        logger.info(
            "cost_state_rebuilt",
            extra={
                "product_id": product_id,
                "on_hand_qty": replayed.on_hand_qty,
                "avg_cost": replayed.avg_cost,
            },
        )
        return replayed
