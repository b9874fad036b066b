"""
Moving-Average Costing Fold (``ledger_modules.inventory.helpers``).

Responsibility
--------------
The single definition of how one stock movement changes a product's
costing state.  The live write path and the replay/rebuild path both call
``apply_movement``; there is no second copy of the arithmetic.

Architecture
------------
Layer: **Modules** -- pure functions.  No I/O, no session, no clock.

Invariants
----------
- Inbound: ``avg' = (q0*a0 + q*c) / (q0 + q)``; when ``q0 <= 0`` the new
  average is ``c``.  Averages are quantized to 4 places, ROUND_HALF_UP.
- Outbound: costed at the current average; the average does not move.
- ``total_cost = qty * unit_cost_used`` quantized to 2 places.
- Outbound never drives on_hand below zero unless ``allow_negative``.

Failure Modes
-------------
- ``InvalidQuantityError`` for non-positive or non-integer quantities.
- ``InvalidMovementError`` for an unknown type or a negative unit cost.
- ``MissingUnitCostError`` / ``UnexpectedUnitCostError`` for unit cost misuse.
- ``InsufficientStockError`` for an outbound shortfall.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Protocol

from ledger_kernel.db.types import round_money, round_unit_cost, to_decimal
from ledger_kernel.exceptions import (
    InsufficientStockError,
    InvalidMovementError,
    InvalidQuantityError,
    MissingUnitCostError,
    UnexpectedUnitCostError,
)
from ledger_modules.inventory.models import AppliedMovement, CostState, MovementType


class MovementRow(Protocol):
    movement_type: str
    qty: int
    unit_cost: Decimal
    allow_negative: bool


def apply_movement(
    state: CostState,
    movement_type: MovementType | str,
    qty: int,
    unit_cost: Decimal | None = None,
    allow_negative: bool = False,
    product_id=None,
) -> AppliedMovement:
    """
    Fold one movement into ``state``.

    Args:
        state: Snapshot before the movement.
        movement_type: One of ``MovementType``.
        qty: Positive integer quantity.
        unit_cost: Required for inbound movements, forbidden for outbound.
        allow_negative: Backorder-tolerant mode for outbound movements.
        product_id: Only used to label errors.

    Returns:
        AppliedMovement with the new state and the cost actually used.
    """
    try:
        movement_type = MovementType(movement_type)
    except ValueError:
        raise InvalidMovementError(product_id, f"unknown movement type {movement_type!r}") from None
    if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
        raise InvalidQuantityError(product_id, qty)

    if movement_type.is_inbound:
        if unit_cost is None:
            raise MissingUnitCostError(product_id, movement_type.value)
        cost = round_unit_cost(to_decimal(unit_cost))
        if cost < 0:
            raise InvalidMovementError(product_id, f"negative unit cost {cost}")
        new_on_hand = state.on_hand_qty + qty
        if state.on_hand_qty <= 0:
            new_avg = cost
        else:
            new_avg = round_unit_cost(
                (state.on_hand_qty * state.avg_cost + qty * cost) / new_on_hand
            )
        return AppliedMovement(
            state=CostState(on_hand_qty=new_on_hand, avg_cost=new_avg),
            unit_cost=cost,
            total_cost=round_money(qty * cost),
        )

    if unit_cost is not None:
        raise UnexpectedUnitCostError(product_id, movement_type.value)
    new_on_hand = state.on_hand_qty - qty
    if new_on_hand < 0 and not allow_negative:
        raise InsufficientStockError(product_id, state.on_hand_qty, qty)
    cost = state.avg_cost
    return AppliedMovement(
        state=CostState(on_hand_qty=new_on_hand, avg_cost=cost),
        unit_cost=cost,
        total_cost=round_money(qty * cost),
    )


def replay_movements(rows: Iterable[MovementRow], product_id=None) -> CostState:
    """Rebuild a CostState from ledger rows in posting order."""
    state = CostState()
    for row in rows:
        movement_type = MovementType(row.movement_type)
        state = apply_movement(
            state,
            movement_type,
            row.qty,
            unit_cost=row.unit_cost if movement_type.is_inbound else None,
            allow_negative=row.allow_negative,
            product_id=product_id,
        ).state
    return state
