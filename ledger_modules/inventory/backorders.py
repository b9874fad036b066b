"""
Backorder Service (``ledger_modules.inventory.backorders``).

Responsibility
--------------
Tracks order lines waiting on stock.  A backorder starts in
``waiting_stock``, may be marked ``ready``, and ends ``fulfilled`` (pending
quantity allocated down to zero) or ``canceled``.

Invariants
----------
- ``qty_pending`` only ever decreases, and never below zero.
- ``fulfilled`` and ``canceled`` are terminal.
- Both rules are also enforced at flush time by ``inventory.guards``.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from ledger_kernel.exceptions import (
    BackorderNotFoundError,
    BackorderStateError,
    InvalidQuantityError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.base import BaseService
from ledger_modules.inventory.models import BackorderInfo, BackorderStatus
from ledger_modules.inventory.orm import Backorder

logger = get_logger("modules.inventory.backorders")

_OPEN_STATUSES = (BackorderStatus.WAITING_STOCK.value, BackorderStatus.READY.value)


class BackorderService(BaseService):
    """Lifecycle of backorders.  Flush-only."""

    def _load(self, backorder_id: UUID, lock: bool = True) -> Backorder:
        stmt = select(Backorder).where(Backorder.id == backorder_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        backorder = self.session.execute(stmt).scalar_one_or_none()
        if backorder is None:
            raise BackorderNotFoundError(backorder_id)
        return backorder

    @staticmethod
    def _require_open(backorder: Backorder, action: str) -> None:
        if BackorderStatus(backorder.status).is_terminal:
            raise BackorderStateError(backorder.id, backorder.status, f"cannot {action} a terminal backorder")

    def create_backorder(
        self,
        order_item_id: str,
        product_id: UUID,
        qty_pending: int,
        notes: str | None = None,
    ) -> BackorderInfo:
        if isinstance(qty_pending, bool) or not isinstance(qty_pending, int) or qty_pending <= 0:
            raise InvalidQuantityError(product_id, qty_pending)

        backorder = Backorder(
            order_item_id=str(order_item_id),
            product_id=product_id,
            qty_pending=qty_pending,
            status=BackorderStatus.WAITING_STOCK.value,
            notes=notes,
            queued_at=self.clock.now(),
        )
        self.session.add(backorder)
        self.session.flush()
        logger.info(
            "backorder_created",
            extra={
                "backorder_id": backorder.id,
                "order_item_id": order_item_id,
                "product_id": product_id,
                "qty_pending": qty_pending,
            },
        )
        return backorder.to_dto()

    def get_backorder(self, backorder_id: UUID) -> BackorderInfo:
        return self._load(backorder_id, lock=False).to_dto()

    def list_open(self, product_id: UUID) -> list[BackorderInfo]:
        """Open backorders for a product, oldest first."""
        rows = self.session.execute(
            select(Backorder)
            .where(Backorder.product_id == product_id, Backorder.status.in_(_OPEN_STATUSES))
            .order_by(Backorder.queued_at)
        ).scalars()
        return [row.to_dto() for row in rows]

    def mark_ready(self, backorder_id: UUID) -> BackorderInfo:
        backorder = self._load(backorder_id)
        if backorder.status != BackorderStatus.WAITING_STOCK.value:
            raise BackorderStateError(backorder.id, backorder.status, "only waiting_stock can become ready")
        backorder.status = BackorderStatus.READY.value
        self.session.flush()
        logger.info("backorder_ready", extra={"backorder_id": backorder.id})
        return backorder.to_dto()

    def allocate(self, backorder_id: UUID, qty: int) -> BackorderInfo:
        """
        Allocate up to ``qty`` units to the backorder.

        Allocation is capped at the pending quantity; reaching zero marks
        the backorder ``fulfilled``.
        """
        backorder = self._load(backorder_id)
        self._require_open(backorder, "allocate to")
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            raise InvalidQuantityError(backorder.product_id, qty)

        allocated = min(qty, backorder.qty_pending)
        backorder.qty_pending -= allocated
        if backorder.qty_pending == 0:
            backorder.status = BackorderStatus.FULFILLED.value
        self.session.flush()
        logger.info(
            "backorder_allocated",
            extra={
                "backorder_id": backorder.id,
                "allocated_qty": allocated,
                "qty_pending": backorder.qty_pending,
                "status": backorder.status,
            },
        )
        return backorder.to_dto()

    def allocate_available(self, product_id: UUID, available_qty: int) -> list[BackorderInfo]:
        """
        Spread newly available stock over the product's open backorders,
        oldest first, until the stock runs out.
        """
        touched: list[BackorderInfo] = []
        remaining = available_qty
        for info in self.list_open(product_id):
            if remaining <= 0:
                break
            take = min(remaining, info.qty_pending)
            touched.append(self.allocate(info.id, take))
            remaining -= take
        return touched

    def cancel(self, backorder_id: UUID) -> BackorderInfo:
        backorder = self._load(backorder_id)
        self._require_open(backorder, "cancel")
        backorder.status = BackorderStatus.CANCELED.value
        self.session.flush()
        logger.info("backorder_canceled", extra={"backorder_id": backorder.id})
        return backorder.to_dto()
