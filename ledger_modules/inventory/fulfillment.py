"""
Goods-Out Posting (``ledger_modules.inventory.fulfillment``).

Responsibility
--------------
Books an order leaving the warehouse: consumes stock through the costing
engine, opens backorders for shortfalls when allowed, and posts the
revenue and COGS journals, all inside the caller's unit of work.

Postings
--------
=========  ==========================================  =====================
Mode       Debit                                       Credit
=========  ==========================================  =====================
non_cod    deferred_revenue (revenue)                  sales (revenue)
cod        driver_receivable (revenue + VAT)           sales, vat_output
(COGS)     cogs                                        inventory
=========  ==========================================  =====================

Invariants
----------
- Revenue journal is skipped when revenue is zero; COGS journal is skipped
  when the consumed cost is zero.
- Idempotency keys are derived from the order id, so a second goods-out
  for the same order fails with ``DuplicateJournalError`` before any stock
  moves.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Sequence

from ledger_kernel.db.types import ZERO, round_money, to_decimal
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import LineSpec
from ledger_kernel.domain.references import JournalReference, ReferenceKind
from ledger_kernel.domain.roles import AccountRole
from ledger_kernel.exceptions import DuplicateJournalError, InvalidAmountError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.journal_service import JournalService
from ledger_kernel.services.role_resolver import RoleResolver
from ledger_modules.inventory.backorders import BackorderService
from ledger_modules.inventory.models import (
    GoodsOutItem,
    GoodsOutResult,
    MovementType,
    SalesMode,
)
from ledger_modules.inventory.service import InventoryCostingService

logger = get_logger("modules.inventory.fulfillment")


def revenue_idempotency_key(order_id: str, mode: SalesMode) -> str:
    if mode == SalesMode.COD:
        return f"goods_out_cod_revenue_{order_id}"
    return f"goods_out_revenue_{order_id}"


def cogs_idempotency_key(order_id: str) -> str:
    return f"goods_out_cogs_{order_id}"


class GoodsOutService(BaseService):
    """
    Orchestrates costing, backorders and journal posting for goods out.

    Non-goals:
        - Does NOT compute prices, discounts or VAT; callers pass amounts.
        - Does NOT commit.
    """

    def __init__(
        self,
        session,
        roles: RoleResolver,
        clock: Clock | None = None,
        journals: JournalService | None = None,
        costing: InventoryCostingService | None = None,
        backorders: BackorderService | None = None,
    ):
        super().__init__(session, clock)
        self._roles = roles
        self._journals = journals or JournalService(session, self.clock)
        self._costing = costing or InventoryCostingService(session, self.clock)
        self._backorders = backorders or BackorderService(session, self.clock)

    def post_goods_out(
        self,
        order_id: str,
        items: Sequence[GoodsOutItem],
        revenue_amount: Decimal,
        vat_amount: Decimal,
        mode: SalesMode | str,
        actor_id: str,
        entry_date: date,
        allow_backorder: bool = False,
    ) -> GoodsOutResult:
        """
        Consume stock for ``items`` and post revenue and COGS.

        Raises:
            DuplicateJournalError: goods out already posted for the order.
            InvalidAmountError: negative revenue or VAT.
            InsufficientStockError: shortfall without ``allow_backorder``.
            Any JournalService error (period closed, role not bound, ...).
        """
        order_id = str(order_id)
        mode = SalesMode(mode)
        revenue = round_money(to_decimal(revenue_amount))
        vat = round_money(to_decimal(vat_amount))
        if revenue < 0:
            raise InvalidAmountError(revenue, "revenue must not be negative")
        if vat < 0:
            raise InvalidAmountError(vat, "VAT must not be negative")

        for key in (revenue_idempotency_key(order_id, mode), cogs_idempotency_key(order_id)):
            existing = self._journals.find_by_idempotency_key(key)
            if existing is not None:
                raise DuplicateJournalError(key, existing.id)

        order_ref = JournalReference(ReferenceKind.ORDER, order_id)
        movements = []
        backorders = []
        cogs = ZERO
        for item in items:
            result = self._costing.record_movement(
                item.product_id,
                MovementType.OUT,
                item.qty,
                reference=order_ref,
                allow_negative=allow_backorder,
                note="Goods out valuation",
            )
            movements.append(result)
            cogs += result.total_cost
            if result.on_hand_qty < 0:
                shortfall = min(item.qty, -result.on_hand_qty)
                backorders.append(
                    self._backorders.create_backorder(item.order_item_id, item.product_id, shortfall)
                )

        revenue_journal_id = None
        if revenue > 0:
            revenue_journal_id = self._post_revenue(order_id, revenue, vat, mode, actor_id, entry_date)

        cogs_journal_id = None
        if cogs > 0:
            cogs_journal_id = self._journals.post_journal(
                entry_date=entry_date,
                reference=JournalReference(ReferenceKind.ORDER_COGS, order_id),
                description=f"COGS for goods out, order {order_id}",
                created_by=actor_id,
                lines=[
                    LineSpec.dr(self._roles.resolve(AccountRole.COGS), cogs),
                    LineSpec.cr(self._roles.resolve(AccountRole.INVENTORY), cogs),
                ],
                idempotency_key=cogs_idempotency_key(order_id),
            ).id

        logger.info(
            "goods_out_posted",
            extra={
                "order_id": order_id,
                "mode": mode.value,
                "revenue": revenue,
                "vat": vat,
                "cogs": cogs,
                "backorders": len(backorders),
            },
        )
        return GoodsOutResult(
            order_id=order_id,
            revenue=revenue,
            cogs=cogs,
            revenue_journal_id=revenue_journal_id,
            cogs_journal_id=cogs_journal_id,
            movements=tuple(movements),
            backorders=tuple(backorders),
        )

    def _post_revenue(
        self,
        order_id: str,
        revenue: Decimal,
        vat: Decimal,
        mode: SalesMode,
        actor_id: str,
        entry_date: date,
    ) -> int:
        sales = self._roles.resolve(AccountRole.SALES)
        if mode == SalesMode.COD:
            lines = [
                LineSpec.dr(self._roles.resolve(AccountRole.DRIVER_RECEIVABLE), revenue + vat),
                LineSpec.cr(sales, revenue),
            ]
            if vat > 0:
                lines.append(LineSpec.cr(self._roles.resolve(AccountRole.VAT_OUTPUT), vat))
            description = f"COD sale on goods out, order {order_id}"
        else:
            lines = [
                LineSpec.dr(self._roles.resolve(AccountRole.DEFERRED_REVENUE), revenue),
                LineSpec.cr(sales, revenue),
            ]
            description = f"Revenue recognised on goods out, order {order_id}"

        return self._journals.post_journal(
            entry_date=entry_date,
            reference=JournalReference(ReferenceKind.ORDER, order_id),
            description=description,
            created_by=actor_id,
            lines=lines,
            idempotency_key=revenue_idempotency_key(order_id, mode),
        ).id
