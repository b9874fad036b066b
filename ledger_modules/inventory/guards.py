"""
Flush-time guards for the inventory subledger.

    - inventory_cost_ledger rows are never updated or deleted.
    - Backorder.qty_pending never increases.
    - A fulfilled or canceled backorder never changes again.
"""

from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import BackorderStateError, ImmutabilityError
from ledger_kernel.logging_config import get_logger
from ledger_modules.inventory.models import BackorderStatus
from ledger_modules.inventory.orm import Backorder, InventoryCostLedger

logger = get_logger("modules.inventory.guards")


def _blocked(entity_type: str, entity_id, operation: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={"entity_type": entity_type, "entity_id": str(entity_id), "operation": operation},
    )


def _reject_cost_ledger_update(mapper, connection, target):
    _blocked("InventoryCostLedger", target.id, "UPDATE")
    raise ImmutabilityError(f"InventoryCostLedger {target.id} is append-only: update rejected")


def _reject_cost_ledger_delete(mapper, connection, target):
    _blocked("InventoryCostLedger", target.id, "DELETE")
    raise ImmutabilityError(f"InventoryCostLedger {target.id} is append-only: delete rejected")


def _old_value(target, key: str):
    history = get_history(target, key)
    if history.deleted:
        return history.deleted[0]
    return getattr(target, key)


def _check_backorder_update(mapper, connection, target):
    old_status = _old_value(target, "status")
    if BackorderStatus(old_status).is_terminal:
        changed = [
            attr.key
            for attr in mapper.column_attrs
            if attr.key != "updated_at" and get_history(target, attr.key).has_changes()
        ]
        if changed:
            _blocked("Backorder", target.id, "UPDATE")
            raise BackorderStateError(target.id, old_status, "backorder is closed")

    old_qty = _old_value(target, "qty_pending")
    if target.qty_pending > old_qty:
        _blocked("Backorder", target.id, "UPDATE")
        raise BackorderStateError(
            target.id, target.status, f"qty_pending cannot grow from {old_qty} to {target.qty_pending}"
        )


def listeners():
    return [
        (InventoryCostLedger, "before_update", _reject_cost_ledger_update),
        (InventoryCostLedger, "before_delete", _reject_cost_ledger_delete),
        (Backorder, "before_update", _check_backorder_update),
    ]
