"""
Flush-time guards for COD collections.

    - A collection becomes ``settled`` only together with a settlement_id.
    - A settled collection never changes and is never deleted.
"""

from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutabilityError
from ledger_kernel.logging_config import get_logger
from ledger_modules.cod.models import CollectionStatus
from ledger_modules.cod.orm import CodCollection

logger = get_logger("modules.cod.guards")


def _previous_status(target) -> str:
    history = get_history(target, "status")
    if history.deleted:
        return history.deleted[0]
    return target.status


def _blocked(target, operation: str):
    logger.error(
        "immutability_violation_blocked",
        extra={"entity_type": "CodCollection", "entity_id": str(target.id), "operation": operation},
    )
    raise ImmutabilityError(f"CodCollection {target.id}: {operation} rejected")


def _check_collection_update(mapper, connection, target):
    if _previous_status(target) == CollectionStatus.SETTLED.value:
        changed = [
            attr.key
            for attr in mapper.column_attrs
            if attr.key != "updated_at" and get_history(target, attr.key).has_changes()
        ]
        if changed:
            _blocked(target, "update of a settled collection")
    if target.status == CollectionStatus.SETTLED.value and target.settlement_id is None:
        _blocked(target, "settle without a settlement")


def _check_collection_delete(mapper, connection, target):
    if _previous_status(target) == CollectionStatus.SETTLED.value:
        _blocked(target, "delete of a settled collection")


def listeners():
    return [
        (CodCollection, "before_update", _check_collection_update),
        (CodCollection, "before_delete", _check_collection_delete),
    ]
