"""
Flush-time guards for credit notes.

A draft may be edited or deleted freely.  Once posted, the note and its
lines are frozen; the only permitted change is ``posted -> refunded`` with
its refund bookkeeping columns.

    CreditNote      before_update  -> _check_credit_note_update
    CreditNote      before_delete  -> _check_credit_note_delete
    CreditNoteLine  before_insert / before_update / before_delete
                                   -> _check_line_change

Registered together with the other module guards by
``ledger_modules._orm_registry.register_module_listeners``.
"""

from sqlalchemy import select
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import ImmutableCreditNoteError
from ledger_kernel.logging_config import get_logger
from ledger_modules.credit_notes.models import CreditNoteStatus
from ledger_modules.credit_notes.orm import CreditNote, CreditNoteLine

logger = get_logger("modules.credit_notes.guards")

_REFUND_COLUMNS = frozenset({"status", "refunded_at", "refunded_by", "refund_journal_id", "updated_at"})


def _previous_status(target) -> str:
    history = get_history(target, "status")
    if history.deleted:
        return history.deleted[0]
    return target.status


def _reject(target_id, status: str, operation: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "CreditNote",
            "entity_id": str(target_id),
            "status": status,
            "operation": operation,
        },
    )
    raise ImmutableCreditNoteError(target_id, status, operation)


def _check_credit_note_update(mapper, connection, target):
    before = _previous_status(target)
    if before == CreditNoteStatus.DRAFT.value:
        return
    changed = {
        attr.key
        for attr in mapper.column_attrs
        if get_history(target, attr.key).has_changes()
    }
    if not changed:
        return
    refund_transition = (
        before == CreditNoteStatus.POSTED.value
        and target.status == CreditNoteStatus.REFUNDED.value
        and changed <= _REFUND_COLUMNS
    )
    if not refund_transition:
        _reject(target.id, before, "update")


def _check_credit_note_delete(mapper, connection, target):
    before = _previous_status(target)
    if before != CreditNoteStatus.DRAFT.value:
        _reject(target.id, before, "delete")


def _check_line_change(mapper, connection, target):
    status = connection.execute(
        select(CreditNote.status).where(CreditNote.id == target.credit_note_id)
    ).scalar_one_or_none()
    if status is not None and status != CreditNoteStatus.DRAFT.value:
        _reject(target.credit_note_id, status, "line change")


def listeners():
    return [
        (CreditNote, "before_update", _check_credit_note_update),
        (CreditNote, "before_delete", _check_credit_note_delete),
        (CreditNoteLine, "before_insert", _check_line_change),
        (CreditNoteLine, "before_update", _check_line_change),
        (CreditNoteLine, "before_delete", _check_line_change),
    ]
