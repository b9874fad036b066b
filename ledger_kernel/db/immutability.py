"""
ORM-level append-only enforcement for the general ledger.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires mapper events before an UPDATE or DELETE reaches the
database.  The listeners registered here inspect the pending change and
raise a typed error, which aborts the flush; nothing is written.

    session.flush()
         |
         v
    [before_update] --> _reject_journal_update() --> ImmutableJournalError
    [before_delete] --> _reject_journal_delete() --> ImmutableJournalError
         |
         v
    SQL sent to database (only if every check passes)

Bulk ``update(Journal)`` / ``delete(JournalLine)`` statements never fire
mapper events, so a ``do_orm_execute`` hook on Session rejects them too.
On PostgreSQL, db/triggers.py adds the same rule at the database level.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | Rule
------------------|---------------------------------------------------------
Journal           | Never updated, never deleted
JournalLine       | Never updated, never deleted
AccountingPeriod  | Frozen once is_closed is true; closed rows never deleted
Account           | account_type frozen once any journal line references it

Subledger rules (posted credit notes, backorder quantities) are registered
by ``ledger_modules._orm_registry``.

===============================================================================
USAGE
===============================================================================

    from ledger_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

Tests that must simulate tampering call ``unregister_immutability_listeners()``
and re-register afterwards.
"""

from sqlalchemy import event, exists, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.exceptions import (
    AccountTypeLockedError,
    ImmutableJournalError,
    PeriodImmutableError,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_APPEND_ONLY_TABLES = frozenset({"journals", "journal_lines"})


def _blocked(entity_type: str, entity_id, operation: str, **fields) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            **fields,
        },
    )


# =============================================================================
# Journal / JournalLine
# =============================================================================


def _reject_journal_update(mapper, connection, target):
    _blocked(type(target).__name__, target.id, "UPDATE")
    raise ImmutableJournalError(type(target).__name__, target.id, "update")


def _reject_journal_delete(mapper, connection, target):
    _blocked(type(target).__name__, target.id, "DELETE")
    raise ImmutableJournalError(type(target).__name__, target.id, "delete")


def _reject_bulk_journal_mutation(orm_execute_state):
    """Reject ORM-enabled bulk UPDATE/DELETE against append-only tables."""
    if not (orm_execute_state.is_update or orm_execute_state.is_delete):
        return
    table = getattr(orm_execute_state.statement, "table", None)
    if table is None or getattr(table, "name", None) not in _APPEND_ONLY_TABLES:
        return
    operation = "update" if orm_execute_state.is_update else "delete"
    _blocked(table.name, "*", f"BULK_{operation.upper()}")
    raise ImmutableJournalError(table.name, "*", f"bulk {operation}")


# =============================================================================
# AccountingPeriod
# =============================================================================


def _was_closed(target) -> bool:
    history = get_history(target, "is_closed")
    if history.deleted:
        return bool(history.deleted[0])
    if history.added:
        # open -> closed transition in this flush
        return False
    return bool(target.is_closed)


def _check_period_update(mapper, connection, target):
    if not _was_closed(target):
        return
    changed = [
        attr.key
        for attr in mapper.column_attrs
        if attr.key != "updated_at" and get_history(target, attr.key).has_changes()
    ]
    if changed:
        _blocked("AccountingPeriod", target.id, "UPDATE", fields=changed)
        raise PeriodImmutableError(target.month, target.year, "update")


def _check_period_delete(mapper, connection, target):
    if target.is_closed:
        _blocked("AccountingPeriod", target.id, "DELETE")
        raise PeriodImmutableError(target.month, target.year, "delete")


# =============================================================================
# Account
# =============================================================================


def account_is_referenced(connection, account_id: int) -> bool:
    """True when any journal line posts to the account."""
    from ledger_kernel.models.journal import JournalLine

    return bool(
        connection.execute(
            select(exists().where(JournalLine.account_id == account_id))
        ).scalar()
    )


def _check_account_type_change(mapper, connection, target):
    history = get_history(target, "account_type")
    if not history.has_changes() or not history.deleted:
        return
    old_type = history.deleted[0]
    new_type = target.account_type
    if str(getattr(old_type, "value", old_type)) == str(getattr(new_type, "value", new_type)):
        return
    if account_is_referenced(connection, target.id):
        _blocked("Account", target.id, "UPDATE", fields=["account_type"])
        raise AccountTypeLockedError(
            target.id,
            str(getattr(old_type, "value", old_type)),
            str(getattr(new_type, "value", new_type)),
        )


# =============================================================================
# Registration
# =============================================================================


def _listeners():
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.accounting_period import AccountingPeriod
    from ledger_kernel.models.journal import Journal, JournalLine

    return [
        (Journal, "before_update", _reject_journal_update),
        (Journal, "before_delete", _reject_journal_delete),
        (JournalLine, "before_update", _reject_journal_update),
        (JournalLine, "before_delete", _reject_journal_delete),
        (AccountingPeriod, "before_update", _check_period_update),
        (AccountingPeriod, "before_delete", _check_period_delete),
        (Account, "before_update", _check_account_type_change),
        (Session, "do_orm_execute", _reject_bulk_journal_mutation),
    ]


def register_immutability_listeners() -> None:
    """Register all kernel append-only listeners (idempotent)."""
    for target, name, fn in _listeners():
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)


def _safe_remove_listener(target, event_name, listener_fn):
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove the kernel listeners.

    WARNING: Only use this in tests that intentionally violate the rules.
    """
    for target, name, fn in _listeners():
        _safe_remove_listener(target, name, fn)
