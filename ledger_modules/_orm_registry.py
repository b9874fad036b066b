"""
Module ORM Registry (``ledger_modules._orm_registry``).

Responsibility
--------------
Single place that knows every subledger.  It

* imports every ``ledger_modules.*.orm`` module so ``Base.metadata`` holds
  the complete schema before ``create_tables()`` runs, and
* registers the flush-time guards each module declares in its
  ``guards.py`` next to the kernel's append-only listeners.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``ledger_modules``
packages and from ``ledger_kernel`` (allowed: modules -> kernel).  The
kernel reaches it only through the lazy import in
``ledger_kernel.db.engine.import_all_models``.

Usage
-----
Entrypoints and ``tests/conftest.py`` call ``register_all_listeners()`` once
at startup; ``LedgerDatabase.create_tables()`` calls
``import_all_orm_models()`` itself.
"""

from sqlalchemy import event

from ledger_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)


def import_all_orm_models() -> None:
    """Import kernel models and every module ORM.  Idempotent."""
    # Kernel tables first; module tables reference journals and accounts
    import ledger_kernel.models  # noqa: F401
    # fmt: off
    import ledger_modules.ap.orm  # noqa: F401
    import ledger_modules.ar.orm  # noqa: F401
    import ledger_modules.cod.orm  # noqa: F401
    import ledger_modules.credit_notes.orm  # noqa: F401
    import ledger_modules.expenses.orm  # noqa: F401
    import ledger_modules.inventory.orm  # noqa: F401
    import ledger_modules.vouchers.orm  # noqa: F401
    # fmt: on


def _module_listeners():
    from ledger_modules.cod import guards as cod_guards
    from ledger_modules.credit_notes import guards as credit_note_guards
    from ledger_modules.inventory import guards as inventory_guards

    return [
        *credit_note_guards.listeners(),
        *cod_guards.listeners(),
        *inventory_guards.listeners(),
    ]


def register_module_listeners() -> None:
    """Register the subledger guards (idempotent)."""
    for target, name, fn in _module_listeners():
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)


def unregister_module_listeners() -> None:
    """Remove the subledger guards.  Tests that simulate tampering only."""
    for target, name, fn in _module_listeners():
        if event.contains(target, name, fn):
            event.remove(target, name, fn)


def register_all_listeners() -> None:
    """Kernel append-only rules plus every subledger guard."""
    import_all_orm_models()
    register_immutability_listeners()
    register_module_listeners()


def unregister_all_listeners() -> None:
    unregister_module_listeners()
    unregister_immutability_listeners()
