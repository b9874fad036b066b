"""
Module: ledger_kernel.db.triggers
Responsibility: PostgreSQL triggers that make journals and journal lines
    append-only at the database level.  Complements the ORM listeners in
    db/immutability.py for writes that bypass the ORM (raw SQL, psql).
Architecture position: Kernel > DB.  Installed by LedgerDatabase.create_tables
    when the dialect is postgresql; other dialects rely on the ORM layer alone.

Failure modes:
    - The triggers RAISE EXCEPTION with SQLSTATE 'P0001' and a message that
      starts with IMMUTABLE_JOURNAL; SQLAlchemy surfaces it as InternalError.
"""

from sqlalchemy import text
from sqlalchemy.engine import Engine

from ledger_kernel.logging_config import get_logger

logger = get_logger("db.triggers")

_FUNCTION_SQL = """
CREATE OR REPLACE FUNCTION ledger_reject_journal_mutation() RETURNS trigger AS $$
BEGIN
    RAISE EXCEPTION 'IMMUTABLE_JOURNAL: % on % is not permitted', TG_OP, TG_TABLE_NAME;
END;
$$ LANGUAGE plpgsql;
"""

_PROTECTED_TABLES = ("journals", "journal_lines")


def _trigger_name(table: str) -> str:
    return f"trg_{table}_append_only"


def install_immutability_triggers(engine: Engine) -> None:
    """Install (or replace) the append-only triggers."""
    with engine.begin() as conn:
        conn.execute(text(_FUNCTION_SQL))
        for table in _PROTECTED_TABLES:
            name = _trigger_name(table)
            conn.execute(text(f"DROP TRIGGER IF EXISTS {name} ON {table}"))
            conn.execute(
                text(
                    f"CREATE TRIGGER {name} BEFORE UPDATE OR DELETE ON {table} "
                    "FOR EACH ROW EXECUTE FUNCTION ledger_reject_journal_mutation()"
                )
            )
    logger.info("immutability_triggers_installed", extra={"tables": list(_PROTECTED_TABLES)})


def uninstall_immutability_triggers(engine: Engine) -> None:
    with engine.begin() as conn:
        for table in _PROTECTED_TABLES:
            exists = conn.execute(
                text("SELECT to_regclass(:t) IS NOT NULL"), {"t": table}
            ).scalar()
            if exists:
                conn.execute(text(f"DROP TRIGGER IF EXISTS {_trigger_name(table)} ON {table}"))
        conn.execute(text("DROP FUNCTION IF EXISTS ledger_reject_journal_mutation()"))


def triggers_installed(engine: Engine) -> bool:
    with engine.connect() as conn:
        count = conn.execute(
            text(
                "SELECT count(*) FROM pg_trigger WHERE tgname = ANY(:names) "
                "AND NOT tgisinternal"
            ),
            {"names": [_trigger_name(t) for t in _PROTECTED_TABLES]},
        ).scalar()
    return count == len(_PROTECTED_TABLES)
