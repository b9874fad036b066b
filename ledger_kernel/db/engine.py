"""
Module: ledger_kernel.db.engine
Responsibility: Engine construction, session factory, and the transactional
    scope every ledger-mutating request runs in.
Architecture position: Kernel > DB.  May import from db/base.py,
    db/schema_lock.py and (inside create_tables only) the model modules.

Invariants enforced:
    - No module-level engine.  A ``LedgerDatabase`` handle is constructed by
      the caller and passed to whoever needs sessions.
    - ``session_scope()`` commits on success and rolls back on ANY exception,
      so no operation is ever partially applied.
    - DDL (create_tables / drop_tables) runs under the schema advisory lock.

Failure modes:
    - SchemaLockTimeoutError if another process holds the schema lock.
    - OperationalError / connection errors propagate after rollback.

Audit relevance:
    All ledger transactions flow through sessions created here; rollbacks
    are logged at WARNING with the exception attached.
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ledger_kernel.db.base import Base
from ledger_kernel.db.schema_lock import schema_lock
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def _sqlite_on_connect(dbapi_connection, connection_record) -> None:
    # Hand transaction control to SQLAlchemy so SAVEPOINT works with pysqlite
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _sqlite_on_begin(conn) -> None:
    conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str, echo: bool = False, **kwargs) -> Engine:
    """
    Create an Engine for ``database_url``.

    PostgreSQL (and MySQL) get a pre-pinging QueuePool at READ COMMITTED.
    In-memory SQLite is pinned to one shared connection so every session
    sees the same database.
    """
    if database_url.startswith("sqlite"):
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite+pysqlite://"):
            kwargs.setdefault("poolclass", StaticPool)
        kwargs.setdefault("connect_args", {"check_same_thread": False})
        engine = create_engine(database_url, echo=echo, **kwargs)
        event.listen(engine, "connect", _sqlite_on_connect)
        event.listen(engine, "begin", _sqlite_on_begin)
        return engine

    kwargs.setdefault("pool_size", 10)
    kwargs.setdefault("max_overflow", 10)
    kwargs.setdefault("pool_pre_ping", True)
    kwargs.setdefault("pool_recycle", 1800)
    kwargs.setdefault("isolation_level", "READ COMMITTED")
    return create_engine(database_url, echo=echo, **kwargs)


def import_all_models() -> None:
    """Import every ORM module so Base.metadata knows all tables."""
    from ledger_modules._orm_registry import import_all_orm_models

    import_all_orm_models()


class LedgerDatabase:
    """
    Injected storage handle: one engine plus its session factory.

    Contract:
        Constructed once per process (or per test session) and passed into
        whatever opens transactions.  Services themselves only ever see a
        ``Session``.

    Guarantees:
        - Sessions use ``expire_on_commit=False`` so DTOs built after commit
          do not trigger lazy loads.
    """

    def __init__(
        self,
        engine: Engine,
        schema_lock_name: str | None = None,
        schema_lock_timeout_sec: int | None = None,
    ):
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        self._schema_lock_name = schema_lock_name
        self._schema_lock_timeout_sec = schema_lock_timeout_sec

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False, **kwargs) -> "LedgerDatabase":
        lock_name = kwargs.pop("schema_lock_name", None)
        lock_timeout = kwargs.pop("schema_lock_timeout_sec", None)
        engine = build_engine(database_url, echo=echo, **kwargs)
        logger.info(
            "engine_initialized",
            extra={"dialect": engine.dialect.name, "echo": echo},
        )
        return cls(engine, schema_lock_name=lock_name, schema_lock_timeout_sec=lock_timeout)

    def session(self) -> Session:
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """
        Provide a transactional scope around a series of operations.

        Postconditions: On normal exit, session is committed and closed.
            On exception, session is rolled back and closed, and the
            exception is re-raised to the caller.
        """
        session = self.session()
        logger.debug("transaction_started")
        try:
            yield session
            session.commit()
            logger.debug("transaction_committed")
        except Exception:
            session.rollback()
            logger.warning("transaction_rolled_back", exc_info=True)
            raise
        finally:
            session.close()

    @contextmanager
    def schema_lock(self) -> Iterator[str]:
        with schema_lock(
            self.engine, self._schema_lock_name, self._schema_lock_timeout_sec
        ) as name:
            yield name

    def create_tables(self) -> None:
        """Create every table under the schema lock."""
        import_all_models()
        with self.schema_lock():
            Base.metadata.create_all(self.engine)
            if self.engine.dialect.name == "postgresql":
                from ledger_kernel.db.triggers import install_immutability_triggers

                install_immutability_triggers(self.engine)
        logger.info("tables_created", extra={"tables": len(Base.metadata.tables)})

    def drop_tables(self) -> None:
        """Drop every table under the schema lock.  Tests and tooling only."""
        import_all_models()
        with self.schema_lock():
            if self.engine.dialect.name == "postgresql":
                from ledger_kernel.db.triggers import uninstall_immutability_triggers

                uninstall_immutability_triggers(self.engine)
            Base.metadata.drop_all(self.engine)
        logger.info("tables_dropped")

    def dispose(self) -> None:
        self.engine.dispose()
