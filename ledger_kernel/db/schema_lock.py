"""
Module: ledger_kernel.db.schema_lock
Responsibility: Named, timeout-bounded advisory lock that serializes
    schema-affecting maintenance (table creation, enum changes, drops)
    across processes sharing one database.
Architecture position: Kernel > DB.  Used by db/engine.LedgerDatabase and by
    operator scripts.  Takes an Engine; never a Session, because the lock must
    live on a dedicated connection outside any business transaction.

Invariants enforced:
    - Acquisition waits at most ``timeout_sec`` and then fails loudly.
    - The lock is released in ``finally`` whether the guarded block succeeds
      or raises.

Backends:
    postgresql   pg_try_advisory_lock(key) polled until the deadline; the key
                 is the first 8 bytes of sha256(lock_name) as a signed bigint.
    mysql        GET_LOCK(name, timeout) / RELEASE_LOCK(name).
    other        process-local named threading.Lock (SQLite, tests).

Failure modes:
    - SchemaLockTimeoutError: another holder kept the lock past the timeout.
    - SchemaLockAcquireError: the lock query errored or returned NULL.
    - SchemaLockReleaseError: release did not report success.  Raised only
      when the guarded block itself succeeded; otherwise logged so the
      original exception propagates.
"""

import hashlib
import threading
import time
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError

from ledger_kernel.exceptions import (
    SchemaLockAcquireError,
    SchemaLockReleaseError,
    SchemaLockTimeoutError,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.schema_lock")

DEFAULT_LOCK_NAME = "parts_ledger_schema_lock"
DEFAULT_TIMEOUT_SEC = 30

_POLL_INTERVAL_SEC = 0.25

_local_locks: dict[str, threading.Lock] = {}
_local_locks_guard = threading.Lock()


def advisory_key(lock_name: str) -> int:
    """Stable signed 64-bit key for pg advisory locks."""
    digest = hashlib.sha256(lock_name.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


# ---------------------------------------------------------------------------
# PostgreSQL
# ---------------------------------------------------------------------------


def _pg_acquire(conn: Connection, lock_name: str, timeout_sec: int) -> None:
    key = advisory_key(lock_name)
    deadline = time.monotonic() + timeout_sec
    while True:
        try:
            acquired = conn.execute(
                text("SELECT pg_try_advisory_lock(:key)"), {"key": key}
            ).scalar()
        except DBAPIError as exc:
            raise SchemaLockAcquireError(lock_name, str(exc.orig)) from exc
        if acquired:
            return
        if time.monotonic() >= deadline:
            raise SchemaLockTimeoutError(lock_name, timeout_sec)
        time.sleep(_POLL_INTERVAL_SEC)


def _pg_release(conn: Connection, lock_name: str) -> None:
    try:
        released = conn.execute(
            text("SELECT pg_advisory_unlock(:key)"), {"key": advisory_key(lock_name)}
        ).scalar()
    except DBAPIError as exc:
        raise SchemaLockReleaseError(lock_name, str(exc.orig)) from exc
    if not released:
        raise SchemaLockReleaseError(lock_name, "lock was not held by this session")


# ---------------------------------------------------------------------------
# MySQL / MariaDB
# ---------------------------------------------------------------------------


def _mysql_acquire(conn: Connection, lock_name: str, timeout_sec: int) -> None:
    try:
        status = conn.execute(
            text("SELECT GET_LOCK(:name, :timeout)"),
            {"name": lock_name, "timeout": timeout_sec},
        ).scalar()
    except DBAPIError as exc:
        raise SchemaLockAcquireError(lock_name, str(exc.orig)) from exc
    if status == 1:
        return
    if status == 0:
        raise SchemaLockTimeoutError(lock_name, timeout_sec)
    raise SchemaLockAcquireError(lock_name, f"GET_LOCK returned {status!r}")


def _mysql_release(conn: Connection, lock_name: str) -> None:
    try:
        status = conn.execute(
            text("SELECT RELEASE_LOCK(:name)"), {"name": lock_name}
        ).scalar()
    except DBAPIError as exc:
        raise SchemaLockReleaseError(lock_name, str(exc.orig)) from exc
    if status != 1:
        raise SchemaLockReleaseError(lock_name, f"RELEASE_LOCK returned {status!r}")


# ---------------------------------------------------------------------------
# Process-local fallback
# ---------------------------------------------------------------------------


def _local_lock(lock_name: str) -> threading.Lock:
    with _local_locks_guard:
        lock = _local_locks.get(lock_name)
        if lock is None:
            lock = _local_locks[lock_name] = threading.Lock()
        return lock


def _local_acquire(lock_name: str, timeout_sec: int) -> None:
    if not _local_lock(lock_name).acquire(timeout=timeout_sec):
        raise SchemaLockTimeoutError(lock_name, timeout_sec)


def _local_release(lock_name: str) -> None:
    try:
        _local_lock(lock_name).release()
    except RuntimeError as exc:
        raise SchemaLockReleaseError(lock_name, str(exc)) from exc


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


@contextmanager
def schema_lock(
    engine: Engine,
    lock_name: str | None = None,
    timeout_sec: int | None = None,
) -> Iterator[str]:
    """
    Hold the named schema lock for the duration of the ``with`` block.

    Preconditions:
        ``timeout_sec`` is a positive integer (defaults to 30).

    Postconditions:
        The lock is released on exit.  Yields the effective lock name.

    Raises:
        SchemaLockTimeoutError, SchemaLockAcquireError, SchemaLockReleaseError.
    """
    name = (lock_name or "").strip() or DEFAULT_LOCK_NAME
    timeout = timeout_sec if timeout_sec and timeout_sec > 0 else DEFAULT_TIMEOUT_SEC
    dialect = engine.dialect.name

    if dialect == "postgresql":
        acquire, release = _pg_acquire, _pg_release
    elif dialect in ("mysql", "mariadb"):
        acquire, release = _mysql_acquire, _mysql_release
    else:
        acquire = release = None

    conn: Connection | None = None
    started = time.monotonic()
    try:
        if acquire is not None:
            conn = engine.connect().execution_options(isolation_level="AUTOCOMMIT")
            acquire(conn, name, timeout)
        else:
            _local_acquire(name, timeout)
    except Exception:
        if conn is not None:
            conn.close()
        logger.warning(
            "schema_lock_acquire_failed",
            extra={"lock_name": name, "dialect": dialect, "timeout_sec": timeout},
        )
        raise

    logger.info(
        "schema_lock_acquired",
        extra={
            "lock_name": name,
            "dialect": dialect,
            "waited_ms": round((time.monotonic() - started) * 1000),
        },
    )

    body_failed = False
    try:
        yield name
    except BaseException:
        body_failed = True
        raise
    finally:
        try:
            if release is not None:
                release(conn, name)
            else:
                _local_release(name)
        except SchemaLockReleaseError:
            if not body_failed:
                raise
            logger.error(
                "schema_lock_release_failed",
                extra={"lock_name": name, "dialect": dialect},
                exc_info=True,
            )
        else:
            logger.info("schema_lock_released", extra={"lock_name": name})
        finally:
            if conn is not None:
                conn.close()
