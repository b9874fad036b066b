"""
Pytest fixtures for the ledger test suite.

Provides:
- One engine and schema per test session (SQLite in-memory by default)
- Per-test sessions joined to an outer transaction that is rolled back
- Seeded chart of accounts and open 2026 periods
- Service fixtures wired to a deterministic clock
- Captured structured logs

Environment Variables:
- DATABASE_URL: SQLAlchemy URL.  Set it to a PostgreSQL URL to run the
  ``postgres``-marked row-lock tests; otherwise they are skipped.
"""

import json
import logging
import os
from datetime import date, datetime, timezone
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy import text
from sqlalchemy.orm import Session

from ledger_config import DEFAULT_CONFIG_FILE, get_active_config
from ledger_kernel.db.base import Base
from ledger_kernel.db.engine import LedgerDatabase
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.selectors import LedgerSelector
from ledger_kernel.services import (
    AccountService,
    JournalService,
    PeriodService,
    RoleResolver,
)
from ledger_modules._orm_registry import register_all_listeners, unregister_all_listeners
from ledger_modules.ap.selectors import PayablesSelector
from ledger_modules.ap.service import PayablesService
from ledger_modules.ar.service import ReceivablesService
from ledger_modules.cod.service import CodService
from ledger_modules.credit_notes.service import CreditNoteService
from ledger_modules.expenses.service import ExpenseService
from ledger_modules.inventory.backorders import BackorderService
from ledger_modules.inventory.fulfillment import GoodsOutService
from ledger_modules.inventory.service import InventoryCostingService
from ledger_modules.vouchers.service import VoucherService

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///:memory:"

TEST_ACTOR = "test-actor"
TEST_YEAR = 2026
TEST_NOW = datetime(2026, 1, 15, 9, 0, 0, tzinfo=timezone.utc)
TEST_DATE = TEST_NOW.date()


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def is_postgres() -> bool:
    return get_database_url().startswith("postgresql")


def pytest_collection_modifyitems(config, items):
    if is_postgres():
        return
    skip_pg = pytest.mark.skip(reason="needs PostgreSQL (set DATABASE_URL)")
    for item in items:
        if "postgres" in item.keywords:
            item.add_marker(skip_pg)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, journal_service):
            journal_service.post_journal(...)
            assert any(r["message"] == "journal_posted" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


@pytest.fixture(scope="session")
def ledger_config():
    return get_active_config(DEFAULT_CONFIG_FILE)


@pytest.fixture(scope="session")
def database(ledger_config) -> Generator[LedgerDatabase, None, None]:
    db = LedgerDatabase.from_url(
        get_database_url(),
        schema_lock_name=ledger_config.schema_lock.name,
        schema_lock_timeout_sec=ledger_config.schema_lock.timeout_sec,
    )
    db.drop_tables()
    db.create_tables()
    register_all_listeners()
    yield db
    unregister_all_listeners()
    db.drop_tables()
    db.dispose()


def truncate_all_tables(database: LedgerDatabase) -> None:
    """Remove committed rows.  Core statements bypass the ORM guards."""
    tables = list(reversed(Base.metadata.sorted_tables))
    with database.engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            conn.execute(text("TRUNCATE " + ", ".join(t.name for t in tables) + " CASCADE"))
        else:
            for table in tables:
                conn.execute(table.delete())


# =============================================================================
# Per-test session with automatic rollback
# =============================================================================


@pytest.fixture
def session(database) -> Generator[Session, None, None]:
    """
    Session joined to an outer transaction that is rolled back at teardown.

    ``session.commit()`` inside a test releases a savepoint only.
    """
    conn = database.engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


@pytest.fixture
def committed_database(database, ledger_config):
    """
    The real database with a committed chart and periods, for tests that go
    through ``LedgerDatabase.session_scope()``.  Emptied at teardown.
    """
    clock = DeterministicClock(TEST_NOW)
    with database.session_scope() as sess:
        AccountService(sess, clock).seed_chart(ledger_config.chart_of_accounts)
        PeriodService(sess, clock).ensure_year(TEST_YEAR)
    yield database
    truncate_all_tables(database)


# =============================================================================
# Ledger data
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(TEST_NOW)


@pytest.fixture
def test_actor() -> str:
    return TEST_ACTOR


@pytest.fixture
def entry_date() -> date:
    return TEST_DATE


@pytest.fixture
def account_service(session, deterministic_clock):
    return AccountService(session, deterministic_clock)


@pytest.fixture
def period_service(session, deterministic_clock):
    return PeriodService(session, deterministic_clock)


@pytest.fixture
def chart(account_service, ledger_config) -> dict[str, int]:
    """Seeded chart of accounts: code -> account id."""
    return account_service.seed_chart(ledger_config.chart_of_accounts)


@pytest.fixture
def open_periods(period_service):
    return period_service.ensure_year(TEST_YEAR)


@pytest.fixture
def seeded_ledger(chart, open_periods) -> dict[str, int]:
    return chart


@pytest.fixture
def role_resolver(session, ledger_config, seeded_ledger) -> RoleResolver:
    return RoleResolver(session, ledger_config.role_bindings)


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def journal_service(session, deterministic_clock, seeded_ledger):
    return JournalService(session, deterministic_clock)


@pytest.fixture
def ledger_selector(session):
    return LedgerSelector(session)


@pytest.fixture
def costing_service(session, deterministic_clock):
    return InventoryCostingService(session, deterministic_clock)


@pytest.fixture
def backorder_service(session, deterministic_clock):
    return BackorderService(session, deterministic_clock)


@pytest.fixture
def goods_out_service(session, role_resolver, deterministic_clock):
    return GoodsOutService(session, role_resolver, deterministic_clock)


@pytest.fixture
def payables_service(session, role_resolver, deterministic_clock):
    return PayablesService(session, role_resolver, deterministic_clock)


@pytest.fixture
def payables_selector(session):
    return PayablesSelector(session)


@pytest.fixture
def credit_note_service(session, role_resolver, deterministic_clock):
    return CreditNoteService(session, role_resolver, deterministic_clock)


@pytest.fixture
def cod_service(session, role_resolver, deterministic_clock):
    return CodService(session, role_resolver, deterministic_clock)


@pytest.fixture
def receivables_service(session, role_resolver, deterministic_clock):
    return ReceivablesService(session, role_resolver, deterministic_clock)


@pytest.fixture
def expense_service(session, role_resolver, deterministic_clock):
    return ExpenseService(session, role_resolver, deterministic_clock)


@pytest.fixture
def voucher_service(session, deterministic_clock):
    return VoucherService(session, deterministic_clock)
