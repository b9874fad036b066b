#!/usr/bin/env python3
"""
Create the ledger schema, seed the chart of accounts and open periods.

Tables are created under the schema advisory lock, so several app
instances may run this at start-up without racing each other.  Existing
accounts and periods are left untouched.

Usage:
    python3 scripts/seed_chart.py --database-url sqlite:///ledger.db --year 2026
    DATABASE_URL=postgresql://... python3 scripts/seed_chart.py
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from datetime import date
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

DEFAULT_DB_URL = "sqlite:///parts_ledger.db"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument(
        "--database-url",
        default=os.environ.get("DATABASE_URL", DEFAULT_DB_URL),
        help="SQLAlchemy URL (default: $DATABASE_URL or %(default)s)",
    )
    parser.add_argument(
        "--year",
        type=int,
        action="append",
        help="Open all twelve periods of YEAR (repeatable; default: current year)",
    )
    parser.add_argument("--config", type=Path, default=None, help="YAML config file")
    parser.add_argument("--verbose", action="store_true", help="JSON logs to stderr")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    from ledger_config import get_active_config
    from ledger_kernel.db.engine import LedgerDatabase
    from ledger_kernel.exceptions import LedgerError
    from ledger_kernel.logging_config import configure_logging
    from ledger_kernel.services.account_service import AccountService
    from ledger_kernel.services.period_service import PeriodService
    from ledger_modules._orm_registry import register_all_listeners

    if args.verbose:
        configure_logging(level=logging.INFO)
    else:
        logging.disable(logging.INFO)

    config = get_active_config(args.config)
    register_all_listeners()
    db = LedgerDatabase.from_url(
        args.database_url,
        schema_lock_name=config.schema_lock.name,
        schema_lock_timeout_sec=config.schema_lock.timeout_sec,
    )

    years = args.year or [date.today().year]
    try:
        db.create_tables()
        with db.session_scope() as session:
            ids = AccountService(session).seed_chart(config.chart_of_accounts)
            periods = PeriodService(session)
            opened = [p for year in years for p in periods.ensure_year(year)]
    except LedgerError as exc:
        print(f"  ERROR [{exc.code}]: {exc.message}", file=sys.stderr)
        return 1
    finally:
        db.dispose()

    print(f"  Chart of accounts: {len(ids)} accounts")
    print(f"  Periods open:      {len(opened)} ({', '.join(str(y) for y in years)})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
