#!/usr/bin/env python3
"""
Print the trial balance, profit and loss, VAT and AP aging reports.

Reads an existing ledger database (run seed_chart.py first).

Usage:
    python3 scripts/view_reports.py --database-url sqlite:///parts_ledger.db \\
        [--as-of 2026-03-31] [--from 2026-01-01]
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

W = 72


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument(
        "--database-url",
        default=os.environ.get("DATABASE_URL", "sqlite:///parts_ledger.db"),
    )
    parser.add_argument("--as-of", type=date.fromisoformat, default=date.today())
    parser.add_argument("--from", dest="start", type=date.fromisoformat, default=None)
    parser.add_argument("--config", type=Path, default=None)
    return parser.parse_args(argv)


def _heading(title: str) -> None:
    print("=" * W)
    print(f"  {title}".center(W))
    print("=" * W)


def print_trial_balance(rows) -> None:
    _heading("TRIAL BALANCE")
    total_dr = total_cr = 0
    for row in rows:
        print(f"  {row.account_code:<8}{row.account_name:<36}{row.debit_total:>13}{row.credit_total:>13}")
        total_dr += row.debit_total
        total_cr += row.credit_total
    print("-" * W)
    print(f"  {'TOTAL':<44}{total_dr:>13}{total_cr:>13}")
    print(f"  [{'OK' if total_dr == total_cr else 'FAIL'}] debits equal credits")
    print()


def print_profit_and_loss(pnl) -> None:
    _heading(f"PROFIT AND LOSS {pnl.start} .. {pnl.end}")
    for row in pnl.revenue:
        print(f"  {row.account_code:<8}{row.account_name:<48}{row.balance:>14}")
    print(f"  {'Total revenue':<56}{pnl.total_revenue:>14}")
    for row in pnl.expenses:
        print(f"  {row.account_code:<8}{row.account_name:<48}{row.balance:>14}")
    print(f"  {'Total expenses':<56}{pnl.total_expenses:>14}")
    print(f"  {'NET INCOME':<56}{pnl.net_income:>14}")
    print()


def print_aging(report) -> None:
    _heading(f"AP AGING as of {report.as_of}")
    for row in report.rows:
        print(f"  {row.invoice_number:<20}{row.supplier_id:<20}{row.bucket.value:>8}{row.outstanding:>16}")
    for bucket, amount in report.totals.items():
        print(f"  {getattr(bucket, 'value', bucket):<48}{amount:>16}")
    print(f"  {'TOTAL OUTSTANDING':<48}{report.total_outstanding:>16}")
    print()


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.disable(logging.CRITICAL)

    from ledger_config import get_active_config
    from ledger_kernel.db.engine import LedgerDatabase
    from ledger_kernel.domain.roles import AccountRole
    from ledger_kernel.selectors import LedgerSelector
    from ledger_kernel.services.role_resolver import RoleResolver
    from ledger_modules.ap.selectors import PayablesSelector

    config = get_active_config(args.config)
    db = LedgerDatabase.from_url(args.database_url)
    start = args.start or args.as_of.replace(month=1, day=1)

    try:
        with db.session_scope() as session:
            ledger = LedgerSelector(session)
            roles = RoleResolver(session, config.role_bindings)

            print_trial_balance(ledger.trial_balance(args.as_of))
            print_profit_and_loss(ledger.profit_and_loss(start, args.as_of))

            vat = ledger.vat_monthly(
                args.as_of.month,
                args.as_of.year,
                roles.resolve(AccountRole.VAT_OUTPUT),
                roles.resolve(AccountRole.VAT_INPUT),
            )
            _heading(f"VAT {vat.month:02d}/{vat.year}")
            print(f"  {'Output VAT':<56}{vat.output_vat:>14}")
            print(f"  {'Input VAT':<56}{vat.input_vat:>14}")
            print(f"  {'Net payable':<56}{vat.net_payable:>14}")
            print()

            print_aging(PayablesSelector(session).aging(args.as_of))

            unbalanced = ledger.unbalanced_journal_ids()
            print(f"  [{'OK' if not unbalanced else 'FAIL'}] every journal balances")
    finally:
        db.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
