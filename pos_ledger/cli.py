"""
Command line for the POS ledger.

Usage:
    pos-ledger init-db
    pos-ledger trial-balance --as-of 2025-12-31
    pos-ledger income-statement --start 2025-01-01 --end 2025-12-31
    pos-ledger balance-sheet --json
    pos-ledger reconcile --limit 100

Global options --config (overlay YAML) and --database-url override the
packaged defaults.  Exit status is 0 on success, 1 when a report does not
balance or reconciliation leaves work behind, 2 on a ledger error.
"""

import argparse
import json
import logging
import os
import sys
from datetime import date
from decimal import Decimal
from typing import Sequence

from pos_ledger.config import LedgerConfig, load_config
from pos_ledger.exceptions import LedgerError
from pos_ledger.logging_config import configure_logging
from pos_ledger.reporting.models import BalanceSheet, IncomeStatement, StatementSection, TrialBalance
from pos_ledger.reporting.statements import render_to_dict
from pos_ledger.services.container import Ledger, LedgerServices

W = 72


def _date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an ISO date: {value!r}") from None


def _money(value: Decimal) -> str:
    return f"{value:,.2f}"


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="pos-ledger", description="POS double-entry ledger")
    p.add_argument("--config", help="overlay YAML file (default: $POS_LEDGER_CONFIG)")
    p.add_argument("--database-url", help="SQLAlchemy database URL")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create tables, seed the chart and verify well-known accounts")
    sub.add_parser("seed", help="seed the chart of accounts if the database has none")

    tb = sub.add_parser("trial-balance", help="per-account debit/credit totals")
    tb.add_argument("--as-of", type=_date)
    tb.add_argument("--json", action="store_true")

    inc = sub.add_parser("income-statement", help="income, COGS and expenses over a period")
    inc.add_argument("--start", type=_date, required=True)
    inc.add_argument("--end", type=_date, required=True)
    inc.add_argument("--json", action="store_true")

    bs = sub.add_parser("balance-sheet", help="assets, liabilities and equity")
    bs.add_argument("--as-of", type=_date)
    bs.add_argument("--json", action="store_true")

    rec = sub.add_parser("reconcile", help="retry pending postings")
    rec.add_argument("--limit", type=int)

    return p.parse_args(argv)


def _load(args: argparse.Namespace) -> LedgerConfig:
    environ = dict(os.environ)
    if args.database_url:
        environ["POS_LEDGER_DATABASE_URL"] = args.database_url
    return load_config(args.config, environ=environ)


# ---------------------------------------------------------------------------
# Printing
# ---------------------------------------------------------------------------


def print_trial_balance(report: TrialBalance) -> None:
    print("=" * W)
    print("TRIAL BALANCE".center(W))
    as_of = report.metadata.as_of_date
    print((f"as of {as_of.isoformat()}" if as_of else "all dates").center(W))
    print("=" * W)
    print(f"  {'Code':<8}{'Account':<32}{'Debit':>15}{'Credit':>15}")
    print("-" * W)
    for row in report.rows:
        print(
            f"  {row.account_code:<8}{row.account_name[:30]:<32}"
            f"{_money(row.debit_total):>15}{_money(row.credit_total):>15}"
        )
    print("-" * W)
    print(f"  {'TOTAL':<40}{_money(report.total_debit):>15}{_money(report.total_credit):>15}")
    print(f"  [{'OK' if report.is_balanced else 'FAIL'}] debits equal credits")


def _print_section(section: StatementSection) -> None:
    print(f"  {section.label}")
    for row in section.rows:
        if row.natural_balance:
            print(f"    {row.account_code:<8}{row.account_name[:36]:<38}{_money(row.natural_balance):>18}")
    print(f"  {'Total ' + section.label:<48}{_money(section.total):>20}")


def print_income_statement(report: IncomeStatement) -> None:
    meta = report.metadata
    print("=" * W)
    print("INCOME STATEMENT".center(W))
    print(f"{meta.period_start.isoformat()} to {meta.period_end.isoformat()}".center(W))
    print("=" * W)
    _print_section(report.income)
    _print_section(report.cost_of_goods_sold)
    print(f"  {'GROSS PROFIT':<48}{_money(report.gross_profit):>20}")
    _print_section(report.expenses)
    print("-" * W)
    print(f"  {'NET INCOME':<48}{_money(report.net_income):>20}")


def print_balance_sheet(report: BalanceSheet) -> None:
    print("=" * W)
    print("BALANCE SHEET".center(W))
    as_of = report.metadata.as_of_date
    print((f"as of {as_of.isoformat()}" if as_of else "all dates").center(W))
    print("=" * W)
    _print_section(report.assets)
    _print_section(report.liabilities)
    _print_section(report.equity)
    print(f"  {'Net income (unclosed)':<48}{_money(report.net_income):>20}")
    print("-" * W)
    print(f"  {'TOTAL LIABILITIES AND EQUITY':<48}{_money(report.total_liabilities_and_equity):>20}")
    print(f"  [{'OK' if report.is_balanced else 'FAIL'}] assets equal liabilities plus equity")


def _print_json(report: object) -> None:
    print(json.dumps(render_to_dict(report), indent=2))


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _run_command(args: argparse.Namespace, ledger: Ledger) -> int:
    if args.command == "init-db":
        roles = ledger.startup()
        print(f"ledger ready: {len(roles)} well-known accounts verified")
        return 0

    if args.command == "seed":
        seeded = ledger.run(lambda services: services.registry.initialize())
        print("chart of accounts seeded" if seeded else "chart of accounts already present")
        return 0

    if args.command == "trial-balance":
        report = ledger.run(lambda services: services.reports.trial_balance(args.as_of))
        if args.json:
            _print_json(report)
        else:
            print_trial_balance(report)
        return 0 if report.is_balanced else 1

    if args.command == "income-statement":
        report = ledger.run(lambda services: services.reports.income_statement(args.start, args.end))
        if args.json:
            _print_json(report)
        else:
            print_income_statement(report)
        return 0

    if args.command == "balance-sheet":
        report = ledger.run(lambda services: services.reports.balance_sheet(args.as_of))
        if args.json:
            _print_json(report)
        else:
            print_balance_sheet(report)
        return 0 if report.is_balanced else 1

    if args.command == "reconcile":
        def work(services: LedgerServices):
            return services.outbox.reconcile(limit=args.limit)

        result = ledger.run(work)
        print(
            f"attempted={result.attempted} posted={result.posted} "
            f"still_pending={result.still_pending} abandoned={result.abandoned}"
        )
        return 0 if result.is_clean else 1

    raise AssertionError(f"unhandled command {args.command}")


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        config = _load(args)
    except LedgerError as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 2

    configure_logging(level=getattr(logging, config.log_level, logging.INFO))
    ledger = Ledger(config)
    try:
        return _run_command(args, ledger)
    except LedgerError as exc:
        print(f"  ERROR [{exc.code}]: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
