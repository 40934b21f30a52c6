"""
Pure financial statement builders.

These functions turn per-account totals (``AccountTotals`` from the ledger
selector) into report dataclasses.  ZERO I/O. ZERO side effects.

- No database access
- No clock access
- Deterministic: same inputs always produce same outputs
"""

from __future__ import annotations

import dataclasses
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable
from uuid import UUID

from pos_ledger.models.account import AccountCategory, NormalBalance
from pos_ledger.reporting.models import (
    BalanceSheet,
    IncomeStatement,
    ReportMetadata,
    StatementSection,
    TrialBalance,
    TrialBalanceRow,
)
from pos_ledger.selectors.ledger_selector import AccountTotals

ZERO = Decimal("0")


def compute_natural_balance(
    debit_total: Decimal,
    credit_total: Decimal,
    normal_balance: NormalBalance,
) -> Decimal:
    """
    DEBIT-normal (asset, COGS, expense): debit_total - credit_total.
    CREDIT-normal (liability, equity, income): credit_total - debit_total.
    """
    if normal_balance == NormalBalance.DEBIT:
        return debit_total - credit_total
    return credit_total - debit_total


def to_row(totals: AccountTotals) -> TrialBalanceRow:
    return TrialBalanceRow(
        account_id=totals.account_id,
        account_code=totals.account_code,
        account_name=totals.account_name,
        category=totals.category,
        is_enabled=totals.is_enabled,
        debit_total=totals.debit_total,
        credit_total=totals.credit_total,
        balance=totals.balance,
        natural_balance=compute_natural_balance(
            totals.debit_total, totals.credit_total, totals.category.normal_balance,
        ),
    )


def _section(label: str, rows: Iterable[TrialBalanceRow]) -> StatementSection:
    ordered = tuple(sorted(rows, key=lambda r: r.account_code))
    return StatementSection(
        label=label,
        rows=ordered,
        total=sum((r.natural_balance for r in ordered), ZERO),
    )


def _rows_in(rows: Iterable[TrialBalanceRow], category: AccountCategory) -> list[TrialBalanceRow]:
    return [r for r in rows if r.category == category]


# =========================================================================
# Trial balance
# =========================================================================


def build_trial_balance(
    totals: Iterable[AccountTotals],
    metadata: ReportMetadata,
) -> TrialBalance:
    """
    Every enabled account, plus any disabled account that still carries
    lines in the window.  Dropping a disabled account with activity would
    make the aggregate totals disagree.
    """
    rows = tuple(
        to_row(t)
        for t in sorted(totals, key=lambda t: t.account_code)
        if t.is_enabled or t.line_count > 0
    )
    total_debit = sum((r.debit_total for r in rows), ZERO)
    total_credit = sum((r.credit_total for r in rows), ZERO)
    return TrialBalance(
        metadata=metadata,
        rows=rows,
        total_debit=total_debit,
        total_credit=total_credit,
        is_balanced=(total_debit == total_credit),
    )


# =========================================================================
# Income statement
# =========================================================================


def compute_net_income(totals: Iterable[AccountTotals]) -> Decimal:
    """Income - COGS - Expenses over the given totals."""
    income = ZERO
    cogs = ZERO
    expenses = ZERO
    for t in totals:
        if t.category == AccountCategory.INCOME:
            income += t.credit_total - t.debit_total
        elif t.category == AccountCategory.COST_OF_GOODS_SOLD:
            cogs += t.debit_total - t.credit_total
        elif t.category == AccountCategory.EXPENSE:
            expenses += t.debit_total - t.credit_total
    return income - cogs - expenses


def build_income_statement(
    totals: Iterable[AccountTotals],
    metadata: ReportMetadata,
) -> IncomeStatement:
    rows = [to_row(t) for t in totals]
    income = _section("Income", _rows_in(rows, AccountCategory.INCOME))
    cogs = _section("Cost of Goods Sold", _rows_in(rows, AccountCategory.COST_OF_GOODS_SOLD))
    expenses = _section("Expenses", _rows_in(rows, AccountCategory.EXPENSE))

    gross_profit = income.total - cogs.total
    return IncomeStatement(
        metadata=metadata,
        income=income,
        cost_of_goods_sold=cogs,
        expenses=expenses,
        total_income=income.total,
        total_cogs=cogs.total,
        gross_profit=gross_profit,
        total_expenses=expenses.total,
        net_income=gross_profit - expenses.total,
    )


# =========================================================================
# Balance sheet
# =========================================================================


def build_balance_sheet(
    totals: Iterable[AccountTotals],
    metadata: ReportMetadata,
) -> BalanceSheet:
    """
    ``totals`` must cover every account from inception through the report
    date; net income over the same lines is rolled into equity.
    """
    totals = list(totals)
    rows = [to_row(t) for t in totals]
    assets = _section("Assets", _rows_in(rows, AccountCategory.ASSET))
    liabilities = _section("Liabilities", _rows_in(rows, AccountCategory.LIABILITY))
    equity = _section("Equity", _rows_in(rows, AccountCategory.EQUITY))

    net_income = compute_net_income(totals)
    total_equity = equity.total + net_income
    total_l_and_e = liabilities.total + total_equity
    return BalanceSheet(
        metadata=metadata,
        assets=assets,
        liabilities=liabilities,
        equity=equity,
        total_assets=assets.total,
        total_liabilities=liabilities.total,
        net_income=net_income,
        total_equity=total_equity,
        total_liabilities_and_equity=total_l_and_e,
        is_balanced=(assets.total == total_l_and_e),
    )


# =========================================================================
# Renderer
# =========================================================================


def render_to_dict(obj: object) -> dict | list | str | int | float | bool | None:
    """
    Convert a report dataclass to plain JSON-ready values.

    Decimal, UUID, date and Enum become strings; tuples become lists.
    """
    if obj is None:
        return None
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [render_to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): render_to_dict(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: render_to_dict(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)
