"""
Financial report value objects (``pos_ledger.reporting.models``).

Responsibility
--------------
Frozen dataclasses returned by ``ReportingService``: trial balance, income
statement and balance sheet.

Architecture position
---------------------
**Reporting layer** -- pure data definitions with ZERO I/O.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields are ``Decimal``, never ``float``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pos_ledger.models.account import AccountCategory


class ReportType(str, Enum):
    TRIAL_BALANCE = "trial_balance"
    INCOME_STATEMENT = "income_statement"
    BALANCE_SHEET = "balance_sheet"


@dataclass(frozen=True)
class ReportMetadata:
    """Parameters and generation time of a report."""

    report_type: ReportType
    generated_at: str  # ISO timestamp from the injected clock
    as_of_date: date | None = None
    period_start: date | None = None
    period_end: date | None = None


@dataclass(frozen=True)
class TrialBalanceRow:
    """One account's totals in a report."""

    account_id: UUID
    account_code: str
    account_name: str
    category: AccountCategory
    is_enabled: bool
    debit_total: Decimal
    credit_total: Decimal
    balance: Decimal  # debit_total - credit_total
    natural_balance: Decimal  # positive on the account's normal side


@dataclass(frozen=True)
class TrialBalance:
    """
    Per-account debit/credit totals plus the aggregate.

    ``is_balanced`` is the primary regression check for the whole ledger.
    """

    metadata: ReportMetadata
    rows: tuple[TrialBalanceRow, ...]
    total_debit: Decimal
    total_credit: Decimal
    is_balanced: bool

    @property
    def difference(self) -> Decimal:
        return self.total_debit - self.total_credit


@dataclass(frozen=True)
class StatementSection:
    label: str
    rows: tuple[TrialBalanceRow, ...]
    total: Decimal


@dataclass(frozen=True)
class IncomeStatement:
    """
    Income - COGS = Gross profit; Gross profit - Expenses = Net income.
    """

    metadata: ReportMetadata
    income: StatementSection
    cost_of_goods_sold: StatementSection
    expenses: StatementSection
    total_income: Decimal
    total_cogs: Decimal
    gross_profit: Decimal
    total_expenses: Decimal
    net_income: Decimal


@dataclass(frozen=True)
class BalanceSheet:
    """
    Assets = Liabilities + Equity, where equity includes the net income not
    yet closed to retained earnings.
    """

    metadata: ReportMetadata
    assets: StatementSection
    liabilities: StatementSection
    equity: StatementSection
    total_assets: Decimal
    total_liabilities: Decimal
    net_income: Decimal
    total_equity: Decimal  # equity accounts + net_income
    total_liabilities_and_equity: Decimal
    is_balanced: bool
