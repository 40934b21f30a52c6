"""
ReportingService (``pos_ledger.reporting.service``).

Responsibility
--------------
Generates the trial balance, income statement and balance sheet by
bridging ``LedgerSelector`` aggregates to the pure builders in
``statements.py``.  Read-only: nothing is posted or flushed.

Invariants enforced
-------------------
* Every figure is summed from transaction lines at query time.
* The balance sheet rolls inception-to-date net income into equity, so
  Assets = Liabilities + Equity holds whenever the ledger balances.

Failure modes
-------------
* ValidationError when a period ends before it starts.
* Selector failures propagate.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session

from pos_ledger.domain.clock import Clock, SystemClock
from pos_ledger.exceptions import ValidationError
from pos_ledger.logging_config import get_logger
from pos_ledger.models.account import AccountCategory
from pos_ledger.reporting.models import (
    BalanceSheet,
    IncomeStatement,
    ReportMetadata,
    ReportType,
    TrialBalance,
)
from pos_ledger.reporting.statements import (
    build_balance_sheet,
    build_income_statement,
    build_trial_balance,
    render_to_dict,
)
from pos_ledger.selectors.ledger_selector import LedgerSelector

logger = get_logger("reporting.service")

_PROFIT_AND_LOSS = (
    AccountCategory.INCOME,
    AccountCategory.COST_OF_GOODS_SOLD,
    AccountCategory.EXPENSE,
)


class ReportingService:
    """
    Financial statement generation.

    Contract
    --------
    * Every public method returns a frozen report dataclass.
    * Clock is injectable for deterministic ``generated_at`` stamps.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._ledger = LedgerSelector(session)

    def _metadata(
        self,
        report_type: ReportType,
        as_of_date: date | None = None,
        period_start: date | None = None,
        period_end: date | None = None,
    ) -> ReportMetadata:
        return ReportMetadata(
            report_type=report_type,
            generated_at=self._clock.now().isoformat(),
            as_of_date=as_of_date,
            period_start=period_start,
            period_end=period_end,
        )

    def trial_balance(self, as_of_date: date | None = None) -> TrialBalance:
        """
        Per-account debit, credit and balance through ``as_of_date``
        (inclusive); the whole ledger when no date is given.
        """
        totals = self._ledger.account_totals(end_date=as_of_date)
        report = build_trial_balance(
            totals, self._metadata(ReportType.TRIAL_BALANCE, as_of_date=as_of_date)
        )
        log = logger.info if report.is_balanced else logger.error
        log(
            "trial_balance_generated",
            extra={
                "as_of_date": as_of_date.isoformat() if as_of_date else None,
                "row_count": len(report.rows),
                "total_debit": report.total_debit,
                "total_credit": report.total_credit,
                "is_balanced": report.is_balanced,
            },
        )
        return report

    def income_statement(self, period_start: date, period_end: date) -> IncomeStatement:
        """
        Income, COGS and expenses over [period_start, period_end].

        Raises:
            ValidationError: period_end is before period_start.
        """
        if period_end < period_start:
            raise ValidationError(
                f"period end {period_end.isoformat()} is before start {period_start.isoformat()}"
            )
        totals = self._ledger.account_totals(
            start_date=period_start,
            end_date=period_end,
            categories=_PROFIT_AND_LOSS,
        )
        report = build_income_statement(
            totals,
            self._metadata(
                ReportType.INCOME_STATEMENT,
                period_start=period_start,
                period_end=period_end,
            ),
        )
        logger.info(
            "income_statement_generated",
            extra={
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
                "net_income": report.net_income,
            },
        )
        return report

    def balance_sheet(self, as_of_date: date | None = None) -> BalanceSheet:
        """Assets, liabilities and equity (plus unclosed net income) through ``as_of_date``."""
        totals = self._ledger.account_totals(end_date=as_of_date)
        report = build_balance_sheet(
            totals, self._metadata(ReportType.BALANCE_SHEET, as_of_date=as_of_date)
        )
        log = logger.info if report.is_balanced else logger.error
        log(
            "balance_sheet_generated",
            extra={
                "as_of_date": as_of_date.isoformat() if as_of_date else None,
                "total_assets": report.total_assets,
                "total_l_and_e": report.total_liabilities_and_equity,
                "is_balanced": report.is_balanced,
            },
        )
        return report

    def to_dict(self, report: object) -> dict:
        """JSON-ready rendering of any report."""
        return render_to_dict(report)
