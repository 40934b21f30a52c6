"""Trial balance, income statement and balance sheet."""

from pos_ledger.reporting.models import (
    BalanceSheet,
    IncomeStatement,
    ReportMetadata,
    ReportType,
    StatementSection,
    TrialBalance,
    TrialBalanceRow,
)
from pos_ledger.reporting.service import ReportingService

__all__ = [
    "BalanceSheet",
    "IncomeStatement",
    "ReportMetadata",
    "ReportType",
    "ReportingService",
    "StatementSection",
    "TrialBalance",
    "TrialBalanceRow",
]
