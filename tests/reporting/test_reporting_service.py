"""ReportingService against a real ledger (pos_ledger/reporting/service.py)."""

from datetime import date
from decimal import Decimal

import pytest

from pos_ledger.exceptions import ValidationError
from pos_ledger.reporting.models import ReportType

D = Decimal


@pytest.fixture
def january(adapters, journal, item):
    """Owner funds the till, buys stock, sells, pays rent."""
    journal.create_journal_entry(date(2025, 1, 1), "Opening capital", [item("1060", debit="1000"), item("3000", credit="1000")])
    adapters.post_purchase("po-1", D("300"), reference="PurchaseOrder", date=date(2025, 1, 2))
    adapters.post_sale("ord-1", D("100"), cost_estimate=D("60"), date=date(2025, 1, 5))
    adapters.post_payment("pay-1", D("300"), date=date(2025, 1, 10))
    journal.create_journal_entry(date(2025, 1, 31), "January rent", [item("5760", debit="50"), item("1060", credit="50")])
    adapters.post_sale("ord-2", D("40"), cost_estimate=D("20"), date=date(2025, 2, 3))


class TestTrialBalance:
    def test_balanced_and_totals(self, reports, january):
        tb = reports.trial_balance()
        assert tb.is_balanced
        assert tb.total_debit == tb.total_credit == D("1870")
        assert tb.metadata.report_type is ReportType.TRIAL_BALANCE
        assert tb.metadata.generated_at == "2025-01-15T12:00:00+00:00"

    def test_as_of_date_excludes_later_lines(self, reports, january):
        tb = reports.trial_balance(as_of_date=date(2025, 1, 31))
        rows = {r.account_code: r for r in tb.rows}
        assert rows["4100"].credit_total == D("100")
        assert tb.total_debit == D("1810")
        assert tb.metadata.as_of_date == date(2025, 1, 31)

    def test_lists_enabled_accounts_without_activity(self, reports):
        tb = reports.trial_balance()
        assert len(tb.rows) == 17
        assert all(r.debit_total == r.credit_total == 0 for r in tb.rows)

    def test_disabled_idle_account_omitted(self, reports, registry, account):
        registry.update_account(account("1065").id, {"is_enabled": False})
        codes = {r.account_code for r in reports.trial_balance().rows}
        assert "1065" not in codes

    def test_logs_generation(self, reports, january, captured_logs):
        reports.trial_balance()
        record = [r for r in captured_logs() if r["message"] == "trial_balance_generated"][0]
        assert record["level"] == "INFO"
        assert record["is_balanced"] is True


class TestIncomeStatement:
    def test_january(self, reports, january):
        stmt = reports.income_statement(date(2025, 1, 1), date(2025, 1, 31))
        assert stmt.total_income == D("100")
        assert stmt.total_cogs == D("60")
        assert stmt.gross_profit == D("40")
        assert stmt.total_expenses == D("50")
        assert stmt.net_income == D("-10")

    def test_window_is_inclusive(self, reports, january):
        stmt = reports.income_statement(date(2025, 1, 31), date(2025, 2, 3))
        assert stmt.total_income == D("40")
        assert stmt.total_expenses == D("50")

    def test_only_profit_and_loss_rows(self, reports, january):
        stmt = reports.income_statement(date(2025, 1, 1), date(2025, 12, 31))
        codes = {r.account_code for s in (stmt.income, stmt.cost_of_goods_sold, stmt.expenses) for r in s.rows}
        assert codes <= {"4100", "4200", "5010", "5610", "5615", "5760", "5790", "5800"}

    def test_end_before_start(self, reports):
        with pytest.raises(ValidationError):
            reports.income_statement(date(2025, 2, 1), date(2025, 1, 1))


class TestBalanceSheet:
    def test_equation(self, reports, january):
        bs = reports.balance_sheet()
        # Cash 1000 + 100 - 300 - 50 + 40; inventory 300 - 60 - 20.
        assert bs.total_assets == D("790") + D("220")
        assert bs.total_liabilities == D("0")
        assert bs.net_income == D("10")
        assert bs.total_equity == D("1010")
        assert bs.is_balanced

    def test_as_of(self, reports, january):
        bs = reports.balance_sheet(date(2025, 1, 2))
        assert bs.total_assets == D("1300")
        assert bs.total_liabilities == D("300")
        assert bs.is_balanced

    def test_to_dict(self, reports, january):
        rendered = reports.to_dict(reports.balance_sheet())
        assert rendered["is_balanced"] is True
        assert rendered["metadata"]["report_type"] == "balance_sheet"
