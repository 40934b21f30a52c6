"""
End-to-end scenarios: chart seeding, domain postings, manual entries and
the three statements working together on one ledger.
"""

from datetime import date
from decimal import Decimal

import pytest

from pos_ledger.domain.dtos import PostingEvent, PostingKind
from pos_ledger.exceptions import ValidationError
from pos_ledger.models.ledger import ReferenceTag, TransactionLine
from pos_ledger.selectors.ledger_selector import LedgerSelector
from pos_ledger.services.posting_outbox import DispatchStatus

D = Decimal
DAY = date(2025, 1, 15)


def _lines_by_code(store, reference_id):
    return sorted(
        (l.account_code, l.debit, l.credit) for l in store.query_lines(reference_id=reference_id)
    )


@pytest.fixture
def after_sale(adapters):
    adapters.post_sale("ord-100", D("100"), cost_estimate=D("60"), date=DAY)


class TestSaleScenario:
    def test_sale_lines(self, store, after_sale):
        assert _lines_by_code(store, "ord-100") == [
            ("1060", D("100"), D("0")),
            ("1510", D("0"), D("60")),
            ("4100", D("0"), D("100")),
            ("5010", D("60"), D("0")),
        ]

    def test_trial_balance(self, reports, after_sale):
        tb = reports.trial_balance()
        assert tb.total_debit == D("160")
        assert tb.total_credit == D("160")
        assert tb.is_balanced

    def test_income_statement(self, reports, after_sale):
        assert reports.income_statement(DAY, DAY).net_income == D("40")


class TestReturnScenario:
    def test_refund_reverses_cash_and_revenue(self, adapters, store, reports, after_sale):
        adapters.post_return("ret-1", D("30"), cost_estimate=D("18"), date=DAY)

        lines = _lines_by_code(store, "ret-1")
        assert ("4100", D("30"), D("0")) in lines
        assert ("1060", D("0"), D("30")) in lines

        bs = reports.balance_sheet()
        assert bs.is_balanced
        assert bs.total_assets == bs.total_liabilities_and_equity
        assert reports.income_statement(DAY, DAY).net_income == D("28")


class TestManualEntryScenario:
    def test_balanced_entry_succeeds(self, journal, item, store):
        entry = journal.create_journal_entry(DAY, "Owner draw", [item("3000", debit="50"), item("1060", credit="50")])
        assert len(store.query_lines(reference_id=str(entry.id))) == 2

    def test_unbalanced_entry_fails_and_writes_nothing(self, session, journal, item):
        with pytest.raises(ValidationError):
            journal.create_journal_entry(DAY, "Owner draw", [item("3000", debit="50"), item("1060", credit="40")])
        assert session.query(TransactionLine).filter_by(reference=ReferenceTag.JOURNAL_ENTRY.value).count() == 0


def test_store_day(session, services, item):
    """A trading day through the outbox, with a broken account fixed mid-day."""
    outbox, registry = services.outbox, services.registry
    services.journal.create_journal_entry(DAY, "Float", [item("1060", debit="200"), item("3000", credit="200")])

    assert outbox.dispatch(PostingEvent(PostingKind.PURCHASE, "mp-1", {"total_amount": "80"})).is_success

    registry.update_account(registry.get_account_by_code("4100").id, {"is_enabled": False})
    deferred = outbox.dispatch(PostingEvent(PostingKind.SALE, "ord-1", {"total": "50", "cost_estimate": "30"}))
    assert deferred.status is DispatchStatus.DEFERRED
    registry.update_account(registry.get_account_by_code("4100").id, {"is_enabled": True})

    outbox.dispatch(PostingEvent(PostingKind.SALE, "ord-2", {"total": "20"}))
    outbox.dispatch(PostingEvent(PostingKind.DAMAGED_GOODS, "gr-1", {"damaged_value": "5"}))
    assert outbox.reconcile().is_clean

    debit, credit = LedgerSelector(session).total_debits_credits()
    assert debit == credit

    tb = services.reports.trial_balance()
    assert tb.is_balanced
    bs = services.reports.balance_sheet()
    assert bs.is_balanced
    # Revenue 70, COGS 30 + 12 + 5.
    assert bs.net_income == D("23")
