"""Tests for LedgerStore (pos_ledger/services/ledger_store.py)."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from pos_ledger.domain.dtos import LineSpec
from pos_ledger.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    EmptyEntryError,
    InvalidLineError,
    UnbalancedEntryError,
    UnknownReferenceError,
)
from pos_ledger.models.ledger import PostingBatch, ReferenceTag, TransactionLine
from pos_ledger.selectors.ledger_selector import LedgerSelector


def _post(store, lines, reference_id="ord-1", on=date(2025, 1, 10), **kw):
    return store.post_group(
        lines,
        reference=kw.pop("reference", ReferenceTag.ORDER),
        reference_id=reference_id,
        date=on,
        **kw,
    )


def _sale(amount="100.00"):
    return [LineSpec.dr("1060", amount), LineSpec.cr("4100", amount)]


def _line_count(session):
    return session.query(TransactionLine).count()


class TestPostGroup:
    def test_writes_batch_and_lines(self, session, store):
        result = _post(store, _sale(), description="Order 1")

        assert result.created
        assert result.line_count == 2
        assert result.total == Decimal("100.00")
        assert result.reference == "Order"
        assert result.reference_id == "ord-1"

        lines = session.query(TransactionLine).filter_by(batch_id=result.batch_id).all()
        assert sorted(l.line_no for l in lines) == [1, 2]
        assert {l.description for l in lines} == {"Order 1"}
        assert all(l.date == date(2025, 1, 10) for l in lines)

    def test_batch_seq_increases(self, store):
        first = _post(store, _sale(), reference_id="a")
        second = _post(store, _sale(), reference_id="b")
        assert second.seq > first.seq

    def test_line_description_overrides_group(self, session, store):
        result = _post(
            store,
            [LineSpec.dr("1060", "5", "till"), LineSpec.cr("4100", "5")],
            description="group",
        )
        rows = {l.line_no: l.description for l in session.query(TransactionLine).filter_by(batch_id=result.batch_id)}
        assert rows == {1: "till", 2: "group"}

    def test_reference_as_string(self, store):
        result = _post(store, _sale(), reference="Payment")
        assert result.reference == "Payment"

    def test_unknown_reference_tag(self, session, store):
        with pytest.raises(UnknownReferenceError):
            _post(store, _sale(), reference="Invoice")
        assert _line_count(session) == 0


class TestRejections:
    def test_unbalanced_writes_nothing(self, session, store, captured_logs):
        with pytest.raises(UnbalancedEntryError):
            _post(store, [LineSpec.dr("1060", "100"), LineSpec.cr("4100", "99.99")])

        assert _line_count(session) == 0
        assert session.query(PostingBatch).count() == 0
        assert any(r["message"] == "posting_group_unbalanced" for r in captured_logs())

    def test_tiny_imbalance_still_rejected(self, store):
        with pytest.raises(UnbalancedEntryError):
            _post(store, [LineSpec.dr("1060", "100.001"), LineSpec.cr("4100", "100")])

    def test_empty_group(self, store):
        with pytest.raises(EmptyEntryError):
            _post(store, [])

    def test_line_with_both_sides(self, store):
        with pytest.raises(InvalidLineError) as exc_info:
            _post(store, [
                LineSpec.dr("1060", "5"),
                LineSpec("4100", debit=Decimal("1"), credit=Decimal("6")),
            ])
        assert exc_info.value.index == 1

    def test_unknown_account(self, session, store):
        with pytest.raises(UnknownReferenceError) as exc_info:
            _post(store, [LineSpec.dr("9999", "5"), LineSpec.cr("4100", "5")])
        assert exc_info.value.entity_id == "9999"
        assert _line_count(session) == 0

    def test_disabled_account(self, session, store, registry, account):
        registry.update_account(account("4100").id, {"is_enabled": False})
        with pytest.raises(AccountInactiveError):
            _post(store, _sale())
        assert _line_count(session) == 0


class TestIdempotency:
    def test_same_key_posts_once(self, session, store):
        first = _post(store, _sale(), idempotency_key="Order:ord-1:sale")
        second = _post(store, _sale(), idempotency_key="Order:ord-1:sale")

        assert first.created
        assert second.is_duplicate
        assert second.batch_id == first.batch_id
        assert _line_count(session) == 2

    def test_duplicate_is_logged(self, store, captured_logs):
        _post(store, _sale(), idempotency_key="k1")
        _post(store, _sale(), idempotency_key="k1")
        assert any(r["message"] == "posting_group_duplicate" for r in captured_logs())

    def test_distinct_keys_post_twice(self, session, store):
        _post(store, _sale(), idempotency_key="k1")
        _post(store, _sale(), idempotency_key="k2")
        assert _line_count(session) == 4


class TestReadPath:
    def test_query_lines_ordering(self, store):
        _post(store, _sale("1"), reference_id="old", on=date(2025, 1, 1))
        _post(store, _sale("2"), reference_id="new-a", on=date(2025, 1, 5))
        _post(store, _sale("3"), reference_id="new-b", on=date(2025, 1, 5))

        lines = store.query_lines()
        assert [(l.reference_id, l.line_no) for l in lines] == [
            ("new-b", 1), ("new-b", 2),
            ("new-a", 1), ("new-a", 2),
            ("old", 1), ("old", 2),
        ]

    def test_query_lines_filters(self, store, account):
        _post(store, _sale("10"), reference_id="a", on=date(2025, 1, 1))
        _post(store, _sale("20"), reference_id="b", on=date(2025, 1, 9))
        _post(
            store,
            [LineSpec.dr("2100", "5"), LineSpec.cr("1060", "5")],
            reference=ReferenceTag.PAYMENT,
            reference_id="pay-1",
            on=date(2025, 1, 9),
        )

        cash = account("1060")
        assert len(store.query_lines(account_id=cash.id)) == 3
        assert len(store.query_lines(reference=ReferenceTag.PAYMENT)) == 2
        assert len(store.query_lines(reference_id="a")) == 2
        in_window = store.query_lines(start_date=date(2025, 1, 2), end_date=date(2025, 1, 9))
        assert {l.reference_id for l in in_window} == {"b", "pay-1"}
        assert len(store.query_lines(limit=2, offset=1)) == 2

    def test_account_balance_as_of(self, store, account):
        cash = account("1060")
        _post(store, _sale("10"), reference_id="a", on=date(2025, 1, 1))
        _post(store, _sale("20"), reference_id="b", on=date(2025, 1, 9))
        _post(
            store,
            [LineSpec.dr("2100", "5"), LineSpec.cr("1060", "5")],
            reference=ReferenceTag.PAYMENT,
            reference_id="pay-1",
            on=date(2025, 1, 9),
        )

        assert store.account_balance(cash.id) == Decimal("25")
        assert store.account_balance(cash.id, date(2025, 1, 1)) == Decimal("10")
        assert store.account_balance(cash.id, date(2024, 12, 31)) == Decimal("0")
        assert store.account_balance(account("4100").id) == Decimal("-30")

    def test_balance_of_unknown_account(self, store):
        with pytest.raises(AccountNotFoundError):
            store.account_balance(uuid4())

    def test_global_totals_stay_equal(self, session, store):
        _post(store, _sale("10.10"), reference_id="a")
        _post(
            store,
            [LineSpec.dr("5010", "6"), LineSpec.cr("1510", "6")],
            reference_id="a",
            reference=ReferenceTag.ORDER,
        )
        debit, credit = LedgerSelector(session).total_debits_credits()
        assert debit == credit == Decimal("16.10")

    def test_batches_for(self, store):
        _post(store, _sale(), reference_id="ord-7")
        _post(store, [LineSpec.dr("5010", "6"), LineSpec.cr("1510", "6")], reference_id="ord-7")
        batches = store.batches_for(ReferenceTag.ORDER, "ord-7")
        assert [b.line_count for b in batches] == [2, 2]
        assert batches[0].seq < batches[1].seq
