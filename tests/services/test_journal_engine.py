"""Tests for JournalEngine (pos_ledger/services/journal_engine.py)."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from pos_ledger.domain.dtos import JournalItemSpec
from pos_ledger.exceptions import (
    AccountInactiveError,
    ConflictError,
    EmptyEntryError,
    EntryAlreadyReversedError,
    InvalidLineError,
    JournalEntryNotFoundError,
    UnbalancedEntryError,
    UnknownReferenceError,
)
from pos_ledger.models.journal import JournalEntry, JournalItem
from pos_ledger.models.ledger import PostingBatch, ReferenceTag, TransactionLine
from pos_ledger.selectors.journal_selector import JournalSelector
from pos_ledger.services.sequence_service import SequenceService

TODAY = date(2025, 1, 15)


def _rent(item, amount="50"):
    return [item("5760", debit=amount), item("1060", credit=amount)]


class TestCreate:
    def test_creates_entry_items_and_lines(self, session, journal, item):
        entry = journal.create_journal_entry(date(2025, 1, 3), "January rent", _rent(item), reference="INV-77")

        assert entry.number == "JE-00001"
        assert entry.reference == "INV-77"
        assert entry.total_debit == entry.total_credit == Decimal("50")
        assert [i.account_code for i in entry.items] == ["5760", "1060"]

        lines = (
            session.query(TransactionLine)
            .filter_by(reference=ReferenceTag.JOURNAL_ENTRY.value, reference_id=str(entry.id))
            .order_by(TransactionLine.line_no)
            .all()
        )
        assert [(l.debit, l.credit) for l in lines] == [(Decimal("50"), 0), (0, Decimal("50"))]
        assert all(l.date == date(2025, 1, 3) for l in lines)
        assert all(l.description == "January rent" for l in lines)

    def test_numbers_increase(self, journal, item):
        numbers = [journal.create_journal_entry(TODAY, f"e{n}", _rent(item)).number for n in range(3)]
        assert numbers == ["JE-00001", "JE-00002", "JE-00003"]

    def test_item_description_kept(self, journal, item):
        entry = journal.create_journal_entry(
            TODAY,
            "mixed",
            [item("5615", debit="20", description="flyers"), item("1060", credit="20")],
        )
        assert entry.items[0].description == "flyers"

    def test_created_is_logged_with_entry(self, journal, item, captured_logs):
        entry = journal.create_journal_entry(TODAY, "rent", _rent(item))
        logs = captured_logs()
        created = [r for r in logs if r["message"] == "journal_entry_created"]
        assert created and created[0]["number"] == entry.number
        written = [r for r in logs if r["message"] == "posting_group_written"]
        assert written and written[0]["entry_id"] == str(entry.id)


class TestValidation:
    def test_unbalanced_rejected_and_nothing_written(self, session, journal, item):
        with pytest.raises(UnbalancedEntryError) as exc_info:
            journal.create_journal_entry(TODAY, "bad", [item("5760", debit="50"), item("1060", credit="40")])
        assert exc_info.value.tolerance == "0.01"

        assert session.query(JournalEntry).count() == 0
        assert session.query(JournalItem).count() == 0
        assert session.query(TransactionLine).count() == 0

    def test_rounding_residue_within_tolerance_rejected(self, session, journal, item, captured_logs):
        with pytest.raises(UnbalancedEntryError) as exc_info:
            journal.create_journal_entry(TODAY, "cent off", [item("5760", debit="50.00"), item("1060", credit="49.995")])

        assert exc_info.value.tolerance == "0"
        assert any(r["message"] == "journal_entry_inexact" for r in captured_logs())
        assert session.query(JournalEntry).count() == 0
        assert session.query(PostingBatch).count() == 0

    def test_failed_entry_does_not_consume_a_number(self, session, journal, item):
        with pytest.raises(UnbalancedEntryError):
            journal.create_journal_entry(TODAY, "cent off", [item("5760", debit="1.00"), item("1060", credit="0.995")])
        assert journal.create_journal_entry(TODAY, "ok", _rent(item)).number == "JE-00001"

    def test_empty(self, journal):
        with pytest.raises(EmptyEntryError):
            journal.create_journal_entry(TODAY, "nothing", [])

    def test_negative_amount(self, journal, item):
        with pytest.raises(InvalidLineError) as exc_info:
            journal.create_journal_entry(TODAY, "neg", [item("5760", debit="-5"), item("1060", credit="-5")])
        assert exc_info.value.index == 0

    def test_two_sided_item(self, journal, item):
        with pytest.raises(InvalidLineError):
            journal.create_journal_entry(TODAY, "both", [item("5760", debit="5", credit="5")])

    def test_unknown_account(self, journal, item):
        with pytest.raises(UnknownReferenceError):
            journal.create_journal_entry(
                TODAY,
                "ghost",
                [JournalItemSpec(account_id=uuid4(), debit=Decimal("5")), item("1060", credit="5")],
            )

    def test_disabled_account(self, journal, item, registry, account):
        registry.update_account(account("5760").id, {"is_enabled": False})
        with pytest.raises(AccountInactiveError):
            journal.create_journal_entry(TODAY, "rent", _rent(item))


class TestReadAndDelete:
    def test_get_and_list(self, journal, item):
        first = journal.create_journal_entry(date(2025, 1, 2), "a", _rent(item))
        second = journal.create_journal_entry(date(2025, 1, 9), "b", _rent(item))

        assert journal.get_journal_entry(first.id) == first
        assert [e.number for e in journal.list_journal_entries()] == [second.number, first.number]
        assert [e.id for e in journal.list_journal_entries(end_date=date(2025, 1, 5))] == [first.id]

    def test_get_unknown(self, journal):
        with pytest.raises(JournalEntryNotFoundError):
            journal.get_journal_entry(uuid4())

    def test_delete_removes_entry_and_lines(self, session, journal, item, captured_logs):
        entry = journal.create_journal_entry(TODAY, "rent", _rent(item))
        journal.delete_journal_entry(entry.id)

        assert session.get(JournalEntry, entry.id) is None
        assert session.query(JournalItem).count() == 0
        assert session.query(TransactionLine).filter_by(reference_id=str(entry.id)).count() == 0
        assert session.query(PostingBatch).count() == 0

        deleted = [r for r in captured_logs() if r["message"] == "journal_entry_deleted"]
        assert deleted and deleted[0]["level"] == "WARNING"
        assert deleted[0]["lines_removed"] == 2

    def test_delete_unknown(self, journal):
        with pytest.raises(JournalEntryNotFoundError):
            journal.delete_journal_entry(uuid4())

    def test_numbers_not_reused_after_delete(self, journal, item):
        entry = journal.create_journal_entry(TODAY, "rent", _rent(item))
        journal.delete_journal_entry(entry.id)
        assert journal.create_journal_entry(TODAY, "rent", _rent(item)).number == "JE-00002"


class TestReverse:
    def test_reversal_swaps_sides(self, services, journal, item, account):
        entry = journal.create_journal_entry(date(2025, 1, 3), "rent", _rent(item, "75"))
        reversal = journal.reverse_journal_entry(entry.id)

        assert reversal.reversal_of_id == entry.id
        assert reversal.reference == entry.number
        assert reversal.description == f"Reversal of {entry.number}"
        assert reversal.date == TODAY
        assert [(i.account_code, i.debit, i.credit) for i in reversal.items] == [
            ("5760", Decimal("0"), Decimal("75")),
            ("1060", Decimal("75"), Decimal("0")),
        ]
        assert services.store.account_balance(account("5760").id) == Decimal("0")
        assert services.store.account_balance(account("1060").id) == Decimal("0")

    def test_reverse_twice(self, journal, item):
        entry = journal.create_journal_entry(TODAY, "rent", _rent(item))
        reversal = journal.reverse_journal_entry(entry.id, date(2025, 2, 1), "undo")
        assert reversal.description == "undo"

        with pytest.raises(EntryAlreadyReversedError) as exc_info:
            journal.reverse_journal_entry(entry.id)
        assert exc_info.value.reversal_id == str(reversal.id)

    def test_reversed_entry_cannot_be_deleted(self, journal, item):
        entry = journal.create_journal_entry(TODAY, "rent", _rent(item))
        reversal = journal.reverse_journal_entry(entry.id)

        with pytest.raises(ConflictError):
            journal.delete_journal_entry(entry.id)

        journal.delete_journal_entry(reversal.id)
        journal.delete_journal_entry(entry.id)

    def test_reverse_unknown(self, journal):
        with pytest.raises(JournalEntryNotFoundError):
            journal.reverse_journal_entry(uuid4())


def test_sequence_counter_tracks_entries(session, journal, item):
    journal.create_journal_entry(TODAY, "rent", _rent(item))
    journal.create_journal_entry(TODAY, "rent", _rent(item))
    assert SequenceService(session).current_value(SequenceService.JOURNAL_ENTRY) == 2


def test_selector_lookup_by_number(session, journal, item):
    entry = journal.create_journal_entry(TODAY, "rent", _rent(item))
    reversal = journal.reverse_journal_entry(entry.id)
    selector = JournalSelector(session)

    assert selector.get_by_number(entry.number) == entry
    assert selector.get_by_number("JE-99999") is None
    assert session.get(JournalEntry, reversal.id).is_reversal
    assert not session.get(JournalEntry, entry.id).is_reversal
