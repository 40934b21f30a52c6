"""Tests for SequenceService (pos_ledger/services/sequence_service.py)."""

import pytest

from pos_ledger.services.sequence_service import SequenceService, format_document_number


@pytest.fixture
def sequences(session):
    return SequenceService(session)


class TestNextValue:
    def test_first_value_is_one(self, sequences):
        assert sequences.current_value("journal_entry") is None
        assert sequences.next_value("journal_entry") == 1
        assert sequences.current_value("journal_entry") == 1

    def test_values_strictly_increase(self, sequences):
        values = [sequences.next_value("journal_entry") for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]

    def test_sequences_are_independent(self, sequences):
        sequences.next_value(SequenceService.JOURNAL_ENTRY)
        sequences.next_value(SequenceService.JOURNAL_ENTRY)
        assert sequences.next_value(SequenceService.PURCHASE_ORDER) == 1
        assert sequences.next_value(SequenceService.JOURNAL_ENTRY) == 3

    def test_empty_name_rejected(self, sequences):
        with pytest.raises(ValueError):
            sequences.next_value("")

    def test_rolled_back_allocation_is_reused_only_after_rollback(self, session, sequences):
        sequences.next_value("stock_adjustment")
        savepoint = session.begin_nested()
        assert sequences.next_value("stock_adjustment") == 2
        savepoint.rollback()
        assert sequences.next_value("stock_adjustment") == 2


class TestDocumentNumbers:
    def test_format(self):
        assert format_document_number("JE", 7) == "JE-00007"
        assert format_document_number("PO", 123456, width=5) == "PO-123456"
        assert format_document_number("ADJ", 3, width=3) == "ADJ-003"

    def test_next_document_number(self, sequences):
        assert sequences.next_document_number("purchase_order", "PO") == "PO-00001"
        assert sequences.next_document_number("purchase_order", "PO") == "PO-00002"
