"""ORM models for the ledger core."""

from pos_ledger.models.account import (
    Account,
    AccountCategory,
    AccountSubType,
    AccountType,
    NormalBalance,
)
from pos_ledger.models.journal import JournalEntry, JournalItem
from pos_ledger.models.ledger import PostingBatch, ReferenceTag, TransactionLine
from pos_ledger.models.outbox import PendingPosting, PendingStatus
from pos_ledger.models.sequence import SequenceCounter

__all__ = [
    "Account",
    "AccountCategory",
    "AccountSubType",
    "AccountType",
    "NormalBalance",
    "JournalEntry",
    "JournalItem",
    "PostingBatch",
    "ReferenceTag",
    "TransactionLine",
    "PendingPosting",
    "PendingStatus",
    "SequenceCounter",
]
