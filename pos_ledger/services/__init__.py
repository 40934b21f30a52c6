"""Ledger services: the imperative shell over the domain and the database."""

from pos_ledger.services.account_registry import AccountRegistry
from pos_ledger.services.container import Ledger, LedgerServices
from pos_ledger.services.journal_engine import JournalEngine
from pos_ledger.services.ledger_store import LedgerStore, PostingResult
from pos_ledger.services.posting_adapters import PostingAdapters
from pos_ledger.services.posting_outbox import (
    DispatchResult,
    DispatchStatus,
    PostingOutbox,
    ReconciliationReport,
)
from pos_ledger.services.retry import with_retry
from pos_ledger.services.sequence_service import SequenceService, format_document_number

__all__ = [
    "AccountRegistry",
    "DispatchResult",
    "DispatchStatus",
    "JournalEngine",
    "Ledger",
    "LedgerServices",
    "LedgerStore",
    "PostingAdapters",
    "PostingOutbox",
    "PostingResult",
    "ReconciliationReport",
    "SequenceService",
    "format_document_number",
    "with_retry",
]
