"""Read-only query selectors over the ledger."""

from pos_ledger.selectors.journal_selector import JournalSelector
from pos_ledger.selectors.ledger_selector import AccountTotals, LedgerSelector

__all__ = ["AccountTotals", "JournalSelector", "LedgerSelector"]
