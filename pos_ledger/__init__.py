"""
POS Ledger - double-entry accounting core for a retail point-of-sale system.

- Chart of accounts registry
- Append-only transaction ledger with atomic, balanced posting groups
- Manual journal entries with race-free sequential numbering
- Posting adapters for sales, returns, stock adjustments and purchases
- Trial balance, income statement and balance sheet
"""

__version__ = "0.1.0"
