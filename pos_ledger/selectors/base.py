"""
Module: pos_ledger.selectors.base
Responsibility: Base class for read-only query selectors.
Architecture position: Selectors.  May import from db/ and models/.  MUST
    NOT import from services/.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - Selectors return dataclass DTOs or computed values, not ORM rows.
    - All balances derive from TransactionLine rows at query time; nothing
      stores a running balance.
"""

from abc import ABC
from decimal import Decimal

from sqlalchemy.orm import Session

ZERO = Decimal("0")


def as_decimal(value) -> Decimal:
    """Normalize an aggregate result (None, int, float from SQLite) to Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class BaseSelector(ABC):
    """The caller owns the session and its transaction scope."""

    def __init__(self, session: Session):
        self.session = session
