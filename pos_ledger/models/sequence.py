"""
Module: pos_ledger.models.sequence
Responsibility: Named counter rows behind every sequential document number
    (journal entries, posting batches, purchase orders, adjustments).
Architecture position: Models.  Written only by SequenceService.

Invariants enforced:
    - name is unique: one counter row per sequence.
    - current_value only moves forward, and only inside the caller's
      transaction, so a rolled-back allocation is never observed.
"""

from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from pos_ledger.db.base import Base


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    """

    __tablename__ = "sequence_counters"

    # Sequence name (e.g., "journal_entry", "posting_batch")
    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.name}={self.current_value}>"
