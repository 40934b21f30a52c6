"""
SequenceService -- monotonic sequence allocation via counter rows.

Responsibility:
    Strictly increasing numbers for journal entries, posting batches and
    other sequential documents (purchase orders, stock adjustments).

Invariants enforced:
    - The counter row is the sole source of truth for the next value.
      Counting rows, or taking the maximum existing number and adding one,
      is forbidden: both race under concurrent writers.
    - The increment is an atomic ``UPDATE ... SET current_value =
      current_value + 1``; the row stays locked until the caller's
      transaction ends, so a concurrent allocator waits rather than reading
      the same value.  A rolled-back transaction returns its value.

Failure modes:
    - IntegrityError on concurrent first use of a sequence name: handled by
      rolling back the savepoint and incrementing the row the winner made.
"""

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pos_ledger.logging_config import get_logger
from pos_ledger.models.sequence import SequenceCounter
from pos_ledger.services.base import BaseService

logger = get_logger("services.sequence")


class SequenceService(BaseService):
    """
    Service for generating transactional sequence numbers.

    Usage:
        with session_scope() as session:
            seq = SequenceService(session).next_value("journal_entry")
    """

    JOURNAL_ENTRY = "journal_entry"
    POSTING_BATCH = "posting_batch"
    PURCHASE_ORDER = "purchase_order"
    STOCK_ADJUSTMENT = "stock_adjustment"

    def __init__(self, session: Session):
        super().__init__(session)

    def next_value(self, sequence_name: str) -> int:
        """
        Allocate the next value of a named sequence (always > 0).

        The first call for a name creates its counter at 1.
        """
        if not sequence_name:
            raise ValueError("sequence_name must be a non-empty string")

        value = self._increment(sequence_name)
        if value is None:
            value = self._create_counter(sequence_name)

        assert value > 0, "sequence values are strictly positive"
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": value},
        )
        return value

    def next_document_number(self, sequence_name: str, prefix: str, width: int = 5) -> str:
        """Allocate a value and format it as ``PREFIX-00001``."""
        return format_document_number(prefix, self.next_value(sequence_name), width)

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing; None if never used."""
        return self.session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

    def _increment(self, sequence_name: str) -> int | None:
        result = self.session.execute(
            update(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .values(current_value=SequenceCounter.current_value + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None
        # Row is locked by the UPDATE above; this read sees our own write.
        return self.session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == sequence_name)
        ).scalar_one()

    def _create_counter(self, sequence_name: str) -> int:
        savepoint = self.session.begin_nested()
        try:
            self.session.add(SequenceCounter(name=sequence_name, current_value=1))
            self.session.flush()
            savepoint.commit()
            return 1
        except IntegrityError:
            logger.debug(
                "sequence_counter_race_retry",
                extra={"sequence_name": sequence_name},
            )
            savepoint.rollback()
            value = self._increment(sequence_name)
            if value is None:
                raise
            return value


def format_document_number(prefix: str, value: int, width: int = 5) -> str:
    """
    >>> format_document_number("JE", 7)
    'JE-00007'
    """
    return f"{prefix}-{value:0{width}d}"
