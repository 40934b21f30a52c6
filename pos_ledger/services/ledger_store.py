"""
LedgerStore -- the single write path into the append-only ledger.

Responsibility:
    Persist a group of transaction lines as one atomic unit, and expose the
    ledger read path (line queries and balances) to callers that hold a
    store rather than a selector.

Architecture position:
    Services -- imperative shell.  JournalEngine and PostingAdapters route
    every ledger write through post_group(); nothing else inserts
    TransactionLines.

Invariants enforced:
    - Per group: sum(debit) == sum(credit), exactly.  A group that does not
      balance writes nothing.
    - Each line carries exactly one strictly positive amount.
    - Every referenced account exists and is enabled.
    - All lines of a group become visible together: header and lines are
      flushed inside one SAVEPOINT and commit with the caller's transaction.
    - An idempotency key is posted at most once; a repeat (including one that
      loses a concurrent insert race) returns the existing batch.

Failure modes:
    - EmptyEntryError, InvalidLineError, UnbalancedEntryError,
      UnknownReferenceError, AccountInactiveError.  Nothing is written.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pos_ledger.domain.dtos import LineRecord, LineSpec, check_amounts
from pos_ledger.domain.posting_rules import totals
from pos_ledger.exceptions import (
    AccountInactiveError,
    EmptyEntryError,
    UnbalancedEntryError,
    UnknownReferenceError,
)
from pos_ledger.logging_config import get_logger
from pos_ledger.models.account import Account
from pos_ledger.models.ledger import PostingBatch, ReferenceTag, TransactionLine
from pos_ledger.selectors.ledger_selector import LedgerSelector
from pos_ledger.services.base import BaseService
from pos_ledger.services.sequence_service import SequenceService

logger = get_logger("services.ledger_store")


@dataclass(frozen=True)
class PostingResult:
    """Outcome of post_group()."""

    batch_id: UUID
    seq: int
    reference: str
    reference_id: str
    line_count: int
    total: Decimal
    created: bool

    @property
    def is_duplicate(self) -> bool:
        return not self.created

    @classmethod
    def from_batch(cls, batch: PostingBatch, created: bool) -> "PostingResult":
        return cls(
            batch_id=batch.id,
            seq=batch.seq,
            reference=batch.reference,
            reference_id=batch.reference_id,
            line_count=batch.line_count,
            total=batch.total_debit,
            created=created,
        )


def _reference_value(reference: ReferenceTag | str) -> str:
    try:
        return ReferenceTag(reference).value
    except ValueError:
        raise UnknownReferenceError("reference_tag", str(reference)) from None


class LedgerStore(BaseService):
    """
    Append-only ledger service.

    Contract:
        Flushes inside a savepoint; the caller commits.
    """

    def __init__(self, session: Session, sequence_service: SequenceService | None = None):
        super().__init__(session)
        self._sequences = sequence_service or SequenceService(session)
        self._selector = LedgerSelector(session)

    def post_group(
        self,
        lines: Sequence[LineSpec],
        *,
        reference: ReferenceTag | str,
        reference_id: UUID | str,
        date: date,
        idempotency_key: str | None = None,
        description: str | None = None,
    ) -> PostingResult:
        """
        Write ``lines`` as one balanced, atomic posting group.

        Args:
            lines: The lines; each names its account by code.
            reference: Kind of originating event.
            reference_id: Originating document id.
            date: Ledger date stamped on every line.
            idempotency_key: Optional; see domain/idempotency.py.
            description: Group description; also the default line text.

        Returns:
            PostingResult.  ``created`` is False when the key was already
            posted and nothing new was written.
        """
        reference_value = _reference_value(reference)
        reference_id = str(reference_id)
        if isinstance(date, datetime):
            date = date.date()

        if not lines:
            raise EmptyEntryError("posting group")
        for index, line in enumerate(lines):
            check_amounts(index, line.debit, line.credit)
        total_debit, total_credit = totals(lines)
        if total_debit != total_credit:
            logger.warning(
                "posting_group_unbalanced",
                extra={
                    "reference": reference_value,
                    "reference_id": reference_id,
                    "total_debit": total_debit,
                    "total_credit": total_credit,
                },
            )
            raise UnbalancedEntryError(str(total_debit), str(total_credit))

        if idempotency_key is not None:
            existing = self._batch_by_key(idempotency_key)
            if existing is not None:
                logger.info(
                    "posting_group_duplicate",
                    extra={"idempotency_key": idempotency_key, "batch_id": str(existing.id)},
                )
                return PostingResult.from_batch(existing, created=False)

        accounts = self._resolve_accounts(lines)

        savepoint = self.session.begin_nested()
        try:
            batch = PostingBatch(
                seq=self._sequences.next_value(SequenceService.POSTING_BATCH),
                idempotency_key=idempotency_key,
                reference=reference_value,
                reference_id=reference_id,
                total_debit=total_debit,
                total_credit=total_credit,
                line_count=len(lines),
                description=description,
            )
            self.session.add(batch)
            self.session.flush()
            for line_no, line in enumerate(lines, start=1):
                self.session.add(
                    TransactionLine(
                        batch_id=batch.id,
                        line_no=line_no,
                        account_id=accounts[line.account_code].id,
                        reference=reference_value,
                        reference_id=reference_id,
                        reference_sub_id=line.reference_sub_id,
                        date=date,
                        debit=line.debit,
                        credit=line.credit,
                        description=line.description or description,
                    )
                )
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            if idempotency_key is None:
                raise
            existing = self._batch_by_key(idempotency_key)
            if existing is None:
                raise
            logger.info(
                "posting_group_duplicate",
                extra={
                    "idempotency_key": idempotency_key,
                    "batch_id": str(existing.id),
                    "race": True,
                },
            )
            return PostingResult.from_batch(existing, created=False)

        logger.info(
            "posting_group_written",
            extra={
                "batch_id": str(batch.id),
                "seq": batch.seq,
                "reference": reference_value,
                "reference_id": reference_id,
                "line_count": len(lines),
                "total": total_debit,
            },
        )
        return PostingResult.from_batch(batch, created=True)

    def query_lines(self, **filters) -> list[LineRecord]:
        """See LedgerSelector.query_lines()."""
        return self._selector.query_lines(**filters)

    def account_balance(self, account_id: UUID, as_of_date: date | None = None) -> Decimal:
        return self._selector.account_balance(account_id, as_of_date)

    def batches_for(self, reference: ReferenceTag | str, reference_id: UUID | str) -> list[PostingBatch]:
        return list(
            self.session.execute(
                select(PostingBatch)
                .where(
                    PostingBatch.reference == _reference_value(reference),
                    PostingBatch.reference_id == str(reference_id),
                )
                .order_by(PostingBatch.seq)
            ).scalars()
        )

    def _batch_by_key(self, idempotency_key: str) -> PostingBatch | None:
        return self.session.execute(
            select(PostingBatch).where(PostingBatch.idempotency_key == idempotency_key)
        ).scalar_one_or_none()

    def _resolve_accounts(self, lines: Sequence[LineSpec]) -> dict[str, Account]:
        codes = {line.account_code for line in lines}
        accounts = {
            account.code: account
            for account in self.session.execute(
                select(Account).where(Account.code.in_(codes))
            ).scalars().unique()
        }
        for line in lines:
            account = accounts.get(line.account_code)
            if account is None:
                raise UnknownReferenceError("account", line.account_code)
            if not account.is_enabled:
                raise AccountInactiveError(str(account.id), account.code)
        return accounts
