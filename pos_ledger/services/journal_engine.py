"""
JournalEngine -- manually authored journal entries.

Responsibility:
    Create, read, list, delete and reverse journal entries.  Each entry owns
    its items and produces one posting group (one TransactionLine per item,
    reference=JournalEntry, reference_id=entry id).

Invariants enforced:
    - An entry has at least one item; each item carries exactly one strictly
      positive amount.
    - Debits must equal credits exactly.  The configured tolerance only
      separates a real imbalance from a rounding residue in the error and
      log; both are rejected before a journal number is drawn.
    - Journal numbers come from the journal_entry sequence counter and are
      unique and strictly increasing under concurrent creation.
    - Header, items and lines are written in one savepoint: a failure at any
      step writes nothing.
    - An entry is reversed at most once (reversal_of_id is unique).

Failure modes:
    - EmptyEntryError, InvalidLineError, UnbalancedEntryError,
      UnknownReferenceError, AccountInactiveError on create.
    - JournalEntryNotFoundError on get/delete/reverse of an unknown id.
    - EntryAlreadyReversedError on a second reversal.
    - ConflictError when deleting an entry that has been reversed.
"""

from datetime import date
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pos_ledger.config import LedgerConfig
from pos_ledger.domain.clock import Clock, SystemClock
from pos_ledger.domain.dtos import JournalEntryRecord, JournalItemSpec, LineSpec, check_amounts
from pos_ledger.domain.idempotency import generate_idempotency_key
from pos_ledger.exceptions import (
    AccountInactiveError,
    ConflictError,
    EmptyEntryError,
    EntryAlreadyReversedError,
    JournalEntryNotFoundError,
    UnbalancedEntryError,
    UnknownReferenceError,
)
from pos_ledger.logging_config import LogContext, get_logger
from pos_ledger.models.account import Account
from pos_ledger.models.journal import JournalEntry, JournalItem
from pos_ledger.models.ledger import PostingBatch, ReferenceTag, TransactionLine
from pos_ledger.selectors.journal_selector import JournalSelector
from pos_ledger.services.base import BaseService
from pos_ledger.services.ledger_store import LedgerStore
from pos_ledger.services.sequence_service import SequenceService, format_document_number

logger = get_logger("services.journal_engine")


class JournalEngine(BaseService):
    """
    Manual journal entry service.

    Contract:
        Flushes, never commits.  Returns JournalEntryRecord DTOs.
    """

    def __init__(
        self,
        session: Session,
        config: LedgerConfig,
        ledger_store: LedgerStore | None = None,
        sequence_service: SequenceService | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._sequences = sequence_service or SequenceService(session)
        self._store = ledger_store or LedgerStore(session, self._sequences)
        self._selector = JournalSelector(session)
        self._clock = clock or SystemClock()
        self._tolerance = config.balance_tolerance
        self._prefix = config.prefix_for(SequenceService.JOURNAL_ENTRY)
        self._width = config.number_width

    def create_journal_entry(
        self,
        date: date,
        description: str,
        items: Sequence[JournalItemSpec],
        reference: str | None = None,
    ) -> JournalEntryRecord:
        """
        Validate and persist a balanced journal entry and its ledger lines.

        Raises:
            EmptyEntryError: ``items`` is empty.
            InvalidLineError: An item is negative, two-sided or zero.
            UnbalancedEntryError: Debits and credits are not exactly equal.
                The error carries ``tolerance`` "0.01" (the configured
                tolerance) when the gap exceeds it and "0" when the gap is a
                rounding residue inside it; neither case is posted.
        """
        return self._create(date, description, items, reference, reversal_of_id=None)

    def get_journal_entry(self, entry_id: UUID) -> JournalEntryRecord:
        return self._selector.get_entry(entry_id)

    def list_journal_entries(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[JournalEntryRecord]:
        return self._selector.list_entries(start_date, end_date)

    def delete_journal_entry(self, entry_id: UUID) -> None:
        """
        Hard-delete an entry, its items and the transaction lines it produced.

        This removes ledger history.  Prefer reverse_journal_entry() where an
        audit trail matters.

        Raises:
            JournalEntryNotFoundError: Unknown id.
            ConflictError: The entry has been reversed; delete the reversal
                first.
        """
        entry = self._get(entry_id)
        reversal = self._selector.reversal_of(entry.id)
        if reversal is not None:
            raise ConflictError(
                f"journal entry {entry.number} is reversed by {reversal.number}; delete the reversal first"
            )

        reference = ReferenceTag.JOURNAL_ENTRY.value
        removed = self.session.execute(
            delete(TransactionLine).where(
                TransactionLine.reference == reference,
                TransactionLine.reference_id == str(entry.id),
            )
        ).rowcount
        self.session.execute(
            delete(PostingBatch).where(
                PostingBatch.reference == reference,
                PostingBatch.reference_id == str(entry.id),
            )
        )
        number = entry.number
        self.session.delete(entry)
        self.session.flush()

        logger.warning(
            "journal_entry_deleted",
            extra={"entry_id": str(entry_id), "number": number, "lines_removed": removed},
        )

    def reverse_journal_entry(
        self,
        entry_id: UUID,
        date: date | None = None,
        description: str | None = None,
    ) -> JournalEntryRecord:
        """
        Post a new entry with debits and credits swapped, linked to the
        original through reversal_of_id.  The original stays untouched.

        Raises:
            JournalEntryNotFoundError: Unknown id.
            EntryAlreadyReversedError: A reversal already exists.
        """
        entry = self._get(entry_id)
        existing = self._selector.reversal_of(entry.id)
        if existing is not None:
            raise EntryAlreadyReversedError(str(entry.id), str(existing.id))

        swapped = [
            JournalItemSpec(
                account_id=item.account_id,
                debit=item.credit,
                credit=item.debit,
                description=item.description,
            )
            for item in entry.items
        ]
        try:
            return self._create(
                date or self._clock.today(),
                description or f"Reversal of {entry.number}",
                swapped,
                reference=entry.number,
                reversal_of_id=entry.id,
            )
        except IntegrityError:
            winner = self._selector.reversal_of(entry.id)
            if winner is None:
                raise
            raise EntryAlreadyReversedError(str(entry.id), str(winner.id)) from None

    # ------------------------------------------------------------------

    def _get(self, entry_id: UUID) -> JournalEntry:
        entry = self.session.get(JournalEntry, entry_id)
        if entry is None:
            raise JournalEntryNotFoundError(str(entry_id))
        return entry

    def _create(
        self,
        entry_date: date,
        description: str,
        items: Sequence[JournalItemSpec],
        reference: str | None,
        reversal_of_id: UUID | None,
    ) -> JournalEntryRecord:
        if not items:
            raise EmptyEntryError("journal entry")
        for index, item in enumerate(items):
            check_amounts(index, item.debit, item.credit)

        total_debit = sum((item.debit for item in items), Decimal("0"))
        total_credit = sum((item.credit for item in items), Decimal("0"))
        if abs(total_debit - total_credit) > self._tolerance:
            logger.warning(
                "journal_entry_unbalanced",
                extra={"total_debit": total_debit, "total_credit": total_credit},
            )
            raise UnbalancedEntryError(str(total_debit), str(total_credit), str(self._tolerance))
        if total_debit != total_credit:
            # Ledger groups balance exactly.
            logger.warning(
                "journal_entry_inexact",
                extra={"total_debit": total_debit, "total_credit": total_credit},
            )
            raise UnbalancedEntryError(str(total_debit), str(total_credit), "0")

        accounts = self._resolve_accounts(items)

        savepoint = self.session.begin_nested()
        try:
            seq = self._sequences.next_value(SequenceService.JOURNAL_ENTRY)
            entry = JournalEntry(
                number=format_document_number(self._prefix, seq, self._width),
                seq=seq,
                date=entry_date,
                reference=reference,
                description=description,
                total_debit=total_debit,
                total_credit=total_credit,
                reversal_of_id=reversal_of_id,
            )
            self.session.add(entry)
            self.session.flush()

            for line_no, item in enumerate(items, start=1):
                entry.items.append(
                    JournalItem(
                        account_id=item.account_id,
                        line_no=line_no,
                        description=item.description,
                        debit=item.debit,
                        credit=item.credit,
                    )
                )
            self.session.flush()

            with LogContext.bind(entry_id=entry.id):
                lines = [
                    LineSpec(
                        account_code=accounts[item.account_id].code,
                        debit=item.debit,
                        credit=item.credit,
                        description=item.description or description,
                        reference_sub_id=str(line_no),
                    )
                    for line_no, item in enumerate(items, start=1)
                ]
                self._store.post_group(
                    lines,
                    reference=ReferenceTag.JOURNAL_ENTRY,
                    reference_id=entry.id,
                    date=entry_date,
                    idempotency_key=generate_idempotency_key(
                        ReferenceTag.JOURNAL_ENTRY.value, entry.id, "entry"
                    ),
                    description=description,
                )
            savepoint.commit()
        except Exception:
            savepoint.rollback()
            raise

        logger.info(
            "journal_entry_created",
            extra={
                "entry_id": str(entry.id),
                "number": entry.number,
                "total": total_debit,
                "item_count": len(items),
                "reversal_of_id": str(reversal_of_id) if reversal_of_id else None,
            },
        )
        return JournalEntryRecord.from_model(entry)

    def _resolve_accounts(self, items: Sequence[JournalItemSpec]) -> dict[UUID, Account]:
        ids = {item.account_id for item in items}
        accounts = {
            account.id: account
            for account in self.session.execute(
                select(Account).where(Account.id.in_(ids))
            ).scalars().unique()
        }
        for item in items:
            account = accounts.get(item.account_id)
            if account is None:
                raise UnknownReferenceError("account", str(item.account_id))
            if not account.is_enabled:
                raise AccountInactiveError(str(account.id), account.code)
        return accounts
