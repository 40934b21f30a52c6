"""
Module: pos_ledger.selectors.journal_selector
Responsibility: Read-only queries over manual journal entries.
Architecture position: Selectors.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from pos_ledger.domain.dtos import JournalEntryRecord
from pos_ledger.exceptions import JournalEntryNotFoundError
from pos_ledger.models.journal import JournalEntry, JournalItem
from pos_ledger.selectors.base import BaseSelector


class JournalSelector(BaseSelector):
    def __init__(self, session: Session):
        super().__init__(session)

    def get_entry(self, entry_id: UUID) -> JournalEntryRecord:
        entry = self.session.get(JournalEntry, entry_id)
        if entry is None:
            raise JournalEntryNotFoundError(str(entry_id))
        return JournalEntryRecord.from_model(entry)

    def get_by_number(self, number: str) -> JournalEntryRecord | None:
        entry = self.session.execute(
            select(JournalEntry).where(JournalEntry.number == number)
        ).scalar_one_or_none()
        return JournalEntryRecord.from_model(entry) if entry is not None else None

    def list_entries(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[JournalEntryRecord]:
        """Entries in the inclusive date window, newest first."""
        query = (
            select(JournalEntry)
            .options(selectinload(JournalEntry.items).joinedload(JournalItem.account))
            .order_by(JournalEntry.date.desc(), JournalEntry.seq.desc())
        )
        if start_date is not None:
            query = query.where(JournalEntry.date >= start_date)
        if end_date is not None:
            query = query.where(JournalEntry.date <= end_date)
        return [JournalEntryRecord.from_model(e) for e in self.session.execute(query).scalars()]

    def reversal_of(self, entry_id: UUID) -> JournalEntryRecord | None:
        """The entry that reverses ``entry_id``, if any."""
        entry = self.session.execute(
            select(JournalEntry).where(JournalEntry.reversal_of_id == entry_id)
        ).scalar_one_or_none()
        return JournalEntryRecord.from_model(entry) if entry is not None else None
