"""
Module: pos_ledger.models.journal
Responsibility: ORM persistence for manually authored journal entries and
    their items.  A JournalEntry is a convenience wrapper: the ledger facts it
    produces are TransactionLines tagged reference=JournalEntry.
Architecture position: Models.  May import from db/base.py only.

Invariants enforced:
    - number is unique and strictly increasing (JE-00001, JE-00002, ...),
      allocated from the journal_entry sequence counter, never count()+1.
    - total_debit == total_credit within the configured tolerance at creation
      (JournalEngine).
    - Each item has exactly one of debit/credit strictly positive
      (JournalEngine; CHECK constraints guard the sign).
"""

import datetime as dt
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pos_ledger.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from pos_ledger.models.account import Account


class JournalEntry(TrackedBase):
    """
    Journal entry header.

    Contract:
        Created atomically with its items and its posting group.  Deletion
        removes the header, its items and the TransactionLines it produced.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("number", name="uq_journal_entry_number"),
        UniqueConstraint("seq", name="uq_journal_entry_seq"),
        Index("idx_journal_entry_date", "date"),
    )

    # Formatted journal number ("JE-00001")
    number: Mapped[str] = mapped_column(String(30), nullable=False)

    # Raw sequence value behind number
    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    # Optional external reference string (invoice no., memo id)
    reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    total_debit: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    total_credit: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    # Set on the reversing entry, pointing at the entry it reverses
    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=True,
        unique=True,
    )

    items: Mapped[list["JournalItem"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JournalItem.line_no",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.number}>"

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_id is not None


class JournalItem(TrackedBase):
    """One debit or credit line of a JournalEntry."""

    __tablename__ = "journal_items"

    __table_args__ = (
        CheckConstraint("debit >= 0", name="ck_journal_item_debit_non_negative"),
        CheckConstraint("credit >= 0", name="ck_journal_item_credit_non_negative"),
        Index("idx_journal_item_entry", "entry_id"),
        Index("idx_journal_item_account", "account_id"),
    )

    entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    debit: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False, default=Decimal("0"))

    credit: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False, default=Decimal("0"))

    entry: Mapped[JournalEntry] = relationship(back_populates="items")

    account: Mapped["Account"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<JournalItem Dr {self.debit} Cr {self.credit}>"
