"""
Module: pos_ledger.models.ledger
Responsibility: ORM persistence for the append-only ledger -- posting batches
    and the transaction lines they contain.  TransactionLine is the single
    source of truth for every balance and report.
Architecture position: Models.  May import from db/base.py only.

Invariants enforced:
    - Every line belongs to exactly one PostingBatch; lines of a batch become
      visible together (one database transaction).
    - Per batch: sum(debit) == sum(credit)  (checked by LedgerStore).
    - debit >= 0, credit >= 0 (CHECK constraints).
    - PostingBatch.idempotency_key is unique: an originating event is posted
      at most once per purpose.
    - PostingBatch.seq is unique and monotonic (SequenceService).
    - Lines and batches are never updated (db/immutability.py).

Audit relevance:
    Every row carries the reference tag and originating document id, so any
    balance can be traced back to the sale, return, adjustment, purchase or
    journal entry that produced it.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
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


class ReferenceTag(str, Enum):
    """Kind of domain event that originated a group of lines."""

    ORDER = "Order"
    PURCHASE_ORDER = "PurchaseOrder"
    GOODS_RECEIPT = "GoodsReceipt"
    JOURNAL_ENTRY = "JournalEntry"
    PAYMENT = "Payment"
    ADJUSTMENT = "Adjustment"
    RETURN = "Return"
    MARKET_PURCHASE = "MarketPurchase"


class PostingBatch(TrackedBase):
    """
    Header of one atomic posting group.

    Contract:
        Written by LedgerStore.post_group() in the same flush as its lines.
        total_debit == total_credit.
    """

    __tablename__ = "posting_batches"

    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_posting_batch_idempotency"),
        UniqueConstraint("seq", name="uq_posting_batch_seq"),
        Index("idx_posting_batch_reference", "reference", "reference_id"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # <reference>:<reference_id>:<purpose>; NULL for unkeyed groups
    idempotency_key: Mapped[str | None] = mapped_column(String(300), nullable=True)

    reference: Mapped[ReferenceTag] = mapped_column(String(30), nullable=False)

    reference_id: Mapped[str] = mapped_column(String(100), nullable=False)

    total_debit: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    total_credit: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    line_count: Mapped[int] = mapped_column(Integer, nullable=False)

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    lines: Mapped[list["TransactionLine"]] = relationship(
        back_populates="batch",
        lazy="selectin",
        order_by="TransactionLine.line_no",
    )

    def __repr__(self) -> str:
        return f"<PostingBatch #{self.seq} {self.reference}:{self.reference_id}>"


class TransactionLine(TrackedBase):
    """
    The atomic, append-only ledger fact: one debit and/or credit amount
    against one account.

    Never the unit of update -- corrections are new, offsetting lines.
    """

    __tablename__ = "transaction_lines"

    __table_args__ = (
        CheckConstraint("debit >= 0", name="ck_transaction_line_debit_non_negative"),
        CheckConstraint("credit >= 0", name="ck_transaction_line_credit_non_negative"),
        Index("idx_line_account_date", "account_id", "date"),
        Index("idx_line_reference", "reference", "reference_id"),
        Index("idx_line_batch", "batch_id"),
    )

    batch_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("posting_batches.id"),
        nullable=False,
    )

    # Insertion order within the batch
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    reference: Mapped[ReferenceTag] = mapped_column(String(30), nullable=False)

    reference_id: Mapped[str] = mapped_column(String(100), nullable=False)

    # Per-line traceability (order line, adjustment line, ...)
    reference_sub_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    date: Mapped[dt.date] = mapped_column(Date, nullable=False)

    debit: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False, default=Decimal("0"))

    credit: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False, default=Decimal("0"))

    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    batch: Mapped[PostingBatch] = relationship(back_populates="lines")

    account: Mapped["Account"] = relationship(back_populates="transaction_lines")

    def __repr__(self) -> str:
        return f"<TransactionLine {self.reference}:{self.reference_id} Dr {self.debit} Cr {self.credit}>"

    @property
    def signed_amount(self) -> Decimal:
        """Debit-positive amount of this line."""
        return self.debit - self.credit
