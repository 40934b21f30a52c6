"""
Module: pos_ledger.models.outbox
Responsibility: Durable record of domain events whose ledger posting failed.
    The business operation that raised the event has already completed; the
    row keeps the posting from being lost until reconciliation succeeds or
    gives up.
Architecture position: Models.  Written by PostingOutbox only.

Invariants enforced:
    - (event_kind, event_id) is unique: one outstanding record per event.
    - status moves pending -> posted or pending -> abandoned, never back.
"""

from enum import Enum
from typing import Any

from sqlalchemy import JSON, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from pos_ledger.db.base import TrackedBase


class PendingStatus(str, Enum):
    PENDING = "pending"
    POSTED = "posted"
    ABANDONED = "abandoned"


class PendingPosting(TrackedBase):
    """
    One deferred posting.

    payload holds the JSON form of the PostingEvent so the adapter call can
    be replayed exactly.
    """

    __tablename__ = "pending_postings"

    __table_args__ = (
        UniqueConstraint("event_kind", "event_id", name="uq_pending_posting_event"),
        Index("idx_pending_posting_status", "status"),
    )

    # PostingKind value ("sale", "return", ...)
    event_kind: Mapped[str] = mapped_column(String(30), nullable=False)

    # Originating document id (order id, return id, ...)
    event_id: Mapped[str] = mapped_column(String(100), nullable=False)

    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PendingStatus.PENDING.value,
    )

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    last_error_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    last_error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<PendingPosting {self.event_kind}:{self.event_id} {self.status}>"

    @property
    def is_pending(self) -> bool:
        return self.status == PendingStatus.PENDING.value
