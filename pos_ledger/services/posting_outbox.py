"""
PostingOutbox -- durable deferral and reconciliation of failed postings.

Responsibility:
    Business operations (checkout, return approval, ...) hand their ledger
    event to dispatch().  If posting succeeds the event is done; if it fails
    with a ledger error the event is recorded as a PendingPosting and the
    business operation still completes.  reconcile() retries pending rows
    until they post or exhaust their attempts.

Architecture position:
    Services -- imperative shell around PostingAdapters.

Invariants enforced:
    - dispatch() never raises a LedgerError: the failure is recorded and
      reported in the DispatchResult.
    - A failed adapter call leaves no ledger lines behind: each attempt runs
      in its own savepoint.
    - Replays are safe: adapters key every group by its originating event.
    - A row reaching max_attempts is marked abandoned and an error-level
      ``posting_abandoned`` record is logged for alerting.

Failure modes:
    - Database errors other than ledger errors propagate; the outbox cannot
      record anything without a working database.
"""

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from pos_ledger.config import LedgerConfig
from pos_ledger.domain.dtos import PostingEvent, PostingKind
from pos_ledger.exceptions import LedgerError, PendingPostingNotFoundError
from pos_ledger.logging_config import LogContext, get_logger
from pos_ledger.models.outbox import PendingPosting, PendingStatus
from pos_ledger.services.base import BaseService
from pos_ledger.services.ledger_store import PostingResult
from pos_ledger.services.posting_adapters import PostingAdapters

logger = get_logger("services.posting_outbox")


class DispatchStatus(str, Enum):
    POSTED = "posted"
    ALREADY_POSTED = "already_posted"
    NOTHING_TO_POST = "nothing_to_post"
    DEFERRED = "deferred"


@dataclass(frozen=True)
class DispatchResult:
    """Outcome of one dispatch()."""

    status: DispatchStatus
    event: PostingEvent
    posting: PostingResult | None = None
    pending_id: UUID | None = None
    error_code: str | None = None
    error_message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status is not DispatchStatus.DEFERRED


@dataclass(frozen=True)
class ReconciliationReport:
    """Summary of one reconcile() run."""

    attempted: int = 0
    posted: int = 0
    still_pending: int = 0
    abandoned: int = 0
    abandoned_ids: tuple[UUID, ...] = field(default_factory=tuple)

    @property
    def is_clean(self) -> bool:
        return self.still_pending == 0 and self.abandoned == 0


class PostingOutbox(BaseService):
    """
    Contract:
        Flushes, never commits.  Call dispatch() inside the business
        operation's transaction so the pending row commits with it.
    """

    def __init__(
        self,
        session: Session,
        config: LedgerConfig,
        adapters: PostingAdapters | None = None,
    ):
        super().__init__(session)
        self._adapters = adapters or PostingAdapters(session, config)
        self._max_attempts = config.outbox_max_attempts

    def dispatch(self, event: PostingEvent) -> DispatchResult:
        """Post ``event`` now, or record it for reconciliation."""
        with LogContext.bind(event_id=event.event_id):
            pending = self._pending_for(event)
            try:
                posting = self._attempt(event)
            except LedgerError as exc:
                row = self._record_failure(event, pending, exc)
                logger.warning(
                    "posting_deferred",
                    extra={
                        "event_kind": event.kind.value,
                        "pending_id": str(row.id),
                        "attempts": row.attempts,
                        "error_code": exc.code,
                        "error_message": str(exc),
                    },
                )
                return DispatchResult(
                    status=DispatchStatus.DEFERRED,
                    event=event,
                    pending_id=row.id,
                    error_code=exc.code,
                    error_message=str(exc),
                )

            if pending is not None and pending.status != PendingStatus.POSTED.value:
                self._mark_posted(pending)
            return DispatchResult(status=_status_for(posting), event=event, posting=posting)

    def reconcile(self, limit: int | None = None) -> ReconciliationReport:
        """
        Retry every pending row (oldest first).

        Success marks the row posted; a row whose attempts reach the
        configured maximum is marked abandoned.
        """
        query = (
            select(PendingPosting)
            .where(PendingPosting.status == PendingStatus.PENDING.value)
            .order_by(PendingPosting.created_at, PendingPosting.id)
        )
        if limit is not None:
            query = query.limit(limit)
        rows = list(self.session.execute(query).scalars())

        posted = 0
        still_pending = 0
        abandoned: list[UUID] = []
        for row in rows:
            event = PostingEvent.from_payload(row.event_kind, row.event_id, row.payload)
            with LogContext.bind(event_id=row.event_id):
                try:
                    self._attempt(event)
                except LedgerError as exc:
                    self._record_failure(event, row, exc)
                    if row.status == PendingStatus.ABANDONED.value:
                        abandoned.append(row.id)
                    else:
                        still_pending += 1
                    continue
                self._mark_posted(row)
                posted += 1

        report = ReconciliationReport(
            attempted=len(rows),
            posted=posted,
            still_pending=still_pending,
            abandoned=len(abandoned),
            abandoned_ids=tuple(abandoned),
        )
        logger.info(
            "reconciliation_completed",
            extra={
                "attempted": report.attempted,
                "posted": report.posted,
                "still_pending": report.still_pending,
                "abandoned": report.abandoned,
            },
        )
        return report

    def get_pending(self, pending_id: UUID) -> PendingPosting:
        row = self.session.get(PendingPosting, pending_id)
        if row is None:
            raise PendingPostingNotFoundError(str(pending_id))
        return row

    def list_pending(self, status: PendingStatus | str | None = PendingStatus.PENDING) -> list[PendingPosting]:
        query = select(PendingPosting).order_by(PendingPosting.created_at, PendingPosting.id)
        if status is not None:
            query = query.where(PendingPosting.status == PendingStatus(status).value)
        return list(self.session.execute(query).scalars())

    # ------------------------------------------------------------------

    def _attempt(self, event: PostingEvent) -> PostingResult | None:
        savepoint = self.session.begin_nested()
        try:
            result = _ADAPTER_CALLS[event.kind](self._adapters, event)
        except Exception:
            savepoint.rollback()
            raise
        savepoint.commit()
        return result

    def _pending_for(self, event: PostingEvent) -> PendingPosting | None:
        return self.session.execute(
            select(PendingPosting).where(
                PendingPosting.event_kind == event.kind.value,
                PendingPosting.event_id == event.event_id,
            )
        ).scalar_one_or_none()

    def _record_failure(
        self,
        event: PostingEvent,
        row: PendingPosting | None,
        exc: LedgerError,
    ) -> PendingPosting:
        if row is None:
            row = PendingPosting(
                event_kind=event.kind.value,
                event_id=event.event_id,
                payload=event.to_payload(),
                status=PendingStatus.PENDING.value,
                attempts=0,
            )
            self.session.add(row)
        elif not row.is_pending:
            # A settled event dispatched again; reopen it with a fresh budget.
            row.status = PendingStatus.PENDING.value
            row.attempts = 0
            row.payload = event.to_payload()

        row.attempts += 1
        row.last_error_code = exc.code
        row.last_error_message = str(exc)
        if row.attempts >= self._max_attempts:
            row.status = PendingStatus.ABANDONED.value
        self.session.flush()

        if row.status == PendingStatus.ABANDONED.value:
            logger.error(
                "posting_abandoned",
                extra={
                    "event_kind": row.event_kind,
                    "pending_id": str(row.id),
                    "attempts": row.attempts,
                    "error_code": exc.code,
                    "error_message": str(exc),
                },
            )
        return row

    def _mark_posted(self, row: PendingPosting) -> None:
        row.status = PendingStatus.POSTED.value
        row.last_error_code = None
        row.last_error_message = None
        self.session.flush()
        logger.info(
            "pending_posting_resolved",
            extra={"pending_id": str(row.id), "event_kind": row.event_kind, "attempts": row.attempts},
        )


def _status_for(posting: PostingResult | None) -> DispatchStatus:
    if posting is None:
        return DispatchStatus.NOTHING_TO_POST
    if posting.created:
        return DispatchStatus.POSTED
    return DispatchStatus.ALREADY_POSTED


def _call(method_name: str, id_param: str):
    def call(adapters: PostingAdapters, event: PostingEvent) -> PostingResult | None:
        return getattr(adapters, method_name)(**{id_param: event.event_id}, **event.payload)

    return call


_ADAPTER_CALLS = {
    PostingKind.SALE: _call("post_sale", "order_id"),
    PostingKind.RETURN: _call("post_return", "return_id"),
    PostingKind.REPLACEMENT: _call("post_replacement", "return_id"),
    PostingKind.STOCK_ADJUSTMENT: _call("post_stock_adjustment", "adjustment_id"),
    PostingKind.PURCHASE: _call("post_purchase", "purchase_id"),
    PostingKind.PAYMENT: _call("post_payment", "payment_id"),
    PostingKind.DAMAGED_GOODS: _call("post_damaged_goods", "receipt_id"),
}
