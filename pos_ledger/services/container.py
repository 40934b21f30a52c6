"""
pos_ledger.services.container -- explicit wiring of the ledger components.

Responsibility:
    LedgerServices builds every ledger service for one Session exactly once
    and wires them together, so the registry, store, engine, adapters,
    outbox and reports all share the same session, clock and sequence
    allocator.  Ledger owns the engine-level lifecycle: startup checks and
    running a unit of work in its own transaction with transient-error
    retry.

Architecture position:
    Services -- top of the service layer.  The only place services are
    composed.

Invariants enforced:
    - Single-instance lifecycle within a LedgerServices: no duplicate
      SequenceService or AccountRegistry.
    - Ledger.startup() fails loudly (PostingIntegrityError) when a
      well-known account is missing, before any event is posted.
    - Ledger.run() commits once per successful unit of work; a failed
      attempt rolls back completely before the retry.

Usage:
    ledger = Ledger(load_config())
    ledger.startup()
    ledger.run(lambda services: services.adapters.post_sale(order_id, total))
"""

from __future__ import annotations

from typing import Callable, TypeVar

from sqlalchemy.orm import Session

from pos_ledger.config import LedgerConfig
from pos_ledger.db.engine import create_tables, init_engine_from_url, session_scope
from pos_ledger.domain.clock import Clock, SystemClock
from pos_ledger.logging_config import get_logger
from pos_ledger.reporting.service import ReportingService
from pos_ledger.services.account_registry import AccountRegistry
from pos_ledger.services.journal_engine import JournalEngine
from pos_ledger.services.ledger_store import LedgerStore
from pos_ledger.services.posting_adapters import PostingAdapters
from pos_ledger.services.posting_outbox import PostingOutbox
from pos_ledger.services.retry import with_retry
from pos_ledger.services.sequence_service import SequenceService

logger = get_logger("services.container")

T = TypeVar("T")


class LedgerServices:
    """
    Per-session factory for the ledger components.

    Contract:
        Does NOT manage transaction boundaries and never commits.
    """

    def __init__(
        self,
        session: Session,
        config: LedgerConfig,
        clock: Clock | None = None,
    ) -> None:
        self.session = session
        self.config = config
        self.clock = clock or SystemClock()

        # Order matters: each service receives the ones built before it.
        self.sequences = SequenceService(session)
        self.registry = AccountRegistry(session, config)
        self.store = LedgerStore(session, self.sequences)
        self.journal = JournalEngine(
            session,
            config,
            ledger_store=self.store,
            sequence_service=self.sequences,
            clock=self.clock,
        )
        self.adapters = PostingAdapters(
            session,
            config,
            registry=self.registry,
            ledger_store=self.store,
            clock=self.clock,
        )
        self.outbox = PostingOutbox(session, config, adapters=self.adapters)
        self.reports = ReportingService(session, clock=self.clock)


class Ledger:
    """
    Process-level entry point: engine, schema, startup checks and units of
    work.
    """

    def __init__(self, config: LedgerConfig, clock: Clock | None = None) -> None:
        self.config = config
        self.clock = clock or SystemClock()
        self.engine = init_engine_from_url(config.database_url, echo=config.echo)

    def startup(self, create_schema: bool = True) -> dict:
        """
        Create tables, seed the chart if empty and verify the well-known
        accounts.  Safe to call on every process start.

        Returns:
            The role -> account code table.
        """
        if create_schema:
            create_tables(self.engine)

        def work(services: LedgerServices) -> dict:
            seeded = services.registry.initialize()
            roles = services.registry.well_known_accounts()
            logger.info("ledger_started", extra={"seeded": seeded, "config_checksum": self.config.checksum})
            return roles

        return self.run(work)

    def run(self, work: Callable[[LedgerServices], T]) -> T:
        """
        Run ``work`` in its own transaction, retrying transient database
        errors.  Commits on success; rolls back and re-raises otherwise.
        """

        def attempt() -> T:
            with session_scope() as session:
                return work(LedgerServices(session, self.config, self.clock))

        return with_retry(
            attempt,
            attempts=self.config.retry_attempts,
            backoff_seconds=self.config.retry_backoff_seconds,
        )
