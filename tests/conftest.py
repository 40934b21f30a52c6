"""
Pytest fixtures for the POS ledger test suite.

Provides:
- A session-scoped engine and schema, per-test isolation by outer
  transaction rollback
- File-backed SQLite engines for concurrency tests that need real commits
- Configured ledger services wired to a deterministic clock
- Structured log capture

Environment Variables:
- DATABASE_URL: database for the regular suite.  Defaults to in-memory
  SQLite; set a postgresql:// URL to run the suite against PostgreSQL.
"""

import json
import logging
import os
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session, sessionmaker

from pos_ledger.config import load_config
from pos_ledger.db.engine import build_engine, create_tables, drop_tables
from pos_ledger.domain.clock import DeterministicClock
from pos_ledger.domain.dtos import JournalItemSpec
from pos_ledger.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from pos_ledger.models.account import Account
from pos_ledger.services.container import LedgerServices

DEFAULT_DATABASE_URL = "sqlite://"

TODAY = date(2025, 1, 15)


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture pos_ledger logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, adapters):
            adapters.post_sale(...)
            logs = captured_logs()
            assert any(r["message"] == "domain_event_posted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("pos_ledger")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Session-scoped DB infrastructure
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """One engine for the whole session; independent of the module-level engine."""
    eng = build_engine(get_database_url())
    yield eng
    eng.dispose()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session (registers immutability listeners)."""
    drop_tables(db_engine)
    create_tables(db_engine)
    yield
    drop_tables(db_engine)


@pytest.fixture
def session(db_engine, db_tables) -> Generator[Session, None, None]:
    """
    Session joined to an outer transaction that is rolled back at teardown.

    ``session.commit()`` inside a test releases a savepoint only.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


@pytest.fixture
def file_engine(tmp_path):
    """
    File-backed SQLite engine for tests that need real commits from several
    connections.  Discarded with tmp_path.
    """
    eng = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}", sqlite_timeout=30.0)
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def file_session_factory(file_engine) -> sessionmaker[Session]:
    return sessionmaker(bind=file_engine, expire_on_commit=False)


# =============================================================================
# Config, clock and services
# =============================================================================


@pytest.fixture
def config():
    """Packaged defaults, isolated from the caller's environment."""
    return load_config(environ={})


@pytest.fixture
def deterministic_clock():
    return DeterministicClock(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def services(session, config, deterministic_clock) -> LedgerServices:
    """Every ledger service on the test session, with the default chart seeded."""
    svc = LedgerServices(session, config, clock=deterministic_clock)
    svc.registry.initialize()
    return svc


@pytest.fixture
def registry(services):
    return services.registry


@pytest.fixture
def store(services):
    return services.store


@pytest.fixture
def journal(services):
    return services.journal


@pytest.fixture
def adapters(services):
    return services.adapters


@pytest.fixture
def outbox(services):
    return services.outbox


@pytest.fixture
def reports(services):
    return services.reports


@pytest.fixture
def account(registry):
    """Look up a seeded account by code."""

    def _get(code: str) -> Account:
        found = registry.get_account_by_code(code)
        assert found is not None, f"account {code} not seeded"
        return found

    return _get


@pytest.fixture
def item(account):
    """Build a JournalItemSpec by account code: item("1060", debit="10")."""

    def _make(code: str, debit="0", credit="0", description=None) -> JournalItemSpec:
        return JournalItemSpec(
            account_id=account(code).id,
            debit=Decimal(debit),
            credit=Decimal(credit),
            description=description,
        )

    return _make
