"""
Concurrent journal entry creation and domain posting.

Several threads, each with its own session and connection on a shared
file-backed SQLite database, create entries at the same time.

Expected Behavior:
- Journal numbers are unique and gap-free across threads
- Batch sequence numbers are unique
- The same domain event replayed from many threads posts exactly once
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal
from threading import Barrier

import pytest
from sqlalchemy import func, select

from pos_ledger.domain.dtos import JournalItemSpec
from pos_ledger.models.journal import JournalEntry
from pos_ledger.models.ledger import PostingBatch, TransactionLine
from pos_ledger.services.container import LedgerServices
from pos_ledger.services.retry import with_retry

pytestmark = pytest.mark.slow_locks

THREADS = 6
PER_THREAD = 5


@pytest.fixture
def seeded(file_session_factory, config):
    with file_session_factory() as session:
        services = LedgerServices(session, config)
        services.registry.initialize()
        cash = services.registry.get_account_by_code("1060").id
        equity = services.registry.get_account_by_code("3000").id
        session.commit()
    return cash, equity


def _run(file_session_factory, config, work):
    def attempt():
        with file_session_factory() as session:
            result = work(LedgerServices(session, config))
            session.commit()
            return result

    return with_retry(attempt, attempts=5, sleep=lambda _: None)


def test_journal_numbers_unique_under_contention(file_session_factory, config, seeded):
    cash, equity = seeded
    barrier = Barrier(THREADS)

    def worker(n):
        barrier.wait()
        numbers = []
        for i in range(PER_THREAD):
            entry = _run(
                file_session_factory,
                config,
                lambda s: s.journal.create_journal_entry(
                    date(2025, 1, 15),
                    f"thread {n} entry {i}",
                    [
                        JournalItemSpec(account_id=cash, debit=Decimal("1")),
                        JournalItemSpec(account_id=equity, credit=Decimal("1")),
                    ],
                ),
            )
            numbers.append(entry.number)
        return numbers

    with ThreadPoolExecutor(max_workers=THREADS) as pool:
        results = list(pool.map(worker, range(THREADS)))

    numbers = [n for per_thread in results for n in per_thread]
    total = THREADS * PER_THREAD
    assert len(set(numbers)) == total
    assert sorted(numbers) == [f"JE-{i:05d}" for i in range(1, total + 1)]
    for per_thread in results:
        assert per_thread == sorted(per_thread)

    with file_session_factory() as session:
        assert session.execute(select(func.count(JournalEntry.id))).scalar_one() == total
        seqs = session.execute(select(PostingBatch.seq)).scalars().all()
        assert len(set(seqs)) == total


def test_replayed_sale_posts_once(file_session_factory, config, seeded):
    barrier = Barrier(THREADS)

    def worker(_):
        barrier.wait()
        return _run(
            file_session_factory,
            config,
            lambda s: s.adapters.post_sale("ord-race", Decimal("25"), cost_estimate=Decimal("10")),
        )

    with ThreadPoolExecutor(max_workers=THREADS) as pool:
        results = list(pool.map(worker, range(THREADS)))

    assert sum(1 for r in results if r.created) == 1
    assert len({r.batch_id for r in results}) == 1

    with file_session_factory() as session:
        lines = session.execute(
            select(func.count(TransactionLine.id)).where(TransactionLine.reference_id == "ord-race")
        ).scalar_one()
        assert lines == 4
