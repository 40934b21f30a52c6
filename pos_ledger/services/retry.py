"""
Bounded retry for transient database errors.

A unit of work that fails with ``OperationalError`` (lock timeout, deadlock,
dropped connection) is re-run from the start a fixed number of times with a
linearly growing pause, then the last error propagates.  The unit of work
must open its own transaction so each attempt starts clean.
"""

import time
from typing import Callable, TypeVar

from sqlalchemy.exc import OperationalError

from pos_ledger.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")


def with_retry(
    operation: Callable[[], T],
    attempts: int = 3,
    backoff_seconds: float = 0.05,
    retry_on: tuple[type[BaseException], ...] = (OperationalError,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run ``operation``; on a transient error retry up to ``attempts`` times in
    total, sleeping ``backoff_seconds * attempt`` between tries.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except retry_on as exc:
            if attempt >= attempts:
                logger.error(
                    "transient_error_retries_exhausted",
                    extra={"attempts": attempts, "error": type(exc).__name__},
                )
                raise
            logger.warning(
                "transient_error_retry",
                extra={
                    "attempt": attempt,
                    "max_attempts": attempts,
                    "error": type(exc).__name__,
                },
            )
            sleep(backoff_seconds * attempt)
    raise AssertionError("unreachable")
