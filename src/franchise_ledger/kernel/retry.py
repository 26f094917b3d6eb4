"""
Retry logic with exponential backoff for transient failures.

Two policies live here:
- retry_on_sqlite_lock: store-internal, for SQLite lock contention
- store_conflict_retrying: caller-side, re-runs a whole pipeline attempt
  when an optimistic version check fails

The pipeline itself never retries. A retry always starts again from
validation and load, never from the middle of an attempt.
"""

import sqlite3
from collections.abc import Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    retry,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from franchise_ledger.kernel.errors import StoreConflictError
from franchise_ledger.kernel.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _is_lock_error(exc: BaseException) -> bool:
    return isinstance(exc, sqlite3.OperationalError) and "locked" in str(exc).lower()


def retry_on_sqlite_lock(
    max_attempts: int = 3,
    min_wait_ms: int = 50,
    max_wait_ms: int = 1000,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry decorator for SQLite lock contention.

    SQLite uses file-based locking and can report "database is locked"
    under concurrent writers. Only that condition is retried; every other
    OperationalError propagates immediately.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        min_wait_ms: Minimum wait time in milliseconds (default: 50)
        max_wait_ms: Maximum wait time in milliseconds (default: 1000)

    Example:
        @retry_on_sqlite_lock()
        def _append_sync(...):
            conn.execute("BEGIN IMMEDIATE")
    """
    return retry(
        retry=retry_if_exception(_is_lock_error),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(
            multiplier=1,
            min=min_wait_ms / 1000.0,
            max=max_wait_ms / 1000.0,
        ),
        before_sleep=lambda retry_state: logger.warning(
            "SQLite lock detected, retrying",
            attempt=retry_state.attempt_number,
            exception=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        ),
        reraise=True,
    )


def store_conflict_retrying(
    max_attempts: int = 3,
    min_wait_ms: int = 10,
    max_wait_ms: int = 200,
) -> AsyncRetrying:
    """
    Async retry controller for whole-pipeline attempts on version conflicts.

    Args:
        max_attempts: Maximum number of pipeline attempts (default: 3)
        min_wait_ms: Minimum backoff in milliseconds (default: 10)
        max_wait_ms: Maximum backoff in milliseconds (default: 200)

    Example:
        async for attempt in store_conflict_retrying(3):
            with attempt:
                events = await pipeline.process(raw)
    """
    return AsyncRetrying(
        retry=retry_if_exception_type(StoreConflictError),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(
            multiplier=0.01,
            min=min_wait_ms / 1000.0,
            max=max_wait_ms / 1000.0,
        ),
        before_sleep=lambda retry_state: logger.warning(
            "Version conflict, re-running command",
            attempt=retry_state.attempt_number,
            exception=str(retry_state.outcome.exception()) if retry_state.outcome else None,
        ),
        reraise=True,
    )
