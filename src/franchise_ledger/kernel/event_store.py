"""
Event Store - Append-only event log with optimistic concurrency

The event store is the source of truth and the sole point of
synchronization between concurrent commands. It provides:
- Append-only semantics (events never modified or deleted)
- Gap-free versions assigned at append time (1..N per aggregate)
- Optimistic locking: an append names the version it expects to follow
- Atomic creation: first events and the idempotency registration commit together

Collaborators are consumed through the EventStore and IdempotencyStore
protocols; SQLiteEventStore and InMemoryEventStore implement both.
"""

import asyncio
import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Protocol

from pydantic import BaseModel, Field

from franchise_ledger.kernel.errors import (
    LedgerError,
    StoreConflictError,
    StoreUnavailableError,
)
from franchise_ledger.kernel.events import Event, NewEvent
from franchise_ledger.kernel.logging import get_logger
from franchise_ledger.kernel.metrics import (
    events_appended_total,
    events_loaded_total,
    store_failures_total,
    version_conflicts_total,
)
from franchise_ledger.kernel.retry import retry_on_sqlite_lock

logger = get_logger(__name__)


class IdempotencyRegistration(BaseModel):
    """
    Binding written together with a creation command's first event

    content_hash -> aggregate_id is written exactly once; franchise_id
    lets later commands address the aggregate by its business id.
    """

    content_hash: str = Field(..., min_length=64, max_length=64)
    aggregate_id: str
    franchise_id: str

    model_config = {"frozen": True}


class EventStore(Protocol):
    """Reader/writer contract for per-aggregate event logs"""

    async def fetch(self, aggregate_id: str) -> list[Event]:
        """Complete history of one aggregate, ascending by version"""
        ...

    async def append_transactional(
        self,
        aggregate_id: str,
        events: list[NewEvent],
        expected_version: int,
        registration: IdempotencyRegistration | None = None,
    ) -> list[Event]:
        """Append events after expected_version, all-or-nothing"""
        ...


class IdempotencyStore(Protocol):
    """Lookup side of creation-command registrations and aggregate addressing"""

    async def exists(self, content_hash: str) -> bool:
        """True if a creation with this content hash was committed"""
        ...

    async def resolve_hash(self, content_hash: str) -> str | None:
        """Aggregate id a content hash was registered to, or None"""
        ...

    async def resolve_aggregate(self, franchise_id: str) -> str | None:
        """Aggregate id bound to a franchise id, or None"""
        ...

    async def stream_version(self, aggregate_id: str) -> int:
        """Current version of an aggregate's log (0 if it has no events)"""
        ...


def assign_versions(
    aggregate_id: str, events: list[NewEvent], expected_version: int
) -> list[Event]:
    """
    Bind consecutive versions to events in emission order

    Raises:
        ValueError: If an event belongs to a different aggregate
    """
    committed = []
    for offset, event in enumerate(events, start=1):
        if event.aggregate_id != aggregate_id:
            raise ValueError(
                f"Event for aggregate {event.aggregate_id} cannot be appended to {aggregate_id}"
            )
        committed.append(event.with_version(expected_version + offset))
    return committed


def _record_appended(events: list[Event]) -> None:
    for event in events:
        events_appended_total.labels(event_type=event.event_type).inc()


class InMemoryEventStore:
    """
    Process-local event store for tests and single-process tooling

    Each append runs to completion without suspending, so the version
    check and the write are atomic with respect to other asyncio tasks.
    """

    def __init__(self) -> None:
        self._streams: dict[str, list[Event]] = {}
        self._hashes: dict[str, str] = {}
        self._franchises: dict[str, str] = {}

    async def fetch(self, aggregate_id: str) -> list[Event]:
        events = list(self._streams.get(aggregate_id, []))
        events_loaded_total.inc(len(events))
        return events

    async def append_transactional(
        self,
        aggregate_id: str,
        events: list[NewEvent],
        expected_version: int,
        registration: IdempotencyRegistration | None = None,
    ) -> list[Event]:
        if not events:
            return []

        stream = self._streams.get(aggregate_id, [])
        current_version = stream[-1].version if stream else 0
        if current_version != expected_version:
            version_conflicts_total.inc()
            raise StoreConflictError(aggregate_id, expected_version, current_version)

        if registration is not None:
            if registration.content_hash in self._hashes:
                version_conflicts_total.inc()
                raise StoreConflictError(
                    aggregate_id, expected_version, current_version,
                    reason="content hash already registered",
                )
            if registration.franchise_id in self._franchises:
                version_conflicts_total.inc()
                raise StoreConflictError(
                    aggregate_id, expected_version, current_version,
                    reason=f"franchise {registration.franchise_id} already bound",
                )

        committed = assign_versions(aggregate_id, events, expected_version)

        # No await between the check above and these writes
        self._streams[aggregate_id] = stream + committed
        if registration is not None:
            self._hashes[registration.content_hash] = registration.aggregate_id
            self._franchises[registration.franchise_id] = registration.aggregate_id

        _record_appended(committed)
        return committed

    async def exists(self, content_hash: str) -> bool:
        return content_hash in self._hashes

    async def resolve_hash(self, content_hash: str) -> str | None:
        return self._hashes.get(content_hash)

    async def resolve_aggregate(self, franchise_id: str) -> str | None:
        return self._franchises.get(franchise_id)

    async def stream_version(self, aggregate_id: str) -> int:
        stream = self._streams.get(aggregate_id)
        return stream[-1].version if stream else 0

    def count_events(self) -> int:
        """Get total number of events in store"""
        return sum(len(stream) for stream in self._streams.values())


class SQLiteEventStore:
    """
    SQLite-based event store with append-only semantics

    Blocking sqlite3 calls run in worker threads via asyncio.to_thread, so
    the three I/O operations are the pipeline's only suspension points.

    Schema:
    - events: append-only log, PRIMARY KEY (aggregate_id, version)
    - idempotency: content_hash PRIMARY KEY, franchise_id UNIQUE

    Appends open a BEGIN IMMEDIATE transaction: the version check and the
    inserts happen under SQLite's write lock, and the unique keys reject
    any writer that slips past the check.
    """

    def __init__(
        self,
        db_path: str | Path,
        *,
        lock_retries: int = 3,
        timeout_seconds: float = 5.0,
    ) -> None:
        """
        Initialize event store with SQLite database

        Args:
            db_path: Path to SQLite database file
            lock_retries: Attempts on 'database is locked' before giving up
            timeout_seconds: SQLite busy timeout per connection
        """
        self.db_path = Path(db_path)
        self.timeout_seconds = timeout_seconds
        self._append_with_retry = retry_on_sqlite_lock(max_attempts=lock_retries)(
            self._append_sync
        )
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        """Create tables and indices if they don't exist"""
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    aggregate_id TEXT NOT NULL,
                    version INTEGER NOT NULL CHECK (version >= 1),
                    event_type TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    payload_json TEXT NOT NULL,
                    metadata_json TEXT NOT NULL,

                    PRIMARY KEY (aggregate_id, version)
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS idempotency (
                    content_hash TEXT PRIMARY KEY,
                    aggregate_id TEXT NOT NULL,
                    franchise_id TEXT NOT NULL UNIQUE
                )
            """)

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_type ON events(event_type)"
            )

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """
        Context manager for database connections

        Connections run in autocommit mode; transactions are opened
        explicitly where atomicity matters.
        """
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.timeout_seconds,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    # ========== Async collaborator surface ==========

    async def fetch(self, aggregate_id: str) -> list[Event]:
        """
        Load all events for an aggregate in version order

        Raises:
            StoreUnavailableError: On database errors
        """
        try:
            events = await asyncio.to_thread(self._fetch_sync, aggregate_id)
        except sqlite3.Error as e:
            store_failures_total.labels(operation="fetch").inc()
            logger.error("Event fetch failed", aggregate_id=aggregate_id, error=str(e))
            raise StoreUnavailableError("fetch", aggregate_id=aggregate_id, cause=e) from e
        events_loaded_total.inc(len(events))
        return events

    async def append_transactional(
        self,
        aggregate_id: str,
        events: list[NewEvent],
        expected_version: int,
        registration: IdempotencyRegistration | None = None,
    ) -> list[Event]:
        """
        Append events to an aggregate with optimistic locking

        Args:
            aggregate_id: Aggregate root identifier
            events: Undecorated events, in emission order
            expected_version: Version the log must currently be at (0 for new)
            registration: Idempotency binding for creation commands

        Returns:
            The committed events with their assigned versions

        Raises:
            StoreConflictError: If the log moved past expected_version, or a
                unique key rejected the write
            StoreUnavailableError: On other database errors
        """
        if not events:
            return []

        committed = assign_versions(aggregate_id, events, expected_version)
        try:
            await asyncio.to_thread(
                self._append_with_retry, aggregate_id, committed, expected_version, registration
            )
        except StoreConflictError as e:
            version_conflicts_total.inc()
            logger.warning(
                "Version conflict on append",
                aggregate_id=aggregate_id,
                expected_version=e.expected_version,
                actual_version=e.actual_version,
            )
            raise
        except LedgerError:
            raise
        except sqlite3.Error as e:
            store_failures_total.labels(operation="append").inc()
            logger.error("Event append failed", aggregate_id=aggregate_id, error=str(e))
            raise StoreUnavailableError("append", aggregate_id=aggregate_id, cause=e) from e

        _record_appended(committed)
        logger.debug(
            "Events appended",
            aggregate_id=aggregate_id,
            versions=[event.version for event in committed],
            registered=registration is not None,
        )
        return committed

    async def exists(self, content_hash: str) -> bool:
        try:
            return await asyncio.to_thread(self._exists_sync, content_hash)
        except sqlite3.Error as e:
            store_failures_total.labels(operation="exists").inc()
            raise StoreUnavailableError("exists", cause=e) from e

    async def resolve_aggregate(self, franchise_id: str) -> str | None:
        try:
            return await asyncio.to_thread(self._resolve_sync, franchise_id)
        except sqlite3.Error as e:
            store_failures_total.labels(operation="resolve").inc()
            raise StoreUnavailableError("resolve", cause=e) from e

    async def resolve_hash(self, content_hash: str) -> str | None:
        try:
            return await asyncio.to_thread(self._resolve_hash_sync, content_hash)
        except sqlite3.Error as e:
            store_failures_total.labels(operation="resolve").inc()
            raise StoreUnavailableError("resolve", cause=e) from e

    async def stream_version(self, aggregate_id: str) -> int:
        try:
            return await asyncio.to_thread(self.get_version, aggregate_id)
        except sqlite3.Error as e:
            store_failures_total.labels(operation="fetch").inc()
            raise StoreUnavailableError("fetch", aggregate_id=aggregate_id, cause=e) from e

    # ========== Blocking internals (run in worker threads) ==========

    def _append_sync(
        self,
        aggregate_id: str,
        committed: list[Event],
        expected_version: int,
        registration: IdempotencyRegistration | None,
    ) -> None:
        with self._connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                current_version = self._get_version(conn, aggregate_id)
                if current_version != expected_version:
                    raise StoreConflictError(aggregate_id, expected_version, current_version)

                conn.executemany(
                    """
                    INSERT INTO events (
                        aggregate_id, version, event_type, timestamp,
                        payload_json, metadata_json
                    ) VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            event.aggregate_id,
                            event.version,
                            event.event_type,
                            event.timestamp.isoformat(),
                            json.dumps(event.payload),
                            json.dumps(event.metadata),
                        )
                        for event in committed
                    ],
                )

                if registration is not None:
                    conn.execute(
                        "INSERT INTO idempotency (content_hash, aggregate_id, franchise_id) "
                        "VALUES (?, ?, ?)",
                        (
                            registration.content_hash,
                            registration.aggregate_id,
                            registration.franchise_id,
                        ),
                    )

                conn.execute("COMMIT")

            except sqlite3.IntegrityError as e:
                conn.execute("ROLLBACK")
                raise StoreConflictError(
                    aggregate_id,
                    expected_version,
                    self._get_version(conn, aggregate_id),
                    reason=str(e),
                ) from e

            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise

    def _fetch_sync(self, aggregate_id: str) -> list[Event]:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                SELECT aggregate_id, version, event_type, timestamp,
                       payload_json, metadata_json
                FROM events
                WHERE aggregate_id = ?
                ORDER BY version ASC
                """,
                (aggregate_id,),
            )
            return [self._row_to_event(row) for row in cursor.fetchall()]

    def _exists_sync(self, content_hash: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT 1 FROM idempotency WHERE content_hash = ?", (content_hash,)
            )
            return cursor.fetchone() is not None

    def _resolve_hash_sync(self, content_hash: str) -> str | None:
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT aggregate_id FROM idempotency WHERE content_hash = ?",
                (content_hash,),
            )
            row = cursor.fetchone()
            return row["aggregate_id"] if row else None

    def _resolve_sync(self, franchise_id: str) -> str | None:
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT aggregate_id FROM idempotency WHERE franchise_id = ?",
                (franchise_id,),
            )
            row = cursor.fetchone()
            return row["aggregate_id"] if row else None

    def _get_version(self, conn: sqlite3.Connection, aggregate_id: str) -> int:
        """Current max version within a connection (0 if the log is empty)"""
        cursor = conn.execute(
            "SELECT MAX(version) FROM events WHERE aggregate_id = ?",
            (aggregate_id,),
        )
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0

    def _row_to_event(self, row: sqlite3.Row) -> Event:
        """Convert SQLite row to Event object"""
        return Event(
            aggregate_id=row["aggregate_id"],
            version=row["version"],
            event_type=row["event_type"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
            payload=json.loads(row["payload_json"]),
            metadata=json.loads(row["metadata_json"]),
        )

    # ========== Operational queries ==========

    def get_version(self, aggregate_id: str) -> int:
        """Current version of an aggregate (0 if it has no events)"""
        with self._connect() as conn:
            return self._get_version(conn, aggregate_id)

    def count_events(self) -> int:
        """Get total number of events in store"""
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]

    def count_aggregates(self) -> int:
        """Get total number of distinct aggregates"""
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(DISTINCT aggregate_id) FROM events").fetchone()[0]
