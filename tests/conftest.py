"""
Pytest configuration and shared fixtures

Fun fact: The name "conftest" comes from pytest's configuration testing
framework. Files named conftest.py are automatically discovered and their
fixtures are available to all tests in the same directory and subdirectories!
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from franchise_ledger.franchise.handlers import FranchiseDecisionEngine
from franchise_ledger.kernel.event_store import InMemoryEventStore, SQLiteEventStore
from franchise_ledger.kernel.ids import SequentialIdFactory
from franchise_ledger.kernel.time import TestTimeProvider
from franchise_ledger.pipeline import CommandPipeline


@pytest.fixture
def temp_db(tmp_path: Path) -> Path:
    """Provide a database path inside a per-test directory (WAL files included)"""
    return tmp_path / "ledger.db"


@pytest.fixture
def event_store(temp_db: Path) -> SQLiteEventStore:
    """Provide a fresh SQLite event store for each test"""
    return SQLiteEventStore(temp_db)


@pytest.fixture
def memory_store() -> InMemoryEventStore:
    """Provide a fresh in-memory event store for each test"""
    return InMemoryEventStore()


@pytest.fixture
def test_time() -> TestTimeProvider:
    """
    Provide a controllable time provider for deterministic tests

    Default time: 2025-01-15 12:00:00 UTC
    """
    return TestTimeProvider(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def id_factory() -> SequentialIdFactory:
    """Deterministic UUID-shaped ids: ...-000000000001, ...-000000000002, ..."""
    return SequentialIdFactory()


@pytest.fixture
def decision_engine(
    test_time: TestTimeProvider, id_factory: SequentialIdFactory
) -> FranchiseDecisionEngine:
    """
    Provide franchise command handlers for testing

    Handlers are stateless - they take the snapshot as a parameter.
    """
    return FranchiseDecisionEngine(test_time, id_factory)


@pytest.fixture
def pipeline(
    memory_store: InMemoryEventStore,
    decision_engine: FranchiseDecisionEngine,
    id_factory: SequentialIdFactory,
) -> CommandPipeline:
    """Pipeline over the in-memory store"""
    return CommandPipeline(memory_store, memory_store, decision_engine, id_factory=id_factory)


@pytest.fixture
def sqlite_pipeline(
    event_store: SQLiteEventStore,
    decision_engine: FranchiseDecisionEngine,
    id_factory: SequentialIdFactory,
) -> CommandPipeline:
    """Pipeline over the SQLite store"""
    return CommandPipeline(event_store, event_store, decision_engine, id_factory=id_factory)
