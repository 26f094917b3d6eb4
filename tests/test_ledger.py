"""
Tests for the FranchiseLedger façade

The façade wires everything from one LedgerSettings. These tests drive it
the way an application would: submit commands, then read history and
replayed state back by franchise id or aggregate id.
"""

import asyncio
from pathlib import Path

import pytest

from franchise_ledger import FranchiseLedger
from franchise_ledger.kernel.config import LedgerSettings
from franchise_ledger.kernel.errors import FranchiseNotFound, StoreConflictError
from franchise_ledger.kernel.event_store import InMemoryEventStore, SQLiteEventStore
from franchise_ledger.kernel.ids import SequentialIdFactory
from helpers import FetchBarrierStore

FIRST_ID = "00000000-0000-7000-8000-000000000001"

CREATE = {"type": "CreateFranchise", "franchiseId": "STB1", "franchiseName": "Starbucks"}


def add_branch(branch_id: str, name: str) -> dict:
    return {"type": "AddBranch", "franchiseId": "STB1", "branchId": branch_id, "branchName": name}


class AlwaysConflictingStore(InMemoryEventStore):
    """Every append loses the race"""

    def __init__(self) -> None:
        super().__init__()
        self.attempts = 0

    async def append_transactional(self, aggregate_id, events, expected_version, registration=None):
        self.attempts += 1
        raise StoreConflictError(aggregate_id, expected_version, expected_version + 1)


@pytest.fixture
def ledger(temp_db: Path, test_time) -> FranchiseLedger:
    """Ledger over a fresh SQLite file"""
    return FranchiseLedger(
        LedgerSettings(db_path=temp_db),
        time_provider=test_time,
        id_factory=SequentialIdFactory(),
    )


def test_default_store_is_sqlite_at_settings_path(ledger: FranchiseLedger, temp_db: Path) -> None:
    assert isinstance(ledger.event_store, SQLiteEventStore)
    assert ledger.event_store.db_path == temp_db


@pytest.mark.asyncio
async def test_submit_and_read_back(ledger: FranchiseLedger) -> None:
    created = await ledger.submit(CREATE)
    await ledger.submit(add_branch("BR1", "Downtown"))

    assert created["events"][0]["aggregateId"] == FIRST_ID

    state = await ledger.state("STB1")
    assert state.franchise_name == "Starbucks"
    assert state.version == 2
    assert list(state.branches) == ["BR1"]

    history = await ledger.history(FIRST_ID)
    assert [e.event_type for e in history] == ["FranchiseCreated", "BranchAdded"]


@pytest.mark.asyncio
async def test_state_is_replayed_every_time(ledger: FranchiseLedger) -> None:
    await ledger.submit(CREATE)
    before = await ledger.state("STB1")

    await ledger.submit(add_branch("BR1", "Downtown"))
    after = await ledger.state("STB1")

    assert before.branches == {}
    assert "BR1" in after.branches


@pytest.mark.asyncio
async def test_locate(ledger: FranchiseLedger) -> None:
    await ledger.submit(CREATE)

    assert await ledger.resolve("STB1") == FIRST_ID
    assert await ledger.locate("STB1") == FIRST_ID
    assert await ledger.locate(FIRST_ID) == FIRST_ID
    assert await ledger.resolve("STB2") is None

    with pytest.raises(FranchiseNotFound):
        await ledger.locate("STB2")


@pytest.mark.asyncio
async def test_submit_reports_errors(ledger: FranchiseLedger) -> None:
    result = await ledger.submit(add_branch("BR1", "Downtown"))

    assert result["errorType"] == "FranchiseNotFound"
    assert result["retryable"] is False


@pytest.mark.asyncio
async def test_submit_with_retry_recovers_from_conflict(test_time) -> None:
    """The losing writer re-runs against fresh history and succeeds"""
    inner = InMemoryEventStore()
    ledger = FranchiseLedger(
        LedgerSettings(conflict_retries=3),
        time_provider=test_time,
        id_factory=SequentialIdFactory(),
        event_store=FetchBarrierStore(inner),
    )
    await ledger.submit(CREATE)

    results = await asyncio.gather(
        ledger.submit_with_retry(add_branch("BR1", "Downtown")),
        ledger.submit_with_retry(add_branch("BR2", "Airport")),
    )

    assert all("events" in result for result in results)
    assert sorted(r["events"][0]["version"] for r in results) == [2, 3]
    assert [e.version for e in await inner.fetch(FIRST_ID)] == [1, 2, 3]


@pytest.mark.asyncio
async def test_submit_with_retry_gives_up(test_time) -> None:
    store = AlwaysConflictingStore()
    ledger = FranchiseLedger(
        LedgerSettings(conflict_retries=2),
        time_provider=test_time,
        event_store=store,
    )

    result = await ledger.submit_with_retry(CREATE)

    assert result["errorType"] == "StoreConflictError"
    assert result["retryable"] is True
    assert store.attempts == 2


@pytest.mark.asyncio
async def test_submit_with_retry_does_not_retry_terminal_errors(test_time) -> None:
    store = AlwaysConflictingStore()
    ledger = FranchiseLedger(LedgerSettings(), time_provider=test_time, event_store=store)

    result = await ledger.submit_with_retry({"type": "CreateFranchise"})

    assert result["errorType"] == "ValidationError"
    assert store.attempts == 0
