"""
FranchiseLedger - Main façade class

This is the primary interface for interacting with the franchise ledger.
It wires the event store, validator, idempotency gate, decision engine and
pipeline together from one LedgerSettings, and adds read-side helpers that
replay an aggregate's log on demand.

Example:
    >>> from franchise_ledger import FranchiseLedger
    >>> ledger = FranchiseLedger(LedgerSettings(db_path="franchises.db"))
    >>> await ledger.submit({"type": "CreateFranchise", "franchiseId": "STB1",
    ...                      "franchiseName": "Starbucks"})
    >>> await ledger.submit({"type": "AddBranch", "franchiseId": "STB1",
    ...                      "branchId": "BR1", "branchName": "Downtown"})
    >>> state = await ledger.state("STB1")
"""

from typing import Any

from franchise_ledger.franchise.handlers import FranchiseDecisionEngine
from franchise_ledger.franchise.models import AggregateState
from franchise_ledger.franchise.projections import replay
from franchise_ledger.franchise.validation import CommandValidator
from franchise_ledger.kernel.config import LedgerSettings
from franchise_ledger.kernel.errors import FranchiseNotFound, LedgerError
from franchise_ledger.kernel.event_store import SQLiteEventStore
from franchise_ledger.kernel.events import Event
from franchise_ledger.kernel.ids import IdFactory, default_id_factory, is_valid_uuid
from franchise_ledger.kernel.logging import LogOperation, get_logger
from franchise_ledger.kernel.retry import store_conflict_retrying
from franchise_ledger.kernel.time import RealTimeProvider, TimeProvider
from franchise_ledger.pipeline import CommandPipeline, error_result, events_result

logger = get_logger(__name__)


class FranchiseLedger:
    """
    Franchise ledger main façade

    Provides a unified API for:
    - Submitting commands (with or without conflict retries)
    - Reading an aggregate's history
    - Replaying an aggregate's current state
    - Resolving franchise ids to aggregate ids
    """

    def __init__(
        self,
        settings: LedgerSettings | None = None,
        time_provider: TimeProvider | None = None,
        id_factory: IdFactory = default_id_factory,
        event_store: Any | None = None,
    ) -> None:
        """
        Initialize the ledger

        Args:
            settings: Process settings (defaults if None)
            time_provider: Time provider (uses real time if None)
            id_factory: Mints aggregate, product and notification ids
            event_store: Store implementing EventStore and IdempotencyStore
                (a SQLiteEventStore at settings.db_path if None)
        """
        self.settings = settings or LedgerSettings()
        self.time_provider = time_provider or RealTimeProvider()

        self.event_store = event_store or SQLiteEventStore(
            self.settings.db_path,
            lock_retries=self.settings.sqlite_lock_retries,
            timeout_seconds=self.settings.sqlite_timeout_seconds,
        )
        self.decision_engine = FranchiseDecisionEngine(self.time_provider, id_factory)
        self.pipeline = CommandPipeline(
            self.event_store,
            self.event_store,
            self.decision_engine,
            validator=CommandValidator(self.settings),
            id_factory=id_factory,
        )

    # Command operations

    async def submit(self, raw: dict[str, Any]) -> dict[str, Any]:
        """
        Process one command once

        Returns:
            {"events": [...]} or {"error", "errorType", "retryable"}
        """
        return await self.pipeline.submit(raw)

    async def submit_with_retry(self, raw: dict[str, Any]) -> dict[str, Any]:
        """
        Process one command, re-running the whole pipeline on version conflicts

        Each attempt starts again from validation with freshly fetched
        history, so a retried decision is made against the latest state.
        Up to settings.conflict_retries attempts.
        """
        try:
            async for attempt in store_conflict_retrying(self.settings.conflict_retries):
                with attempt:
                    events = await self.pipeline.process(raw)
        except LedgerError as e:
            return error_result(e)
        return events_result(events)

    # Read operations

    async def resolve(self, franchise_id: str) -> str | None:
        """Aggregate id bound to a franchise id, or None"""
        return await self.event_store.resolve_aggregate(franchise_id)

    async def locate(self, reference: str) -> str:
        """
        Aggregate id for either an aggregate id or a franchise id

        Raises:
            FranchiseNotFound: If a franchise id is not bound
        """
        if is_valid_uuid(reference):
            return reference
        aggregate_id = await self.resolve(reference)
        if aggregate_id is None:
            raise FranchiseNotFound(reference)
        return aggregate_id

    async def history(self, reference: str) -> list[Event]:
        """Complete event log of an aggregate, ascending by version"""
        return await self.event_store.fetch(await self.locate(reference))

    async def state(self, reference: str) -> AggregateState:
        """
        Current state, replayed from the full log

        Nothing is cached: every call folds versions 1..N again.
        """
        aggregate_id = await self.locate(reference)
        with LogOperation(logger, "replay_aggregate", aggregate_id=aggregate_id):
            return replay(await self.event_store.fetch(aggregate_id))
