"""
Command Pipeline - One command, start to finish

    raw JSON -> validate -> idempotency gate -> fetch history (skipped on
    creation) -> project -> decide -> append -> committed events

Each stage either hands a value to the next or raises; the first failure
ends the attempt. Validation, projection and decision are synchronous and
pure. The only suspension points are the gate's store lookups, the history
fetch and the append, so concurrent commands interleave only there and the
append's version check is what keeps them honest.

The pipeline never retries. StoreConflictError and StoreUnavailableError
are marked retryable; a caller that wants retries re-runs process() from
the top (see FranchiseLedger.submit_with_retry).
"""

import time
from typing import Any

from franchise_ledger.franchise.commands import FRANCHISE_COMMAND_TYPES
from franchise_ledger.franchise.handlers import FranchiseDecisionEngine
from franchise_ledger.franchise.idempotency import IdempotencyGate
from franchise_ledger.franchise.models import AggregateState
from franchise_ledger.franchise.projections import project
from franchise_ledger.franchise.validation import CommandValidator
from franchise_ledger.kernel.commands import Command, create_command
from franchise_ledger.kernel.errors import LedgerError, StoreUnavailableError, ValidationError
from franchise_ledger.kernel.event_store import EventStore, IdempotencyStore
from franchise_ledger.kernel.events import Event
from franchise_ledger.kernel.ids import IdFactory, default_id_factory
from franchise_ledger.kernel.logging import (
    bind_command_context,
    clear_command_context,
    generate_correlation_id,
    get_logger,
    set_correlation_id,
)
from franchise_ledger.kernel.metrics import record_command_outcome

logger = get_logger(__name__)


class CommandPipeline:
    """
    Orchestrates the stages for one command at a time per task

    All collaborators are injected; the pipeline keeps no per-request
    state on self, so one instance serves any number of concurrent tasks.
    """

    def __init__(
        self,
        event_store: EventStore,
        idempotency_store: IdempotencyStore,
        decision_engine: FranchiseDecisionEngine,
        validator: CommandValidator | None = None,
        id_factory: IdFactory = default_id_factory,
    ) -> None:
        """
        Args:
            event_store: Reader/writer of aggregate logs
            idempotency_store: Content-hash and franchise-id lookups
            decision_engine: Command -> event decisions
            validator: Field-schema validator (default settings if None)
            id_factory: Mints aggregate ids for creation commands
        """
        self.event_store = event_store
        self.decision_engine = decision_engine
        self.validator = validator or CommandValidator()
        self.gate = IdempotencyGate(idempotency_store, id_factory)

    async def process(self, raw: Any) -> list[Event]:
        """
        Run one command through every stage

        Args:
            raw: Inbound JSON object: {"type": ..., <fields>}

        Returns:
            The committed events, with their store-assigned versions

        Raises:
            ValidationError: Malformed command (terminal)
            DomainError: Duplicate, missing entity or broken invariant (terminal)
            EventStoreError: Version conflict or store failure (retryable)
        """
        set_correlation_id(generate_correlation_id())
        clear_command_context()
        started = time.perf_counter()
        command_type = "unknown"

        try:
            envelope = self._envelope(raw)
            if envelope.type in FRANCHISE_COMMAND_TYPES:
                command_type = envelope.type
            bind_command_context(command_type=command_type)
            events = await self._run(envelope)

        except LedgerError as e:
            status = "failed" if e.retryable else "rejected"
            record_command_outcome(command_type, status, time.perf_counter() - started)
            log = logger.error if e.retryable else logger.info
            log(
                "Command not applied",
                status=status,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        record_command_outcome(command_type, "accepted", time.perf_counter() - started)
        logger.info(
            "Command applied",
            versions=[event.version for event in events],
        )
        return events

    async def _run(self, envelope: Command) -> list[Event]:
        command = self.validator.parse(envelope)
        aggregate_id = command.aggregate_id

        try:
            admitted = await self.gate.admit(envelope, command)
            aggregate_id = admitted.aggregate_id
            bind_command_context(aggregate_id=aggregate_id)

            history: list[Event] = []
            if not admitted.creation:
                history = await self.event_store.fetch(aggregate_id)

            snapshot = project(AggregateState(), history)
            expected_version = history[-1].version if history else 0

            new_events = self.decision_engine.decide(
                command,
                snapshot,
                aggregate_id,
                content_hash=admitted.content_hash if admitted.creation else None,
            )

            return await self.event_store.append_transactional(
                aggregate_id,
                new_events,
                expected_version,
                registration=admitted.registration,
            )

        except StoreUnavailableError as e:
            # Stores know the operation; only the pipeline knows the command
            raise StoreUnavailableError(
                e.operation,
                aggregate_id=e.aggregate_id or aggregate_id,
                command_type=envelope.type,
                cause=e.cause,
            ) from e

    def _envelope(self, raw: Any) -> Command:
        if isinstance(raw, Command):
            return raw
        if not isinstance(raw, dict):
            raise ValidationError("", ["Command must be a JSON object"])
        return create_command(raw)

    async def submit(self, raw: Any) -> dict[str, Any]:
        """
        Boundary form of process(): never raises a LedgerError

        Returns:
            {"events": [<wire events>]} on success, otherwise
            {"error": message, "errorType": class name, "retryable": bool}
            plus "errors" for validation failures
        """
        try:
            events = await self.process(raw)
        except LedgerError as e:
            return error_result(e)
        return events_result(events)


def events_result(events: list[Event]) -> dict[str, Any]:
    return {"events": [event.to_wire() for event in events]}


def error_result(error: LedgerError) -> dict[str, Any]:
    """Explicit failure value for the boundary"""
    result: dict[str, Any] = {
        "error": str(error),
        "errorType": type(error).__name__,
        "retryable": error.retryable,
    }
    if isinstance(error, ValidationError):
        result["errors"] = error.errors
    return result
