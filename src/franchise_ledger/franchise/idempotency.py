"""
Idempotency Gate - Content-hash deduplication and aggregate addressing

Creation commands are deduplicated by the SHA-256 of their canonical
content: the same CreateFranchise submitted twice creates one franchise.
The gate only reads. The content hash is registered by the event store in
the same transaction as the franchise's first event, so a crash between the
two can never leave a hash registered with no history behind it.

Non-creation commands pass through; the gate only resolves which aggregate
they address.
"""

import hashlib
import json

from pydantic import BaseModel

from franchise_ledger.franchise.commands import FranchiseCommand, is_creation
from franchise_ledger.kernel.commands import Command
from franchise_ledger.kernel.errors import (
    DuplicateCommandError,
    FranchiseAlreadyExists,
    FranchiseNotFound,
)
from franchise_ledger.kernel.event_store import IdempotencyRegistration, IdempotencyStore
from franchise_ledger.kernel.ids import IdFactory, default_id_factory
from franchise_ledger.kernel.logging import get_logger
from franchise_ledger.kernel.metrics import duplicate_commands_total

logger = get_logger(__name__)


def canonicalize(command: Command) -> str:
    """
    Canonical text form of a command

    Sorted keys and compact separators, so field order and whitespace in
    the inbound JSON never change the hash.
    """
    return json.dumps(
        {"type": command.type, "fields": command.fields},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )


def content_hash(command: Command) -> str:
    """SHA-256 hex digest of the canonical UTF-8 encoding"""
    return hashlib.sha256(canonicalize(command).encode("utf-8")).hexdigest()


class AdmittedCommand(BaseModel):
    """
    A command that passed the gate, bound to its aggregate

    Attributes:
        command: The typed command
        aggregate_id: Aggregate whose log the command appends to
        content_hash: Hash of the canonical command content
        creation: True for commands that start a new log
        registration: Binding to write atomically with the first event
            (creation commands only)
    """

    command: FranchiseCommand
    aggregate_id: str
    content_hash: str
    creation: bool = False
    registration: IdempotencyRegistration | None = None

    model_config = {"frozen": True}


class IdempotencyGate:
    """
    Admits commands into the pipeline

    Suspends only on IdempotencyStore lookups; holds no state between calls.
    """

    def __init__(
        self,
        store: IdempotencyStore,
        id_factory: IdFactory = default_id_factory,
    ) -> None:
        self.store = store
        self.id_factory = id_factory

    async def admit(self, envelope: Command, command: FranchiseCommand) -> AdmittedCommand:
        """
        Gate one validated command

        Args:
            envelope: The raw command envelope (hashed as received)
            command: Its typed form

        Returns:
            AdmittedCommand bound to an aggregate id

        Raises:
            DuplicateCommandError: Creation content already committed
            FranchiseAlreadyExists: Creation for a franchise id already bound, or
                for a supplied aggregate id whose log is not empty
            FranchiseNotFound: Non-creation command whose franchise id is unbound
        """
        digest = content_hash(envelope)

        if is_creation(envelope.type):
            return await self._admit_creation(envelope, command, digest)

        aggregate_id = command.aggregate_id
        if aggregate_id is None:
            franchise_id = command.franchise_id or ""
            aggregate_id = await self.store.resolve_aggregate(franchise_id)
            if aggregate_id is None:
                raise FranchiseNotFound(franchise_id)

        return AdmittedCommand(command=command, aggregate_id=aggregate_id, content_hash=digest)

    async def _admit_creation(
        self, envelope: Command, command: FranchiseCommand, digest: str
    ) -> AdmittedCommand:
        if await self.store.exists(digest):
            original = await self.store.resolve_hash(digest)
            duplicate_commands_total.inc()
            logger.info(
                "Duplicate creation command rejected",
                content_hash=digest,
                original_aggregate_id=original,
            )
            raise DuplicateCommandError(digest, canonicalize(envelope), aggregate_id=original)

        franchise_id = command.franchise_id or ""
        bound = await self.store.resolve_aggregate(franchise_id)
        if bound is not None:
            raise FranchiseAlreadyExists(franchise_id, aggregate_id=bound)

        # A caller-chosen aggregate id must name an empty log
        if command.aggregate_id is not None and await self.store.stream_version(command.aggregate_id) > 0:
            raise FranchiseAlreadyExists(franchise_id, aggregate_id=command.aggregate_id)

        aggregate_id = command.aggregate_id or self.id_factory.generate()
        registration = IdempotencyRegistration(
            content_hash=digest,
            aggregate_id=aggregate_id,
            franchise_id=franchise_id,
        )
        return AdmittedCommand(
            command=command,
            aggregate_id=aggregate_id,
            content_hash=digest,
            creation=True,
            registration=registration,
        )
