"""
Kernel - Core event sourcing infrastructure

The kernel provides the machinery every command runs through: the command
envelope, committed events, the append-only event store with optimistic
locking, and the error taxonomy shared by all stages.

Fun fact: Event sourcing was inspired by accountants - they never erase ledger
entries, they add correcting entries. Stock levels here work the same way.
"""

from franchise_ledger.kernel.commands import Command, create_command
from franchise_ledger.kernel.errors import (
    DomainError,
    EventStoreError,
    InvariantViolationError,
    LedgerError,
    StoreConflictError,
    StoreUnavailableError,
    ValidationError,
)
from franchise_ledger.kernel.event_store import (
    EventStore,
    IdempotencyRegistration,
    IdempotencyStore,
    InMemoryEventStore,
    SQLiteEventStore,
)
from franchise_ledger.kernel.events import Event, NewEvent, create_event
from franchise_ledger.kernel.ids import IdFactory, generate_id
from franchise_ledger.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    # IDs
    "IdFactory",
    "generate_id",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    # Events & Commands
    "Event",
    "NewEvent",
    "create_event",
    "Command",
    "create_command",
    # Stores
    "EventStore",
    "IdempotencyStore",
    "IdempotencyRegistration",
    "InMemoryEventStore",
    "SQLiteEventStore",
    # Errors
    "LedgerError",
    "ValidationError",
    "DomainError",
    "InvariantViolationError",
    "EventStoreError",
    "StoreConflictError",
    "StoreUnavailableError",
]
