"""
Base Event model for event sourcing

Events are immutable facts about what happened to one aggregate.
The append-only sequence per aggregate id is the system of record.

Two shapes exist:
- NewEvent: emitted by the decision engine, not yet versioned
- Event: committed by the event store with its assigned version
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class NewEvent(BaseModel):
    """
    An event decided on but not yet appended

    Versions are assigned only at append time, so a NewEvent carries
    everything except the version number.
    """

    aggregate_id: str = Field(
        ...,
        alias="aggregateId",
        description="Aggregate root identifier - groups related events",
    )

    event_type: str = Field(
        ...,
        alias="type",
        description="Past-tense transition name: 'FranchiseCreated', 'BranchAdded', etc.",
    )

    timestamp: datetime = Field(
        ...,
        description="UTC timestamp when the event was decided",
    )

    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Transition-specific data (must be JSON-serializable)",
    )

    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Command type, content hash, correlation id",
    )

    model_config = {"frozen": True, "populate_by_name": True}

    def with_version(self, version: int) -> "Event":
        """Bind the store-assigned version, producing a committed Event"""
        return Event(
            aggregate_id=self.aggregate_id,
            version=version,
            event_type=self.event_type,
            timestamp=self.timestamp,
            payload=self.payload,
            metadata=self.metadata,
        )


class Event(BaseModel):
    """
    Committed event - one entry of an aggregate's log

    Events are:
    - Immutable (never modified after append)
    - Append-only (never deleted)
    - Versioned (contiguous 1..N per aggregate, assigned by the store)
    - Replayable (deterministic state reconstruction)
    """

    aggregate_id: str = Field(
        ...,
        alias="aggregateId",
        description="Aggregate root identifier - groups related events",
    )

    version: int = Field(
        ...,
        description="Position in the aggregate log (gap-free, starts at 1)",
        ge=1,
    )

    event_type: str = Field(
        ...,
        alias="type",
        description="Past-tense transition name: 'FranchiseCreated', 'BranchAdded', etc.",
    )

    timestamp: datetime = Field(
        ...,
        description="UTC timestamp when the event was decided",
    )

    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Transition-specific data (must be JSON-serializable)",
    )

    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Command type, content hash, correlation id",
    )

    model_config = {
        "frozen": True,  # Events are immutable
        "populate_by_name": True,
        "json_schema_extra": {
            "examples": [
                {
                    "aggregateId": "01908e9a-3b87-7000-8000-123456789abc",
                    "version": 1,
                    "type": "FranchiseCreated",
                    "timestamp": "2025-01-15T10:30:00Z",
                    "payload": {"franchiseId": "STB1", "franchiseName": "Starbucks"},
                    "metadata": {"commandType": "CreateFranchise"},
                }
            ]
        },
    }

    def to_wire(self) -> dict[str, Any]:
        """Persisted/outbound record with camelCase keys and ISO-8601 timestamp"""
        return self.model_dump(mode="json", by_alias=True)


def create_event(
    *,
    aggregate_id: str,
    event_type: str,
    timestamp: datetime,
    payload: dict[str, Any] | None = None,
    metadata: dict[str, Any] | None = None,
) -> NewEvent:
    """
    Factory function for creating not-yet-versioned events

    This provides a clean way to construct events with named parameters
    and ensures all required fields are provided.
    """
    return NewEvent(
        aggregate_id=aggregate_id,
        event_type=event_type,
        timestamp=timestamp,
        payload=payload or {},
        metadata=metadata or {},
    )
