"""
Test Helper Functions - Builders for events and histories

Keeps tests readable: a franchise history is written as a short list of
(event_type, payload) pairs instead of fully spelled-out Event objects.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any

from franchise_ledger.kernel.events import Event

AGGREGATE_ID = "00000000-0000-7000-8000-0000000000aa"
TIMESTAMP = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_event(
    event_type: str,
    payload: dict[str, Any],
    version: int,
    aggregate_id: str = AGGREGATE_ID,
) -> Event:
    """Builder for a committed event"""
    return Event(
        aggregate_id=aggregate_id,
        version=version,
        event_type=event_type,
        timestamp=TIMESTAMP,
        payload=payload,
        metadata={},
    )


def history(*entries: tuple[str, dict[str, Any]], aggregate_id: str = AGGREGATE_ID) -> list[Event]:
    """
    Builder for a contiguous log starting at version 1

    Example:
        >>> history(
        ...     franchise_created(),
        ...     branch_added("BR1", "Downtown"),
        ... )
    """
    return [
        make_event(event_type, payload, version, aggregate_id)
        for version, (event_type, payload) in enumerate(entries, start=1)
    ]


def franchise_created(franchise_id: str = "STB1", name: str = "Starbucks") -> tuple[str, dict]:
    return "FranchiseCreated", {"franchiseId": franchise_id, "franchiseName": name, "version": 1}


def branch_added(branch_id: str, name: str, franchise_id: str = "STB1") -> tuple[str, dict]:
    return "BranchAdded", {"franchiseId": franchise_id, "branchId": branch_id, "branchName": name}


def product_added(branch_id: str, product_id: str, stock: int, name: str = "Espresso Beans") -> tuple[str, dict]:
    return "ProductAddedToBranch", {
        "branchId": branch_id,
        "productId": product_id,
        "productName": name,
        "initialStock": stock,
    }


def stock_updated(branch_id: str, product_id: str, old: int, change: int) -> tuple[str, dict]:
    return "ProductStockUpdated", {
        "branchId": branch_id,
        "productId": product_id,
        "oldStock": old,
        "newStock": old + change,
        "quantityChange": change,
    }


class FetchBarrierStore:
    """
    In-memory store whose fetch waits until `parties` fetches are in flight

    Forces concurrent commands to read the same version before any of them
    appends, so a version conflict is guaranteed rather than timing-dependent.
    Only the first `parties` fetches wait; later ones pass straight through.
    """

    def __init__(self, inner, parties: int = 2) -> None:
        self.inner = inner
        self.parties = parties
        self.arrived = 0
        self.released = asyncio.Event()

    async def fetch(self, aggregate_id: str) -> list[Event]:
        events = await self.inner.fetch(aggregate_id)
        if self.arrived < self.parties:
            self.arrived += 1
            if self.arrived == self.parties:
                self.released.set()
            await self.released.wait()
        return events

    async def append_transactional(self, aggregate_id, events, expected_version, registration=None):
        return await self.inner.append_transactional(aggregate_id, events, expected_version, registration)

    async def exists(self, content_hash: str) -> bool:
        return await self.inner.exists(content_hash)

    async def resolve_hash(self, content_hash: str) -> str | None:
        return await self.inner.resolve_hash(content_hash)

    async def resolve_aggregate(self, franchise_id: str) -> str | None:
        return await self.inner.resolve_aggregate(franchise_id)

    async def stream_version(self, aggregate_id: str) -> int:
        return await self.inner.stream_version(aggregate_id)
