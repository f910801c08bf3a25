"""
In-memory ledger store.

Used when embedding the ledger in a single process and by the unit tests.
Writers are serialised by an ``asyncio.Lock``.  Nothing here awaits
between related writes, so readers on the same event loop never observe
a half-applied change: a trip and the counter that exposes it are
published together, and fare rates are swapped as one immutable value.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Any, AsyncIterator, Optional

from src.domain.entities import LedgerEvent, Trip
from src.domain.enums import LedgerEventType
from src.domain.ledger import LedgerState, LedgerStore
from src.domain.pricing import FareRates


class InMemoryLedgerStore(LedgerStore):
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._state: Optional[LedgerState] = None
        self._drivers: dict[str, bool] = {}
        self._trips: dict[int, Trip] = {}
        self._events: list[LedgerEvent] = []

    @asynccontextmanager
    async def writer(self) -> AsyncIterator[None]:
        async with self._lock:
            yield

    async def load_state(self) -> Optional[LedgerState]:
        return self._state

    async def create_state(self, administrator: str, rates: FareRates) -> None:
        self._state = LedgerState(administrator=administrator, rates=rates)

    async def set_administrator(self, administrator: str) -> None:
        self._state = replace(self._state, administrator=administrator)

    async def set_fare_rates(self, rates: FareRates) -> None:
        self._state = replace(self._state, rates=rates)

    async def is_driver(self, principal: str) -> bool:
        return self._drivers.get(principal, False)

    async def set_driver(self, principal: str, registered: bool) -> None:
        self._drivers[principal] = registered

    async def get_trip(self, trip_id: int) -> Optional[Trip]:
        return self._trips.get(trip_id)

    async def append_trip(self, trip: Trip) -> None:
        self._trips[trip.id] = trip
        self._state = replace(self._state, trip_count=trip.id)

    async def append_event(
        self, event_type: LedgerEventType, payload: dict[str, Any], timestamp: int
    ) -> LedgerEvent:
        event = LedgerEvent(
            sequence=len(self._events) + 1,
            event_type=event_type,
            payload=dict(payload),
            timestamp=timestamp,
        )
        self._events.append(event)
        return event

    async def list_events(self, after: int = 0, limit: int = 100) -> list[LedgerEvent]:
        # sequence n lives at index n - 1
        start = max(after, 0)
        return self._events[start : start + limit]
