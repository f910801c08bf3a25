"""
Access-controlled ledger state machine.

Roles
-----
* **Administrator** -- manages drivers, fare rates and the administrator
  seat itself.
* **Registered driver** -- records trips.

Both roles are checked per call at the top of each mutating operation,
before anything is written.  A failed operation changes nothing and emits
no notification.

Storage is reached through the ``LedgerStore`` port so the same rules run
over the in-memory store and the SQL store.  Every mutation runs inside
``store.writer()``, which serialises writers.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncContextManager, Callable, Optional

from .entities import (
    NULL_PRINCIPAL,
    LedgerAlreadyInitialized,
    LedgerEvent,
    LedgerNotInitialized,
    Trip,
    Unauthorized,
    normalize_principal,
    parse_data_hash,
)
from .enums import LedgerEventType, Role
from .pricing import FareRates, ensure_uint256

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerState:
    administrator: str
    rates: FareRates
    trip_count: int = 0


# ── Storage port ──────────────────────────────────────────────────────


class LedgerStore(ABC):
    @abstractmethod
    def writer(self) -> AsyncContextManager[None]:
        """Exclusive section for one mutation."""

    @abstractmethod
    async def load_state(self) -> Optional[LedgerState]: ...

    @abstractmethod
    async def create_state(self, administrator: str, rates: FareRates) -> None: ...

    @abstractmethod
    async def set_administrator(self, administrator: str) -> None: ...

    @abstractmethod
    async def set_fare_rates(self, rates: FareRates) -> None: ...

    @abstractmethod
    async def is_driver(self, principal: str) -> bool: ...

    @abstractmethod
    async def set_driver(self, principal: str, registered: bool) -> None: ...

    @abstractmethod
    async def get_trip(self, trip_id: int) -> Optional[Trip]: ...

    @abstractmethod
    async def append_trip(self, trip: Trip) -> None:
        """Store *trip* and advance the trip counter to ``trip.id``."""

    @abstractmethod
    async def append_event(
        self, event_type: LedgerEventType, payload: dict[str, Any], timestamp: int
    ) -> LedgerEvent: ...

    @abstractmethod
    async def list_events(self, after: int = 0, limit: int = 100) -> list[LedgerEvent]: ...


# ── State machine ─────────────────────────────────────────────────────


class LedgerStateMachine:
    """Driver registry, fare calculator and trip ledger behind role checks."""

    def __init__(
        self, store: LedgerStore, clock: Callable[[], int] | None = None
    ):
        self.store = store
        self.clock = clock or (lambda: int(time.time()))

    # -- construction -------------------------------------------------

    async def initialize(
        self,
        base_fare: int,
        per_km_fare: int,
        per_minute_fare: int,
        administrator: str,
    ) -> LedgerEvent:
        admin = normalize_principal(administrator, allow_null=False)
        rates = FareRates(base_fare, per_km_fare, per_minute_fare)
        async with self.store.writer():
            if await self.store.load_state() is not None:
                raise LedgerAlreadyInitialized("Ledger state already exists")
            await self.store.create_state(admin, rates)
            event = await self._emit(
                LedgerEventType.OWNERSHIP_TRANSFERRED,
                {"previous_administrator": NULL_PRINCIPAL, "new_administrator": admin},
            )
        logger.info("Ledger initialized (administrator=%s, rates=%s)", admin, rates)
        return event

    # -- administrator operations -------------------------------------

    async def register_driver(self, caller: str, driver: str) -> LedgerEvent:
        driver = normalize_principal(driver)
        async with self.store.writer():
            await self._require(caller, Role.ADMINISTRATOR)
            await self.store.set_driver(driver, True)
            event = await self._emit(
                LedgerEventType.DRIVER_REGISTERED, {"driver": driver}
            )
        logger.info("Driver registered: %s", driver)
        return event

    async def remove_driver(self, caller: str, driver: str) -> LedgerEvent:
        driver = normalize_principal(driver)
        async with self.store.writer():
            await self._require(caller, Role.ADMINISTRATOR)
            await self.store.set_driver(driver, False)
            event = await self._emit(LedgerEventType.DRIVER_REMOVED, {"driver": driver})
        logger.info("Driver removed: %s", driver)
        return event

    async def update_fare_rates(
        self, caller: str, base_fare: int, per_km_fare: int, per_minute_fare: int
    ) -> LedgerEvent:
        rates = FareRates(base_fare, per_km_fare, per_minute_fare)
        async with self.store.writer():
            await self._require(caller, Role.ADMINISTRATOR)
            await self.store.set_fare_rates(rates)
            event = await self._emit(LedgerEventType.FARE_UPDATED, rates.as_dict())
        logger.info("Fare rates updated: %s", rates)
        return event

    async def transfer_administration(
        self, caller: str, new_administrator: str
    ) -> LedgerEvent:
        new_admin = normalize_principal(new_administrator, allow_null=False)
        async with self.store.writer():
            state = await self._require(caller, Role.ADMINISTRATOR)
            await self.store.set_administrator(new_admin)
            event = await self._emit(
                LedgerEventType.OWNERSHIP_TRANSFERRED,
                {
                    "previous_administrator": state.administrator,
                    "new_administrator": new_admin,
                },
            )
        logger.info(
            "Administration transferred: %s -> %s", state.administrator, new_admin
        )
        return event

    # -- driver operations --------------------------------------------

    async def record_trip(
        self,
        caller: str,
        distance_meters: int,
        duration_seconds: int,
        data_hash: str | bytes,
    ) -> Trip:
        digest = parse_data_hash(data_hash)
        async with self.store.writer():
            state = await self._require(caller, Role.DRIVER)
            driver = normalize_principal(caller)
            fare = state.rates.calculate_fare(distance_meters, duration_seconds)
            trip = Trip(
                id=state.trip_count + 1,
                driver=driver,
                distance_meters=distance_meters,
                duration_seconds=duration_seconds,
                fare=fare,
                timestamp=self.clock(),
                data_hash=digest,
            )
            await self.store.append_trip(trip)
            await self._emit(
                LedgerEventType.TRIP_RECORDED,
                {"trip_id": trip.id, "driver": driver, "fare": fare},
            )
        logger.info("Trip %d recorded by %s (fare=%d)", trip.id, driver, fare)
        return trip

    # -- reads ----------------------------------------------------------

    async def calculate_fare(self, distance_meters: int, duration_seconds: int) -> int:
        state = await self._state()
        return state.rates.calculate_fare(distance_meters, duration_seconds)

    async def get_trip(self, trip_id: int) -> Trip:
        """Return the trip, or ``Trip.empty()`` for an id never issued."""
        ensure_uint256("trip_id", trip_id)
        trip = await self.store.get_trip(trip_id) if trip_id else None
        return trip or Trip.empty()

    async def administrator(self) -> str:
        return (await self._state()).administrator

    async def fare_rates(self) -> FareRates:
        return (await self._state()).rates

    async def trip_count(self) -> int:
        return (await self._state()).trip_count

    async def is_driver(self, principal: str) -> bool:
        return await self.store.is_driver(normalize_principal(principal))

    async def events(self, after: int = 0, limit: int = 100) -> list[LedgerEvent]:
        return await self.store.list_events(after=after, limit=limit)

    async def snapshot(self) -> LedgerState:
        return await self._state()

    # -- internals ------------------------------------------------------

    async def _state(self) -> LedgerState:
        state = await self.store.load_state()
        if state is None:
            raise LedgerNotInitialized("Ledger has not been initialized")
        return state

    async def _require(self, caller: str, role: Role) -> LedgerState:
        """Check the caller holds *role*; return the current state."""
        state = await self._state()
        principal = normalize_principal(caller)

        if role is Role.ADMINISTRATOR and principal != state.administrator:
            logger.warning("Unauthorized call by %s (requires %s)", principal, role.value)
            raise Unauthorized(principal, role)
        if role is Role.DRIVER and not await self.store.is_driver(principal):
            logger.warning("Unauthorized call by %s (requires %s)", principal, role.value)
            raise Unauthorized(principal, role, "not a registered driver")
        return state

    async def _emit(
        self, event_type: LedgerEventType, payload: dict[str, Any]
    ) -> LedgerEvent:
        return await self.store.append_event(event_type, payload, self.clock())
