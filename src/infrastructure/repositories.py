"""
Repository Pattern -- SQL adapter for the ledger's storage port.

``SqlLedgerStore`` receives an ``AsyncSession`` (unit-of-work) and maps the
ledger's domain values to ORM rows.  It never commits: the caller owns the
transaction, so a whole ledger operation (state change + notification)
commits or rolls back together.

Writers are serialised with ``SELECT ... FOR UPDATE`` on the single
``ledger_state`` row, which totally orders mutations across processes.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    LEDGER_STATE_ID,
    DriverModel,
    LedgerEventModel,
    LedgerStateModel,
    TripModel,
)
from src.domain.entities import LedgerAlreadyInitialized, LedgerEvent, Trip
from src.domain.enums import LedgerEventType
from src.domain.ledger import LedgerState, LedgerStore
from src.domain.pricing import FareRates

# trips.id and ledger_events.sequence are signed 64-bit columns
BIGINT_MAX = 2**63 - 1


class SqlLedgerStore(LedgerStore):
    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def writer(self) -> AsyncIterator[None]:
        await self.session.execute(
            select(LedgerStateModel)
            .where(LedgerStateModel.id == LEDGER_STATE_ID)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        yield
        await self.session.flush()

    # ── ledger_state ──────────────────────────────────────────────

    async def _state_row(self) -> Optional[LedgerStateModel]:
        return await self.session.get(LedgerStateModel, LEDGER_STATE_ID)

    async def load_state(self) -> Optional[LedgerState]:
        row = await self._state_row()
        if row is None:
            return None
        return LedgerState(
            administrator=row.administrator,
            rates=FareRates(row.base_fare, row.per_km_fare, row.per_minute_fare),
            trip_count=row.trip_count,
        )

    async def create_state(self, administrator: str, rates: FareRates) -> None:
        self.session.add(
            LedgerStateModel(
                id=LEDGER_STATE_ID,
                administrator=administrator,
                base_fare=rates.base_fare,
                per_km_fare=rates.per_km_fare,
                per_minute_fare=rates.per_minute_fare,
                trip_count=0,
            )
        )
        # Before initialization there is no row for writer() to lock, so two
        # concurrent initializers only collide here, on the primary key.
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise LedgerAlreadyInitialized("Ledger state already exists") from exc

    async def set_administrator(self, administrator: str) -> None:
        row = await self._state_row()
        row.administrator = administrator

    async def set_fare_rates(self, rates: FareRates) -> None:
        row = await self._state_row()
        row.base_fare = rates.base_fare
        row.per_km_fare = rates.per_km_fare
        row.per_minute_fare = rates.per_minute_fare

    # ── drivers ───────────────────────────────────────────────────

    async def is_driver(self, principal: str) -> bool:
        row = await self.session.get(DriverModel, principal)
        return bool(row and row.is_registered)

    async def set_driver(self, principal: str, registered: bool) -> None:
        row = await self.session.get(DriverModel, principal)
        if row is None:
            self.session.add(DriverModel(principal=principal, is_registered=registered))
        else:
            row.is_registered = registered
        await self.session.flush()

    # ── trips ─────────────────────────────────────────────────────

    async def get_trip(self, trip_id: int) -> Optional[Trip]:
        if trip_id > BIGINT_MAX:
            return None
        row = await self.session.get(TripModel, trip_id)
        if row is None:
            return None
        return Trip(
            id=row.id,
            driver=row.driver,
            distance_meters=row.distance_meters,
            duration_seconds=row.duration_seconds,
            fare=row.fare,
            timestamp=row.timestamp,
            data_hash=bytes(row.data_hash),
        )

    async def append_trip(self, trip: Trip) -> None:
        self.session.add(
            TripModel(
                id=trip.id,
                driver=trip.driver,
                distance_meters=trip.distance_meters,
                duration_seconds=trip.duration_seconds,
                fare=trip.fare,
                timestamp=trip.timestamp,
                data_hash=trip.data_hash,
            )
        )
        row = await self._state_row()
        row.trip_count = trip.id
        await self.session.flush()

    # ── ledger_events ─────────────────────────────────────────────

    async def append_event(
        self, event_type: LedgerEventType, payload: dict[str, Any], timestamp: int
    ) -> LedgerEvent:
        result = await self.session.execute(
            select(func.max(LedgerEventModel.sequence))
        )
        sequence = (result.scalar() or 0) + 1
        self.session.add(
            LedgerEventModel(
                sequence=sequence,
                event_type=event_type.value,
                payload=payload,
                timestamp=timestamp,
            )
        )
        await self.session.flush()
        return LedgerEvent(sequence, event_type, dict(payload), timestamp)

    async def list_events(self, after: int = 0, limit: int = 100) -> list[LedgerEvent]:
        if after >= BIGINT_MAX:
            return []
        result = await self.session.execute(
            select(LedgerEventModel)
            .where(LedgerEventModel.sequence > after)
            .order_by(LedgerEventModel.sequence)
            .limit(limit)
        )
        return [
            LedgerEvent(
                sequence=row.sequence,
                event_type=LedgerEventType(row.event_type),
                payload=row.payload,
                timestamp=row.timestamp,
            )
            for row in result.scalars().all()
        ]
