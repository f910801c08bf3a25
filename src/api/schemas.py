"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from src.domain.entities import LedgerEvent, Trip
from src.domain.ledger import LedgerState

PRINCIPAL_PATTERN = r"^0x[0-9a-fA-F]{40}$"
HASH_PATTERN = r"^0x[0-9a-fA-F]{64}$"


def _amount(description: str):
    # upper bound (UINT256_MAX) is enforced by the ledger itself
    return Field(..., ge=0, description=description)


# ── Requests ──────────────────────────────────────────────────────────


class FareRatesRequest(BaseModel):
    base_fare: int = _amount("Flat charge per trip, in millimes.")
    per_km_fare: int = _amount("Charge per whole kilometre, in millimes.")
    per_minute_fare: int = _amount("Charge per whole minute, in millimes.")


class AdministratorTransferRequest(BaseModel):
    new_administrator: str = Field(..., pattern=PRINCIPAL_PATTERN)


class TripCreateRequest(BaseModel):
    distance_meters: int = _amount("Trip distance in metres.")
    duration_seconds: int = _amount("Trip duration in seconds.")
    data_hash: str = Field(
        ...,
        pattern=HASH_PATTERN,
        description="Opaque 32-byte digest of off-ledger trip data, hex encoded.",
    )


# ── Responses ─────────────────────────────────────────────────────────


class LedgerResponse(BaseModel):
    administrator: str
    base_fare: int
    per_km_fare: int
    per_minute_fare: int
    trip_count: int

    @classmethod
    def from_state(cls, state: LedgerState) -> LedgerResponse:
        return cls(
            administrator=state.administrator,
            trip_count=state.trip_count,
            **state.rates.as_dict(),
        )


class FareQuoteResponse(BaseModel):
    distance_meters: int
    duration_seconds: int
    fare: int


class DriverStatusResponse(BaseModel):
    principal: str
    is_registered: bool


class TripResponse(BaseModel):
    id: int
    driver: str
    distance_meters: int
    duration_seconds: int
    fare: int
    timestamp: int
    data_hash: str
    found: bool

    @classmethod
    def from_trip(cls, trip: Trip) -> TripResponse:
        return cls(
            id=trip.id,
            driver=trip.driver,
            distance_meters=trip.distance_meters,
            duration_seconds=trip.duration_seconds,
            fare=trip.fare,
            timestamp=trip.timestamp,
            data_hash="0x" + trip.data_hash.hex(),
            found=trip.found,
        )


class EventResponse(BaseModel):
    sequence: int
    event: str
    payload: dict[str, Any]
    timestamp: int

    @classmethod
    def from_event(cls, event: LedgerEvent) -> EventResponse:
        return cls(**event.as_message())


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
