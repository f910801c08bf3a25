"""
Trip endpoints
==============

POST /api/v1/trips            -- record a trip (registered drivers only)
GET  /api/v1/trips/{trip_id}  -- read a trip
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from src.api.dependencies import get_caller, get_ledger
from src.api.middleware import limiter
from src.api.schemas import TripCreateRequest, TripResponse
from src.config import settings
from src.domain.ledger import LedgerStateMachine

router = APIRouter(prefix="/trips", tags=["trips"])


@router.post(
    "",
    status_code=201,
    response_model=TripResponse,
    summary="Record a completed trip",
    responses={403: {"description": "Caller is not a registered driver."}},
)
@limiter.limit(settings.rate_limit)
async def record_trip(
    request: Request,
    body: TripCreateRequest,
    caller: str = Depends(get_caller),
    ledger: LedgerStateMachine = Depends(get_ledger),
):
    trip = await ledger.record_trip(
        caller, body.distance_meters, body.duration_seconds, body.data_hash
    )
    return TripResponse.from_trip(trip)


@router.get(
    "/{trip_id}",
    response_model=TripResponse,
    summary="Get a trip",
    description=(
        "Never fails for a well-formed id: an id that was never issued "
        "returns the zero-valued record with ``found: false``."
    ),
)
@limiter.limit(settings.rate_limit)
async def get_trip(
    request: Request,
    trip_id: int,
    ledger: LedgerStateMachine = Depends(get_ledger),
):
    return TripResponse.from_trip(await ledger.get_trip(trip_id))
