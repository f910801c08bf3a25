"""
Administration endpoints
========================

GET    /api/v1/ledger                  -- administrator, fare rates, trip count
GET    /api/v1/ledger/fare             -- quote a fare at the current rates
POST   /api/v1/ledger/fare-rates       -- replace the three fare rates
POST   /api/v1/ledger/administrator    -- hand the administrator seat over
POST   /api/v1/drivers/{principal}     -- register a driver
DELETE /api/v1/drivers/{principal}     -- remove a driver
GET    /api/v1/drivers/{principal}     -- registration status
GET    /api/v1/health                  -- simple health check

Fare quotes and reads are open to anyone.  Mutations act as the principal
in the ``X-Principal`` header and fail with 403 unless it is the
administrator.
"""

from fastapi import APIRouter, Depends, Query, Request

from src.api.dependencies import get_caller, get_ledger
from src.api.middleware import limiter
from src.api.schemas import (
    AdministratorTransferRequest,
    DriverStatusResponse,
    EventResponse,
    FareQuoteResponse,
    FareRatesRequest,
    HealthResponse,
    LedgerResponse,
)
from src.config import settings
from src.domain.ledger import LedgerStateMachine

router = APIRouter(tags=["admin"])


@router.get(
    "/ledger",
    response_model=LedgerResponse,
    summary="Current administrator, fare rates and trip count",
)
@limiter.limit(settings.rate_limit)
async def get_ledger_state(
    request: Request,
    ledger: LedgerStateMachine = Depends(get_ledger),
):
    return LedgerResponse.from_state(await ledger.snapshot())


@router.get(
    "/ledger/fare",
    response_model=FareQuoteResponse,
    summary="Quote a fare",
    description=(
        "base + floor(distance / 1000) x per_km + floor(duration / 60) x "
        "per_minute, at the rates in force now."
    ),
)
@limiter.limit(settings.rate_limit)
async def quote_fare(
    request: Request,
    distance_meters: int = Query(..., ge=0),
    duration_seconds: int = Query(..., ge=0),
    ledger: LedgerStateMachine = Depends(get_ledger),
):
    fare = await ledger.calculate_fare(distance_meters, duration_seconds)
    return FareQuoteResponse(
        distance_meters=distance_meters,
        duration_seconds=duration_seconds,
        fare=fare,
    )


@router.post(
    "/ledger/fare-rates",
    response_model=EventResponse,
    summary="Replace the fare rates (administrator only)",
)
@limiter.limit(settings.rate_limit)
async def update_fare_rates(
    request: Request,
    body: FareRatesRequest,
    caller: str = Depends(get_caller),
    ledger: LedgerStateMachine = Depends(get_ledger),
):
    event = await ledger.update_fare_rates(
        caller, body.base_fare, body.per_km_fare, body.per_minute_fare
    )
    return EventResponse.from_event(event)


@router.post(
    "/ledger/administrator",
    response_model=EventResponse,
    summary="Transfer administration (administrator only)",
)
@limiter.limit(settings.rate_limit)
async def transfer_administration(
    request: Request,
    body: AdministratorTransferRequest,
    caller: str = Depends(get_caller),
    ledger: LedgerStateMachine = Depends(get_ledger),
):
    event = await ledger.transfer_administration(caller, body.new_administrator)
    return EventResponse.from_event(event)


@router.post(
    "/drivers/{principal}",
    response_model=EventResponse,
    summary="Register a driver (administrator only)",
)
@limiter.limit(settings.rate_limit)
async def register_driver(
    request: Request,
    principal: str,
    caller: str = Depends(get_caller),
    ledger: LedgerStateMachine = Depends(get_ledger),
):
    return EventResponse.from_event(await ledger.register_driver(caller, principal))


@router.delete(
    "/drivers/{principal}",
    response_model=EventResponse,
    summary="Remove a driver (administrator only)",
    description="Trips already recorded by the driver stay on the ledger.",
)
@limiter.limit(settings.rate_limit)
async def remove_driver(
    request: Request,
    principal: str,
    caller: str = Depends(get_caller),
    ledger: LedgerStateMachine = Depends(get_ledger),
):
    return EventResponse.from_event(await ledger.remove_driver(caller, principal))


@router.get(
    "/drivers/{principal}",
    response_model=DriverStatusResponse,
    summary="Is this principal a registered driver?",
)
@limiter.limit(settings.rate_limit)
async def get_driver(
    request: Request,
    principal: str,
    ledger: LedgerStateMachine = Depends(get_ledger),
):
    registered = await ledger.is_driver(principal)
    return DriverStatusResponse(principal=principal.lower(), is_registered=registered)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
