"""
FastAPI application factory.

* Registers routes for administration, trips and the notification log.
* Bootstraps the ledger from settings on first start, then starts / stops
  the event relay via lifespan events.
* Maps ledger errors to HTTP status codes.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.middleware import limiter
from src.api.routes import admin, events, trips
from src.config import settings
from src.domain.entities import (
    FareOverflow,
    InvalidAmount,
    InvalidPrincipal,
    LedgerAlreadyInitialized,
    LedgerError,
    LedgerNotInitialized,
    Unauthorized,
)
from src.domain.ledger import LedgerStateMachine
from src.infrastructure.database import async_session_factory
from src.infrastructure.redis_client import close_redis
from src.infrastructure.repositories import SqlLedgerStore
from src.workers import relay as _relay

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[LedgerError], int] = {
    Unauthorized: 403,
    InvalidPrincipal: 422,
    InvalidAmount: 422,
    FareOverflow: 422,
    LedgerAlreadyInitialized: 409,
    LedgerNotInitialized: 503,
}


async def bootstrap_ledger() -> None:
    """Create the ledger state from settings unless it already exists."""
    if not settings.initial_administrator:
        logger.warning(
            "INITIAL_ADMINISTRATOR not set; ledger stays uninitialized until seeded"
        )
        return
    async with async_session_factory() as session:
        store = SqlLedgerStore(session)
        if await store.load_state() is not None:
            return
        ledger = LedgerStateMachine(store)
        try:
            await ledger.initialize(
                settings.initial_base_fare,
                settings.initial_per_km_fare,
                settings.initial_per_minute_fare,
                settings.initial_administrator,
            )
        except LedgerAlreadyInitialized:
            logger.info("Ledger initialized concurrently by another worker")
            await session.rollback()
            return
        await session.commit()


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 400
    )
    return JSONResponse(status_code=status, content={"detail": str(exc)})


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Bootstrap the ledger and start the relay on startup; stop on shutdown."""
    await bootstrap_ledger()
    if settings.relay_enabled:
        await _relay.start_relay_loop()
    yield
    if settings.relay_enabled:
        await _relay.stop_relay_loop()
        await close_redis()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Taxi Ledger API",
        description=(
            "Permissioned trip ledger for a taxi operator: an administrator "
            "manages drivers and fare rates, registered drivers record trips, "
            "and anyone can quote fares and read trips."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(LedgerError, ledger_error_handler)

    # Routers
    app.include_router(admin.router, prefix="/api/v1")
    app.include_router(trips.router, prefix="/api/v1")
    app.include_router(events.router, prefix="/api/v1")

    return app
