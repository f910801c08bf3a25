"""
Notification log
================

GET /api/v1/events?after=&limit=  -- notifications with sequence > after

Pollers keep the last ``sequence`` they saw and pass it back as ``after``.
Push delivery goes through the Redis relay instead (see
``src.workers.relay``).
"""

from fastapi import APIRouter, Depends, Query, Request

from src.api.dependencies import get_ledger
from src.api.middleware import limiter
from src.api.schemas import EventResponse
from src.config import settings
from src.domain.ledger import LedgerStateMachine

router = APIRouter(prefix="/events", tags=["events"])


@router.get(
    "",
    response_model=list[EventResponse],
    summary="Read the notification log in sequence order",
)
@limiter.limit(settings.rate_limit)
async def list_events(
    request: Request,
    after: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    ledger: LedgerStateMachine = Depends(get_ledger),
):
    return [EventResponse.from_event(e) for e in await ledger.events(after, limit)]
