"""
Background Event Relay
======================

Runs every ``RELAY_INTERVAL_SECONDS`` (default 5 s).

Ledger notifications are written to ``ledger_events`` in the same
transaction as the state change they describe.  This worker publishes
them to external observers afterwards, so a slow or absent Redis never
blocks or fails a ledger operation.

Delivery
--------
* Events are published in sequence order to the ``EVENT_CHANNEL`` pub/sub
  channel as JSON.
* The last published sequence is stored in Redis under ``CURSOR_KEY`` and
  advanced after each publish.  A crash between publish and cursor update
  re-publishes that one event: delivery is at-least-once, and consumers
  de-duplicate on ``sequence``.
* A **Redis distributed lock** ensures only one relay runs a cycle at a
  time across API processes.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import async_sessionmaker

from src.config import settings
from src.infrastructure.database import async_session_factory
from src.infrastructure.locks import DistributedLock
from src.infrastructure.redis_client import get_redis
from src.infrastructure.repositories import SqlLedgerStore

logger = logging.getLogger(__name__)

CURSOR_KEY = "taxi-ledger:relay:cursor"

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_relay_loop() -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info("Event relay started (interval=%ds)", settings.relay_interval_seconds)


async def stop_relay_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Event relay stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    """Periodic loop: relay one batch then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_relay_cycle()
        except Exception:
            logger.exception("Unhandled error in relay cycle")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.relay_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass  # next cycle


async def run_relay_cycle(
    redis: Optional[aioredis.Redis] = None,
    session_factory: async_sessionmaker = async_session_factory,
) -> int:
    """Publish one batch of pending events.  Returns how many were published."""
    redis = redis or await get_redis()
    lock = DistributedLock(redis, "event_relay", ttl_seconds=60)

    if not await lock.acquire():
        logger.debug("Lock held by another relay – skipping cycle")
        return 0

    published = 0
    try:
        cursor = int(await redis.get(CURSOR_KEY) or 0)
        async with session_factory() as session:
            events = await SqlLedgerStore(session).list_events(
                after=cursor, limit=settings.relay_batch_size
            )

        for event in events:
            await redis.publish(settings.event_channel, json.dumps(event.as_message()))
            await redis.set(CURSOR_KEY, event.sequence)
            published += 1

        if published:
            logger.info(
                "Relay cycle: %d events published (cursor=%d)",
                published,
                events[-1].sequence,
            )
    except Exception:
        logger.exception("Error in relay cycle")
    finally:
        await lock.release()

    return published
