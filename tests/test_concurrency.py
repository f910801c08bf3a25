"""
Concurrency safety tests.

Demonstrates:
1. Concurrent trip recording never hands out the same id twice.
2. A concurrent fare quote never sees a mix of old and new rates.
3. Distributed lock prevents simultaneous acquire.
4. The event relay publishes in order, advances its cursor and skips the
   cycle when another relay holds the lock.
"""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from src.config import settings
from src.domain.ledger import LedgerStateMachine
from src.infrastructure.locks import DistributedLock, LockNotAcquired
from src.infrastructure.repositories import SqlLedgerStore
from src.workers.relay import CURSOR_KEY, run_relay_cycle
from tests.conftest import ADMIN, DRIVER, OTHER_DRIVER, TRIP_HASH


class TestLedgerConcurrency:
    """Writers serialised by the store's writer section."""

    @pytest.mark.asyncio
    async def test_concurrent_trips_get_unique_dense_ids(self, ledger):
        await ledger.register_driver(ADMIN, DRIVER)
        await ledger.register_driver(ADMIN, OTHER_DRIVER)

        trips = await asyncio.gather(
            *(
                ledger.record_trip(
                    DRIVER if i % 2 else OTHER_DRIVER, 1_000 * i, 60, TRIP_HASH
                )
                for i in range(50)
            )
        )
        assert sorted(t.id for t in trips) == list(range(1, 51))
        assert await ledger.trip_count() == 50

    @pytest.mark.asyncio
    async def test_fare_quotes_never_mix_rate_sets(self, ledger):
        cheap, dear = (1, 1, 1), (100, 100, 100)

        async def flip():
            for i in range(100):
                await ledger.update_fare_rates(ADMIN, *(dear if i % 2 else cheap))
                await asyncio.sleep(0)

        async def quote():
            seen = set()
            for _ in range(100):
                seen.add(await ledger.calculate_fare(1_000, 60))
                await asyncio.sleep(0)
            return seen

        _, seen = await asyncio.gather(flip(), quote())
        # 1 km, 1 min: either 1+1+1 or 100+100+100, never a blend
        assert seen <= {700 + 500 + 80, 3, 300}


class TestDistributedLock:
    """Tests the Redis distributed lock logic (mocked Redis)."""

    @pytest.mark.asyncio
    async def test_acquire_succeeds(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)

        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        assert await lock.acquire() is True
        mock_redis.set.assert_awaited_once_with(
            "taxi-ledger:lock:test-key", lock.token, nx=True, ex=10
        )

    @pytest.mark.asyncio
    async def test_acquire_fails_if_held(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        assert await lock.acquire() is False

    @pytest.mark.asyncio
    async def test_release_only_deletes_own_token(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=True)
        mock_redis.eval = AsyncMock(return_value=1)

        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        await lock.acquire()
        await lock.release()

        args = mock_redis.eval.call_args.args
        assert args[1:] == (1, "taxi-ledger:lock:test-key", lock.token)

    @pytest.mark.asyncio
    async def test_context_manager_acquire_fail_raises(self):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=False)

        lock = DistributedLock(mock_redis, "test-key", ttl_seconds=10)
        with pytest.raises(LockNotAcquired, match="Could not acquire lock"):
            async with lock:
                pass


class TestEventRelay:
    async def _seed(self, session_factory):
        async with session_factory() as session:
            ledger = LedgerStateMachine(SqlLedgerStore(session))
            await ledger.initialize(700, 500, 80, ADMIN)
            await ledger.register_driver(ADMIN, DRIVER)
            await ledger.record_trip(DRIVER, 5_000, 600, TRIP_HASH)
            await session.commit()

    def _redis(self, cursor=None, locked=True):
        mock_redis = AsyncMock()
        mock_redis.set = AsyncMock(return_value=locked)
        mock_redis.get = AsyncMock(return_value=cursor)
        mock_redis.publish = AsyncMock(return_value=1)
        mock_redis.eval = AsyncMock(return_value=1)
        return mock_redis

    @pytest.mark.asyncio
    async def test_publishes_pending_events_in_order(self, session_factory):
        await self._seed(session_factory)
        redis = self._redis()

        published = await run_relay_cycle(redis, session_factory)

        assert published == 3
        messages = [json.loads(c.args[1]) for c in redis.publish.await_args_list]
        assert [m["sequence"] for m in messages] == [1, 2, 3]
        assert {c.args[0] for c in redis.publish.await_args_list} == {
            settings.event_channel
        }
        assert messages[2]["event"] == "TripRecorded"
        assert messages[2]["payload"] == {"trip_id": 1, "driver": DRIVER, "fare": 4000}
        redis.set.assert_any_await(CURSOR_KEY, 3)
        redis.eval.assert_awaited_once()  # lock released

    @pytest.mark.asyncio
    async def test_resumes_after_cursor(self, session_factory):
        await self._seed(session_factory)
        redis = self._redis(cursor="2")

        assert await run_relay_cycle(redis, session_factory) == 1
        message = json.loads(redis.publish.await_args.args[1])
        assert message["sequence"] == 3

    @pytest.mark.asyncio
    async def test_skips_when_lock_is_held(self, session_factory):
        await self._seed(session_factory)
        redis = self._redis(locked=False)

        assert await run_relay_cycle(redis, session_factory) == 0
        redis.publish.assert_not_awaited()
