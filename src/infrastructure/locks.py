"""
Redis-based distributed lock.

Used by the event relay so only one instance publishes notifications at a
time; two relays sharing a cursor would publish every event twice.

Acquire is SET NX EX; release is a Lua script that deletes the key only
while we still hold it.
"""

from __future__ import annotations

import uuid

import redis.asyncio as aioredis

KEY_PREFIX = "taxi-ledger:lock:"

_RELEASE_LUA = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class LockNotAcquired(RuntimeError):
    """Raised by the context manager when another holder owns the lock."""


class DistributedLock:
    def __init__(
        self, client: aioredis.Redis, name: str, ttl_seconds: int = 30
    ):
        self.redis = client
        self.key = f"{KEY_PREFIX}{name}"
        self.ttl = ttl_seconds
        self.token = str(uuid.uuid4())

    async def acquire(self) -> bool:
        """Try once to acquire. Returns True on success."""
        return bool(
            await self.redis.set(self.key, self.token, nx=True, ex=self.ttl)
        )

    async def release(self) -> None:
        await self.redis.eval(_RELEASE_LUA, 1, self.key, self.token)

    async def __aenter__(self):
        if not await self.acquire():
            raise LockNotAcquired(f"Could not acquire lock: {self.key}")
        return self

    async def __aexit__(self, *args):
        await self.release()
