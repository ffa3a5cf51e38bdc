"""
Redis Admission Backend
=======================
Redis-backed concurrency slots using a Lua script for atomic operations.
"""

import time
import uuid
from typing import Callable, Optional

from ..counter.store import redis_errors
from .backend import AdmissionBackend, AdmissionToken

# Lua script for an atomic sorted-set semaphore in Redis
ADMISSION_SCRIPT = """
local key = KEYS[1]
local member = ARGV[1]
local capacity = tonumber(ARGV[2])
local ttl = tonumber(ARGV[3])
local now = tonumber(ARGV[4])

redis.call('ZREMRANGEBYSCORE', key, '-inf', now - ttl)

if redis.call('ZCARD', key) >= capacity then
    return 0
end

redis.call('ZADD', key, now, member)
redis.call('PEXPIRE', key, math.ceil(ttl * 1000))

return 1
"""


class RedisAdmissionBackend(AdmissionBackend):
    """
    Redis-backed admission slots.

    Each key is a sorted set of slot holders scored by entry time. Holders
    older than the TTL are evicted before the capacity check, so a process
    that dies while holding a slot frees it within one TTL.
    """

    def __init__(self, redis_client, clock: Callable[[], float] = time.time):
        """
        Args:
            redis_client: Async Redis client (redis.asyncio.Redis)
            clock: Wall-clock source shared by every process in the fleet
        """
        self.redis = redis_client
        self.clock = clock
        self._script = redis_client.register_script(ADMISSION_SCRIPT)

    async def try_enter(self, key: str, capacity: int, ttl: float) -> Optional[AdmissionToken]:
        member = uuid.uuid4().hex
        with redis_errors("try_enter"):
            entered = await self._script(
                keys=[key],
                args=[member, capacity, ttl, self.clock()],
            )

        if not int(entered):
            return None
        return AdmissionToken(key=key, member=member)

    async def exit(self, token: AdmissionToken) -> None:
        with redis_errors("exit"):
            await self.redis.zrem(token.key, token.member)
