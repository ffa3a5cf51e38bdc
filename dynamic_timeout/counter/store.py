"""
Counter Stores
==============
Shared storage for TTL-bounded membership sets.

Members are kept in a sorted set per key, scored by the wall-clock time they
were last tracked. Adding a member refreshes the key's own expiry in the same
transaction, and counting returns both the active and the total size so the
caller can decide whether stale members need pruning.
"""

import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Dict, Tuple

from redis.exceptions import RedisError

from ..exceptions import BackendUnavailableError


@contextmanager
def redis_errors(operation: str):
    """Translate Redis connectivity failures into BackendUnavailableError."""
    try:
        yield
    except (RedisError, OSError) as e:
        raise BackendUnavailableError(f"Redis {operation} failed: {e}", cause=e) from e


class CounterStore(ABC):
    """Storage contract used by DistributedCounter."""

    @abstractmethod
    async def add_member(self, key: str, member: str, timestamp: float, ttl: float) -> None:
        """Insert or refresh a member and renew the key expiry atomically."""

    @abstractmethod
    async def count_active_since(self, key: str, cutoff: float) -> Tuple[int, int]:
        """Return (members scored at or after cutoff, all members) atomically."""

    @abstractmethod
    async def prune_expired(self, key: str, cutoff: float) -> None:
        """Remove members scored before cutoff."""

    @abstractmethod
    async def remove_member(self, key: str, member: str) -> None:
        """Remove a member immediately."""


class RedisCounterStore(CounterStore):
    """Counter store backed by Redis sorted sets."""

    def __init__(self, redis_client):
        """
        Args:
            redis_client: Async Redis client (redis.asyncio.Redis)
        """
        self.redis = redis_client

    async def add_member(self, key: str, member: str, timestamp: float, ttl: float) -> None:
        with redis_errors("add_member"):
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.zadd(key, {member: timestamp})
                pipe.pexpire(key, int(ttl * 1000))
                await pipe.execute()

    async def count_active_since(self, key: str, cutoff: float) -> Tuple[int, int]:
        with redis_errors("count_active_since"):
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.zcount(key, cutoff, "+inf")
                pipe.zcard(key)
                active, total = await pipe.execute()
        return int(active), int(total)

    async def prune_expired(self, key: str, cutoff: float) -> None:
        with redis_errors("prune_expired"):
            await self.redis.zremrangebyscore(key, "-inf", f"({cutoff}")

    async def remove_member(self, key: str, member: str) -> None:
        with redis_errors("remove_member"):
            await self.redis.zrem(key, member)


class InMemoryCounterStore(CounterStore):
    """
    In-process counter store.

    For development and testing only.
    Use RedisCounterStore when more than one process shares the quota.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._sets: Dict[str, Dict[str, float]] = {}
        self._expires_at: Dict[str, float] = {}

    def _members(self, key: str) -> Dict[str, float]:
        expires_at = self._expires_at.get(key)
        if expires_at is not None and expires_at <= self.clock():
            self._sets.pop(key, None)
            self._expires_at.pop(key, None)
        return self._sets.get(key, {})

    async def add_member(self, key: str, member: str, timestamp: float, ttl: float) -> None:
        members = self._members(key)
        members[member] = timestamp
        self._sets[key] = members
        self._expires_at[key] = self.clock() + ttl

    async def count_active_since(self, key: str, cutoff: float) -> Tuple[int, int]:
        members = self._members(key)
        active = sum(1 for score in members.values() if score >= cutoff)
        return active, len(members)

    async def prune_expired(self, key: str, cutoff: float) -> None:
        members = self._members(key)
        for member in [m for m, score in members.items() if score < cutoff]:
            del members[member]

    async def remove_member(self, key: str, member: str) -> None:
        self._members(key).pop(member, None)
