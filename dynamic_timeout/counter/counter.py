"""
Distributed Counter
===================
Crash-tolerant count of in-flight members shared across processes.
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, TypeVar

from .store import CounterStore

T = TypeVar("T")

DEFAULT_TTL = 60.0
DEFAULT_KEY_PREFIX = "DynamicTimeout"


class DistributedCounter:
    """
    Count members tracked by any process within the last ``ttl`` seconds.

    A member that is never released (the holder crashed or was cancelled)
    drops out of ``value()`` once it is older than the TTL; stale members are
    pruned when the counter is read.

    Example:
        counter = DistributedCounter("api.example.com.requests", store, ttl=5)
        async with counter.tracking():
            in_flight = await counter.value()
    """

    def __init__(
        self,
        name: str,
        store: CounterStore,
        ttl: float = DEFAULT_TTL,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl = float(ttl)
        if self.ttl <= 0:
            self.ttl = DEFAULT_TTL
        self.store = store
        self.key = f"{key_prefix}:{name}"
        self.clock = clock

    async def value(self) -> int:
        """Number of members tracked within the TTL window."""
        cutoff = self.clock() - self.ttl
        active, total = await self.store.count_active_since(self.key, cutoff)
        if active != total:
            await self.store.prune_expired(self.key, cutoff)
        return active

    async def track(self, member_id: Optional[str] = None) -> str:
        """Insert or refresh a member and return its id."""
        member_id = member_id or uuid.uuid4().hex
        await self.store.add_member(self.key, member_id, self.clock(), self.ttl)
        return member_id

    async def release(self, member_id: str) -> None:
        await self.store.remove_member(self.key, member_id)

    @asynccontextmanager
    async def tracking(self) -> AsyncIterator[str]:
        """Track a fresh member for the duration of the block."""
        member_id = await self.track()
        try:
            yield member_id
        finally:
            await self.release(member_id)

    async def execute(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run ``func`` while tracked; the membership is released on every exit path."""
        async with self.tracking():
            return await func(*args, **kwargs)
