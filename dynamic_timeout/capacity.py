"""
Capacity Strategy
=================
Resolve capacity fractions into absolute limits using the estimated fleet size.

Every call registers this process in a shared process counter, so the number
of live processes is estimated from whoever has called recently. A process
that stops calling ages out of the counter after its TTL.
"""

import math
import os
import socket
import time
from typing import Callable, List, Optional, Sequence, Union

import structlog

from .counter import DistributedCounter, CounterStore, DEFAULT_KEY_PREFIX
from .tiers import QuotaTier, UNLIMITED

logger = structlog.get_logger(__name__)

ThreadCount = Union[int, Callable[[], int]]

# Process registrations never expire faster than this
MIN_PROCESS_TTL = 60.0


def process_id() -> str:
    """Stable token identifying this process within the fleet."""
    return f"{socket.gethostname()}:{os.getpid()}"


def resolve_limit(tier: QuotaTier, total_capacity: int) -> int:
    """
    Absolute limit for a tier given the total fleet capacity.

    The capacity fraction is rounded up so a tier never gets fewer slots than
    its fraction advertises; a non-negative static limit acts as a floor.
    """
    if tier.no_limit:
        return UNLIMITED
    if tier.capacity is None:
        return tier.limit

    effective_limit = math.ceil(tier.capacity * total_capacity)
    return max(tier.limit, effective_limit)


class CapacityStrategy:
    """
    Converts capacity fractions into per-tier limits.

    Example:
        strategy = CapacityStrategy(store, name="payments", threads_per_process=8)
        tiers = await strategy.compute(normalize_tiers([{"timeout": 2, "capacity": 0.25}]))
    """

    def __init__(
        self,
        store: Optional[CounterStore],
        name: str = "default",
        threads_per_process: ThreadCount = 1,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.name = name or "default"
        self.threads_per_process = threads_per_process
        self.key_prefix = key_prefix
        self.clock = clock

    @property
    def counter_name(self) -> str:
        return f"CapacityStrategy:{self.name}.processes"

    def resolve_threads_per_process(self) -> int:
        value = self.threads_per_process
        if callable(value):
            value = value()
        value = int(value or 0)
        return value if value > 0 else 1

    async def count_processes(self, ttl: float) -> int:
        """Register this process and return the number of live processes."""
        if self.store is None:
            return 1
        counter = DistributedCounter(
            self.counter_name,
            self.store,
            ttl=max(ttl, MIN_PROCESS_TTL),
            key_prefix=self.key_prefix,
            clock=self.clock,
        )
        await counter.track(process_id())
        return max(1, await counter.value())

    async def total_capacity(self, tiers: Sequence[QuotaTier]) -> int:
        ttl = max((tier.timeout for tier in tiers), default=0.0)
        process_count = await self.count_processes(ttl)
        return process_count * self.resolve_threads_per_process()

    async def compute(self, tiers: Sequence[QuotaTier]) -> List[QuotaTier]:
        """
        Resolve every tier to an absolute limit.

        Args:
            tiers: Normalized tiers

        Returns:
            Tiers in the same order with ``limit`` resolved and ``capacity`` cleared
        """
        total_capacity = await self.total_capacity(tiers)
        resolved = [
            QuotaTier(timeout=tier.timeout, limit=resolve_limit(tier, total_capacity))
            for tier in tiers
        ]

        logger.debug(
            "capacity_resolved",
            name=self.name,
            total_capacity=total_capacity,
            limits=[(tier.timeout, tier.limit) for tier in resolved],
        )
        return resolved
