"""
Distributed Counter Module
==========================
TTL-bounded membership counting with Redis and in-memory stores.
"""

from .counter import DistributedCounter, DEFAULT_TTL, DEFAULT_KEY_PREFIX
from .store import (
    CounterStore,
    RedisCounterStore,
    InMemoryCounterStore,
    redis_errors,
)

__all__ = [
    "DistributedCounter",
    "DEFAULT_TTL",
    "DEFAULT_KEY_PREFIX",
    "CounterStore",
    "RedisCounterStore",
    "InMemoryCounterStore",
    "redis_errors",
]
