"""
Quota Tiers
===========
Timeout/concurrency tiers and the rules for merging and normalizing them.

A tier pairs a timeout with a concurrency quota. The quota is either a static
``limit`` or a ``capacity`` fraction of the estimated fleet capacity (or both,
in which case the larger resolved value wins). A negative limit, a negative
capacity or a capacity of 1.0 or more means the tier is unlimited.
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Union

TierConfig = Union["QuotaTier", Mapping[str, Any]]


UNLIMITED = -1


def _merge_capacity(a, b, unlimited: bool):
    if unlimited:
        return float(UNLIMITED)
    if a is None:
        return b
    if b is None:
        return a
    return a + b


@dataclass(frozen=True)
class QuotaTier:
    """A timeout in seconds plus the number of concurrent calls allowed to use it."""

    timeout: float
    limit: int = 0
    capacity: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "timeout", round(float(self.timeout), 3))
        object.__setattr__(self, "limit", int(self.limit or 0))
        if self.capacity is not None:
            object.__setattr__(self, "capacity", float(self.capacity))

    @property
    def limit_unlimited(self) -> bool:
        return self.limit < 0

    @property
    def capacity_unlimited(self) -> bool:
        return self.capacity is not None and (self.capacity < 0 or self.capacity >= 1.0)

    @property
    def no_limit(self) -> bool:
        """True if the tier is always available regardless of load."""
        return self.limit_unlimited or self.capacity_unlimited

    @property
    def is_valid(self) -> bool:
        """A tier needs a positive timeout and some quota."""
        return self.timeout > 0 and not (self.limit == 0 and not self.capacity)

    def merge(self, other: "QuotaTier") -> "QuotaTier":
        """Combine two tiers; unlimited quotas win, otherwise quotas add up."""
        if self.limit_unlimited or other.limit_unlimited:
            limit = UNLIMITED
        else:
            limit = self.limit + other.limit

        capacity = _merge_capacity(
            self.capacity,
            other.capacity,
            self.capacity_unlimited or other.capacity_unlimited,
        )

        return QuotaTier(
            timeout=max(self.timeout, other.timeout),
            limit=limit,
            capacity=capacity,
        )


def tier_from_mapping(config: TierConfig) -> QuotaTier:
    """Build a tier from a mapping with ``timeout``, ``limit`` and ``capacity`` keys."""
    if isinstance(config, QuotaTier):
        return config

    timeout = config.get("timeout")
    return QuotaTier(
        timeout=timeout if timeout is not None else 0,
        limit=config.get("limit") or 0,
        capacity=config.get("capacity"),
    )


def normalize_tiers(entries: Iterable[TierConfig]) -> List[QuotaTier]:
    """
    Turn raw tier configuration into usable tiers.

    Invalid or malformed entries are dropped, tiers sharing a timeout are merged, and the
    result is sorted by ascending timeout.

    Args:
        entries: Tier mappings or QuotaTier instances

    Returns:
        List of valid tiers, one per distinct timeout
    """
    grouped = {}
    for entry in entries:
        try:
            tier = tier_from_mapping(entry)
        except (TypeError, ValueError, AttributeError):
            continue
        if not tier.is_valid:
            continue
        existing = grouped.get(tier.timeout)
        grouped[tier.timeout] = tier if existing is None else existing.merge(tier)

    return sorted(grouped.values(), key=lambda tier: tier.timeout)
