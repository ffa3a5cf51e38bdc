"""
Dynamic Timeout Configuration
=============================
Configuration for tiered admission, with defaults from the environment.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence, Union

from .report import OutcomeReport
from .tiers import TierConfig

TiersSetting = Union[Sequence[TierConfig], Callable[[], Sequence[TierConfig]]]
ThreadsSetting = Union[int, Callable[[], int]]


def _default_redis_url() -> str:
    return os.environ.get(
        "DYNAMIC_TIMEOUT_REDIS_URL",
        os.environ.get("REDIS_URL", "redis://localhost:6379/0"),
    )


@dataclass
class DynamicTimeoutConfig:
    """
    Configuration for an AdmissionController.

    ``tiers`` and ``threads_per_process`` accept either a value or a
    zero-argument callable that is evaluated on every call.
    """
    tiers: TiersSetting = field(default_factory=list)
    name: str = field(default_factory=lambda: os.environ.get("DYNAMIC_TIMEOUT_NAME", ""))
    key_prefix: str = field(
        default_factory=lambda: os.environ.get("DYNAMIC_TIMEOUT_KEY_PREFIX", "DynamicTimeout")
    )
    redis_url: str = field(default_factory=_default_redis_url)
    threads_per_process: ThreadsSetting = field(
        default_factory=lambda: int(os.environ.get("DYNAMIC_TIMEOUT_THREADS_PER_PROCESS", "1"))
    )
    filter: Optional[Callable[[Any], bool]] = None
    callback: Optional[Callable[[OutcomeReport], None]] = None
    before_request: Optional[Callable[[Any, float], None]] = None
