"""
Outcome Reports
===============
Immutable record of what happened to one admitted (or refused) call.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

import httpx

from .exceptions import AdmissionRefusedError


class OutcomeKind(str, Enum):
    """Terminal outcome of a call."""
    SUCCESS = "success"
    THROTTLED = "throttled"
    TIMED_OUT = "timed_out"
    ERROR = "error"


@dataclass(frozen=True)
class OutcomeReport:
    """
    Emitted once per call that went through admission.

    ``duration`` covers only the wrapped call, not the time spent choosing a
    tier. ``timeout`` is None when no tier was applied.
    """
    target: str
    method: str
    url: Any
    duration: float
    timeout: Optional[float] = None
    status: Optional[int] = None
    observed_count: int = 1
    error: Optional[BaseException] = None

    @property
    def is_throttled(self) -> bool:
        return isinstance(self.error, AdmissionRefusedError)

    @property
    def is_timed_out(self) -> bool:
        return isinstance(self.error, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError))

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def request_count(self) -> int:
        """Estimated concurrent calls to the target when this call started."""
        if self.is_throttled:
            return self.error.request_count
        return self.observed_count

    @property
    def kind(self) -> OutcomeKind:
        if self.is_throttled:
            return OutcomeKind.THROTTLED
        if self.is_timed_out:
            return OutcomeKind.TIMED_OUT
        if self.is_error:
            return OutcomeKind.ERROR
        return OutcomeKind.SUCCESS
