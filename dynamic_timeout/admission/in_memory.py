"""
In-Memory Admission Backend
===========================
Single-process admission slots for development and testing.
"""

import time
import uuid
from typing import Callable, Dict, Optional

from .backend import AdmissionBackend, AdmissionToken


class InMemoryAdmissionBackend(AdmissionBackend):
    """
    In-process admission slots.

    For development and testing only.
    Use RedisAdmissionBackend when more than one process shares the quota.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._slots: Dict[str, Dict[str, float]] = {}

    def held(self, key: str) -> int:
        """Number of slots currently reserved under ``key``."""
        return len(self._slots.get(key, {}))

    async def try_enter(self, key: str, capacity: int, ttl: float) -> Optional[AdmissionToken]:
        now = self.clock()
        slots = self._slots.setdefault(key, {})

        for member in [m for m, entered_at in slots.items() if entered_at <= now - ttl]:
            del slots[member]

        if len(slots) >= capacity:
            return None

        member = uuid.uuid4().hex
        slots[member] = now
        return AdmissionToken(key=key, member=member)

    async def exit(self, token: AdmissionToken) -> None:
        self._slots.get(token.key, {}).pop(token.member, None)
