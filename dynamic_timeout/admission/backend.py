"""
Admission Backend Contract
==========================
Non-blocking bounded-concurrency primitive used to reserve tier slots.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AdmissionToken:
    """Proof of a reserved slot; pass it back to ``exit`` to free the slot."""
    key: str
    member: str


class AdmissionBackend(ABC):
    """
    Atomic per-key slot reservation shared by every process in the fleet.

    ``try_enter`` never waits: it either reserves a slot or refuses. A slot
    that is never exited expires after ``ttl`` seconds.
    """

    @abstractmethod
    async def try_enter(self, key: str, capacity: int, ttl: float) -> Optional[AdmissionToken]:
        """Reserve a slot under ``key`` if fewer than ``capacity`` are held."""

    @abstractmethod
    async def exit(self, token: AdmissionToken) -> None:
        """Release a previously reserved slot."""
