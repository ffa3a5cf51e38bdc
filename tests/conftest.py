"""
Shared fixtures for dynamic_timeout tests.
"""

import httpx
import pytest

from dynamic_timeout.admission import InMemoryAdmissionBackend
from dynamic_timeout.counter import InMemoryCounterStore


class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryCounterStore(clock=clock)


@pytest.fixture
def backend(clock):
    return InMemoryAdmissionBackend(clock=clock)


@pytest.fixture
def make_request():
    def factory(url: str = "https://example.com/foobar", method: str = "GET") -> httpx.Request:
        return httpx.Request(method, url)
    return factory
