"""
Admission Module
================
Bounded-concurrency slot reservation with Redis and in-memory backends.
"""

from .backend import AdmissionBackend, AdmissionToken
from .in_memory import InMemoryAdmissionBackend
from .redis_backend import RedisAdmissionBackend, ADMISSION_SCRIPT

__all__ = [
    # Contract
    "AdmissionBackend",
    "AdmissionToken",
    # Backends
    "InMemoryAdmissionBackend",
    "RedisAdmissionBackend",
    # Scripts
    "ADMISSION_SCRIPT",
]
