"""
Dynamic Timeout
===============
Adaptive timeouts for outbound HTTP calls, chosen from ranked quota tiers with
fleet-wide concurrency limits coordinated through Redis.
"""

__version__ = "0.1.0"

# Tiers
from dynamic_timeout.tiers import QuotaTier, normalize_tiers, tier_from_mapping

# Counters
from dynamic_timeout.counter import (
    DistributedCounter,
    CounterStore,
    RedisCounterStore,
    InMemoryCounterStore,
)

# Admission
from dynamic_timeout.admission import (
    AdmissionBackend,
    AdmissionToken,
    RedisAdmissionBackend,
    InMemoryAdmissionBackend,
)

# Capacity
from dynamic_timeout.capacity import CapacityStrategy, process_id

# Controller
from dynamic_timeout.controller import AdmissionController, base_url
from dynamic_timeout.config import DynamicTimeoutConfig
from dynamic_timeout.report import OutcomeReport, OutcomeKind
from dynamic_timeout.transport import DynamicTimeoutTransport

# Metrics
from dynamic_timeout.metrics import PrometheusReporter

# Errors
from dynamic_timeout.exceptions import (
    DynamicTimeoutError,
    AdmissionRefusedError,
    BackendUnavailableError,
)

__all__ = [
    # Tiers
    "QuotaTier",
    "normalize_tiers",
    "tier_from_mapping",
    # Counters
    "DistributedCounter",
    "CounterStore",
    "RedisCounterStore",
    "InMemoryCounterStore",
    # Admission
    "AdmissionBackend",
    "AdmissionToken",
    "RedisAdmissionBackend",
    "InMemoryAdmissionBackend",
    # Capacity
    "CapacityStrategy",
    "process_id",
    # Controller
    "AdmissionController",
    "base_url",
    "DynamicTimeoutConfig",
    "OutcomeReport",
    "OutcomeKind",
    "DynamicTimeoutTransport",
    # Metrics
    "PrometheusReporter",
    # Errors
    "DynamicTimeoutError",
    "AdmissionRefusedError",
    "BackendUnavailableError",
]
