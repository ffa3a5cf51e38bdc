"""
Admission Controller
====================
Pick a timeout for an outbound call from a ranked set of quota tiers.

The most generous tier (largest timeout) is tried first. When its slots are
all held by in-flight calls anywhere in the fleet, the call falls back to the
next smaller timeout, and so on. If every tier is saturated the call is
refused immediately with AdmissionRefusedError; there is no queuing.

Usage:
    controller = AdmissionController(
        tiers=[{"timeout": 5, "limit": 2}, {"timeout": 1, "capacity": 0.5}],
        backend=RedisAdmissionBackend(redis),
        store=RedisCounterStore(redis),
        name="payments-api",
    )

    response = await controller.execute(request, send)
"""

import copy
import inspect
import threading
import time
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple, TypeVar

import httpx
import structlog

from .admission import AdmissionBackend, AdmissionToken, RedisAdmissionBackend
from .capacity import CapacityStrategy
from .config import DynamicTimeoutConfig, ThreadsSetting, TiersSetting
from .counter import DEFAULT_KEY_PREFIX, CounterStore, DistributedCounter, RedisCounterStore
from .exceptions import AdmissionRefusedError, BackendUnavailableError
from .report import OutcomeReport
from .tiers import QuotaTier, normalize_tiers

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def base_url(url: Any) -> str:
    """Scheme and host of a URL, with the port only when it is not the default."""
    url = httpx.URL(str(url))
    result = f"{url.scheme}://{url.host.lower()}"
    if url.port is not None:
        result = f"{result}:{url.port}"
    return result


class AdmissionController:
    """
    Tiered timeout admission for outbound calls.

    Without a backend, or with no valid tiers, every call is passed through
    untouched. Calls for which ``filter(request)`` returns False are passed
    through as well.
    """

    def __init__(
        self,
        tiers: TiersSetting = (),
        backend: Optional[AdmissionBackend] = None,
        store: Optional[CounterStore] = None,
        name: str = "",
        key_prefix: str = DEFAULT_KEY_PREFIX,
        threads_per_process: ThreadsSetting = 1,
        filter: Optional[Callable[[Any], bool]] = None,
        callback: Optional[Callable[[OutcomeReport], Any]] = None,
        before_request: Optional[Callable[[Any, float], Any]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.tiers = tiers
        self.backend = backend
        self.store = store
        self.name = name or ""
        self.key_prefix = key_prefix
        self.filter = filter
        self.callback = callback
        self.before_request = before_request
        self.clock = clock
        self.capacity_strategy = CapacityStrategy(
            store,
            name=self.name,
            threads_per_process=threads_per_process,
            key_prefix=key_prefix,
            clock=clock,
        )

        self._memoized: Tuple[Optional[list], List[QuotaTier]] = (None, [])
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: DynamicTimeoutConfig, redis_client=None) -> "AdmissionController":
        """Build a Redis-backed controller from configuration."""
        if redis_client is None:
            from redis.asyncio import Redis
            redis_client = Redis.from_url(config.redis_url)

        return cls(
            tiers=config.tiers,
            backend=RedisAdmissionBackend(redis_client),
            store=RedisCounterStore(redis_client),
            name=config.name,
            key_prefix=config.key_prefix,
            threads_per_process=config.threads_per_process,
            filter=config.filter,
            callback=config.callback,
            before_request=config.before_request,
        )

    def sorted_tiers(self) -> List[QuotaTier]:
        """
        Normalized tiers for the current configuration.

        The result is cached until the raw configuration changes by value.
        """
        config = self.tiers() if callable(self.tiers) else self.tiers
        config = list(config or [])

        memoized_config, memoized_tiers = self._memoized
        if config == memoized_config:
            return memoized_tiers

        with self._lock:
            memoized_config, memoized_tiers = self._memoized
            if config == memoized_config:
                return memoized_tiers

            duplicated_config = copy.deepcopy(config)
            tiers = normalize_tiers(duplicated_config)
            self._memoized = (duplicated_config, tiers)

        logger.debug("tier_cache_rebuilt", name=self.name, tiers=[(t.timeout, t.limit, t.capacity) for t in tiers])
        return tiers

    def enabled(self, request: Any) -> bool:
        if self.filter is None:
            return True
        return bool(self.filter(request))

    def target_name(self, url: Any) -> str:
        return self.name or base_url(url)

    def namespace(self, url: Any) -> str:
        return f"{self.key_prefix}:{self.target_name(url)}"

    def request_counter(self, url: Any, tiers: Sequence[QuotaTier]) -> Optional[DistributedCounter]:
        """Counter of in-flight calls to the target, used only for reporting."""
        if self.callback is None or self.store is None:
            return None
        return DistributedCounter(
            f"{self.target_name(url)}.requests",
            self.store,
            ttl=tiers[-1].timeout,
            key_prefix=self.key_prefix,
            clock=self.clock,
        )

    async def resolve_tiers(self, tiers: Sequence[QuotaTier]) -> List[QuotaTier]:
        """Resolve capacity fractions into absolute limits when any tier uses one."""
        if not any(tier.capacity is not None and not tier.no_limit for tier in tiers):
            return list(tiers)
        return await self.capacity_strategy.compute(tiers)

    async def execute(
        self,
        request: Any,
        operation: Callable[[Optional[float]], Awaitable[T]],
        apply_timeout: Optional[Callable[[Any, float], None]] = None,
    ) -> T:
        """
        Run ``operation`` under the most generous tier that has a free slot.

        Args:
            request: The outbound request; must expose ``method`` and ``url``
            operation: Coroutine function called with the chosen timeout, or
                None when no tier applies
            apply_timeout: Optional hook that sets the chosen timeout on the
                request before ``before_request`` and ``operation`` run

        Returns:
            Whatever ``operation`` returns

        Raises:
            AdmissionRefusedError: if every tier is saturated
        """
        tiers = self.sorted_tiers()
        if not tiers or self.backend is None or not self.enabled(request):
            return await operation(None)

        try:
            tiers = await self.resolve_tiers(tiers)
        except BackendUnavailableError as e:
            logger.warning("admission_backend_unavailable", stage="capacity", error=str(e))
            return await operation(None)

        namespace = self.namespace(request.url)
        counter = self.request_counter(request.url, tiers)
        member_id = None
        request_count = 1

        if counter is not None:
            try:
                member_id = await counter.track()
                request_count = await counter.value()
            except BackendUnavailableError as e:
                logger.warning("request_counter_unavailable", target=namespace, error=str(e))

        start_time = time.monotonic()
        chosen_timeout = None
        response = None
        error = None

        try:
            try:
                chosen_timeout, token = await self._acquire(request, namespace, tiers, request_count)
            except BackendUnavailableError as e:
                logger.warning("admission_backend_unavailable", stage="admission", target=namespace, error=str(e))
                chosen_timeout, token = None, None

            # Only the wrapped call counts towards the reported duration
            start_time = time.monotonic()
            try:
                if chosen_timeout is not None:
                    if apply_timeout is not None:
                        apply_timeout(request, chosen_timeout)
                    if self.before_request is not None:
                        self.before_request(request, chosen_timeout)
                response = await operation(chosen_timeout)
            finally:
                if token is not None:
                    await self._exit(token)
            return response
        except BaseException as e:
            error = e
            raise
        finally:
            if counter is not None and member_id is not None:
                await self._release_membership(counter, member_id)

            if self.callback is not None:
                report = OutcomeReport(
                    target=self.target_name(request.url),
                    method=request.method,
                    url=request.url,
                    duration=time.monotonic() - start_time,
                    timeout=chosen_timeout,
                    status=getattr(response, "status_code", None),
                    observed_count=request_count,
                    error=error,
                )
                result = self.callback(report)
                if inspect.isawaitable(result):
                    await result

    async def _acquire(
        self,
        request: Any,
        namespace: str,
        tiers: Sequence[QuotaTier],
        request_count: int,
    ) -> Tuple[float, Optional[AdmissionToken]]:
        """Walk tiers from the largest timeout down and reserve the first free slot."""
        rejected_capacity = 0

        for tier in reversed(tiers):
            if tier.no_limit:
                logger.debug("tier_selected", target=namespace, timeout=tier.timeout, limited=False)
                return tier.timeout, None

            token = await self.backend.try_enter(f"{namespace}.{tier.timeout}", tier.limit, tier.timeout)
            if token is not None:
                logger.debug("tier_selected", target=namespace, timeout=tier.timeout, limited=True)
                return tier.timeout, token

            rejected_capacity += tier.limit

        # request_count is a snapshot taken before the cascade, so it may be stale
        request_count = max(request_count, rejected_capacity + 1)
        target = base_url(request.url)
        logger.warning("admission_refused", target=namespace, request_count=request_count)
        raise AdmissionRefusedError(
            f"Request to {target} aborted due to {request_count} concurrent requests",
            request_count=request_count,
            target=target,
        )

    async def _exit(self, token: AdmissionToken) -> None:
        try:
            await self.backend.exit(token)
        except BackendUnavailableError as e:
            logger.warning("admission_release_failed", key=token.key, error=str(e))

    async def _release_membership(self, counter: DistributedCounter, member_id: str) -> None:
        try:
            await counter.release(member_id)
        except BackendUnavailableError as e:
            logger.warning("request_counter_release_failed", key=counter.key, error=str(e))
