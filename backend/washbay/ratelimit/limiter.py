"""Booking attempt limiter keyed by client identity."""

import logging
import time
from typing import Callable, Optional, Protocol

from ..core.config import Settings, settings
from .memory_backend import InMemoryRateLimitStore
from .metrics import rl_decisions, rl_retry_after
from .redis_backend import RedisRateLimitStore
from .window import Decision

logger = logging.getLogger(__name__)


class RateLimitStore(Protocol):
    def hit(
        self, key: str, now_ms: int, max_attempts: int, window_ms: int, lockout_ms: int
    ) -> Decision:
        ...


class BookingRateLimiter:
    """
    Counts booking attempts per key and locks out keys that exceed the limit.

    One instance is created per process at startup and shared by all
    requests. The store decides whether counters are process-local or shared
    through Redis.
    """

    def __init__(
        self,
        store: RateLimitStore,
        namespace: str = "washbay",
        bucket: str = "booking",
        clock: Optional[Callable[[], float]] = None,
    ):
        self.store = store
        self.namespace = namespace
        self.bucket = bucket
        self.clock = clock or time.time

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "BookingRateLimiter":
        config = config or settings
        store: RateLimitStore
        if config.redis_url:
            store = RedisRateLimitStore.from_url(config.redis_url)
            logger.info("Booking rate limiter using Redis store")
        else:
            store = InMemoryRateLimitStore()
            logger.info("Booking rate limiter using in-memory store")
        return cls(store, namespace=config.rate_limit_namespace)

    def _namespaced_key(self, identity: str) -> str:
        return f"{self.namespace}:{self.bucket}:{identity}"

    def check_limit(
        self, key: str, max_attempts: int, window_ms: int, lockout_ms: int
    ) -> Decision:
        """Record one attempt for ``key`` and decide whether it may proceed."""
        now_ms = int(self.clock() * 1000)
        decision = self.store.hit(
            self._namespaced_key(key), now_ms, max_attempts, window_ms, lockout_ms
        )
        if decision.allowed:
            rl_decisions.labels(bucket=self.bucket, action="allow").inc()
        else:
            rl_decisions.labels(bucket=self.bucket, action="block").inc()
            rl_retry_after.labels(bucket=self.bucket).observe(decision.retry_after_s)
            logger.warning(
                "Rate limit exceeded for %s, retry in %.0fs", key, decision.retry_after_s
            )
        return decision
