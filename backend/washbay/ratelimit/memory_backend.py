"""Process-local rate-limit store, used when no Redis URL is configured."""

import threading
from typing import Dict

from .window import Decision, WindowState, decide

DEFAULT_SWEEP_INTERVAL_MS = 60_000
DEFAULT_SWEEP_SIZE = 10_000


class InMemoryRateLimitStore:
    """
    Thread-safe dict of window states.

    Expired keys are swept from inside ``hit`` at most once per
    ``sweep_interval_ms``, and immediately whenever the dict grows past
    ``sweep_size``, so memory stays bounded by the keys seen in the last
    window plus lockout.

    Only correct for a single worker process; multi-worker deployments use
    ``RedisRateLimitStore`` so every worker sees the same counters.
    """

    def __init__(
        self,
        sweep_interval_ms: int = DEFAULT_SWEEP_INTERVAL_MS,
        sweep_size: int = DEFAULT_SWEEP_SIZE,
    ) -> None:
        self._states: Dict[str, WindowState] = {}
        self._lock = threading.Lock()
        self.sweep_interval_ms = sweep_interval_ms
        self.sweep_size = sweep_size
        self._next_sweep_ms: int = 0

    def hit(
        self, key: str, now_ms: int, max_attempts: int, window_ms: int, lockout_ms: int
    ) -> Decision:
        with self._lock:
            if now_ms >= self._next_sweep_ms or len(self._states) >= self.sweep_size:
                self._purge_locked(now_ms)
                self._next_sweep_ms = now_ms + self.sweep_interval_ms
            state, decision = decide(
                now_ms, self._states.get(key), max_attempts, window_ms, lockout_ms
            )
            self._states[key] = state
            return decision

    def _purge_locked(self, now_ms: int) -> int:
        stale = [
            key
            for key, state in self._states.items()
            if state.reset_at_ms <= now_ms
            and (state.blocked_until_ms is None or state.blocked_until_ms <= now_ms)
        ]
        for key in stale:
            del self._states[key]
        return len(stale)

    def purge_expired(self, now_ms: int) -> int:
        """Drop keys whose window and lockout have both passed."""
        with self._lock:
            return self._purge_locked(now_ms)

    def reset(self, key: str) -> None:
        with self._lock:
            self._states.pop(key, None)

    def __len__(self) -> int:
        return len(self._states)
