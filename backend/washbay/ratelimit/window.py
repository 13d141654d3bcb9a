"""
Fixed-window attempt counter with a cool-down lockout.

The first attempt for a key (or the first after its window expired) opens a
window of ``window_ms`` with a count of one. Every later attempt inside the
window increments the count; the attempt that pushes it past
``max_attempts`` blocks the key for ``lockout_ms``. While blocked, every
attempt is denied without being counted. Once the lockout has passed the
key starts again from an empty window.
"""

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class WindowState:
    count: int
    reset_at_ms: int
    blocked_until_ms: Optional[int] = None


@dataclass
class Decision:
    allowed: bool
    retry_after_s: float
    remaining: int
    limit: int
    reset_epoch_s: float


def decide(
    now_ms: int,
    state: Optional[WindowState],
    max_attempts: int,
    window_ms: int,
    lockout_ms: int,
) -> Tuple[WindowState, Decision]:
    """
    Pure decision function.

    Args:
        now_ms: current wall time in epoch milliseconds
        state: stored state for the key, or None if new
        max_attempts: attempts allowed per window
        window_ms: window length
        lockout_ms: how long a key stays blocked after exceeding the limit

    Returns:
        (new_state, Decision)
    """
    if state is not None and state.blocked_until_ms is not None:
        if state.blocked_until_ms > now_ms:
            retry_after_s = (state.blocked_until_ms - now_ms) / 1000.0
            decision = Decision(False, retry_after_s, 0, max_attempts, state.reset_at_ms / 1000.0)
            return state, decision
        # Lockout served: forget the old window entirely
        state = None

    if state is None or state.reset_at_ms <= now_ms:
        new_state = WindowState(count=1, reset_at_ms=now_ms + window_ms)
        decision = Decision(
            True, 0.0, max(0, max_attempts - 1), max_attempts, new_state.reset_at_ms / 1000.0
        )
        return new_state, decision

    count = state.count + 1
    if count > max_attempts:
        blocked_until_ms = now_ms + lockout_ms
        new_state = WindowState(count, state.reset_at_ms, blocked_until_ms)
        decision = Decision(False, lockout_ms / 1000.0, 0, max_attempts, state.reset_at_ms / 1000.0)
        return new_state, decision

    new_state = WindowState(count, state.reset_at_ms)
    decision = Decision(True, 0.0, max_attempts - count, max_attempts, state.reset_at_ms / 1000.0)
    return new_state, decision
