"""Booking attempt throttling: fixed window with lockout, in-memory or Redis backed."""

from .dependency import booking_rate_limit
from .limiter import BookingRateLimiter
from .memory_backend import InMemoryRateLimitStore
from .redis_backend import RedisRateLimitStore
from .window import Decision, WindowState, decide

__all__ = [
    "BookingRateLimiter",
    "Decision",
    "InMemoryRateLimitStore",
    "RedisRateLimitStore",
    "WindowState",
    "booking_rate_limit",
    "decide",
]
