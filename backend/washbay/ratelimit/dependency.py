from __future__ import annotations

import math

from fastapi import Request, Response

from ..core.admin_gate import ADMIN_KEY_HEADER, is_privileged
from ..core.config import Settings, settings
from ..core.exceptions import RateLimitedException
from .headers import set_rate_headers
from .identity import resolve_identity
from .limiter import BookingRateLimiter


def _app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or settings


def _app_limiter(request: Request) -> BookingRateLimiter:
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        limiter = BookingRateLimiter.from_settings(_app_settings(request))
        request.app.state.rate_limiter = limiter
    return limiter


async def booking_rate_limit(request: Request, response: Response) -> None:
    """
    FastAPI dependency for booking creation.

    Privileged callers are never throttled. Everyone else is keyed by client
    IP and rejected with 429 and ``Retry-After`` once locked out.
    """
    config = _app_settings(request)
    if not config.rate_limit_enabled:
        return
    if is_privileged(request.headers.get(ADMIN_KEY_HEADER), config):
        return

    decision = _app_limiter(request).check_limit(
        resolve_identity(request, config.trusted_proxy_networks),
        config.booking_rate_limit_max_attempts,
        config.booking_rate_limit_window_seconds * 1000,
        config.booking_rate_limit_lockout_seconds * 1000,
    )
    set_rate_headers(
        response,
        decision.remaining,
        decision.limit,
        decision.reset_epoch_s,
        decision.retry_after_s if not decision.allowed else None,
    )
    if not decision.allowed:
        raise RateLimitedException(math.ceil(decision.retry_after_s)).to_http_exception()
