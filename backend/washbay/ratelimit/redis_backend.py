import logging
from typing import Any, Optional

import redis

from .metrics import rl_eval_errors
from .window import Decision

logger = logging.getLogger(__name__)


def get_redis(url: str) -> "redis.Redis[Any]":
    return redis.Redis.from_url(url, decode_responses=True)


# Lua script implementing the fixed window with lockout atomically
# KEYS[1] = storage key (hash: count, reset_at, blocked_until)
# ARGV[1] = now_ms
# ARGV[2] = max_attempts
# ARGV[3] = window_ms
# ARGV[4] = lockout_ms
# Returns: {allowed, retry_after_ms, remaining, reset_at_ms}
WINDOW_LUA = r"""
local key = KEYS[1]
local now_ms = tonumber(ARGV[1])
local max_attempts = tonumber(ARGV[2])
local window_ms = tonumber(ARGV[3])
local lockout_ms = tonumber(ARGV[4])

local state = redis.call('HMGET', key, 'count', 'reset_at', 'blocked_until')
local count = tonumber(state[1])
local reset_at = tonumber(state[2])
local blocked_until = tonumber(state[3])

if blocked_until and blocked_until > now_ms then
  return {0, blocked_until - now_ms, 0, reset_at or now_ms}
end

-- New key, expired window, or a lockout that has been served
if (not count) or (not reset_at) or reset_at <= now_ms or blocked_until then
  reset_at = now_ms + window_ms
  redis.call('DEL', key)
  redis.call('HSET', key, 'count', 1, 'reset_at', reset_at)
  redis.call('PEXPIRE', key, window_ms)
  return {1, 0, math.max(0, max_attempts - 1), reset_at}
end

count = count + 1
if count > max_attempts then
  blocked_until = now_ms + lockout_ms
  redis.call('HSET', key, 'count', count, 'blocked_until', blocked_until)
  redis.call('PEXPIRE', key, math.max(blocked_until, reset_at) - now_ms)
  return {0, lockout_ms, 0, reset_at}
end

redis.call('HSET', key, 'count', count)
return {1, 0, max_attempts - count, reset_at}
"""


class RedisRateLimitStore:
    """Shares counters across all workers. Fails open when Redis is unreachable."""

    def __init__(self, client: "redis.Redis[Any]", bucket: str = "booking"):
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_url(cls, url: str, bucket: str = "booking") -> "RedisRateLimitStore":
        return cls(get_redis(url), bucket)

    def hit(
        self, key: str, now_ms: int, max_attempts: int, window_ms: int, lockout_ms: int
    ) -> Decision:
        try:
            res = self.client.eval(
                WINDOW_LUA, 1, key, now_ms, max_attempts, window_ms, lockout_ms
            )
        except redis.RedisError as exc:
            rl_eval_errors.labels(bucket=self.bucket).inc()
            logger.warning("Rate-limit store unavailable, allowing request: %s", exc)
            return Decision(
                allowed=True,
                retry_after_s=0.0,
                remaining=max_attempts,
                limit=max_attempts,
                reset_epoch_s=(now_ms + window_ms) / 1000.0,
            )
        # res: [allowed, retry_after_ms, remaining, reset_at_ms]
        return Decision(
            allowed=bool(int(res[0])),
            retry_after_s=float(res[1]) / 1000.0,
            remaining=int(res[2]),
            limit=max_attempts,
            reset_epoch_s=float(res[3]) / 1000.0,
        )

    def reset(self, key: str) -> Optional[int]:
        return self.client.delete(key)


__all__ = ["RedisRateLimitStore", "WINDOW_LUA", "get_redis"]
