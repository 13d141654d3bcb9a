from ipaddress import ip_network
from unittest.mock import Mock

import pytest
import redis
from starlette.requests import Request

from washbay.ratelimit.identity import client_ip, resolve_identity
from washbay.ratelimit.limiter import BookingRateLimiter
from washbay.ratelimit.memory_backend import InMemoryRateLimitStore
from washbay.ratelimit.redis_backend import RedisRateLimitStore
from washbay.ratelimit.window import WindowState, decide

WINDOW_MS = 600_000
LOCKOUT_MS = 900_000


def hit(now_ms, state, max_attempts=3):
    return decide(now_ms, state, max_attempts, WINDOW_MS, LOCKOUT_MS)


def test_first_attempt_opens_window():
    state, decision = hit(1_000, None)

    assert state == WindowState(count=1, reset_at_ms=1_000 + WINDOW_MS)
    assert decision.allowed
    assert decision.remaining == 2


def test_attempt_past_limit_starts_lockout():
    state = WindowState(count=3, reset_at_ms=WINDOW_MS)

    new_state, decision = hit(5_000, state)

    assert not decision.allowed
    assert decision.retry_after_s == LOCKOUT_MS / 1000
    assert new_state.blocked_until_ms == 5_000 + LOCKOUT_MS


def test_blocked_attempts_are_not_counted():
    state = WindowState(count=4, reset_at_ms=WINDOW_MS, blocked_until_ms=100_000)

    new_state, decision = hit(40_000, state)

    assert new_state is state
    assert not decision.allowed
    assert decision.retry_after_s == 60


def test_expired_lockout_starts_fresh():
    state = WindowState(count=4, reset_at_ms=WINDOW_MS, blocked_until_ms=100_000)

    new_state, decision = hit(100_000, state)

    assert decision.allowed
    assert new_state.count == 1
    assert new_state.blocked_until_ms is None


def test_expired_window_resets_count():
    state = WindowState(count=3, reset_at_ms=50_000)
    new_state, decision = hit(50_000, state)
    assert decision.allowed
    assert new_state.count == 1


@pytest.fixture
def limiter(rate_clock):
    return BookingRateLimiter(InMemoryRateLimitStore(), namespace="unit", clock=rate_clock)


def check(limiter, key="ip:203.0.113.9"):
    return limiter.check_limit(key, 3, WINDOW_MS, LOCKOUT_MS)


def test_fourth_attempt_in_window_is_rejected(limiter, rate_clock):
    for _ in range(3):
        assert check(limiter).allowed
        rate_clock.advance(60)

    rejected = check(limiter)
    assert not rejected.allowed
    assert rejected.retry_after_s == 900

    rate_clock.advance(899)
    assert not check(limiter).allowed

    rate_clock.advance(1)
    allowed = check(limiter)
    assert allowed.allowed
    assert allowed.remaining == 2


def test_keys_are_counted_separately(limiter):
    for _ in range(4):
        check(limiter, "ip:198.51.100.1")

    assert not check(limiter, "ip:198.51.100.1").allowed
    assert check(limiter, "ip:198.51.100.2").allowed


def test_purge_expired_drops_only_stale_keys():
    store = InMemoryRateLimitStore(sweep_interval_ms=10 * WINDOW_MS)
    store.hit("old", 0, 3, WINDOW_MS, LOCKOUT_MS)
    store.hit("fresh", WINDOW_MS // 2, 3, WINDOW_MS, LOCKOUT_MS)

    assert store.purge_expired(WINDOW_MS) == 1
    assert len(store) == 1


def test_limiter_sweeps_expired_keys(rate_clock):
    store = InMemoryRateLimitStore()
    limiter = BookingRateLimiter(store, namespace="unit", clock=rate_clock)
    for n in range(1000):
        limiter.check_limit(f"ip:198.51.{n // 256}.{n % 256}", 3, WINDOW_MS, LOCKOUT_MS)
    assert len(store) == 1000

    rate_clock.advance(24 * 3600)
    limiter.check_limit("ip:203.0.113.1", 3, WINDOW_MS, LOCKOUT_MS)

    assert len(store) == 1


def test_locked_out_keys_survive_a_sweep():
    store = InMemoryRateLimitStore(sweep_interval_ms=0)
    for now_ms in (0, 1, 2, 3):
        store.hit("busy", now_ms, 3, WINDOW_MS, LOCKOUT_MS)

    store.hit("other", WINDOW_MS + 1, 3, WINDOW_MS, LOCKOUT_MS)

    assert not store.hit("busy", WINDOW_MS + 2, 3, WINDOW_MS, LOCKOUT_MS).allowed


def test_size_bound_forces_a_sweep():
    store = InMemoryRateLimitStore(sweep_interval_ms=10 * WINDOW_MS, sweep_size=3)
    for n in range(3):
        store.hit(f"k{n}", n, 3, WINDOW_MS, LOCKOUT_MS)

    store.hit("late", WINDOW_MS + 10, 3, WINDOW_MS, LOCKOUT_MS)

    assert len(store) == 1


def test_redis_store_maps_script_result():
    client = Mock()
    client.eval.return_value = [0, 30_000, 0, 1_200_000]

    decision = RedisRateLimitStore(client).hit("k", 1_000, 3, WINDOW_MS, LOCKOUT_MS)

    assert not decision.allowed
    assert decision.retry_after_s == 30
    assert decision.reset_epoch_s == 1_200
    assert client.eval.call_args.args[1:] == (1, "k", 1_000, 3, WINDOW_MS, LOCKOUT_MS)


def test_redis_store_fails_open():
    client = Mock()
    client.eval.side_effect = redis.ConnectionError("down")

    decision = RedisRateLimitStore(client).hit("k", 1_000, 3, WINDOW_MS, LOCKOUT_MS)

    assert decision.allowed
    assert decision.remaining == 3


def make_request(headers=None, client=("10.0.0.7", 51000)):
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/",
        "headers": [(name.encode(), value.encode()) for name, value in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


TRUSTED = (ip_network("10.0.0.0/24"),)


def test_spoofed_headers_from_untrusted_peer_are_ignored():
    request = make_request({"x-forwarded-for": "203.0.113.5", "x-real-ip": "1.1.1.1"})

    assert client_ip(request) == "10.0.0.7"
    assert client_ip(request, (ip_network("192.0.2.0/24"),)) == "10.0.0.7"


def test_rotating_forwarded_for_shares_one_bucket(rate_clock):
    limiter = BookingRateLimiter(InMemoryRateLimitStore(), namespace="unit", clock=rate_clock)
    decisions = [
        limiter.check_limit(
            resolve_identity(make_request({"x-forwarded-for": f"203.0.113.{n}"})),
            3,
            WINDOW_MS,
            LOCKOUT_MS,
        )
        for n in range(6)
    ]

    assert [decision.allowed for decision in decisions] == [True, True, True, False, False, False]


def test_trusted_proxy_forwards_client_address():
    request = make_request({"x-forwarded-for": "203.0.113.5, 10.0.0.1", "x-real-ip": "1.1.1.1"})
    assert client_ip(request, TRUSTED) == "203.0.113.5"
    assert client_ip(make_request({"x-real-ip": " 198.51.100.4 "}), TRUSTED) == "198.51.100.4"
    assert client_ip(make_request(), TRUSTED) == "10.0.0.7"


def test_peer_without_address():
    assert client_ip(make_request(client=None), TRUSTED) == "unknown"
    assert client_ip(make_request(client=("testclient", 50000)), TRUSTED) == "testclient"
    assert resolve_identity(make_request()) == "ip:10.0.0.7"
