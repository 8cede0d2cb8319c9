"""Unit tests for the in-memory fixed-window rate limiter."""

import threading
import time
from unittest.mock import Mock

import pytest

from feedback_gate.adapters.rate_limit.base import RateLimitConfig, RateLimitDecision
from feedback_gate.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter


def _limiter(max_requests: int = 3, window_ms: int = 1000, start: float = 1000.0):
    clock = Mock(return_value=start)
    limiter = InMemoryFixedWindowRateLimiter(
        default_config=RateLimitConfig(max_requests=max_requests, window_ms=window_ms),
        clock=clock,
    )
    return limiter, clock


def test_rapid_calls_allow_up_to_limit_then_block() -> None:
    limiter, _ = _limiter(max_requests=3, window_ms=1000)

    decisions = [limiter.check_rate_limit("ip1") for _ in range(4)]

    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert [d.remaining for d in decisions] == [2, 1, 0, 0]


@pytest.mark.parametrize("n", [1, 2, 5])
def test_nth_call_reports_remaining_budget(n: int) -> None:
    limiter, _ = _limiter(max_requests=5)

    for _ in range(n - 1):
        limiter.check_rate_limit("k")
    decision = limiter.check_rate_limit("k")

    assert decision.allowed is True
    assert decision.remaining == 5 - n


def test_window_reset_time_is_set_by_first_request() -> None:
    limiter, clock = _limiter(max_requests=2, window_ms=1000, start=1000.0)

    first = limiter.check_rate_limit("k")
    clock.return_value = 1000.5
    second = limiter.check_rate_limit("k")
    blocked = limiter.check_rate_limit("k")

    assert first.reset_time == 1_001_000
    assert second.reset_time == 1_001_000
    assert blocked.allowed is False
    assert blocked.reset_time == 1_001_000
    assert blocked.limit == 2


def test_window_stays_closed_until_reset_time_has_passed() -> None:
    limiter, clock = _limiter(max_requests=1, window_ms=1000, start=1000.0)

    assert limiter.check_rate_limit("k").allowed is True
    assert limiter.check_rate_limit("k").allowed is False

    clock.return_value = 1001.0  # exactly at reset time
    assert limiter.check_rate_limit("k").allowed is False

    clock.return_value = 1002.0
    fresh = limiter.check_rate_limit("k")
    assert fresh.allowed is True
    assert fresh.remaining == 0
    assert fresh.reset_time == 1_003_000


def test_fresh_window_after_expiry_restores_full_budget() -> None:
    limiter, clock = _limiter(max_requests=3, window_ms=1000)

    for _ in range(4):
        limiter.check_rate_limit("k")

    clock.return_value = 1005.0
    decision = limiter.check_rate_limit("k")

    assert decision.allowed is True
    assert decision.remaining == 2


def test_isolated_by_key() -> None:
    limiter, _ = _limiter(max_requests=1)

    assert limiter.check_rate_limit("k1").allowed is True
    assert limiter.check_rate_limit("k1").allowed is False

    assert limiter.check_rate_limit("k2").allowed is True


def test_per_call_config_overrides_default() -> None:
    limiter, _ = _limiter(max_requests=1)
    config = RateLimitConfig(max_requests=2, window_ms=500)

    first = limiter.check_rate_limit("k", config)
    second = limiter.check_rate_limit("k", config)

    assert first.remaining == 1
    assert first.reset_time == 1_000_500
    assert second.allowed is True
    assert limiter.check_rate_limit("k", config).allowed is False


def test_empty_identifier_is_a_valid_key() -> None:
    limiter, _ = _limiter(max_requests=1)

    assert limiter.check_rate_limit("").allowed is True
    assert limiter.check_rate_limit("").allowed is False


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_requests": 0, "window_ms": 60},
        {"max_requests": 1, "window_ms": 0},
    ],
)
def test_invalid_config(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        RateLimitConfig(**kwargs)


def test_default_config_matches_documented_defaults() -> None:
    limiter = InMemoryFixedWindowRateLimiter()

    assert limiter.default_config == RateLimitConfig(max_requests=5, window_ms=60_000)


def test_retry_after_rounds_up_and_never_goes_negative() -> None:
    decision = RateLimitDecision(allowed=False, remaining=0, reset_time=10_000, limit=1)

    assert decision.retry_after_seconds(8_500) == 2
    assert decision.retry_after_seconds(10_000) == 0
    assert decision.retry_after_seconds(12_000) == 0


def test_sweep_removes_only_expired_entries() -> None:
    limiter, clock = _limiter(window_ms=1000)

    limiter.check_rate_limit("old")
    clock.return_value = 1000.5
    limiter.check_rate_limit("new")

    clock.return_value = 1001.25
    removed = limiter.sweep_expired()

    assert removed == 1
    assert len(limiter) == 1
    # "new" keeps its count from the current window
    assert limiter.check_rate_limit("new").remaining == 1


def test_sweep_then_check_starts_fresh_window() -> None:
    limiter, clock = _limiter(max_requests=1, window_ms=1000)

    limiter.check_rate_limit("k")
    clock.return_value = 1002.0
    assert limiter.sweep_expired() == 1

    decision = limiter.check_rate_limit("k")
    assert decision.allowed is True
    assert decision.remaining == 0


def test_concurrent_checks_never_exceed_limit() -> None:
    limiter, _ = _limiter(max_requests=10, window_ms=60_000)
    results: list[bool] = []
    results_lock = threading.Lock()

    def _worker() -> None:
        allowed = limiter.check_rate_limit("shared").allowed
        with results_lock:
            results.append(allowed)

    threads = [threading.Thread(target=_worker) for _ in range(50)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 50
    assert results.count(True) == 10


def test_background_sweeper_drops_expired_entries() -> None:
    limiter, clock = _limiter(window_ms=1000)
    limiter.check_rate_limit("k")
    clock.return_value = 1010.0

    limiter.start_sweeper(interval_seconds=0.01)
    try:
        deadline = time.monotonic() + 2.0
        while len(limiter) and time.monotonic() < deadline:
            time.sleep(0.01)
        assert len(limiter) == 0
        assert limiter.sweeper_running is True
    finally:
        limiter.stop_sweeper()

    assert limiter.sweeper_running is False


def test_sweeper_start_is_idempotent_and_stop_without_start_is_noop() -> None:
    limiter, _ = _limiter()

    limiter.stop_sweeper()

    limiter.start_sweeper(interval_seconds=60)
    limiter.start_sweeper(interval_seconds=60)
    try:
        assert limiter.sweeper_running is True
    finally:
        limiter.stop_sweeper()


def test_sweeper_rejects_non_positive_interval() -> None:
    limiter, _ = _limiter()

    with pytest.raises(ValueError):
        limiter.start_sweeper(interval_seconds=0)
