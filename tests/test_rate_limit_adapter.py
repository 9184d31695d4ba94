"""Unit tests for the in-memory fixed-window rate limiter."""

import threading
from unittest.mock import Mock

import pytest

from budget_guard.adapters.rate_limit.in_memory import InMemoryFixedWindowRateLimiter


def test_allows_up_to_limit_in_same_window(limiter) -> None:
    decisions = [limiter.evaluate("k", 5, 60_000) for _ in range(5)]

    assert all(d.allowed for d in decisions)
    assert [d.remaining for d in decisions] == [4, 3, 2, 1, 0]


def test_blocks_when_over_limit(limiter) -> None:
    for _ in range(3):
        limiter.evaluate("k", 3, 60_000)

    blocked = limiter.evaluate("k", 3, 60_000)
    assert blocked.allowed is False
    assert blocked.remaining == 0
    assert blocked.retry_after_ms is not None
    assert blocked.retry_after_ms > 0


def test_allowed_decisions_never_carry_retry_after(limiter, clock) -> None:
    for step in range(10):
        clock.return_value = 1000.0 + step * 0.01
        decision = limiter.evaluate("k", 4, 50)
        if decision.allowed:
            assert decision.retry_after_ms is None
            assert decision.retry_after_seconds is None
        else:
            assert decision.retry_after_ms is not None
            assert decision.retry_after_ms >= 0


def test_blocked_call_does_not_consume_budget(limiter, clock) -> None:
    limiter.evaluate("k", 1, 1000)
    for _ in range(5):
        assert limiter.evaluate("k", 1, 1000).allowed is False

    clock.return_value = 1001.0
    assert limiter.evaluate("k", 1, 1000).allowed is True


def test_window_is_anchored_at_first_request(clock) -> None:
    limiter = InMemoryFixedWindowRateLimiter(clock=clock)
    clock.return_value = 1000.5

    limiter.evaluate("k", 1, 1000)
    # Still inside the window opened at 1000.5s even though a whole second has ticked over.
    clock.return_value = 1001.25
    assert limiter.evaluate("k", 1, 1000).allowed is False

    clock.return_value = 1001.5
    assert limiter.evaluate("k", 1, 1000).allowed is True


def test_concrete_scenario_three_per_minute(limiter, clock) -> None:
    assert [limiter.evaluate("k", 3, 60_000).allowed for _ in range(3)] == [True, True, True]

    clock.return_value = 1012.5
    fourth = limiter.evaluate("k", 3, 60_000)
    assert fourth.allowed is False
    assert fourth.retry_after_ms == 47_500
    assert fourth.retry_after_seconds == 48

    clock.return_value = 1060.0
    fifth = limiter.evaluate("k", 3, 60_000)
    assert fifth.allowed is True
    assert fifth.remaining == 2


def test_reset_after_expiry_counts_triggering_call(limiter, clock) -> None:
    for _ in range(3):
        limiter.evaluate("k", 3, 60_000)
    assert limiter.evaluate("k", 3, 60_000).allowed is False

    clock.return_value = 1060.0
    assert limiter.evaluate("k", 3, 60_000).allowed is True
    assert limiter.evaluate("k", 3, 60_000).allowed is True
    assert limiter.evaluate("k", 3, 60_000).allowed is True
    assert limiter.evaluate("k", 3, 60_000).allowed is False


def test_short_window_resets_after_wait(limiter, clock) -> None:
    assert limiter.evaluate("k2", 2, 100).allowed is True
    assert limiter.evaluate("k2", 2, 100).allowed is True
    assert limiter.evaluate("k2", 2, 100).allowed is False

    clock.return_value = 1000.15
    assert limiter.evaluate("k2", 2, 100).allowed is True


def test_boundary_burst_is_accepted(limiter, clock) -> None:
    clock.return_value = 1000.0
    assert all(limiter.evaluate("k", 3, 1000).allowed for _ in range(3))

    clock.return_value = 1001.0
    assert all(limiter.evaluate("k", 3, 1000).allowed for _ in range(3))


def test_isolated_by_key(limiter) -> None:
    assert limiter.evaluate("user-1", 2, 60_000).allowed is True
    assert limiter.evaluate("user-1", 2, 60_000).allowed is True
    assert limiter.evaluate("user-1", 2, 60_000).allowed is False

    assert limiter.evaluate("user-2", 2, 60_000).allowed is True


@pytest.mark.parametrize(
    ("key", "limit", "window_ms"),
    [
        ("", 1, 1000),
        ("k", 0, 1000),
        ("k", -1, 1000),
        ("k", 1, 0),
        ("k", 1, -5),
    ],
)
def test_invalid_arguments_raise_and_leave_table_untouched(limiter, key, limit, window_ms) -> None:
    with pytest.raises(ValueError):
        limiter.evaluate(key, limit, window_ms)

    assert len(limiter) == 0
    assert limiter.stats()["allowed_total"] == 0


def test_invalid_max_keys() -> None:
    with pytest.raises(ValueError):
        InMemoryFixedWindowRateLimiter(max_keys=0)


def test_sweep_removes_only_expired_records(limiter, clock) -> None:
    limiter.evaluate("short", 1, 100)
    limiter.evaluate("long", 1, 60_000)

    clock.return_value = 1001.0
    assert limiter.sweep_expired() == 1
    assert len(limiter) == 1
    assert limiter.evaluate("long", 1, 60_000).allowed is False


def test_max_keys_cap_prefers_expired_then_oldest(clock) -> None:
    limiter = InMemoryFixedWindowRateLimiter(clock=clock, max_keys=2)

    limiter.evaluate("a", 1, 100)
    limiter.evaluate("b", 1, 60_000)
    clock.return_value = 1001.0
    limiter.evaluate("c", 1, 60_000)

    # "a" had expired, so it was swept instead of evicting a live key.
    assert len(limiter) == 2
    assert limiter.evaluate("b", 1, 60_000).allowed is False

    limiter.evaluate("d", 1, 60_000)
    assert len(limiter) == 2
    # "b" was the oldest live window and was dropped to make room.
    assert limiter.evaluate("b", 1, 60_000).allowed is True


def test_reset_single_key_and_all(limiter) -> None:
    limiter.evaluate("a", 1, 60_000)
    limiter.evaluate("b", 1, 60_000)

    limiter.reset("a")
    assert limiter.evaluate("a", 1, 60_000).allowed is True
    assert limiter.evaluate("b", 1, 60_000).allowed is False

    limiter.reset()
    assert len(limiter) == 0


def test_stats_counts_decisions(limiter) -> None:
    limiter.evaluate("k", 1, 60_000)
    limiter.evaluate("k", 1, 60_000)

    stats = limiter.stats()
    assert stats["keys"] == 1
    assert stats["allowed_total"] == 1
    assert stats["blocked_total"] == 1
    assert "k" not in stats


def test_concurrent_threads_never_exceed_limit() -> None:
    limiter = InMemoryFixedWindowRateLimiter(clock=Mock(return_value=1000.0))
    limit = 50
    results: list[bool] = []
    results_lock = threading.Lock()
    start = threading.Barrier(16)

    def worker() -> None:
        start.wait()
        local = [limiter.evaluate("shared", limit, 60_000).allowed for _ in range(20)]
        with results_lock:
            results.extend(local)

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(results) == 16 * 20
    assert results.count(True) == limit
