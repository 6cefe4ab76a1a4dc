"""Tests for the shared rate budget governor."""

from __future__ import annotations

import random
import threading

import pytest

from conftest import FakeClock
from core.errors import RateLimitExceeded
from core.ratelimit.governor import RateBudgetGovernor, RateWindow


def _governor(clock: FakeClock, *, budget: int = 45, window: float = 60, penalty: float = 120) -> RateBudgetGovernor:
    return RateBudgetGovernor(budget=budget, window_seconds=window, penalty_seconds=penalty, clock=clock)


def test_overflow_grants_exactly_the_budget(clock):
    """45/60s budget, 50 rapid acquisitions: 45 granted, 5 denied."""
    governor = _governor(clock)

    results = [governor.try_acquire() for _ in range(50)]

    assert sum(r.granted for r in results) == 45
    assert sum(not r.granted for r in results) == 5
    assert all(r.granted for r in results[:45])

    follow_up = governor.try_acquire()
    assert follow_up.granted is False
    assert follow_up.retry_after == pytest.approx(120)


def test_retry_after_counts_down_during_penalty(clock):
    governor = _governor(clock, budget=2, window=60, penalty=30)
    governor.try_acquire()
    governor.try_acquire()
    assert governor.try_acquire().granted is False

    clock.advance(10)
    result = governor.try_acquire()
    assert result.granted is False
    assert result.retry_after == pytest.approx(20)
    assert governor.retry_after() == pytest.approx(20)


def test_penalty_blocks_even_after_window_expires(clock):
    """Once blocked, every acquisition fails until blocked_until, whatever the count."""
    governor = _governor(clock, budget=1, window=5, penalty=30)
    governor.try_acquire()
    assert governor.try_acquire().granted is False

    clock.advance(10)  # window long gone, penalty still active
    assert governor.try_acquire().granted is False

    clock.advance(20)
    assert governor.try_acquire().granted is True


def test_window_rolls_over(clock):
    governor = _governor(clock, budget=3, window=10, penalty=30)
    for _ in range(3):
        assert governor.try_acquire().granted

    clock.advance(10)
    assert governor.try_acquire().granted is True
    assert governor.snapshot().call_count == 1


def test_short_penalty_does_not_reopen_budget(clock):
    """A penalty shorter than the window leaves the earlier grants counted."""
    governor = _governor(clock, budget=3, window=60, penalty=10)
    for _ in range(3):
        governor.try_acquire()
    assert governor.try_acquire().granted is False

    clock.advance(11)
    assert governor.try_acquire().granted is False  # still 3 grants in the window

    clock.advance(60)
    assert governor.try_acquire().granted is True


def test_rolling_window_never_exceeds_budget():
    """Randomized call pattern: no rolling window ever holds more than the budget."""
    rng = random.Random(42)
    clock = FakeClock()
    budget, window = 5, 10.0
    governor = _governor(clock, budget=budget, window=window, penalty=rng.choice([3.0, 7.0]))
    grants: list[float] = []

    for _ in range(2000):
        clock.advance(rng.choice([0.0, 0.0, 0.1, 0.5, 1.0, 2.5]))
        if governor.try_acquire().granted:
            grants.append(clock.now)

    assert grants
    for i, t in enumerate(grants):
        in_window = [g for g in grants[: i + 1] if g > t - window]
        assert len(in_window) <= budget


def test_concurrent_threads_never_overshoot():
    """The check-and-increment is atomic under contention."""
    governor = RateBudgetGovernor(budget=100, window_seconds=3600, penalty_seconds=3600)
    granted: list[bool] = []
    lock = threading.Lock()
    barrier = threading.Barrier(8)

    def worker() -> None:
        barrier.wait()
        for _ in range(50):
            result = governor.try_acquire()
            with lock:
                granted.append(result.granted)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(granted) == 100
    assert governor.granted_total == 100
    assert governor.denied_total == 300


def test_acquire_or_raise(clock):
    governor = _governor(clock, budget=1, penalty=45)
    governor.acquire_or_raise()

    with pytest.raises(RateLimitExceeded) as exc_info:
        governor.acquire_or_raise()
    assert exc_info.value.retry_after == pytest.approx(45)


def test_snapshot_reports_usage(clock):
    governor = _governor(clock, budget=10, window=60)
    for _ in range(7):
        governor.try_acquire()
        clock.advance(1)

    window = governor.snapshot()
    assert window.call_count == 7
    assert window.remaining == 3
    assert window.window_start == pytest.approx(clock.now - 7)
    assert window.blocked_until is None
    assert window.status == "warning"


def test_rate_window_status_thresholds():
    def status(used: int, blocked: bool = False) -> str:
        return RateWindow(0.0, used, 5.0 if blocked else None, 100, 60).status

    assert status(50) == "ok"
    assert status(70) == "warning"
    assert status(95) == "critical"
    assert status(10, blocked=True) == "blocked"


@pytest.mark.parametrize("kwargs", [{"budget": 0}, {"window_seconds": 0}, {"penalty_seconds": -1}])
def test_rejects_invalid_settings(kwargs):
    settings = {"budget": 10, "window_seconds": 60, "penalty_seconds": 30, **kwargs}
    with pytest.raises(ValueError):
        RateBudgetGovernor(**settings)
