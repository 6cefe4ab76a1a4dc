"""Tests for the symbol exclusion registry."""

from __future__ import annotations

import pytest

from conftest import FakeClock
from core.scanner.exclusions import ExclusionRegistry
from core.storage.json_store import JsonExclusionStore
from core.storage.memory_stores import MemoryExclusionStore
from core.types import ExclusionEntry

SCHEDULE = (900.0, 3600.0, 14400.0, 86400.0)


def _registry(clock: FakeClock, store=None, threshold: int = 3) -> ExclusionRegistry:
    return ExclusionRegistry(threshold=threshold, backoff_schedule=SCHEDULE, store=store, clock=clock)


def _fail(registry: ExclusionRegistry, symbol: str, times: int) -> None:
    for _ in range(times):
        registry.record_outcome(symbol, success=False)


def test_excluded_after_threshold_failures(clock):
    """XYZ fails three cycles in a row and is excluded for the first backoff interval."""
    registry = _registry(clock)

    _fail(registry, "XYZ", 2)
    assert registry.is_excluded("XYZ") is False
    assert registry.state("XYZ") == "active"

    registry.record_outcome("XYZ", success=False)

    assert registry.is_excluded("XYZ") is True
    entry = registry.get("XYZ")
    assert entry.failure_streak == 3
    assert entry.excluded_at == pytest.approx(clock.now)
    assert entry.expires_at == pytest.approx(clock.now + 900)
    assert entry.backoff_index == 1


def test_expired_exclusion_enters_probation(clock):
    registry = _registry(clock)
    _fail(registry, "XYZ", 3)

    clock.advance(899)
    assert registry.is_excluded("XYZ") is True

    clock.advance(1)
    assert registry.is_excluded("XYZ") is False
    assert registry.state("XYZ") == "probation"
    assert registry.get("XYZ") is not None  # still tracked


def test_failure_in_probation_advances_backoff(clock):
    registry = _registry(clock)
    _fail(registry, "XYZ", 3)
    clock.advance(900)

    registry.record_outcome("XYZ", success=False)

    entry = registry.get("XYZ")
    assert registry.is_excluded("XYZ") is True
    assert entry.expires_at == pytest.approx(clock.now + 3600)
    assert entry.backoff_index == 2


def test_backoff_index_caps_at_last_interval(clock):
    registry = _registry(clock)
    _fail(registry, "XYZ", 3)
    for _ in range(6):
        clock.advance(100_000)
        registry.record_outcome("XYZ", success=False)

    entry = registry.get("XYZ")
    assert entry.backoff_index == len(SCHEDULE) - 1
    assert entry.expires_at == pytest.approx(clock.now + 86400)


def test_success_after_expiry_fully_resets(clock):
    registry = _registry(clock)
    _fail(registry, "XYZ", 3)
    clock.advance(900)
    registry.record_outcome("XYZ", success=False)  # second exclusion, 1h
    clock.advance(3600)

    registry.record_outcome("XYZ", success=True)

    assert registry.get("XYZ") is None
    assert registry.state("XYZ") == "active"

    # Backoff restarts at the first interval, and the streak starts from zero.
    _fail(registry, "XYZ", 2)
    assert registry.is_excluded("XYZ") is False
    registry.record_outcome("XYZ", success=False)
    assert registry.get("XYZ").expires_at == pytest.approx(clock.now + 900)


def test_success_resets_partial_streak(clock):
    registry = _registry(clock)
    _fail(registry, "ABC", 2)
    registry.record_outcome("ABC", success=True)
    _fail(registry, "ABC", 2)

    assert registry.is_excluded("ABC") is False
    assert registry.get("ABC").failure_streak == 2


def test_is_excluded_does_not_change_state(clock):
    store = MemoryExclusionStore()
    registry = _registry(clock, store=store)
    _fail(registry, "XYZ", 3)
    before = registry.entries()

    for _ in range(5):
        registry.is_excluded("XYZ")
        registry.is_excluded("UNKNOWN")
        clock.advance(600)

    assert registry.entries() == before
    assert store.save_count == 0


def test_round_trip_through_store(clock, tmp_path):
    store = JsonExclusionStore(tmp_path / "exclusions.json")
    registry = _registry(clock, store=store)
    _fail(registry, "XYZ", 3)
    _fail(registry, "ABC", 1)
    registry.save()

    restored = _registry(clock, store=JsonExclusionStore(tmp_path / "exclusions.json"))

    assert restored.entries() == registry.entries()
    assert restored.is_excluded("XYZ") is True
    assert restored.get("XYZ").expires_at == registry.get("XYZ").expires_at
    assert restored.get("ABC").failure_streak == 1


def test_restored_probation_continues_backoff(clock):
    store = MemoryExclusionStore(
        [ExclusionEntry(symbol="XYZ", failure_streak=3, backoff_index=1, excluded_at=0.0, expires_at=900.0)]
    )
    registry = _registry(clock, store=store)

    assert registry.state("XYZ") == "probation"
    registry.record_outcome("XYZ", success=False)
    assert registry.get("XYZ").expires_at == pytest.approx(clock.now + 3600)


def test_stats(clock):
    registry = _registry(clock)
    _fail(registry, "XYZ", 3)
    _fail(registry, "ABC", 1)

    stats = registry.stats()

    assert stats.total_tracked == 2
    assert stats.total_excluded == 1
    assert [e.symbol for e in stats.excluded] == ["XYZ"]


def test_save_without_store_is_noop(clock):
    registry = _registry(clock)
    _fail(registry, "XYZ", 3)
    registry.save()


@pytest.mark.parametrize(
    "threshold, schedule",
    [(0, SCHEDULE), (3, ()), (3, (3600.0, 900.0))],
)
def test_rejects_invalid_settings(threshold, schedule):
    with pytest.raises(ValueError):
        ExclusionRegistry(threshold=threshold, backoff_schedule=schedule)
