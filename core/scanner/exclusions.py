"""Exclusion registry for persistently failing symbols.

Per-symbol lifecycle:

    ACTIVE --(streak >= threshold)--> EXCLUDED(n) --(now >= expires_at)--> PROBATION
    PROBATION --(success)--> ACTIVE (streak and backoff reset)
    PROBATION --(failure)--> EXCLUDED(n + 1)

Expired entries stay in storage (probation) until a success clears them, so the
next failure continues the backoff schedule instead of restarting it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from threading import Lock
from typing import Callable, Literal, Optional, Sequence

from core.persistence.interfaces import ExclusionStore
from core.types import ExclusionEntry

logger = logging.getLogger(__name__)

SymbolState = Literal["active", "excluded", "probation"]


@dataclass(frozen=True)
class ExclusionStats:
    total_tracked: int
    total_excluded: int
    excluded: tuple[ExclusionEntry, ...]


class ExclusionRegistry:
    """Thread-safe failure-streak tracker with exponential backoff."""

    def __init__(
        self,
        *,
        threshold: int,
        backoff_schedule: Sequence[float],
        store: Optional[ExclusionStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if threshold <= 0:
            raise ValueError("threshold must be positive")
        schedule = tuple(float(v) for v in backoff_schedule)
        if not schedule:
            raise ValueError("backoff_schedule must not be empty")
        if any(later < earlier for earlier, later in zip(schedule, schedule[1:])):
            raise ValueError("backoff_schedule must be non-decreasing")

        self.threshold = threshold
        self.backoff_schedule = schedule
        self._store = store
        self._clock = clock
        self._lock = Lock()
        self._entries: dict[str, ExclusionEntry] = {}

        if store is not None:
            for entry in store.load():
                self._entries[entry.symbol] = entry
            if self._entries:
                logger.info(f"Restored {len(self._entries)} exclusion entries")

    def is_excluded(self, symbol: str) -> bool:
        with self._lock:
            entry = self._entries.get(symbol)
            return entry is not None and entry.is_active(self._clock())

    def state(self, symbol: str) -> SymbolState:
        with self._lock:
            entry = self._entries.get(symbol)
            if entry is None or entry.expires_at is None:
                return "active"
            return "excluded" if entry.is_active(self._clock()) else "probation"

    def get(self, symbol: str) -> Optional[ExclusionEntry]:
        with self._lock:
            return self._entries.get(symbol)

    def record_outcome(self, symbol: str, success: bool) -> None:
        with self._lock:
            if success:
                previous = self._entries.pop(symbol, None)
                if previous is not None and previous.expires_at is not None:
                    logger.info(f"{symbol} recovered after exclusion, backoff reset")
                return

            now = self._clock()
            entry = self._entries.get(symbol) or ExclusionEntry(symbol=symbol, failure_streak=0)
            streak = entry.failure_streak + 1

            if streak < self.threshold:
                self._entries[symbol] = replace(entry, failure_streak=streak)
                return

            index = min(entry.backoff_index, len(self.backoff_schedule) - 1)
            expires_at = now + self.backoff_schedule[index]
            self._entries[symbol] = replace(
                entry,
                failure_streak=streak,
                excluded_at=now,
                expires_at=expires_at,
                backoff_index=min(index + 1, len(self.backoff_schedule) - 1),
            )
            logger.info(
                f"{symbol} excluded for {self.backoff_schedule[index]:.0f}s "
                f"after {streak} consecutive failures (backoff step {index + 1})"
            )

    def entries(self) -> list[ExclusionEntry]:
        with self._lock:
            return sorted(self._entries.values(), key=lambda e: e.symbol)

    def stats(self) -> ExclusionStats:
        with self._lock:
            now = self._clock()
            excluded = tuple(
                sorted((e for e in self._entries.values() if e.is_active(now)), key=lambda e: e.symbol)
            )
            return ExclusionStats(total_tracked=len(self._entries), total_excluded=len(excluded), excluded=excluded)

    def save(self) -> None:
        """Persist the current entries to the configured store."""
        if self._store is None:
            return
        with self._lock:
            entries = sorted(self._entries.values(), key=lambda e: e.symbol)
            self._store.save(entries)
