"""Shared provider-call budget.

One governor instance is shared by every fetch task. `try_acquire` never sleeps:
callers get a `retry_after` and decide for themselves whether to wait, skip the
tier, or give up.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Optional

from core.errors import RateLimitExceeded

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AcquireResult:
    granted: bool
    retry_after: float = 0.0


@dataclass(frozen=True)
class RateWindow:
    """Snapshot of the governor state."""

    window_start: float
    call_count: int
    blocked_until: Optional[float]
    budget: int
    window_seconds: float

    @property
    def remaining(self) -> int:
        return max(0, self.budget - self.call_count)

    @property
    def usage_percent(self) -> float:
        return self.call_count / self.budget * 100

    @property
    def status(self) -> str:
        """Status indicator: ok, warning, critical, blocked."""
        if self.blocked_until is not None:
            return "blocked"
        usage = self.usage_percent
        if usage >= 90:
            return "critical"
        elif usage >= 70:
            return "warning"
        return "ok"


class RateBudgetGovernor:
    """Thread-safe rolling-window call budget with a penalty block.

    Grants are kept as a log of timestamps, so no rolling interval of
    `window_seconds` ever contains more than `budget` grants. Asking for one more
    call than the budget allows blocks every acquisition for `penalty_seconds`.
    """

    def __init__(
        self,
        *,
        budget: int,
        window_seconds: float,
        penalty_seconds: float,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if budget <= 0:
            raise ValueError("budget must be positive")
        if window_seconds <= 0 or penalty_seconds <= 0:
            raise ValueError("window_seconds and penalty_seconds must be positive")
        self.budget = budget
        self.window_seconds = window_seconds
        self.penalty_seconds = penalty_seconds
        self.name = name
        self._clock = clock
        self._lock = Lock()
        self._grants: deque[float] = deque()
        self._blocked_until: Optional[float] = None
        self._granted_total = 0
        self._denied_total = 0

    @property
    def granted_total(self) -> int:
        """Number of grants since creation."""
        with self._lock:
            return self._granted_total

    @property
    def denied_total(self) -> int:
        with self._lock:
            return self._denied_total

    def _expire(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._grants and self._grants[0] <= cutoff:
            self._grants.popleft()

    def try_acquire(self) -> AcquireResult:
        """Take one call from the budget if allowed."""
        with self._lock:
            now = self._clock()

            if self._blocked_until is not None:
                if now < self._blocked_until:
                    self._denied_total += 1
                    return AcquireResult(granted=False, retry_after=self._blocked_until - now)
                # Grants stay logged: a penalty shorter than the window must not reopen the budget.
                self._blocked_until = None

            self._expire(now)

            if len(self._grants) < self.budget:
                self._grants.append(now)
                self._granted_total += 1
                logger.debug("Rate budget %s: granted %d/%d", self.name, len(self._grants), self.budget)
                return AcquireResult(granted=True)

            self._blocked_until = now + self.penalty_seconds
            self._denied_total += 1
            logger.warning(
                "Rate budget %s exceeded (%d calls in %.0fs), blocking for %.0fs",
                self.name,
                self.budget,
                self.window_seconds,
                self.penalty_seconds,
            )
            return AcquireResult(granted=False, retry_after=self.penalty_seconds)

    def acquire_or_raise(self) -> None:
        """Like `try_acquire`, but raise `RateLimitExceeded` on denial."""
        result = self.try_acquire()
        if not result.granted:
            raise RateLimitExceeded(result.retry_after)

    def snapshot(self) -> RateWindow:
        with self._lock:
            now = self._clock()
            blocked_until = self._blocked_until
            if blocked_until is not None and now >= blocked_until:
                blocked_until = None
            self._expire(now)
            return RateWindow(
                window_start=self._grants[0] if self._grants else now,
                call_count=len(self._grants),
                blocked_until=blocked_until,
                budget=self.budget,
                window_seconds=self.window_seconds,
            )

    def retry_after(self) -> float:
        """Seconds until the penalty block lifts (0 when not blocked)."""
        with self._lock:
            if self._blocked_until is None:
                return 0.0
            return max(0.0, self._blocked_until - self._clock())
