"""Per-symbol alert cooldown.

Any approved alert opens a cooldown window for its symbol. Until it closes, every
new alert for that symbol is denied, whatever its direction, which rules out both
duplicate alerts and LONG/SHORT flip-flopping.

Check and record happen under one lock: of two concurrent requests for the same
symbol, exactly one is approved. The store write happens after the lock is
released; snapshots carry a version so an older one never overwrites a newer one.
A failed write is logged and the approval stands.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Optional

from core.errors import ConflictDenied
from core.persistence.interfaces import CooldownStore
from core.types import CandidateSignal, CooldownEntry, Direction

logger = logging.getLogger(__name__)

APPROVED = "APPROVED"
WITHIN_COOLDOWN = "WITHIN_COOLDOWN"


@dataclass(frozen=True)
class Permission:
    approved: bool
    reason: str
    retry_after: float = 0.0
    conflicting: Optional[CooldownEntry] = None  # the entry that caused a denial


class SignalCooldownArbiter:
    def __init__(
        self,
        *,
        cooldown_seconds: float,
        store: Optional[CooldownStore] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if cooldown_seconds <= 0:
            raise ValueError("cooldown_seconds must be positive")
        self.cooldown_seconds = cooldown_seconds
        self._store = store
        self._clock = clock
        self._lock = Lock()
        self._entries: dict[str, CooldownEntry] = {}
        self._save_lock = Lock()
        self._version = 0
        self._saved_version = 0

        if store is not None:
            for entry in store.load():
                self._entries[entry.symbol] = entry
            if self._entries:
                logger.info(f"Restored {len(self._entries)} cooldown entries")

    def request_permission(self, symbol: str, direction: Direction) -> Permission:
        """Approve and record the alert, or deny it while the symbol is cooling down."""
        with self._lock:
            now = self._clock()
            last = self._entries.get(symbol)

            if last is not None:
                elapsed = now - last.last_approved_at
                if elapsed < self.cooldown_seconds:
                    return Permission(
                        approved=False,
                        reason=WITHIN_COOLDOWN,
                        retry_after=self.cooldown_seconds - elapsed,
                        conflicting=last,
                    )

            entry = CooldownEntry(symbol=symbol, last_direction=direction, last_approved_at=now)
            self._entries[symbol] = entry
            self._version += 1
            version = self._version
            snapshot = sorted(self._entries.values(), key=lambda e: e.symbol)

        self._persist(version, snapshot)
        logger.info(f"Approved {direction.value} alert for {symbol}")
        return Permission(approved=True, reason=APPROVED)

    def require_permission(self, symbol: str, direction: Direction) -> None:
        """Like `request_permission`, but raise `ConflictDenied` on denial."""
        permission = self.request_permission(symbol, direction)
        if not permission.approved:
            raise ConflictDenied(symbol, direction, permission.reason)

    def request(self, candidate: CandidateSignal) -> Permission:
        return self.request_permission(candidate.symbol, candidate.direction)

    def remaining(self, symbol: str) -> float:
        """Seconds left in the cooldown window of `symbol` (0 when none)."""
        with self._lock:
            last = self._entries.get(symbol)
            if last is None:
                return 0.0
            return max(0.0, self.cooldown_seconds - (self._clock() - last.last_approved_at))

    def entries(self) -> list[CooldownEntry]:
        with self._lock:
            return sorted(self._entries.values(), key=lambda e: e.symbol)

    def _persist(self, version: int, snapshot: list[CooldownEntry]) -> None:
        if self._store is None:
            return
        with self._save_lock:
            if version <= self._saved_version:
                return
            try:
                self._store.save(snapshot)
            except Exception as e:
                logger.exception(f"Failed to persist cooldown entries: {e}")
                return
            self._saved_version = version
