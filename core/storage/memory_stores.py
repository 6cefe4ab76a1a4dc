from __future__ import annotations

from typing import Sequence

from core.persistence.interfaces import CooldownStore, ExclusionStore
from core.types import CooldownEntry, ExclusionEntry


class MemoryExclusionStore(ExclusionStore):
    """Process-local store; useful for tests and ephemeral runs."""

    def __init__(self, entries: Sequence[ExclusionEntry] = ()) -> None:
        self._entries = list(entries)
        self.save_count = 0

    def load(self) -> list[ExclusionEntry]:
        return list(self._entries)

    def save(self, entries: Sequence[ExclusionEntry]) -> None:
        self._entries = list(entries)
        self.save_count += 1


class MemoryCooldownStore(CooldownStore):
    def __init__(self, entries: Sequence[CooldownEntry] = ()) -> None:
        self._entries = list(entries)
        self.save_count = 0

    def load(self) -> list[CooldownEntry]:
        return list(self._entries)

    def save(self, entries: Sequence[CooldownEntry]) -> None:
        self._entries = list(entries)
        self.save_count += 1
