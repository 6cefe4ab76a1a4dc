from __future__ import annotations

from typing import Protocol, Sequence

from core.types import CooldownEntry, ExclusionEntry


class ExclusionStore(Protocol):
    def load(self) -> list[ExclusionEntry]:
        """Return every persisted exclusion entry."""

    def save(self, entries: Sequence[ExclusionEntry]) -> None:
        """Replace the persisted collection with `entries`."""


class CooldownStore(Protocol):
    def load(self) -> list[CooldownEntry]:
        """Return every persisted cooldown entry."""

    def save(self, entries: Sequence[CooldownEntry]) -> None:
        """Replace the persisted collection with `entries`."""
