"""Persistence interfaces.

These protocols define the durable-state boundary for the exclusion registry and
the cooldown arbiter. Implementations live in `core.storage`.
"""

from .interfaces import CooldownStore, ExclusionStore

__all__ = ["CooldownStore", "ExclusionStore"]
