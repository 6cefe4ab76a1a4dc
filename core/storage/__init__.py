"""Storage implementations of the persistence interfaces.

- memory: tests and ephemeral runs
- json: default on-disk state
- postgres: SQL-backed state via SQLAlchemy
"""

from .json_store import JsonCooldownStore, JsonExclusionStore
from .memory_stores import MemoryCooldownStore, MemoryExclusionStore
from .postgres import PostgresConfig, PostgresStateStores

__all__ = [
    "JsonCooldownStore",
    "JsonExclusionStore",
    "MemoryCooldownStore",
    "MemoryExclusionStore",
    "PostgresConfig",
    "PostgresStateStores",
]
