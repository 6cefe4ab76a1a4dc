from .config import PostgresConfig
from .stores import PostgresCooldownStore, PostgresExclusionStore, PostgresStateStores

__all__ = ["PostgresConfig", "PostgresStateStores", "PostgresExclusionStore", "PostgresCooldownStore"]
