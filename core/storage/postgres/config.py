from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from core.errors import ConfigurationError


@dataclass(frozen=True)
class PostgresConfig:
    """Connection configuration.

    `database_url` should come from environment (e.g. DATABASE_URL).
    Do not log it.
    """

    database_url: str = field(repr=False)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> PostgresConfig:
        env = os.environ if environ is None else environ
        database_url = env.get("DATABASE_URL")
        if not database_url:
            raise ConfigurationError("DATABASE_URL", "environment variable is required")
        return cls(database_url=database_url)
