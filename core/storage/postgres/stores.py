from __future__ import annotations

import logging
from typing import Any, Sequence

from sqlalchemy import create_engine, text

from core.persistence.interfaces import CooldownStore, ExclusionStore
from core.storage.postgres.config import PostgresConfig
from core.types import CooldownEntry, Direction, ExclusionEntry

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS scanner_exclusions (
        symbol TEXT PRIMARY KEY,
        failure_streak INTEGER NOT NULL,
        backoff_index INTEGER NOT NULL DEFAULT 0,
        excluded_at DOUBLE PRECISION,
        expires_at DOUBLE PRECISION
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS signal_cooldowns (
        symbol TEXT PRIMARY KEY,
        last_direction TEXT NOT NULL,
        last_approved_at DOUBLE PRECISION NOT NULL
    )
    """,
)


class PostgresStateStores:
    """Single entrypoint for SQL-backed scanner state.

    Works against any SQLAlchemy URL (PostgreSQL in production, SQLite in tests).
    Tables are created on first use.
    """

    def __init__(self, *, config: PostgresConfig) -> None:
        self._config = config
        self._engine: Any | None = None
        self._schema_ready = False
        self.exclusions = PostgresExclusionStore(self)
        self.cooldowns = PostgresCooldownStore(self)

    def _get_engine(self) -> Any:
        if self._engine is None:
            # Do not log the URL (it may contain secrets).
            self._engine = create_engine(self._config.database_url, echo=False, pool_pre_ping=True)
        return self._engine

    def ensure_schema(self) -> None:
        if self._schema_ready:
            return
        engine = self._get_engine()
        with engine.begin() as conn:
            for ddl in _SCHEMA:
                conn.execute(text(ddl))
        self._schema_ready = True

    def _replace_rows(self, *, table: str, columns: Sequence[str], rows: list[dict[str, Any]]) -> None:
        self.ensure_schema()
        engine = self._get_engine()

        placeholders = ", ".join(f":{c}" for c in columns)
        insert = text(f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})")

        with engine.begin() as conn:
            conn.execute(text(f"DELETE FROM {table}"))
            if rows:
                conn.execute(insert, rows)
        logger.debug(f"Replaced {len(rows)} rows in {table}")

    def _select_rows(self, *, table: str, columns: Sequence[str]) -> list[Any]:
        self.ensure_schema()
        engine = self._get_engine()
        with engine.begin() as conn:
            return list(conn.execute(text(f"SELECT {', '.join(columns)} FROM {table} ORDER BY symbol")).fetchall())

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None


class PostgresExclusionStore(ExclusionStore):
    _COLUMNS = ("symbol", "failure_streak", "backoff_index", "excluded_at", "expires_at")

    def __init__(self, stores: PostgresStateStores) -> None:
        self._stores = stores

    def load(self) -> list[ExclusionEntry]:
        rows = self._stores._select_rows(table="scanner_exclusions", columns=self._COLUMNS)
        return [
            ExclusionEntry(
                symbol=row[0],
                failure_streak=int(row[1]),
                backoff_index=int(row[2]),
                excluded_at=None if row[3] is None else float(row[3]),
                expires_at=None if row[4] is None else float(row[4]),
            )
            for row in rows
        ]

    def save(self, entries: Sequence[ExclusionEntry]) -> None:
        self._stores._replace_rows(
            table="scanner_exclusions",
            columns=self._COLUMNS,
            rows=[entry.to_dict() for entry in entries],
        )


class PostgresCooldownStore(CooldownStore):
    _COLUMNS = ("symbol", "last_direction", "last_approved_at")

    def __init__(self, stores: PostgresStateStores) -> None:
        self._stores = stores

    def load(self) -> list[CooldownEntry]:
        rows = self._stores._select_rows(table="signal_cooldowns", columns=self._COLUMNS)
        return [
            CooldownEntry(symbol=row[0], last_direction=Direction(row[1]), last_approved_at=float(row[2]))
            for row in rows
        ]

    def save(self, entries: Sequence[CooldownEntry]) -> None:
        self._stores._replace_rows(
            table="signal_cooldowns",
            columns=self._COLUMNS,
            rows=[entry.to_dict() for entry in entries],
        )
