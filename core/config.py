"""Scanner configuration.

Rate-behavior settings have no built-in defaults: they must be supplied through the
environment (or a mapping) and are validated before anything starts.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from core.errors import ConfigurationError

PROVIDERS = ("twelvedata", "binance")

# field name -> environment variable
_REQUIRED_ENV: dict[str, str] = {
    "rate_budget": "SCANNER_RATE_BUDGET",
    "rate_window_seconds": "SCANNER_RATE_WINDOW_SECONDS",
    "penalty_seconds": "SCANNER_PENALTY_SECONDS",
    "exclusion_threshold": "SCANNER_EXCLUSION_THRESHOLD",
    "backoff_schedule": "SCANNER_BACKOFF_SCHEDULE",
    "cooldown_seconds": "SCANNER_COOLDOWN_SECONDS",
    "concurrency": "SCANNER_CONCURRENCY",
    "tier_timeout_seconds": "SCANNER_TIER_TIMEOUT_SECONDS",
}

_OPTIONAL_ENV: dict[str, str] = {
    "bulk_batch_size": "SCANNER_BULK_BATCH_SIZE",
    "scan_interval_seconds": "SCANNER_INTERVAL_SECONDS",
    "state_dir": "SCANNER_STATE_DIR",
    "database_url": "DATABASE_URL",
    "symbols_file": "SCANNER_SYMBOLS_FILE",
    "provider": "SCANNER_PROVIDER",
    "api_key": "TWELVEDATA_API_KEY",
}

_INT_FIELDS = {"rate_budget", "exclusion_threshold", "concurrency", "bulk_batch_size"}
_FLOAT_FIELDS = {
    "rate_window_seconds",
    "penalty_seconds",
    "cooldown_seconds",
    "tier_timeout_seconds",
    "scan_interval_seconds",
}


@dataclass(frozen=True)
class ScannerConfig:
    """Validated scanner settings."""

    rate_budget: int
    rate_window_seconds: float
    penalty_seconds: float
    exclusion_threshold: int
    backoff_schedule: tuple[float, ...]
    cooldown_seconds: float
    concurrency: int
    tier_timeout_seconds: float

    bulk_batch_size: int = 8  # TwelveData batch limit
    scan_interval_seconds: float = 600.0
    state_dir: str = ".scanner_state"
    database_url: Optional[str] = field(default=None, repr=False)
    symbols_file: str = "active_symbols.txt"
    provider: str = "twelvedata"
    api_key: Optional[str] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        _require_positive("rate_budget", self.rate_budget)
        _require_positive("rate_window_seconds", self.rate_window_seconds)
        _require_positive("penalty_seconds", self.penalty_seconds)
        _require_positive("exclusion_threshold", self.exclusion_threshold)
        _require_positive("cooldown_seconds", self.cooldown_seconds)
        _require_positive("concurrency", self.concurrency)
        _require_positive("tier_timeout_seconds", self.tier_timeout_seconds)
        _require_positive("bulk_batch_size", self.bulk_batch_size)
        _require_positive("scan_interval_seconds", self.scan_interval_seconds)

        schedule = tuple(self.backoff_schedule)
        if not schedule:
            raise ConfigurationError("backoff_schedule", "must contain at least one interval")
        for value in schedule:
            _require_positive("backoff_schedule", value)
        if any(later < earlier for earlier, later in zip(schedule, schedule[1:])):
            raise ConfigurationError("backoff_schedule", "intervals must be non-decreasing")
        object.__setattr__(self, "backoff_schedule", schedule)

        if self.provider not in PROVIDERS:
            raise ConfigurationError("provider", f"unsupported provider {self.provider!r}")

    @classmethod
    def from_mapping(cls, values: Mapping[str, object]) -> ScannerConfig:
        """Build from already-typed or string values keyed by field name."""
        kwargs: dict[str, object] = {}
        for name in _REQUIRED_ENV:
            if name not in values or values[name] in (None, ""):
                raise ConfigurationError(name, "is required")
            kwargs[name] = _coerce(name, values[name])
        for name in _OPTIONAL_ENV:
            if values.get(name) not in (None, ""):
                kwargs[name] = _coerce(name, values[name])
        return cls(**kwargs)  # type: ignore[arg-type]

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> ScannerConfig:
        """Build from environment variables (see module constants for names)."""
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for name, var in {**_REQUIRED_ENV, **_OPTIONAL_ENV}.items():
            raw = env.get(var)
            if raw is not None and raw.strip():
                values[name] = raw.strip()
        missing = [var for name, var in _REQUIRED_ENV.items() if name not in values]
        if missing:
            raise ConfigurationError(missing[0], "environment variable is required")
        return cls.from_mapping(values)


def _coerce(name: str, value: object) -> object:
    try:
        if name == "backoff_schedule":
            if isinstance(value, str):
                return tuple(float(part) for part in value.split(",") if part.strip())
            return tuple(float(part) for part in value)  # type: ignore[union-attr]
        if name in _INT_FIELDS:
            if isinstance(value, float) and not value.is_integer():
                raise ValueError(value)
            return int(value)  # type: ignore[call-overload]
        if name in _FLOAT_FIELDS:
            return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(name, f"invalid value {value!r}") from exc
    return str(value)


def _require_positive(name: str, value: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(name, f"must be a number, got {value!r}")
    if value <= 0:
        raise ConfigurationError(name, f"must be > 0, got {value!r}")
