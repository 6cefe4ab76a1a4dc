from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional


class Tier(str, Enum):
    """Provider tiers, in fallback order."""

    BULK = "bulk"
    INDIVIDUAL = "individual"
    PRICE = "price"


class FetchOutcome(str, Enum):
    SUCCESS = "success"
    TIMEOUT = "timeout"
    PROVIDER_ERROR = "provider_error"
    RATE_LIMITED = "rate_limited"


class Direction(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"
    NEUTRAL = "NEUTRAL"


@dataclass(frozen=True)
class FetchAttempt:
    symbol: str
    tier: Tier
    timestamp: float  # epoch seconds
    outcome: FetchOutcome
    latency: float  # seconds
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is FetchOutcome.SUCCESS


@dataclass(frozen=True)
class SymbolQuote:
    """Successful fetch: the price and which tier produced it."""

    symbol: str
    price: Decimal
    tier: Tier
    latency: float
    attempts: tuple[FetchAttempt, ...] = ()


@dataclass(frozen=True)
class ScanReport:
    successful: tuple[SymbolQuote, ...]
    failed: tuple[str, ...]
    excluded: tuple[str, ...]
    total_calls_used: int
    tier_distribution: Mapping[Tier, int]
    attempts: tuple[FetchAttempt, ...] = ()
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def excluded_count(self) -> int:
        return len(self.excluded)

    @property
    def eligible_count(self) -> int:
        return len(self.successful) + len(self.failed)

    @property
    def success_rate(self) -> float:
        """Percentage of eligible symbols that produced a price (0-100)."""
        if self.eligible_count == 0:
            return 0.0
        return len(self.successful) / self.eligible_count * 100

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def prices(self) -> dict[str, Decimal]:
        return {q.symbol: q.price for q in self.successful}

    def to_dict(self) -> dict[str, Any]:
        """Serialize a summary for API responses."""
        return {
            "successful": [
                {"symbol": q.symbol, "price": str(q.price), "tier": q.tier.value, "latency": round(q.latency, 4)}
                for q in self.successful
            ],
            "failed": list(self.failed),
            "excluded_count": self.excluded_count,
            "total_calls_used": self.total_calls_used,
            "tier_distribution": {tier.value: count for tier, count in self.tier_distribution.items()},
            "success_rate": round(self.success_rate, 1),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


@dataclass(frozen=True)
class CandidateSignal:
    """Alert proposed by the analysis stage. `payload` is opaque to the scanner."""

    symbol: str
    direction: Direction
    proposed_at: datetime
    payload: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ExclusionEntry:
    """Failure-streak and backoff state for one symbol.

    `expires_at` is None while the streak is still below the exclusion threshold.
    """

    symbol: str
    failure_streak: int
    backoff_index: int = 0
    excluded_at: Optional[float] = None
    expires_at: Optional[float] = None

    def is_active(self, now: float) -> bool:
        return self.expires_at is not None and now < self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "failure_streak": self.failure_streak,
            "backoff_index": self.backoff_index,
            "excluded_at": self.excluded_at,
            "expires_at": self.expires_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ExclusionEntry:
        excluded_at = data.get("excluded_at")
        expires_at = data.get("expires_at")
        return cls(
            symbol=str(data["symbol"]),
            failure_streak=int(data["failure_streak"]),
            backoff_index=int(data.get("backoff_index") or 0),
            excluded_at=None if excluded_at is None else float(excluded_at),
            expires_at=None if expires_at is None else float(expires_at),
        )


@dataclass(frozen=True)
class CooldownEntry:
    """Most recently approved alert for a symbol."""

    symbol: str
    last_direction: Direction
    last_approved_at: float  # epoch seconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "last_direction": self.last_direction.value,
            "last_approved_at": self.last_approved_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CooldownEntry:
        return cls(
            symbol=str(data["symbol"]),
            last_direction=Direction(data["last_direction"]),
            last_approved_at=float(data["last_approved_at"]),
        )
