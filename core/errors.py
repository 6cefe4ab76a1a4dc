"""Scanner error taxonomy.

Only `ConfigurationError` is fatal. Everything else is converted into a degraded
scan report, a dropped signal, or a rejected cycle by the component that owns it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from core.types import Direction, FetchAttempt


class ScannerError(Exception):
    """Base class for scanner errors."""


class ConfigurationError(ScannerError, ValueError):
    """Missing or invalid configuration at startup."""

    def __init__(self, key: str, message: str):
        super().__init__(f"{key}: {message}")
        self.key = key


class TransientFetchError(ScannerError):
    """Timeout, 429 or 5xx from a provider. Recovered by falling through to the next tier."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderError(ScannerError):
    """Permanent refusal or malformed payload from a provider."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitExceeded(ScannerError):
    """The rate governor denied a provider call."""

    def __init__(self, retry_after: float):
        super().__init__(f"rate budget exhausted, retry after {retry_after:.1f}s")
        self.retry_after = retry_after


class PermanentSymbolFailure(ScannerError):
    """Every tier failed for one symbol in one cycle."""

    def __init__(self, symbol: str, attempts: Sequence[FetchAttempt] = ()):
        outcomes = ", ".join(f"{a.tier.value}={a.outcome.value}" for a in attempts)
        super().__init__(f"all tiers failed for {symbol} ({outcomes})")
        self.symbol = symbol
        self.attempts = tuple(attempts)


class ConflictDenied(ScannerError):
    """A candidate signal collided with the cooldown window of its symbol."""

    def __init__(self, symbol: str, direction: Direction, reason: str):
        super().__init__(f"{symbol} {direction.value} denied: {reason}")
        self.symbol = symbol
        self.direction = direction
        self.reason = reason


class CycleAlreadyRunning(ScannerError):
    """A scan cycle was requested while another one is still in flight."""

    def __init__(self) -> None:
        super().__init__("a scan cycle is already running")
