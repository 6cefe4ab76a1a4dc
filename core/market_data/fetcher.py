"""Tiered fallback fetcher.

Tries each tier in order (bulk -> individual -> price) and stops at the first
success. Every tier gets the same timeout and the same error handling; a
governor denial counts as a soft failure of that tier only.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional, Sequence

from core.errors import PermanentSymbolFailure, RateLimitExceeded
from core.market_data.symbols import normalize_symbol
from core.market_data.tiers import ScanBatch, TierStrategy
from core.ratelimit.governor import RateBudgetGovernor
from core.types import FetchAttempt, FetchOutcome, SymbolQuote

logger = logging.getLogger(__name__)


class TierFallbackFetcher:
    """Fetch one symbol through an ordered chain of tiers."""

    def __init__(
        self,
        tiers: Sequence[TierStrategy],
        *,
        timeout_seconds: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not tiers:
            raise ValueError("at least one tier is required")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.tiers = tuple(tiers)
        self.timeout_seconds = timeout_seconds
        self._clock = clock

    @property
    def governors(self) -> tuple[RateBudgetGovernor, ...]:
        """Distinct governors gating the chain."""
        seen: dict[int, RateBudgetGovernor] = {}
        for strategy in self.tiers:
            seen.setdefault(id(strategy.governor), strategy.governor)
        return tuple(seen.values())

    def calls_granted(self) -> int:
        return sum(governor.granted_total for governor in self.governors)

    def open_batch(self, symbols: Sequence[str]) -> ScanBatch:
        """Start a batch so bulk tiers can share calls across `symbols`."""
        return ScanBatch([normalize_symbol(s) for s in symbols])

    async def fetch(self, symbol: str, batch: Optional[ScanBatch] = None) -> SymbolQuote:
        """Return the first successful quote.

        Raises:
            PermanentSymbolFailure: If every tier failed, timed out or was denied
        """
        symbol = normalize_symbol(symbol)
        attempts: list[FetchAttempt] = []

        for strategy in self.tiers:
            timestamp = self._clock()
            started = time.monotonic()
            error: Optional[str] = None
            try:
                snapshot = await asyncio.wait_for(strategy.fetch(symbol, batch), timeout=self.timeout_seconds)
            except RateLimitExceeded as exc:
                outcome = FetchOutcome.RATE_LIMITED
                error = str(exc)
            except asyncio.TimeoutError:
                outcome = FetchOutcome.TIMEOUT
                error = f"timed out after {self.timeout_seconds}s"
            except Exception as exc:
                outcome = FetchOutcome.PROVIDER_ERROR
                error = f"{exc.__class__.__name__}: {exc}"
            else:
                latency = time.monotonic() - started
                attempts.append(
                    FetchAttempt(
                        symbol=symbol,
                        tier=strategy.tier,
                        timestamp=timestamp,
                        outcome=FetchOutcome.SUCCESS,
                        latency=latency,
                    )
                )
                logger.debug(f"{symbol}: {strategy.tier.value} ok ({latency:.3f}s) price={snapshot.price}")
                return SymbolQuote(
                    symbol=symbol,
                    price=snapshot.price,
                    tier=strategy.tier,
                    latency=latency,
                    attempts=tuple(attempts),
                )

            attempts.append(
                FetchAttempt(
                    symbol=symbol,
                    tier=strategy.tier,
                    timestamp=timestamp,
                    outcome=outcome,
                    latency=time.monotonic() - started,
                    error=error,
                )
            )
            logger.warning(f"{symbol}: {strategy.tier.value} tier {outcome.value}: {error}")

        raise PermanentSymbolFailure(symbol, attempts)
