"""Shared test fixtures for pytest.

Provides a controllable clock, a scriptable market-data provider and helpers to
wire the scanner components together.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Mapping, Optional, Sequence

import pytest

from core.errors import ProviderError, TransientFetchError
from core.market_data.base import MarketSnapshot
from core.market_data.fetcher import TierFallbackFetcher
from core.market_data.tiers import build_default_chain
from core.ratelimit.governor import RateBudgetGovernor

START = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock usable as both wall and monotonic time."""

    def __init__(self, start: float = START) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider:
    """In-memory provider implementing the bulk, series and price tiers.

    Symbols without a price fail on every tier. Individual tiers can be made to
    fail or to hang for a while.
    """

    def __init__(
        self,
        prices: Optional[Mapping[str, str]] = None,
        *,
        fail_bulk: bool = False,
        bulk_missing: Sequence[str] = (),
        fail_series: Sequence[str] = (),
        fail_price: Sequence[str] = (),
        delays: Optional[Mapping[str, float]] = None,
    ) -> None:
        self.prices = {symbol: Decimal(price) for symbol, price in (prices or {}).items()}
        self.fail_bulk = fail_bulk
        self.bulk_missing = set(bulk_missing)
        self.fail_series = set(fail_series)
        self.fail_price = set(fail_price)
        self.delays = dict(delays or {})
        self.calls: list[tuple[str, tuple[str, ...]]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def _enter(self, tier: str, symbols: tuple[str, ...]) -> None:
        self.calls.append((tier, symbols))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(tier, 0))
        finally:
            self.in_flight -= 1

    def calls_for(self, tier: str) -> list[tuple[str, ...]]:
        return [symbols for name, symbols in self.calls if name == tier]

    async def fetch_bulk(self, symbols: Sequence[str]) -> Mapping[str, MarketSnapshot]:
        await self._enter("bulk", tuple(symbols))
        if self.fail_bulk:
            raise TransientFetchError("bulk endpoint unavailable", 503)
        return {
            s: MarketSnapshot(symbol=s, price=self.prices[s])
            for s in symbols
            if s in self.prices and s not in self.bulk_missing
        }

    async def fetch_series(self, symbol: str) -> MarketSnapshot:
        await self._enter("series", (symbol,))
        if symbol in self.fail_series or symbol not in self.prices:
            raise ProviderError(f"no series for {symbol}", 400)
        return MarketSnapshot(symbol=symbol, price=self.prices[symbol])

    async def fetch_price(self, symbol: str) -> MarketSnapshot:
        await self._enter("price", (symbol,))
        if symbol in self.fail_price or symbol not in self.prices:
            raise ProviderError(f"no price for {symbol}", 400)
        return MarketSnapshot(symbol=symbol, price=self.prices[symbol])


class FailingStore:
    """Durable store whose writes always fail (full disk, lost database)."""

    def __init__(self) -> None:
        self.save_attempts = 0

    def load(self) -> list:
        return []

    def save(self, entries) -> None:
        self.save_attempts += 1
        raise OSError("disk full")


def make_fetcher(
    provider: FakeProvider,
    governor: RateBudgetGovernor,
    *,
    timeout_seconds: float = 1.0,
    batch_size: int = 8,
) -> TierFallbackFetcher:
    return TierFallbackFetcher(
        build_default_chain(provider, governor, batch_size=batch_size),
        timeout_seconds=timeout_seconds,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider({"BTCUSDT": "43000.5", "ETHUSDT": "2300.25", "SOLUSDT": "98.7"})


@pytest.fixture
def governor() -> RateBudgetGovernor:
    """A budget large enough to never get in the way."""
    return RateBudgetGovernor(budget=1000, window_seconds=60, penalty_seconds=120)


@pytest.fixture
def scanner_env() -> dict[str, str]:
    """Complete, valid scanner environment."""
    return {
        "SCANNER_RATE_BUDGET": "45",
        "SCANNER_RATE_WINDOW_SECONDS": "60",
        "SCANNER_PENALTY_SECONDS": "120",
        "SCANNER_EXCLUSION_THRESHOLD": "3",
        "SCANNER_BACKOFF_SCHEDULE": "900,3600,14400,86400",
        "SCANNER_COOLDOWN_SECONDS": "300",
        "SCANNER_CONCURRENCY": "10",
        "SCANNER_TIER_TIMEOUT_SECONDS": "5",
    }
