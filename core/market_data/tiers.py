"""Fetch tiers, cheapest per symbol first.

A tier strategy wraps one provider endpoint plus the governor that gates it.
`BulkTier` shares one provider call between every symbol of a chunk; the chunk
tasks live on the `ScanBatch` of the current cycle.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Hashable, Mapping, Optional, Protocol, Sequence

from core.errors import ProviderError
from core.market_data.base import BulkQuoteProvider, MarketSnapshot, PriceProvider, SeriesProvider
from core.ratelimit.governor import RateBudgetGovernor
from core.types import Tier

logger = logging.getLogger(__name__)


class ScanBatch:
    """Symbols of one scan cycle and the shared provider calls made for them."""

    def __init__(self, symbols: Sequence[str]) -> None:
        self.symbols: tuple[str, ...] = tuple(symbols)
        self._positions = {symbol: i for i, symbol in enumerate(self.symbols)}
        self._tasks: dict[Hashable, asyncio.Task] = {}

    def __contains__(self, symbol: object) -> bool:
        return symbol in self._positions

    def index(self, symbol: str) -> int:
        return self._positions[symbol]

    def shared_call(self, key: Hashable, factory: Callable[[], Awaitable[object]]) -> asyncio.Task:
        """Return the task for `key`, starting it on first use."""
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            task.add_done_callback(_consume_exception)
            self._tasks[key] = task
        return task

    @property
    def calls_started(self) -> int:
        return len(self._tasks)

    async def close(self) -> None:
        """Cancel shared calls nobody is waiting on any more."""
        pending = [task for task in self._tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


def _consume_exception(task: asyncio.Task) -> None:
    # Waiters that timed out never retrieve the result.
    if not task.cancelled():
        task.exception()


class TierStrategy(Protocol):
    tier: Tier
    governor: RateBudgetGovernor

    async def fetch(self, symbol: str, batch: Optional[ScanBatch] = None) -> MarketSnapshot:
        """Fetch one symbol through this tier, raising on any failure."""
        ...


class BulkTier:
    """Batch endpoint: one governor-gated call per chunk of `batch_size` symbols."""

    tier = Tier.BULK

    def __init__(self, provider: BulkQuoteProvider, governor: RateBudgetGovernor, *, batch_size: int = 8) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.provider = provider
        self.governor = governor
        self.batch_size = batch_size

    def chunk_for(self, symbol: str, batch: Optional[ScanBatch]) -> tuple[str, ...]:
        if batch is None or symbol not in batch:
            return (symbol,)
        i = batch.index(symbol)
        start = i - i % self.batch_size
        return batch.symbols[start : start + self.batch_size]

    async def _load(self, chunk: tuple[str, ...]) -> Mapping[str, MarketSnapshot]:
        self.governor.acquire_or_raise()
        logger.debug(f"Bulk call for {len(chunk)} symbols: {', '.join(chunk)}")
        return await self.provider.fetch_bulk(chunk)

    async def fetch(self, symbol: str, batch: Optional[ScanBatch] = None) -> MarketSnapshot:
        chunk = self.chunk_for(symbol, batch)
        if batch is None:
            snapshots = await self._load(chunk)
        else:
            task = batch.shared_call((id(self), chunk), lambda: self._load(chunk))
            # Shield: one symbol timing out must not cancel the call for the rest of its chunk.
            snapshots = await asyncio.shield(task)

        snapshot = snapshots.get(symbol)
        if snapshot is None:
            raise ProviderError(f"{symbol} missing from bulk response")
        return snapshot


class SeriesTier:
    """Individual time-series call for one symbol."""

    tier = Tier.INDIVIDUAL

    def __init__(self, provider: SeriesProvider, governor: RateBudgetGovernor) -> None:
        self.provider = provider
        self.governor = governor

    async def fetch(self, symbol: str, batch: Optional[ScanBatch] = None) -> MarketSnapshot:
        self.governor.acquire_or_raise()
        return await self.provider.fetch_series(symbol)


class PriceTier:
    """Lightweight last-price call, the last resort."""

    tier = Tier.PRICE

    def __init__(self, provider: PriceProvider, governor: RateBudgetGovernor) -> None:
        self.provider = provider
        self.governor = governor

    async def fetch(self, symbol: str, batch: Optional[ScanBatch] = None) -> MarketSnapshot:
        self.governor.acquire_or_raise()
        return await self.provider.fetch_price(symbol)


def build_default_chain(
    provider: object,
    governor: RateBudgetGovernor,
    *,
    batch_size: int = 8,
) -> list[TierStrategy]:
    """Bulk -> individual -> price over a provider implementing all three protocols."""
    return [
        BulkTier(provider, governor, batch_size=batch_size),  # type: ignore[arg-type]
        SeriesTier(provider, governor),  # type: ignore[arg-type]
        PriceTier(provider, governor),  # type: ignore[arg-type]
    ]
