"""Market data acquisition: providers, tiers and the fallback fetcher."""

from core.market_data.base import (
    BulkQuoteProvider,
    HttpProvider,
    MarketSnapshot,
    PriceProvider,
    SeriesProvider,
)
from core.market_data.binance import BinanceClient
from core.market_data.fetcher import TierFallbackFetcher
from core.market_data.tiers import BulkTier, PriceTier, ScanBatch, SeriesTier, TierStrategy, build_default_chain
from core.market_data.twelvedata import TwelveDataClient

__all__ = [
    "BulkQuoteProvider",
    "HttpProvider",
    "MarketSnapshot",
    "PriceProvider",
    "SeriesProvider",
    "BinanceClient",
    "TwelveDataClient",
    "TierFallbackFetcher",
    "BulkTier",
    "SeriesTier",
    "PriceTier",
    "ScanBatch",
    "TierStrategy",
    "build_default_chain",
    "get_provider",
]


def get_provider(name: str, *, api_key: str | None = None, timeout_seconds: float = 10.0) -> HttpProvider:
    """Factory function to get the appropriate market-data provider."""
    providers = {
        "twelvedata": lambda: TwelveDataClient(api_key=api_key, timeout_seconds=timeout_seconds),
        "binance": lambda: BinanceClient(timeout_seconds=timeout_seconds),
    }

    name_lower = name.lower().strip()
    if name_lower not in providers:
        raise ValueError(f"Unsupported provider: {name}. Supported: {', '.join(providers.keys())}")

    return providers[name_lower]()
