"""Provider interfaces for the three fetch tiers.

Each market-data provider may implement any subset of the tier protocols:

- `BulkQuoteProvider`: many symbols in one call (cheapest per symbol)
- `SeriesProvider`: latest time-series bar for one symbol
- `PriceProvider`: lightweight last-price lookup for one symbol

Providers raise `TransientFetchError` / `ProviderError` (or let `httpx` errors
escape); the fetcher treats every non-success the same way.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Protocol, Sequence

import httpx

from core.errors import ProviderError, TransientFetchError


@dataclass(frozen=True)
class MarketSnapshot:
    """Latest market data for one symbol as returned by a provider."""

    symbol: str
    price: Decimal
    volume: Optional[Decimal] = None
    observed_at: Optional[float] = None  # epoch seconds, provider-reported


class BulkQuoteProvider(Protocol):
    async def fetch_bulk(self, symbols: Sequence[str]) -> Mapping[str, MarketSnapshot]:
        """Fetch snapshots for many symbols. Missing symbols are simply absent."""
        ...


class SeriesProvider(Protocol):
    async def fetch_series(self, symbol: str) -> MarketSnapshot:
        """Fetch the most recent time-series bar for one symbol."""
        ...


class PriceProvider(Protocol):
    async def fetch_price(self, symbol: str) -> MarketSnapshot:
        """Fetch only the last traded price for one symbol."""
        ...


def classify_http_error(status_code: int, message: str) -> Exception:
    """Classify HTTP errors as transient or permanent.

    Args:
        status_code: HTTP status code
        message: Error message

    Returns:
        TransientFetchError for 429/5xx, ProviderError for other 4xx
    """
    if status_code == 429 or 500 <= status_code < 600:
        return TransientFetchError(message, status_code)
    if 400 <= status_code < 500:
        return ProviderError(message, status_code)
    return TransientFetchError(message, status_code)


def parse_price(value: object, *, symbol: str) -> Decimal:
    """Parse a provider price field into a positive Decimal."""
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ProviderError(f"Unparseable price for {symbol}: {value!r}") from exc
    if not price.is_finite() or price <= 0:
        raise ProviderError(f"Invalid price for {symbol}: {value!r}")
    return price


class HttpProvider:
    """Shared `httpx.AsyncClient` handling for REST market-data providers.

    No retries here: a failed call is a failed tier, and the fallback chain
    decides what happens next.
    """

    base_url: str = ""
    name: str = "http"

    def __init__(self, *, timeout_seconds: float = 10.0, client: httpx.AsyncClient | None = None) -> None:
        self.timeout_seconds = timeout_seconds
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Accept": "application/json", "User-Agent": "cryptoscanner/1.0"},
                timeout=httpx.Timeout(self.timeout_seconds),
            )
        return self._client

    async def _get_json(self, path: str, params: Mapping[str, str]) -> Any:
        client = self._get_client()
        try:
            resp = await client.get(path, params=dict(params))
        except httpx.TimeoutException as exc:
            raise TransientFetchError(f"{self.name} GET {path} timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise TransientFetchError(f"{self.name} GET {path} network error: {exc}") from exc

        if resp.status_code >= 400:
            raise classify_http_error(resp.status_code, f"{self.name} GET {path} failed: {resp.text[:200]}")
        try:
            return resp.json()
        except ValueError as exc:
            raise ProviderError(f"{self.name} GET {path} returned invalid JSON") from exc

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
