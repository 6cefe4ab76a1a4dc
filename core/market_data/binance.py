"""Binance public REST client (no API key needed).

- bulk: `/api/v3/ticker/price?symbols=[...]`
- individual: `/api/v3/klines` with `limit=1`
- price: `/api/v3/ticker/price?symbol=...`
"""

from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation
from typing import Mapping, Sequence

from core.errors import ProviderError
from core.market_data.base import HttpProvider, MarketSnapshot, parse_price
from core.market_data.symbols import normalize_symbol, to_binance


class BinanceClient(HttpProvider):
    """Binance market-data client (bulk, series and price tiers)."""

    base_url = "https://api.binance.com"
    name = "binance"

    async def fetch_bulk(self, symbols: Sequence[str]) -> Mapping[str, MarketSnapshot]:
        if not symbols:
            return {}

        owners: dict[str, list[str]] = {}
        for symbol in symbols:
            canonical = normalize_symbol(symbol)
            owners.setdefault(to_binance(canonical), []).append(canonical)

        payload = await self._get_json(
            "/api/v3/ticker/price",
            {"symbols": json.dumps(list(owners), separators=(",", ":"))},
        )
        if not isinstance(payload, list):
            raise ProviderError(f"Unexpected response type: {type(payload)}")

        results: dict[str, MarketSnapshot] = {}
        for row in payload:
            if not isinstance(row, dict):
                continue
            for owner in owners.get(str(row.get("symbol", "")), ()):
                results[owner] = MarketSnapshot(symbol=owner, price=parse_price(row.get("price"), symbol=owner))
        return results

    async def fetch_series(self, symbol: str) -> MarketSnapshot:
        """Latest 1m kline: [open_time, open, high, low, close, volume, close_time, ...]."""
        canonical = normalize_symbol(symbol)
        payload = await self._get_json(
            "/api/v3/klines",
            {"symbol": to_binance(canonical), "interval": "1m", "limit": "1"},
        )
        if not isinstance(payload, list) or not payload or not isinstance(payload[-1], list):
            raise ProviderError(f"No klines for {canonical}")

        row = payload[-1]
        if len(row) < 7:
            raise ProviderError(f"Malformed kline for {canonical}: {row!r}")
        try:
            volume = Decimal(str(row[5]))
        except InvalidOperation:
            volume = None
        return MarketSnapshot(
            symbol=canonical,
            price=parse_price(row[4], symbol=canonical),
            volume=volume,
            observed_at=int(row[6]) / 1000,
        )

    async def fetch_price(self, symbol: str) -> MarketSnapshot:
        canonical = normalize_symbol(symbol)
        payload = await self._get_json("/api/v3/ticker/price", {"symbol": to_binance(canonical)})
        if not isinstance(payload, dict) or "price" not in payload:
            raise ProviderError(f"Binance ticker returned no price for {canonical}")
        return MarketSnapshot(symbol=canonical, price=parse_price(payload["price"], symbol=canonical))
