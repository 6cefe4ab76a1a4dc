"""TwelveData REST client.

Implements all three fetch tiers:
- bulk: `/time_series` with a comma-separated symbol list (one call, many symbols)
- individual: `/time_series` for a single symbol
- price: `/price` for a single symbol

Scanner symbols are exchange-style (`BTCUSDT`); TwelveData wants `BTC/USD`.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Sequence

import httpx

from core.errors import ProviderError
from core.market_data.base import HttpProvider, MarketSnapshot, classify_http_error, parse_price
from core.market_data.symbols import normalize_symbol, to_twelvedata

logger = logging.getLogger(__name__)


class TwelveDataClient(HttpProvider):
    """TwelveData client (bulk, series and price tiers)."""

    base_url = "https://api.twelvedata.com"
    name = "twelvedata"
    INTERVAL = "1min"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(timeout_seconds=timeout_seconds, client=client)
        self.api_key = api_key or os.environ.get("TWELVEDATA_API_KEY")
        if not self.api_key:
            logger.warning("TWELVEDATA_API_KEY not configured")

    def _params(self, **params: str) -> dict[str, str]:
        if self.api_key:
            params["apikey"] = self.api_key
        return params

    async def fetch_bulk(self, symbols: Sequence[str]) -> Mapping[str, MarketSnapshot]:
        if not symbols:
            return {}

        # Several scanner symbols can share one TwelveData symbol (BTCUSDT, BTCUSD).
        by_provider_symbol: dict[str, list[str]] = {}
        for symbol in symbols:
            canonical = normalize_symbol(symbol)
            by_provider_symbol.setdefault(to_twelvedata(canonical), []).append(canonical)

        provider_symbols = list(by_provider_symbol)
        payload = await self._get_json(
            "/time_series",
            self._params(symbol=",".join(provider_symbols), interval=self.INTERVAL, outputsize="1"),
        )
        _raise_for_error_payload(payload)

        if len(provider_symbols) == 1:
            # Single-symbol requests come back un-keyed.
            payload = {provider_symbols[0]: payload}
        if not isinstance(payload, dict):
            raise ProviderError(f"Unexpected bulk response type: {type(payload)}")

        results: dict[str, MarketSnapshot] = {}
        for provider_symbol, owners in by_provider_symbol.items():
            item = payload.get(provider_symbol)
            if not isinstance(item, dict) or item.get("status") == "error":
                logger.debug(f"TwelveData bulk response has no data for {provider_symbol}")
                continue
            try:
                for owner in owners:
                    results[owner] = _snapshot_from_series(owner, item)
            except ProviderError as exc:
                logger.debug(f"Skipping malformed bulk entry for {provider_symbol}: {exc}")
        return results

    async def fetch_series(self, symbol: str) -> MarketSnapshot:
        canonical = normalize_symbol(symbol)
        payload = await self._get_json(
            "/time_series",
            self._params(symbol=to_twelvedata(canonical), interval=self.INTERVAL, outputsize="1"),
        )
        _raise_for_error_payload(payload)
        return _snapshot_from_series(canonical, payload)

    async def fetch_price(self, symbol: str) -> MarketSnapshot:
        canonical = normalize_symbol(symbol)
        payload = await self._get_json("/price", self._params(symbol=to_twelvedata(canonical)))
        _raise_for_error_payload(payload)
        if not isinstance(payload, dict) or "price" not in payload:
            raise ProviderError(f"TwelveData /price returned no price for {canonical}")
        return MarketSnapshot(symbol=canonical, price=parse_price(payload["price"], symbol=canonical))


def _raise_for_error_payload(payload: Any) -> None:
    """TwelveData reports errors (including 429) in a 200 body."""
    if isinstance(payload, dict) and payload.get("status") == "error":
        try:
            code = int(payload.get("code") or 400)
        except (TypeError, ValueError):
            code = 400
        raise classify_http_error(code, f"TwelveData error {code}: {payload.get('message', '')}")


def _snapshot_from_series(symbol: str, payload: Any) -> MarketSnapshot:
    if not isinstance(payload, dict):
        raise ProviderError(f"Unexpected series payload for {symbol}: {type(payload)}")
    values = payload.get("values")
    if not isinstance(values, list) or not values or not isinstance(values[0], dict):
        raise ProviderError(f"No time-series values for {symbol}")

    latest = values[0]
    volume: Optional[Decimal] = None
    if latest.get("volume") not in (None, ""):
        try:
            volume = Decimal(str(latest["volume"]))
        except InvalidOperation:
            volume = None

    return MarketSnapshot(
        symbol=symbol,
        price=parse_price(latest.get("close"), symbol=symbol),
        volume=volume,
        observed_at=_parse_datetime(latest.get("datetime")),
    )


def _parse_datetime(value: Any) -> Optional[float]:
    if not isinstance(value, str):
        return None
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()
