"""Symbol universe loading and provider symbol formats."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

logger = logging.getLogger(__name__)

_QUOTE_ASSETS = ("USDT", "BUSD", "USDC", "USD")


def normalize_symbol(symbol: str) -> str:
    """Canonical exchange form, e.g. ' btcusdt ' -> 'BTCUSDT'."""
    s = symbol.strip().upper().replace("/", "").replace("-", "")
    if not s:
        raise ValueError("symbol is required")
    return s


def dedupe_symbols(symbols: Iterable[str]) -> list[str]:
    """Normalize and drop duplicates, keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for raw in symbols:
        symbol = normalize_symbol(raw)
        if symbol not in seen:
            seen.add(symbol)
            result.append(symbol)
    return result


def to_twelvedata(symbol: str) -> str:
    """BTCUSDT -> BTC/USD (TwelveData quotes crypto against USD)."""
    s = normalize_symbol(symbol)
    for quote in _QUOTE_ASSETS:
        if s.endswith(quote) and len(s) > len(quote):
            return f"{s[: -len(quote)]}/USD"
    return s


def to_binance(symbol: str) -> str:
    """BTCUSD -> BTCUSDT; symbols already quoted in a stablecoin pass through."""
    s = normalize_symbol(symbol)
    if s.endswith("USD") and not s.endswith(("USDT", "BUSD", "USDC")):
        s = s[:-3] + "USDT"
    return s


def load_symbol_universe(path: str | Path) -> list[str]:
    """Read one symbol per line; blank lines and '#' comments are ignored.

    Raises:
        FileNotFoundError: If the file does not exist
    """
    lines = Path(path).read_text(encoding="utf-8").splitlines()
    symbols = [line.split("#", 1)[0].strip() for line in lines]
    universe = dedupe_symbols(s for s in symbols if s)
    logger.debug(f"Loaded {len(universe)} symbols from {path}")
    return universe
