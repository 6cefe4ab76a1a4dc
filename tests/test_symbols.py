"""Tests for symbol normalization and the universe file."""

from __future__ import annotations

import pytest

from core.market_data.symbols import dedupe_symbols, load_symbol_universe, normalize_symbol, to_binance, to_twelvedata


def test_normalize_symbol():
    assert normalize_symbol(" btc/usdt ") == "BTCUSDT"
    assert normalize_symbol("ETH-USD") == "ETHUSD"
    with pytest.raises(ValueError):
        normalize_symbol("  ")


def test_dedupe_keeps_first_seen_order():
    assert dedupe_symbols(["ethusdt", "BTCUSDT", "ETH/USDT", "btcusdt"]) == ["ETHUSDT", "BTCUSDT"]


@pytest.mark.parametrize(
    "symbol, expected",
    [("BTCUSDT", "BTC/USD"), ("ETHUSD", "ETH/USD"), ("SOLUSDC", "SOL/USD"), ("USDT", "USDT")],
)
def test_to_twelvedata(symbol, expected):
    assert to_twelvedata(symbol) == expected


def test_to_binance():
    assert to_binance("BTCUSD") == "BTCUSDT"
    assert to_binance("BTCUSDT") == "BTCUSDT"
    assert to_binance("ETHBUSD") == "ETHBUSD"


def test_load_symbol_universe(tmp_path):
    path = tmp_path / "active_symbols.txt"
    path.write_text("# majors\nBTCUSDT\nethusdt  # second\n\nBTCUSDT\nSOLUSDT\n", encoding="utf-8")

    assert load_symbol_universe(path) == ["BTCUSDT", "ETHUSDT", "SOLUSDT"]


def test_load_symbol_universe_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_symbol_universe(tmp_path / "missing.txt")
