from __future__ import annotations

import copy
from datetime import date
from typing import Any

import numpy as np
import pandas as pd
import pytest

from strategy_sim.backtest.series import SymbolSeries
from strategy_sim.core.data_provider import Candle
from strategy_sim.core.strategy import Strategy

ALWAYS_TRUE = {"lt": ["@px", 1e12]}
ALWAYS_FALSE = {"gt": ["@px", 1e12]}


def make_candles(closes, start: date = date(2024, 1, 1)) -> list[Candle]:
    """Flat candles (open=high=low=close) on consecutive business days."""
    days = pd.bdate_range(start=start, periods=len(closes))
    return [
        Candle(date=d.date(), open=float(c), high=float(c), low=float(c), close=float(c), volume=1_000_000.0)
        for d, c in zip(days, closes)
    ]


def make_series(symbol: str, closes, indicators: dict[str, Any] | None = None, start: date = date(2024, 1, 1)) -> SymbolSeries:
    """Series whose "@px" indicator is the close itself, plus any extras."""
    candles = make_candles(closes, start=start)
    close_arr = np.array([c.close for c in candles], dtype=float)
    series = {"@px": close_arr.copy()}
    for key, values in (indicators or {}).items():
        series[key] = np.asarray(values, dtype=float)
    return SymbolSeries(symbol=symbol, candles=candles, closes=close_arr, indicators=series)


def _deep_update(base: dict, overrides: dict) -> dict:
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_update(base[key], value)
        else:
            base[key] = value
    return base


BASE_DOC: dict[str, Any] = {
    "meta": {"name": "test", "version": 1},
    "universe": ["SPY"],
    "window": {"start": "2023-01-02", "end": "2024-01-02"},
    "capital": {"starting_cash": 100_000, "commission": 0, "slippage_pct": 0},
    "schedule": {"rebalance": "none", "time_anchor": "close"},
    "risk": {"max_allocation_pct": 1.0, "max_positions": 1},
    "indicators": [{"id": "@px", "fn": "SMA", "args": {"period": 1}, "source": "close"}],
    "entries": [
        {"when": ALWAYS_TRUE, "then": {"buy": {"ticker": "*", "sizing": {"type": "all_in_single"}}}},
    ],
    "exits": [
        {"when": ALWAYS_FALSE, "then": {"close": {"ticker": "*"}}},
    ],
}


def strategy_doc(**overrides: Any) -> dict[str, Any]:
    return _deep_update(copy.deepcopy(BASE_DOC), overrides)


def make_strategy(**overrides: Any) -> Strategy:
    return Strategy.from_dict(strategy_doc(**overrides))


@pytest.fixture
def base_strategy() -> Strategy:
    return make_strategy()
