from __future__ import annotations

import json
from datetime import date

import pytest

from strategy_sim.backtest.engine import BacktestEngine
from strategy_sim.backtest.metrics import equity_metrics
from strategy_sim.backtest.series import build_symbol_series
from strategy_sim.backtest.simulator import PortfolioSimulator
from strategy_sim.core.exceptions import ConfigurationError, InsufficientHistoryError
from strategy_sim.data.price_generator import generate_candles, trading_days

from conftest import make_strategy

START = date(2020, 1, 1)
END = date(2022, 12, 30)


@pytest.fixture
def crossover_strategy():
    return make_strategy(
        universe=["SPY", "QQQ", "IWM"],
        window={"start": START.isoformat(), "end": END.isoformat()},
        capital={"commission": 1, "slippage_pct": 0.0005},
        schedule={"rebalance": "monthly"},
        risk={"max_allocation_pct": 0.5, "max_positions": 2, "stop_loss_pct": 0.1},
        indicators=[
            {"id": "@fast", "fn": "SMA", "args": {"period": 10}},
            {"id": "@slow", "fn": "EMA", "args": {"period": 30}},
            {"id": "@rsi", "fn": "RSI", "args": {"period": 14}},
        ],
        entries=[{
            "when": {"any": [{"cross_over": ["@fast", "@slow"]}, {"lt": ["@rsi", 30]}]},
            "then": {"buy": {"ticker": "*", "sizing": {"type": "equal_weight"}}},
        }],
        exits=[{"when": {"any": [{"cross_under": ["@fast", "@slow"]}, {"gt": ["@rsi", 70]}]},
                "then": {"close": {"ticker": "*"}}}],
    )


def test_invalid_train_ratio_rejected():
    for ratio in (0, 1, -0.5, 1.5):
        with pytest.raises(ConfigurationError):
            BacktestEngine(train_ratio=ratio)


def test_backtest_is_deterministic_and_json_serializable(crossover_strategy):
    first = BacktestEngine().run_backtest(crossover_strategy).to_dict()
    second = BacktestEngine().run_backtest(crossover_strategy).to_dict()
    assert json.dumps(first, sort_keys=True) == json.dumps(second, sort_keys=True)
    assert set(first) == {"metrics", "equity", "perAsset", "warnings"}
    assert set(first["metrics"]) == {"train", "validate"}


def test_train_validate_split(crossover_strategy):
    result = BacktestEngine(train_ratio=0.7).run_backtest(crossover_strategy)
    n = len(trading_days(START, END))
    split = int(n * 0.7)

    assert len(result.train_equity) == split
    assert len(result.validate_equity) == n - split
    assert result.train_equity.dates[-1] < result.validate_equity.dates[0]
    assert result.train_equity.dates[0] == trading_days(START, END)[0]
    assert len(result.train_equity.dates) == len(result.train_equity.values)


def test_reported_metrics_match_curve_recomputation(crossover_strategy):
    result = BacktestEngine().run_backtest(crossover_strategy)
    for metrics, curve in ((result.train_metrics, result.train_equity), (result.validate_metrics, result.validate_equity)):
        recomputed = equity_metrics(curve.values)
        assert metrics.cagr == pytest.approx(recomputed.cagr)
        assert metrics.max_drawdown == pytest.approx(recomputed.max_drawdown)
        assert metrics.stdev == pytest.approx(recomputed.stdev)
        assert -1.0 <= metrics.max_drawdown <= 0.0
        assert 0.0 <= metrics.exposure <= 1.0


def test_validate_segment_starts_with_fresh_capital(crossover_strategy):
    result = BacktestEngine().run_backtest(crossover_strategy)
    assert result.validate_equity.values[0] <= crossover_strategy.capital.starting_cash


def test_per_asset_covers_universe_in_order(crossover_strategy):
    result = BacktestEngine().run_backtest(crossover_strategy)
    assert [a.symbol for a in result.per_asset] == ["SPY", "QQQ", "IWM"]
    for asset in result.per_asset:
        assert 0.0 <= asset.exposure <= 1.0
        assert asset.trades >= 0


def test_parallel_indicator_build_matches_sequential(crossover_strategy):
    sequential = BacktestEngine(max_workers=1).run_backtest(crossover_strategy).to_dict()
    parallel = BacktestEngine(max_workers=4).run_backtest(crossover_strategy).to_dict()
    assert parallel == sequential


def test_warnings_are_train_then_validate():
    strategy = make_strategy(
        universe=["SPY", "QQQ"],
        window={"start": "2023-01-02", "end": "2023-06-30"},
        risk={"max_allocation_pct": 0.5, "max_positions": 1},
        entries=[{"when": {"gt": ["@px", 0]}, "then": {"buy": {"ticker": "*", "sizing": {"type": "equal_weight"}}}}],
    )
    result = BacktestEngine(train_ratio=0.5).run_backtest(strategy)

    series = {
        s: build_symbol_series(s, generate_candles(s, strategy.window.start, strategy.window.end), strategy.indicators)
        for s in strategy.universe
    }
    n = len(series["SPY"])
    split = int(n * 0.5)
    sim = PortfolioSimulator(strategy, series)
    expected = [*sim.run(0, split - 1).warnings, *sim.run(split, n - 1).warnings]

    assert result.warnings == expected
    assert result.warnings
    assert all(w.startswith("Max positions reached, skipped ") for w in result.warnings)


def test_insufficient_history_names_indicator_and_symbol():
    strategy = make_strategy(
        window={"start": "2024-01-01", "end": "2024-02-01"},
        indicators=[
            {"id": "@px", "fn": "SMA", "args": {"period": 1}},
            {"id": "@long", "fn": "SMA", "args": {"period": 50}},
        ],
    )
    with pytest.raises(InsufficientHistoryError) as exc_info:
        BacktestEngine().run_backtest(strategy)
    assert exc_info.value.indicator_id == "@long"
    assert exc_info.value.symbol == "SPY"


def test_window_without_sessions_is_configuration_error():
    strategy = make_strategy(
        window={"start": "2024-01-06", "end": "2024-01-07"},
        indicators=[],
        entries=[{"when": {"gt": [1, 0]}, "then": {"buy": {"ticker": "*", "sizing": {"type": "all_in_single"}}}}],
        exits=[],
    )
    with pytest.raises(ConfigurationError):
        BacktestEngine().run_backtest(strategy)


def test_all_in_single_buy_and_hold_over_one_year(base_strategy):
    result = BacktestEngine().run_backtest(base_strategy)
    assert [a.trades for a in result.per_asset] == [0]
    assert result.per_asset[0].exposure == pytest.approx(1.0)
    assert result.train_metrics.hit_rate == 0.0
    assert result.warnings == []
