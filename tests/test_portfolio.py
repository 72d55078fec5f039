from __future__ import annotations

import math
from datetime import date

import pytest

from strategy_sim.data.portfolio import Portfolio, is_tradable_price

DAY = date(2024, 1, 2)


def test_is_tradable_price():
    assert is_tradable_price(10.0)
    assert not is_tradable_price(0.0)
    assert not is_tradable_price(-1.0)
    assert not is_tradable_price(math.nan)
    assert not is_tradable_price(math.inf)


def test_buy_floors_shares_and_charges_costs():
    portfolio = Portfolio(10_005, commission=5, slippage_pct=0.01)
    shares = portfolio.buy("SPY", 10_000, 100.0, DAY)
    # 10,000 / 101 = 99.0099 → 99주
    assert shares == 99
    position = portfolio.get_position("SPY")
    assert position.cost_basis == pytest.approx(99 * 101 + 5)
    assert position.entry_price == pytest.approx((99 * 101 + 5) / 99)
    assert position.entry_date == DAY
    assert portfolio.cash == pytest.approx(10_005 - 99 * 101 - 5)
    assert portfolio.turnover == pytest.approx(99 * 101 + 5)


def test_buy_skipped_when_commission_exceeds_remaining_cash():
    portfolio = Portfolio(1_000, commission=5)
    assert portfolio.buy("SPY", 1_000, 100.0, DAY) == 0
    assert portfolio.cash == 1_000
    assert not portfolio.holds("SPY")


def test_buy_skipped_for_bad_price_or_budget():
    portfolio = Portfolio(1_000)
    assert portfolio.buy("SPY", 1_000, math.nan, DAY) == 0
    assert portfolio.buy("SPY", 0, 10.0, DAY) == 0
    assert portfolio.buy("SPY", 5, 10.0, DAY) == 0
    assert portfolio.position_count == 0


def test_buy_whole_cash_at_exact_multiple_leaves_zero_cash():
    portfolio = Portfolio(100_000)
    assert portfolio.buy("SPY", portfolio.cash, 100.0, DAY) == 1_000
    assert portfolio.cash == 0.0


def test_sell_realizes_pnl_with_costs():
    portfolio = Portfolio(10_005, commission=5, slippage_pct=0.01)
    portfolio.buy("SPY", 10_000, 100.0, DAY)
    record = portfolio.close("SPY", 110.0, DAY, reason="exit_rule")

    proceeds = 99 * 110 * 0.99 - 5
    assert record.pnl == pytest.approx(proceeds - (99 * 101 + 5))
    assert record.reason == "exit_rule"
    assert record.shares == 99
    assert not portfolio.holds("SPY")
    assert portfolio.cash == pytest.approx(10_005 - 99 * 101 - 5 + proceeds)
    assert portfolio.stats_for("SPY").trades == 1
    assert portfolio.stats_for("SPY").pnl == pytest.approx(record.pnl)
    assert portfolio.turnover == pytest.approx(99 * 101 + 5 + 99 * 110)


def test_partial_sell_keeps_average_entry_price():
    portfolio = Portfolio(10_000)
    portfolio.buy_shares("SPY", 10, 100.0, DAY)
    portfolio.buy_shares("SPY", 10, 200.0, DAY)
    position = portfolio.get_position("SPY")
    assert position.entry_price == pytest.approx(150.0)

    record = portfolio.sell("SPY", 5, 180.0, DAY, reason="rebalance")
    assert record.pnl == pytest.approx(5 * 180 - 5 * 150)
    assert position.shares == 15
    assert position.entry_price == pytest.approx(150.0)
    assert position.cost_basis == pytest.approx(15 * 150)


def test_sell_commission_never_drives_cash_negative():
    portfolio = Portfolio(103, commission=100)
    assert portfolio.buy_shares("SPY", 1, 3.0, DAY)
    assert portfolio.cash == 0.0
    record = portfolio.close("SPY", 1.0, DAY)
    assert record.pnl == pytest.approx(-103)
    assert portfolio.cash == 0.0


def test_sell_with_bad_price_is_skipped():
    portfolio = Portfolio(1_000)
    portfolio.buy_shares("SPY", 1, 10.0, DAY)
    assert portfolio.close("SPY", math.nan, DAY) is None
    assert portfolio.holds("SPY")
    assert portfolio.close("QQQ", 10.0, DAY) is None


def test_equity_ignores_non_finite_prices_and_tracks_exposure():
    portfolio = Portfolio(1_000)
    portfolio.buy_shares("SPY", 10, 10.0, DAY)
    portfolio.buy_shares("QQQ", 10, 20.0, DAY)
    assert portfolio.get_holding_symbols() == ["QQQ", "SPY"]
    assert portfolio.equity({"SPY": 12.0, "QQQ": 20.0}) == pytest.approx(700 + 120 + 200)
    assert portfolio.equity({"SPY": 12.0, "QQQ": math.nan}) == pytest.approx(700 + 120)

    assert portfolio.record_exposure()
    assert portfolio.stats_for("SPY").exposure_days == 1
    assert not Portfolio(1_000).record_exposure()
