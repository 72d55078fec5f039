from __future__ import annotations

from datetime import date

import pytest

from strategy_sim.data.market_data import MarketDataManager
from strategy_sim.data.price_generator import (
    PRICE_FLOOR,
    Mulberry32,
    SyntheticDataProvider,
    generate_candles,
    hash_seed,
    trading_days,
)

START = date(2023, 1, 2)
END = date(2024, 1, 2)


def test_hash_seed_is_stable_32bit():
    h = hash_seed("SPY:2023-01-02:2024-01-02")
    assert h == hash_seed("SPY:2023-01-02:2024-01-02")
    assert 0 <= h < 2**32
    assert h != hash_seed("QQQ:2023-01-02:2024-01-02")


# 고정값: 프로세스를 다시 시작해도 같은 시드와 난수열이 나와야 한다
def test_seed_and_stream_match_known_values():
    seed = hash_seed("SPY:2023-01-02:2024-01-02")
    assert seed == 3210319381
    rand = Mulberry32(seed)
    assert rand.next_float() == 0.19199414341710508
    assert rand.next_float() == 0.08473338303156197


def test_first_candle_matches_known_values():
    first = generate_candles("SPY", START, END)[0]
    assert first.date == date(2023, 1, 2)
    # open = 50 + 0.19199414341710508 * 50, shock = (0.08473338303156197 - 0.5) * 2
    assert first.open == pytest.approx(59.599707170855254, rel=1e-12)
    assert first.close == pytest.approx(58.6413451327, rel=1e-8)


def test_mulberry32_stream_in_unit_interval_and_repeatable():
    a = Mulberry32(12345)
    b = Mulberry32(12345)
    draws = [a.next_float() for _ in range(1000)]
    assert draws == [b.next_float() for _ in range(1000)]
    assert all(0.0 <= x < 1.0 for x in draws)
    assert len(set(draws)) > 990


def test_trading_days_excludes_weekends_and_includes_end():
    days = trading_days(date(2024, 1, 5), date(2024, 1, 8))  # Fri .. Mon
    assert days == [date(2024, 1, 5), date(2024, 1, 8)]
    assert trading_days(date(2024, 1, 8), date(2024, 1, 5)) == []


def test_generate_candles_is_deterministic():
    first = generate_candles("SPY", START, END)
    second = generate_candles("SPY", START, END)
    assert first == second
    assert [c.close for c in first] == [c.close for c in second]


def test_generate_candles_depends_on_symbol_and_window():
    spy = generate_candles("SPY", START, END)
    qqq = generate_candles("QQQ", START, END)
    shifted = generate_candles("SPY", START, date(2024, 1, 3))
    assert [c.close for c in spy] != [c.close for c in qqq]
    assert spy[0].open != shifted[0].open


def test_candles_one_per_weekday_with_consistent_ranges():
    candles = generate_candles("SPY", START, END)
    assert len(candles) == len(trading_days(START, END))
    for prev, cur in zip(candles, candles[1:]):
        assert cur.date > prev.date
        assert cur.open == pytest.approx(prev.close)
    for c in candles:
        assert c.date.weekday() < 5
        assert c.high >= max(c.open, c.close)
        assert c.low <= min(c.open, c.close)
        assert c.close >= PRICE_FLOOR
        assert c.volume >= 1_000_000


def test_provider_frame_and_manager_cache():
    provider = SyntheticDataProvider()
    df = provider.get_ohlcv("SPY", START, END)
    assert list(df.columns) == ["date", "open", "high", "low", "close", "volume"]
    assert len(df) == len(trading_days(START, END))

    manager = MarketDataManager(provider)
    first = manager.get_candles("SPY", START, END)
    assert manager.get_candles("SPY", START, END) is first
    universe = manager.get_universe(["SPY", "QQQ"], START, END)
    assert list(universe) == ["SPY", "QQQ"]
    manager.clear_cache()
    assert manager.get_candles("SPY", START, END) is not first
    uncached = manager.get_candles("SPY", START, END, use_cache=False)
    assert uncached == first
    assert manager.get_candles("SPY", START, END, use_cache=False) is not uncached
