"""
변동성 지표 (ATR).
"""

import numpy as np

from strategy_sim.core.data_provider import Candle
from strategy_sim.indicators import register
from strategy_sim.indicators.moving_average import sma


def true_range(candles: list[Candle]) -> np.ndarray:
    """True Range. 첫 봉은 자신의 종가를 전일 종가로 사용."""
    trs = np.empty(len(candles))
    for i, candle in enumerate(candles):
        prev_close = candles[i - 1].close if i > 0 else candle.close
        trs[i] = max(
            candle.high - candle.low,
            abs(candle.high - prev_close),
            abs(candle.low - prev_close),
        )
    return trs


@register("ATR", warmup=lambda period: period + 1, uses_candles=True)
def atr(candles: list[Candle], period: int) -> np.ndarray:
    """평균 True Range (SMA 평활)."""
    if period <= 0:
        return np.full(len(candles), np.nan)
    return sma(true_range(candles), period)
