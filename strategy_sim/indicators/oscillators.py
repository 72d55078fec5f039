"""
오실레이터 지표 (RSI, ROC).
"""

import math

import numpy as np

from strategy_sim.indicators import register


@register("RSI", warmup=lambda period: period + 1)
def rsi(series, period: int) -> np.ndarray:
    """상대강도지수.

    최근 period개 가격변화의 상승폭/하락폭 합을 증분 방식(추가/제거)으로 유지.
    평균 하락폭이 0이면 100. 유한하지 않은 변화가 나오면 창을 다시 채운다.
    """
    values = np.asarray(series, dtype=float)
    result = np.full(len(values), np.nan)
    if period <= 0:
        return result

    gain = 0.0
    loss = 0.0
    run = 0
    for i in range(1, len(values)):
        change = values[i] - values[i - 1]
        if not math.isfinite(change):
            gain = loss = 0.0
            run = 0
            continue
        gain += max(0.0, change)
        loss += max(0.0, -change)
        run += 1
        if run > period:
            dropped = values[i - period] - values[i - period - 1]
            # 누적 오차로 음수가 되지 않게 0에서 자름
            gain = max(0.0, gain - max(0.0, dropped))
            loss = max(0.0, loss - max(0.0, -dropped))
            run = period
        if run == period:
            avg_gain = gain / period
            avg_loss = loss / period
            if avg_loss == 0:
                result[i] = 100.0
            else:
                rs = avg_gain / avg_loss
                result[i] = 100 - 100 / (1 + rs)
    return result


@register("ROC", warmup=lambda period: period)
def roc(series, period: int) -> np.ndarray:
    """변화율(%). period봉 전 값이 0이거나 유한하지 않으면 NaN."""
    values = np.asarray(series, dtype=float)
    result = np.full(len(values), np.nan)
    if period <= 0:
        return result

    for i in range(period, len(values)):
        base = values[i - period]
        if not math.isfinite(base) or base == 0:
            continue
        result[i] = (values[i] - base) / base * 100
    return result
