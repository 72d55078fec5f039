"""
이동평균 지표 (SMA, EMA).

SMA는 누적합을 더하고 빼는 방식으로 계산하며, 유한하지 않은 값을 만나면
누적합을 초기화한다. 불량 샘플 하나가 현재 창만 무효화하고 이후로
계속 전파되지 않도록 하기 위함.
"""

import math

import numpy as np

from strategy_sim.indicators import register


@register("SMA", warmup=lambda period: period)
def sma(series, period: int) -> np.ndarray:
    """단순이동평균. 연속된 유한 샘플이 period개 모인 시점부터 값이 있다."""
    values = np.asarray(series, dtype=float)
    result = np.full(len(values), np.nan)
    if period <= 0:
        return result

    total = 0.0
    run = 0  # 마지막 초기화 이후 연속된 유한 샘플 수
    for i, value in enumerate(values):
        if not math.isfinite(value):
            total = 0.0
            run = 0
            continue
        total += value
        run += 1
        if run > period:
            total -= values[i - period]
            run = period
        if run == period:
            result[i] = total / period
    return result


@register("EMA", warmup=lambda period: period * 3)
def ema(series, period: int) -> np.ndarray:
    """지수이동평균. 첫 유한 샘플로 시작하고, period개를 소비한 뒤부터 출력.

    수학적으로는 게이트가 필요 없지만 SMA와 같은 시점에 값이 나오도록 맞춘다.
    """
    values = np.asarray(series, dtype=float)
    result = np.full(len(values), np.nan)
    if period <= 0:
        return result

    multiplier = 2 / (period + 1)
    current = 0.0
    consumed = 0
    for i, value in enumerate(values):
        if not math.isfinite(value):
            continue
        if consumed == 0:
            current = value
        else:
            current = (value - current) * multiplier + current
        consumed += 1
        if consumed >= period:
            result[i] = current
    return result
