"""
종목별 시계열 묶음.

[ 역할 ]
    한 종목의 일봉, 종가 배열, 지표 시리즈를 하나로 묶는다.
    지표 배열은 일봉 배열과 1:1로 정렬되어 있다.

[ 호출하는 곳 ]
    - backtest/engine.py에서 종목마다 build_symbol_series() 호출
    - backtest/simulator.py, backtest/evaluator.py가 읽기 전용으로 사용
"""

import logging
from dataclasses import dataclass, field

import numpy as np

from strategy_sim.core.data_provider import Candle
from strategy_sim.core.exceptions import InsufficientHistoryError
from strategy_sim.core.strategy import IndicatorDefinition
from strategy_sim.indicators import compute_indicator, warmup_period

logger = logging.getLogger("strategy_sim.indicators")

# 워밍업 외에 추가로 요구하는 최소 일봉 수
WARMUP_MARGIN = 5


@dataclass
class SymbolSeries:
    """종목 하나의 일봉 + 종가 + 지표 시리즈."""
    symbol: str
    candles: list[Candle]
    closes: np.ndarray
    indicators: dict[str, np.ndarray] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.candles)

    def close_at(self, index: int) -> float:
        if 0 <= index < len(self.closes):
            return float(self.closes[index])
        return float("nan")

    def indicator_at(self, indicator_id: str, index: int) -> float:
        """지표 값 조회. 없는 지표나 범위 밖 인덱스는 NaN."""
        series = self.indicators.get(indicator_id)
        if series is None or not 0 <= index < len(series):
            return float("nan")
        return float(series[index])


def build_symbol_series(
    symbol: str,
    candles: list[Candle],
    definitions: tuple[IndicatorDefinition, ...] | list[IndicatorDefinition],
) -> SymbolSeries:
    """종목 하나의 지표를 모두 계산.

    Raises:
        InsufficientHistoryError: 일봉 수 < 워밍업 + WARMUP_MARGIN
    """
    closes = np.array([c.close for c in candles], dtype=float)
    indicators: dict[str, np.ndarray] = {}
    for definition in definitions:
        required = warmup_period(definition) + WARMUP_MARGIN
        if len(candles) < required:
            raise InsufficientHistoryError(
                indicator_id=definition.id,
                fn=definition.fn,
                symbol=symbol,
                required=required,
                available=len(candles),
            )
        indicators[definition.id] = compute_indicator(definition, candles, closes)

    logger.debug(f"{symbol}: 지표 {len(indicators)}개 계산 ({len(candles)}일)")
    return SymbolSeries(symbol=symbol, candles=candles, closes=closes, indicators=indicators)
