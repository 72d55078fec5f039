"""
지표 모듈.

[ 지표 등록 방식 ]
    @register("이름", warmup=...) 데코레이터를 붙이면 INDICATOR_REGISTRY에 자동 등록.
    전략 문서의 indicators[].fn 이름만으로 계산 함수를 찾을 수 있다.

[ 등록된 지표 ]
    SMA  (moving_average.py)  워밍업 period
    EMA  (moving_average.py)  워밍업 period * 3
    RSI  (oscillators.py)     워밍업 period + 1
    ROC  (oscillators.py)     워밍업 period
    ATR  (volatility.py)      워밍업 period + 1   ← 종가가 아닌 일봉 전체 사용

[ 출력 규약 ]
    입력과 길이가 같은 numpy 배열. 아직 값이 없는 위치는 NaN.
    선언된 워밍업 길이 이후의 모든 위치는 (입력이 유한하면) 유한한 값.

[ 새 지표 추가 방법 ]
    1. 이 디렉토리의 모듈에 (series, period) -> np.ndarray 함수 작성
    2. @register("이름", warmup=lambda p: ...) 데코레이터 추가
    → 끝. 시뮬레이터 수정 불필요.
"""

from dataclasses import dataclass
from importlib import import_module
from pathlib import Path
from typing import Callable

import numpy as np

from strategy_sim.core.data_provider import Candle
from strategy_sim.core.exceptions import ConfigurationError
from strategy_sim.core.strategy import IndicatorDefinition

DEFAULT_PERIOD = 14


@dataclass(frozen=True)
class IndicatorSpec:
    """등록된 지표 정보."""
    name: str
    func: Callable[..., np.ndarray]
    warmup: Callable[[int], int]
    uses_candles: bool = False    # True면 종가 대신 Candle 리스트를 입력으로 받음


# 지표 이름 → IndicatorSpec 매핑
INDICATOR_REGISTRY: dict[str, IndicatorSpec] = {}


def register(name: str, warmup: Callable[[int], int], uses_candles: bool = False):
    """지표 함수를 INDICATOR_REGISTRY에 등록하는 데코레이터."""
    def decorator(func: Callable[..., np.ndarray]):
        INDICATOR_REGISTRY[name] = IndicatorSpec(name, func, warmup, uses_candles)
        return func
    return decorator


def get_indicator(name: str) -> IndicatorSpec:
    """이름으로 지표 조회.

    Raises:
        ConfigurationError: 등록되지 않은 지표 이름
    """
    if name not in INDICATOR_REGISTRY:
        available = ", ".join(sorted(INDICATOR_REGISTRY.keys()))
        raise ConfigurationError(f"알 수 없는 지표: '{name}'. 사용 가능: {available}")
    return INDICATOR_REGISTRY[name]


def indicator_period(definition: IndicatorDefinition) -> int:
    return int(definition.args.get("period", DEFAULT_PERIOD))


def warmup_period(definition: IndicatorDefinition) -> int:
    """지표 정의의 워밍업 길이."""
    return get_indicator(definition.fn).warmup(indicator_period(definition))


def compute_indicator(
    definition: IndicatorDefinition,
    candles: list[Candle],
    closes: np.ndarray,
) -> np.ndarray:
    """지표 정의 하나를 계산."""
    spec = get_indicator(definition.fn)
    period = indicator_period(definition)
    if spec.uses_candles:
        return spec.func(candles, period)
    return spec.func(closes, period)


def list_indicators() -> list[str]:
    """등록된 지표 이름 목록 반환."""
    return sorted(INDICATOR_REGISTRY.keys())


def _auto_discover():
    """이 디렉토리의 모든 지표 모듈을 자동 임포트하여 @register가 실행되게 한다."""
    indicators_dir = Path(__file__).parent
    for py_file in indicators_dir.glob("*.py"):
        if py_file.name.startswith("_"):
            continue
        module_name = f"strategy_sim.indicators.{py_file.stem}"
        import_module(module_name)


# 모듈 로드 시 자동 탐색
_auto_discover()
