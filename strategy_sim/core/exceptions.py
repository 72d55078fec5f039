"""
예외 정의.

[ 분류 ]
    ConfigurationError       - 시뮬레이션 시작 전에 발견되는 치명적 설정 오류
      ├── StrategyFormatError      - 전략 문서를 객체로 변환할 수 없음
      ├── StrategyValidationError  - 교차 검증 실패 (지표 참조, 기간 길이 등)
      └── InsufficientHistoryError - 지표 워밍업에 필요한 일봉 부족

    시뮬레이션 도중의 비정상 값(NaN 지표, NaN 가격, 0 나누기)은 예외가 아니라
    "조건 거짓" 또는 "해당 주문 건너뜀"으로 처리된다.
"""


class StrategySimError(Exception):
    """strategy_sim 전체 예외의 부모 클래스."""


class ConfigurationError(StrategySimError, ValueError):
    """시뮬레이션 전에 중단해야 하는 설정 오류."""


class StrategyFormatError(ConfigurationError):
    """전략 문서 구조가 잘못됨."""


class StrategyValidationError(ConfigurationError):
    """전략 문서 교차 검증 실패. errors에 개별 사유 목록."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class InsufficientHistoryError(ConfigurationError):
    """지표 워밍업 대비 일봉 데이터 부족."""

    def __init__(self, indicator_id: str, fn: str, symbol: str, required: int, available: int):
        self.indicator_id = indicator_id
        self.fn = fn
        self.symbol = symbol
        self.required = required
        self.available = available
        super().__init__(
            f"워밍업 데이터 부족: {fn} ({indicator_id}) on {symbol} "
            f"- 최소 {required}개 필요, {available}개 존재"
        )


__all__ = [
    "StrategySimError",
    "ConfigurationError",
    "StrategyFormatError",
    "StrategyValidationError",
    "InsufficientHistoryError",
]
