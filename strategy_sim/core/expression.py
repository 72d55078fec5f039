"""
조건식(BoolExpr) 트리 정의.

[ 역할 ]
    진입/청산 규칙의 when 절을 표현하는 닫힌 변형 집합.
    전략 문서의 dict 표현을 parse_expression()으로 트리로 변환한다.

[ 변형 ]
    AllOf     {"all": [...]}                  모든 자식이 참
    AnyOf     {"any": [...]}                  하나 이상의 자식이 참
    Compare   {"gt": [a, b]} / {"lt": [a, b]} 당일 값 비교
    Cross     {"cross_over": [a, b]} / {"cross_under": [a, b]}
                                              전일 대비 부등호 방향 전환
    RiskFlag  {"risk_stop": true} / {"risk_take": true}
                                              시뮬레이터가 주입하는 손절/익절 플래그

[ 피연산자 ]
    숫자 리터럴 또는 지표 id 문자열 (예: "@sma_fast")

[ 호출하는 곳 ]
    - core/strategy.py::Strategy.from_dict()에서 when 절 파싱
    - backtest/evaluator.py::evaluate()에서 평가
    - utils/validation.py에서 referenced_indicators()로 참조 검사
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from strategy_sim.core.exceptions import StrategyFormatError

Operand = Union[float, str]


class CompareOp(Enum):
    GT = "gt"
    LT = "lt"


class CrossDirection(Enum):
    OVER = "cross_over"
    UNDER = "cross_under"


class RiskKind(Enum):
    STOP = "risk_stop"
    TAKE = "risk_take"


@dataclass(frozen=True)
class AllOf:
    children: tuple["BoolExpr", ...]


@dataclass(frozen=True)
class AnyOf:
    children: tuple["BoolExpr", ...]


@dataclass(frozen=True)
class Compare:
    op: CompareOp
    left: Operand
    right: Operand


@dataclass(frozen=True)
class Cross:
    direction: CrossDirection
    left: Operand
    right: Operand


@dataclass(frozen=True)
class RiskFlag:
    kind: RiskKind


BoolExpr = Union[AllOf, AnyOf, Compare, Cross, RiskFlag]


def _parse_operand(value: Any, key: str) -> Operand:
    # bool은 int의 하위 타입이므로 먼저 걸러낸다
    if isinstance(value, bool):
        raise StrategyFormatError(f"'{key}' 피연산자에 bool 사용 불가: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and value:
        return value
    raise StrategyFormatError(f"'{key}' 피연산자는 숫자 또는 지표 id여야 함: {value!r}")


def _parse_pair(data: dict[str, Any], key: str) -> tuple[Operand, Operand]:
    pair = data[key]
    if not isinstance(pair, (list, tuple)) or len(pair) != 2:
        raise StrategyFormatError(f"'{key}'는 피연산자 2개의 리스트여야 함: {pair!r}")
    return _parse_operand(pair[0], key), _parse_operand(pair[1], key)


def parse_expression(data: Any) -> BoolExpr:
    """dict 형태의 조건식을 BoolExpr 트리로 변환.

    Raises:
        StrategyFormatError: 알 수 없는 키 또는 잘못된 피연산자
    """
    if not isinstance(data, dict) or len(data) != 1:
        raise StrategyFormatError(f"조건식은 키가 하나인 dict여야 함: {data!r}")

    key = next(iter(data))
    if key in ("all", "any"):
        children = data[key]
        if not isinstance(children, (list, tuple)) or not children:
            raise StrategyFormatError(f"'{key}'는 비어있지 않은 리스트여야 함")
        parsed = tuple(parse_expression(child) for child in children)
        return AllOf(parsed) if key == "all" else AnyOf(parsed)

    if key in ("gt", "lt"):
        left, right = _parse_pair(data, key)
        return Compare(CompareOp(key), left, right)

    if key in ("cross_over", "cross_under"):
        left, right = _parse_pair(data, key)
        return Cross(CrossDirection(key), left, right)

    if key in ("risk_stop", "risk_take"):
        if data[key] is not True:
            raise StrategyFormatError(f"'{key}' 값은 true여야 함")
        return RiskFlag(RiskKind(key))

    raise StrategyFormatError(f"알 수 없는 조건식: '{key}'")


def referenced_indicators(expr: BoolExpr) -> set[str]:
    """조건식이 참조하는 지표 id 집합."""
    if isinstance(expr, (AllOf, AnyOf)):
        refs: set[str] = set()
        for child in expr.children:
            refs |= referenced_indicators(child)
        return refs
    if isinstance(expr, (Compare, Cross)):
        return {o for o in (expr.left, expr.right) if isinstance(o, str)}
    return set()

