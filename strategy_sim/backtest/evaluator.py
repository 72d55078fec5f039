"""
조건식 평가 모듈.

[ 역할 ]
    core/expression.py의 BoolExpr 트리를 특정 종목/거래일 기준으로 평가.

[ 평가 규칙 ]
    - all/any: 모든 자식을 평가한 뒤 AND/OR (평가에 부작용이 없으므로
      단락 평가 여부는 결과에 영향 없음)
    - gt/lt: 두 피연산자가 모두 유한할 때만 비교, 아니면 False
    - cross_over:  전일 left <= right 이고 당일 left > right
      cross_under: 전일 left >= right 이고 당일 left < right
      전일 인덱스는 max(0, index - 1). 네 값 중 하나라도 유한하지 않으면 False
    - risk_stop/risk_take: 시뮬레이터가 주입한 종목별 플래그

[ 호출하는 곳 ]
    - backtest/simulator.py::PortfolioSimulator (청산/진입 규칙 평가)
"""

import math
from dataclasses import dataclass, replace

from strategy_sim.backtest.series import SymbolSeries
from strategy_sim.core.expression import (
    AllOf,
    AnyOf,
    BoolExpr,
    Compare,
    CompareOp,
    Cross,
    CrossDirection,
    Operand,
    RiskFlag,
    RiskKind,
)


@dataclass(frozen=True)
class EvaluationContext:
    """평가 시점 정보. 지표 id는 이 종목의 시리즈에서 조회된다."""
    symbol: str
    index: int
    series: SymbolSeries
    risk_stop: bool = False
    risk_take: bool = False

    def previous(self) -> "EvaluationContext":
        return replace(self, index=max(0, self.index - 1))


def resolve_operand(operand: Operand, ctx: EvaluationContext) -> float:
    """피연산자 → 값. 숫자는 그대로, 지표 id는 당일 지표 값 (없으면 NaN)."""
    if isinstance(operand, str):
        return ctx.series.indicator_at(operand, ctx.index)
    return float(operand)


def _all_finite(*values: float) -> bool:
    return all(math.isfinite(v) for v in values)


def _evaluate_compare(expr: Compare, ctx: EvaluationContext) -> bool:
    left = resolve_operand(expr.left, ctx)
    right = resolve_operand(expr.right, ctx)
    if not _all_finite(left, right):
        return False
    if expr.op is CompareOp.GT:
        return left > right
    return left < right


def _evaluate_cross(expr: Cross, ctx: EvaluationContext) -> bool:
    prev_ctx = ctx.previous()
    left = resolve_operand(expr.left, ctx)
    right = resolve_operand(expr.right, ctx)
    prev_left = resolve_operand(expr.left, prev_ctx)
    prev_right = resolve_operand(expr.right, prev_ctx)
    if not _all_finite(left, right, prev_left, prev_right):
        return False
    if expr.direction is CrossDirection.OVER:
        return prev_left <= prev_right and left > right
    return prev_left >= prev_right and left < right


def evaluate(expr: BoolExpr, ctx: EvaluationContext) -> bool:
    """조건식 평가.

    Raises:
        TypeError: 닫힌 변형 집합 밖의 객체
    """
    if isinstance(expr, AllOf):
        results = [evaluate(child, ctx) for child in expr.children]
        return all(results)
    if isinstance(expr, AnyOf):
        results = [evaluate(child, ctx) for child in expr.children]
        return any(results)
    if isinstance(expr, Compare):
        return _evaluate_compare(expr, ctx)
    if isinstance(expr, Cross):
        return _evaluate_cross(expr, ctx)
    if isinstance(expr, RiskFlag):
        return ctx.risk_stop if expr.kind is RiskKind.STOP else ctx.risk_take
    raise TypeError(f"지원하지 않는 조건식 타입: {type(expr).__name__}")
