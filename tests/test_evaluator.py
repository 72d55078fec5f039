from __future__ import annotations

import math
from datetime import date

import pytest

from strategy_sim.backtest.evaluator import EvaluationContext, evaluate, resolve_operand
from strategy_sim.backtest.series import build_symbol_series
from strategy_sim.core.expression import parse_expression
from strategy_sim.core.strategy import IndicatorDefinition
from strategy_sim.data.price_generator import generate_candles

from conftest import make_series


def _ctx(series, index, risk_stop=False, risk_take=False):
    return EvaluationContext(symbol=series.symbol, index=index, series=series,
                             risk_stop=risk_stop, risk_take=risk_take)


@pytest.fixture
def crossing():
    # @fast crosses above @slow on day 2 and back below on day 4
    return make_series(
        "SPY",
        [100, 101, 102, 103, 104],
        indicators={"@fast": [1, 2, 4, 4, 2], "@slow": [3, 3, 3, 3, 3], "@gap": [math.nan, 1, 2, 3, 4]},
    )


def test_resolve_operand_numbers_and_ids(crossing):
    ctx = _ctx(crossing, 2)
    assert resolve_operand(5.0, ctx) == 5.0
    assert resolve_operand("@fast", ctx) == 4.0
    assert math.isnan(resolve_operand("@unknown", ctx))


def test_compare_gt_lt(crossing):
    ctx = _ctx(crossing, 2)
    assert evaluate(parse_expression({"gt": ["@fast", "@slow"]}), ctx)
    assert not evaluate(parse_expression({"lt": ["@fast", "@slow"]}), ctx)
    assert evaluate(parse_expression({"gt": ["@px", 101.5]}), ctx)


def test_compare_with_non_finite_operand_is_false(crossing):
    ctx = _ctx(crossing, 0)
    assert not evaluate(parse_expression({"gt": ["@gap", -1]}), ctx)
    assert not evaluate(parse_expression({"lt": ["@gap", 1e9]}), ctx)


def test_all_and_any(crossing):
    ctx = _ctx(crossing, 2)
    true_expr = {"gt": ["@fast", 0]}
    false_expr = {"lt": ["@fast", 0]}
    assert evaluate(parse_expression({"all": [true_expr, true_expr]}), ctx)
    assert not evaluate(parse_expression({"all": [true_expr, false_expr]}), ctx)
    assert evaluate(parse_expression({"any": [false_expr, true_expr]}), ctx)
    assert not evaluate(parse_expression({"any": [false_expr, false_expr]}), ctx)


def test_cross_over_fires_only_on_the_crossing_day(crossing):
    expr = parse_expression({"cross_over": ["@fast", "@slow"]})
    fired = [evaluate(expr, _ctx(crossing, i)) for i in range(5)]
    assert fired == [False, False, True, False, False]


def test_cross_under_fires_only_on_the_crossing_day(crossing):
    expr = parse_expression({"cross_under": ["@fast", "@slow"]})
    fired = [evaluate(expr, _ctx(crossing, i)) for i in range(5)]
    assert fired == [False, False, False, False, True]


def test_cross_over_mirrors_cross_under_with_swapped_operands(crossing):
    over = parse_expression({"cross_over": ["@fast", "@slow"]})
    under = parse_expression({"cross_under": ["@slow", "@fast"]})
    for i in range(5):
        ctx = _ctx(crossing, i)
        assert evaluate(over, ctx) == evaluate(under, ctx)


def test_cross_at_first_index_compares_against_itself(crossing):
    ctx = _ctx(crossing, 0)
    assert ctx.previous().index == 0
    assert not evaluate(parse_expression({"cross_over": ["@fast", "@slow"]}), ctx)


def test_cross_with_non_finite_previous_value_is_false(crossing):
    ctx = _ctx(crossing, 1)
    assert not evaluate(parse_expression({"cross_over": ["@gap", 0.5]}), ctx)
    assert evaluate(parse_expression({"cross_over": ["@gap", 1.5]}), _ctx(crossing, 2))


def test_risk_flags_come_from_context(crossing):
    stop = parse_expression({"risk_stop": True})
    take = parse_expression({"risk_take": True})
    assert evaluate(stop, _ctx(crossing, 1, risk_stop=True))
    assert not evaluate(take, _ctx(crossing, 1, risk_stop=True))
    assert evaluate(take, _ctx(crossing, 1, risk_take=True))


def test_unknown_expression_type_raises(crossing):
    with pytest.raises(TypeError):
        evaluate(object(), _ctx(crossing, 0))


def test_cross_over_and_cross_under_never_fire_together():
    series = build_symbol_series(
        "SPY",
        generate_candles("SPY", date(2021, 1, 4), date(2022, 12, 30)),
        [IndicatorDefinition(id="@fast", fn="SMA", args={"period": 3}),
         IndicatorDefinition(id="@slow", fn="SMA", args={"period": 8})],
    )
    over = parse_expression({"cross_over": ["@fast", "@slow"]})
    under = parse_expression({"cross_under": ["@fast", "@slow"]})
    fired = 0
    for i in range(len(series)):
        ctx = _ctx(series, i)
        a, b = evaluate(over, ctx), evaluate(under, ctx)
        assert not (a and b)
        fired += a + b
    assert fired > 0
