"""
전략 문서 정의.

[ 역할 ]
    백테스트 입력인 전략 문서(Strategy)를 불변 객체로 표현.
    유니버스, 기간, 자본, 리밸런싱 주기, 리스크 한도, 지표 정의,
    진입/청산 규칙을 담는다.

[ 문서 구조 (YAML/JSON) ]
    meta:        {name, version}
    universe:    [SPY, QQQ, ...]
    window:      {start: "2015-01-02", end: "2024-01-02"}
    capital:     {starting_cash, commission, slippage_pct}
    schedule:    {rebalance: none|weekly|monthly|quarterly, time_anchor: close}
    risk:        {max_allocation_pct, max_positions, stop_loss_pct?, take_profit_pct?}
    indicators:  [{id: "@sma_fast", fn: SMA, args: {period: 20}, source: close}]
    entries:     [{when: <조건식>, then: {buy?, close?, rebalance?}}]
    exits:       [{when: <조건식>, then: {close}}]

[ 호출하는 곳 ]
    - run_backtest.py에서 load_strategy()로 로드
    - backtest/engine.py, backtest/simulator.py가 읽기 전용으로 사용
"""

import json
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import yaml

from strategy_sim.core.exceptions import StrategyFormatError
from strategy_sim.core.expression import BoolExpr, parse_expression

WILDCARD = "*"


class RebalanceCadence(Enum):
    """정기 리밸런싱 주기."""
    NONE = "none"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class SizingMode(Enum):
    """매수 금액 결정 방식."""
    EQUAL_WEIGHT = "equal_weight"        # 종목당 배분 한도까지 채움
    FIXED_PCT_CASH = "fixed_pct_cash"    # 현재 현금의 일정 비율
    ALL_IN_SINGLE = "all_in_single"      # 현재 현금 전부


@dataclass(frozen=True)
class StrategyMeta:
    name: str = "unnamed"
    version: int = 1


@dataclass(frozen=True)
class Window:
    start: date
    end: date


@dataclass(frozen=True)
class Capital:
    starting_cash: float
    commission: float = 0.0      # 거래당 고정 수수료
    slippage_pct: float = 0.0    # 체결가 불리 비율


@dataclass(frozen=True)
class Schedule:
    rebalance: RebalanceCadence = RebalanceCadence.NONE
    time_anchor: str = "close"


@dataclass(frozen=True)
class RiskLimits:
    max_allocation_pct: float = 0.0    # 0이면 max_positions 균등 분할
    max_positions: int = 1
    stop_loss_pct: Optional[float] = None
    take_profit_pct: Optional[float] = None


@dataclass(frozen=True)
class IndicatorDefinition:
    """지표 정의. args는 {"period": 20} 형태."""
    id: str
    fn: str
    args: dict[str, float] = field(default_factory=dict)
    source: str = "close"


@dataclass(frozen=True)
class BuyAction:
    ticker: str
    sizing: SizingMode
    pct: Optional[float] = None    # fixed_pct_cash 전용 (기본 0.1)

    def resolve_ticker(self, symbol: str) -> str:
        return symbol if self.ticker == WILDCARD else self.ticker


@dataclass(frozen=True)
class CloseAction:
    ticker: str

    def resolve_ticker(self, symbol: str) -> str:
        return symbol if self.ticker == WILDCARD else self.ticker

    def matches(self, symbol: str) -> bool:
        return self.ticker == WILDCARD or self.ticker == symbol


@dataclass(frozen=True)
class RebalanceAction:
    mode: str = "equal_weight"


@dataclass(frozen=True)
class EntryRule:
    when: BoolExpr
    buy: Optional[BuyAction] = None
    close: Optional[CloseAction] = None
    rebalance: Optional[RebalanceAction] = None


@dataclass(frozen=True)
class ExitRule:
    when: BoolExpr
    close: CloseAction


@dataclass(frozen=True)
class Strategy:
    """백테스트 입력 전략 문서. from_dict() 또는 load_strategy()로 생성."""
    meta: StrategyMeta
    universe: tuple[str, ...]
    window: Window
    capital: Capital
    schedule: Schedule
    risk: RiskLimits
    indicators: tuple[IndicatorDefinition, ...] = ()
    entries: tuple[EntryRule, ...] = ()
    exits: tuple[ExitRule, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Strategy":
        """문서 dict에서 Strategy 생성.

        Raises:
            StrategyFormatError: 필수 항목 누락 또는 타입 오류
        """
        if not isinstance(data, dict):
            raise StrategyFormatError("전략 문서는 dict여야 함")
        try:
            return cls._from_dict(data)
        except StrategyFormatError:
            raise
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise StrategyFormatError(f"전략 문서 파싱 실패: {e!r}") from e

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Strategy":
        meta_data = data.get("meta") or {}
        meta = StrategyMeta(
            name=str(meta_data.get("name", "unnamed")),
            version=int(meta_data.get("version", 1)),
        )

        universe_data = data["universe"]
        if not isinstance(universe_data, (list, tuple)):
            raise StrategyFormatError(f"universe는 종목 리스트여야 함: {universe_data!r}")
        universe = tuple(str(s) for s in universe_data)
        if not universe:
            raise StrategyFormatError("universe가 비어있음")

        window_data = data["window"]
        window = Window(
            start=_parse_date(window_data["start"]),
            end=_parse_date(window_data["end"]),
        )

        capital_data = data["capital"]
        capital = Capital(
            starting_cash=float(capital_data["starting_cash"]),
            commission=float(capital_data.get("commission", 0.0)),
            slippage_pct=float(capital_data.get("slippage_pct", 0.0)),
        )

        schedule_data = data.get("schedule") or {}
        schedule = Schedule(
            rebalance=RebalanceCadence(schedule_data.get("rebalance", "none")),
            time_anchor=schedule_data.get("time_anchor", "close"),
        )

        risk_data = data.get("risk") or {}
        risk = RiskLimits(
            max_allocation_pct=float(risk_data.get("max_allocation_pct", 0.0)),
            max_positions=int(risk_data.get("max_positions", 1)),
            stop_loss_pct=_optional_float(risk_data.get("stop_loss_pct")),
            take_profit_pct=_optional_float(risk_data.get("take_profit_pct")),
        )

        indicators = tuple(
            IndicatorDefinition(
                id=str(ind["id"]),
                fn=str(ind["fn"]).upper(),
                args={k: float(v) for k, v in (ind.get("args") or {}).items()},
                source=ind.get("source") or "close",
            )
            for ind in data.get("indicators") or []
        )

        entries = tuple(_parse_entry(rule) for rule in data.get("entries") or [])
        exits = tuple(_parse_exit(rule) for rule in data.get("exits") or [])

        return cls(
            meta=meta,
            universe=universe,
            window=window,
            capital=capital,
            schedule=schedule,
            risk=risk,
            indicators=indicators,
            entries=entries,
            exits=exits,
        )


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _parse_buy(data: dict[str, Any]) -> BuyAction:
    sizing = data["sizing"]
    return BuyAction(
        ticker=str(data["ticker"]),
        sizing=SizingMode(sizing["type"]),
        pct=_optional_float(sizing.get("pct")),
    )


def _parse_rebalance(data: Any) -> Optional[RebalanceAction]:
    # "rebalance: true" 처럼 모드 없이 켜는 경우도 허용
    if not data:
        return None
    mode = data.get("mode", "equal_weight") if isinstance(data, dict) else "equal_weight"
    return RebalanceAction(mode)


def _parse_entry(data: dict[str, Any]) -> EntryRule:
    then = data.get("then") or {}
    rule = EntryRule(
        when=parse_expression(data["when"]),
        buy=_parse_buy(then["buy"]) if then.get("buy") else None,
        close=CloseAction(str(then["close"]["ticker"])) if then.get("close") else None,
        rebalance=_parse_rebalance(then.get("rebalance")),
    )
    if rule.buy is None and rule.close is None and rule.rebalance is None:
        raise StrategyFormatError("진입 규칙에는 buy/close/rebalance 중 하나 이상 필요")
    return rule


def _parse_exit(data: dict[str, Any]) -> ExitRule:
    then = data.get("then") or {}
    if not then.get("close"):
        raise StrategyFormatError("청산 규칙에는 close가 필요")
    return ExitRule(
        when=parse_expression(data["when"]),
        close=CloseAction(str(then["close"]["ticker"])),
    )


def load_strategy(path: str | Path) -> Strategy:
    """YAML 또는 JSON 파일에서 전략 문서 로드."""
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)
    return Strategy.from_dict(data)
