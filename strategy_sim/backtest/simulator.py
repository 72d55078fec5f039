"""
포트폴리오 시뮬레이터 모듈.

[ 역할 ]
    한 구간 [start_index, end_index]를 하루씩 진행하며 규칙을 현금/포지션
    변화로 바꾼다. 첫 번째 유니버스 종목의 일봉 날짜가 기준 달력이다.

[ 하루 처리 순서 ] (_simulate_day)
    1. 리스크 플래그: 보유 종목의 종가를 진입가 대비 손절/익절 기준과 비교
    2. 청산 대상 집계: 리스크 플래그 종목 + 청산 규칙이 발동한 종목
                       + 전일 진입 규칙의 close 액션으로 예약된 종목
    3. 청산 실행: 당일 종가로 전량 매도 (슬리피지/수수료 적용)
    4. 진입 규칙 평가: 매수 대기열, close 예약(다음 날 청산), 리밸런싱 플래그
    5. 정기 리밸런싱 판단 (weekly/monthly/quarterly)
    6. 매수 실행: 종목명 사전순 (자본이 부족할 때의 결정적 우선순위)
    7. 리밸런싱 실행: 보유 종목 전체를 같은 목표 금액으로 조정
    8. 평가: 총 자산 기록, 보유일수 집계

[ 독립성 ]
    run() 호출마다 새 Portfolio를 만든다. 학습/검증 구간은 서로 다른 run()
    호출이며 공유하는 것은 미리 계산된 일봉/지표 시리즈뿐이다.

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine.run_backtest()
"""

import logging
import math
from dataclasses import dataclass, field

from strategy_sim.backtest.evaluator import EvaluationContext, evaluate
from strategy_sim.backtest.metrics import BacktestMetrics, calculate_metrics
from strategy_sim.backtest.result import EquityCurve
from strategy_sim.backtest.series import SymbolSeries
from strategy_sim.core.strategy import BuyAction, RebalanceCadence, SizingMode, Strategy
from strategy_sim.data.portfolio import AssetStats, Portfolio, Position, TradeRecord, is_tradable_price

logger = logging.getLogger("strategy_sim.backtest")

DEFAULT_FIXED_PCT = 0.1
WEEKLY_INTERVAL = 5

# 청산 사유
REASON_RISK_STOP = "risk_stop"
REASON_RISK_TAKE = "risk_take"
REASON_EXIT_RULE = "exit_rule"
REASON_ENTRY_CLOSE = "entry_close"
REASON_REBALANCE = "rebalance"


@dataclass
class SimulationOutput:
    """구간 시뮬레이션 결과."""
    equity: EquityCurve
    metrics: BacktestMetrics
    per_asset: dict[str, AssetStats] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    trades: list[TradeRecord] = field(default_factory=list)
    cash_values: list[float] = field(default_factory=list)       # 일별 장 마감 현금
    positions: dict[str, Position] = field(default_factory=dict)  # 구간 종료 시점 보유
    exposure_days: int = 0


class PortfolioSimulator:
    """일별 포트폴리오 상태 기계. run()으로 한 구간을 시뮬레이션."""

    def __init__(self, strategy: Strategy, series_map: dict[str, SymbolSeries]):
        self.strategy = strategy
        self.series_map = series_map
        self.calendar = series_map[strategy.universe[0]]

        # run() 호출마다 초기화되는 상태
        self.portfolio: Portfolio | None = None
        self.warnings: list[str] = []
        self._deferred_closings: set[str] = set()

    def run(self, start_index: int, end_index: int) -> SimulationOutput:
        """[start_index, end_index] 구간 시뮬레이션 (양 끝 포함)."""
        capital = self.strategy.capital
        self.portfolio = Portfolio(capital.starting_cash, capital.commission, capital.slippage_pct)
        self.warnings = []
        self._deferred_closings = set()

        equity = EquityCurve()
        cash_values: list[float] = []
        exposure_days = 0

        start_index = max(0, start_index)
        end_index = min(end_index, len(self.calendar) - 1)
        for idx in range(start_index, end_index + 1):
            value = self._simulate_day(idx)
            if self.portfolio.record_exposure():
                exposure_days += 1
            equity.append(self.calendar.candles[idx].date, value)
            cash_values.append(self.portfolio.cash)

        metrics = calculate_metrics(
            values=equity.values,
            trades=self.portfolio.trade_history,
            exposure_days=exposure_days,
            turnover=self.portfolio.turnover,
        )
        return SimulationOutput(
            equity=equity,
            metrics=metrics,
            per_asset=self.portfolio.asset_stats,
            warnings=self.warnings,
            trades=self.portfolio.trade_history,
            cash_values=cash_values,
            positions=self.portfolio.positions,
            exposure_days=exposure_days,
        )

    def _simulate_day(self, idx: int) -> float:
        """하루 시뮬레이션. 장 마감 총 자산 반환."""
        day = self.calendar.candles[idx].date
        prices = {symbol: self.series_map[symbol].close_at(idx) for symbol in self.strategy.universe}

        # 1. 리스크 플래그
        risk_stop, risk_take = self._risk_flags(prices)

        # 2. 청산 대상 집계 (먼저 들어간 사유가 우선)
        closings: dict[str, str] = {}
        for symbol in sorted(risk_stop):
            closings.setdefault(symbol, REASON_RISK_STOP)
        for symbol in sorted(risk_take):
            closings.setdefault(symbol, REASON_RISK_TAKE)
        for symbol in self.strategy.universe:
            ctx = self._context(symbol, idx, risk_stop, risk_take)
            for rule in self.strategy.exits:
                if evaluate(rule.when, ctx) and rule.close.matches(symbol):
                    closings.setdefault(symbol, REASON_EXIT_RULE)
        for symbol in sorted(self._deferred_closings):
            closings.setdefault(symbol, REASON_ENTRY_CLOSE)
        self._deferred_closings = set()

        # 3. 청산 실행
        for symbol in sorted(closings):
            if not self.portfolio.holds(symbol):
                continue
            trade = self.portfolio.close(symbol, prices.get(symbol, math.nan), day, closings[symbol])
            if trade is None:
                logger.debug(f"[{day}] 청산 건너뜀: {symbol} 가격 비정상")
            else:
                logger.debug(f"[{day}] 청산: {symbol} {trade.shares}주 @ {trade.price:,.2f} ({trade.reason}, 손익 {trade.pnl:,.2f})")

        # 4. 진입 규칙 평가
        pending_buys: list[tuple[str, BuyAction]] = []
        rebalance = False
        for symbol in self.strategy.universe:
            ctx = self._context(symbol, idx, risk_stop, risk_take)
            for rule in self.strategy.entries:
                if not evaluate(rule.when, ctx):
                    continue
                if rule.buy is not None:
                    pending_buys.append((rule.buy.resolve_ticker(symbol), rule.buy))
                if rule.close is not None:
                    self._deferred_closings.add(rule.close.resolve_ticker(symbol))
                if rule.rebalance is not None:
                    rebalance = True

        # 5. 정기 리밸런싱
        rebalance = rebalance or self._scheduled_rebalance(idx)

        # 6. 매수 실행 (종목명 사전순, 같은 종목은 규칙 순서 유지)
        pending_buys.sort(key=lambda item: item[0])
        for symbol, action in pending_buys:
            self._execute_buy(symbol, action, prices, day)

        # 7. 리밸런싱 실행
        if rebalance and self.portfolio.position_count > 0:
            self._rebalance(prices, day)

        # 8. 평가
        return self.portfolio.equity(prices)

    def _context(self, symbol: str, idx: int, risk_stop: set[str], risk_take: set[str]) -> EvaluationContext:
        return EvaluationContext(
            symbol=symbol,
            index=idx,
            series=self.series_map[symbol],
            risk_stop=symbol in risk_stop,
            risk_take=symbol in risk_take,
        )

    def _risk_flags(self, prices: dict[str, float]) -> tuple[set[str], set[str]]:
        """보유 종목별 손절/익절 플래그."""
        risk = self.strategy.risk
        stop: set[str] = set()
        take: set[str] = set()
        for symbol, position in self.portfolio.positions.items():
            price = prices.get(symbol, math.nan)
            if not math.isfinite(price):
                continue
            if risk.stop_loss_pct is not None and price <= position.entry_price * (1 - risk.stop_loss_pct):
                stop.add(symbol)
            if risk.take_profit_pct is not None and price >= position.entry_price * (1 + risk.take_profit_pct):
                take.add(symbol)
        return stop, take

    def _scheduled_rebalance(self, idx: int) -> bool:
        """정기 리밸런싱 여부. 인덱스는 기준 달력 전체 기준."""
        cadence = self.strategy.schedule.rebalance
        if cadence is RebalanceCadence.NONE:
            return False
        if cadence is RebalanceCadence.WEEKLY:
            return idx % WEEKLY_INTERVAL == 0
        if idx == 0:
            return False

        current = self.calendar.candles[idx].date
        prev = self.calendar.candles[idx - 1].date
        if cadence is RebalanceCadence.MONTHLY:
            return (current.year, current.month) != (prev.year, prev.month)
        return (current.year, (current.month - 1) // 3) != (prev.year, (prev.month - 1) // 3)

    def _allocation_target(self, equity: float, slots: int) -> float:
        """종목당 배분 한도. max_allocation_pct가 0이면 slots 균등 분할."""
        pct = self.strategy.risk.max_allocation_pct
        if pct > 0:
            return equity * pct
        return equity / max(1, slots)

    def _budget(self, action: BuyAction, allocation_cap: float, current_value: float) -> float:
        """사이징 방식별 매수 예산. 방식마다 독립적으로 계산."""
        cash = self.portfolio.cash
        if action.sizing is SizingMode.EQUAL_WEIGHT:
            return max(0.0, allocation_cap - current_value)
        if action.sizing is SizingMode.FIXED_PCT_CASH:
            pct = action.pct if action.pct is not None else DEFAULT_FIXED_PCT
            return cash * pct
        if action.sizing is SizingMode.ALL_IN_SINGLE:
            return cash
        raise ValueError(f"지원하지 않는 사이징 방식: {action.sizing}")

    def _execute_buy(self, symbol: str, action: BuyAction, prices: dict[str, float], day) -> None:
        """대기 매수 하나 실행. 조건 불충족 시 건너뜀."""
        if symbol not in self.strategy.universe:
            logger.debug(f"[{day}] 매수 건너뜀: {symbol} 유니버스 밖")
            return

        max_positions = self.strategy.risk.max_positions
        if self.portfolio.position_count >= max_positions and not self.portfolio.holds(symbol):
            self.warnings.append(f"Max positions reached, skipped {symbol} on {day.isoformat()}")
            return

        price = prices.get(symbol, math.nan)
        if not is_tradable_price(price):
            return

        equity = self.portfolio.equity(prices)
        allocation_cap = self._allocation_target(equity, max_positions)
        existing = self.portfolio.get_position(symbol)
        current_value = existing.market_value(price) if existing else 0.0

        budget = self._budget(action, allocation_cap, current_value)
        shares = self.portfolio.buy(symbol, budget, price, day)
        if shares > 0:
            logger.debug(f"[{day}] 매수: {symbol} {shares}주 @ {price:,.2f} ({action.sizing.value})")

    def _rebalance(self, prices: dict[str, float], day) -> None:
        """보유 종목 전체를 같은 목표 금액으로 조정."""
        equity = self.portfolio.equity(prices)
        target_value = self._allocation_target(equity, self.portfolio.position_count)
        slippage = self.strategy.capital.slippage_pct

        for symbol in self.portfolio.get_holding_symbols():
            position = self.portfolio.get_position(symbol)
            price = prices.get(symbol, math.nan)
            if position is None or not is_tradable_price(price):
                continue
            desired = math.floor(target_value / (price * (1 + slippage)))
            delta = desired - position.shares
            if delta > 0:
                if self.portfolio.buy_shares(symbol, delta, price, day):
                    logger.debug(f"[{day}] 리밸런싱 매수: {symbol} +{delta}주")
            elif delta < 0:
                self.portfolio.sell(symbol, -delta, price, day, REASON_REBALANCE)
                logger.debug(f"[{day}] 리밸런싱 매도: {symbol} {delta}주")
