"""
포트폴리오 관리 모듈.

[ 역할 ]
    현금, 보유 종목(Position), 거래 기록(TradeRecord)을 통합 관리.
    시뮬레이터가 매수/매도 실행 시 이 클래스를 통해 상태를 갱신.
    한 번의 시뮬레이션 호출이 하나의 Portfolio를 독점 소유한다.

[ 체결 규칙 ]
    매수: 주당 비용 = 가격 * (1 + slippage_pct), 정수 주식만 매수,
          총비용 = 주식수 * 주당 비용 + 고정 수수료, 현금 부족 시 건너뜀
    매도: 순매도액 = 가격 * 주식수 * (1 - slippage_pct) - 고정 수수료
          (수수료는 순매도액을 넘지 않음 → 현금은 음수가 되지 않음)

[ 주요 클래스 ]
    Position    - 종목별 주식수/취득원가/평균단가/진입일
    TradeRecord - 청산된 로트의 실현 손익 기록 (불변)
    AssetStats  - 종목별 누적 손익/거래수/보유일수
    Portfolio   - 전체 포트폴리오 (현금 + 포지션들 + 거래내역)

[ 호출하는 곳 ]
    - backtest/simulator.py::PortfolioSimulator
"""

import math
from dataclasses import dataclass
from datetime import date
from typing import Optional

# 부동소수점 반올림으로 인한 1ulp 초과를 현금 부족으로 보지 않기 위한 허용치
_CASH_EPSILON = 1e-9


def is_tradable_price(price: float) -> bool:
    """체결 가능한 가격인지 (유한한 양수)."""
    return math.isfinite(price) and price > 0


@dataclass
class Position:
    """종목별 보유 포지션. 주식수가 0이 되면 Portfolio에서 제거됨."""
    symbol: str
    shares: int = 0
    cost_basis: float = 0.0     # 수수료/슬리피지 포함 누적 취득원가
    entry_price: float = 0.0    # cost_basis / shares (가중평균 단가)
    entry_date: Optional[date] = None

    def market_value(self, price: float) -> float:
        return self.shares * price if math.isfinite(price) else 0.0

    def update_on_buy(self, shares: int, cost: float) -> None:
        """매수 시 포지션 업데이트."""
        self.shares += shares
        self.cost_basis += cost
        self.entry_price = self.cost_basis / self.shares if self.shares > 0 else 0.0

    def update_on_sell(self, shares: int) -> float:
        """매도 시 포지션 업데이트. 매도분 취득원가 반환."""
        shares = min(shares, self.shares)
        if shares == self.shares:
            removed = self.cost_basis
        else:
            removed = self.entry_price * shares
        self.shares -= shares
        self.cost_basis = self.entry_price * self.shares
        return removed


@dataclass(frozen=True)
class TradeRecord:
    """청산 로트 기록. metrics.py에서 승률/평균 손익 계산에 사용됨."""
    symbol: str
    date: date
    pnl: float                # 실현 손익
    reason: str = ""          # risk_stop / risk_take / exit_rule / entry_close / rebalance
    shares: int = 0
    price: float = 0.0        # 세션 종가 (슬리피지 적용 전)


@dataclass
class AssetStats:
    """종목별 누적 통계."""
    pnl: float = 0.0
    trades: int = 0
    exposure_days: int = 0


class Portfolio:
    """포트폴리오 관리 클래스.

    PortfolioSimulator가 소유하며, 매수/매도 실행 결과를 반영.
    trade_history는 시뮬레이션 종료 후 metrics 계산에 사용됨.
    """

    def __init__(self, starting_cash: float, commission: float = 0.0, slippage_pct: float = 0.0):
        self.starting_cash = starting_cash
        self.commission = commission
        self.slippage_pct = slippage_pct

        self.cash = starting_cash                       # 가용 현금
        self.positions: dict[str, Position] = {}        # symbol → Position
        self.trade_history: list[TradeRecord] = []      # 청산 로트 기록
        self.asset_stats: dict[str, AssetStats] = {}    # symbol → 누적 통계
        self.turnover = 0.0                             # 누적 거래대금

    @property
    def position_count(self) -> int:
        return len(self.positions)

    def holds(self, symbol: str) -> bool:
        return symbol in self.positions

    def get_position(self, symbol: str) -> Optional[Position]:
        return self.positions.get(symbol)

    def get_holding_symbols(self) -> list[str]:
        """보유 종목 목록 (정렬)."""
        return sorted(self.positions)

    def stats_for(self, symbol: str) -> AssetStats:
        if symbol not in self.asset_stats:
            self.asset_stats[symbol] = AssetStats()
        return self.asset_stats[symbol]

    def holdings_value(self, prices: dict[str, float]) -> float:
        """보유 종목 평가금액 합계. 가격이 유한하지 않은 종목은 제외."""
        total = 0.0
        for symbol, position in self.positions.items():
            total += position.market_value(prices.get(symbol, math.nan))
        return total

    def equity(self, prices: dict[str, float]) -> float:
        """총 자산 (현금 + 보유 종목 평가금액)."""
        return self.cash + self.holdings_value(prices)

    def buy(self, symbol: str, budget: float, price: float, trade_date: date) -> int:
        """예산 한도 내 정수 주식 매수. 매수한 주식수 반환 (건너뛰면 0)."""
        if budget <= 0 or not is_tradable_price(price):
            return 0
        cost_per_share = price * (1 + self.slippage_pct)
        shares = math.floor(budget / cost_per_share)
        if shares <= 0:
            return 0
        return shares if self.buy_shares(symbol, shares, price, trade_date) else 0

    def buy_shares(self, symbol: str, shares: int, price: float, trade_date: date) -> bool:
        """지정 수량 매수. 수수료 포함 비용이 현금을 넘으면 False."""
        if shares <= 0 or not is_tradable_price(price):
            return False
        cost_per_share = price * (1 + self.slippage_pct)
        trade_cost = shares * cost_per_share + self.commission
        if trade_cost > self.cash + _CASH_EPSILON:
            return False

        self.cash = max(0.0, self.cash - trade_cost)
        position = self.positions.get(symbol)
        if position is None:
            position = Position(symbol=symbol, entry_date=trade_date)
            self.positions[symbol] = position
        position.update_on_buy(shares, trade_cost)
        self.turnover += trade_cost
        return True

    def sell(
        self,
        symbol: str,
        shares: int,
        price: float,
        trade_date: date,
        reason: str = "",
    ) -> Optional[TradeRecord]:
        """지정 수량 매도 후 실현 손익 기록. 보유가 없거나 가격이 비정상이면 None."""
        position = self.positions.get(symbol)
        if position is None or shares <= 0 or not is_tradable_price(price):
            return None

        shares = min(shares, position.shares)
        gross = price * shares
        net = gross * (1 - self.slippage_pct)
        commission = min(self.commission, net)
        proceeds = net - commission

        cost_removed = position.update_on_sell(shares)
        pnl = proceeds - cost_removed
        self.cash += proceeds
        self.turnover += abs(gross)
        if position.shares <= 0:
            del self.positions[symbol]

        record = TradeRecord(
            symbol=symbol,
            date=trade_date,
            pnl=pnl,
            reason=reason,
            shares=shares,
            price=price,
        )
        self.trade_history.append(record)
        stats = self.stats_for(symbol)
        stats.pnl += pnl
        stats.trades += 1
        return record

    def close(self, symbol: str, price: float, trade_date: date, reason: str = "") -> Optional[TradeRecord]:
        """전량 매도."""
        position = self.positions.get(symbol)
        if position is None:
            return None
        return self.sell(symbol, position.shares, price, trade_date, reason)

    def record_exposure(self) -> bool:
        """보유 종목별 보유일수 +1. 보유 종목이 하나라도 있으면 True."""
        for symbol in self.positions:
            self.stats_for(symbol).exposure_days += 1
        return bool(self.positions)
