"""
백테스트 성과 지표 계산 모듈.

[ 역할 ]
    시뮬레이션 결과(자산곡선 + 청산 거래기록)를 받아 성과 지표를 계산.
    calculate_metrics() 함수가 핵심.

[ 계산하는 지표 ]
    자산곡선 기반 (equity_metrics)
    - CAGR: (최종/시작)^(252/일수) - 1
    - 일간 수익률 표본 표준편차 (n-1)
    - 최대 낙폭: (값 - 누적고점) / 누적고점 의 최솟값 (음수 또는 0)
    - 칼마 비율: CAGR / |최대 낙폭| (낙폭 0이면 0)
    거래기록 기반 (trade_metrics)
    - 적중률, 평균 수익, 평균 손실
    보유/회전
    - 노출도: 포지션이 하나 이상 있던 날의 비율
    - 회전율: 일평균 거래대금

[ 호출하는 곳 ]
    - backtest/simulator.py::PortfolioSimulator.run() 완료 시 호출
    - 자산곡선만 따로 넣어도 같은 값이 나와야 한다 (구간별 재계산 가능)
"""

from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np

from strategy_sim.data.portfolio import TradeRecord

TRADING_DAYS_PER_YEAR = 252


@dataclass
class BacktestMetrics:
    """백테스트 성과 지표. summary()로 포맷된 리포트 출력 가능."""
    cagr: float = 0.0            # 연환산 수익률 (비율)
    stdev: float = 0.0           # 일간 수익률 표준편차
    max_drawdown: float = 0.0    # 최대 낙폭 (음수 비율)
    calmar: float = 0.0          # CAGR / |MDD|
    hit_rate: float = 0.0        # 수익 거래 비율
    avg_win: float = 0.0         # 수익 거래 평균 손익
    avg_loss: float = 0.0        # 손실 거래 평균 손익 (음수)
    exposure: float = 0.0        # 보유일 비율
    turnover: float = 0.0        # 일평균 거래대금

    def to_dict(self) -> dict[str, Any]:
        """JSON 호환 딕셔너리 변환 (결과 문서 키 이름 사용)."""
        return {
            "cagr": self.cagr,
            "stdev": self.stdev,
            "maxDrawdown": self.max_drawdown,
            "calmar": self.calmar,
            "hitRate": self.hit_rate,
            "avgWin": self.avg_win,
            "avgLoss": self.avg_loss,
            "exposure": self.exposure,
            "turnover": self.turnover,
        }

    def summary(self, title: str = "백테스트 성과 리포트") -> str:
        """성과 요약 문자열."""
        lines = [
            "=" * 50,
            title,
            "=" * 50,
            f"CAGR:            {self.cagr * 100:>10.2f}%",
            f"일간 표준편차:    {self.stdev * 100:>10.2f}%",
            f"최대 낙폭(MDD):  {self.max_drawdown * 100:>10.2f}%",
            f"칼마 비율:       {self.calmar:>10.2f}",
            "-" * 50,
            f"적중률:          {self.hit_rate * 100:>10.2f}%",
            f"평균 수익:       {self.avg_win:>10,.2f}",
            f"평균 손실:       {self.avg_loss:>10,.2f}",
            f"노출도:          {self.exposure * 100:>10.2f}%",
            f"일평균 회전:     {self.turnover:>10,.2f}",
            "=" * 50,
        ]
        return "\n".join(lines)


@dataclass
class EquityStats:
    cagr: float = 0.0
    stdev: float = 0.0
    max_drawdown: float = 0.0
    calmar: float = 0.0


@dataclass
class TradeStats:
    hit_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0


def daily_returns(values: Sequence[float]) -> list[float]:
    """일간 단순 수익률. 전일 값이 0이면 0."""
    returns = []
    for i in range(1, len(values)):
        prev = values[i - 1]
        returns.append(0.0 if prev == 0 else values[i] / prev - 1)
    return returns


def equity_metrics(values: Sequence[float], trading_days: int = TRADING_DAYS_PER_YEAR) -> EquityStats:
    """자산곡선만으로 계산하는 지표."""
    stats = EquityStats()
    if len(values) == 0:
        return stats

    # ─── CAGR ────────────────────────────────────────────────────────────
    years = len(values) / trading_days
    start_value = values[0] if values[0] != 0 else 1.0
    end_value = values[-1]
    if years > 0:
        stats.cagr = (end_value / start_value) ** (1 / years) - 1

    # ─── 일간 수익률 표준편차 (표본) ────────────────────────────────────
    returns = daily_returns(values)
    if len(returns) >= 2:
        stats.stdev = float(np.std(np.array(returns), ddof=1))

    # ─── MDD ─────────────────────────────────────────────────────────────
    peak = values[0]
    max_dd = 0.0
    for value in values:
        if value > peak:
            peak = value
        dd = 0.0 if peak == 0 else (value - peak) / peak
        if dd < max_dd:
            max_dd = dd
    stats.max_drawdown = max_dd

    stats.calmar = stats.cagr / abs(max_dd) if max_dd != 0 else 0.0
    return stats


def trade_metrics(trades: Sequence[TradeRecord]) -> TradeStats:
    """청산 거래기록 기반 지표. 손익 0인 거래는 수익/손실 어느 쪽에도 들지 않는다."""
    stats = TradeStats()
    if not trades:
        return stats

    wins = [t.pnl for t in trades if t.pnl > 0]
    losses = [t.pnl for t in trades if t.pnl < 0]
    stats.hit_rate = len(wins) / len(trades)
    if wins:
        stats.avg_win = sum(wins) / len(wins)
    if losses:
        stats.avg_loss = sum(losses) / len(losses)
    return stats


def calculate_metrics(
    values: Sequence[float],
    trades: Sequence[TradeRecord],
    exposure_days: int = 0,
    turnover: float = 0.0,
) -> BacktestMetrics:
    """성과 지표 계산. simulator.py에서 구간 시뮬레이션 완료 후 호출됨.

    Args:
        values: 일별 총 자산 (현금 + 보유종목 평가)
        trades: 청산 거래기록
        exposure_days: 포지션을 보유한 날 수
        turnover: 구간 누적 거래대금
    """
    if len(values) == 0:
        return BacktestMetrics()

    equity = equity_metrics(values)
    trade = trade_metrics(trades)
    total_days = len(values)
    return BacktestMetrics(
        cagr=equity.cagr,
        stdev=equity.stdev,
        max_drawdown=equity.max_drawdown,
        calmar=equity.calmar,
        hit_rate=trade.hit_rate,
        avg_win=trade.avg_win,
        avg_loss=trade.avg_loss,
        exposure=exposure_days / total_days,
        turnover=turnover / total_days,
    )
