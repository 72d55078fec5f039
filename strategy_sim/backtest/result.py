"""
백테스트 결과 문서.

[ 구조 (to_dict) ]
    {
        "metrics":  {"train": {...}, "validate": {...}},
        "equity":   {"train": {"dates": [...], "values": [...]}, "validate": {...}},
        "perAsset": [{"symbol", "trades", "pnl", "exposure"}, ...],
        "warnings": ["...", ...]
    }
    날짜는 ISO 문자열, 나머지는 float/int/str 이므로 json.dumps()로 바로 직렬화 가능.

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine.run_backtest()가 생성
    - run_backtest.py에서 출력/저장
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any

import pandas as pd

from strategy_sim.backtest.metrics import BacktestMetrics


@dataclass
class EquityCurve:
    """일별 자산곡선. dates와 values는 같은 길이."""
    dates: list[date] = field(default_factory=list)
    values: list[float] = field(default_factory=list)

    def append(self, day: date, value: float) -> None:
        self.dates.append(day)
        self.values.append(value)

    def __len__(self) -> int:
        return len(self.values)

    def to_series(self) -> pd.Series:
        """날짜 인덱스 pandas Series."""
        return pd.Series(self.values, index=pd.to_datetime(self.dates), name="equity", dtype=float)

    def to_dict(self) -> dict[str, Any]:
        return {
            "dates": [d.isoformat() for d in self.dates],
            "values": list(self.values),
        }


@dataclass
class PerAssetStats:
    symbol: str
    trades: int = 0
    pnl: float = 0.0
    exposure: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "trades": self.trades,
            "pnl": self.pnl,
            "exposure": self.exposure,
        }


@dataclass
class BacktestResult:
    """학습/검증 구간 결과 묶음."""
    train_metrics: BacktestMetrics
    validate_metrics: BacktestMetrics
    train_equity: EquityCurve
    validate_equity: EquityCurve
    per_asset: list[PerAssetStats] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """JSON 호환 딕셔너리 변환."""
        return {
            "metrics": {
                "train": self.train_metrics.to_dict(),
                "validate": self.validate_metrics.to_dict(),
            },
            "equity": {
                "train": self.train_equity.to_dict(),
                "validate": self.validate_equity.to_dict(),
            },
            "perAsset": [p.to_dict() for p in self.per_asset],
            "warnings": list(self.warnings),
        }
