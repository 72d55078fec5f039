"""
일봉 데이터 제공 추상 클래스 정의.

[ 역할 ]
    종목별 일봉(Candle) 시퀀스를 제공하는 인터페이스.
    데이터 소스에 독립적으로 지표 계산/시뮬레이션에 데이터 공급.

[ 구현체 ]
    - data/price_generator.py::SyntheticDataProvider  (시드 기반 합성 데이터)

[ 호출하는 곳 ]
    - data/market_data.py::MarketDataManager가 이 인터페이스를 통해 데이터 조회
    - scripts/verify_data.py에서 get_ohlcv()로 DataFrame 조회
"""

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import date

import pandas as pd

OHLCV_COLUMNS = ["date", "open", "high", "low", "close", "volume"]


@dataclass(frozen=True)
class Candle:
    """단일 거래일 일봉. 생성 이후 변경 불가."""
    date: date
    open: float      # 시가
    high: float      # 고가
    low: float       # 저가
    close: float     # 종가
    volume: float    # 거래량


def candles_to_frame(candles: list[Candle]) -> pd.DataFrame:
    """Candle 리스트를 [date, open, high, low, close, volume] DataFrame으로 변환."""
    if not candles:
        return pd.DataFrame(columns=OHLCV_COLUMNS)
    return pd.DataFrame([asdict(c) for c in candles], columns=OHLCV_COLUMNS)


class DataProvider(ABC):
    """일봉 데이터 제공 추상 클래스."""

    @abstractmethod
    def get_candles(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
    ) -> list[Candle]:
        """일봉 시퀀스 조회.

        Args:
            symbol: 종목 코드
            start_date: 시작일 (포함)
            end_date: 종료일 (포함)

        Returns:
            날짜 오름차순 Candle 리스트
        """
        ...

    def get_ohlcv(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
    ) -> pd.DataFrame:
        """OHLCV DataFrame 조회."""
        return candles_to_frame(self.get_candles(symbol, start_date, end_date))
