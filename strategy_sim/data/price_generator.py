"""
합성 일봉 생성 모듈.

[ 역할 ]
    외부 시세 없이 (종목, 시작일, 종료일)만으로 결정적인 일봉 시퀀스를 생성.
    같은 입력은 항상 바이트 단위로 동일한 결과를 만든다.

[ 생성 방식 ]
    1. "symbol:start:end" 문자열 → 32비트 해시 (hash_seed)
    2. 해시를 시드로 하는 의사난수 스트림 (Mulberry32, [0, 1) 실수)
    3. 평일(토/일 제외)마다 로그수익률 랜덤워크
         shock = [-1, 1] 대칭 난수
         close = max(1.0, open * exp(DRIFT + VOLATILITY * shock))
       고가/저가는 |shock|에 비례하여 확장, 거래량도 |shock|에 비례

[ 호출하는 곳 ]
    - backtest/engine.py에서 MarketDataManager(SyntheticDataProvider())로 사용
    - scripts/verify_data.py
"""

import math
from datetime import date

import pandas as pd

from strategy_sim.core.data_provider import Candle, DataProvider

DRIFT = 0.0004
VOLATILITY = 0.02
PRICE_FLOOR = 1.0
RANGE_FACTOR = 0.3          # 고가/저가 확장 비율 (|shock| 배수)
BASE_VOLUME = 1_000_000

_MASK32 = 0xFFFFFFFF


def _imul(a: int, b: int) -> int:
    """32비트 정수 곱 (하위 32비트만 유지)."""
    return (a * b) & _MASK32


def hash_seed(text: str) -> int:
    """문자열 → 부호 없는 32비트 해시."""
    h = 1779033703
    for ch in text:
        h = _imul(h ^ ord(ch), 3432918353)
        h = ((h << 13) | (h >> 19)) & _MASK32
    return h


class Mulberry32:
    """32비트 상태 의사난수 생성기. next_float()는 [0, 1) 실수 반환."""

    def __init__(self, seed: int):
        self._state = seed & _MASK32

    def next_float(self) -> float:
        self._state = (self._state + 0x6D2B79F5) & _MASK32
        s = self._state
        t = _imul(s ^ (s >> 15), 1 | s)
        t = ((t + _imul(t ^ (t >> 7), 61 | t)) & _MASK32) ^ t
        return ((t ^ (t >> 14)) & _MASK32) / 4294967296


def trading_days(start_date: date, end_date: date) -> list[date]:
    """[start_date, end_date] 구간의 평일 목록 (공휴일은 고려하지 않음)."""
    if end_date < start_date:
        return []
    return [d.date() for d in pd.bdate_range(start=start_date, end=end_date)]


def generate_candles(symbol: str, start_date: date, end_date: date) -> list[Candle]:
    """종목별 합성 일봉 생성.

    Args:
        symbol: 종목 코드
        start_date: 시작일 (포함)
        end_date: 종료일 (포함)

    Returns:
        평일마다 하나씩, 날짜 오름차순 Candle 리스트
    """
    rand = Mulberry32(hash_seed(f"{symbol}:{start_date.isoformat()}:{end_date.isoformat()}"))
    price = 50 + rand.next_float() * 50

    candles: list[Candle] = []
    for day in trading_days(start_date, end_date):
        shock = (rand.next_float() - 0.5) * 2
        magnitude = abs(shock)
        open_price = price
        close = max(PRICE_FLOOR, price * math.exp(DRIFT + VOLATILITY * shock))
        candles.append(Candle(
            date=day,
            open=open_price,
            high=max(open_price, close) * (1 + magnitude * RANGE_FACTOR),
            low=min(open_price, close) * (1 - magnitude * RANGE_FACTOR),
            close=close,
            volume=BASE_VOLUME * (1 + magnitude * 10),
        ))
        price = close

    return candles


class SyntheticDataProvider(DataProvider):
    """generate_candles() 기반 데이터 제공자. 상태를 갖지 않는다."""

    def get_candles(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
    ) -> list[Candle]:
        return generate_candles(symbol, start_date, end_date)
