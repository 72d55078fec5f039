"""
시장 데이터 관리 모듈.

[ 역할 ]
    DataProvider를 감싸서 캐싱 + 편의 메서드 제공.
    동일 데이터 반복 조회 시 캐시에서 즉시 반환.
    캐시는 인스턴스 단위이며 실행 간에 공유하지 않는다.

[ 의존성 ]
    - core/data_provider.py::DataProvider (데이터 소스 추상화)

[ 호출하는 곳 ]
    - backtest/engine.py::BacktestEngine._load_candles()
"""

from datetime import date

from strategy_sim.core.data_provider import Candle, DataProvider


class MarketDataManager:
    """DataProvider 위에 캐싱 레이어를 추가한 매니저.

    사용 예:
        manager = MarketDataManager(SyntheticDataProvider())
        candles = manager.get_candles("SPY", start, end)
    """

    def __init__(self, data_provider: DataProvider):
        self.provider = data_provider
        self._cache: dict[str, list[Candle]] = {}  # "symbol:start:end" → candles

    def get_candles(
        self,
        symbol: str,
        start_date: date,
        end_date: date,
        use_cache: bool = True,
    ) -> list[Candle]:
        """일봉 조회 (캐싱 지원)."""
        cache_key = f"{symbol}:{start_date}:{end_date}"

        if use_cache and cache_key in self._cache:
            return self._cache[cache_key]

        candles = self.provider.get_candles(symbol, start_date, end_date)
        if use_cache:
            self._cache[cache_key] = candles
        return candles

    def get_universe(
        self,
        symbols: list[str] | tuple[str, ...],
        start_date: date,
        end_date: date,
    ) -> dict[str, list[Candle]]:
        """여러 종목 일봉을 {symbol: candles}로 조회."""
        return {symbol: self.get_candles(symbol, start_date, end_date) for symbol in symbols}

    def clear_cache(self) -> None:
        """캐시 초기화."""
        self._cache.clear()
