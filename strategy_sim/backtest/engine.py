"""
백테스팅 엔진 모듈.

[ 역할 ]
    전략 문서 하나를 받아 BacktestResult 하나를 만드는 최상위 실행 흐름.
    실행마다 모든 상태(일봉, 지표, 포지션)를 새로 만들며 실행 간 공유하지 않는다.

[ 실행 흐름 ]
    run_backtest() 호출 시:
        1. 종목별 합성 일봉 생성 (MarketDataManager + SyntheticDataProvider)
        2. 종목별 지표 계산 (워밍업 부족 시 InsufficientHistoryError)
           → max_workers > 1이면 스레드풀에서 병렬 계산 (종목 간 의존성 없음)
        3. 기준 달력을 train_ratio로 분할
              학습 구간 [0, split - 1], 검증 구간 [split, n - 1]
        4. 구간별로 PortfolioSimulator.run() 독립 호출
        5. 종목별 통계 병합, 경고 이어붙이기 → BacktestResult

[ 의존성 ]
    - data/market_data.py::MarketDataManager
    - data/price_generator.py::SyntheticDataProvider
    - backtest/series.py::build_symbol_series()
    - backtest/simulator.py::PortfolioSimulator

[ 호출하는 곳 ]
    - run_backtest.py (진입점)에서 생성 및 실행
"""

import logging
from concurrent.futures import ThreadPoolExecutor

from strategy_sim.backtest.result import BacktestResult, PerAssetStats
from strategy_sim.backtest.series import SymbolSeries, build_symbol_series
from strategy_sim.backtest.simulator import PortfolioSimulator, SimulationOutput
from strategy_sim.core.data_provider import Candle, DataProvider
from strategy_sim.core.exceptions import ConfigurationError
from strategy_sim.core.strategy import Strategy
from strategy_sim.data.market_data import MarketDataManager
from strategy_sim.data.price_generator import SyntheticDataProvider

logger = logging.getLogger("strategy_sim.backtest")

DEFAULT_TRAIN_RATIO = 0.7


class BacktestEngine:
    """백테스팅 엔진. run_backtest()로 시뮬레이션 실행."""

    def __init__(
        self,
        train_ratio: float = DEFAULT_TRAIN_RATIO,
        max_workers: int = 1,
        data_provider: DataProvider | None = None,
    ):
        if not 0 < train_ratio < 1:
            raise ConfigurationError(f"train_ratio는 0과 1 사이여야 함: {train_ratio}")
        self.train_ratio = train_ratio
        self.max_workers = max(1, max_workers)
        self.data_provider = data_provider or SyntheticDataProvider()

    def run_backtest(self, strategy: Strategy) -> BacktestResult:
        """백테스트 실행.

        Args:
            strategy: 교차 검증을 통과한 전략 문서

        Returns:
            BacktestResult: 학습/검증 구간 성과 + 자산곡선 + 종목별 통계 + 경고

        Raises:
            ConfigurationError: 거래일 없음, 지표 워밍업 부족 등
        """
        candles = self._load_candles(strategy)
        series_map = self._build_series(strategy, candles)

        length = len(series_map[strategy.universe[0]])
        if length == 0:
            raise ConfigurationError(
                f"거래일이 없습니다: {strategy.window.start} ~ {strategy.window.end}"
            )
        split_index = int(length * self.train_ratio)
        logger.info(
            f"백테스트 시작: {strategy.meta.name} ({len(strategy.universe)}종목, {length}일, "
            f"학습 {split_index}일 / 검증 {length - split_index}일)"
        )

        simulator = PortfolioSimulator(strategy, series_map)
        train = simulator.run(0, max(split_index - 1, 0))
        validate = simulator.run(max(split_index, 0), length - 1)

        result = BacktestResult(
            train_metrics=train.metrics,
            validate_metrics=validate.metrics,
            train_equity=train.equity,
            validate_equity=validate.equity,
            per_asset=self._merge_per_asset(strategy, train, validate),
            warnings=[*train.warnings, *validate.warnings],
        )

        logger.info(
            f"백테스트 완료. 학습 CAGR: {train.metrics.cagr * 100:.2f}%, "
            f"검증 CAGR: {validate.metrics.cagr * 100:.2f}%, 경고 {len(result.warnings)}건"
        )
        return result

    def _load_candles(self, strategy: Strategy) -> dict[str, list[Candle]]:
        """유니버스 전체 일봉 로드. 매니저(캐시)는 실행마다 새로 만든다."""
        manager = MarketDataManager(self.data_provider)
        return manager.get_universe(strategy.universe, strategy.window.start, strategy.window.end)

    def _build_series(
        self,
        strategy: Strategy,
        candles: dict[str, list[Candle]],
    ) -> dict[str, SymbolSeries]:
        """종목별 지표 계산. 병렬 실행해도 결과는 종목 키로 모으므로 순차 실행과 동일."""
        symbols = list(strategy.universe)
        if self.max_workers == 1 or len(symbols) == 1:
            return {
                symbol: build_symbol_series(symbol, candles[symbol], strategy.indicators)
                for symbol in symbols
            }

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                symbol: executor.submit(build_symbol_series, symbol, candles[symbol], strategy.indicators)
                for symbol in symbols
            }
            # 유니버스 순서대로 결과를 꺼내므로 첫 번째 오류가 결정적으로 전파된다
            return {symbol: futures[symbol].result() for symbol in symbols}

    @staticmethod
    def _merge_per_asset(
        strategy: Strategy,
        train: SimulationOutput,
        validate: SimulationOutput,
    ) -> list[PerAssetStats]:
        """학습/검증 구간 종목별 통계 합산. 노출도 분모는 두 구간 전체 일수."""
        total_days = len(train.equity) + len(validate.equity)
        merged = []
        for symbol in strategy.universe:
            stats = PerAssetStats(symbol=symbol)
            exposure_days = 0
            for output in (train, validate):
                asset = output.per_asset.get(symbol)
                if asset is None:
                    continue
                stats.trades += asset.trades
                stats.pnl += asset.pnl
                exposure_days += asset.exposure_days
            stats.exposure = exposure_days / total_days if total_days > 0 else 0.0
            merged.append(stats)
        return merged
