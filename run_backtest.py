"""
백테스트 실행 스크립트 (시스템 진입점).

[ 사용법 ]
    # 기본 실행 (config.yaml의 strategy_file 사용)
    python run_backtest.py

    # 전략 문서 지정
    python run_backtest.py --strategy strategy.yaml

    # 결과 JSON / 자산곡선 CSV 저장
    python run_backtest.py --strategy strategy.yaml --output result.json --equity-csv equity.csv

    # 여러 전략 문서 비교 (검증 구간 기준)
    python run_backtest.py --compare sma_cross.yaml rsi.json

    # 등록된 지표 목록 확인
    python run_backtest.py --list
"""

import argparse
import json
import sys
from pathlib import Path

import pandas as pd

from strategy_sim.backtest.engine import BacktestEngine
from strategy_sim.backtest.metrics import BacktestMetrics
from strategy_sim.backtest.result import BacktestResult
from strategy_sim.core.exceptions import ConfigurationError, StrategyValidationError
from strategy_sim.core.strategy import Strategy, load_strategy
from strategy_sim.indicators import INDICATOR_REGISTRY, list_indicators
from strategy_sim.utils.config import Config
from strategy_sim.utils.logger import setup_logger
from strategy_sim.utils.validation import ensure_valid


def load_checked_strategy(path: str | Path) -> Strategy:
    """전략 문서 로드 + 교차 검증."""
    return ensure_valid(load_strategy(path))


def run_single(config: Config, strategy: Strategy) -> BacktestResult:
    """단일 전략 백테스트 실행."""
    engine = BacktestEngine(
        train_ratio=config.backtest.train_ratio,
        max_workers=config.backtest.max_workers,
    )
    return engine.run_backtest(strategy)


def save_result(result: BacktestResult, path: str | Path, indent: int = 2) -> None:
    """결과 문서를 JSON으로 저장."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(result.to_dict(), f, ensure_ascii=False, indent=indent)


def save_equity_csv(result: BacktestResult, path: str | Path) -> None:
    """학습/검증 자산곡선을 하나의 CSV로 저장 (segment 컬럼으로 구분)."""
    frames = []
    for segment, curve in (("train", result.train_equity), ("validate", result.validate_equity)):
        frame = curve.to_series().to_frame()
        frame["segment"] = segment
        frames.append(frame)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    pd.concat(frames).rename_axis("date").to_csv(path)


def print_single_result(strategy: Strategy, result: BacktestResult):
    """단일 전략 결과 출력."""
    print(f"\n[전략: {strategy.meta.name} v{strategy.meta.version}]")
    print(result.train_metrics.summary("학습 구간 성과"))
    print(result.validate_metrics.summary("검증 구간 성과"))

    print("\n종목별 통계:")
    for asset in result.per_asset:
        pnl_str = f"+{asset.pnl:,.2f}" if asset.pnl > 0 else f"{asset.pnl:,.2f}"
        print(f"  {asset.symbol:<8} 거래 {asset.trades:>4}회  손익 {pnl_str:>14}  노출 {asset.exposure * 100:6.2f}%")

    if result.warnings:
        print(f"\n경고 {len(result.warnings)}건 (최대 5건 표시):")
        for warning in result.warnings[:5]:
            print(f"  - {warning}")


def print_comparison(results: dict[str, BacktestMetrics]):
    """여러 전략 비교 결과 출력 (검증 구간)."""
    names = list(results.keys())
    col_width = max(14, max(len(n) for n in names) + 2)

    print(f"\n{'=' * (20 + col_width * len(names))}")
    print("전략 비교 결과 (검증 구간)")
    print(f"{'=' * (20 + col_width * len(names))}")

    # 헤더
    header = f"{'':>20}" + "".join(f"{n:>{col_width}}" for n in names)
    print(header)
    print("-" * len(header))

    # 지표 행
    rows = [
        ("CAGR", lambda m: f"{m.cagr * 100:.2f}%"),
        ("일간 표준편차", lambda m: f"{m.stdev * 100:.2f}%"),
        ("최대 낙폭(MDD)", lambda m: f"{m.max_drawdown * 100:.2f}%"),
        ("칼마 비율", lambda m: f"{m.calmar:.2f}"),
        ("적중률", lambda m: f"{m.hit_rate * 100:.1f}%"),
        ("평균 수익", lambda m: f"{m.avg_win:,.0f}"),
        ("평균 손실", lambda m: f"{m.avg_loss:,.0f}"),
        ("노출도", lambda m: f"{m.exposure * 100:.1f}%"),
        ("일평균 회전", lambda m: f"{m.turnover:,.0f}"),
    ]

    for label, fmt in rows:
        row = f"{label:>20}" + "".join(f"{fmt(results[n]):>{col_width}}" for n in names)
        print(row)

    print(f"{'=' * (20 + col_width * len(names))}")


def main() -> int:
    parser = argparse.ArgumentParser(description="규칙 기반 전략 백테스트 실행")
    parser.add_argument("--config", type=str, default="config.yaml", help="설정 파일 경로")
    parser.add_argument("--strategy", type=str, default=None, help="전략 문서 경로 (config.yaml 대신 지정)")
    parser.add_argument("--output", type=str, default=None, help="결과 JSON 저장 경로")
    parser.add_argument("--equity-csv", type=str, default=None, help="자산곡선 CSV 저장 경로")
    parser.add_argument("--workers", type=int, default=None, help="지표 계산 병렬 작업 수")
    parser.add_argument("--compare", nargs="+", metavar="STRATEGY_FILE", help="여러 전략 문서 비교")
    parser.add_argument("--list", action="store_true", help="등록된 지표 목록 출력")
    args = parser.parse_args()

    # 지표 목록 출력
    if args.list:
        print("등록된 지표:")
        for name in list_indicators():
            spec = INDICATOR_REGISTRY[name]
            source = "일봉" if spec.uses_candles else "종가"
            print(f"  - {name} (입력: {source}, 워밍업 period=20 기준 {spec.warmup(20)}일)")
        return 0

    # 설정 로드
    config_path = Path(args.config)
    if config_path.exists():
        config = Config.from_yaml(config_path)
    else:
        print(f"설정 파일 없음: {config_path}, 기본값 사용")
        config = Config()
    if args.workers is not None:
        config.backtest.max_workers = args.workers

    # 로거
    logger = setup_logger(level=config.log_level, log_dir=config.log_dir)

    # ─── 비교 모드 ───────────────────────────────────────────────────────
    if args.compare:
        print(f"\n{len(args.compare)}개 전략 비교 실행...")
        results = {}
        for path in args.compare:
            print(f"\n--- {path} 실행 중 ---")
            try:
                strategy = load_checked_strategy(path)
                result = run_single(config, strategy)
            except ConfigurationError as e:
                logger.error(f"{path}: {e}")
                continue
            results[strategy.meta.name] = result.validate_metrics
        if results:
            print_comparison(results)
        return 0 if results else 1

    # ─── 단일 실행 모드 ─────────────────────────────────────────────────
    strategy_path = args.strategy or config.strategy_file
    try:
        strategy = load_checked_strategy(strategy_path)
        result = run_single(config, strategy)
    except StrategyValidationError as e:
        print("전략 문서 검증 실패:")
        for error in e.errors:
            print(f"  - {error}")
        return 1
    except (ConfigurationError, FileNotFoundError) as e:
        logger.error(f"백테스트 중단: {e}")
        return 1

    print_single_result(strategy, result)

    output_path = args.output or config.output.result_path
    if output_path:
        save_result(result, output_path, indent=config.output.indent)
        print(f"\n결과 저장: {output_path}")

    equity_csv = args.equity_csv or config.output.equity_csv_path
    if equity_csv:
        save_equity_csv(result, equity_csv)
        print(f"자산곡선 저장: {equity_csv}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
