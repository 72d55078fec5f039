#!/usr/bin/env python3
"""
합성 일봉 데이터 품질 검증 스크립트
"""
import argparse
import sys
from datetime import date

import numpy as np
import pandas as pd

from strategy_sim.data.price_generator import PRICE_FLOOR, SyntheticDataProvider


class DataVerifier:
    """데이터 품질 검증 클래스"""

    def __init__(self, provider: SyntheticDataProvider, start_date: date, end_date: date):
        self.provider = provider
        self.start_date = start_date
        self.end_date = end_date

    def load(self, symbol: str) -> pd.DataFrame:
        return self.provider.get_ohlcv(symbol, self.start_date, self.end_date)

    def get_ticker_statistics(self, symbols: list[str]) -> pd.DataFrame:
        """티커별 통계 조회"""
        rows = []
        for symbol in symbols:
            df = self.load(symbol)
            rows.append({
                "ticker": symbol,
                "record_count": len(df),
                "min_date": df["date"].min() if not df.empty else None,
                "max_date": df["date"].max() if not df.empty else None,
                "avg_close": df["close"].mean() if not df.empty else None,
                "min_close": df["close"].min() if not df.empty else None,
                "max_close": df["close"].max() if not df.empty else None,
                "avg_volume": df["volume"].mean() if not df.empty else None,
            })
        return pd.DataFrame(rows)

    def check_weekends(self, symbol: str) -> pd.DataFrame:
        """주말 날짜 포함 여부"""
        df = self.load(symbol)
        weekdays = pd.to_datetime(df["date"]).dt.dayofweek
        return df[weekdays >= 5]

    def check_invalid_prices(self, symbol: str) -> dict:
        """가격 유효성 검사"""
        df = self.load(symbol)
        return {
            "high < max(open, close)": int((df["high"] < df[["open", "close"]].max(axis=1)).sum()),
            "low > min(open, close)": int((df["low"] > df[["open", "close"]].min(axis=1)).sum()),
            f"close < {PRICE_FLOOR}": int((df["close"] < PRICE_FLOOR).sum()),
            "volume <= 0": int((df["volume"] <= 0).sum()),
            "non-finite values": int((~np.isfinite(df[["open", "high", "low", "close", "volume"]].to_numpy(dtype=float))).sum()),
        }

    def check_determinism(self, symbol: str) -> bool:
        """같은 입력으로 두 번 생성한 결과가 동일한지"""
        return self.load(symbol).equals(self.load(symbol))


def print_section(title: str):
    """섹션 헤더 출력"""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


def main():
    parser = argparse.ArgumentParser(description='Verify synthetic candle quality')
    parser.add_argument('symbols', nargs='+', help='Symbols to verify (e.g. SPY QQQ)')
    parser.add_argument('--start', type=str, default='2015-01-02', help='Start date (YYYY-MM-DD)')
    parser.add_argument('--end', type=str, default='2024-01-02', help='End date (YYYY-MM-DD)')
    args = parser.parse_args()

    verifier = DataVerifier(
        SyntheticDataProvider(),
        date.fromisoformat(args.start),
        date.fromisoformat(args.end),
    )
    failed = False

    print_section("합성 일봉 데이터 품질 검증")
    print(f"기간: {args.start} ~ {args.end}")

    print_section("1. 티커별 통계")
    stats_df = verifier.get_ticker_statistics(args.symbols)
    print(stats_df.to_string(index=False))

    print_section("2. 주말 날짜 확인")
    for symbol in args.symbols:
        weekends = verifier.check_weekends(symbol)
        if not weekends.empty:
            failed = True
            print(f"⚠️  {symbol}: {len(weekends)} weekend records")
        else:
            print(f"✓ {symbol}: weekdays only")

    print_section("3. 데이터 유효성 검사")
    for symbol in args.symbols:
        for check, count in verifier.check_invalid_prices(symbol).items():
            status = "✓" if count == 0 else "⚠️ "
            failed = failed or count > 0
            print(f"{status} {symbol} {check}: {count}")

    print_section("4. 결정성 확인")
    for symbol in args.symbols:
        same = verifier.check_determinism(symbol)
        failed = failed or not same
        print(f"{'✓' if same else '⚠️ '} {symbol}: {'identical' if same else 'MISMATCH'}")

    print_section("검증 완료")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
