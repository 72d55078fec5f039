"""
=============================================================================
규칙 기반 전략 백테스트 시스템 (Strategy Simulator)
=============================================================================

[ 시스템 전체 구조 ]

    run_backtest.py (진입점)
         │
         ├── utils/config.py        ← config.yaml 설정 로드
         ├── utils/logger.py        ← 로깅
         ├── utils/validation.py    ← 전략 문서 교차 검증 (지표 참조, 기간 길이)
         │
         ├── core/strategy.py       ← 전략 문서 (유니버스, 자본, 리스크, 규칙)
         │     └── core/expression.py   ← 조건식 트리 (all/any/gt/lt/cross/risk)
         │
         └── backtest/engine.py     ← 백테스트 실행 엔진
               │
               ├── data/price_generator.py  ← 시드 기반 합성 일봉 생성
               ├── indicators/              ← SMA/EMA/RSI/ROC/ATR
               ├── backtest/simulator.py    ← 일별 포트폴리오 시뮬레이션
               │     ├── backtest/evaluator.py  ← 조건식 평가
               │     └── data/portfolio.py      ← 현금/포지션/거래기록
               └── backtest/metrics.py      ← 성과 지표 계산


[ 데이터 흐름 ]

    1. 전략 문서(YAML/JSON) → Strategy 객체
    2. 종목별로 합성 일봉 생성 (symbol:start:end 해시가 시드)
    3. 종목별로 선언된 지표 시리즈 계산
    4. 학습(70%) / 검증(30%) 구간을 각각 독립적으로 시뮬레이션
    5. 구간별 자산곡선 + 거래기록 → 성과 지표
    6. BacktestResult (JSON 호환 dict) 반환


[ 결정성 ]

    동일한 전략 문서는 항상 동일한 결과를 만든다.
    외부 시세, 난수 엔트로피, 실행 간 저장 상태가 전혀 없다.
"""
