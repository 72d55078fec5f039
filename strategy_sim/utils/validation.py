"""
전략 문서 교차 검증 모듈.

[ 역할 ]
    엔진 호출 전에 문서 내부 참조 관계를 확인하는 외부 검증 단계.
    엔진은 이 검증을 통과한 문서만 받는다고 가정한다.

[ 검사 항목 ]
    - window.end > window.start
    - 지표 id 중복 없음, 등록된 지표 함수만 사용
    - 진입/청산 조건식이 선언된 지표 id만 참조
    - 액션의 ticker는 "*" 또는 유니버스 종목
    - 기간(일수) >= 최대 워밍업 + 252 (학습/검증 분할에 충분한 길이)

[ 호출하는 곳 ]
    - run_backtest.py에서 ensure_valid() 호출
"""

from strategy_sim.core.exceptions import ConfigurationError, StrategyValidationError
from strategy_sim.core.expression import referenced_indicators
from strategy_sim.core.strategy import WILDCARD, Strategy
from strategy_sim.indicators import warmup_period

MIN_VALIDATION_SESSIONS = 252


def validate_strategy(strategy: Strategy) -> list[str]:
    """교차 검증. 문제 목록 반환 (비어있으면 통과)."""
    errors: list[str] = []
    window = strategy.window

    if window.end <= window.start:
        errors.append("window.end must be after window.start")

    seen: set[str] = set()
    max_warmup = 0
    for indicator in strategy.indicators:
        if indicator.id in seen:
            errors.append(f"Duplicate indicator id: {indicator.id}")
        seen.add(indicator.id)
        try:
            max_warmup = max(max_warmup, warmup_period(indicator))
        except ConfigurationError as e:
            errors.append(str(e))

    referenced: set[str] = set()
    for entry in strategy.entries:
        referenced |= referenced_indicators(entry.when)
    for exit_rule in strategy.exits:
        referenced |= referenced_indicators(exit_rule.when)
    for ref in sorted(referenced - seen):
        errors.append(f"Reference to undefined indicator {ref}")

    universe = set(strategy.universe)
    tickers = [e.buy.ticker for e in strategy.entries if e.buy]
    tickers += [e.close.ticker for e in strategy.entries if e.close]
    tickers += [x.close.ticker for x in strategy.exits]
    for ticker in sorted(set(tickers)):
        if ticker != WILDCARD and ticker not in universe:
            errors.append(f"Ticker {ticker} is not in the universe")

    days = (window.end - window.start).days
    required = max_warmup + MIN_VALIDATION_SESSIONS
    if days < required:
        errors.append(
            f"window length must be at least {required} days to cover indicator warmup + "
            f"{MIN_VALIDATION_SESSIONS} sessions"
        )

    return errors


def ensure_valid(strategy: Strategy) -> Strategy:
    """검증 실패 시 StrategyValidationError."""
    errors = validate_strategy(strategy)
    if errors:
        raise StrategyValidationError(errors)
    return strategy
