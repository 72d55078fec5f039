"""
설정 관리 모듈.

[ 역할 ]
    config.yaml (또는 .json) 파일을 파싱하여 Config 객체로 변환.
    백테스트 실행 파라미터, 출력, 로깅 설정 등을 통합 관리.
    전략 자체(유니버스, 규칙 등)는 별도 전략 문서 파일에 둔다.

[ 설정 파일 구조 (config.yaml) ]
    strategy_file:    → 기본 전략 문서 경로
    backtest:         → BacktestConfig (학습 비율, 병렬 작업 수)
    output:           → OutputConfig (결과 JSON 경로, 들여쓰기)
    log_level:        → "INFO" / "DEBUG"
    log_dir:          → 로그 디렉토리 경로

[ 호출하는 곳 ]
    - run_backtest.py에서 Config.from_yaml()로 로드
    - 엔진 생성 시 config.backtest의 값을 사용
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class BacktestConfig:
    """백테스트 설정. config.yaml의 backtest 섹션에 대응."""
    train_ratio: float = 0.7    # 학습 구간 비율 (나머지는 검증)
    max_workers: int = 1        # 종목별 지표 계산 병렬 작업 수


@dataclass
class OutputConfig:
    """결과 출력 설정. config.yaml의 output 섹션에 대응."""
    result_path: str = ""       # 비어있으면 파일로 저장하지 않음
    equity_csv_path: str = ""   # 자산곡선 CSV 경로 (선택)
    indent: int = 2


@dataclass
class Config:
    """전체 설정. from_yaml() 또는 from_json()으로 파일에서 로드."""
    strategy_file: str = "strategy.yaml"
    backtest: BacktestConfig = field(default_factory=BacktestConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    log_level: str = "INFO"
    log_dir: str = "logs"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """YAML 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls._from_dict(data or {})

    @classmethod
    def from_json(cls, path: str | Path) -> "Config":
        """JSON 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """딕셔너리에서 Config 생성. 알 수 없는 키는 무시."""
        backtest_data = data.get("backtest", {}) or {}
        output_data = data.get("output", {}) or {}

        backtest = BacktestConfig(**{
            k: v for k, v in backtest_data.items()
            if k in BacktestConfig.__dataclass_fields__
        })
        output = OutputConfig(**{
            k: v for k, v in output_data.items()
            if k in OutputConfig.__dataclass_fields__
        })

        return cls(
            strategy_file=data.get("strategy_file", "strategy.yaml"),
            backtest=backtest,
            output=output,
            log_level=data.get("log_level", "INFO"),
            log_dir=data.get("log_dir", "logs"),
        )

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환."""
        from dataclasses import asdict
        return asdict(self)

    def save_yaml(self, path: str | Path) -> None:
        """YAML 파일로 저장."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, allow_unicode=True, default_flow_style=False)
