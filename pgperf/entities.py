from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any


@dataclass
class TestConfig:
    __test__ = False

    host: str
    port: int
    user: str
    password: str
    dbname: str
    scale_factor: int
    duration_s: int
    verbose: bool
    results_root: str
    pgbench_bin: str = "pgbench"
    progress_interval_s: int = 30
    poll_interval_s: float = 2.0
    timeout_grace_s: int = 120
    kill_after_s: float = 10.0
    connect_timeout_s: int = 10
    extra_patterns: dict[str, list[str]] = field(default_factory=dict)
    analyze_dir: str | None = None

    @property
    def target(self) -> str:
        return f"{self.host}:{self.port}/{self.dbname}"


@dataclass
class Dependencies:
    psycopg: Any


@dataclass(frozen=True)
class TestProfile:
    __test__ = False

    name: str
    clients: int
    jobs: int
    description: str

    def __post_init__(self) -> None:
        if self.clients < 1:
            raise ValueError(f"Profile {self.name}: clients must be > 0.")
        if self.jobs < 1:
            raise ValueError(f"Profile {self.name}: jobs must be > 0.")

    @property
    def output_filename(self) -> str:
        return f"{self.name.lower()}_results.txt"

    @property
    def display_name(self) -> str:
        return self.name.replace("_", " ")


DEFAULT_PROFILES: tuple[TestProfile, ...] = (
    TestProfile("Simple_Test", 5, 2, "Light workload - simulates normal daily usage"),
    TestProfile("Load_Test", 20, 4, "Medium workload - simulates busy periods"),
    TestProfile("Stress_Test", 50, 8, "Heavy workload - tests maximum capacity"),
    TestProfile("Connection_Test", 100, 4, "Many connections - tests connection handling"),
)


@dataclass(frozen=True)
class ExtractedMetrics:
    tps: float | None = None
    latency_ms: float | None = None
    connection_ms: float | None = None
    failed_transactions: int | None = None

    @property
    def is_empty(self) -> bool:
        return (
            self.tps is None
            and self.latency_ms is None
            and self.connection_ms is None
            and self.failed_transactions is None
        )


@dataclass(frozen=True)
class ProcessOutcome:
    exit_code: int
    elapsed_s: float
    timed_out: bool = False


@dataclass(frozen=True)
class RunResult:
    profile: TestProfile
    raw_output_path: Path
    status: str
    tps: float | None = None
    latency_ms: float | None = None
    connection_ms: float | None = None
    failed_transactions: int | None = None
    exit_code: int | None = None
    elapsed_s: float = 0.0
    error: str = ""

    @classmethod
    def from_metrics(
        cls,
        profile: TestProfile,
        raw_output_path: Path,
        status: str,
        metrics: ExtractedMetrics,
        exit_code: int | None = None,
        elapsed_s: float = 0.0,
        error: str = "",
    ) -> "RunResult":
        return cls(
            profile=profile,
            raw_output_path=raw_output_path,
            status=status,
            tps=metrics.tps,
            latency_ms=metrics.latency_ms,
            connection_ms=metrics.connection_ms,
            failed_transactions=metrics.failed_transactions,
            exit_code=exit_code,
            elapsed_s=elapsed_s,
            error=error,
        )


class PerformanceBand(Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"
    VERY_POOR = "Very Poor"

    @property
    def label(self) -> str:
        return self.value


@dataclass(frozen=True)
class Recommendation:
    concerns: bool
    title: str
    advice: tuple[str, ...]


@dataclass(frozen=True)
class SummaryReport:
    results: tuple[RunResult, ...]
    best: RunResult | None
    worst: RunResult | None
    recommendation: Recommendation | None
    generated_at: datetime

    @property
    def is_degenerate(self) -> bool:
        return self.best is None
