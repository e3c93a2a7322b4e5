import json
import re
from dataclasses import dataclass
from pathlib import Path

from pgperf.entities import ExtractedMetrics

NUMBER = r"(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"
INTEGER = r"(\d{1,3}(?:,\d{3})+|\d+)"

METRICS = ("tps", "latency_ms", "connection_ms", "failed_transactions")
INTEGER_METRICS = frozenset({"failed_transactions"})

# Canonical pgbench report lines first, permissive scans last.
DEFAULT_PATTERNS: dict[str, tuple[str, ...]] = {
    "tps": (
        rf"tps = {NUMBER} \(including connections establishing\)",
        rf"tps = {NUMBER} \(excluding connections establishing\)",
        rf"tps = {NUMBER}",
        rf"{NUMBER} tps\b",
        rf"tps: {NUMBER}",
        r"(?m)^(?=.*(?:excluding|including)).*?(\d+\.\d+)",
    ),
    "latency_ms": (
        rf"latency average = {NUMBER}",
        rf"average latency: {NUMBER}",
        rf"latency: {NUMBER}",
        r"(?m)^(?=.*latency average).*?(\d+\.\d+)",
        r"(?im)^(?=.*average).*?(\d+\.\d+)",
    ),
    "connection_ms": (
        rf"initial connection time = {NUMBER}",
        rf"connection time\s*[:=]\s*{NUMBER}",
    ),
    "failed_transactions": (
        rf"number of failed transactions: {INTEGER}",
        rf"failed:\s*\(?{INTEGER}",
    ),
}

SUMMARY_LINE_RE = re.compile(r"tps|latency|initial connection")


@dataclass(frozen=True)
class MetricMatch:
    value: float | int
    pattern_index: int


def compile_pattern(metric: str, pattern: str) -> re.Pattern[str]:
    try:
        compiled = re.compile(pattern)
    except re.error as exc:
        raise ValueError(f"Invalid {metric} pattern {pattern!r}: {exc}") from exc
    if compiled.groups < 1:
        raise ValueError(f"Pattern {pattern!r} for {metric} needs a capture group.")
    return compiled


def load_pattern_file(path: str | Path) -> dict[str, list[str]]:
    with open(path, "r", encoding="utf-8") as file:
        raw = json.load(file)
    if not isinstance(raw, dict):
        raise ValueError("Patterns file must contain a JSON object.")
    patterns: dict[str, list[str]] = {}
    for metric, values in raw.items():
        if metric not in METRICS:
            raise ValueError(
                f"Unknown metric {metric!r} in patterns file. Use one of: {', '.join(METRICS)}."
            )
        if isinstance(values, str):
            values = [values]
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            raise ValueError(f"Patterns for {metric} must be a string or list of strings.")
        for value in values:
            compile_pattern(metric, value)
        patterns[metric] = list(values)
    return patterns


class MetricExtractor:
    def __init__(self, patterns: dict[str, tuple[str, ...]] | None = None) -> None:
        source = DEFAULT_PATTERNS if patterns is None else patterns
        self.patterns: dict[str, tuple[re.Pattern[str], ...]] = {
            metric: tuple(compile_pattern(metric, p) for p in source.get(metric, ()))
            for metric in METRICS
        }

    @classmethod
    def with_overrides(cls, extra: dict[str, list[str]] | None) -> "MetricExtractor":
        """Extra patterns are tried before the built-in ones for the same metric."""
        merged = {
            metric: tuple((extra or {}).get(metric, ())) + DEFAULT_PATTERNS[metric]
            for metric in METRICS
        }
        return cls(merged)

    def search(self, metric: str, text: str) -> MetricMatch | None:
        for index, pattern in enumerate(self.patterns[metric]):
            match = pattern.search(text)
            if match is None:
                continue
            raw = match.group(1)
            if not raw:
                continue
            value = self._to_number(metric, raw)
            if value is None:
                continue
            return MetricMatch(value=value, pattern_index=index)
        return None

    def extract_text(self, text: str) -> ExtractedMetrics:
        found: dict[str, float | int | None] = {}
        for metric in METRICS:
            match = self.search(metric, text)
            found[metric] = match.value if match is not None else None
        return ExtractedMetrics(**found)

    def extract(self, raw_output_path: str | Path) -> ExtractedMetrics:
        text = Path(raw_output_path).read_text(encoding="utf-8", errors="replace")
        return self.extract_text(text)

    @staticmethod
    def _to_number(metric: str, raw: str) -> float | int | None:
        cleaned = raw.replace(",", "")
        try:
            if metric in INTEGER_METRICS:
                return int(cleaned)
            return float(cleaned)
        except ValueError:
            return None


def diagnostic_lines(raw_output_path: str | Path, tail: int = 10) -> tuple[list[str], list[str]]:
    path = Path(raw_output_path)
    if not path.exists():
        return [], []
    lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
    tps_lines = [line for line in lines if "tps" in line.lower()]
    return lines[-tail:] if tail > 0 else [], tps_lines


def summary_lines(raw_output_path: str | Path, limit: int = 5) -> list[str]:
    path = Path(raw_output_path)
    if not path.exists():
        return []
    lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
    return [line for line in lines if SUMMARY_LINE_RE.search(line)][:limit]
