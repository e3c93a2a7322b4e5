import math

from pgperf.entities import PerformanceBand

# Strict ">" comparisons: a value equal to a threshold falls into the band below.
BAND_THRESHOLDS: tuple[tuple[float, PerformanceBand], ...] = (
    (1000.0, PerformanceBand.EXCELLENT),
    (500.0, PerformanceBand.GOOD),
    (200.0, PerformanceBand.FAIR),
    (50.0, PerformanceBand.POOR),
)

BAND_STYLES: dict[PerformanceBand, str] = {
    PerformanceBand.EXCELLENT: "success",
    PerformanceBand.GOOD: "success",
    PerformanceBand.FAIR: "warning",
    PerformanceBand.POOR: "warning",
    PerformanceBand.VERY_POOR: "error",
}


def classify(tps: float) -> PerformanceBand:
    if math.isnan(tps) or tps < 0:
        raise ValueError(f"TPS must be a non-negative number, got {tps!r}.")
    for threshold, band in BAND_THRESHOLDS:
        if tps > threshold:
            return band
    return PerformanceBand.VERY_POOR


def explain_tps(tps: float) -> list[str]:
    lines = [
        f"Your database can handle {tps:.2f} transactions per second",
        "Each transaction typically involves reading/writing data",
        "Higher numbers = better performance",
    ]
    band = classify(tps)
    if band is PerformanceBand.EXCELLENT:
        lines.append("This is excellent - your database can handle heavy workloads")
    elif band is PerformanceBand.GOOD:
        lines.append("This is good performance for most applications")
    elif band is PerformanceBand.FAIR:
        lines.append("This is acceptable for light to medium workloads")
    else:
        lines.append("This performance may struggle with busy applications")
        lines.append("Consider upgrading hardware or optimizing database settings")
    return lines


def explain_latency(latency_ms: float | None) -> list[str]:
    if latency_ms is None:
        return ["Response time data not available"]
    lines = [f"Average time per transaction: {latency_ms:.3f}ms"]
    if latency_ms < 10:
        lines.append("Very fast response times - users won't notice any delay")
    elif latency_ms < 50:
        lines.append("Good response times - acceptable for most users")
    elif latency_ms < 100:
        lines.append("Moderate response times - may be noticeable to users")
    else:
        lines.append("Slow response times - users may experience delays")
        lines.append("Consider performance optimization")
    return lines
