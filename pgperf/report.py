import csv
from datetime import datetime, UTC
from pathlib import Path
from typing import Iterable

from rich.console import Console
from rich.markup import escape

from pgperf.classify import BAND_STYLES, classify, explain_latency, explain_tps
from pgperf.entities import (
    Recommendation,
    RunResult,
    SummaryReport,
    TestConfig,
)
from pgperf.extract import diagnostic_lines, summary_lines
from pgperf.utils import FormatUtils

SUMMARY_FILENAME = "PERFORMANCE_SUMMARY.txt"
CSV_FILENAME = "results.csv"
CONCERN_THRESHOLD_TPS = 100.0

CONCERNS = Recommendation(
    concerns=True,
    title="Performance Concerns",
    advice=(
        "Your database struggles under heavy load",
        "Consider hardware upgrades (CPU, RAM, SSD storage)",
        "Review PostgreSQL configuration settings",
        "Consider connection pooling for high-connection scenarios",
    ),
)

GOOD_PERFORMANCE = Recommendation(
    concerns=False,
    title="Good Performance",
    advice=(
        "Your database handles the tested workloads well",
        "Current configuration appears suitable for your needs",
    ),
)

RULE = "=" * 52


def recommend(worst_tps: float) -> Recommendation:
    if worst_tps < CONCERN_THRESHOLD_TPS:
        return CONCERNS
    return GOOD_PERFORMANCE


def aggregate(results: Iterable[RunResult]) -> SummaryReport:
    ordered = tuple(results)
    best: RunResult | None = None
    worst: RunResult | None = None
    # Strict comparisons keep the earliest profile on ties.
    for item in ordered:
        if item.tps is None:
            continue
        if best is None or item.tps > best.tps:
            best = item
        if worst is None or item.tps < worst.tps:
            worst = item
    recommendation = recommend(worst.tps) if worst is not None else None
    return SummaryReport(
        results=ordered,
        best=best,
        worst=worst,
        recommendation=recommendation,
        generated_at=datetime.now(UTC),
    )


class ResultsReporter:
    def __init__(self, config: TestConfig, console: Console) -> None:
        self.config = config
        self.console = console

    def print_config(self) -> None:
        self.console.print("=== PostgreSQL Performance Testing Tool ===", style="info")
        self.console.print(f"Database: {self.config.target}", style="info", markup=False)
        self.console.print(
            f"Scale Factor: {self.config.scale_factor} "
            f"(simulates {self.config.scale_factor * 100_000} accounts)",
            style="info",
        )
        self.console.print(f"Test Duration: {self.config.duration_s} seconds each", style="info")
        if self.config.verbose:
            self.console.print(
                f"Verbose mode: pgbench progress every {self.config.progress_interval_s}s",
                style="info",
            )
        if self.config.timeout_grace_s > 0:
            self.console.print(
                f"Hard timeout: {self.config.duration_s + self.config.timeout_grace_s}s per test",
                style="info",
            )
        self.console.print()

    def print_connected(self, version: str) -> None:
        self.console.print("✅ Database connection successful", style="success")
        self.console.print(version, style="dim", markup=False)
        self.console.print()

    def print_fatal(self, message: str) -> None:
        self.console.print(f"❌ {message}", style="error", markup=False)

    def print_analysis(self, report: SummaryReport) -> None:
        self.console.print("=== PostgreSQL Performance Analysis ===", style="info")
        self.console.print()
        for item in report.results:
            self._print_result(item)
        self._print_recommendations(report)
        self._print_legend(report.results)

    def _print_result(self, item: RunResult) -> None:
        self.console.print(f"📊 {item.profile.display_name} Results", style="info", markup=False)
        self.console.print(RULE)

        if self.config.verbose:
            self.console.print("Raw pgbench summary:", style="label")
            for line in summary_lines(item.raw_output_path):
                self.console.print(line, markup=False)
            self.console.print()

        if item.status == "NOT_RUN":
            self.console.print(f"⚠️  No results file: {item.raw_output_path}", style="warning", markup=False)
        elif item.tps is not None:
            band = classify(item.tps)
            style = BAND_STYLES[band]
            self.console.print("✅ PERFORMANCE METRICS", style="success")
            self.console.print("━" * 29)
            self.console.print(
                f"🚀 Transactions per Second: [success]{FormatUtils.tps(item.tps)} TPS[/]"
            )
            self.console.print(
                f"⏱️  Average Response Time: [warning]{FormatUtils.millis(item.latency_ms)}[/]"
            )
            self.console.print(
                f"🔗 Connection Setup Time: [label]{FormatUtils.millis(item.connection_ms)}[/]"
            )
            self.console.print(
                f"❌ Failed Transactions: [error]{FormatUtils.count(item.failed_transactions)}[/]"
            )
            self.console.print(f"🏆 Performance Rating: [{style}]{band.label}[/]")
            if item.status != "OK":
                self.console.print(f"⚠️  {item.error}", style="warning", markup=False)
            self.console.print()
            self.console.print("📋 WHAT THIS MEANS FOR YOUR DATABASE:", style="label")
            self.console.print("What this means:", style="label")
            for line in explain_tps(item.tps):
                self.console.print(f"• {line}", markup=False)
            self.console.print()
            self.console.print("Response Time:", style="label")
            for line in explain_latency(item.latency_ms):
                self.console.print(f"• {line}", markup=False)
        else:
            self._print_parsing_error(item)

        self.console.print()
        self.console.print("═" * 52)
        self.console.print()

    def _print_parsing_error(self, item: RunResult) -> None:
        tail, tps_lines = diagnostic_lines(item.raw_output_path)
        self.console.print("❌ PARSING ERROR", style="error")
        if item.error:
            self.console.print(item.error, style="warning", markup=False)
        self.console.print("Could not extract TPS from results. Showing raw output:")
        self.console.print()
        self.console.print("Last 10 lines of test output:", style="warning")
        for line in tail:
            self.console.print(line, markup=False)
        self.console.print()
        self.console.print("Lines containing 'tps':", style="warning")
        if tps_lines:
            for line in tps_lines:
                self.console.print(line, markup=False)
        else:
            self.console.print("No TPS lines found")

    def _print_recommendations(self, report: SummaryReport) -> None:
        self.console.print("📋 Recommendations", style="warning")
        self.console.print("==================")
        if report.is_degenerate:
            self.console.print(
                "• No test produced a usable TPS value; best/worst cannot be determined.",
                style="error",
            )
            self.console.print()
            return
        self.console.print(
            f"• Best performing test: {report.best.profile.name} "
            f"({FormatUtils.tps(report.best.tps)} TPS)",
            markup=False,
        )
        self.console.print(
            f"• Most challenging test: {report.worst.profile.name} "
            f"({FormatUtils.tps(report.worst.tps)} TPS)",
            markup=False,
        )
        self.console.print()
        recommendation = report.recommendation
        if recommendation.concerns:
            self.console.print(f"⚠️  {recommendation.title}:", style="warning")
        else:
            self.console.print(f"✅ {recommendation.title}:", style="success")
        for line in recommendation.advice:
            self.console.print(f"• {escape(line)}")
        self.console.print()

    def _print_legend(self, results: Iterable[RunResult]) -> None:
        self.console.print("💡 Understanding the Tests:", style="info")
        for item in results:
            profile = item.profile
            self.console.print(
                f"• {profile.display_name}: {profile.description} ({profile.clients} users)",
                markup=False,
            )
        self.console.print()

    def build_summary_lines(self, report: SummaryReport) -> list[str]:
        generated_at = report.generated_at.strftime("%Y-%m-%d %H:%M:%SZ")
        lines: list[str] = []
        lines.append("PostgreSQL Performance Test Summary")
        lines.append(f"Generated (UTC): {generated_at}")
        lines.append(f"Database: {self.config.target}")
        lines.append(
            f"Scale Factor: {self.config.scale_factor}, "
            f"Test Duration: {self.config.duration_s}s"
        )
        lines.append("========================================")
        lines.append("")

        for item in report.results:
            lines.append(f"{item.profile.display_name}:")
            lines.append(f"  Clients: {item.profile.clients}, Jobs: {item.profile.jobs}")
            lines.append(f"  Status: {item.status}")
            if item.tps is None:
                lines.append("  TPS: N/A (could not extract TPS from results)")
            else:
                lines.append(f"  TPS: {FormatUtils.tps(item.tps)}")
            lines.append(f"  Latency: {FormatUtils.millis(item.latency_ms)}")
            lines.append(f"  Connection Time: {FormatUtils.millis(item.connection_ms)}")
            lines.append(f"  Failed: {FormatUtils.count(item.failed_transactions)}")
            if item.tps is not None:
                lines.append(f"  Rating: {classify(item.tps).label}")
            if item.error:
                lines.append(f"  Note: {item.error}")
            lines.append("")

        lines.append("")
        lines.append("Recommendations:")
        lines.append("================")
        if report.is_degenerate:
            lines.append("No test produced a usable TPS value; best/worst cannot be determined.")
            return lines

        lines.append(
            f"Best performing: {report.best.profile.name} ({FormatUtils.tps(report.best.tps)} TPS)"
        )
        lines.append(
            f"Most challenging: {report.worst.profile.name} ({FormatUtils.tps(report.worst.tps)} TPS)"
        )
        lines.append("")
        lines.append(f"{report.recommendation.title}:")
        for line in report.recommendation.advice:
            lines.append(f"- {line}")
        return lines

    def save_summary(self, report: SummaryReport, results_dir: Path) -> Path:
        path = results_dir / SUMMARY_FILENAME
        with open(path, "w", encoding="utf-8") as file:
            file.write("\n".join(self.build_summary_lines(report)))
            file.write("\n")
        return path

    def save_csv(self, results: Iterable[RunResult], results_dir: Path) -> Path:
        path = results_dir / CSV_FILENAME
        with open(path, "w", newline="", encoding="utf-8") as file:
            writer = csv.writer(file)
            writer.writerow(
                [
                    "profile",
                    "clients",
                    "jobs",
                    "status",
                    "exit_code",
                    "elapsed_s",
                    "tps",
                    "latency_ms",
                    "connection_ms",
                    "failed_transactions",
                    "rating",
                    "raw_output",
                    "error",
                ]
            )
            for item in results:
                writer.writerow(
                    [
                        item.profile.name,
                        item.profile.clients,
                        item.profile.jobs,
                        item.status,
                        "" if item.exit_code is None else item.exit_code,
                        f"{item.elapsed_s:.3f}",
                        "" if item.tps is None else f"{item.tps:.6f}",
                        "" if item.latency_ms is None else f"{item.latency_ms:.3f}",
                        "" if item.connection_ms is None else f"{item.connection_ms:.3f}",
                        "" if item.failed_transactions is None else item.failed_transactions,
                        "" if item.tps is None else classify(item.tps).label,
                        item.raw_output_path.name,
                        item.error,
                    ]
                )
        return path
