from datetime import datetime
from pathlib import Path

from rich.console import Console

from pgperf.cli import CLI
from pgperf.console import make_console
from pgperf.db import DatabaseManager
from pgperf.entities import DEFAULT_PROFILES, RunResult, SummaryReport, TestConfig, TestProfile
from pgperf.errors import PgPerfError, ResultsDirectoryError
from pgperf.extract import MetricExtractor
from pgperf.report import ResultsReporter, aggregate
from pgperf.runners.pgbench import PgbenchRunner
from pgperf.runners.supervisor import ProcessSupervisor
from pgperf.utils import DependencyProvider


class App:
    def __init__(
        self,
        config: TestConfig,
        console: Console | None = None,
        profiles: tuple[TestProfile, ...] = DEFAULT_PROFILES,
    ) -> None:
        self.config = config
        self.profiles = profiles
        self.console = console or make_console()
        self.deps = DependencyProvider().load()
        self.db = DatabaseManager(config, self.deps.psycopg)
        self.extractor = MetricExtractor.with_overrides(config.extra_patterns)
        self.reporter = ResultsReporter(config, self.console)
        self.supervisor = ProcessSupervisor(
            console=self.console,
            poll_interval_s=config.poll_interval_s,
            timeout_grace_s=config.timeout_grace_s,
            kill_after_s=config.kill_after_s,
        )
        self.runner = PgbenchRunner(config, self.extractor, self.supervisor, self.console)

    def run(self) -> SummaryReport:
        if self.config.analyze_dir:
            return self.analyze(Path(self.config.analyze_dir))

        self.reporter.print_config()
        self.console.print("Testing database connection...", style="warning")
        version = self.db.check_connectivity()
        self.reporter.print_connected(version)
        self.runner.check_available()
        self.runner.initialize()

        results_dir = self._create_results_dir()
        results = self.runner.run(self.profiles, results_dir)
        self.console.print("🎉 All tests completed!", style="success")
        self.console.print(f"Results directory: {results_dir}", style="info", markup=False)
        self.console.print()
        return self._report(results, results_dir)

    def analyze(self, results_dir: Path) -> SummaryReport:
        if not results_dir.is_dir():
            raise ResultsDirectoryError(f"Results directory not found: {results_dir}")
        results: list[RunResult] = []
        for profile in self.profiles:
            path = results_dir / profile.output_filename
            if not path.is_file():
                results.append(
                    RunResult(
                        profile=profile,
                        raw_output_path=path,
                        status="NOT_RUN",
                        error="results file missing",
                    )
                )
                continue
            results.append(
                RunResult.from_metrics(
                    profile=profile,
                    raw_output_path=path,
                    status="OK",
                    metrics=self.extractor.extract(path),
                )
            )
        return self._report(results, results_dir)

    def _report(self, results: list[RunResult], results_dir: Path) -> SummaryReport:
        self.console.print("Analyzing results...", style="warning")
        report = aggregate(results)
        self.reporter.print_analysis(report)
        summary_path = self.reporter.save_summary(report, results_dir)
        csv_path = self.reporter.save_csv(report.results, results_dir)
        self.console.print(f"📁 Summary saved: {summary_path}", style="success", markup=False)
        self.console.print(f"CSV saved: {csv_path}", style="success", markup=False)
        return report

    def _create_results_dir(self) -> Path:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        results_dir = Path(self.config.results_root) / f"test_{timestamp}"
        try:
            results_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ResultsDirectoryError(
                f"Cannot create results directory {results_dir}: {exc}"
            ) from exc
        return results_dir


def main(argv: list[str] | None = None) -> None:
    config = CLI.parse_config(argv)
    app = App(config)
    try:
        app.run()
    except PgPerfError as exc:
        app.reporter.print_fatal(str(exc))
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        app.reporter.print_fatal("Interrupted; any running pgbench process was stopped.")
        raise SystemExit(130)


if __name__ == "__main__":
    main()
