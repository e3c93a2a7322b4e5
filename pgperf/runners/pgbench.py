import os
import shutil
import subprocess
from pathlib import Path
from typing import Callable

from rich.console import Console

from pgperf.classify import BAND_STYLES, classify
from pgperf.entities import RunResult, TestConfig, TestProfile
from pgperf.errors import InitializationError, LaunchError
from pgperf.extract import MetricExtractor
from pgperf.runners.supervisor import ProcessSupervisor
from pgperf.utils import FormatUtils


class PgbenchRunner:
    def __init__(
        self,
        config: TestConfig,
        extractor: MetricExtractor,
        supervisor: ProcessSupervisor,
        console: Console,
        run_command: Callable[..., subprocess.CompletedProcess] = subprocess.run,
    ) -> None:
        self.config = config
        self.extractor = extractor
        self.supervisor = supervisor
        self.console = console
        self.run_command = run_command

    def connection_args(self) -> list[str]:
        return [
            "-h", self.config.host,
            "-p", str(self.config.port),
            "-U", self.config.user,
        ]

    def environment(self) -> dict[str, str]:
        env = dict(os.environ)
        env["PGPASSWORD"] = self.config.password
        return env

    def build_init_command(self) -> list[str]:
        return [
            self.config.pgbench_bin,
            *self.connection_args(),
            "-i",
            "-s", str(self.config.scale_factor),
            "--quiet",
            self.config.dbname,
        ]

    def build_command(self, profile: TestProfile) -> list[str]:
        command = [
            self.config.pgbench_bin,
            *self.connection_args(),
            "-c", str(profile.clients),
            "-j", str(profile.jobs),
            "-T", str(self.config.duration_s),
        ]
        if self.config.verbose:
            command.extend(["-P", str(self.config.progress_interval_s)])
        command.append(self.config.dbname)
        return command

    def check_available(self) -> str:
        path = shutil.which(self.config.pgbench_bin)
        if path is None:
            raise LaunchError(
                f"pgbench binary {self.config.pgbench_bin!r} not found on PATH."
            )
        return path

    def initialize(self) -> None:
        self.console.print("Setting up test database...", style="warning")
        try:
            completed = self.run_command(
                self.build_init_command(),
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                env=self.environment(),
                check=False,
            )
        except OSError as exc:
            raise LaunchError(f"Cannot start {self.config.pgbench_bin}: {exc}") from exc
        if completed.returncode != 0:
            output = f"{completed.stdout or ''}\n{completed.stderr or ''}".strip()
            tail = "\n".join(output.splitlines()[-10:])
            raise InitializationError(
                f"pgbench initialization failed with exit code {completed.returncode} "
                f"(scale factor {self.config.scale_factor}).\n{tail}".rstrip()
            )
        self.console.print("✅ Test database initialized", style="success")
        self.console.print()

    def run(self, profiles: tuple[TestProfile, ...], results_dir: Path) -> list[RunResult]:
        results: list[RunResult] = []
        for index, profile in enumerate(profiles, start=1):
            self.console.print(
                f"[{index}/{len(profiles)}] Running {profile.name}...",
                style="warning",
                markup=False,
            )
            result = self.run_profile(profile, results_dir)
            self._print_profile_summary(result)
            results.append(result)
        return results

    def run_profile(self, profile: TestProfile, results_dir: Path) -> RunResult:
        self.console.print(f"Description: {profile.description}", markup=False)
        self.console.print(
            f"Clients: {profile.clients}, Jobs: {profile.jobs}, "
            f"Duration: {self.config.duration_s}s",
            markup=False,
        )
        output_path = results_dir / profile.output_filename
        outcome = self.supervisor.run(
            self.build_command(profile),
            self.environment(),
            output_path,
            self.config.duration_s,
        )

        status = "OK"
        error = ""
        if outcome.timed_out:
            status = "TIMEOUT"
            error = (
                f"pgbench exceeded {self.config.duration_s + self.supervisor.timeout_grace_s}s "
                "and was stopped"
            )
            self.console.print(f"⚠️  {error}", style="error", markup=False)
        elif outcome.exit_code != 0:
            status = "FAIL_EXIT"
            error = f"pgbench exited with code {outcome.exit_code}"
            self.console.print(
                f"⚠️  Test may have encountered issues (exit code: {outcome.exit_code})",
                style="error",
            )

        # The child has been reaped by now, so the capture file is complete.
        metrics = self.extractor.extract(output_path)
        if metrics.is_empty:
            self.console.print("⚠️  No metrics recognized in pgbench output", style="warning")
        return RunResult.from_metrics(
            profile=profile,
            raw_output_path=output_path,
            status=status,
            metrics=metrics,
            exit_code=outcome.exit_code,
            elapsed_s=outcome.elapsed_s,
            error=error,
        )

    def _print_profile_summary(self, result: RunResult) -> None:
        self.console.print(f"✅ {result.profile.name} completed", style="success", markup=False)
        self.console.print("Quick Results Summary:", style="label")
        if result.tps is not None:
            band = classify(result.tps)
            self.console.print(f"• Transactions per second: {FormatUtils.tps(result.tps)}")
            self.console.print(f"• Average latency: {FormatUtils.millis(result.latency_ms)}")
            self.console.print(
                f"• Performance: [{BAND_STYLES[band]}]{band.label}[/]"
            )
        else:
            self.console.print("• Results will be analyzed at the end")
        self.console.print(f"Results saved to: {result.raw_output_path}", markup=False)
        self.console.print()
