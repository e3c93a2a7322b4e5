import subprocess
import time
from pathlib import Path
from typing import Any, Callable

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskID, TextColumn, TimeElapsedColumn

from pgperf.console import make_console
from pgperf.entities import ProcessOutcome
from pgperf.errors import LaunchError

ESTIMATE_AFTER_S = 5


class ProgressEstimator:
    def __init__(self, duration_s: int) -> None:
        self.duration_s = max(1, int(duration_s))

    def percent(self, elapsed_s: float) -> int:
        return min(100, int(elapsed_s * 100 // self.duration_s))

    def remaining(self, elapsed_s: float) -> int | None:
        if elapsed_s <= ESTIMATE_AFTER_S:
            return None
        return self.duration_s - int(elapsed_s)

    def render(self, elapsed_s: float) -> str:
        line = f"Progress: [{self.percent(elapsed_s):3d}%] {int(elapsed_s)}s/{self.duration_s}s "
        remaining = self.remaining(elapsed_s)
        if remaining is None:
            return line
        if remaining > 0:
            return f"{line}(~{remaining}s remaining)"
        return f"{line}(finishing...)"


class ProcessSupervisor:
    """Runs one pgbench process to completion without touching its output.

    The child writes straight into ``output_path``; the supervisor only polls
    for liveness and reports wall-clock progress on the console.
    """

    def __init__(
        self,
        console: Console | None = None,
        poll_interval_s: float = 2.0,
        timeout_grace_s: int = 120,
        kill_after_s: float = 10.0,
        popen: Callable[..., Any] = subprocess.Popen,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.console = console or make_console()
        self.poll_interval_s = poll_interval_s
        self.timeout_grace_s = timeout_grace_s
        self.kill_after_s = kill_after_s
        self.popen = popen
        self.clock = clock
        self.sleep = sleep

    def run(
        self,
        command: list[str],
        env: dict[str, str],
        output_path: Path,
        duration_s: int,
    ) -> ProcessOutcome:
        estimator = ProgressEstimator(duration_s)
        deadline = duration_s + self.timeout_grace_s if self.timeout_grace_s > 0 else None
        try:
            with open(output_path, "wb") as output:
                started = self.clock()
                process = self._launch(command, env, output)
                try:
                    with self._progress() as progress:
                        task = progress.add_task(
                            "pgbench", total=estimator.duration_s, status=estimator.render(0)
                        )
                        timed_out = self._watch(process, started, estimator, deadline, progress, task)
                        exit_code = process.wait()
                        elapsed = self.clock() - started
                        if timed_out:
                            status = f"Progress: timed out after {int(elapsed)}s, process stopped."
                        else:
                            status = "Progress: [100%] Complete!"
                        progress.update(
                            task, completed=estimator.duration_s, status=status, refresh=True
                        )
                except BaseException:
                    self._terminate(process)
                    raise
        except KeyboardInterrupt:
            output_path.unlink(missing_ok=True)
            raise
        except LaunchError:
            output_path.unlink(missing_ok=True)
            raise

        return ProcessOutcome(exit_code=int(exit_code), elapsed_s=elapsed, timed_out=timed_out)

    def _progress(self) -> Progress:
        return Progress(
            TextColumn("{task.fields[status]}", markup=False),
            BarColumn(),
            TimeElapsedColumn(),
            console=self.console,
            auto_refresh=False,
            get_time=self.clock,
            transient=False,
        )

    def _launch(self, command: list[str], env: dict[str, str], output: Any) -> Any:
        try:
            return self.popen(
                command,
                stdin=subprocess.DEVNULL,
                stdout=output,
                stderr=subprocess.STDOUT,
                env=env,
            )
        except OSError as exc:
            raise LaunchError(f"Cannot start {command[0]}: {exc}") from exc

    def _watch(
        self,
        process: Any,
        started: float,
        estimator: ProgressEstimator,
        deadline: int | None,
        progress: Progress,
        task: TaskID,
    ) -> bool:
        while process.poll() is None:
            elapsed = self.clock() - started
            if deadline is not None and elapsed > deadline:
                self._terminate(process)
                return True
            progress.update(
                task,
                completed=min(elapsed, estimator.duration_s),
                status=estimator.render(elapsed),
                refresh=True,
            )
            self.sleep(self.poll_interval_s)
        return False

    def _terminate(self, process: Any) -> None:
        if process.poll() is not None:
            return
        process.terminate()
        try:
            process.wait(timeout=self.kill_after_s)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()
