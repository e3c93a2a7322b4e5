"""End-to-end tests for main.App and main.main with fake psycopg and pgbench."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any

import pytest

import main
from conftest import (
    FAILED_RUN_OUTPUT,
    PGBENCH_12_OUTPUT,
    PGBENCH_16_OUTPUT,
    FakePsycopg,
    ScriptedSupervisor,
    make_config,
    make_console,
    write_output,
)
from pgperf.entities import DEFAULT_PROFILES, Dependencies, ProcessOutcome
from pgperf.errors import ConnectivityError
from pgperf.report import CSV_FILENAME, SUMMARY_FILENAME
from pgperf.runners.pgbench import PgbenchRunner


@pytest.fixture()
def fake_psycopg(monkeypatch: pytest.MonkeyPatch) -> FakePsycopg:
    fake = FakePsycopg()
    monkeypatch.setattr(main.DependencyProvider, "load", lambda self: Dependencies(psycopg=fake))
    return fake


def _ok_init(command: list[str], **kwargs: Any) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(command, 0, stdout="", stderr="")


class _FinishedProcess:
    returncode = 0

    def poll(self) -> int:
        return 0

    def wait(self, timeout: float | None = None) -> int:
        return 0


def test_connectivity_failure_aborts_before_any_profile(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, fake_psycopg: FakePsycopg
) -> None:
    fake_psycopg.fail = True
    attempted: list[str] = []

    def record_profile(self: PgbenchRunner, profile: Any, results_dir: Path) -> None:
        attempted.append(profile.name)

    monkeypatch.setattr(PgbenchRunner, "run_profile", record_profile)
    monkeypatch.setattr(PgbenchRunner, "initialize", lambda self: attempted.append("init"))

    with pytest.raises(SystemExit) as excinfo:
        main.main(["--results-root", str(tmp_path / "results")])

    assert excinfo.value.code == 1
    assert attempted == []
    assert not (tmp_path / "results").exists()
    assert len(fake_psycopg.calls) == 1


def test_connectivity_check_uses_config(fake_psycopg: FakePsycopg) -> None:
    app = main.App(make_config(), console=make_console())
    version = app.db.check_connectivity()
    assert version.startswith("PostgreSQL 16.2")
    assert fake_psycopg.cursor.executed == ["SELECT version();"]
    assert fake_psycopg.calls == [
        {
            "host": "db.internal",
            "port": 5433,
            "user": "bench",
            "password": "s3cret",
            "dbname": "perf",
            "connect_timeout": 10,
        }
    ]


def test_connectivity_error_message(fake_psycopg: FakePsycopg) -> None:
    fake_psycopg.fail = True
    app = main.App(make_config(), console=make_console())
    with pytest.raises(ConnectivityError, match="db.internal:5433/perf"):
        app.db.check_connectivity()


def test_missing_pgbench_exits_non_zero(tmp_path: Path, fake_psycopg: FakePsycopg) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main.main(
            [
                "--results-root", str(tmp_path),
                "--pgbench-bin", "definitely-not-a-pgbench-binary",
            ]
        )
    assert excinfo.value.code == 1


def test_full_battery(tmp_path: Path, fake_psycopg: FakePsycopg) -> None:
    console = make_console()
    app = main.App(make_config(results_root=str(tmp_path)), console=console)
    app.runner.check_available = lambda: "/usr/bin/pgbench"
    app.runner.run_command = _ok_init
    ok = ProcessOutcome(exit_code=0, elapsed_s=60.0)
    app.runner.supervisor = ScriptedSupervisor(
        [
            (PGBENCH_16_OUTPUT, ok),
            (PGBENCH_12_OUTPUT, ok),
            (FAILED_RUN_OUTPUT, ProcessOutcome(exit_code=1, elapsed_s=0.5)),
            ("tps = 40.000000 (including connections establishing)\n", ok),
        ]
    )

    report = app.run()

    results_dirs = list(tmp_path.glob("test_*"))
    assert len(results_dirs) == 1
    results_dir = results_dirs[0]
    assert sorted(p.name for p in results_dir.iterdir()) == sorted(
        [
            "simple_test_results.txt",
            "load_test_results.txt",
            "stress_test_results.txt",
            "connection_test_results.txt",
            SUMMARY_FILENAME,
            CSV_FILENAME,
        ]
    )
    assert report.best.profile.name == "Simple_Test"
    assert report.worst.profile.name == "Connection_Test"
    assert report.recommendation.concerns
    assert report.results[2].status == "FAIL_EXIT"

    rendered = console.export_text(styles=False)
    assert "PARSING ERROR" in rendered
    assert "Performance Concerns" in rendered
    summary = (results_dir / SUMMARY_FILENAME).read_text(encoding="utf-8")
    assert "Best performing: Simple_Test (733.22 TPS)" in summary


def test_analyze_only(tmp_path: Path, fake_psycopg: FakePsycopg) -> None:
    write_output(tmp_path, "simple_test_results.txt", PGBENCH_16_OUTPUT)
    write_output(tmp_path, "load_test_results.txt", PGBENCH_12_OUTPUT)
    console = make_console()
    app = main.App(make_config(analyze_dir=str(tmp_path)), console=console)

    report = app.run()

    assert [item.status for item in report.results] == ["OK", "OK", "NOT_RUN", "NOT_RUN"]
    assert report.best.profile.name == "Simple_Test"
    assert report.worst.profile.name == "Load_Test"
    assert not report.recommendation.concerns
    assert (tmp_path / SUMMARY_FILENAME).exists()
    assert fake_psycopg.calls == []


def test_analyze_only_missing_directory(tmp_path: Path, fake_psycopg: FakePsycopg) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main.main(["--analyze-only", str(tmp_path / "nope")])
    assert excinfo.value.code == 1


def test_progress_is_rendered_on_app_console(tmp_path: Path, fake_psycopg: FakePsycopg) -> None:
    console = make_console()
    app = main.App(make_config(duration_s=5), console=console)
    app.supervisor.popen = lambda command, **kwargs: _FinishedProcess()

    result = app.runner.run_profile(DEFAULT_PROFILES[0], tmp_path)

    assert app.runner.supervisor is app.supervisor
    assert result.status == "OK"
    rendered = console.export_text(styles=False)
    assert "Progress: [100%] Complete!" in rendered
    assert "No metrics recognized in pgbench output" in rendered
