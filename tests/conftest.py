"""Shared test helpers: sample pgbench reports, a config factory and fake collaborators."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any

from rich.console import Console

from pgperf.console import THEME
from pgperf.entities import ProcessOutcome, TestConfig

PGBENCH_16_OUTPUT = """\
pgbench (16.2)
starting vacuum...end.
transaction type: <builtin: TPC-B (sort of)>
scaling factor: 10
query mode: simple
number of clients: 5
number of threads: 2
maximum number of tries: 1
duration: 60 s
number of transactions actually processed: 43993
number of failed transactions: 0 (0.000%)
latency average = 6.819 ms
initial connection time = 12.345 ms
tps = 733.221034 (without initial connection time)
"""

PGBENCH_12_OUTPUT = """\
starting vacuum...end.
transaction type: <builtin: TPC-B (sort of)>
scaling factor: 10
query mode: simple
number of clients: 20
number of threads: 4
duration: 60 s
number of transactions actually processed: 39012
latency average = 30.761 ms
tps = 650.174412 (including connections establishing)
tps = 651.002300 (excluding connections establishing)
"""

FAILED_RUN_OUTPUT = """\
pgbench: error: connection to server on socket "/var/run/postgresql/.s.PGSQL.5432" failed: FATAL:  sorry, too many clients already
pgbench: error: could not create connection for client 97
"""


def make_config(**overrides: Any) -> TestConfig:
    base: dict[str, Any] = {
        "host": "db.internal",
        "port": 5433,
        "user": "bench",
        "password": "s3cret",
        "dbname": "perf",
        "scale_factor": 10,
        "duration_s": 60,
        "verbose": False,
        "results_root": "./results",
    }
    base.update(overrides)
    return TestConfig(**base)


def make_console() -> Console:
    return Console(file=io.StringIO(), theme=THEME, width=120, record=True, highlight=False)


def write_output(directory: Path, name: str, text: str) -> Path:
    path = directory / name
    path.write_text(text, encoding="utf-8")
    return path


class FakeCursor:
    def __init__(self, row: tuple | None) -> None:
        self.row = row
        self.executed: list[str] = []

    def __enter__(self) -> FakeCursor:
        return self

    def __exit__(self, *exc: object) -> None:
        return None

    def execute(self, sql: str) -> None:
        self.executed.append(sql)

    def fetchone(self) -> tuple | None:
        return self.row


class FakeConnection:
    def __init__(self, cursor: FakeCursor) -> None:
        self._cursor = cursor

    def __enter__(self) -> FakeConnection:
        return self

    def __exit__(self, *exc: object) -> None:
        return None

    def cursor(self) -> FakeCursor:
        return self._cursor


class FakePsycopg:
    """Stands in for the psycopg module: ``connect`` and ``Error`` only."""

    class Error(Exception):
        pass

    class OperationalError(Error):
        pass

    def __init__(self, row: tuple | None = ("PostgreSQL 16.2 on x86_64-pc-linux-gnu",), fail: bool = False) -> None:
        self.row = row
        self.fail = fail
        self.calls: list[dict[str, Any]] = []
        self.cursor = FakeCursor(row)

    def connect(self, **kwargs: Any) -> FakeConnection:
        self.calls.append(kwargs)
        if self.fail:
            raise self.OperationalError('connection to server at "db.internal" failed: Connection refused')
        return FakeConnection(self.cursor)


class ScriptedSupervisor:
    """Writes a canned pgbench report per run instead of launching anything."""

    timeout_grace_s = 120

    def __init__(self, outputs: list[tuple[str, ProcessOutcome]]) -> None:
        self.outputs = list(outputs)
        self.calls: list[tuple[list[str], dict[str, str], Path, int]] = []

    def run(self, command: list[str], env: dict[str, str], output_path: Path, duration_s: int) -> ProcessOutcome:
        self.calls.append((command, env, output_path, duration_s))
        text, outcome = self.outputs.pop(0)
        output_path.write_text(text, encoding="utf-8")
        return outcome

