import argparse
import os

from dotenv import load_dotenv

from pgperf.entities import TestConfig
from pgperf.extract import load_pattern_file

load_dotenv()

TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in TRUE_VALUES


def env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise SystemExit(f"{name} must be an integer, got {value!r}.") from exc


class CLI:
    @staticmethod
    def build_parser() -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            description=(
                "Run a fixed pgbench battery against PostgreSQL and summarize "
                "the results in plain language. The password is read from "
                "POSTGRES_PASSWORD only."
            )
        )
        parser.add_argument(
            "--host",
            default=os.getenv("POSTGRES_HOST", "localhost"),
            help="Database host (or set POSTGRES_HOST).",
        )
        parser.add_argument(
            "--port",
            type=int,
            default=env_int("POSTGRES_PORT", 5432),
            help="Database port (or set POSTGRES_PORT).",
        )
        parser.add_argument(
            "--user",
            default=os.getenv("POSTGRES_USER", "postgres"),
            help="Database user (or set POSTGRES_USER).",
        )
        parser.add_argument(
            "--dbname",
            default=os.getenv("POSTGRES_DB", "testdb"),
            help="Database name (or set POSTGRES_DB).",
        )
        parser.add_argument(
            "--scale",
            type=int,
            default=env_int("SCALE_FACTOR", 10),
            help="pgbench scale factor used for initialization (or set SCALE_FACTOR).",
        )
        parser.add_argument(
            "--duration",
            type=int,
            default=env_int("TEST_DURATION", 60),
            help="Duration of each test in seconds (or set TEST_DURATION).",
        )
        parser.add_argument(
            "--verbose",
            action="store_true",
            default=env_flag("VERBOSE_MODE"),
            help="Ask pgbench for periodic progress and show raw summary lines (or set VERBOSE_MODE=true).",
        )
        parser.add_argument(
            "--results-root",
            default=os.getenv("RESULTS_ROOT", "./results"),
            help="Directory under which a timestamped results directory is created.",
        )
        parser.add_argument(
            "--pgbench-bin",
            default=os.getenv("PGBENCH_BIN", "pgbench"),
            help="pgbench executable name or path.",
        )
        parser.add_argument(
            "--progress-interval",
            type=int,
            default=30,
            help="pgbench -P interval in seconds, used only in verbose mode.",
        )
        parser.add_argument(
            "--poll-interval",
            type=float,
            default=2.0,
            help="Seconds between liveness checks of the running pgbench process.",
        )
        parser.add_argument(
            "--timeout-grace",
            type=int,
            default=120,
            help="Seconds past the test duration before pgbench is stopped (0 disables).",
        )
        parser.add_argument(
            "--connect-timeout",
            type=int,
            default=10,
            help="Connection timeout in seconds for the connectivity check.",
        )
        parser.add_argument(
            "--patterns-file",
            default=None,
            help="JSON file with extra extraction patterns per metric, tried before the built-ins.",
        )
        parser.add_argument(
            "--analyze-only",
            metavar="RESULTS_DIR",
            default=None,
            help="Analyze an existing results directory without running pgbench.",
        )
        return parser

    @staticmethod
    def parse_config(argv: list[str] | None = None) -> TestConfig:
        parser = CLI.build_parser()
        args = parser.parse_args(argv)
        CLI._validate(parser, args)
        extra_patterns: dict[str, list[str]] = {}
        if args.patterns_file:
            try:
                extra_patterns = load_pattern_file(args.patterns_file)
            except (OSError, ValueError) as exc:
                parser.error(f"--patterns-file: {exc}")
        return TestConfig(
            host=args.host,
            port=args.port,
            user=args.user,
            password=os.getenv("POSTGRES_PASSWORD", "postgres"),
            dbname=args.dbname,
            scale_factor=args.scale,
            duration_s=args.duration,
            verbose=args.verbose,
            results_root=args.results_root,
            pgbench_bin=args.pgbench_bin,
            progress_interval_s=args.progress_interval,
            poll_interval_s=args.poll_interval,
            timeout_grace_s=args.timeout_grace,
            connect_timeout_s=args.connect_timeout,
            extra_patterns=extra_patterns,
            analyze_dir=args.analyze_only,
        )

    @staticmethod
    def _validate(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
        if not args.host:
            parser.error("--host cannot be empty.")
        if not 1 <= args.port <= 65535:
            parser.error("--port must be in 1..65535.")
        if not args.user:
            parser.error("--user cannot be empty.")
        if not args.dbname:
            parser.error("--dbname cannot be empty.")
        if args.scale < 1:
            parser.error("--scale must be > 0.")
        if args.duration < 1:
            parser.error("--duration must be > 0.")
        if args.progress_interval < 1:
            parser.error("--progress-interval must be > 0.")
        if args.poll_interval <= 0:
            parser.error("--poll-interval must be > 0.")
        if args.timeout_grace < 0:
            parser.error("--timeout-grace must be >= 0.")
        if args.connect_timeout < 1:
            parser.error("--connect-timeout must be > 0.")
        if not args.results_root:
            parser.error("--results-root cannot be empty.")
