from typing import Any

from pgperf.entities import TestConfig
from pgperf.errors import ConnectivityError


class DatabaseManager:
    def __init__(self, config: TestConfig, psycopg: Any) -> None:
        self.config = config
        self.psycopg = psycopg

    def connect_kwargs(self) -> dict[str, Any]:
        return {
            "host": self.config.host,
            "port": self.config.port,
            "user": self.config.user,
            "password": self.config.password,
            "dbname": self.config.dbname,
            "connect_timeout": self.config.connect_timeout_s,
        }

    def check_connectivity(self) -> str:
        try:
            with self.psycopg.connect(**self.connect_kwargs()) as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT version();")
                    row = cur.fetchone()
        except self.psycopg.Error as exc:
            raise ConnectivityError(
                f"Cannot connect to database {self.config.target} "
                f"as {self.config.user}: {type(exc).__name__}: {exc}"
            ) from exc
        if row is None:
            raise ConnectivityError(
                f"Version probe on {self.config.target} returned no rows."
            )
        return str(row[0])
