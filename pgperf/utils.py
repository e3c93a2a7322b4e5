from pgperf.entities import Dependencies


class DependencyProvider:
    def load(self) -> Dependencies:
        try:
            import psycopg
        except ImportError as exc:
            raise SystemExit(
                "psycopg is not installed. Install with: pip install 'psycopg[binary]'"
            ) from exc
        return Dependencies(psycopg=psycopg)


class FormatUtils:
    @staticmethod
    def tps(value: float | None) -> str:
        return "N/A" if value is None else f"{value:.2f}"

    @staticmethod
    def millis(value: float | None) -> str:
        return "N/A" if value is None else f"{value:.3f}ms"

    @staticmethod
    def count(value: int | None) -> str:
        return "0" if value is None else str(value)
