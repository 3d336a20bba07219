from __future__ import annotations

from collections.abc import Callable
from typing import Any


def _import_psycopg() -> Any:
    try:
        import psycopg  # type: ignore
    except ImportError as exc:
        raise RuntimeError("psycopg is required for the postgres record store; install psycopg[binary]") from exc
    return psycopg


class PostgresTxRunner:
    """Run callback logic inside one PostgreSQL transaction."""

    def __init__(self, dsn: str) -> None:
        if not dsn.strip():
            raise ValueError("POSTGRES_DSN must not be empty")
        self._dsn = dsn.strip()

    def run_in_tx(self, *, fn: Callable[[Any], Any]) -> Any:
        psycopg = _import_psycopg()
        try:
            with psycopg.connect(self._dsn) as conn:
                result = fn(conn)
                conn.commit()
                return result
        except psycopg.Error as exc:
            raise RuntimeError(f"postgres transaction failed: {exc}") from exc
