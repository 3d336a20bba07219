from __future__ import annotations

import logging
import os
import re
import sqlite3
import tempfile
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from georisk.db.postgres import PostgresTxRunner
from georisk.errors import StorageError

logger = logging.getLogger(__name__)


def validate_key(key: str) -> str:
    if not re.fullmatch(r"[A-Za-z0-9_.:@-]+", key or ""):
        raise ValueError(f"invalid record store key: {key!r}")
    return key


def _validate_identifier(name: str) -> str:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"invalid SQL identifier: {name}")
    return name


class RecordStore:
    """Durable keyed byte storage with whole-value replace semantics.

    ``write_collection`` either replaces the previous value entirely or raises
    ``StorageError`` and leaves it untouched. ``lock_for`` hands out one
    re-entrant lock per key; callers hold it across read-modify-write.
    """

    backend_name = "abstract"

    def __init__(self) -> None:
        self._locks_guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def lock_for(self, key: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    def read_collection(self, key: str) -> bytes | None:
        raise NotImplementedError

    def write_collection(self, key: str, data: bytes) -> None:
        raise NotImplementedError


class InMemoryRecordStore(RecordStore):
    backend_name = "memory"

    def __init__(self, initial: Mapping[str, bytes] | None = None) -> None:
        super().__init__()
        self._blobs: dict[str, bytes] = {validate_key(k): bytes(v) for k, v in (initial or {}).items()}

    def read_collection(self, key: str) -> bytes | None:
        return self._blobs.get(validate_key(key))

    def write_collection(self, key: str, data: bytes) -> None:
        self._blobs[validate_key(key)] = bytes(data)


class FileRecordStore(RecordStore):
    """One file per key under ``root``; writes go to a temp file and are renamed into place."""

    backend_name = "file"

    def __init__(self, root: str | Path) -> None:
        super().__init__()
        self._root = Path(root).expanduser()
        self._root.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        # ':' is not portable in file names; the original keys use it.
        return self._root / f"{validate_key(key).replace(':', '__')}.json"

    def read_collection(self, key: str) -> bytes | None:
        path = self.path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.error("record_store_read_failed backend=file key=%s error=%s", key, exc)
            raise StorageError(key, f"failed to read collection: {key}") from exc

    def write_collection(self, key: str, data: bytes) -> None:
        path = self.path_for(key)
        tmp_name: str | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(self._root))
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except OSError as exc:
            logger.error("record_store_write_failed backend=file key=%s error=%s", key, exc)
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise StorageError(key, f"failed to write collection: {key}") from exc


class SqliteRecordStore(RecordStore):
    backend_name = "sqlite"

    def __init__(self, db_path: str | Path) -> None:
        super().__init__()
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_database()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._db_path))

    def _initialize_database(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS record_store (
                  key TEXT PRIMARY KEY,
                  payload BLOB NOT NULL
                )
                """
            )
            conn.commit()

    def read_collection(self, key: str) -> bytes | None:
        validate_key(key)
        try:
            with self._connect() as conn:
                row = conn.execute("SELECT payload FROM record_store WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            logger.error("record_store_read_failed backend=sqlite key=%s error=%s", key, exc)
            raise StorageError(key, f"failed to read collection: {key}") from exc
        if row is None:
            return None
        payload = row[0]
        return payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)

    def write_collection(self, key: str, data: bytes) -> None:
        validate_key(key)
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO record_store(key, payload)
                    VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET payload = excluded.payload
                    """,
                    (key, sqlite3.Binary(data)),
                )
                conn.commit()
        except sqlite3.Error as exc:
            logger.error("record_store_write_failed backend=sqlite key=%s error=%s", key, exc)
            raise StorageError(key, f"failed to write collection: {key}") from exc


class PostgresRecordStore(RecordStore):
    backend_name = "postgres"

    def __init__(
        self,
        *,
        tx_runner: Any,
        table_name: str = "georisk_record_store",
        initialize: bool = True,
    ) -> None:
        super().__init__()
        self._tx_runner = tx_runner
        self._table_name = _validate_identifier(table_name)
        if initialize:
            self._initialize_database()

    @classmethod
    def from_dsn(cls, dsn: str, *, table_name: str = "georisk_record_store") -> "PostgresRecordStore":
        return cls(tx_runner=PostgresTxRunner(dsn), table_name=table_name)

    def _initialize_database(self) -> None:
        sql = f"""
            CREATE TABLE IF NOT EXISTS {self._table_name} (
                key TEXT PRIMARY KEY,
                payload BYTEA NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
        """

        def _op(conn: Any) -> None:
            with conn.cursor() as cur:
                cur.execute(sql)

        self._tx_runner.run_in_tx(fn=_op)

    def read_collection(self, key: str) -> bytes | None:
        validate_key(key)
        sql = f"SELECT payload FROM {self._table_name} WHERE key = %s LIMIT 1"

        def _op(conn: Any) -> bytes | None:
            with conn.cursor() as cur:
                cur.execute(sql, (key,))
                row = cur.fetchone()
            if row is None:
                return None
            payload = row[0]
            return payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)

        try:
            return self._tx_runner.run_in_tx(fn=_op)
        except (OSError, RuntimeError) as exc:
            logger.error("record_store_read_failed backend=postgres key=%s error=%s", key, exc)
            raise StorageError(key, f"failed to read collection: {key}") from exc

    def write_collection(self, key: str, data: bytes) -> None:
        validate_key(key)
        sql = f"""
            INSERT INTO {self._table_name} (key, payload, updated_at)
            VALUES (%s, %s, now())
            ON CONFLICT(key) DO UPDATE
            SET payload = EXCLUDED.payload,
                updated_at = EXCLUDED.updated_at
        """

        def _op(conn: Any) -> None:
            with conn.cursor() as cur:
                cur.execute(sql, (key, bytes(data)))

        try:
            self._tx_runner.run_in_tx(fn=_op)
        except (OSError, RuntimeError) as exc:
            logger.error("record_store_write_failed backend=postgres key=%s error=%s", key, exc)
            raise StorageError(key, f"failed to write collection: {key}") from exc


def create_record_store_from_env(environ: Mapping[str, str] | None = None) -> RecordStore:
    env = os.environ if environ is None else environ
    backend = env.get("GEORISK_STORE_BACKEND", "memory").strip().lower() or "memory"
    if backend == "file":
        root = env.get("GEORISK_STORE_DIR", ".local/georisk-store").strip() or ".local/georisk-store"
        return FileRecordStore(root)
    if backend == "sqlite":
        db_path = env.get("GEORISK_STORE_SQLITE_PATH", ".local/georisk-store.sqlite3")
        return SqliteRecordStore(db_path)
    if backend == "postgres":
        dsn = env.get("POSTGRES_DSN", "").strip()
        if not dsn:
            raise ValueError("POSTGRES_DSN must be set when GEORISK_STORE_BACKEND=postgres")
        table_name = env.get("GEORISK_STORE_POSTGRES_TABLE", "georisk_record_store").strip()
        return PostgresRecordStore.from_dsn(dsn, table_name=table_name or "georisk_record_store")
    if backend != "memory":
        raise ValueError(f"unsupported GEORISK_STORE_BACKEND: {backend}")
    return InMemoryRecordStore()
