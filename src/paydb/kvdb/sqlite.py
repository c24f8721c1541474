"""SQLite engine.

Every bucket and scalar is a row in kv_nodes, linked to its parent bucket by
parent_id. Top-level buckets hang off the virtual row id 0. Each transaction
gets its own connection; WAL mode lets readers run beside the single writer.
"""

import sqlite3
from pathlib import Path
from typing import Any, Callable, Optional, Union

import structlog
from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from paydb.core.errors import BackendNotFoundError, StoreOperationError
from paydb.kvdb.base import Backend, EntryKind, Tx

log = structlog.get_logger()

ROOT_ID = 0

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv_nodes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    parent_id INTEGER NOT NULL,
    key BLOB NOT NULL,
    value BLOB,
    is_bucket INTEGER NOT NULL DEFAULT 0,
    UNIQUE (parent_id, key)
);
"""

DELETE_SUBTREE_SQL = """
WITH RECURSIVE subtree(id) AS (
    SELECT ?
    UNION ALL
    SELECT n.id FROM kv_nodes n JOIN subtree s ON n.parent_id = s.id
)
DELETE FROM kv_nodes WHERE id IN (SELECT id FROM subtree)
"""


def _is_locked(exc: BaseException) -> bool:
    return isinstance(exc, sqlite3.OperationalError) and "locked" in str(exc)


def _blob(value: Optional[bytes]) -> bytes:
    # Zero-length blobs may come back as NULL
    return b"" if value is None else bytes(value)


class SqliteTx(Tx):
    def __init__(
        self,
        conn: sqlite3.Connection,
        writable: bool,
        on_close: Optional[Callable[[], None]],
    ) -> None:
        super().__init__(writable, on_close)
        self._conn = conn

    def _execute(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as e:
            raise StoreOperationError("sqlite operation failed", cause=e) from e

    @property
    def _root_ref(self) -> int:
        return ROOT_ID

    def _lookup(self, ref: int, key: bytes):
        row = self._execute(
            "SELECT id, value, is_bucket FROM kv_nodes WHERE parent_id = ? AND key = ?",
            (ref, key),
        ).fetchone()
        if row is None:
            return EntryKind.ABSENT, None, None
        if row[2]:
            return EntryKind.BUCKET, None, row[0]
        return EntryKind.SCALAR, _blob(row[1]), None

    def _entries(self, ref: int) -> list[tuple[bytes, Optional[bytes]]]:
        rows = self._execute(
            "SELECT key, value, is_bucket FROM kv_nodes WHERE parent_id = ? ORDER BY key",
            (ref,),
        ).fetchall()
        return [
            (bytes(key), None if is_bucket else _blob(value))
            for key, value, is_bucket in rows
        ]

    def _put(self, ref: int, key: bytes, value: bytes) -> None:
        self._execute(
            """
            INSERT INTO kv_nodes (parent_id, key, value, is_bucket)
            VALUES (?, ?, ?, 0)
            ON CONFLICT (parent_id, key) DO UPDATE SET value = excluded.value
            """,
            (ref, key, value),
        )

    def _delete(self, ref: int, key: bytes) -> None:
        self._execute(
            "DELETE FROM kv_nodes WHERE parent_id = ? AND key = ? AND is_bucket = 0",
            (ref, key),
        )

    def _create_bucket(self, ref: int, key: bytes) -> int:
        cursor = self._execute(
            "INSERT INTO kv_nodes (parent_id, key, value, is_bucket) VALUES (?, ?, NULL, 1)",
            (ref, key),
        )
        return cursor.lastrowid

    def _delete_bucket(self, ref: int, key: bytes, child: int) -> None:
        self._execute(DELETE_SUBTREE_SQL, (child,))

    def _do_commit(self) -> None:
        try:
            self._execute("COMMIT")
        finally:
            self._conn.close()

    def _do_rollback(self) -> None:
        try:
            self._execute("ROLLBACK")
        finally:
            self._conn.close()


class SqliteBackend(Backend):
    """File-backed engine.

    Args:
        path: Database file; parent directories are created.
        lock_retries: Attempts to take the write lock before giving up.
        create: Create a missing database file. When False a missing file
            raises BackendNotFoundError instead.
    """

    def __init__(
        self,
        path: Union[str, Path],
        lock_retries: int = 5,
        create: bool = True,
    ) -> None:
        super().__init__()
        if str(path) == ":memory:":
            raise ValueError("SqliteBackend needs a file path; use MemoryBackend instead")

        self._path = Path(path)
        self._lock_retries = max(1, lock_retries)
        if not self._path.exists():
            if not create:
                raise BackendNotFoundError(f"database not found: {self._path}")
            self._path.parent.mkdir(parents=True, exist_ok=True)

        conn = self._connect()
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(SCHEMA_SQL)
        except sqlite3.Error as e:
            raise StoreOperationError(f"cannot initialize {self._path}", cause=e) from e
        finally:
            conn.close()

        log.debug("sqlite_backend_opened", path=str(self._path))

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(str(self._path), timeout=1.0, isolation_level=None)
        except sqlite3.Error as e:
            raise StoreOperationError(f"cannot open {self._path}", cause=e) from e
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def _begin_immediate(self, conn: sqlite3.Connection) -> None:
        for attempt in Retrying(
            retry=retry_if_exception(_is_locked),
            stop=stop_after_attempt(self._lock_retries),
            wait=wait_exponential(multiplier=0.05, max=1.0),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    log.warning(
                        "sqlite_write_lock_retry",
                        path=str(self._path),
                        attempt=attempt.retry_state.attempt_number,
                    )
                conn.execute("BEGIN IMMEDIATE")

    def _begin(self, writable: bool, on_close: Optional[Callable[[], None]]) -> SqliteTx:
        conn = self._connect()
        try:
            if writable:
                self._begin_immediate(conn)
            else:
                conn.execute("BEGIN")
        except sqlite3.Error as e:
            conn.close()
            raise StoreOperationError(f"cannot begin transaction on {self._path}", cause=e) from e
        return SqliteTx(conn, writable, on_close)
