"""SQLite implementation of DatabaseService."""

import sqlite3
import threading
from contextlib import contextmanager
from queue import Empty, Queue
from typing import Any, Iterator

from csvimp.errors import StatementError
from csvimp.service import DatabaseService
from csvimp.types import Params


class SQLiteDatabaseService(DatabaseService):
    """SQLite backend using stdlib sqlite3.

    Thread-safe via a connection pool (Queue). Each transaction() call
    acquires a dedicated connection and returns it on exit.

    Connections run with ``isolation_level=None`` so that transaction
    boundaries are exactly the ones issued here: an explicit BEGIN in
    transaction(), none in autocommit(). Savepoints then nest inside the
    outer transaction instead of opening (and committing) their own.
    """

    def __init__(self, db_path: str, pool_size: int = 4):
        self._db_path = db_path
        self._pool_size = pool_size
        self._pool: Queue[sqlite3.Connection] = Queue(maxsize=pool_size)
        self._local = threading.local()

    def connect(self) -> None:
        for _ in range(self._pool_size):
            conn = sqlite3.connect(
                self._db_path, check_same_thread=False, isolation_level=None
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
            self._pool.put(conn)

    def close(self) -> None:
        while not self._pool.empty():
            try:
                conn = self._pool.get_nowait()
                conn.close()
            except Empty:
                break

    def _acquire(self) -> sqlite3.Connection:
        return self._pool.get(timeout=30)

    def _release(self, conn: sqlite3.Connection) -> None:
        self._pool.put(conn)

    def _get_conn(self) -> sqlite3.Connection:
        """Get the connection bound to the current transaction."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            return conn
        raise RuntimeError(
            "No active transaction. Wrap calls in a `with service.transaction():` block."
        )

    def placeholder(self, name: str) -> str:
        return f":{name}"

    @contextmanager
    def transaction(self) -> Iterator[None]:
        conn = self._acquire()
        self._local.conn = conn
        try:
            conn.execute("BEGIN")
            yield
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._local.conn = None
            self._release(conn)

    @contextmanager
    def autocommit(self) -> Iterator[None]:
        conn = self._acquire()
        self._local.conn = conn
        try:
            yield
        finally:
            self._local.conn = None
            self._release(conn)

    def execute(self, sql: str, params: Params | None = None) -> list[dict[str, Any]]:
        conn = self._get_conn()
        cursor = conn.execute(sql, params or ())
        if cursor.description is None:
            return []
        columns = [desc[0] for desc in cursor.description]
        return [dict(zip(columns, row)) for row in cursor.fetchall()]

    def execute_statement(self, sql: str, params: Params | None = None) -> int:
        conn = self._get_conn()
        try:
            cursor = conn.execute(sql, params or {})
        except sqlite3.Error as e:
            raise StatementError(str(e)) from e
        return cursor.rowcount

    def execute_ddl(self, sql: str) -> None:
        conn = self._acquire()
        try:
            conn.executescript(sql)
        finally:
            self._release(conn)

    def table_columns(self, table: str) -> list[str]:
        conn = self._acquire()
        try:
            cursor = conn.execute(f"PRAGMA table_info({table})")
            return [row["name"] for row in cursor.fetchall()]
        finally:
            self._release(conn)
