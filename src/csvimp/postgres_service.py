"""PostgreSQL implementation of DatabaseService."""

import threading
from contextlib import contextmanager
from queue import Empty, Queue
from typing import Any, Iterator

import psycopg2
import psycopg2.extras

from csvimp.errors import StatementError
from csvimp.service import DatabaseService
from csvimp.types import Params

COLUMNS_SQL = """
SELECT column_name
  FROM information_schema.columns
 WHERE table_name = %s
   AND table_schema = ANY (current_schemas(false))
 ORDER BY ordinal_position
"""


class PostgresDatabaseService(DatabaseService):
    """PostgreSQL backend using psycopg2.

    Thread-safe via a connection pool (Queue). Each transaction() call
    acquires a dedicated connection and returns it on exit.
    """

    def __init__(self, dsn: str, pool_size: int = 4):
        self._dsn = dsn
        self._pool_size = pool_size
        self._pool: Queue = Queue(maxsize=pool_size)
        self._local = threading.local()

    def connect(self) -> None:
        for _ in range(self._pool_size):
            conn = psycopg2.connect(self._dsn)
            conn.autocommit = False
            self._pool.put(conn)

    def close(self) -> None:
        while not self._pool.empty():
            try:
                conn = self._pool.get_nowait()
                conn.close()
            except Empty:
                break

    def _acquire(self):
        return self._pool.get(timeout=30)

    def _release(self, conn) -> None:
        self._pool.put(conn)

    def _get_conn(self):
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            return conn
        raise RuntimeError(
            "No active transaction. Wrap calls in a `with service.transaction():` block."
        )

    def placeholder(self, name: str) -> str:
        return f"%({name})s"

    @contextmanager
    def transaction(self) -> Iterator[None]:
        conn = self._acquire()
        self._local.conn = conn
        try:
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
        conn.autocommit = True
        self._local.conn = conn
        try:
            yield
        finally:
            conn.autocommit = False
            self._local.conn = None
            self._release(conn)

    def execute(self, sql: str, params: Params | None = None) -> list[dict[str, Any]]:
        conn = self._get_conn()
        with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(sql, params or ())
            if cur.description is None:
                return []
            return [dict(row) for row in cur.fetchall()]

    def execute_statement(self, sql: str, params: Params | None = None) -> int:
        conn = self._get_conn()
        try:
            with conn.cursor() as cur:
                # psycopg2 only interprets %-escapes when parameters are given.
                cur.execute(sql, params or None)
                return cur.rowcount
        except psycopg2.Error as e:
            raise StatementError((e.pgerror or str(e)).strip()) from e

    def execute_ddl(self, sql: str) -> None:
        conn = self._acquire()
        try:
            with conn.cursor() as cur:
                for statement in sql.split(";"):
                    statement = statement.strip()
                    if statement:
                        cur.execute(statement)
            conn.commit()
        finally:
            self._release(conn)

    def table_columns(self, table: str) -> list[str]:
        conn = self._acquire()
        try:
            with conn.cursor() as cur:
                cur.execute(COLUMNS_SQL, (table,))
                columns = [row[0] for row in cur.fetchall()]
            conn.commit()
            return columns
        finally:
            self._release(conn)
