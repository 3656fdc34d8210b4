"""Abstract DatabaseService interface."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator

from csvimp.types import Params


class DatabaseService(ABC):
    """Database-agnostic statement executor used by the import engine.

    Design principles:
    - Stateless: no mutable state beyond the connection pool
    - Thread-safe: each transaction() acquires its own connection
    - DB-agnostic: callers program against this ABC, never a concrete backend

    Savepoint calls only make sense inside ``transaction()``; the engine
    never issues them for an ``autocommit()`` run.
    """

    @abstractmethod
    def connect(self) -> None:
        """Initialize the connection pool."""

    @abstractmethod
    def close(self) -> None:
        """Close all connections and release resources."""

    @abstractmethod
    def placeholder(self, name: str) -> str:
        """Return the bind marker for the named parameter ``name``."""

    @abstractmethod
    def execute(self, sql: str, params: Params | None = None) -> list[dict[str, Any]]:
        """Execute a single SQL statement and return rows as dicts."""

    @abstractmethod
    def execute_statement(self, sql: str, params: Params | None = None) -> int:
        """Execute a single statement and return the number of rows affected.

        Raises StatementError carrying the driver's error text on failure.
        """

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Context manager: acquires a connection, commits on success, rolls back on error."""

    @abstractmethod
    @contextmanager
    def autocommit(self) -> Iterator[None]:
        """Context manager: acquires a connection where every statement commits itself."""

    @abstractmethod
    def execute_ddl(self, sql: str) -> None:
        """Execute DDL statements (CREATE TABLE, CREATE INDEX, etc.)."""

    @abstractmethod
    def table_columns(self, table: str) -> list[str]:
        """Return the column names of ``table``, or [] if it does not exist."""

    def begin_savepoint(self, name: str) -> None:
        self.execute_statement(f"SAVEPOINT {name}")

    def rollback_to_savepoint(self, name: str) -> None:
        self.execute_statement(f"ROLLBACK TO SAVEPOINT {name}")

    def release_savepoint(self, name: str) -> None:
        self.execute_statement(f"RELEASE SAVEPOINT {name}")
