"""Shared test fixtures."""

import pytest

from csvimp import create_service
from csvimp.sqlite_service import SQLiteDatabaseService

PEOPLE_DDL = """
CREATE TABLE people (
    id     INTEGER PRIMARY KEY,
    name   TEXT NOT NULL DEFAULT 'unknown',
    email  TEXT
);
"""


class RecordingService(SQLiteDatabaseService):
    """SQLite service that remembers every statement handed to it."""

    def __init__(self, db_path: str, pool_size: int = 2):
        super().__init__(db_path, pool_size)
        self.statements: list[tuple[str, dict]] = []

    def execute_statement(self, sql, params=None):
        self.statements.append((sql, dict(params or {})))
        return super().execute_statement(sql, params)

    def data_statements(self) -> list[tuple[str, dict]]:
        """Statements other than savepoint bookkeeping."""
        return [
            (sql, params)
            for sql, params in self.statements
            if not sql.startswith(("SAVEPOINT", "ROLLBACK TO", "RELEASE"))
        ]


@pytest.fixture
def db_service(tmp_path):
    """Provide a fresh SQLite DatabaseService for each test."""
    db_path = tmp_path / "test.db"
    service = create_service(f"sqlite:///{db_path}")
    service.connect()
    yield service
    service.close()


@pytest.fixture
def make_recording_service():
    """Return a factory for connected RecordingServices with a people table."""

    def make(db_path) -> RecordingService:
        service = RecordingService(str(db_path))
        service.connect()
        service.execute_ddl(PEOPLE_DDL)
        return service

    return make


@pytest.fixture
def recording_service(tmp_path, make_recording_service):
    """A fresh SQLite service with a people table that records statements."""
    service = make_recording_service(tmp_path / "recorded.db")
    yield service
    service.close()


@pytest.fixture
def people(db_service):
    """db_service with an empty people table."""
    db_service.execute_ddl(PEOPLE_DDL)
    return db_service


@pytest.fixture
def fetch_people():
    """Return a function reading the people table of a service."""

    def fetch(service) -> list[dict]:
        with service.transaction():
            return service.execute("SELECT id, name, email FROM people ORDER BY id")

    return fetch
