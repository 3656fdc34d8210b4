"""Run a map over a dataset: one statement per record, with per-record isolation.

A run moves through IDLE -> PRE_SQL -> RUNNING -> POST_SQL and ends
COMMITTED or ROLLED_BACK. With ``use_transaction`` the whole run is one
transaction and every record executes inside its own savepoint, so a failed
record is undone on its own while earlier records stay in place. Without it
every statement commits by itself and nothing can be rolled back.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterator

from csvimp.errors import MapConfigurationError, MissingKeyError, RowIgnored, StatementError
from csvimp.mapping import ImportMap
from csvimp.report import Outcome, RunReport
from csvimp.resolver import resolve_row
from csvimp.service import DatabaseService
from csvimp.source import TabularSource
from csvimp.statements import build_statement

logger = logging.getLogger(__name__)

PRE_SQL_SAVEPOINT = "presql"
ROW_SAVEPOINT = "csvinsert"


class RunState(Enum):
    IDLE = "Idle"
    PRE_SQL = "PreSQL"
    RUNNING = "Running"
    POST_SQL = "PostSQL"
    COMMITTED = "Committed"
    ROLLED_BACK = "RolledBack"


class _RunStopped(Exception):
    """Unwinds the run's transaction; the report already holds the reason."""

    def __init__(self, outcome: Outcome, state: RunState):
        super().__init__(outcome.value)
        self.outcome = outcome
        self.state = state


class ImportEngine:
    """Imports records into a table as described by an ImportMap.

    One engine drives one run at a time; the DatabaseService must not be used
    by anything else while a run is in progress.
    """

    def __init__(
        self,
        service: DatabaseService,
        *,
        use_transaction: bool = True,
        progress_interval: int = 1000,
    ):
        self._service = service
        self.use_transaction = use_transaction
        self.progress_interval = max(1, progress_interval)
        self.state = RunState.IDLE
        self._running = False

    def run(
        self,
        import_map: ImportMap | None,
        source: TabularSource,
        *,
        should_cancel: Callable[[], bool] | None = None,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> RunReport:
        """Import every record of ``source`` and return the run report.

        Raises MapConfigurationError, before touching the database, when the
        map or the dataset cannot be used. Every other failure is reported.
        """
        if self._running:
            raise RuntimeError("An import is already running on this engine")

        import_map = self._check_preconditions(import_map, source)
        report = RunReport(
            map_name=import_map.name,
            table=import_map.table,
            action=import_map.action.value,
            total=source.row_count(),
        )
        logger.info(
            "Importing %d records into %s with map %s (%s)",
            report.total,
            import_map.table,
            import_map.name,
            import_map.action.value,
        )

        self._running = True
        try:
            with self._run_context():
                self._run_pre_sql(import_map, report)
                self._run_records(import_map, source, report, should_cancel, on_progress)
                self._run_post_sql(import_map, report)
        except _RunStopped as stop:
            report.outcome = stop.outcome
            self.state = stop.state
        else:
            report.outcome = Outcome.COMMITTED
            self.state = RunState.COMMITTED
        finally:
            self._running = False

        self._log_report(report)
        return report

    # ── Preconditions ──────────────────────────────────────────────────

    def _check_preconditions(
        self, import_map: ImportMap | None, source: TabularSource
    ) -> ImportMap:
        self.state = RunState.IDLE
        if import_map is None:
            raise MapConfigurationError("No map selected")
        import_map = import_map.simplify()
        import_map.validate()
        if source.row_count() < 1:
            raise MapConfigurationError("There are no data to process")
        self.state = RunState.PRE_SQL
        return import_map

    # ── Transactions ───────────────────────────────────────────────────

    def _run_context(self):
        if self.use_transaction:
            return self._service.transaction()
        return self._service.autocommit()

    @contextmanager
    def _savepoint(self, name: str) -> Iterator[None]:
        """Release ``name`` on success, roll back to it on any error."""
        if not self.use_transaction:
            yield
            return
        self._service.begin_savepoint(name)
        try:
            yield
        except Exception:
            self._service.rollback_to_savepoint(name)
            self._service.release_savepoint(name)
            raise
        self._service.release_savepoint(name)

    # ── Phases ─────────────────────────────────────────────────────────

    def _run_pre_sql(self, import_map: ImportMap, report: RunReport) -> None:
        if not import_map.sql_pre:
            return
        try:
            with self._savepoint(PRE_SQL_SAVEPOINT):
                self._service.execute_statement(import_map.sql_pre)
        except StatementError as e:
            report.pre_sql_error = f"ERROR Running Pre SQL query: {e}"
            logger.error("%s", report.pre_sql_error)
            if not import_map.sql_pre_continue_on_error:
                raise _RunStopped(Outcome.ABORTED, RunState.IDLE) from e
            logger.info("Continuing with rest of import")

    def _run_records(
        self,
        import_map: ImportMap,
        source: TabularSource,
        report: RunReport,
        should_cancel: Callable[[], bool] | None,
        on_progress: Callable[[int, int], None] | None,
    ) -> None:
        self.state = RunState.RUNNING
        for row in range(report.total):
            if should_cancel is not None and should_cancel():
                report.canceled = True
                logger.warning("Import canceled by user at record %d of %d", row + 1, report.total)
                raise _RunStopped(Outcome.ROLLED_BACK, RunState.ROLLED_BACK)

            self._import_record(import_map, source, row, report)

            if on_progress is not None and (row + 1) % self.progress_interval == 0:
                on_progress(row + 1, report.total)

        if on_progress is not None:
            on_progress(report.total, report.total)

    def _import_record(
        self, import_map: ImportMap, source: TabularSource, row: int, report: RunReport
    ) -> None:
        record = row + 1
        try:
            with self._savepoint(ROW_SAVEPOINT):
                resolved = resolve_row(import_map.fields, source, row)
                statement = build_statement(import_map, resolved, self._service.placeholder)
                self._service.execute_statement(statement.sql, statement.params)
        except RowIgnored as e:
            logger.warning("%s", report.add_ignored(record, str(e)))
        except (MissingKeyError, StatementError) as e:
            logger.warning("%s", report.add_error(record, str(e)))
        else:
            report.add_success()

    def _run_post_sql(self, import_map: ImportMap, report: RunReport) -> None:
        if not import_map.sql_post:
            return
        self.state = RunState.POST_SQL
        try:
            self._service.execute_statement(import_map.sql_post)
        except StatementError as e:
            report.post_sql_error = f"ERROR Running Post SQL query: {e}"
            logger.error("%s; changes were rolled back", report.post_sql_error)
            raise _RunStopped(Outcome.ROLLED_BACK, RunState.ROLLED_BACK) from e

    @staticmethod
    def _log_report(report: RunReport) -> None:
        if report.errors or report.ignored or report.canceled or report.post_sql_error:
            logger.warning("Import processing status\n%s", report.summary())
        logger.info(
            "Import %s: %d of %d records processed, %d ignored, %d errors",
            report.outcome.value,
            report.processed,
            report.total,
            report.ignored,
            report.errors,
        )


def run_import(
    service: DatabaseService,
    import_map: ImportMap | None,
    source: TabularSource,
    *,
    use_transaction: bool = True,
    should_cancel: Callable[[], bool] | None = None,
    on_progress: Callable[[int, int], None] | None = None,
) -> RunReport:
    """Run one import with a fresh engine."""
    engine = ImportEngine(service, use_transaction=use_transaction)
    return engine.run(
        import_map, source, should_cancel=should_cancel, on_progress=on_progress
    )
