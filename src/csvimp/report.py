"""Structured result of one import run."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Outcome(Enum):
    COMMITTED = "Committed"
    ROLLED_BACK = "RolledBack"
    ABORTED = "Aborted"


@dataclass
class RunReport:
    """Counts and messages for one run.

    ``processed`` is the number of records attempted; each of them is counted
    in exactly one of ``succeeded``, ``ignored`` and ``errors``.
    """

    map_name: str = ""
    table: str = ""
    action: str = ""
    total: int = 0
    processed: int = 0
    succeeded: int = 0
    ignored: int = 0
    errors: int = 0
    error_messages: list[str] = field(default_factory=list)
    pre_sql_error: str | None = None
    post_sql_error: str | None = None
    canceled: bool = False
    outcome: Outcome = Outcome.ABORTED

    def add_success(self) -> None:
        self.processed += 1
        self.succeeded += 1

    def add_ignored(self, record: int, reason: str) -> str:
        self.processed += 1
        self.ignored += 1
        message = f"IGNORED Record {record}: {reason}"
        self.error_messages.append(message)
        return message

    def add_error(self, record: int, reason: str) -> str:
        self.processed += 1
        self.errors += 1
        message = f"ERROR Record {record}: {reason}"
        self.error_messages.append(message)
        return message

    @property
    def successful(self) -> bool:
        return self.outcome is Outcome.COMMITTED and self.errors == 0

    def summary(self) -> str:
        lines = [
            f"Map: {self.map_name}",
            f"Table: {self.table}",
            f"Method: {self.action}",
            "",
            f"Total Records: {self.total}",
            f"# Processed:   {self.processed}",
            f"# Ignored:     {self.ignored}",
            f"# Errors:      {self.errors}",
            "",
        ]
        for message in (self.pre_sql_error, self.post_sql_error):
            if message:
                lines.append(message)
        lines.extend(self.error_messages)
        if self.canceled:
            lines.append("Import canceled by user. Changes were rolled back.")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "map_name": self.map_name,
            "table": self.table,
            "action": self.action,
            "total": self.total,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "ignored": self.ignored,
            "errors": self.errors,
            "error_messages": list(self.error_messages),
            "pre_sql_error": self.pre_sql_error,
            "post_sql_error": self.post_sql_error,
            "outcome": self.outcome.value,
        }
