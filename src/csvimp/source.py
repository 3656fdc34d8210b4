"""Tabular data sources read by the import engine.

A source is addressed by 0-based (row, column); cells that lie outside the
row read as None, the null marker the map's null policies act on.
"""

from __future__ import annotations

import csv
import io
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

logger = logging.getLogger(__name__)

TAB_NAMES = ("\\t", "{ tab }", "tab")


def parse_delimiter(delimiter: str | None) -> str:
    """Turn a map or CLI delimiter setting into the single delimiter character."""
    if not delimiter:
        return ","
    if delimiter == "\t" or delimiter.strip().lower() in TAB_NAMES:
        return "\t"
    return delimiter[0]


class TabularSource(ABC):
    """Read-only access to one parsed dataset."""

    has_header_row: bool = False

    @abstractmethod
    def row_count(self) -> int:
        """Number of data rows, excluding the header row."""

    @abstractmethod
    def column_count(self) -> int:
        """Width of the widest row."""

    @abstractmethod
    def value_at(self, row: int, column: int) -> str | None:
        """Cell at 0-based (row, column), or None."""

    def header(self, column: int) -> str:
        return ""


class RowSource(TabularSource):
    """In-memory rows, e.g. built by a caller that already parsed its input."""

    def __init__(self, rows: Sequence[Sequence[str | None]], headers: Sequence[str] | None = None):
        self._rows = [list(r) for r in rows]
        self._headers = list(headers or [])
        self.has_header_row = headers is not None

    def row_count(self) -> int:
        return len(self._rows)

    def column_count(self) -> int:
        return max((len(r) for r in self._rows), default=len(self._headers))

    def value_at(self, row: int, column: int) -> str | None:
        if not 0 <= row < len(self._rows) or column < 0:
            return None
        cells = self._rows[row]
        if column >= len(cells):
            return None
        return cells[column]

    def header(self, column: int) -> str:
        return self._headers[column] if 0 <= column < len(self._headers) else ""


class CsvSource(RowSource):
    """CSV text parsed on first access.

    With ``has_header_row`` the first record supplies the headers and is not
    counted as data. The text is parsed again if the delimiter or the header
    flag changes.
    """

    def __init__(self, text: str, delimiter: str = ",", has_header_row: bool = False):
        super().__init__([])
        self._text = text
        self._delimiter = parse_delimiter(delimiter)
        self.has_header_row = has_header_row
        self._loaded = False

    @classmethod
    def from_file(
        cls,
        file_path: str | Path,
        delimiter: str = ",",
        has_header_row: bool = False,
        encoding: str = "utf-8-sig",
    ) -> CsvSource:
        with open(file_path, newline="", encoding=encoding) as f:
            return cls(f.read(), delimiter=delimiter, has_header_row=has_header_row)

    @property
    def delimiter(self) -> str:
        return self._delimiter

    def set_delimiter(self, delimiter: str) -> None:
        self._delimiter = parse_delimiter(delimiter)
        self._loaded = False

    def set_has_header_row(self, has_header_row: bool) -> None:
        self.has_header_row = has_header_row
        self._loaded = False

    def _load(self) -> None:
        if self._loaded:
            return
        reader = csv.reader(io.StringIO(self._text), delimiter=self._delimiter)
        rows = [row for row in reader if row and any(cell.strip() for cell in row)]
        if self.has_header_row and rows:
            self._headers = [h.strip() for h in rows.pop(0)]
        else:
            self._headers = []
        self._rows = rows
        self._loaded = True
        logger.debug(
            "Parsed %d rows x %d columns (delimiter %r)",
            len(self._rows),
            self.column_count(),
            self._delimiter,
        )

    def row_count(self) -> int:
        self._load()
        return super().row_count()

    def column_count(self) -> int:
        self._load()
        return super().column_count()

    def value_at(self, row: int, column: int) -> str | None:
        self._load()
        # csv cannot tell a quoted empty field from a missing one.
        return super().value_at(row, column) or None

    def header(self, column: int) -> str:
        self._load()
        return super().header(column)
