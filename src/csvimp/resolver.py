"""Resolve the value each map field contributes to one record.

``resolve_field`` returns SKIP when the field must be left out of the
statement (the column keeps its database default), otherwise a Resolved
whose ``value`` is a string, bytes, or None for SQL NULL. It never raises.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from csvimp.blobs import load_blob
from csvimp.mapping import FieldAction, MapField, NullPolicy
from csvimp.source import TabularSource
from csvimp.types import Value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolved:
    value: Value
    mime_type: str | None = None

    @property
    def is_null(self) -> bool:
        return self.value is None


class _Skip:
    def __repr__(self) -> str:
        return "SKIP"

    def __bool__(self) -> bool:
        return False


SKIP = _Skip()
NULL = Resolved(None)
EMPTY = Resolved("")

Resolution = Resolved | _Skip


def _from_null_policy(
    policy: NullPolicy, field: MapField, source: TabularSource, row: int, alternate: bool
) -> Resolution:
    if policy is NullPolicy.USE_DEFAULT:
        return SKIP
    if policy is NullPolicy.USE_EMPTY_STRING:
        return EMPTY
    if policy is NullPolicy.USE_ALTERNATE_VALUE:
        return Resolved(field.value_alt)
    if policy is NullPolicy.USE_ALTERNATE_COLUMN and not alternate:
        value = source.value_at(row, field.column_alt - 1)
        if value is not None:
            return Resolved(value)
        return _from_null_policy(field.if_null_alt, field, source, row, alternate=True)
    return NULL


def _use_column(field: MapField, source: TabularSource, row: int) -> Resolution:
    value = source.value_at(row, field.column - 1)
    if value is not None:
        return Resolved(value)
    return _from_null_policy(field.if_null, field, source, row, alternate=False)


def _load_file(field: MapField, source: TabularSource, row: int) -> Resolution:
    file_name = source.value_at(row, field.column - 1)
    if file_name is None:
        return NULL
    blob = load_blob(file_name, field.file_type)
    if blob is None:
        return NULL
    return Resolved(blob.data, blob.mime_type)


_RESOLVERS: dict[FieldAction, Callable[[MapField, TabularSource, int], Resolution]] = {
    FieldAction.USE_COLUMN: _use_column,
    FieldAction.SET_COLUMN_FROM_DATA_FILE: _load_file,
    FieldAction.USE_EMPTY_STRING: lambda field, source, row: EMPTY,
    FieldAction.USE_ALTERNATE_VALUE: lambda field, source, row: Resolved(field.value_alt),
    FieldAction.USE_NULL: lambda field, source, row: NULL,
}


def resolve_field(field: MapField, source: TabularSource, row: int) -> Resolution:
    resolver = _RESOLVERS.get(field.action)
    if resolver is None:
        return SKIP
    return resolver(field, source, row)


def resolve_row(
    fields: tuple[MapField, ...], source: TabularSource, row: int
) -> list[tuple[MapField, Resolved]]:
    """Resolve every field for ``row``, in map order, leaving out skipped fields."""
    resolved = []
    for field in fields:
        result = resolve_field(field, source, row)
        if result is SKIP:
            logger.debug("Record %d: field %s skipped", row + 1, field.name)
            continue
        resolved.append((field, result))
    return resolved
