"""Build the parameterized statement that writes one record.

The statement text depends only on which fields resolved for the record, in
map order, so identical input always produces identical SQL.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from csvimp.errors import MissingKeyError, RowIgnored
from csvimp.mapping import MIME_TYPE_COLUMN, ImportMap, MapAction, MapField
from csvimp.resolver import Resolved
from csvimp.types import Params

Placeholder = Callable[[str], str]


@dataclass(frozen=True)
class Statement:
    sql: str
    params: Params


def param_names(fields: list[MapField]) -> list[str]:
    """Bind names for ``fields``; names that are not identifiers get an unused generated one."""
    taken = {f.name for f in fields if f.name.isidentifier()} | {MIME_TYPE_COLUMN}
    names = []
    for index, field in enumerate(fields):
        if field.name.isidentifier():
            names.append(field.name)
            continue
        name = f"field_{index}"
        while name in taken:
            name += "_"
        taken.add(name)
        names.append(name)
    return names


def _mime_type(import_map: ImportMap, resolved: list[tuple[MapField, Resolved]]) -> str | None:
    if import_map.has_field(MIME_TYPE_COLUMN):
        return None
    mime_type = None
    for _, value in resolved:
        if value.mime_type:
            mime_type = value.mime_type
    return mime_type


def build_insert(
    import_map: ImportMap,
    resolved: list[tuple[MapField, Resolved]],
    placeholder: Placeholder,
    append: bool = False,
) -> Statement:
    """INSERT one record; with ``append`` only if no row with its key exists."""
    if not resolved:
        raise RowIgnored("There are no columns to append")

    columns: list[str] = []
    markers: list[str] = []
    keys: list[str] = []
    params: Params = {}
    names = param_names([field for field, _ in resolved])
    for name, (field, value) in zip(names, resolved):
        columns.append(field.name)
        markers.append(placeholder(name))
        params[name] = value.value
        if append and field.is_key and not value.is_null:
            keys.append(f"{field.name} = {placeholder(name)}")

    mime_type = _mime_type(import_map, resolved)
    if mime_type:
        columns.append(MIME_TYPE_COLUMN)
        markers.append(placeholder(MIME_TYPE_COLUMN))
        params[MIME_TYPE_COLUMN] = mime_type

    if append and not keys:
        raise MissingKeyError()

    table = import_map.table
    sql = f"INSERT INTO {table} ({', '.join(columns)})"
    if append:
        sql += (
            f" SELECT {', '.join(markers)}"
            f" WHERE NOT EXISTS (SELECT 1 FROM {table} WHERE {' AND '.join(keys)})"
        )
    else:
        sql += f" VALUES ({', '.join(markers)})"
    return Statement(sql, params)


def build_update(
    import_map: ImportMap,
    resolved: list[tuple[MapField, Resolved]],
    placeholder: Placeholder,
) -> Statement:
    """UPDATE the rows matching the record's key columns."""
    sets: list[str] = []
    wheres: list[str] = []
    params: Params = {}
    names = param_names([field for field, _ in resolved])
    for name, (field, value) in zip(names, resolved):
        if field.is_key and value.is_null:
            continue
        clause = f"{field.name} = {placeholder(name)}"
        (wheres if field.is_key else sets).append(clause)
        params[name] = value.value

    mime_type = _mime_type(import_map, resolved)
    if mime_type:
        sets.append(f"{MIME_TYPE_COLUMN} = {placeholder(MIME_TYPE_COLUMN)}")
        params[MIME_TYPE_COLUMN] = mime_type

    if not sets:
        raise RowIgnored("There are no columns to update")
    if not wheres:
        raise MissingKeyError()

    sql = f"UPDATE {import_map.table} SET {', '.join(sets)} WHERE {' AND '.join(wheres)}"
    return Statement(sql, params)


def build_statement(
    import_map: ImportMap,
    resolved: list[tuple[MapField, Resolved]],
    placeholder: Placeholder,
) -> Statement:
    """Build the statement for ``import_map.action``.

    Raises RowIgnored when there is nothing to write and MissingKeyError when
    an Update or Append record has no key value. A null key value does not
    identify anything, so it counts as missing.
    """
    if import_map.action is MapAction.UPDATE:
        return build_update(import_map, resolved, placeholder)
    return build_insert(
        import_map, resolved, placeholder, append=import_map.action is MapAction.APPEND
    )
