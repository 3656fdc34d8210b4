"""Map definitions: fields, maps and atlases.

Every string-keyed option of a map (the map action, each field's action,
null policies and file type) is parsed into an enum once, when the map is
built. The engine only ever sees the enums.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from csvimp.errors import MapConfigurationError
from csvimp.service import DatabaseService

logger = logging.getLogger(__name__)

MIME_TYPE_COLUMN = "file_mime_type"

# Spellings used by older map files.
_ALIASES = {"imageenc": "imageencoded"}


def _normalize(name: str) -> str:
    """'Action_UseColumn', 'use_column' and 'Use Column' all become 'usecolumn'."""
    name = re.sub(r"^(action_|type_)", "", name.strip(), flags=re.IGNORECASE)
    return re.sub(r"[\s_\-]", "", name).lower()


class _NamedEnum(Enum):
    @classmethod
    def from_name(cls, name: str | _NamedEnum):
        if isinstance(name, cls):
            return name
        key = _normalize(str(name))
        key = _ALIASES.get(key, key)
        for member in cls:
            if key in (_normalize(member.name), _normalize(member.value)):
                return member
        raise MapConfigurationError(f"Unknown {cls.__name__} {name!r}")


class MapAction(_NamedEnum):
    INSERT = "Insert"
    UPDATE = "Update"
    APPEND = "Append"


class FieldAction(_NamedEnum):
    DEFAULT = "Default"
    USE_COLUMN = "UseColumn"
    USE_EMPTY_STRING = "UseEmptyString"
    USE_ALTERNATE_VALUE = "UseAlternateValue"
    USE_NULL = "UseNull"
    SET_COLUMN_FROM_DATA_FILE = "SetColumnFromDataFile"


class NullPolicy(_NamedEnum):
    NOTHING = "Nothing"
    USE_DEFAULT = "UseDefault"
    USE_EMPTY_STRING = "UseEmptyString"
    USE_ALTERNATE_VALUE = "UseAlternateValue"
    USE_ALTERNATE_COLUMN = "UseAlternateColumn"


class FileType(_NamedEnum):
    IMAGE = "Image"
    IMAGE_ENCODED = "ImageEncoded"
    FILE = "File"


@dataclass(frozen=True)
class MapField:
    """One destination column and how its value is produced for each record.

    Attributes:
        name: Destination column name, unique within a map.
        column: 1-based source column.
        action: How the value is produced.
        is_key: Whether the column identifies the record (Update/Append).
        if_null: Policy applied when the source column is null.
        column_alt: 1-based alternate source column (USE_ALTERNATE_COLUMN).
        if_null_alt: Policy applied when the alternate column is null too.
        value_alt: Literal used by the USE_ALTERNATE_VALUE action and policies.
        file_type: How SET_COLUMN_FROM_DATA_FILE loads the named file.
    """

    name: str
    column: int = 1
    action: FieldAction = FieldAction.DEFAULT
    is_key: bool = False
    if_null: NullPolicy = NullPolicy.NOTHING
    column_alt: int = 1
    if_null_alt: NullPolicy = NullPolicy.NOTHING
    value_alt: str = ""
    file_type: FileType = FileType.IMAGE_ENCODED

    def __post_init__(self) -> None:
        if not self.name:
            raise MapConfigurationError("Map field without a name")
        if self.column < 1 or self.column_alt < 1:
            raise MapConfigurationError(
                f"Field {self.name}: column numbers start at 1"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MapField:
        return cls(
            name=data["name"],
            column=int(data.get("column", 1)),
            action=FieldAction.from_name(data.get("action", FieldAction.DEFAULT)),
            is_key=bool(data.get("is_key", False)),
            if_null=NullPolicy.from_name(data.get("if_null", NullPolicy.NOTHING)),
            column_alt=int(data.get("column_alt", 1)),
            if_null_alt=NullPolicy.from_name(data.get("if_null_alt", NullPolicy.NOTHING)),
            value_alt=str(data.get("value_alt") or ""),
            file_type=FileType.from_name(data.get("file_type", FileType.IMAGE_ENCODED)),
        )


@dataclass(frozen=True)
class ImportMap:
    """A named mapping from CSV columns to the columns of one table."""

    name: str
    table: str
    action: MapAction = MapAction.INSERT
    fields: tuple[MapField, ...] = ()
    sql_pre: str = ""
    sql_post: str = ""
    sql_pre_continue_on_error: bool = False
    delimiter: str = ","
    description: str = ""

    def __post_init__(self) -> None:
        names = [f.name for f in self.fields]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise MapConfigurationError(
                f"Map {self.name}: duplicate fields {', '.join(duplicates)}"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImportMap:
        return cls(
            name=data["name"],
            table=data["table"],
            action=MapAction.from_name(data.get("action", MapAction.INSERT)),
            fields=tuple(MapField.from_dict(f) for f in data.get("fields", [])),
            sql_pre=(data.get("sql_pre") or "").strip(),
            sql_post=(data.get("sql_post") or "").strip(),
            sql_pre_continue_on_error=bool(data.get("sql_pre_continue_on_error", False)),
            delimiter=data.get("delimiter") or ",",
            description=data.get("description") or "",
        )

    @property
    def key_fields(self) -> tuple[MapField, ...]:
        return tuple(f for f in self.fields if f.is_key)

    def field(self, name: str) -> MapField | None:
        return next((f for f in self.fields if f.name == name), None)

    def has_field(self, name: str) -> bool:
        return self.field(name) is not None

    def simplify(self) -> ImportMap:
        """Return a copy without the fields that never contribute a value."""
        kept = tuple(f for f in self.fields if f.action is not FieldAction.DEFAULT)
        return replace(self, fields=kept)

    def validate(self) -> None:
        """Raise MapConfigurationError unless the map can drive an import."""
        if not self.table:
            raise MapConfigurationError(f"Map {self.name} has no target table")
        if not self.fields:
            raise MapConfigurationError(f"Map {self.name} has no fields")
        if not isinstance(self.action, MapAction):
            raise MapConfigurationError(
                f"The action {self.action} for map {self.name} is not supported"
            )
        if self.action in (MapAction.UPDATE, MapAction.APPEND) and not self.key_fields:
            raise MapConfigurationError(
                f"Map {self.name}: {self.action.value} requires at least one key field"
            )


@dataclass
class Atlas:
    """A collection of maps, looked up by name."""

    maps: dict[str, ImportMap] = field(default_factory=dict)
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Atlas:
        atlas = cls(description=data.get("description") or "")
        for map_data in data.get("maps", []):
            atlas.set_map(ImportMap.from_dict(map_data))
        return atlas

    def set_map(self, import_map: ImportMap) -> None:
        self.maps[import_map.name] = import_map

    def map_names(self) -> list[str]:
        return sorted(self.maps)

    def map(self, name: str) -> ImportMap:
        try:
            return self.maps[name]
        except KeyError:
            raise MapConfigurationError(f"No map named {name!r} in the atlas") from None


def reconcile_fields(service: DatabaseService, import_map: ImportMap) -> ImportMap:
    """Drop the fields whose destination column does not exist in the table.

    If the table itself cannot be found the map is returned unchanged; the
    import will then fail statement by statement.
    """
    columns = set(service.table_columns(import_map.table))
    if not columns:
        logger.warning(
            "Table %s does not exist; keeping all %d fields of map %s",
            import_map.table,
            len(import_map.fields),
            import_map.name,
        )
        return import_map

    kept = []
    for f in import_map.fields:
        if f.name in columns:
            kept.append(f)
        else:
            logger.warning(
                "Map %s: table %s has no column %s, dropping field",
                import_map.name,
                import_map.table,
                f.name,
            )
    return replace(import_map, fields=tuple(kept))
