"""Tests for field value resolution."""

import pytest
from PIL import Image

from csvimp import FieldAction, FileType, MapField, NullPolicy, RowSource
from csvimp.resolver import SKIP, Resolved, resolve_field, resolve_row

ROWS = RowSource(
    [
        ["1", "alice", "alt-a", "/no/such/file.txt"],
        ["2", None, "alt-b", None],
        ["3", None, None, None],
    ]
)


def column_field(**kwargs):
    return MapField("name", column=2, action=FieldAction.USE_COLUMN, **kwargs)


class TestUseColumn:
    def test_value_present(self):
        assert resolve_field(column_field(), ROWS, 0) == Resolved("alice")

    def test_null_use_default_skips(self):
        assert resolve_field(column_field(if_null=NullPolicy.USE_DEFAULT), ROWS, 1) is SKIP

    def test_null_use_empty_string(self):
        field = column_field(if_null=NullPolicy.USE_EMPTY_STRING)
        assert resolve_field(field, ROWS, 1) == Resolved("")

    def test_null_use_alternate_value(self):
        field = column_field(if_null=NullPolicy.USE_ALTERNATE_VALUE, value_alt="n/a")
        assert resolve_field(field, ROWS, 1) == Resolved("n/a")

    def test_null_nothing_is_null(self):
        result = resolve_field(column_field(), ROWS, 1)
        assert result.is_null

    def test_alternate_column(self):
        field = column_field(if_null=NullPolicy.USE_ALTERNATE_COLUMN, column_alt=3)
        assert resolve_field(field, ROWS, 1) == Resolved("alt-b")

    @pytest.mark.parametrize(
        "policy, expected",
        [
            (NullPolicy.USE_DEFAULT, SKIP),
            (NullPolicy.USE_EMPTY_STRING, Resolved("")),
            (NullPolicy.USE_ALTERNATE_VALUE, Resolved("fallback")),
            (NullPolicy.NOTHING, Resolved(None)),
            (NullPolicy.USE_ALTERNATE_COLUMN, Resolved(None)),
        ],
    )
    def test_alternate_column_null(self, policy, expected):
        field = column_field(
            if_null=NullPolicy.USE_ALTERNATE_COLUMN,
            column_alt=3,
            if_null_alt=policy,
            value_alt="fallback",
        )
        assert resolve_field(field, ROWS, 2) == expected

    def test_column_beyond_dataset_is_null(self):
        field = MapField("x", column=40, action=FieldAction.USE_COLUMN)
        assert resolve_field(field, ROWS, 0).is_null

    def test_deterministic(self):
        field = column_field(if_null=NullPolicy.USE_ALTERNATE_COLUMN, column_alt=3)
        assert [resolve_field(field, ROWS, r) for r in range(3)] == [
            resolve_field(field, ROWS, r) for r in range(3)
        ]


class TestOtherActions:
    def test_constant_actions(self):
        assert resolve_field(MapField("a", action=FieldAction.USE_EMPTY_STRING), ROWS, 0) == Resolved("")
        assert resolve_field(
            MapField("a", action=FieldAction.USE_ALTERNATE_VALUE, value_alt="x"), ROWS, 0
        ) == Resolved("x")
        assert resolve_field(MapField("a", action=FieldAction.USE_NULL), ROWS, 0) == Resolved(None)

    def test_default_action_skips(self):
        assert resolve_field(MapField("a"), ROWS, 0) is SKIP


class TestLoadFile:
    def test_missing_file_name_is_null(self):
        field = MapField("doc", column=4, action=FieldAction.SET_COLUMN_FROM_DATA_FILE)
        assert resolve_field(field, ROWS, 1) == Resolved(None)

    def test_unreadable_file_is_null(self):
        field = MapField(
            "doc", column=4, action=FieldAction.SET_COLUMN_FROM_DATA_FILE, file_type=FileType.FILE
        )
        assert resolve_field(field, ROWS, 0) == Resolved(None)

    def test_file_with_mime_type(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_bytes(b"hello")
        source = RowSource([[str(path)]])
        field = MapField(
            "doc", column=1, action=FieldAction.SET_COLUMN_FROM_DATA_FILE, file_type=FileType.FILE
        )
        assert resolve_field(field, source, 0) == Resolved(b"hello", "text/plain")

    def test_image(self, tmp_path):
        path = tmp_path / "dot.png"
        Image.new("RGB", (2, 2), "red").save(path)
        source = RowSource([[str(path)]])
        field = MapField(
            "img", column=1, action=FieldAction.SET_COLUMN_FROM_DATA_FILE, file_type=FileType.IMAGE
        )
        result = resolve_field(field, source, 0)
        assert result.value.startswith(b"\x89PNG")
        assert result.mime_type is None


class TestResolveRow:
    def test_skipped_fields_left_out_in_order(self):
        fields = (
            MapField("id", column=1, action=FieldAction.USE_COLUMN),
            column_field(if_null=NullPolicy.USE_DEFAULT),
            MapField("note", action=FieldAction.USE_NULL),
        )
        resolved = resolve_row(fields, ROWS, 1)
        assert [(f.name, r.value) for f, r in resolved] == [("id", "2"), ("note", None)]

    def test_empty_string_is_not_null(self):
        source = RowSource([["1", ""]])
        field = column_field(if_null=NullPolicy.USE_DEFAULT)
        assert resolve_field(field, source, 0) == Resolved("")
