"""
tests/test_schema_reader.py
---------------------------
Unit tests for core/schema_reader.py using hand-built SHOW result rows.
Run with: python -m pytest tests/
"""
from __future__ import annotations

from core.schema_reader import (
    column_from_row,
    columns_from_rows,
    indexes_from_rows,
    primary_key_from_rows,
)


def column_row(**overrides) -> dict:
    row = {
        "Field": "id",
        "Type": "int",
        "Collation": None,
        "Null": "NO",
        "Key": "",
        "Default": None,
        "Extra": "",
        "Privileges": "select,insert,update",
        "Comment": "",
    }
    row.update(overrides)
    return row


def index_row(key_name: str, column: str, seq: int, **overrides) -> dict:
    row = {
        "Table": "orders",
        "Non_unique": 1,
        "Key_name": key_name,
        "Seq_in_index": seq,
        "Column_name": column,
        "Collation": "A",
        "Sub_part": None,
        "Index_type": "BTREE",
        "Index_comment": "",
    }
    row.update(overrides)
    return row


class TestColumnFromRow:
    def test_unsigned_zerofill_stripped(self) -> None:
        col = column_from_row(column_row(Type="int(10) unsigned zerofill"))
        assert col.type == "int(10)"
        assert col.unsigned and col.zero_fill

    def test_flags(self) -> None:
        col = column_from_row(column_row(Key="PRI", Extra="auto_increment"))
        assert col.key
        assert col.auto_increment
        assert col.not_null
        assert col.original_name == col.name == "id"

    def test_null_default_becomes_sentinel(self) -> None:
        assert column_from_row(column_row()).default_expression == "NULL"

    def test_literal_default_kept(self) -> None:
        assert column_from_row(column_row(Default="0")).default_expression == "0"

    def test_unique_key_is_not_primary(self) -> None:
        assert not column_from_row(column_row(Key="UNI")).key

    def test_generated(self) -> None:
        assert column_from_row(column_row(Extra="STORED GENERATED")).generated
        assert not column_from_row(column_row(Extra="DEFAULT_GENERATED")).generated

    def test_collation_comment_and_nullable(self) -> None:
        col = column_from_row(
            column_row(
                Field="title", Type="varchar(20)", Collation="utf8mb4_bin",
                Null="YES", Comment="headline",
            )
        )
        assert col.collation == "utf8mb4_bin"
        assert col.comment == "headline"
        assert not col.not_null

    def test_lowercase_labels_and_bytes(self) -> None:
        col = column_from_row({"field": b"name", "type": b"text", "null": "YES"})
        assert col.name == "name"
        assert col.type == "text"

    def test_columns_from_rows_keeps_order(self) -> None:
        rows = [column_row(Field="b"), column_row(Field="a")]
        assert [c.name for c in columns_from_rows(rows)] == ["b", "a"]


class TestIndexesFromRows:
    def test_grouping_and_order(self) -> None:
        rows = [
            index_row("PRIMARY", "id", 1, Non_unique=0),
            index_row("idx_name", "last", 2, Collation="D"),
            index_row("idx_name", "first", 1, Sub_part=10),
        ]
        indexes = indexes_from_rows(rows)
        assert [i.name for i in indexes] == ["PRIMARY", "idx_name"]
        assert indexes[0].unique
        assert indexes[1].columns == ["first(10)", "last DESC"]
        assert not indexes[1].unique
        assert indexes[1].original_name == "idx_name"

    def test_method_and_comment(self) -> None:
        rows = [index_row("h", "k", 1, Index_type="hash", Index_comment="fast")]
        index = indexes_from_rows(rows)[0]
        assert index.method == "HASH"
        assert index.comment == "fast"


class TestPrimaryKeyFromRows:
    def test_ordered_by_sequence(self) -> None:
        rows = [
            index_row("PRIMARY", "tenant_id", 2),
            index_row("PRIMARY", "id", 1),
        ]
        assert primary_key_from_rows(rows) == ["id", "tenant_id"]

    def test_no_rows(self) -> None:
        assert primary_key_from_rows([]) == []
