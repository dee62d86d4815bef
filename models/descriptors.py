"""
models/descriptors.py
---------------------
Value types describing a table's schema elements and grid rows.

Design Decision:
    Descriptors carry no behaviour. Rendering, diffing and row tracking
    live in ``core`` and only read/write these objects, so a UI (or a
    test) can build them by hand without a live server.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

PRIMARY_KEY_NAME = "PRIMARY"
NULL_DEFAULT = "NULL"


@dataclass(frozen=True)
class TableIdentity:
    """Which collaborator connection, schema and table a session works on."""
    connection_name: str
    database_name: str
    table_name: str

    def __str__(self) -> str:
        return f"{self.connection_name}:{self.database_name}.{self.table_name}"


@dataclass
class ColumnDescriptor:
    """
    One column of a table definition.

    Attributes:
        name:               Desired column name.
        original_name:      Name as last read from the server; empty for a
                            column added in the working copy.
        type:               Raw SQL type text, e.g. ``varchar(255)``.
        collation:          Empty means inherit the table default.
        default_expression: Literal, function call, or the ``NULL`` sentinel.
    """
    name: str
    type: str = "varchar(255)"
    original_name: str = ""
    collation: str = ""
    unsigned: bool = False
    zero_fill: bool = False
    not_null: bool = False
    key: bool = False
    auto_increment: bool = False
    default_expression: str = ""
    generated: bool = False
    comment: str = ""

    @property
    def is_new(self) -> bool:
        return not self.original_name

    def same_definition(self, other: "ColumnDescriptor") -> bool:
        """Compare every field except ``original_name``."""
        return (
            self.name == other.name
            and self.type.lower() == other.type.lower()
            and self.collation == other.collation
            and self.unsigned == other.unsigned
            and self.zero_fill == other.zero_fill
            and self.not_null == other.not_null
            and self.key == other.key
            and self.auto_increment == other.auto_increment
            and self.default_expression == other.default_expression
            and self.generated == other.generated
            and self.comment == other.comment
        )

    def copy(self) -> "ColumnDescriptor":
        return replace(self)


@dataclass
class IndexDescriptor:
    """
    One index of a table.

    ``columns`` holds entries of the form ``"name"`` or ``"name DESC"``.
    The name ``PRIMARY`` always denotes the primary key.
    """
    name: str
    columns: list[str] = field(default_factory=list)
    original_name: str = ""
    unique: bool = False
    method: str = "BTREE"
    comment: str = ""

    @property
    def is_primary(self) -> bool:
        return self.name.upper() == PRIMARY_KEY_NAME

    def copy(self) -> "IndexDescriptor":
        return replace(self, columns=list(self.columns))


class RowLifecycle(str, Enum):
    CLEAN = "clean"
    INSERTED = "inserted"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass
class RowEditState:
    """Edit tracking for one grid row, keyed by a session-local ``row_id``."""
    row_id: str
    original_values: list[str | bytes] = field(default_factory=list)
    current_values: list[str | bytes] = field(default_factory=list)
    current_null_flags: list[bool] = field(default_factory=list)
    original_null_flags: list[bool] = field(default_factory=list)
    inserted: bool = False
    deleted: bool = False

    @property
    def updated(self) -> bool:
        if self.inserted or self.deleted:
            return False
        return (
            self.current_values != self.original_values
            or self.current_null_flags != self.original_null_flags
        )

    @property
    def lifecycle(self) -> RowLifecycle:
        if self.inserted:
            return RowLifecycle.INSERTED
        if self.deleted:
            return RowLifecycle.DELETED
        if self.updated:
            return RowLifecycle.UPDATED
        return RowLifecycle.CLEAN

    def is_null(self, index: int) -> bool:
        return index < len(self.current_null_flags) and self.current_null_flags[index]

    def was_null(self, index: int) -> bool:
        return index < len(self.original_null_flags) and self.original_null_flags[index]
