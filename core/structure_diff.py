"""
core/structure_diff.py
----------------------
Compares the column list last read from the server with the edited working
list and produces the ALTER TABLE statements that reconcile them.

Statement order:
    1. ``DROP PRIMARY KEY`` when the key changes and one existed.
    2. ``DROP COLUMN`` for original columns no working column refers to.
    3. ``ADD`` / ``CHANGE`` / ``MODIFY COLUMN`` in working order, each with a
       ``FIRST`` / ``AFTER`` position so the final order matches the list.
    4. ``ADD PRIMARY KEY`` when the key changes and one is wanted.

Design Decisions:
    * Pure functions: no I/O, no mutation of the inputs.
    * A working column whose ``original_name`` no longer matches any
      original column is treated as new.
"""
from __future__ import annotations

from typing import Sequence

from core.column_renderer import render_column_definition
from core.sql_text import qualified_name, quote_identifier
from logger import get_logger
from models.descriptors import ColumnDescriptor, TableIdentity

log = get_logger(__name__)


class ColumnValidationError(ValueError):
    """Raised when a working column list cannot be turned into DDL."""


def validate_columns(columns: Sequence[ColumnDescriptor]) -> None:
    """
    Check a working column list before it is diffed.

    Raises:
        ColumnValidationError: On an empty list, a blank or duplicate name,
            a blank type, more than one auto-increment column, or an
            auto-increment column outside the primary key.
    """
    if not columns:
        raise ColumnValidationError("Keep at least one column.")
    seen: set[str] = set()
    auto_increment: list[str] = []
    for position, col in enumerate(columns, start=1):
        name = col.name.strip()
        if not name:
            raise ColumnValidationError(f"Column name on row {position} is empty.")
        if name.lower() in seen:
            raise ColumnValidationError(f"Column '{name}' is duplicated.")
        seen.add(name.lower())
        if not col.type.strip():
            raise ColumnValidationError(f"Column '{name}' has no data type.")
        if col.auto_increment:
            if not col.key:
                raise ColumnValidationError(
                    f"Column '{name}' is AUTO_INCREMENT and must be part of the primary key."
                )
            auto_increment.append(name)
    if len(auto_increment) > 1:
        raise ColumnValidationError(
            "Only one AUTO_INCREMENT column is allowed, found: "
            + ", ".join(auto_increment)
        )


def primary_key_columns(columns: Sequence[ColumnDescriptor]) -> list[str]:
    """Ordered names of the columns flagged as primary key."""
    return [c.name for c in columns if c.key and c.name]


def _position_clause(index: int, working: Sequence[ColumnDescriptor]) -> str:
    if index == 0:
        return "FIRST"
    return f"AFTER {quote_identifier(working[index - 1].name)}"


def diff_structure(
    original: Sequence[ColumnDescriptor],
    working: Sequence[ColumnDescriptor],
    table: TableIdentity,
) -> list[str]:
    """
    Return the ordered ALTER TABLE statements turning *original* into *working*.

    An empty list means the two lists describe the same table.
    """
    target = qualified_name(table.database_name, table.table_name)
    original_by_name = {c.name: c for c in original}
    original_order = {c.name: i for i, c in enumerate(original)}
    referenced = {c.original_name for c in working if c.original_name}

    statements: list[str] = []

    for col in original:
        if col.name not in referenced:
            statements.append(
                f"ALTER TABLE {target} DROP COLUMN {quote_identifier(col.name)};"
            )

    for index, col in enumerate(working):
        if not col.name:
            continue
        position = _position_clause(index, working)
        definition = render_column_definition(col)
        before = original_by_name.get(col.original_name) if col.original_name else None

        if before is None:
            statements.append(f"ALTER TABLE {target} ADD COLUMN {definition} {position};")
        elif col.name != col.original_name:
            statements.append(
                f"ALTER TABLE {target} CHANGE COLUMN "
                f"{quote_identifier(col.original_name)} {definition} {position};"
            )
        elif not col.same_definition(before) or original_order[col.original_name] != index:
            statements.append(f"ALTER TABLE {target} MODIFY COLUMN {definition} {position};")

    original_pk = primary_key_columns(original)
    current_pk = primary_key_columns(working)
    if original_pk != current_pk:
        if original_pk:
            statements.insert(0, f"ALTER TABLE {target} DROP PRIMARY KEY;")
        if current_pk:
            cols = ", ".join(quote_identifier(name) for name in current_pk)
            statements.append(f"ALTER TABLE {target} ADD PRIMARY KEY ({cols});")

    log.debug("Structure diff for %s: %d statement(s).", table, len(statements))
    return statements
