"""
core/index_diff.py
------------------
Compares the indexes last read from the server with the edited index rows
and produces the ALTER TABLE statements that reconcile them.

Rules per working row (in row order):
    * New row with columns        → ``ADD [UNIQUE ]INDEX name(cols) USING m``.
    * Changed row with columns    → add ``_tmp_idx_<row>`` with the new
      definition, drop the original, rename the temporary index, so the
      columns stay covered by an index throughout.
    * Changed row without columns → drop the original.
Originals no row refers to are dropped after all row statements.

``PRIMARY`` never goes through the temporary-index sequence: any change
touching it is a single ALTER that drops and re-adds in one statement.

The diff is pure and idempotent; the index editor re-runs it on every
edit to drive its dirty flag and SQL preview.
"""
from __future__ import annotations

import re
from typing import Mapping, Sequence

from core.sql_text import escape_value, qualified_name, quote_identifier
from logger import get_logger
from models.descriptors import PRIMARY_KEY_NAME, IndexDescriptor, TableIdentity

log = get_logger(__name__)

TEMP_INDEX_PREFIX = "_tmp_idx_"

_INDEX_COLUMN_RE = re.compile(
    r"^(?P<name>.+?)(?:\((?P<length>\d+)\))?(?:\s+(?P<order>ASC|DESC))?$",
    re.IGNORECASE,
)


def render_index_column(entry: str) -> str:
    """Render ``"name(10) desc"`` as the quoted name, prefix length and ``DESC``."""
    match = _INDEX_COLUMN_RE.match(entry.strip())
    if not match:
        return quote_identifier(entry.strip())
    rendered = quote_identifier(match.group("name").strip())
    if match.group("length"):
        rendered += f"({match.group('length')})"
    if match.group("order"):
        rendered += f" {match.group('order').upper()}"
    return rendered


def _column_list(index: IndexDescriptor) -> str:
    return ", ".join(render_index_column(c) for c in index.columns if c.strip())


def _has_columns(index: IndexDescriptor) -> bool:
    return any(c.strip() for c in index.columns)


def _is_primary(name: str) -> bool:
    return name.upper() == PRIMARY_KEY_NAME


def _add_clause(index: IndexDescriptor, name: str) -> str:
    if _is_primary(name):
        return f"ADD PRIMARY KEY ({_column_list(index)})"
    clause = (
        f"ADD {'UNIQUE ' if index.unique else ''}INDEX "
        f"{quote_identifier(name)}({_column_list(index)}) "
        f"USING {(index.method or 'BTREE').upper()}"
    )
    if index.comment.strip():
        clause += f" COMMENT {escape_value(index.comment.strip())}"
    return clause


def _drop_clause(name: str) -> str:
    if _is_primary(name):
        return "DROP PRIMARY KEY"
    return f"DROP INDEX {quote_identifier(name)}"


def _definition_changed(before: IndexDescriptor, after: IndexDescriptor) -> bool:
    return (
        [c.strip() for c in before.columns if c.strip()]
        != [c.strip() for c in after.columns if c.strip()]
        or before.unique != after.unique
        or (before.method or "BTREE").upper() != (after.method or "BTREE").upper()
        or before.comment.strip() != after.comment.strip()
    )


def diff_indexes(
    original: Mapping[str, IndexDescriptor],
    working: Sequence[IndexDescriptor],
    table: TableIdentity,
) -> list[str]:
    """
    Return the ordered statements turning *original* into *working*.

    Args:
        original: Indexes as loaded, keyed by index name.
        working:  Edited index rows; ``original_name`` links a row to the
                  index it was loaded from.
        table:    Table the statements apply to.
    """
    target = qualified_name(table.database_name, table.table_name)
    statements: list[str] = []
    processed: set[str] = set()

    for row, index in enumerate(working):
        name = index.name.strip()
        if not name:
            continue
        if index.original_name:
            processed.add(index.original_name)

        before = original.get(index.original_name) if index.original_name else None
        if before is None:
            if _has_columns(index):
                statements.append(f"ALTER TABLE {target} {_add_clause(index, name)};")
            continue

        if name == index.original_name and not _definition_changed(before, index):
            continue

        if not _has_columns(index):
            statements.append(f"ALTER TABLE {target} {_drop_clause(index.original_name)};")
        elif _is_primary(name) or _is_primary(index.original_name):
            statements.append(
                f"ALTER TABLE {target} {_drop_clause(index.original_name)}, "
                f"{_add_clause(index, name)};"
            )
        else:
            temp_name = f"{TEMP_INDEX_PREFIX}{row}"
            statements.append(f"ALTER TABLE {target} {_add_clause(index, temp_name)};")
            statements.append(f"ALTER TABLE {target} {_drop_clause(index.original_name)};")
            statements.append(
                f"ALTER TABLE {target} RENAME INDEX "
                f"{quote_identifier(temp_name)} TO {quote_identifier(name)};"
            )

    for original_name in original:
        if original_name not in processed:
            statements.append(f"ALTER TABLE {target} {_drop_clause(original_name)};")

    log.debug("Index diff for %s: %d statement(s).", table, len(statements))
    return statements
