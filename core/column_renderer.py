"""
core/column_renderer.py
-----------------------
Renders one :class:`ColumnDescriptor` as a MySQL column-definition fragment.

Fragment layout::

    `name` type [UNSIGNED] [ZEROFILL] [CHARACTER SET cs COLLATE coll]
        NOT NULL|NULL [DEFAULT value] [AUTO_INCREMENT] [COMMENT '...']

Design Decisions:
    * The charset/collation pair is emitted right after the type because
      MySQL only accepts CHARACTER SET as part of the data type.
    * The ``NULL`` default sentinel renders ``DEFAULT NULL`` for nullable
      columns and is dropped for NOT NULL columns, where it only means
      "no default" (that is how the server reports such columns).
    * Never raises: a blank type falls back to ``varchar(255)``.
"""
from __future__ import annotations

import re

from core.sql_text import escape_value, quote_identifier
from models.descriptors import NULL_DEFAULT, ColumnDescriptor

FALLBACK_TYPE = "varchar(255)"

_FUNCTION_CALL_RE = re.compile(r"^[A-Za-z_]+\(.*\)$")
_NUMERIC_RE = re.compile(r"^[-+]?[0-9]+(\.[0-9]+)?$")


def charset_for_collation(collation: str) -> str:
    """``utf8mb4_general_ci`` → ``utf8mb4``; empty when there is no prefix."""
    prefix, sep, _ = collation.partition("_")
    return prefix if sep and prefix else ""


def is_raw_default(expression: str) -> bool:
    """True when *expression* must be emitted unquoted."""
    return bool(
        _FUNCTION_CALL_RE.match(expression)
        or _NUMERIC_RE.match(expression)
        or expression.upper() == "CURRENT_TIMESTAMP"
    )


def render_default(column: ColumnDescriptor) -> str:
    """Return the ``DEFAULT ...`` clause (without leading space) or ``""``."""
    expression = column.default_expression.strip()
    if not expression or expression.upper() == NULL_DEFAULT:
        return "" if column.not_null else "DEFAULT NULL"
    if is_raw_default(expression):
        return f"DEFAULT {expression}"
    return f"DEFAULT {escape_value(expression)}"


def render_column_definition(column: ColumnDescriptor) -> str:
    """
    Render *column* as the definition used by ADD/CHANGE/MODIFY COLUMN.

    Example::

        render_column_definition(ColumnDescriptor(name="age", type="int",
                                                  unsigned=True, not_null=True))
        # "`age` int UNSIGNED NOT NULL"
    """
    col_type = column.type.strip() or FALLBACK_TYPE
    parts = [quote_identifier(column.name), col_type]
    lowered = col_type.lower()

    if column.unsigned and "unsigned" not in lowered:
        parts.append("UNSIGNED")
    if column.zero_fill and "zerofill" not in lowered:
        parts.append("ZEROFILL")

    if column.collation:
        charset = charset_for_collation(column.collation)
        if charset:
            parts.append(f"CHARACTER SET {charset} COLLATE {column.collation}")

    parts.append("NOT NULL" if column.not_null else "NULL")

    default_clause = render_default(column)
    if default_clause:
        parts.append(default_clause)
    if column.auto_increment:
        parts.append("AUTO_INCREMENT")
    if column.comment.strip():
        parts.append(f"COMMENT {escape_value(column.comment)}")
    return " ".join(parts)
