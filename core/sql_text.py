"""
core/sql_text.py
----------------
The only two places where text is made safe for MySQL statements.

Every statement builder in ``core`` goes through ``quote_identifier`` for
names and ``escape_value`` for literal values, so the escaping contract can
be audited and tested in one file.
"""
from __future__ import annotations


def quote_identifier(name: str) -> str:
    """Backtick-quote *name*, doubling embedded backticks."""
    return "`" + name.replace("`", "``") + "`"


def escape_value(value: str | bytes) -> str:
    """
    Single-quote *value*, escaping backslashes and single quotes.

    Raw bytes render as a hex literal (``X'9f00'``) so binary keys match
    byte for byte.
    """
    if isinstance(value, (bytes, bytearray)):
        return f"X'{bytes(value).hex()}'"
    escaped = value.replace("\\", "\\\\").replace("'", "''")
    return f"'{escaped}'"


def qualified_name(database: str, table: str) -> str:
    """Quoted ``db.table`` reference; only the table when *database* is blank."""
    if not database:
        return quote_identifier(table)
    return f"{quote_identifier(database)}.{quote_identifier(table)}"
