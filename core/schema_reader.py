"""
core/schema_reader.py
---------------------
Turns ``SHOW FULL COLUMNS`` / ``SHOW INDEX`` / ``SHOW KEYS`` result rows into
descriptors.

Design Decisions:
    * The parsers are pure functions over dict rows (column label → value)
      so they can be tested without a server; ``DatabaseManager`` feeds them.
    * Column labels are matched case-insensitively because drivers and
      server versions disagree on their case.
"""
from __future__ import annotations

import re
from typing import Any, Iterable, Mapping

from logger import get_logger
from models.descriptors import NULL_DEFAULT, ColumnDescriptor, IndexDescriptor

log = get_logger(__name__)

Row = Mapping[str, Any]

_UNSIGNED_RE = re.compile(r"\s+unsigned", re.IGNORECASE)
_ZEROFILL_RE = re.compile(r"\s+zerofill", re.IGNORECASE)


def _field(row: Row, label: str, default: Any = None) -> Any:
    if label in row:
        return row[label]
    lowered = label.lower()
    for key, value in row.items():
        if key.lower() == lowered:
            return value
    return default


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def column_from_row(row: Row) -> ColumnDescriptor:
    """Build a :class:`ColumnDescriptor` from one ``SHOW FULL COLUMNS`` row."""
    name = _text(_field(row, "Field"))
    raw_type = _text(_field(row, "Type"))
    extra = _text(_field(row, "Extra")).lower()
    default = _field(row, "Default")

    return ColumnDescriptor(
        name=name,
        original_name=name,
        type=_ZEROFILL_RE.sub("", _UNSIGNED_RE.sub("", raw_type)).strip(),
        collation=_text(_field(row, "Collation")),
        unsigned="unsigned" in raw_type.lower(),
        zero_fill="zerofill" in raw_type.lower(),
        not_null=_text(_field(row, "Null")).upper() == "NO",
        key=_text(_field(row, "Key")).upper() == "PRI",
        auto_increment="auto_increment" in extra,
        default_expression=NULL_DEFAULT if default is None else _text(default),
        generated="virtual generated" in extra or "stored generated" in extra,
        comment=_text(_field(row, "Comment")),
    )


def columns_from_rows(rows: Iterable[Row]) -> list[ColumnDescriptor]:
    return [column_from_row(r) for r in rows]


def indexes_from_rows(rows: Iterable[Row]) -> list[IndexDescriptor]:
    """
    Group ``SHOW INDEX`` rows into one :class:`IndexDescriptor` per key name.

    Indexes keep the order in which the server first reports them; columns
    are placed by ``Seq_in_index``.
    """
    by_name: dict[str, IndexDescriptor] = {}
    positions: dict[str, dict[int, str]] = {}

    for row in rows:
        key_name = _text(_field(row, "Key_name"))
        if not key_name:
            continue
        index = by_name.get(key_name)
        if index is None:
            index = IndexDescriptor(name=key_name, original_name=key_name)
            by_name[key_name] = index
            positions[key_name] = {}

        index.unique = int(_field(row, "Non_unique", 1) or 0) == 0
        method = _text(_field(row, "Index_type"))
        if method:
            index.method = method.upper()
        comment = _text(_field(row, "Index_comment"))
        if comment and not index.comment:
            index.comment = comment

        column = _text(_field(row, "Column_name"))
        sub_part = _field(row, "Sub_part")
        if sub_part:
            column += f"({int(sub_part)})"
        if _text(_field(row, "Collation")).upper() == "D":
            column += " DESC"

        seq = int(_field(row, "Seq_in_index", 0) or 0)
        slots = positions[key_name]
        if seq <= 0:
            seq = len(slots) + 1
        slots[seq] = column

    for key_name, index in by_name.items():
        slots = positions[key_name]
        index.columns = [slots[s] for s in sorted(slots)]

    log.debug("Read %d index(es).", len(by_name))
    return list(by_name.values())


def primary_key_from_rows(rows: Iterable[Row]) -> list[str]:
    """Primary-key column names from ``SHOW KEYS ... WHERE Key_name = 'PRIMARY'``."""
    ordered = sorted(
        rows, key=lambda r: int(_field(r, "Seq_in_index", 0) or 0)
    )
    return [_text(_field(r, "Column_name")) for r in ordered]
