"""
core/row_edit.py
----------------
Tracks edits made to a grid of table rows and renders the DML that
persists them.

Design Decisions:
    * Rows are addressed by an opaque id handed out at load/insert time,
      never by grid position, so inserts and deletes cannot shift which
      row an edit belongs to.
    * UPDATE and DELETE locate rows by the primary key's *original* values
      and carry ``LIMIT 1``. Tables without a primary key are read-only
      for existing rows.
    * ``save`` renders every statement before executing any, so a
      missing primary key refuses the whole save up front. Once execution
      starts, the first failure stops it and earlier statements stay
      applied (there is no enclosing transaction).
"""
from __future__ import annotations

import uuid
from typing import Any, Iterable, Sequence

from core.connections import ConnectionProvider
from core.database import DatabaseError
from core.designer import ApplyResult, run_on_connection
from core.sql_text import escape_value, qualified_name, quote_identifier
from logger import get_logger
from models.descriptors import RowEditState, RowLifecycle, TableIdentity

log = get_logger(__name__)


class RowEditError(Exception):
    """Raised when a row edit cannot be turned into a statement."""


class MissingPrimaryKeyError(RowEditError):
    """Raised when an existing row must be located but the table has no primary key."""


def _to_cell(value: Any) -> str | bytes:
    """Text for display and comparison; bytes that are not UTF-8 stay raw."""
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray)):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            return bytes(value)
    return str(value)


def new_row_id() -> str:
    return f"row_{uuid.uuid4().hex}"


class RowEditSession:
    """
    Per-grid-load edit tracker for one table.

    Example::

        session = RowEditSession(provider, TableIdentity("prod", "shop", "users"))
        ids = session.load(["id", "name"], [(1, "ann")])
        session.set_cell(ids[0], "name", "anne")
        session.pending_statements()
        # ["UPDATE `shop`.`users` SET `name` = 'anne' WHERE `id` = '1' LIMIT 1;"]
    """

    def __init__(self, provider: ConnectionProvider | None, table: TableIdentity) -> None:
        self._provider = provider
        self.table = table
        self.headers: list[str] = []
        self.primary_keys: list[str] = []
        self.rows: dict[str, RowEditState] = {}
        self._header_index: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(
        self,
        headers: Sequence[str],
        rows: Iterable[Sequence[Any]],
        primary_keys: Sequence[str] | None = None,
    ) -> list[str]:
        """
        Start tracking a freshly fetched page; return the new row ids in order.

        When *primary_keys* is None the key is looked up once on the server.
        """
        self.headers = list(headers)
        self._header_index = {h.lower(): i for i, h in enumerate(self.headers)}
        self.primary_keys = (
            list(primary_keys) if primary_keys is not None else self._lookup_primary_keys()
        )
        self.rows = {}
        width = len(self.headers)
        for raw in rows:
            values = [_to_cell(v) for v in raw][:width]
            nulls = [v is None for v in raw][:width]
            values += [""] * (width - len(values))
            nulls += [False] * (width - len(nulls))
            state = RowEditState(
                row_id=new_row_id(),
                original_values=list(values),
                current_values=list(values),
                current_null_flags=list(nulls),
                original_null_flags=nulls,
            )
            self.rows[state.row_id] = state
        log.debug("Loaded %d row(s) of %s; primary key %s.", len(self.rows), self.table, self.primary_keys)
        return list(self.rows)

    def _lookup_primary_keys(self) -> list[str]:
        if self._provider is None:
            return []
        try:
            db = self._provider.open(self.table.connection_name, self.table.database_name)
        except DatabaseError as exc:
            log.warning("Primary key lookup for %s failed: %s", self.table, exc)
            return []
        try:
            return db.fetch_primary_key_columns(self.table.database_name, self.table.table_name)
        except DatabaseError as exc:
            log.warning("Primary key lookup for %s failed: %s", self.table, exc)
            return []
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def _column_index(self, column: int | str) -> int:
        if isinstance(column, int):
            if not 0 <= column < len(self.headers):
                raise RowEditError(f"Column index {column} is out of range.")
            return column
        try:
            return self._header_index[column.lower()]
        except KeyError:
            raise RowEditError(f"Unknown column '{column}'.") from None

    def _state(self, row_id: str) -> RowEditState:
        try:
            return self.rows[row_id]
        except KeyError:
            raise RowEditError(f"Unknown row id '{row_id}'.") from None

    def set_cell(self, row_id: str, column: int | str, value: Any, is_null: bool = False) -> None:
        state = self._state(row_id)
        index = self._column_index(column)
        state.current_values[index] = "" if is_null else _to_cell(value)
        state.current_null_flags[index] = is_null or value is None

    def set_row(
        self, row_id: str, values: Sequence[Any], null_flags: Sequence[bool] = ()
    ) -> None:
        state = self._state(row_id)
        width = len(self.headers)
        state.current_values = ([_to_cell(v) for v in values] + [""] * width)[:width]
        flags = list(null_flags) or [v is None for v in values]
        state.current_null_flags = (flags + [False] * width)[:width]

    def insert_row(self, values: Sequence[Any] = (), null_flags: Sequence[bool] = ()) -> str:
        """Append a new row; return its id."""
        if not self.headers:
            raise RowEditError("The current result has no columns to edit.")
        width = len(self.headers)
        state = RowEditState(
            row_id=new_row_id(),
            current_values=([_to_cell(v) for v in values] + [""] * width)[:width],
            current_null_flags=(list(null_flags) + [False] * width)[:width],
            inserted=True,
        )
        self.rows[state.row_id] = state
        return state.row_id

    def duplicate_row(self, row_id: str) -> str:
        source = self._state(row_id)
        return self.insert_row(source.current_values, source.current_null_flags)

    def delete_rows(self, row_ids: Iterable[str]) -> None:
        """
        Remove rows from the grid.

        Rows inserted in this session simply disappear; persisted rows are
        marked deleted.

        Raises:
            MissingPrimaryKeyError: If a persisted row is selected and the
                table has no primary key; no row is touched then.
        """
        states = [self._state(r) for r in dict.fromkeys(row_ids)]
        if any(not s.inserted for s in states) and not self.primary_keys:
            raise MissingPrimaryKeyError(
                f"Table '{self.table.table_name}' has no primary key; "
                "existing rows cannot be deleted."
            )
        for state in states:
            if state.inserted:
                del self.rows[state.row_id]
            else:
                state.deleted = True

    def discard(self) -> None:
        """Forget every pending edit."""
        for row_id in [r for r, s in self.rows.items() if s.inserted]:
            del self.rows[row_id]
        for state in self.rows.values():
            state.deleted = False
            state.current_values = list(state.original_values)
            state.current_null_flags = list(state.original_null_flags)

    @property
    def is_dirty(self) -> bool:
        return any(s.lifecycle is not RowLifecycle.CLEAN for s in self.rows.values())

    # ------------------------------------------------------------------
    # SQL rendering
    # ------------------------------------------------------------------

    @property
    def _target(self) -> str:
        return qualified_name(self.table.database_name, self.table.table_name)

    def build_row_where_clause(self, state: RowEditState) -> str:
        """
        ``pk1 = v1 AND pk2 = v2`` from the row's original values.

        Raises:
            MissingPrimaryKeyError: If the table has no primary key.
            RowEditError: If a key column is not part of the loaded headers.
        """
        if not self.primary_keys:
            raise MissingPrimaryKeyError(
                f"Table '{self.table.table_name}' has no primary key; cannot locate the row."
            )
        clauses: list[str] = []
        for pk in self.primary_keys:
            index = self._header_index.get(pk.lower())
            if index is None:
                raise RowEditError(f"Cannot locate primary key column '{pk}'.")
            value = state.original_values[index] if index < len(state.original_values) else ""
            clauses.append(f"{quote_identifier(pk)} = {escape_value(value)}")
        return " AND ".join(clauses)

    def build_insert_sql(self, state: RowEditState) -> str:
        """Return an INSERT for *state*, or ``""`` when no column has a value."""
        columns: list[str] = []
        values: list[str] = []
        for i, header in enumerate(self.headers):
            value = state.current_values[i] if i < len(state.current_values) else ""
            is_null = state.is_null(i)
            if not value and not is_null:
                continue
            columns.append(quote_identifier(header))
            values.append("NULL" if is_null else escape_value(value))
        if not columns:
            return ""
        return (
            f"INSERT INTO {self._target} ({', '.join(columns)}) "
            f"VALUES ({', '.join(values)});"
        )

    def build_update_sql(self, state: RowEditState) -> str:
        """
        Return an UPDATE for the changed columns, or ``""`` when nothing changed.

        Raises:
            MissingPrimaryKeyError: If the table has no primary key.
        """
        assignments: list[str] = []
        for i, header in enumerate(self.headers):
            new = state.current_values[i] if i < len(state.current_values) else ""
            old = state.original_values[i] if i < len(state.original_values) else ""
            if new == old and state.is_null(i) == state.was_null(i):
                continue
            sql_value = "NULL" if state.is_null(i) else escape_value(new)
            assignments.append(f"{quote_identifier(header)} = {sql_value}")
        if not assignments:
            return ""
        where = self.build_row_where_clause(state)
        return f"UPDATE {self._target} SET {', '.join(assignments)} WHERE {where} LIMIT 1;"

    def build_delete_sql(self, state: RowEditState) -> str:
        """
        Raises:
            MissingPrimaryKeyError: If the table has no primary key.
        """
        where = self.build_row_where_clause(state)
        return f"DELETE FROM {self._target} WHERE {where} LIMIT 1;"

    def pending_statements(self) -> list[str]:
        """
        Render the statements a save would run, in row order.

        Raises:
            RowEditError: If any row cannot be rendered.
        """
        statements: list[str] = []
        for state in self.rows.values():
            lifecycle = state.lifecycle
            if lifecycle is RowLifecycle.INSERTED:
                sql = self.build_insert_sql(state)
            elif lifecycle is RowLifecycle.DELETED:
                sql = self.build_delete_sql(state)
            elif lifecycle is RowLifecycle.UPDATED:
                sql = self.build_update_sql(state)
            else:
                continue
            if sql:
                statements.append(sql)
        return statements

    def save(self) -> ApplyResult:
        """
        Persist all pending edits.

        Returns:
            :class:`ApplyResult`; on failure ``error`` names the offending
            SQL and the server message, or the reason nothing was run.
        """
        try:
            statements = self.pending_statements()
        except RowEditError as exc:
            return ApplyResult(ok=False, error=str(exc))
        if not statements:
            return ApplyResult(ok=True)
        if self._provider is None:
            return ApplyResult(ok=False, error="No connection provider configured.")

        log.info("Saving %d row change(s) to %s.", len(statements), self.table)
        result = run_on_connection(self._provider, self.table, statements)
        if result.ok:
            self._promote()
        return result

    def _promote(self) -> None:
        for row_id in [r for r, s in self.rows.items() if s.deleted]:
            del self.rows[row_id]
        for state in self.rows.values():
            state.inserted = False
            state.original_values = list(state.current_values)
            state.original_null_flags = list(state.current_null_flags)
