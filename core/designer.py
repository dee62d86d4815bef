"""
core/designer.py
----------------
Structure and index editing sessions for one table.

Each editor keeps the snapshot last read from the server (the "original")
and a working copy the UI mutates in place. ``pending_statements()`` is the
SQL preview; ``save()`` runs it statement by statement on a short-lived
connection.

Design Decisions:
    * Statements run in order and the first failure stops the save. Already
      executed statements stay applied: MySQL DDL is not transactional and
      no compensating rollback is attempted.
    * A successful save promotes the working copy to the new original, so
      the preview is empty again without another round trip.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Sequence

from core.connections import ConnectionProvider
from core.database import DatabaseError, DatabaseManager
from core.index_diff import diff_indexes
from core.structure_diff import ColumnValidationError, diff_structure, validate_columns
from logger import get_logger
from models.descriptors import ColumnDescriptor, IndexDescriptor, TableIdentity

log = get_logger(__name__)


@dataclass
class ApplyResult:
    """Outcome of running a statement list."""
    ok: bool
    executed: int = 0
    failed_sql: str = ""
    error: str = ""

    def __str__(self) -> str:
        if self.ok:
            return f"[OK] {self.executed} statement(s) executed"
        return f"[FAILED] after {self.executed} statement(s): {self.error}"


def apply_statements(db: DatabaseManager, statements: Sequence[str]) -> ApplyResult:
    """
    Execute *statements* one by one, committing each, stopping at the first error.

    The returned error text names the failing SQL and the server message.
    """
    executed = 0
    for sql in statements:
        clean = sql.strip().rstrip(";").strip()
        if not clean:
            continue
        try:
            db.execute(clean)
            db.commit()
        except DatabaseError as exc:
            log.error("Statement %d failed: %s", executed + 1, exc)
            return ApplyResult(
                ok=False,
                executed=executed,
                failed_sql=sql,
                error=f"Failed to execute:\n{sql}\nError: {exc}",
            )
        executed += 1
    log.info("Applied %d statement(s).", executed)
    return ApplyResult(ok=True, executed=executed)


def run_on_connection(
    provider: ConnectionProvider, table: TableIdentity, statements: Sequence[str]
) -> ApplyResult:
    """Open a dedicated connection for *table* and apply *statements* on it."""
    try:
        db = provider.open(table.connection_name, table.database_name)
    except DatabaseError as exc:
        return ApplyResult(ok=False, error=f"Connection failed: {exc}")
    try:
        return apply_statements(db, statements)
    finally:
        db.close()


class StructureEditor:
    """
    Column editing session for one table.

    Example::

        editor = StructureEditor(provider, TableIdentity("prod", "shop", "orders"))
        editor.reload()
        editor.working[1].name = "customer_id"
        print(editor.preview())
        result = editor.save()
    """

    def __init__(self, provider: ConnectionProvider, table: TableIdentity) -> None:
        self._provider = provider
        self.table = table
        self.original: list[ColumnDescriptor] = []
        self.working: list[ColumnDescriptor] = []

    def reload(self) -> None:
        """
        Read the columns from the server and reset the working copy.

        Raises:
            DatabaseError: On connection or query failure.
        """
        db = self._provider.open(self.table.connection_name, self.table.database_name)
        try:
            columns = db.fetch_columns(self.table.database_name, self.table.table_name)
        finally:
            db.close()
        self.load(columns)

    def load(self, columns: Sequence[ColumnDescriptor]) -> None:
        self.original = [c.copy() for c in columns]
        self.working = [c.copy() for c in columns]

    def discard(self) -> None:
        self.working = [c.copy() for c in self.original]

    def add_column(self, name: str, col_type: str = "varchar(255)") -> ColumnDescriptor:
        column = ColumnDescriptor(name=name, type=col_type)
        self.working.append(column)
        return column

    def remove_column(self, position: int) -> None:
        del self.working[position]

    def move_column(self, position: int, up: bool) -> int:
        """Swap a column with its neighbour; return its new position."""
        target = position - 1 if up else position + 1
        if target < 0 or target >= len(self.working):
            return position
        self.working[position], self.working[target] = self.working[target], self.working[position]
        return target

    def pending_statements(self) -> list[str]:
        """
        Validate the working copy and return the statements a save would run.

        Raises:
            ColumnValidationError: If the working copy is invalid.
        """
        validate_columns(self.working)
        return diff_structure(self.original, self.working, self.table)

    def preview(self) -> str:
        try:
            return "\n".join(self.pending_statements())
        except ColumnValidationError as exc:
            return str(exc)

    @property
    def is_dirty(self) -> bool:
        try:
            return bool(self.pending_statements())
        except ColumnValidationError:
            return True

    def save(self) -> ApplyResult:
        """
        Apply pending statements.

        Raises:
            ColumnValidationError: If the working copy is invalid; nothing runs.
        """
        statements = self.pending_statements()
        if not statements:
            return ApplyResult(ok=True)
        log.info("Saving structure of %s: %d statement(s).", self.table, len(statements))
        result = run_on_connection(self._provider, self.table, statements)
        if result.ok:
            self.load([replace(c, original_name=c.name) for c in self.working])
        return result


class IndexEditor:
    """Index editing session for one table."""

    def __init__(self, provider: ConnectionProvider, table: TableIdentity) -> None:
        self._provider = provider
        self.table = table
        self.original: dict[str, IndexDescriptor] = {}
        self.working: list[IndexDescriptor] = []

    def reload(self) -> None:
        """
        Read the indexes from the server and reset the working rows.

        Raises:
            DatabaseError: On connection or query failure.
        """
        db = self._provider.open(self.table.connection_name, self.table.database_name)
        try:
            indexes = db.fetch_indexes(self.table.database_name, self.table.table_name)
        finally:
            db.close()
        self.load(indexes)

    def load(self, indexes: Sequence[IndexDescriptor]) -> None:
        self.original = {i.name: i.copy() for i in indexes}
        self.working = [i.copy() for i in indexes]

    def discard(self) -> None:
        self.working = [i.copy() for i in self.original.values()]

    def add_index(
        self,
        name: str,
        columns: Sequence[str] = (),
        unique: bool = False,
        method: str = "BTREE",
        comment: str = "",
    ) -> IndexDescriptor:
        index = IndexDescriptor(
            name=name, columns=list(columns), unique=unique, method=method, comment=comment
        )
        self.working.append(index)
        return index

    def remove_index(self, position: int) -> None:
        del self.working[position]

    def pending_statements(self) -> list[str]:
        return diff_indexes(self.original, self.working, self.table)

    def preview(self) -> str:
        return "\n".join(self.pending_statements())

    @property
    def is_dirty(self) -> bool:
        return bool(self.pending_statements())

    def save(self) -> ApplyResult:
        statements = self.pending_statements()
        if not statements:
            return ApplyResult(ok=True)
        log.info("Saving indexes of %s: %d statement(s).", self.table, len(statements))
        result = run_on_connection(self._provider, self.table, statements)
        if result.ok:
            kept = [
                replace(i, name=i.name.strip(), original_name=i.name.strip(), columns=list(i.columns))
                for i in self.working
                if i.name.strip() and any(c.strip() for c in i.columns)
            ]
            self.load(kept)
        return result
