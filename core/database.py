"""
core/database.py
----------------
One MySQL connection plus the introspection calls the engine relies on.

Design Decisions:
    * ``DatabaseManager`` is a context manager so callers can use it with
      ``with`` statements and be guaranteed the connection is closed on exit.
    * All schema/table/column names are backtick-quoted through
      ``core.sql_text``; data values always travel as ``%s`` parameters.
    * Retry logic is implemented for transient connection errors using
      linear back-off (``max_retries`` / ``retry_delay`` from config).
    * Every ``mysql.connector.Error`` surfaces as :class:`DatabaseError`
      carrying the server text, so callers can show it verbatim.
"""
from __future__ import annotations

import time
from typing import Any

import mysql.connector
from mysql.connector import MySQLConnection
from mysql.connector.cursor import MySQLCursor

from config import CONFIG
from core.schema_reader import columns_from_rows, indexes_from_rows, primary_key_from_rows
from core.sql_text import qualified_name
from logger import get_logger
from models.connection import ConnectionInfo
from models.descriptors import ColumnDescriptor, IndexDescriptor

log = get_logger(__name__)


class DatabaseError(Exception):
    """Raised for database-level failures reported by this module."""


class ConnectionLostError(DatabaseError):
    """Raised when the connection to MySQL is detected as lost."""


class DatabaseManager:
    """
    MySQL connection wrapper used by editors and the sync pipeline.

    Provides:
        * Connect with retry back-off, optionally straight into a database.
        * ``execute`` / ``query`` helpers that wrap driver errors.
        * Explicit transaction control for batched copies.
        * Schema introspection: columns, indexes, primary key, DDL, existence.

    Example::

        with DatabaseManager.from_info(info, database="shop") as db:
            columns = db.fetch_columns("shop", "orders")
            db.execute("DELETE FROM `orders` WHERE `id` = %s", (7,))
            db.commit()
    """

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        database: str | None = None,
        charset: str = "utf8mb4",
        connect_timeout: int = 10,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._database = database or None
        self._charset = charset
        self._connect_timeout = connect_timeout
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay

        self._conn: MySQLConnection | None = None
        self._cursor: MySQLCursor | None = None

    @classmethod
    def from_info(cls, info: ConnectionInfo, database: str = "") -> "DatabaseManager":
        """Build a manager for *info*, using config for timeouts and retries."""
        return cls(
            host=info.host,
            port=info.port,
            user=info.user,
            password=info.password,
            database=database or info.default_database,
            charset=info.charset,
            connect_timeout=CONFIG.db.connect_timeout,
            max_retries=CONFIG.db.max_retries,
            retry_delay=CONFIG.db.retry_delay,
        )

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> "DatabaseManager":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            log.warning("Unhandled exception in DatabaseManager context: %s", exc_val)
            self._safe_rollback()
        self.close()
        return False

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """
        Open (or re-open) the MySQL connection with back-off retries.

        Raises:
            DatabaseError: If connection fails after all retries; the message
                carries the last driver error.
        """
        last_error: Exception | None = None
        for attempt in range(1, self._max_retries + 1):
            try:
                log.info(
                    "Connecting to MySQL at %s:%s (attempt %d/%d)",
                    self._host, self._port, attempt, self._max_retries,
                )
                params: dict[str, Any] = dict(
                    host=self._host,
                    port=self._port,
                    user=self._user,
                    password=self._password,
                    charset=self._charset,
                    connect_timeout=self._connect_timeout,
                    autocommit=False,
                )
                if self._database:
                    params["database"] = self._database
                self._conn = mysql.connector.connect(**params)
                self._cursor = self._conn.cursor(buffered=True)
                log.info("Connected to MySQL successfully.")
                return
            except mysql.connector.Error as exc:
                last_error = exc
                log.warning("Connection attempt %d failed: %s", attempt, exc)
                if attempt < self._max_retries:
                    time.sleep(self._retry_delay * attempt)
        raise DatabaseError(
            f"Could not connect to MySQL at {self._host}:{self._port} "
            f"after {self._max_retries} attempts: {last_error}"
        )

    def close(self) -> None:
        """Close cursor and connection; cleanup errors are only logged."""
        try:
            if self._cursor is not None:
                self._cursor.close()
        except mysql.connector.Error as exc:
            log.debug("Cursor close failed: %s", exc)
        try:
            if self._conn is not None and self._conn.is_connected():
                self._conn.close()
                log.info("Database connection closed.")
        except mysql.connector.Error as exc:
            log.debug("Connection close failed: %s", exc)
        self._cursor = None
        self._conn = None

    @property
    def is_connected(self) -> bool:
        return bool(self._conn and self._conn.is_connected())

    def _ensure_connected(self) -> None:
        if not self.is_connected:
            raise ConnectionLostError(
                "Database connection is not open. Call connect() first."
            )

    def _safe_rollback(self) -> None:
        try:
            if self._conn is not None and self._conn.is_connected():
                self._conn.rollback()
                log.debug("Transaction rolled back.")
        except mysql.connector.Error as exc:
            log.warning("Rollback failed: %s", exc)

    # ------------------------------------------------------------------
    # Statement execution
    # ------------------------------------------------------------------

    def execute(self, sql: str, params: tuple | None = None) -> MySQLCursor:
        """
        Execute a SQL statement and return the cursor.

        Args:
            sql:    SQL statement. Use %s placeholders for values.
            params: Tuple of parameter values (optional).

        Raises:
            ConnectionLostError: If not connected.
            DatabaseError: On MySQL execution errors.
        """
        self._ensure_connected()
        assert self._cursor is not None
        try:
            self._cursor.execute(sql, params)
            return self._cursor
        except mysql.connector.Error as exc:
            log.error("SQL execution error: %s | SQL: %.500s", exc, sql)
            raise DatabaseError(str(exc)) from exc

    def query(self, sql: str, params: tuple | None = None) -> tuple[list[str], list[tuple]]:
        """Run a SELECT-like statement; return ``(column_names, rows)``."""
        cursor = self.execute(sql, params)
        names = [d[0] for d in (cursor.description or [])]
        try:
            rows = cursor.fetchall() or []
        except mysql.connector.Error as exc:
            raise DatabaseError(str(exc)) from exc
        return names, list(rows)

    def query_dicts(self, sql: str, params: tuple | None = None) -> list[dict[str, Any]]:
        """Like :meth:`query` but each row is a ``{column: value}`` dict."""
        names, rows = self.query(sql, params)
        return [dict(zip(names, row)) for row in rows]

    def commit(self) -> None:
        self._ensure_connected()
        assert self._conn is not None
        try:
            self._conn.commit()
        except mysql.connector.Error as exc:
            raise DatabaseError(str(exc)) from exc

    def rollback(self) -> None:
        self._safe_rollback()

    def start_transaction(self) -> None:
        """
        Begin an explicit transaction, committing any implicit one first.

        Raises:
            DatabaseError: If the server refuses to start a transaction.
        """
        self._ensure_connected()
        assert self._conn is not None
        try:
            if self._conn.in_transaction:
                self._conn.commit()
            self._conn.start_transaction()
        except mysql.connector.Error as exc:
            raise DatabaseError(str(exc)) from exc

    def set_autocommit(self, enabled: bool) -> None:
        self._ensure_connected()
        assert self._conn is not None
        try:
            self._conn.autocommit = enabled
        except mysql.connector.Error as exc:
            raise DatabaseError(str(exc)) from exc

    @property
    def rowcount(self) -> int:
        assert self._cursor is not None
        return self._cursor.rowcount

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def list_tables(self) -> list[str]:
        """Return table names in the current database."""
        _, rows = self.query("SHOW TABLES")
        return [str(row[0]) for row in rows]

    def table_exists(self, schema: str, table: str) -> bool:
        """
        Return True if *schema*.*table* exists.

        Raises:
            DatabaseError: If the metadata probe itself fails.
        """
        _, rows = self.query(
            "SELECT 1 FROM information_schema.tables "
            "WHERE table_schema = %s AND table_name = %s LIMIT 1",
            (schema, table),
        )
        return bool(rows)

    def fetch_columns(self, database: str, table: str) -> list[ColumnDescriptor]:
        rows = self.query_dicts(f"SHOW FULL COLUMNS FROM {qualified_name(database, table)}")
        return columns_from_rows(rows)

    def fetch_indexes(self, database: str, table: str) -> list[IndexDescriptor]:
        rows = self.query_dicts(f"SHOW INDEX FROM {qualified_name(database, table)}")
        return indexes_from_rows(rows)

    def fetch_primary_key_columns(self, database: str, table: str) -> list[str]:
        rows = self.query_dicts(
            f"SHOW KEYS FROM {qualified_name(database, table)} WHERE Key_name = 'PRIMARY'"
        )
        return primary_key_from_rows(rows)

    def fetch_create_statement(self, database: str, table: str) -> str:
        """
        Return the ``SHOW CREATE TABLE`` text.

        Raises:
            DatabaseError: If the statement fails or returns nothing.
        """
        _, rows = self.query(f"SHOW CREATE TABLE {qualified_name(database, table)}")
        if not rows or len(rows[0]) < 2 or not rows[0][1]:
            raise DatabaseError(f"Unable to read the definition of table '{table}'.")
        ddl = rows[0][1]
        if isinstance(ddl, (bytes, bytearray)):
            ddl = bytes(ddl).decode("utf-8")
        return str(ddl)

    def set_session_sql_mode(self, mode: str) -> None:
        self.execute("SET SESSION sql_mode = %s", (mode,))
