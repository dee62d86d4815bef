"""
core/synchronizer.py
--------------------
Table-by-table data synchronization between two MySQL connections.

Design Decisions:
    * The pipeline owns two dedicated connections (source and target) for
      the whole run and processes mappings strictly in order.
    * Log lines and progress go out through callbacks (``on_log``,
      ``on_progress``) so a GUI, a CLI or a test can observe a run without
      this module knowing about any of them. Every log line is mirrored
      into the module logger.
    * Rows are inserted one by one with ``%s`` parameters inside explicit
      transactions that are committed every ``batch_size`` successful rows.
      If the target refuses a transaction the copy degrades to autocommit.
    * ``continue_on_error`` decides whether a failure is isolated to a row
      or table, or aborts the run. On abort the open batch is rolled back.
    * ``run()`` never raises for database problems: they end up in the
      :class:`SyncSummary` and the log stream.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Sequence

from core.connections import ConnectionProvider
from core.database import DatabaseError, DatabaseManager
from core.sql_text import qualified_name, quote_identifier
from logger import get_logger
from models.sync import SyncOptions, SyncSummary, TableMapping

log = get_logger(__name__)

LogCallback = Callable[[str], None]
ProgressCallback = Callable[[int, int], None]  # done, total
FinishedCallback = Callable[[SyncSummary], None]

NO_TABLES_MESSAGE = "No tables selected for synchronization."
CANCELLED_MESSAGE = "Synchronization cancelled."


class SyncError(Exception):
    """Raised for invalid sync options and for table-level sync failures."""


class SyncInProgressError(SyncError):
    """Raised when a run is started while another one is still active."""


@dataclass
class TableCopyResult:
    """Outcome of copying one table's rows."""
    rows_copied: int = 0
    error: str = ""
    aborted: bool = False
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return not self.error and not self.cancelled


def validate_options(options: SyncOptions) -> None:
    """
    Raises:
        SyncError: If a connection or database name is blank.
    """
    missing = [
        label
        for label, value in (
            ("source connection", options.source_connection),
            ("target connection", options.target_connection),
            ("source database", options.source_db),
            ("target database", options.target_db),
        )
        if not value.strip()
    ]
    if missing:
        raise SyncError(f"Sync options incomplete: missing {', '.join(missing)}.")


class SyncPipeline:
    """
    One synchronization run over an ordered list of table mappings.

    Args:
        provider:     Opens the source and target connections by name.
        options:      Run-wide :class:`SyncOptions`.
        mappings:     Mappings in processing order; disabled ones are skipped.
        on_log:       Optional ``(line)`` callback.
        on_progress:  Optional ``(tables_done, tables_total)`` callback.
        cancel_event: Optional event; when set the run stops at the next
                      table or batch boundary.

    Example::

        pipeline = SyncPipeline(provider, options, mappings, on_log=print)
        summary = pipeline.run()

    Raises:
        SyncError: If *options* are incomplete.
    """

    def __init__(
        self,
        provider: ConnectionProvider,
        options: SyncOptions,
        mappings: Sequence[TableMapping],
        on_log: LogCallback | None = None,
        on_progress: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        validate_options(options)
        self._provider = provider
        self.options = options
        self.mappings = list(mappings)
        self._on_log = on_log
        self._on_progress = on_progress
        self._cancel = cancel_event or threading.Event()

    # ------------------------------------------------------------------
    # Event helpers
    # ------------------------------------------------------------------

    def _log(self, line: str) -> None:
        stripped = line.lstrip()
        if stripped.startswith("[ERROR]"):
            log.error(stripped)
        elif stripped.startswith("[WARN]"):
            log.warning(stripped)
        else:
            log.info(stripped)
        if self._on_log is not None:
            self._on_log(line)

    def _progress(self, done: int, total: int) -> None:
        if self._on_progress is not None:
            self._on_progress(done, total)

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    # ------------------------------------------------------------------
    # Per-table steps
    # ------------------------------------------------------------------

    def ensure_target_table(
        self, mapping: TableMapping, source: DatabaseManager, target: DatabaseManager
    ) -> None:
        """
        Make sure the mapping's target table exists, creating it if allowed.

        The target is created from the source's ``SHOW CREATE TABLE`` text
        with the quoted source name replaced by the quoted target name.

        Raises:
            SyncError: If the table is missing and cannot or may not be created.
        """
        target_table = mapping.effective_target
        if not target_table:
            raise SyncError("Target table name is empty.")
        try:
            if target.table_exists(self.options.target_db, target_table):
                return
        except DatabaseError as exc:
            raise SyncError(f"Failed to check target table: {exc}") from exc

        if not mapping.create_table_if_missing:
            raise SyncError(
                f"Target table {target_table} does not exist and auto-create is disabled."
            )
        try:
            ddl = source.fetch_create_statement(self.options.source_db, mapping.source_table)
        except DatabaseError as exc:
            raise SyncError(f"Failed to read source table schema: {exc}") from exc

        ddl = ddl.replace(quote_identifier(mapping.source_table), quote_identifier(target_table))
        log.debug("Creating target table with:\n%s", ddl)
        try:
            target.execute(ddl)
            target.commit()
        except DatabaseError as exc:
            raise SyncError(f"Failed to create target table: {exc}") from exc

    def clear_target_table(self, mapping: TableMapping, target: DatabaseManager) -> None:
        """
        Empty the target table with TRUNCATE or DELETE, per the options.

        Raises:
            SyncError: If the statement fails.
        """
        target_table = mapping.effective_target
        if not target_table:
            raise SyncError("Target table name is empty.")
        qualified = qualified_name(self.options.target_db, target_table)
        sql = f"TRUNCATE TABLE {qualified}" if self.options.use_truncate else f"DELETE FROM {qualified}"
        try:
            target.execute(sql)
            target.commit()
        except DatabaseError as exc:
            raise SyncError(f"Failed to empty target table: {exc}") from exc

    def _begin(self, target: DatabaseManager) -> bool:
        try:
            target.start_transaction()
            return True
        except DatabaseError as exc:
            log.debug("start_transaction failed: %s", exc)
        try:
            target.set_autocommit(True)
        except DatabaseError as exc:
            log.warning("Could not switch target to autocommit: %s", exc)
        return False

    def copy_table_data(
        self, mapping: TableMapping, source: DatabaseManager, target: DatabaseManager
    ) -> TableCopyResult:
        """
        Copy every source row into the target table.

        Returns:
            :class:`TableCopyResult`. ``rows_copied`` counts inserted rows;
            on abort or cancel only rows already committed are counted.
            ``error`` holds the first failure, if any.
        """
        result = TableCopyResult()
        target_table = mapping.effective_target
        if not target_table:
            result.error = "Target table name is empty."
            return result

        try:
            names, rows = source.query(
                f"SELECT * FROM {qualified_name(self.options.source_db, mapping.source_table)}"
            )
        except DatabaseError as exc:
            result.error = f"Failed to read source table: {exc}"
            return result
        if not names:
            return result

        insert_sql = (
            f"INSERT INTO {qualified_name(self.options.target_db, target_table)} "
            f"({', '.join(quote_identifier(n) for n in names)}) "
            f"VALUES ({', '.join(['%s'] * len(names))})"
        )
        batch_size = self.options.effective_batch_size

        in_transaction = self._begin(target)
        if not in_transaction:
            self._log(
                "[WARN] Unable to start transaction on target DB, "
                "rows will be committed individually."
            )

        committed = 0
        pending = 0
        for ordinal, row in enumerate(rows, start=1):
            if pending == 0 and self.cancelled:
                if in_transaction:
                    target.rollback()
                result.cancelled = True
                result.rows_copied = committed
                return result

            try:
                target.execute(insert_sql, tuple(row))
            except DatabaseError as exc:
                if not result.error:
                    result.error = f"Failed to insert row {ordinal}: {exc}"
                self._log(f"  [WARN] Row {ordinal} failed to insert: {exc}")
                if not self.options.continue_on_error:
                    if in_transaction:
                        target.rollback()
                    result.aborted = True
                    result.rows_copied = committed
                    return result
                continue

            if not in_transaction:
                committed += 1
                continue

            pending += 1
            if pending >= batch_size:
                try:
                    target.commit()
                except DatabaseError as exc:
                    target.rollback()
                    result.error = f"Failed to commit batch: {exc}"
                    result.rows_copied = committed
                    return result
                committed += pending
                pending = 0
                log.debug("Committed batch; %d row(s) of %s so far.", committed, target_table)
                in_transaction = self._begin(target)
                if not in_transaction:
                    self._log(
                        "[WARN] Unable to restart transaction, "
                        "subsequent inserts will autocommit."
                    )

        if in_transaction:
            try:
                target.commit()
            except DatabaseError as exc:
                target.rollback()
                result.error = f"Failed to commit final transaction: {exc}"
                result.rows_copied = committed
                return result
            committed += pending

        result.rows_copied = committed
        return result

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def _open(self, connection: str, database: str, side: str) -> DatabaseManager:
        try:
            return self._provider.open(connection, database)
        except DatabaseError as exc:
            raise SyncError(f"Failed to connect to {side} database: {exc}") from exc

    def _finish(self, summary: SyncSummary) -> SyncSummary:
        self._log(summary.message)
        log.info("%s", summary)
        return summary

    def run(self) -> SyncSummary:
        """Execute the run; return its :class:`SyncSummary`."""
        tasks = [m for m in self.mappings if m.enabled]
        if not tasks:
            return self._finish(SyncSummary(aborted=True, message=NO_TABLES_MESSAGE))

        source: DatabaseManager | None = None
        target: DatabaseManager | None = None
        try:
            try:
                source = self._open(
                    self.options.source_connection, self.options.source_db, "source"
                )
                target = self._open(
                    self.options.target_connection, self.options.target_db, "target"
                )
            except SyncError as exc:
                return self._finish(SyncSummary(aborted=True, message=str(exc)))

            if self.options.relax_target_strict_mode:
                try:
                    target.set_session_sql_mode("")
                    target.commit()
                except DatabaseError as exc:
                    self._log(f"[WARN] Unable to disable strict mode on target: {exc}")

            return self._finish(self._run_tasks(tasks, source, target))
        finally:
            if target is not None:
                target.close()
            if source is not None:
                source.close()

    def _run_tasks(
        self,
        tasks: Sequence[TableMapping],
        source: DatabaseManager,
        target: DatabaseManager,
    ) -> SyncSummary:
        success = failed = total_rows = 0
        total = len(tasks)
        self._progress(0, total)

        def stopped(message: str) -> SyncSummary:
            return SyncSummary(
                aborted=True,
                message=message,
                success_tables=success,
                failed_tables=failed,
                total_rows_copied=total_rows,
            )

        for done, mapping in enumerate(tasks, start=1):
            if self.cancelled:
                return stopped(CANCELLED_MESSAGE)

            self._log(f"{mapping.source_table} -> {mapping.effective_target}")
            try:
                self.ensure_target_table(mapping, source, target)
                if self.options.empty_target_before_copy:
                    self.clear_target_table(mapping, target)
            except SyncError as exc:
                self._log(f"  [ERROR] {exc}")
                failed += 1
                self._progress(done, total)
                if not self.options.continue_on_error:
                    return stopped(str(exc))
                continue

            copied = self.copy_table_data(mapping, source, target)
            total_rows += copied.rows_copied
            if copied.cancelled:
                return stopped(CANCELLED_MESSAGE)
            if not copied.ok:
                self._log(f"  [ERROR] {copied.error}")
                failed += 1
                self._progress(done, total)
                if copied.aborted or not self.options.continue_on_error:
                    return stopped(copied.error)
                continue

            self._log(f"  [OK] {copied.rows_copied} rows.")
            success += 1
            self._progress(done, total)

        if failed:
            message = f"Sync finished: {success} tables succeeded, {failed} failed."
        else:
            message = f"Sync completed: {success} tables, {total_rows} rows."
        return SyncSummary(
            aborted=False,
            message=message,
            success_tables=success,
            failed_tables=failed,
            total_rows_copied=total_rows,
        )


def run_sync(
    provider: ConnectionProvider,
    mappings: Sequence[TableMapping],
    options: SyncOptions,
    on_log: LogCallback | None = None,
    on_progress: ProgressCallback | None = None,
) -> SyncSummary:
    """Run a synchronization on the calling thread."""
    return SyncPipeline(provider, options, mappings, on_log, on_progress).run()


class SyncRunner:
    """
    Runs one :class:`SyncPipeline` at a time on a daemon worker thread.

    Callbacks are invoked from the worker thread.

    Example::

        runner = SyncRunner(provider)
        runner.start(mappings, options, on_log=print, on_finished=print)
        runner.wait()
    """

    def __init__(self, provider: ConnectionProvider) -> None:
        self._provider = provider
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._cancel = threading.Event()
        self.summary: SyncSummary | None = None

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._thread is not None and self._thread.is_alive()

    def start(
        self,
        mappings: Sequence[TableMapping],
        options: SyncOptions,
        on_log: LogCallback | None = None,
        on_progress: ProgressCallback | None = None,
        on_finished: FinishedCallback | None = None,
    ) -> None:
        """
        Start a run in the background.

        Raises:
            SyncInProgressError: If a run is already active.
            SyncError: If *options* are incomplete.
        """
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                raise SyncInProgressError("A synchronization is already running.")
            self._cancel.clear()
            self.summary = None
            pipeline = SyncPipeline(
                self._provider, options, mappings, on_log, on_progress, self._cancel
            )
            self._thread = threading.Thread(
                target=self._work,
                args=(pipeline, on_finished),
                name="sync-worker",
                daemon=True,
            )
            self._thread.start()

    def _work(self, pipeline: SyncPipeline, on_finished: FinishedCallback | None) -> None:
        try:
            summary = pipeline.run()
        except Exception as exc:
            log.exception("Synchronization worker crashed.")
            summary = SyncSummary(aborted=True, message=f"Synchronization failed: {exc}")
        self.summary = summary
        if on_finished is not None:
            on_finished(summary)

    def cancel(self) -> None:
        """Ask the active run to stop at the next table or batch boundary."""
        self._cancel.set()

    def wait(self, timeout: float | None = None) -> SyncSummary | None:
        """Join the worker; return the summary once the run has finished."""
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
            if thread.is_alive():
                return None
        return self.summary
