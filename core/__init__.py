"""core/__init__.py"""
from core.database import DatabaseManager, DatabaseError, ConnectionLostError
from core.connections import ConnectionProvider, UnknownConnectionError
from core.sql_text import quote_identifier, escape_value, qualified_name
from core.column_renderer import render_column_definition
from core.structure_diff import ColumnValidationError, diff_structure, validate_columns
from core.index_diff import diff_indexes
from core.designer import ApplyResult, apply_statements, StructureEditor, IndexEditor
from core.row_edit import RowEditSession, RowEditError, MissingPrimaryKeyError
from core.synchronizer import (
    SyncPipeline,
    SyncRunner,
    SyncError,
    SyncInProgressError,
    run_sync,
)

__all__ = [
    "DatabaseManager",
    "DatabaseError",
    "ConnectionLostError",
    "ConnectionProvider",
    "UnknownConnectionError",
    "quote_identifier",
    "escape_value",
    "qualified_name",
    "render_column_definition",
    "ColumnValidationError",
    "diff_structure",
    "validate_columns",
    "diff_indexes",
    "ApplyResult",
    "apply_statements",
    "StructureEditor",
    "IndexEditor",
    "RowEditSession",
    "RowEditError",
    "MissingPrimaryKeyError",
    "SyncPipeline",
    "SyncRunner",
    "SyncError",
    "SyncInProgressError",
    "run_sync",
]
