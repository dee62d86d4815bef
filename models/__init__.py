"""models/__init__.py"""
from models.connection import ConnectionInfo
from models.descriptors import (
    TableIdentity,
    ColumnDescriptor,
    IndexDescriptor,
    RowLifecycle,
    RowEditState,
)
from models.sync import (
    TableMapping,
    SyncOptions,
    SyncSummary,
    default_mappings,
    load_sync_job,
    save_sync_job,
)

__all__ = [
    "ConnectionInfo",
    "TableIdentity",
    "ColumnDescriptor",
    "IndexDescriptor",
    "RowLifecycle",
    "RowEditState",
    "TableMapping",
    "SyncOptions",
    "SyncSummary",
    "default_mappings",
    "load_sync_job",
    "save_sync_job",
]
