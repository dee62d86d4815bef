"""
models/sync.py
--------------
Typed data models for one synchronization run.

Design Decision:
    Using ``@dataclass`` instead of plain dicts gives one source of truth
    for option names, while explicit ``to_dict`` / ``from_dict`` methods
    keep the saved job file tolerant of missing keys written by older
    versions.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from config import CONFIG


@dataclass
class TableMapping:
    """
    One source table → one target table copy task.

    Attributes:
        source_table:           Table in the source database.
        target_table:           Table in the target database; blank means
                                "same name as the source".
        create_table_if_missing: Create the target from the source DDL when
                                it does not exist.
        enabled:                Only enabled mappings take part in a run.
        field_mapping_label:    Display label of the field mapping in use.
    """
    source_table: str
    target_table: str = ""
    create_table_if_missing: bool = False
    enabled: bool = True
    field_mapping_label: str = "Default"

    @property
    def effective_target(self) -> str:
        return self.target_table.strip() or self.source_table

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_table": self.source_table,
            "target_table": self.target_table,
            "create_table": self.create_table_if_missing,
            "enabled": self.enabled,
            "mapping_label": self.field_mapping_label,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "TableMapping":
        return TableMapping(
            source_table=data.get("source_table", ""),
            target_table=data.get("target_table", ""),
            create_table_if_missing=bool(data.get("create_table", False)),
            enabled=bool(data.get("enabled", True)),
            field_mapping_label=data.get("mapping_label", "Default"),
        )


@dataclass
class SyncOptions:
    """Global settings shared by every mapping of one run."""
    source_connection: str
    target_connection: str
    source_db: str
    target_db: str
    batch_size: int = field(default_factory=lambda: CONFIG.sync.batch_size)
    continue_on_error: bool = False
    relax_target_strict_mode: bool = False
    empty_target_before_copy: bool = False
    use_truncate: bool = False

    @property
    def effective_batch_size(self) -> int:
        return self.batch_size if self.batch_size > 0 else CONFIG.sync.batch_size

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_connection": self.source_connection,
            "target_connection": self.target_connection,
            "source_db": self.source_db,
            "target_db": self.target_db,
            "batch_size": self.batch_size,
            "continue_on_error": self.continue_on_error,
            "strict_mode": self.relax_target_strict_mode,
            "empty_target": self.empty_target_before_copy,
            "use_truncate": self.use_truncate,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "SyncOptions":
        return SyncOptions(
            source_connection=data.get("source_connection", ""),
            target_connection=data.get("target_connection", ""),
            source_db=data.get("source_db", ""),
            target_db=data.get("target_db", ""),
            batch_size=int(data.get("batch_size", CONFIG.sync.batch_size)),
            continue_on_error=bool(data.get("continue_on_error", False)),
            relax_target_strict_mode=bool(data.get("strict_mode", False)),
            empty_target_before_copy=bool(data.get("empty_target", False)),
            use_truncate=bool(data.get("use_truncate", False)),
        )


@dataclass
class SyncSummary:
    """Final outcome of a run. ``aborted`` means the run stopped early."""
    aborted: bool
    message: str
    success_tables: int = 0
    failed_tables: int = 0
    total_rows_copied: int = 0

    def __str__(self) -> str:
        status = "ABORTED" if self.aborted else "DONE"
        return (
            f"[{status}] {self.message} "
            f"(ok={self.success_tables}, failed={self.failed_tables}, "
            f"rows={self.total_rows_copied})"
        )


def default_mappings(
    source_tables: Iterable[str], hint_table: str = ""
) -> list[TableMapping]:
    """
    Build one same-name mapping per source table.

    Only the hinted table (case-insensitive match) starts enabled and with
    auto-create switched on.
    """
    mappings: list[TableMapping] = []
    for table in source_tables:
        hinted = bool(hint_table) and table.lower() == hint_table.lower()
        mappings.append(
            TableMapping(
                source_table=table,
                target_table=table,
                create_table_if_missing=hinted,
                enabled=hinted,
            )
        )
    return mappings


def load_sync_job(path: Path | str) -> tuple[SyncOptions, list[TableMapping]]:
    """
    Load options and mappings from a JSON job file.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ValueError: If the file contains invalid JSON.
    """
    path = Path(path)
    try:
        raw: dict = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in sync job file '{path}': {exc}") from exc

    options = SyncOptions.from_dict(raw.get("options", {}))
    mappings = [TableMapping.from_dict(m) for m in raw.get("mappings", [])]
    return options, mappings


def save_sync_job(
    path: Path | str, options: SyncOptions, mappings: list[TableMapping]
) -> None:
    """Serialise a job to JSON and write atomically (write-then-rename)."""
    path = Path(path)
    raw = {
        "options": options.to_dict(),
        "mappings": [m.to_dict() for m in mappings],
    }
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(raw, indent=4), encoding="utf-8")
    tmp.replace(path)
