"""
config.py
---------
Centralised configuration management for the MySQL change-set engine.

Loads settings from environment variables (with .env file support via
python-dotenv). Provides typed settings as frozen dataclasses so
configuration is immutable at runtime.

Design Decision:
    Using a dataclass with class-level defaults means the engine works
    "out of the box" without any .env file, while still allowing
    environment-based overrides for automation and CI runs.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(dotenv_path=_env_path)


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection defaults applied to every ``ConnectionInfo``."""
    host: str = field(default_factory=lambda: os.getenv("DB_HOST", "localhost"))
    port: int = field(default_factory=lambda: int(os.getenv("DB_PORT", "3306")))
    charset: str = field(default_factory=lambda: os.getenv("DB_CHARSET", "utf8mb4"))
    connect_timeout: int = field(
        default_factory=lambda: int(os.getenv("DB_CONNECT_TIMEOUT", "10"))
    )
    max_retries: int = field(
        default_factory=lambda: int(os.getenv("DB_MAX_RETRIES", "3"))
    )
    retry_delay: float = field(
        default_factory=lambda: float(os.getenv("DB_RETRY_DELAY", "1.0"))
    )
    # Username / password are NOT stored here; they travel in ConnectionInfo
    # objects handed over by the caller.


@dataclass(frozen=True)
class SyncConfig:
    """Synchronization pipeline settings."""
    batch_size: int = field(
        default_factory=lambda: int(os.getenv("SYNC_BATCH_SIZE", "1000"))
    )
    job_file: Path = field(
        default_factory=lambda: Path(os.getenv("SYNC_JOB_FILE", "sync_job.json"))
    )


@dataclass(frozen=True)
class LoggingConfig:
    level: str = field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper()
    )
    file: str | None = field(
        default_factory=lambda: os.getenv("LOG_FILE")  # None → log to stderr only
    )


@dataclass(frozen=True)
class AppConfig:
    """Root application configuration."""
    db: DatabaseConfig = field(default_factory=DatabaseConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    app_name: str = "MySQL Change-Set Engine"
    app_version: str = "1.0.0"


def load_config() -> AppConfig:
    """
    Build and return the application configuration.

    Example::

        cfg = load_config()
        print(cfg.db.host)          # "localhost"
        print(cfg.sync.batch_size)  # 1000
    """
    return AppConfig()


# Module-level singleton used throughout the application
CONFIG: AppConfig = load_config()


def get_log_level() -> int:
    """Convert string log level from config to logging module constant."""
    level = getattr(logging, CONFIG.logging.level, None)
    if not isinstance(level, int):
        return logging.INFO
    return level
