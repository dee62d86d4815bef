"""
logger.py
---------
Logging setup shared by the change-set engine and the sync pipeline.

Design Decisions:
    * Everything logs under the "changeset" hierarchy; modules call
      ``get_logger(__name__)`` and never configure handlers themselves.
    * Records carry a ``component`` field (the logger name without the
      "changeset." prefix) and the thread name, so lines emitted by the
      "sync-worker" thread can be told apart from editor saves.
    * LOG_FILE adds a DEBUG-level file handler that also receives the
      per-row sync lines a caller sees through ``on_log``.
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

from config import CONFIG, get_log_level

ROOT_LOGGER_NAME = "changeset"

_CONSOLE_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(component)s: %(message)s"
_FILE_FORMAT = (
    "%(asctime)s %(levelname)s [%(threadName)s] %(component)s "
    "(%(filename)s:%(lineno)d): %(message)s"
)
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ComponentFilter(logging.Filter):
    """Sets ``record.component`` to the logger name relative to the root."""

    _prefix = ROOT_LOGGER_NAME + "."

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        record.component = name[len(self._prefix):] if name.startswith(self._prefix) else name
        return True


def _build_handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.addFilter(ComponentFilter())
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=_DATE_FORMAT))
    return handler


def _configure() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return root
    root.setLevel(logging.DEBUG if CONFIG.logging.file else get_log_level())
    root.addHandler(
        _build_handler(logging.StreamHandler(sys.stderr), get_log_level(), _CONSOLE_FORMAT)
    )

    if CONFIG.logging.file:
        log_path = Path(CONFIG.logging.file)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            root.addHandler(
                _build_handler(
                    logging.FileHandler(log_path, encoding="utf-8"), logging.DEBUG, _FILE_FORMAT
                )
            )
        except OSError as exc:
            root.warning("Could not open log file '%s': %s", log_path, exc)
    return root


_configure()


def get_logger(name: str) -> logging.Logger:
    """
    Return a logger under the "changeset" hierarchy.

    Example::

        log = get_logger(__name__)
        log.info("Saving %d row change(s) to %s.", len(statements), table)
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
