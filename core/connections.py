"""
core/connections.py
-------------------
Explicit registry of named connection profiles.

Design Decision:
    The provider is passed into every editor and pipeline instead of being a
    process-wide singleton; tests hand in a provider whose ``open`` returns
    mocks.
"""
from __future__ import annotations

from typing import Iterable

from core.database import DatabaseError, DatabaseManager
from logger import get_logger
from models.connection import ConnectionInfo

log = get_logger(__name__)


class UnknownConnectionError(DatabaseError):
    """Raised when a connection name has no registered profile."""


class ConnectionProvider:
    """
    Opens dedicated :class:`DatabaseManager` handles by connection name.

    Example::

        provider = ConnectionProvider([ConnectionInfo(name="prod", user="app")])
        with provider.open("prod", "shop") as db:
            db.list_tables()
    """

    def __init__(self, profiles: Iterable[ConnectionInfo] = ()) -> None:
        self._profiles: dict[str, ConnectionInfo] = {}
        for info in profiles:
            self.register(info)

    def register(self, info: ConnectionInfo) -> None:
        self._profiles[info.name] = info

    def info(self, name: str) -> ConnectionInfo:
        try:
            return self._profiles[name]
        except KeyError:
            raise UnknownConnectionError(f"Connection '{name}' does not exist.") from None

    def names(self) -> list[str]:
        return sorted(self._profiles)

    def create(self, name: str, database: str = "") -> DatabaseManager:
        """Return an unconnected manager for *name*."""
        return DatabaseManager.from_info(self.info(name), database=database)

    def open(self, name: str, database: str = "") -> DatabaseManager:
        """
        Return a connected manager for *name*.

        Raises:
            UnknownConnectionError: If *name* is not registered.
            DatabaseError: If the connection cannot be opened.
        """
        db = self.create(name, database)
        db.connect()
        log.debug("Opened connection '%s' (database=%s).", name, database or "-")
        return db
