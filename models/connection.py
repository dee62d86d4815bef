"""
models/connection.py
--------------------
Connection profile handed to the engine by its caller.

Design Decision:
    Profiles are plain values. Persisting them (and their passwords) is
    the caller's concern; the engine only reads them to open connections.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from config import CONFIG


@dataclass(frozen=True)
class ConnectionInfo:
    """Where and as whom to connect for one named connection."""
    name: str
    user: str
    password: str = field(default="", repr=False)
    host: str = field(default_factory=lambda: CONFIG.db.host)
    port: int = field(default_factory=lambda: CONFIG.db.port)
    charset: str = field(default_factory=lambda: CONFIG.db.charset)
    default_database: str = ""
