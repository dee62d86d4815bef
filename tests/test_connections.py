"""
tests/test_connections.py
-------------------------
Unit tests for core/connections.py.
Run with: python -m pytest tests/
"""
from __future__ import annotations

from unittest.mock import patch

import pytest

from core.connections import ConnectionProvider, UnknownConnectionError
from core.database import DatabaseError
from models.connection import ConnectionInfo


@pytest.fixture
def provider() -> ConnectionProvider:
    return ConnectionProvider([
        ConnectionInfo(name="prod", user="app", password="s3cret", host="db1"),
        ConnectionInfo(name="dev", user="root", default_database="scratch"),
    ])


class TestConnectionProvider:
    def test_names_sorted(self, provider: ConnectionProvider) -> None:
        assert provider.names() == ["dev", "prod"]

    def test_unknown_name(self, provider: ConnectionProvider) -> None:
        with pytest.raises(UnknownConnectionError, match="ghost"):
            provider.info("ghost")

    def test_unknown_name_is_database_error(self, provider: ConnectionProvider) -> None:
        with pytest.raises(DatabaseError):
            provider.open("ghost")

    def test_create_uses_profile(self, provider: ConnectionProvider) -> None:
        db = provider.create("prod", "shop")
        assert db._host == "db1"
        assert db._database == "shop"
        assert not db.is_connected

    def test_create_falls_back_to_default_database(self, provider: ConnectionProvider) -> None:
        assert provider.create("dev")._database == "scratch"

    def test_open_connects(self, provider: ConnectionProvider) -> None:
        with patch("core.database.DatabaseManager.connect") as connect:
            provider.open("prod", "shop")
        connect.assert_called_once()

    def test_password_not_in_repr(self) -> None:
        info = ConnectionInfo(name="p", user="u", password="hunter2")
        assert "hunter2" not in repr(info)
