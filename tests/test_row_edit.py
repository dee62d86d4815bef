"""
tests/test_row_edit.py
----------------------
Unit tests for core/row_edit.py (row tracking and DML rendering).
Run with: python -m pytest tests/
"""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from core.database import DatabaseError
from core.row_edit import MissingPrimaryKeyError, RowEditError, RowEditSession
from models.descriptors import RowLifecycle, TableIdentity


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def table() -> TableIdentity:
    return TableIdentity("local", "shop", "users")


@pytest.fixture
def mock_db() -> MagicMock:
    db = MagicMock()
    db.fetch_primary_key_columns.return_value = ["id"]
    return db


@pytest.fixture
def provider(mock_db: MagicMock) -> MagicMock:
    provider = MagicMock()
    provider.open.return_value = mock_db
    return provider


@pytest.fixture
def session(provider: MagicMock, table: TableIdentity) -> RowEditSession:
    session = RowEditSession(provider, table)
    session.load(["id", "name", "email"], [(1, "ann", None), (2, "bob", "b@x.io")])
    return session


def first_id(session: RowEditSession) -> str:
    return next(iter(session.rows))


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

class TestLoad:
    def test_row_ids_and_values(self, session: RowEditSession) -> None:
        ids = list(session.rows)
        assert len(ids) == 2
        assert all(i.startswith("row_") for i in ids)
        state = session.rows[ids[0]]
        assert state.original_values == ["1", "ann", ""]
        assert state.current_null_flags == [False, False, True]
        assert state.lifecycle is RowLifecycle.CLEAN
        assert not session.is_dirty

    def test_primary_key_looked_up_once(
        self, session: RowEditSession, provider: MagicMock, mock_db: MagicMock
    ) -> None:
        assert session.primary_keys == ["id"]
        mock_db.fetch_primary_key_columns.assert_called_once_with("shop", "users")
        mock_db.close.assert_called_once()
        assert provider.open.call_count == 1

    def test_explicit_primary_keys_skip_lookup(self, provider: MagicMock, table) -> None:
        session = RowEditSession(provider, table)
        session.load(["code"], [(b"x1",)], primary_keys=["code"])
        provider.open.assert_not_called()
        assert next(iter(session.rows.values())).original_values == ["x1"]

    def test_lookup_failure_leaves_no_key(self, provider: MagicMock, table) -> None:
        provider.open.side_effect = DatabaseError("gone away")
        session = RowEditSession(provider, table)
        session.load(["id"], [(1,)])
        assert session.primary_keys == []


# ---------------------------------------------------------------------------
# SQL rendering
# ---------------------------------------------------------------------------

class TestInsertSql:
    def test_blank_columns_omitted(self, table) -> None:
        session = RowEditSession(None, table)
        session.load(["id", "name"], [], primary_keys=["id"])
        row_id = session.insert_row(["", "bob"])
        sql = session.build_insert_sql(session.rows[row_id])
        assert sql == "INSERT INTO `shop`.`users` (`name`) VALUES ('bob');"

    def test_null_flag_included(self, session: RowEditSession) -> None:
        row_id = session.insert_row(["3", "", ""], [False, False, True])
        assert session.build_insert_sql(session.rows[row_id]) == (
            "INSERT INTO `shop`.`users` (`id`, `email`) VALUES ('3', NULL);"
        )

    def test_nothing_to_insert(self, session: RowEditSession) -> None:
        row_id = session.insert_row()
        assert session.build_insert_sql(session.rows[row_id]) == ""
        assert session.pending_statements() == []


class TestUpdateSql:
    def test_only_changed_columns(self, session: RowEditSession) -> None:
        row_id = first_id(session)
        session.set_cell(row_id, "name", "O'Neil")
        assert session.pending_statements() == [
            "UPDATE `shop`.`users` SET `name` = 'O''Neil' WHERE `id` = '1' LIMIT 1;"
        ]

    def test_key_change_uses_original_value(self, session: RowEditSession) -> None:
        row_id = first_id(session)
        session.set_cell(row_id, 0, "10")
        assert session.pending_statements() == [
            "UPDATE `shop`.`users` SET `id` = '10' WHERE `id` = '1' LIMIT 1;"
        ]

    def test_set_null(self, session: RowEditSession) -> None:
        row_id = list(session.rows)[1]
        session.set_cell(row_id, "email", None, is_null=True)
        assert session.pending_statements() == [
            "UPDATE `shop`.`users` SET `email` = NULL WHERE `id` = '2' LIMIT 1;"
        ]

    def test_empty_string_value(self, session: RowEditSession) -> None:
        row_id = first_id(session)
        session.set_cell(row_id, "name", "")
        assert session.pending_statements() == [
            "UPDATE `shop`.`users` SET `name` = '' WHERE `id` = '1' LIMIT 1;"
        ]

    def test_revert_is_clean(self, session: RowEditSession) -> None:
        row_id = first_id(session)
        session.set_cell(row_id, "name", "zed")
        session.set_cell(row_id, "name", "ann")
        assert not session.is_dirty

    def test_requires_primary_key(self, table) -> None:
        session = RowEditSession(None, table)
        session.load(["id", "name"], [("1", "ann")], primary_keys=[])
        row_id = first_id(session)
        session.set_cell(row_id, "name", "anne")
        with pytest.raises(MissingPrimaryKeyError):
            session.build_update_sql(session.rows[row_id])

    def test_key_column_not_loaded(self, table) -> None:
        session = RowEditSession(None, table)
        session.load(["name"], [("ann",)], primary_keys=["id"])
        row_id = first_id(session)
        session.set_cell(row_id, "name", "anne")
        with pytest.raises(RowEditError, match="primary key column 'id'"):
            session.pending_statements()

    def test_composite_key_case_insensitive(self, table) -> None:
        session = RowEditSession(None, table)
        session.load(["Tenant", "ID", "v"], [("t1", "7", "a")], primary_keys=["tenant", "id"])
        row_id = first_id(session)
        session.set_cell(row_id, "v", "b")
        assert session.pending_statements() == [
            "UPDATE `shop`.`users` SET `v` = 'b' WHERE `tenant` = 't1' AND `id` = '7' LIMIT 1;"
        ]


class TestBinaryKey:
    KEY = bytes.fromhex("9f00ff10")

    @pytest.fixture
    def binary_session(self, table) -> RowEditSession:
        session = RowEditSession(None, table)
        session.load(["id", "name"], [(self.KEY, "ann")], primary_keys=["id"])
        return session

    def test_non_utf8_bytes_kept_raw(self, binary_session: RowEditSession) -> None:
        state = next(iter(binary_session.rows.values()))
        assert state.original_values == [self.KEY, "ann"]

    def test_update_locates_row_by_hex_literal(self, binary_session: RowEditSession) -> None:
        binary_session.set_cell(first_id(binary_session), "name", "anne")
        assert binary_session.pending_statements() == [
            "UPDATE `shop`.`users` SET `name` = 'anne' WHERE `id` = X'9f00ff10' LIMIT 1;"
        ]

    def test_delete_locates_row_by_hex_literal(self, binary_session: RowEditSession) -> None:
        binary_session.delete_rows([first_id(binary_session)])
        assert binary_session.pending_statements() == [
            "DELETE FROM `shop`.`users` WHERE `id` = X'9f00ff10' LIMIT 1;"
        ]

    def test_binary_value_inserted_exactly(self, binary_session: RowEditSession) -> None:
        row_id = binary_session.insert_row([bytes.fromhex("00ff"), "cy"])
        assert binary_session.build_insert_sql(binary_session.rows[row_id]) == (
            "INSERT INTO `shop`.`users` (`id`, `name`) VALUES (X'00ff', 'cy');"
        )


class TestNullOnlyChanges:
    def test_empty_string_to_null(self, table) -> None:
        session = RowEditSession(None, table)
        session.load(["id", "note"], [("1", "")], primary_keys=["id"])
        session.set_cell(first_id(session), "note", None, is_null=True)
        assert session.is_dirty
        assert session.pending_statements() == [
            "UPDATE `shop`.`users` SET `note` = NULL WHERE `id` = '1' LIMIT 1;"
        ]

    def test_null_to_empty_string(self, session: RowEditSession) -> None:
        row_id = first_id(session)
        session.set_cell(row_id, "email", "")
        assert session.pending_statements() == [
            "UPDATE `shop`.`users` SET `email` = '' WHERE `id` = '1' LIMIT 1;"
        ]

    def test_null_kept_null_is_clean(self, session: RowEditSession) -> None:
        session.set_cell(first_id(session), "email", None, is_null=True)
        assert not session.is_dirty


class TestDelete:
    def test_delete_persisted_row(self, session: RowEditSession) -> None:
        row_id = first_id(session)
        session.delete_rows([row_id])
        assert session.rows[row_id].lifecycle is RowLifecycle.DELETED
        assert session.pending_statements() == [
            "DELETE FROM `shop`.`users` WHERE `id` = '1' LIMIT 1;"
        ]

    def test_delete_inserted_row_is_in_memory(self, session: RowEditSession) -> None:
        row_id = session.insert_row(["9", "new", ""])
        session.delete_rows([row_id])
        assert row_id not in session.rows
        assert session.pending_statements() == []

    def test_same_inserted_row_twice(self, session: RowEditSession) -> None:
        row_id = session.insert_row(["9", "new", ""])
        session.delete_rows([row_id, row_id])
        assert row_id not in session.rows

    def test_refused_without_primary_key(self, table) -> None:
        session = RowEditSession(None, table)
        session.load(["name"], [("ann",)], primary_keys=[])
        persisted = first_id(session)
        inserted = session.insert_row(["x"])
        with pytest.raises(MissingPrimaryKeyError):
            session.delete_rows([inserted, persisted])
        assert inserted in session.rows
        assert not session.rows[persisted].deleted


class TestGridOperations:
    def test_duplicate_row(self, session: RowEditSession) -> None:
        new_id = session.duplicate_row(first_id(session))
        state = session.rows[new_id]
        assert state.inserted
        assert state.current_values == ["1", "ann", ""]
        assert state.current_null_flags == [False, False, True]

    def test_set_row(self, session: RowEditSession) -> None:
        row_id = first_id(session)
        session.set_row(row_id, ["1", "anne"])
        assert session.rows[row_id].current_values == ["1", "anne", ""]

    def test_unknown_column(self, session: RowEditSession) -> None:
        with pytest.raises(RowEditError):
            session.set_cell(first_id(session), "missing", "x")

    def test_unknown_row(self, session: RowEditSession) -> None:
        with pytest.raises(RowEditError):
            session.set_cell("row_nope", "name", "x")

    def test_discard(self, session: RowEditSession) -> None:
        ids = list(session.rows)
        session.set_cell(ids[0], "name", "zed")
        session.delete_rows([ids[1]])
        session.insert_row(["5", "eve", ""])
        session.discard()
        assert list(session.rows) == ids
        assert session.rows[ids[0]].current_null_flags == [False, False, True]
        assert not session.is_dirty


# ---------------------------------------------------------------------------
# save
# ---------------------------------------------------------------------------

class TestSave:
    def test_statement_order_follows_rows(self, session: RowEditSession, mock_db: MagicMock) -> None:
        ids = list(session.rows)
        session.set_cell(ids[0], "name", "anne")
        session.delete_rows([ids[1]])
        session.insert_row(["3", "cy", ""])
        result = session.save()
        assert result.ok and result.executed == 3
        executed = [c.args[0] for c in mock_db.execute.call_args_list]
        assert executed[0].startswith("UPDATE")
        assert executed[1].startswith("DELETE")
        assert executed[2].startswith("INSERT")

    def test_success_promotes_rows(self, session: RowEditSession) -> None:
        ids = list(session.rows)
        session.set_cell(ids[0], "name", "anne")
        session.delete_rows([ids[1]])
        new_id = session.insert_row(["3", "cy", ""])
        assert session.save().ok
        assert list(session.rows) == [ids[0], new_id]
        assert session.rows[ids[0]].original_values == ["1", "anne", ""]
        assert not session.is_dirty

    def test_failure_reports_sql_and_keeps_edits(
        self, session: RowEditSession, mock_db: MagicMock
    ) -> None:
        mock_db.execute.side_effect = DatabaseError("Duplicate entry '3'")
        session.insert_row(["3", "cy", ""])
        result = session.save()
        assert not result.ok
        assert "INSERT INTO `shop`.`users`" in result.error
        assert "Duplicate entry '3'" in result.error
        assert session.is_dirty

    def test_missing_key_refuses_whole_save(self, provider: MagicMock, mock_db, table) -> None:
        mock_db.fetch_primary_key_columns.return_value = []
        session = RowEditSession(provider, table)
        session.load(["name"], [("ann",)])
        session.insert_row(["bob"])
        session.set_cell(first_id(session), "name", "anne")
        result = session.save()
        assert not result.ok
        assert "no primary key" in result.error
        mock_db.execute.assert_not_called()

    def test_clean_session_saves_nothing(self, session: RowEditSession, provider: MagicMock) -> None:
        provider.open.reset_mock()
        assert session.save().ok
        provider.open.assert_not_called()
