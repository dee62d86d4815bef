"""
tests/test_sql_text.py
----------------------
Unit tests for core/sql_text.py.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import pytest

from core.sql_text import escape_value, qualified_name, quote_identifier


class TestQuoteIdentifier:
    def test_plain_name(self) -> None:
        assert quote_identifier("users") == "`users`"

    def test_embedded_backtick_doubled(self) -> None:
        assert quote_identifier("we`ird") == "`we``ird`"

    def test_spaces_kept(self) -> None:
        assert quote_identifier("order items") == "`order items`"


class TestEscapeValue:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("bob", "'bob'"),
            ("", "''"),
            ("O'Brien", "'O''Brien'"),
            ("C:\\temp", "'C:\\\\temp'"),
        ],
    )
    def test_escaping(self, raw: str, expected: str) -> None:
        assert escape_value(raw) == expected

    def test_bytes_render_as_hex_literal(self) -> None:
        assert escape_value(bytes.fromhex("9f00ff10")) == "X'9f00ff10'"
        assert escape_value(b"") == "X''"


class TestQualifiedName:
    def test_with_database(self) -> None:
        assert qualified_name("shop", "orders") == "`shop`.`orders`"

    def test_without_database(self) -> None:
        assert qualified_name("", "orders") == "`orders`"
