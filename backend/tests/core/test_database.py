"""Tests for database helpers."""

import pytest

from app.core.database import extract_table_from_error, to_async_url


class TestToAsyncUrl:
    """Tests for to_async_url."""

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("postgres://u:p@host/db", "postgresql+asyncpg://u:p@host/db"),
            ("postgresql://u:p@host/db", "postgresql+asyncpg://u:p@host/db"),
            ("postgresql+asyncpg://u:p@host/db", "postgresql+asyncpg://u:p@host/db"),
            ("sqlite+aiosqlite:///:memory:", "sqlite+aiosqlite:///:memory:"),
        ],
    )
    def test_conversion(self, url, expected) -> None:
        assert to_async_url(url) == expected


class TestExtractTableFromError:
    """Tests for extract_table_from_error."""

    def test_postgres_relation_message(self) -> None:
        error = Exception('duplicate key value violates unique constraint on relation "groups"')

        assert extract_table_from_error(error) == "groups"

    def test_insert_statement(self) -> None:
        assert extract_table_from_error(Exception("INSERT INTO group_items (id) VALUES")) == "group_items"

    def test_unknown(self) -> None:
        assert extract_table_from_error(Exception("connection reset")) is None
