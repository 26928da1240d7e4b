"""
Unit tests for SchemaInspector.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from migration_guard.services.database.schema_inspector import SchemaInspector


@pytest.mark.asyncio
async def test_table_and_column_exists(fake_db):
    fake_db.create_table("users", ["id", "email"])
    inspector = SchemaInspector(fake_db)

    assert await inspector.table_exists("users") is True
    assert await inspector.table_exists("orders") is False
    assert await inspector.column_exists("users", "email") is True
    assert await inspector.column_exists("users", "phone") is False
    assert await inspector.column_exists("orders", "email") is False


@pytest.mark.asyncio
async def test_counts(fake_db):
    fake_db.create_table("users", ["id", "email"], [
        {"id": 1, "email": "a@example.com"},
        {"id": 2, "email": None},
        {"id": 3, "email": "c@example.com"},
    ])
    fake_db.foreign_keys["users"] = 2
    inspector = SchemaInspector(fake_db)

    assert await inspector.count_rows("users") == 3
    assert await inspector.count_non_null("users", "email") == 2
    assert await inspector.count_nulls("users", "email") == 1
    assert await inspector.count_foreign_keys("users") == 2
    assert await inspector.count_foreign_keys("orders") == 0


@pytest.mark.asyncio
async def test_list_tables_escapes_like_wildcards(fake_db):
    fake_db.create_table("orders_backup_x", ["id"])
    fake_db.create_table("ordersXbackupXy", ["id"])
    inspector = SchemaInspector(fake_db)

    assert await inspector.list_tables("orders\\_backup\\_%") == ["orders_backup_x"]


@pytest.mark.asyncio
async def test_connection_errors_propagate():
    database = MagicMock()
    database.fetch_one = AsyncMock(side_effect=ConnectionError("connection refused"))
    inspector = SchemaInspector(database)

    with pytest.raises(ConnectionError):
        await inspector.table_exists("users")
    with pytest.raises(ConnectionError):
        await inspector.column_exists("users", "email")


@pytest.mark.asyncio
async def test_queries_are_parameterized():
    database = MagicMock()
    database.fetch_one = AsyncMock(return_value=None)
    inspector = SchemaInspector(database)

    await inspector.column_exists("users", "email")

    args, _ = database.fetch_one.call_args
    assert "information_schema.columns" in args[0]
    assert args[1] == {"table": "users", "column": "email"}
