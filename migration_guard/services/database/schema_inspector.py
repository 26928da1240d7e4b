"""
Schema Inspector

Read-only questions about the live catalog (information_schema) and table contents.
"""
import logging
from typing import List

from databases import Database

from migration_guard.core.sql import quote_identifier

logger = logging.getLogger("migration_guard.database.inspector")


class SchemaInspector:
    """
    Answers existence and count questions about tables and columns.

    Absence is reported as False (or 0). Connection and query errors propagate
    unchanged.
    """

    def __init__(self, database: Database):
        self.database = database

    async def table_exists(self, table: str) -> bool:
        query = """
        SELECT table_name FROM information_schema.tables
        WHERE table_name = :table
        """
        row = await self.database.fetch_one(query, {"table": table})
        return row is not None

    async def column_exists(self, table: str, column: str) -> bool:
        query = """
        SELECT column_name FROM information_schema.columns
        WHERE table_name = :table AND column_name = :column
        """
        row = await self.database.fetch_one(query, {"table": table, "column": column})
        return row is not None

    async def count_foreign_keys(self, table: str) -> int:
        query = """
        SELECT COUNT(*) FROM information_schema.table_constraints
        WHERE constraint_type = 'FOREIGN KEY' AND table_name = :table
        """
        return int(await self.database.fetch_val(query, {"table": table}) or 0)

    async def count_rows(self, table: str) -> int:
        query = f"SELECT COUNT(*) FROM {quote_identifier(table)}"
        return int(await self.database.fetch_val(query) or 0)

    async def count_non_null(self, table: str, column: str) -> int:
        query = (
            f"SELECT COUNT(*) FROM {quote_identifier(table)} "
            f"WHERE {quote_identifier(column)} IS NOT NULL"
        )
        return int(await self.database.fetch_val(query) or 0)

    async def count_nulls(self, table: str, column: str) -> int:
        query = (
            f"SELECT COUNT(*) FROM {quote_identifier(table)} "
            f"WHERE {quote_identifier(column)} IS NULL"
        )
        return int(await self.database.fetch_val(query) or 0)

    async def list_tables(self, pattern: str) -> List[str]:
        """
        List table names matching a LIKE pattern. Backslash escapes ``_`` and ``%``.
        """
        query = """
        SELECT table_name FROM information_schema.tables
        WHERE table_name LIKE :pattern
        ORDER BY table_name
        """
        rows = await self.database.fetch_all(query, {"pattern": pattern})
        return [row["table_name"] for row in rows]
