"""
Guarded DDL

Idempotent column and table helpers. Re-running a partially applied migration
logs a warning instead of failing on "already there" / "already gone".
"""
import logging
from typing import Optional

from databases import Database

from migration_guard.core.migrations.migration_models import ColumnOptions
from migration_guard.core.sql import RawSQL, quote_identifier, render_default
from migration_guard.services.database.schema_inspector import SchemaInspector

logger = logging.getLogger("migration_guard.database.ddl")


class GuardedDDL:
    """
    Existence-checked DDL helpers built on SchemaInspector.
    """

    def __init__(self, database: Database, inspector: Optional[SchemaInspector] = None):
        self.database = database
        self.inspector = inspector or SchemaInspector(database)

    async def add_column_if_absent(
        self,
        table: str,
        column: str,
        column_type: RawSQL,
        options: Optional[ColumnOptions] = None,
    ) -> bool:
        """
        Add a column unless it already exists.

        Args:
            table: Table name
            column: Column name
            column_type: Backend type expression, e.g. RawSQL("BOOLEAN")
            options: Nullability and default

        Returns:
            True if the column was added, False if it already existed
        """
        if not isinstance(column_type, RawSQL):
            raise TypeError("column_type must be wrapped in RawSQL")
        options = options or ColumnOptions()

        if await self.inspector.column_exists(table, column):
            logger.warning(f"Column {column} already exists in {table}, skipping")
            return False

        parts = [
            f"ALTER TABLE {quote_identifier(table)}",
            f"ADD COLUMN {quote_identifier(column)} {column_type}",
            "NULL" if options.nullable else "NOT NULL",
        ]
        if options.default is not None:
            parts.append(f"DEFAULT {render_default(options.default)}")

        await self.database.execute(" ".join(parts))
        logger.info(f"Added column {column} to {table}")
        return True

    async def drop_column_guarded(self, table: str, column: str) -> bool:
        """
        Drop a column if it exists, warning when it still holds data.

        Returns:
            True if the column was dropped, False if it was already absent
        """
        if not await self.inspector.column_exists(table, column):
            logger.warning(f"Column {column} does not exist in {table}, skipping drop")
            return False

        non_null = await self.inspector.count_non_null(table, column)
        if non_null > 0:
            logger.warning(f"Column {column} in {table} has {non_null} non-null values")

        await self.database.execute(
            f"ALTER TABLE {quote_identifier(table)} DROP COLUMN IF EXISTS {quote_identifier(column)}"
        )
        logger.info(f"Dropped column {column} from {table}")
        return True

    async def drop_table_guarded(self, table: str) -> bool:
        """
        Advisory check before dropping a table. Issues no DDL.

        Returns:
            True if the table exists and the caller may drop it
        """
        if not await self.inspector.table_exists(table):
            logger.warning(f"Table {table} does not exist, skipping drop")
            return False

        row_count = await self.inspector.count_rows(table)
        if row_count > 0:
            logger.warning(f"Table {table} has {row_count} rows that will be deleted")
        return True
