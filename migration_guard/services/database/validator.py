"""
Migration Validator

Pre-flight checks run before destructive schema changes.
"""
import logging
from typing import Optional

from databases import Database

from migration_guard.core.migrations.migration_models import ValidationOutcome
from migration_guard.services.database.schema_inspector import SchemaInspector

logger = logging.getLogger("migration_guard.database.validator")


class MigrationValidator:
    """
    Checks a table (and optionally a column) before data or schema is removed.
    """

    def __init__(self, database: Database, inspector: Optional[SchemaInspector] = None):
        self.inspector = inspector or SchemaInspector(database)

    async def pre_destructive_check(self, table: str, column: Optional[str] = None) -> ValidationOutcome:
        """
        Existence checks short-circuit with a single error. Foreign keys and
        an empty table only produce warnings.
        """
        outcome = ValidationOutcome()

        if not await self.inspector.table_exists(table):
            outcome.errors.append(f"Table {table} does not exist")
            return outcome

        if column and not await self.inspector.column_exists(table, column):
            outcome.errors.append(f"Column {column} does not exist in {table}")
            return outcome

        fk_count = await self.inspector.count_foreign_keys(table)
        if fk_count > 0:
            outcome.warnings.append(f"Table {table} has {fk_count} foreign key constraint(s)")

        row_count = await self.inspector.count_rows(table)
        if row_count == 0:
            outcome.warnings.append(f"Table {table} is empty")
        else:
            logger.info(f"Table {table} has {row_count} rows")

        return outcome

    async def validate_nullable(self, table: str, column: str) -> ValidationOutcome:
        """
        Check that a column holds no NULLs, e.g. before making it NOT NULL.
        """
        outcome = ValidationOutcome()
        null_count = await self.inspector.count_nulls(table, column)
        if null_count > 0:
            outcome.errors.append(f"Column {column} in {table} has {null_count} NULL values")
        return outcome
