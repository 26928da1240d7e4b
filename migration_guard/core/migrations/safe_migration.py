"""
Safe Migration

Base class for migrations written against the guarded DDL helpers.
"""
import logging
from abc import ABC, abstractmethod

from databases import Database

from migration_guard.core.migrations.migration_models import ColumnOptions
from migration_guard.core.sql import RawSQL
from migration_guard.services.database.guarded_ddl import GuardedDDL
from migration_guard.services.database.schema_inspector import SchemaInspector


class SafeMigration(ABC):
    """
    A forward/backward pair of schema changes.

    Subclasses set ``name`` and implement ``up`` and ``down``. Both are run
    by MigrationExecutor, which owns the surrounding transaction.
    """

    name: str = ""

    def __init__(self, database: Database):
        if not self.name:
            self.name = type(self).__name__
        self.database = database
        self.inspector = SchemaInspector(database)
        self.ddl = GuardedDDL(database, self.inspector)
        self.logger = logging.getLogger(f"migration_guard.migrations.{type(self).__name__}")

    @abstractmethod
    async def up(self) -> None:
        ...

    @abstractmethod
    async def down(self) -> None:
        ...

    async def column_exists(self, table: str, column: str) -> bool:
        return await self.inspector.column_exists(table, column)

    async def table_exists(self, table: str) -> bool:
        return await self.inspector.table_exists(table)

    async def safe_add_column(
        self,
        table: str,
        column: str,
        column_type: str,
        nullable: bool = True,
        default=None,
    ) -> bool:
        if not isinstance(column_type, RawSQL):
            column_type = RawSQL(column_type)
        options = ColumnOptions(nullable=nullable, default=default)
        return await self.ddl.add_column_if_absent(table, column, column_type, options)

    async def safe_drop_column(self, table: str, column: str) -> bool:
        return await self.ddl.drop_column_guarded(table, column)

    async def guard_table_drop(self, table: str) -> bool:
        return await self.ddl.drop_table_guarded(table)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

