"""
Backup Manager

Snapshots tables into timestamped sibling tables and restores from them.
"""
import asyncio
import logging
import re
from datetime import datetime, timezone
from typing import Callable, Optional, Set

from databases import Database

from migration_guard.core.migrations.migration_models import BackupDescriptor
from migration_guard.core.sql import quote_identifier
from migration_guard.services.database.schema_inspector import SchemaInspector

logger = logging.getLogger("migration_guard.database.backup")

BACKUP_INFIX = "_backup_"
MAX_IDENTIFIER_BYTES = 63
TIMESTAMP_LENGTH = len("2026-10-19T12-30-05-123Z")

# {table}_backup_2026-10-19T12-30-05-123Z
BACKUP_NAME_PATTERN = re.compile(
    r"^(?P<table>.+)_backup_(?P<timestamp>\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z)$"
)


def format_backup_timestamp(moment: datetime) -> str:
    """
    ISO-8601 UTC instant in milliseconds with ':' and '.' replaced by '-'.
    """
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    iso = moment.strftime("%Y-%m-%dT%H:%M:%S") + f".{moment.microsecond // 1000:03d}Z"
    return iso.replace(":", "-").replace(".", "-")


def backup_prefix(table: str) -> str:
    """
    Table part of a backup name, cut to fit PostgreSQL's identifier limit.

    The suffix is always kept whole so the name stays discoverable; a long
    table name loses trailing characters, never a partial UTF-8 sequence.
    """
    room = MAX_IDENTIFIER_BYTES - len(BACKUP_INFIX) - TIMESTAMP_LENGTH
    return table.encode("utf-8")[:room].decode("utf-8", errors="ignore")


def backup_identifier(table: str, moment: datetime) -> str:
    return f"{backup_prefix(table)}{BACKUP_INFIX}{format_backup_timestamp(moment)}"


def _like_escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("_", "\\_").replace("%", "\\%")


class BackupManager:
    """
    Table-level backups using CREATE TABLE AS SELECT.
    """

    def __init__(
        self,
        database: Database,
        inspector: Optional[SchemaInspector] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.database = database
        self.inspector = inspector or SchemaInspector(database)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        # identifiers issued within the current millisecond only
        self._issued: Set[str] = set()
        self._issued_stamp: Optional[str] = None

    async def _next_identifier(self, table: str) -> tuple:
        while True:
            moment = self._clock()
            stamp = format_backup_timestamp(moment)
            if stamp != self._issued_stamp:
                self._issued_stamp = stamp
                self._issued = set()
            identifier = backup_identifier(table, moment)
            if identifier not in self._issued:
                break
            # Millisecond precision; wait out a same-millisecond collision
            await asyncio.sleep(0.001)
        self._issued.add(identifier)
        return identifier, moment

    async def backup_table(self, table: str) -> BackupDescriptor:
        """
        Copy every row of a table into a new backup table.

        The source table is not checked first; if it is missing the CREATE
        statement fails and the database error propagates.
        """
        identifier, moment = await self._next_identifier(table)
        logger.info(f"Creating backup of table {table} as {identifier}")

        await self.database.execute(
            f"CREATE TABLE {quote_identifier(identifier)} AS SELECT * FROM {quote_identifier(table)}"
        )
        row_count = await self.inspector.count_rows(identifier)

        descriptor = BackupDescriptor(
            source_table=table,
            backup_identifier=identifier,
            row_count=row_count,
            created_at=moment,
            timestamp=format_backup_timestamp(moment),
        )
        logger.info(f"📦 Backup created: {identifier} with {row_count} rows")
        return descriptor

    async def restore(self, backup_identifier: str, target_table: str) -> None:
        """
        Replace the contents of target_table with the rows of a backup.

        TRUNCATE ... CASCADE also empties tables referencing the target. Both
        statements run in a single transaction.
        """
        logger.warning(f"Restoring {target_table} from backup {backup_identifier}")

        async with self.database.transaction():
            await self.database.execute(f"TRUNCATE TABLE {quote_identifier(target_table)} CASCADE")
            await self.database.execute(
                f"INSERT INTO {quote_identifier(target_table)} "
                f"SELECT * FROM {quote_identifier(backup_identifier)}"
            )

        logger.info(f"Restore completed for {target_table}")

    async def cleanup(self, backup_identifier: str) -> None:
        logger.info(f"Cleaning up backup table {backup_identifier}")
        await self.database.execute(f"DROP TABLE IF EXISTS {quote_identifier(backup_identifier)}")
        self._issued.discard(backup_identifier)

    async def list_backups(self, table: Optional[str] = None) -> Set[str]:
        """
        Backup tables present in the catalog, optionally for one source table.
        """
        source = backup_prefix(table) if table else None
        prefix = _like_escape(source + BACKUP_INFIX) if source else "%" + _like_escape(BACKUP_INFIX)
        names = await self.inspector.list_tables(prefix + "%")

        backups = set()
        for name in names:
            match = BACKUP_NAME_PATTERN.match(name)
            if not match:
                continue
            if source is not None and match.group("table") != source:
                continue
            backups.add(name)
        return backups
