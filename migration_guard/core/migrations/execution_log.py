"""
Execution Log

Tracks migration attempts in memory and appends them to the migration_logs table.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from databases import Database

from migration_guard.core.migrations.migration_models import MigrationRecord, MigrationStatus

logger = logging.getLogger("migration_guard.migrations.log")

LOG_TABLE = "migration_logs"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionLog:
    """
    In-memory ledger of migration attempts, keyed by migration name.

    One instance is meant to live for one run (or one process) and is passed
    explicitly to the executor. It is not safe for concurrent writers.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        """
        Initialize execution log.

        Args:
            clock: Callable returning the current time. Override in tests.
        """
        self._clock = clock
        self._records: Dict[str, MigrationRecord] = {}

    def record_start(self, name: str) -> MigrationRecord:
        """
        Create a Started record. Replaces any earlier record with the same name.
        """
        if name in self._records:
            logger.debug(f"Replacing existing log record for {name}")
        record = MigrationRecord(name=name, start_time=self._clock())
        self._records[name] = record
        logger.info(f"Migration started: {name}")
        return record

    def record_success(self, name: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        record = self._records.get(name)
        if record is None or record.status is not MigrationStatus.STARTED:
            logger.debug(f"Ignoring success for {name}: no started record")
            return

        record.status = MigrationStatus.SUCCESS
        record.end_time = self._clock()
        record.metadata = dict(metadata or {})
        logger.info(f"Migration completed: {name} ({record.duration_ms}ms)")

    def record_failure(self, name: str, error_message: str) -> None:
        record = self._records.get(name)
        if record is None or record.status is not MigrationStatus.STARTED:
            logger.debug(f"Ignoring failure for {name}: no started record")
            return

        record.status = MigrationStatus.FAILED
        record.end_time = self._clock()
        record.error_message = error_message
        logger.error(f"Migration failed: {name} - {error_message}")

    def record_rollback(self, name: str) -> None:
        record = self._records.get(name)
        if record is None or record.status is not MigrationStatus.FAILED:
            logger.debug(f"Ignoring rollback for {name}: no failed record")
            return

        record.status = MigrationStatus.ROLLED_BACK
        logger.warning(f"Migration rolled back: {name}")

    def get(self, name: str) -> Optional[MigrationRecord]:
        return self._records.get(name)

    def all(self) -> List[MigrationRecord]:
        """Records in the order their names were first started."""
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    async def create_log_table(self, database: Database) -> None:
        """
        Create the migration_logs table if it doesn't exist.
        """
        query = f"""
        CREATE TABLE IF NOT EXISTS {LOG_TABLE} (
            id SERIAL PRIMARY KEY,
            migration_name VARCHAR(255) NOT NULL,
            status VARCHAR(50) NOT NULL,
            start_time TIMESTAMP NOT NULL,
            end_time TIMESTAMP,
            duration INTEGER,
            error_message TEXT,
            metadata JSONB,
            created_at TIMESTAMP DEFAULT NOW()
        )
        """
        try:
            await database.execute(query)
            logger.debug("Migration log table created/verified")
        except Exception as e:
            logger.error(f"Failed to create migration log table: {e}")
            raise

    async def flush(self, database: Database) -> int:
        """
        Append every in-memory record to the migration_logs table.

        Rows are never updated or de-duplicated: flushing twice writes every
        record twice. Call once per run.

        Args:
            database: Database instance

        Returns:
            Number of rows written
        """
        await self.create_log_table(database)

        query = f"""
        INSERT INTO {LOG_TABLE}
            (migration_name, status, start_time, end_time, duration, error_message, metadata)
        VALUES (:name, :status, :start_time, :end_time, :duration, :error_message, :metadata)
        """

        written = 0
        for record in self._records.values():
            await database.execute(query, {
                "name": record.name,
                "status": record.status.value,
                "start_time": _naive_utc(record.start_time),
                "end_time": _naive_utc(record.end_time),
                "duration": record.duration_ms if record.end_time else None,
                "error_message": record.error_message,
                "metadata": json.dumps(record.metadata, default=str),
            })
            written += 1

        logger.info(f"Persisted {written} migration logs")
        return written


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # migration_logs uses TIMESTAMP without time zone
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
