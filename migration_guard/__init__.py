"""
Migration Guard

Safety layer around schema migrations:
- Existence-checked (idempotent) DDL helpers
- Table backups before destructive changes
- Transactional execution with compensating rollback
- Execution log persisted to migration_logs
"""

from migration_guard.core.migrations.execution_log import ExecutionLog
from migration_guard.core.migrations.migration_models import (
    BackupDescriptor,
    ColumnOptions,
    ExecutionOptions,
    ExecutionResult,
    MigrationRecord,
    MigrationStatus,
    ValidationOutcome,
)
from migration_guard.core.migrations.safe_migration import SafeMigration
from migration_guard.core.sql import RawSQL
from migration_guard.services.database.backup_manager import BackupManager
from migration_guard.services.database.guarded_ddl import GuardedDDL
from migration_guard.services.database.migration_executor import MigrationExecutor
from migration_guard.services.database.schema_inspector import SchemaInspector
from migration_guard.services.database.validator import MigrationValidator

__all__ = [
    "ExecutionLog",
    "BackupDescriptor",
    "ColumnOptions",
    "ExecutionOptions",
    "ExecutionResult",
    "MigrationRecord",
    "MigrationStatus",
    "ValidationOutcome",
    "SafeMigration",
    "RawSQL",
    "BackupManager",
    "GuardedDDL",
    "MigrationExecutor",
    "SchemaInspector",
    "MigrationValidator",
]
