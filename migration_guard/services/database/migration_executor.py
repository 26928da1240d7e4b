"""
Migration Executor

Runs one migration through validation, backup, a transaction and, on
failure, a compensating backward step.
"""
import logging
import time
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from databases import Database

from migration_guard.config import load_settings
from migration_guard.core.migrations.execution_log import ExecutionLog
from migration_guard.core.migrations.migration_models import (
    BackupDescriptor,
    ExecutionOptions,
    ExecutionResult,
    ValidationOutcome,
)
from migration_guard.services.database.backup_manager import BackupManager
from migration_guard.services.database.schema_inspector import SchemaInspector
from migration_guard.services.database.validator import MigrationValidator

if TYPE_CHECKING:
    from migration_guard.core.migrations.safe_migration import SafeMigration

logger = logging.getLogger("migration_guard.database.executor")

MigrationFn = Callable[[], Awaitable[None]]


class MigrationExecutor:
    """
    Drives the lifecycle of a single migration attempt.

    Migrations are assumed to run one at a time against a database. The
    forward and backward functions should issue their statements through the
    same Database instance: `databases` binds one connection per task, so
    those statements join the transaction opened here.
    """

    def __init__(
        self,
        database: Database,
        log: Optional[ExecutionLog] = None,
        inspector: Optional[SchemaInspector] = None,
        validator: Optional[MigrationValidator] = None,
        backups: Optional[BackupManager] = None,
        fail_on_validation_errors: Optional[bool] = None,
    ):
        """
        Initialize migration executor.

        Args:
            database: Database instance
            log: Execution log for this run. A fresh one is created if omitted.
            inspector: Schema inspector
            validator: Pre-flight validator
            backups: Backup manager
            fail_on_validation_errors: Default for runs that don't set the option.
                Falls back to MIGRATION_GUARD_FAIL_ON_VALIDATION_ERRORS.
        """
        self.database = database
        self.log = log if log is not None else ExecutionLog()
        self.inspector = inspector or SchemaInspector(database)
        self.validator = validator or MigrationValidator(database, self.inspector)
        self.backups = backups or BackupManager(database, self.inspector)
        if fail_on_validation_errors is None:
            fail_on_validation_errors = load_settings().fail_on_validation_errors
        self.fail_on_validation_errors = fail_on_validation_errors

    async def run(
        self,
        name: str,
        forward_fn: MigrationFn,
        backward_fn: MigrationFn,
        options: Optional[ExecutionOptions] = None,
    ) -> ExecutionResult:
        """
        Execute a migration.

        Steps: log start -> dry run short-circuit -> validation -> backup ->
        transaction around forward_fn -> commit, or rollback plus compensation
        with backward_fn when a backup was taken.

        Returns:
            ExecutionResult. On failure it carries the forward error message,
            even when compensation also fails.

        Raises:
            Exception: Backup failures propagate after being logged.
        """
        options = options or ExecutionOptions()
        started = time.monotonic()
        self.log.record_start(name)

        if options.dry_run:
            logger.info(f"DRY RUN: {name}")
            self.log.record_success(name, {"dry_run": True})
            return ExecutionResult(
                success=True,
                migration_name=name,
                duration_ms=_elapsed_ms(started),
                dry_run=True,
            )

        outcome = ValidationOutcome()
        if not options.skip_validation:
            outcome = await self._validate(name, options)
            if not outcome.valid and self._should_fail_on(options):
                message = "Validation failed: " + "; ".join(outcome.errors)
                self.log.record_failure(name, message)
                return ExecutionResult(
                    success=False,
                    migration_name=name,
                    duration_ms=_elapsed_ms(started),
                    validation_errors=outcome.errors,
                    validation_warnings=outcome.warnings,
                    error=message,
                )

        backup = None
        if not options.skip_backup:
            backup = await self._backup(name, options)

        error = await self._execute_in_transaction(name, forward_fn)

        if error is None:
            self.log.record_success(name, {"backup_created": backup is not None})
            logger.info(f"✅ Migration {name} applied successfully")
            return ExecutionResult(
                success=True,
                migration_name=name,
                duration_ms=_elapsed_ms(started),
                backup=backup,
                validation_errors=outcome.errors,
                validation_warnings=outcome.warnings,
            )

        logger.error(f"Migration failed: {name}", exc_info=error)
        self.log.record_failure(name, str(error))

        if backup is not None:
            await self._compensate(name, backward_fn)

        return ExecutionResult(
            success=False,
            migration_name=name,
            duration_ms=_elapsed_ms(started),
            backup=backup,
            validation_errors=outcome.errors,
            validation_warnings=outcome.warnings,
            error=str(error),
        )

    async def run_migration(
        self,
        migration: "SafeMigration",
        options: Optional[ExecutionOptions] = None,
    ) -> ExecutionResult:
        return await self.run(migration.name, migration.up, migration.down, options)

    async def revert(self, name: str, backward_fn: MigrationFn) -> ExecutionResult:
        """
        Run a backward function on its own, inside a transaction.
        """
        started = time.monotonic()
        self.log.record_start(name)
        logger.warning(f"Reverting migration: {name}")

        error = await self._execute_in_transaction(name, backward_fn)
        if error is None:
            self.log.record_success(name, {"direction": "down"})
            return ExecutionResult(success=True, migration_name=name, duration_ms=_elapsed_ms(started))

        logger.error(f"Revert failed: {name}", exc_info=error)
        self.log.record_failure(name, str(error))
        return ExecutionResult(
            success=False,
            migration_name=name,
            duration_ms=_elapsed_ms(started),
            error=str(error),
        )

    async def validate(self, table: str, column: Optional[str] = None) -> ValidationOutcome:
        return await self.validator.pre_destructive_check(table, column)

    def _should_fail_on(self, options: ExecutionOptions) -> bool:
        if options.fail_on_validation_errors is not None:
            return options.fail_on_validation_errors
        return self.fail_on_validation_errors

    async def _validate(self, name: str, options: ExecutionOptions) -> ValidationOutcome:
        if not options.table:
            logger.debug(f"No target table for {name}, skipping validation")
            return ValidationOutcome()

        logger.info(f"Validating migration: {name}")
        outcome = await self.validator.pre_destructive_check(options.table, options.column)
        for warning in outcome.warnings:
            logger.warning(f"[{name}] {warning}")
        for message in outcome.errors:
            logger.error(f"[{name}] {message}")
        return outcome

    async def _backup(self, name: str, options: ExecutionOptions) -> Optional[BackupDescriptor]:
        if not options.table:
            logger.debug(f"No target table for {name}, skipping backup")
            return None

        if not await self.inspector.table_exists(options.table):
            logger.warning(f"Table {options.table} does not exist yet, no backup taken for {name}")
            return None

        try:
            return await self.backups.backup_table(options.table)
        except Exception as e:
            logger.error(f"Backup of {options.table} failed, aborting {name}: {e}")
            self.log.record_failure(name, f"Backup failed: {e}")
            raise

    async def _execute_in_transaction(self, name: str, fn: MigrationFn) -> Optional[Exception]:
        """
        Run fn inside a transaction. Returns the exception it raised, if any.

        Non-Exception errors (cancellation, KeyboardInterrupt) roll back and propagate.
        A connection or transaction that cannot be opened is returned like an fn error.
        """
        try:
            async with self.database.connection() as connection:
                transaction = connection.transaction()
                await transaction.start()
                try:
                    await fn()
                    await transaction.commit()
                except Exception as e:
                    await self._rollback(name, transaction)
                    return e
                except BaseException:
                    await self._rollback(name, transaction)
                    raise
        except Exception as e:
            logger.error(f"Could not open a transaction for {name}: {e}")
            return e
        return None

    async def _rollback(self, name: str, transaction) -> None:
        try:
            await transaction.rollback()
            logger.info(f"Transaction rolled back for {name}")
        except Exception as e:
            logger.error(f"Transaction rollback failed for {name}: {e}")

    async def _compensate(self, name: str, backward_fn: MigrationFn) -> None:
        logger.warning(f"Attempting to restore {name} with its backward migration...")
        try:
            async with self.database.transaction():
                await backward_fn()
        except Exception as e:
            logger.error(f"Compensation failed for {name}: {e}", exc_info=e)
            return
        self.log.record_rollback(name)


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.monotonic() - started) * 1000))
