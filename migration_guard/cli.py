#!/usr/bin/env python3
"""
Migration Guard CLI

Usage:
    migration-guard dry-run package.module[:ClassName]
    migration-guard run package.module[:ClassName] --table users
    migration-guard rollback package.module[:ClassName]
    migration-guard validate --table users [--column email]

Every command appends timestamped lines to the execution log file
(MIGRATION_GUARD_LOG_FILE, default migration-execution.log) and exits
non-zero on failure.
"""
import argparse
import asyncio
import importlib
import inspect
import logging
import sys
from datetime import datetime, timezone
from typing import List, Optional

from databases import Database

from migration_guard.config import GuardSettings, load_settings
from migration_guard.core.migrations.exceptions import MigrationLoadError
from migration_guard.core.migrations.execution_log import ExecutionLog
from migration_guard.core.migrations.migration_models import ExecutionOptions, ExecutionResult
from migration_guard.core.migrations.safe_migration import SafeMigration
from migration_guard.services.database.connection_manager import ConnectionManager
from migration_guard.services.database.migration_executor import MigrationExecutor

logger = logging.getLogger("migration_guard.cli")


class IsoFormatter(logging.Formatter):
    """[2026-10-19T12:30:05.123+00:00] message"""

    def formatTime(self, record, datefmt=None):
        moment = datetime.fromtimestamp(record.created, timezone.utc)
        return moment.isoformat(timespec="milliseconds")


def configure_logging(settings: GuardSettings, log_file: Optional[str] = None) -> List[logging.Handler]:
    formatter = IsoFormatter("[%(asctime)s] %(message)s")

    file_handler = logging.FileHandler(log_file or settings.log_file, mode="a", encoding="utf-8")
    file_handler.setFormatter(formatter)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)

    root = logging.getLogger("migration_guard")
    root.setLevel(settings.log_level)
    root.addHandler(file_handler)
    root.addHandler(console_handler)
    return [file_handler, console_handler]


def load_migration(target: str, database: Database) -> SafeMigration:
    """
    Import ``package.module[:ClassName]`` and instantiate the migration.

    Without a class name the module must define exactly one SafeMigration subclass.
    """
    module_name, _, class_name = target.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise MigrationLoadError(f"Cannot import migration module {module_name}: {e}") from e

    if class_name:
        migration_cls = getattr(module, class_name, None)
        if migration_cls is None:
            raise MigrationLoadError(f"{module_name} has no attribute {class_name}")
    else:
        candidates = [
            obj for obj in vars(module).values()
            if inspect.isclass(obj)
            and issubclass(obj, SafeMigration)
            and obj is not SafeMigration
            and obj.__module__ == module.__name__
        ]
        if len(candidates) != 1:
            raise MigrationLoadError(
                f"Expected exactly one SafeMigration in {module_name}, found {len(candidates)}"
            )
        migration_cls = candidates[0]

    if not (inspect.isclass(migration_cls) and issubclass(migration_cls, SafeMigration)):
        raise MigrationLoadError(f"{target} is not a SafeMigration subclass")
    if inspect.isabstract(migration_cls):
        raise MigrationLoadError(f"{target} does not implement up() and down()")
    return migration_cls(database)


def _report(result: ExecutionResult) -> int:
    for warning in result.validation_warnings:
        logger.warning(f"Warning: {warning}")
    if result.success:
        logger.info(f"✓ {result.migration_name} completed in {result.duration_ms}ms")
        if result.backup:
            logger.info(f"Backup: {result.backup.backup_identifier} ({result.backup.row_count} rows)")
        return 0
    logger.error(f"✗ {result.migration_name} failed: {result.error}")
    return 1


async def _dry_run(args, executor: MigrationExecutor, database: Database) -> int:
    logger.info("=== DRY RUN MODE ===")
    migration = load_migration(args.migration, database)
    result = await executor.run_migration(migration, ExecutionOptions(dry_run=True))
    logger.info("Dry run completed. No changes were made to the database.")
    return _report(result)


async def _run(args, executor: MigrationExecutor, database: Database) -> int:
    logger.info("=== MIGRATION EXECUTION ===")
    migration = load_migration(args.migration, database)
    options = ExecutionOptions(
        skip_backup=args.skip_backup,
        skip_validation=args.skip_validation,
        fail_on_validation_errors=args.fail_on_validation_errors,
        table=args.table,
        column=args.column,
    )
    result = await executor.run_migration(migration, options)
    if not result.success:
        logger.error("Migration failed. Check logs and consider rollback.")
    return _report(result)


async def _rollback(args, executor: MigrationExecutor, database: Database) -> int:
    logger.info("=== MIGRATION ROLLBACK ===")
    migration = load_migration(args.migration, database)
    logger.warning(f"WARNING: Rolling back {migration.name}...")
    result = await executor.revert(migration.name, migration.down)
    if not result.success:
        logger.error("Rollback failed. Manual intervention may be required.")
    return _report(result)


async def _validate(args, executor: MigrationExecutor, database: Database) -> int:
    logger.info("=== MIGRATION VALIDATION ===")
    outcome = await executor.validate(args.table, args.column)
    if outcome.valid and args.not_null:
        nullable = await executor.validator.validate_nullable(args.table, args.column)
        outcome.errors.extend(nullable.errors)

    for warning in outcome.warnings:
        logger.warning(f"Warning: {warning}")
    for message in outcome.errors:
        logger.error(f"Error: {message}")

    if outcome.valid:
        logger.info("✓ Validation completed")
        return 0
    logger.error("✗ Validation failed")
    return 1


COMMANDS = {
    "dry-run": _dry_run,
    "run": _run,
    "rollback": _rollback,
    "validate": _validate,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="migration-guard", description="Guarded database migrations")
    parser.add_argument("--database-url", help="Overrides DATABASE_URL")
    parser.add_argument("--log-file", help="Append-only execution log (overrides MIGRATION_GUARD_LOG_FILE)")
    parser.add_argument("--no-flush", action="store_true", help="Don't persist the run to migration_logs")

    subparsers = parser.add_subparsers(dest="command", required=True)

    dry_run = subparsers.add_parser("dry-run", help="Log the migration without executing it")
    dry_run.add_argument("migration", help="package.module[:ClassName]")

    run = subparsers.add_parser("run", help="Execute a migration")
    run.add_argument("migration", help="package.module[:ClassName]")
    run.add_argument("--table", help="Table to validate and back up before executing")
    run.add_argument("--column", help="Column to validate")
    run.add_argument("--skip-backup", action="store_true")
    run.add_argument("--skip-validation", action="store_true")
    run.add_argument(
        "--fail-on-validation-errors",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Abort when pre-flight validation reports errors",
    )

    rollback = subparsers.add_parser("rollback", help="Run a migration's backward step")
    rollback.add_argument("migration", help="package.module[:ClassName]")

    validate = subparsers.add_parser("validate", help="Run pre-destructive checks")
    validate.add_argument("--table", required=True)
    validate.add_argument("--column")
    validate.add_argument("--not-null", action="store_true", help="Also fail if the column holds NULLs")

    return parser


async def run_command(args: argparse.Namespace, settings: GuardSettings) -> int:
    async with ConnectionManager(args.database_url or settings.database_url) as database:
        log = ExecutionLog()
        executor = MigrationExecutor(
            database,
            log=log,
            fail_on_validation_errors=settings.fail_on_validation_errors,
        )
        try:
            return await COMMANDS[args.command](args, executor, database)
        finally:
            # failed runs (including backup failures that raise) are persisted too;
            # dry runs leave the database untouched, including the log table
            if len(log) and not args.no_flush and args.command != "dry-run":
                await log.flush(database)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "validate" and args.not_null and not args.column:
        parser.error("--not-null requires --column")

    settings = load_settings()
    handlers = configure_logging(settings, args.log_file)
    try:
        return asyncio.run(run_command(args, settings))
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        return 1
    finally:
        for handler in handlers:
            logging.getLogger("migration_guard").removeHandler(handler)
            handler.close()


if __name__ == "__main__":
    sys.exit(main())
