"""
Example: add users.email_verified and retire old_table.

Run with:
    migration-guard run migration_guard.migrations.example_safe_migration --table users
"""
from migration_guard.core.migrations.safe_migration import SafeMigration


class AddEmailVerified(SafeMigration):
    name = "AddEmailVerified1700000000000"

    async def up(self) -> None:
        self.logger.info("Starting safe migration example")

        await self.safe_add_column("users", "email_verified", "BOOLEAN", nullable=True, default=False)

        if await self.guard_table_drop("old_table"):
            await self.database.execute('DROP TABLE "old_table"')

        self.logger.info("Migration completed successfully")

    async def down(self) -> None:
        self.logger.info("Rolling back safe migration example")
        await self.safe_drop_column("users", "email_verified")
        self.logger.info("Rollback completed")
