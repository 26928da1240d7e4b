"""
Database Connection Manager

Handles database connection lifecycle.
"""
import logging
from typing import Optional

from databases import Database

from migration_guard.config import load_settings

logger = logging.getLogger("migration_guard.database.connection")


class ConnectionManager:
    """
    Manages database connection lifecycle.
    """

    def __init__(self, database_url: Optional[str] = None):
        """
        Initialize connection manager.

        Args:
            database_url: Optional database URL. If not provided, uses DATABASE_URL env var.
        """
        self.database_url = database_url or load_settings().database_url
        if not self.database_url:
            raise ValueError("DATABASE_URL must be set either as parameter or environment variable")

        self._database: Optional[Database] = None

    @property
    def database(self) -> Database:
        """
        Get the database instance. Creates it if it doesn't exist.
        """
        if self._database is None:
            self._database = Database(self.database_url)
        return self._database

    async def connect(self) -> Database:
        """
        Establish database connection.
        """
        database = self.database
        if not database.is_connected:
            await database.connect()
            logger.info("Database connection established")
        return database

    async def disconnect(self) -> None:
        """
        Close database connection.
        """
        if self._database and self._database.is_connected:
            await self._database.disconnect()
            logger.info("Database connection closed")

    async def __aenter__(self) -> Database:
        return await self.connect()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()
