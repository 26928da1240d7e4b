"""
Unit tests for ConnectionManager.
"""
import pytest

from migration_guard.services.database import connection_manager
from migration_guard.services.database.connection_manager import ConnectionManager


def test_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    with pytest.raises(ValueError):
        ConnectionManager()


def test_reads_database_url_from_environment(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://guard@localhost/app")
    assert ConnectionManager().database_url == "postgresql://guard@localhost/app"


class StubDatabase:
    def __init__(self, url):
        self.url = url
        self.is_connected = False
        self.calls = []

    async def connect(self):
        self.calls.append("connect")
        self.is_connected = True

    async def disconnect(self):
        self.calls.append("disconnect")
        self.is_connected = False


@pytest.mark.asyncio
async def test_context_manager_connects_and_disconnects(monkeypatch):
    monkeypatch.setattr(connection_manager, "Database", StubDatabase)
    manager = ConnectionManager("postgresql://guard@localhost/app")

    async with manager as database:
        assert database.is_connected is True
        assert database.url == "postgresql://guard@localhost/app"

    assert database.calls == ["connect", "disconnect"]


@pytest.mark.asyncio
async def test_context_manager_disconnects_on_error(monkeypatch):
    monkeypatch.setattr(connection_manager, "Database", StubDatabase)
    manager = ConnectionManager("postgresql://guard@localhost/app")

    with pytest.raises(RuntimeError):
        async with manager as database:
            raise RuntimeError("boom")

    assert database.is_connected is False


@pytest.mark.asyncio
async def test_disconnect_before_connect_is_a_no_op():
    manager = ConnectionManager("postgresql://guard@localhost/app")
    await manager.disconnect()
