"""
Shared fixtures.

FakeDatabase implements the slice of the `databases.Database` API used by
migration_guard (execute / fetch_one / fetch_val / fetch_all / connection /
transaction) over an in-memory catalog, so guard behaviour can be tested
without PostgreSQL.
"""
import copy
import re
from typing import Any, Dict, List, Optional

import pytest

IDENT = r'"((?:[^"]|"")+)"'


class FakeDatabaseError(Exception):
    """Stands in for asyncpg errors such as UndefinedTable."""
    pass


def _unquote(name: str) -> str:
    return name.replace('""', '"')


def _like_to_regex(pattern: str) -> re.Pattern:
    out = []
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if char == "\\" and i + 1 < len(pattern):
            out.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if char == "%":
            out.append(".*")
        elif char == "_":
            out.append(".")
        else:
            out.append(re.escape(char))
        i += 1
    return re.compile("^" + "".join(out) + "$")


class FakeTransaction:
    def __init__(self, db: "FakeDatabase"):
        self.db = db
        self._snapshot = None

    async def start(self):
        self._snapshot = copy.deepcopy(self.db.tables)
        self.db.events.append("begin")
        return self

    async def commit(self):
        self.db.events.append("commit")

    async def rollback(self):
        self.db.tables = self._snapshot
        self.db.events.append("rollback")

    async def __aenter__(self):
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is not None:
            await self.rollback()
        else:
            await self.commit()


class FakeConnection:
    def __init__(self, db: "FakeDatabase"):
        self.db = db

    def transaction(self) -> FakeTransaction:
        return FakeTransaction(self.db)

    async def __aenter__(self):
        self.db.events.append("acquire")
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.db.events.append("release")


class FakeDatabase:
    def __init__(self):
        self.tables: Dict[str, Dict[str, Any]] = {}
        self.foreign_keys: Dict[str, int] = {}
        self.queries: List[str] = []
        self.events: List[str] = []
        self.fail_on: Dict[str, Exception] = {}
        self.is_connected = False

    # -- setup helpers -------------------------------------------------

    def create_table(self, name: str, columns: List[str], rows: Optional[List[Dict[str, Any]]] = None):
        self.tables[name] = {
            "columns": list(columns),
            "rows": [dict(row) for row in rows or []],
        }

    def columns(self, table: str) -> List[str]:
        return self.tables[table]["columns"]

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables[table]["rows"]

    # -- databases.Database surface -----------------------------------

    async def connect(self):
        self.is_connected = True

    async def disconnect(self):
        self.is_connected = False

    def connection(self) -> FakeConnection:
        return FakeConnection(self)

    def transaction(self) -> FakeTransaction:
        return FakeTransaction(self)

    async def execute(self, query: str, values: Optional[Dict[str, Any]] = None):
        sql = self._record(query)

        match = re.match(rf"CREATE TABLE {IDENT} AS SELECT \* FROM {IDENT}$", sql)
        if match:
            target, source = _unquote(match.group(1)), _unquote(match.group(2))
            self._require(source)
            self.tables[target] = copy.deepcopy(self.tables[source])
            return None

        match = re.match(rf"ALTER TABLE {IDENT} ADD COLUMN {IDENT} ", sql)
        if match:
            table, column = _unquote(match.group(1)), _unquote(match.group(2))
            self._require(table)
            if column in self.columns(table):
                raise FakeDatabaseError(f'column "{column}" of relation "{table}" already exists')
            self.columns(table).append(column)
            for row in self.rows(table):
                row[column] = None
            return None

        match = re.match(rf"ALTER TABLE {IDENT} DROP COLUMN IF EXISTS {IDENT}$", sql)
        if match:
            table, column = _unquote(match.group(1)), _unquote(match.group(2))
            self._require(table)
            if column in self.columns(table):
                self.columns(table).remove(column)
                for row in self.rows(table):
                    row.pop(column, None)
            return None

        match = re.match(rf"TRUNCATE TABLE {IDENT} CASCADE$", sql)
        if match:
            table = _unquote(match.group(1))
            self._require(table)
            self.tables[table]["rows"] = []
            return None

        match = re.match(rf"INSERT INTO {IDENT} SELECT \* FROM {IDENT}$", sql)
        if match:
            target, source = _unquote(match.group(1)), _unquote(match.group(2))
            self._require(target)
            self._require(source)
            self.rows(target).extend(copy.deepcopy(self.rows(source)))
            return None

        match = re.match(rf"DROP TABLE (IF EXISTS )?{IDENT}$", sql)
        if match:
            table = _unquote(match.group(2))
            if match.group(1) is None:
                self._require(table)
            self.tables.pop(table, None)
            return None

        if sql.startswith("CREATE TABLE IF NOT EXISTS migration_logs"):
            if "migration_logs" not in self.tables:
                self.create_table("migration_logs", [
                    "id", "migration_name", "status", "start_time", "end_time",
                    "duration", "error_message", "metadata", "created_at",
                ])
            return None

        if sql.startswith("INSERT INTO migration_logs"):
            self._require("migration_logs")
            rows = self.rows("migration_logs")
            rows.append({
                "id": len(rows) + 1,
                "migration_name": values["name"],
                "status": values["status"],
                "start_time": values["start_time"],
                "end_time": values["end_time"],
                "duration": values["duration"],
                "error_message": values["error_message"],
                "metadata": values["metadata"],
            })
            return None

        return None

    async def fetch_one(self, query: str, values: Optional[Dict[str, Any]] = None):
        sql = self._record(query)
        values = values or {}

        if sql.startswith("SELECT table_name FROM information_schema.tables WHERE table_name = :table"):
            table = values["table"]
            return {"table_name": table} if table in self.tables else None

        if sql.startswith("SELECT column_name FROM information_schema.columns"):
            table = self.tables.get(values["table"])
            if table and values["column"] in table["columns"]:
                return {"column_name": values["column"]}
            return None

        raise AssertionError(f"Unexpected fetch_one: {sql}")

    async def fetch_val(self, query: str, values: Optional[Dict[str, Any]] = None):
        sql = self._record(query)
        values = values or {}

        if sql == "SELECT 1":
            return 1

        if sql.startswith("SELECT COUNT(*) FROM information_schema.table_constraints"):
            return self.foreign_keys.get(values["table"], 0)

        match = re.match(rf"SELECT COUNT\(\*\) FROM {IDENT}( WHERE {IDENT} IS (NOT )?NULL)?$", sql)
        if match:
            table = _unquote(match.group(1))
            self._require(table)
            rows = self.rows(table)
            if match.group(2) is None:
                return len(rows)
            column = _unquote(match.group(3))
            if column not in self.columns(table):
                raise FakeDatabaseError(f'column "{column}" does not exist')
            if match.group(4):
                return sum(1 for row in rows if row.get(column) is not None)
            return sum(1 for row in rows if row.get(column) is None)

        raise AssertionError(f"Unexpected fetch_val: {sql}")

    async def fetch_all(self, query: str, values: Optional[Dict[str, Any]] = None):
        sql = self._record(query)
        values = values or {}

        if "FROM information_schema.tables WHERE table_name LIKE :pattern" in sql:
            regex = _like_to_regex(values["pattern"])
            return [{"table_name": name} for name in sorted(self.tables) if regex.match(name)]

        raise AssertionError(f"Unexpected fetch_all: {sql}")

    # -- internals -----------------------------------------------------

    def _record(self, query: str) -> str:
        sql = " ".join(query.split())
        self.queries.append(sql)
        for fragment, error in self.fail_on.items():
            if fragment in sql:
                raise error
        return sql

    def _require(self, table: str):
        if table not in self.tables:
            raise FakeDatabaseError(f'relation "{table}" does not exist')


@pytest.fixture
def fake_db():
    return FakeDatabase()
