"""
Pytest configuration and shared fixtures for the store tests

APPROACH: no live database
- FakeDatabase stands in for DatabaseConnection and understands the few SQL
  shapes the repositories issue (version read, guarded UPDATE, cursor reads)
- Every call is recorded so tests can assert which statements ran
"""

import asyncio
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from config import PaginationConfig
from query import QueryCompiler


NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeCursor:
    """Hands out `rows` in batches; raises `fail` on the first fetch if set."""

    def __init__(self, rows, fail=None):
        self._rows = list(rows)
        self._fail = fail

    async def fetch(self, n, timeout=None):
        await asyncio.sleep(0)
        if self._fail is not None:
            raise self._fail
        batch, self._rows = self._rows[:n], self._rows[n:]
        return batch


class FakeDatabase:
    """
    In-memory stand-in for DatabaseConnection.

    - versions: id -> stored version, used by "SELECT version" and guarded UPDATEs
    - rows: returned by cursor() reads, and counted by COUNT(*)
    - row: returned by any other fetchrow (INSERT / SELECT by id / plain UPDATE)
    - status: returned by execute()
    - fail: method name ("fetchval", "fetchrow", "execute", "cursor", "fetch")
      -> exception to raise
    """

    def __init__(self):
        self.versions: dict = {}
        self.rows: list = []
        self.row = None
        self.status = "DELETE 1"
        self.fail: dict = {}
        self.calls: list = []

    def _record(self, method, query, args):
        self.calls.append((method, " ".join(query.split()), args))
        if method in self.fail:
            raise self.fail[method]

    def statements(self, prefix: str = "") -> list:
        return [sql for _, sql, _ in self.calls if sql.startswith(prefix)]

    async def fetchval(self, query, *args, column=0, timeout=None):
        await asyncio.sleep(0)
        self._record("fetchval", query, args)
        if query.startswith("SELECT version"):
            return self.versions.get(args[0])
        if query.startswith("SELECT COUNT(*)"):
            return len(self.rows)
        return None

    async def fetchrow(self, query, *args, timeout=None):
        await asyncio.sleep(0)
        self._record("fetchrow", query, args)
        if query.startswith("UPDATE") and "AND version =" in query:
            record_id, expected = args[-2], args[-1]
            if record_id not in self.versions or self.versions[record_id] != expected:
                return None
            self.versions[record_id] += 1
            return {"updated_at": NOW, "version": self.versions[record_id]}
        return self.row

    async def fetch(self, query, *args, timeout=None):
        self._record("fetch", query, args)
        return list(self.rows)

    async def execute(self, query, *args, timeout=None):
        await asyncio.sleep(0)
        self._record("execute", query, args)
        return self.status

    @asynccontextmanager
    async def cursor(self, query, *args, timeout=None):
        self._record("cursor", query, args)
        yield FakeCursor(self.rows, self.fail.get("fetch"))

    async def check_connection(self):
        return True

    async def get_pool_stats(self):
        return {"status": "connected", "size": 1, "freesize": 1}


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def pagination():
    return PaginationConfig()


@pytest.fixture
def compiler(pagination):
    return QueryCompiler(pagination)


@pytest.fixture
def client_row():
    return {
        "id": 1,
        "name": "Maria Silva",
        "email": "maria@example.com",
        "cpf": "12345678901",
        "cnpj": None,
        "description": "Regular customer",
        "status": True,
        "version": 1,
        "created_at": NOW,
        "updated_at": NOW,
    }
