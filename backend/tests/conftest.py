"""
Pytest fixtures: an in-memory stand-in for the Supabase client and an app client.
"""

import itertools
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
from jose import jwt

from saleready.core.database import supabase_service


class FakeQuery:
    """Records one PostgREST-style query chain and runs it against FakeSupabase."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload: Any = None
        self.filters: List[tuple] = []
        self.limit_count: Optional[int] = None

    def select(self, *args, **kwargs):
        self.op = "select"
        return self

    def insert(self, row):
        self.op, self.payload = "insert", row
        return self

    def update(self, values):
        self.op, self.payload = "update", values
        return self

    def upsert(self, row):
        self.op, self.payload = "upsert", row
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, lambda v, value=value: v == value))
        return self

    def in_(self, column, values):
        self.filters.append((column, lambda v, values=tuple(values): v in values))
        return self

    def order(self, *args, **kwargs):
        return self

    def range(self, start, end):
        return self

    def limit(self, count):
        self.limit_count = count
        return self

    def matches(self, row: Dict[str, Any]) -> bool:
        return all(check(row.get(column)) for column, check in self.filters)

    def execute(self):
        return self.db.run(self)


class FakeSupabase:
    """Tables are lists of dicts; inserts get generated ids."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[FakeQuery] = []
        self.failures: Dict[tuple, Exception] = {}
        self.rpc_results: Dict[str, Any] = {}
        self.rpc_calls: List[tuple] = []
        self.auth = MagicMock()
        self._ids = itertools.count(1)

    def seed(self, table: str, *rows: Dict[str, Any]) -> None:
        self.tables.setdefault(table, []).extend(dict(r) for r in rows)

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.get(table, [])

    def fail(self, table: str, op: str, exc: Optional[Exception] = None) -> None:
        self.failures[(table, op)] = exc or RuntimeError(f"{op} on {table} failed")

    def ops(self, table: str, op: str) -> List[FakeQuery]:
        return [q for q in self.calls if q.table == table and q.op == op]

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, function: str, params: Dict[str, Any]):
        self.rpc_calls.append((function, params))
        result = self.rpc_results.get(function)

        def execute():
            value = result(params) if callable(result) else result
            if isinstance(value, Exception):
                raise value
            return SimpleNamespace(data=value)

        return SimpleNamespace(execute=execute)

    def run(self, query: FakeQuery):
        self.calls.append(query)
        failure = self.failures.get((query.table, query.op))
        if failure:
            raise failure

        rows = self.tables.setdefault(query.table, [])
        if query.op in ("insert", "upsert"):
            new_rows = query.payload if isinstance(query.payload, list) else [query.payload]
            stored = []
            for row in new_rows:
                row = dict(row)
                row.setdefault("id", f"{query.table}-{next(self._ids)}")
                rows.append(row)
                stored.append(row)
            return SimpleNamespace(data=stored)

        matched = [r for r in rows if query.matches(r)]
        if query.op == "update":
            for row in matched:
                row.update(query.payload)
        elif query.op == "delete":
            self.tables[query.table] = [r for r in rows if not query.matches(r)]
        if query.limit_count is not None:
            matched = matched[:query.limit_count]
        return SimpleNamespace(data=[dict(r) for r in matched])


@pytest.fixture
def fake_db():
    db = FakeSupabase()
    supabase_service.set_client(db)
    yield db
    supabase_service.set_client(None)


@pytest.fixture
def make_token() -> Callable[..., str]:
    def _make(sub: str = "user-1", **claims) -> str:
        return jwt.encode({"sub": sub, "aud": "authenticated", **claims}, "test-secret", algorithm="HS256")
    return _make


@pytest.fixture
def client(fake_db):
    from fastapi.testclient import TestClient
    from saleready.main import app

    with TestClient(app) as test_client:
        yield test_client
