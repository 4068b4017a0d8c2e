"""
Shared test fixtures.

Provides an in-memory Supabase client that actually applies the filters
the record fetcher uses, so service tests run against realistic rows.
"""

import os
import sys
from pathlib import Path

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

# Settings are loaded at import time and require these
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import pytest
from unittest.mock import patch
from datetime import datetime, timezone
from typing import Generator

NOW = datetime(2026, 10, 19, 15, 30, tzinfo=timezone.utc)


# ===================
# MOCK SUPABASE CLIENT
# ===================

def _coerce(value):
    """Parse ISO timestamps so range filters compare instants, not strings."""
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return value


def _is(row_value, value) -> bool:
    expected = {"null": None, "true": True, "false": False}.get(str(value).lower(), value)
    return row_value is expected


class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class _Negated:
    """Result of `.not_` on a query."""

    def __init__(self, query: "MockSupabaseQuery"):
        self._query = query

    def is_(self, column, value):
        self._query._filters.append(lambda row: not _is(row.get(column), value))
        return self._query

    def eq(self, column, value):
        self._query._filters.append(lambda row: row.get(column) != value)
        return self._query


class MockSupabaseQuery:
    """Chainable query builder evaluated against the table's rows."""

    def __init__(self, table: "MockSupabaseTable"):
        self._table = table
        self._filters = []
        self._order = None
        self._range = None
        self._limit = None
        self._update = None
        self._is_single = False

    def select(self, *args, **kwargs):
        return self

    def update(self, data):
        self._update = dict(data)
        return self

    # Filters

    def eq(self, column, value):
        self._filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self._filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        allowed = set(values)
        self._filters.append(lambda row: row.get(column) in allowed)
        return self

    def gte(self, column, value):
        bound = _coerce(value)
        self._filters.append(
            lambda row: row.get(column) is not None and _coerce(row.get(column)) >= bound
        )
        return self

    def lte(self, column, value):
        bound = _coerce(value)
        self._filters.append(
            lambda row: row.get(column) is not None and _coerce(row.get(column)) <= bound
        )
        return self

    def is_(self, column, value):
        self._filters.append(lambda row: _is(row.get(column), value))
        return self

    @property
    def not_(self) -> _Negated:
        return _Negated(self)

    # Shaping

    def order(self, column, desc: bool = False, **kwargs):
        self._order = (column, desc)
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def limit(self, count):
        self._limit = count
        return self

    def single(self):
        self._is_single = True
        return self

    def execute(self) -> MockSupabaseResponse:
        self._table.executions += 1
        if self._table.error is not None:
            raise self._table.error

        rows = [row for row in self._table.rows if all(f(row) for f in self._filters)]

        if self._update is not None:
            for row in rows:
                row.update(self._update)
            return MockSupabaseResponse(data=[dict(row) for row in rows])

        if self._order is not None:
            column, desc = self._order
            rows = sorted(
                rows,
                key=lambda row: (row.get(column) is not None, _coerce(row.get(column)) if row.get(column) is not None else 0),
                reverse=desc,
            )

        if self._range is not None:
            start, end = self._range
            rows = rows[start:end + 1]

        if self._limit is not None:
            rows = rows[:self._limit]

        data = [dict(row) for row in rows]

        if self._is_single:
            return MockSupabaseResponse(data=data[0] if data else None, count=len(data))
        return MockSupabaseResponse(data=data)


class MockSupabaseTable:
    """In-memory table; rows are shared so updates persist."""

    def __init__(self, rows: list = None):
        self.rows = rows if rows is not None else []
        self.error = None
        self.executions = 0

    def select(self, *args, **kwargs):
        return MockSupabaseQuery(self)

    def update(self, data):
        return MockSupabaseQuery(self).update(data)


class MockSupabaseClient:
    """Mock Supabase client."""

    def __init__(self):
        self._tables = {}

    def set_table_data(self, table_name: str, data: list):
        """Configure rows for a table."""
        self._tables[table_name] = MockSupabaseTable([dict(row) for row in data])

    def fail_table(self, table_name: str, error: Exception = None):
        """Make every query on a table raise."""
        self.table(table_name).error = error or RuntimeError("connection reset")

    def rows(self, table_name: str) -> list:
        """Current rows of a table."""
        return self.table(table_name).rows

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        if name not in self._tables:
            self._tables[name] = MockSupabaseTable()
        return self._tables[name]


# ===================
# FIXTURES
# ===================

@pytest.fixture
def now() -> datetime:
    """Fixed evaluation instant."""
    return NOW


@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("sales", [SaleFactory.create(...)])
    """
    return MockSupabaseClient()


@pytest.fixture
def record_service(mock_supabase) -> Generator:
    """
    RecordService wired to the mock client.

    The admin client is unavailable, so conditional updates go through
    the regular client.
    """
    from services.record_service import RecordService

    with patch("services.record_service.get_supabase_client", return_value=mock_supabase):
        with patch("services.record_service.get_admin_client", return_value=None):
            yield RecordService()


@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    The lifespan (database check) does not run outside a `with` block.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/health")
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)
