"""
Shared fixtures -- in-memory fakes for the driver and cache interfaces.
"""
from __future__ import annotations

from typing import Any

import pytest

from math_query.core.errors import DatabaseQueryError
from math_query.query.cache import ResultCache

ORDERS_COLUMNS = [
    ("id", "bigint(20) unsigned"),
    ("status", "varchar(20)"),
    ("total", "decimal(10,2)"),
    ("quantity", "int(11)"),
    ("note", "text"),
    ("date_created", "datetime"),
    ("paid_on", "date"),
]


class FakeDatabase:
    """Driver double that records every call and returns canned results."""

    def __init__(self, tables: dict[str, list[tuple[Any, Any]]] | None = None, prefix: str = ""):
        self.tables = tables if tables is not None else {"orders": list(ORDERS_COLUMNS)}
        self.prefix = prefix
        self.scalar_result: Any = 0
        self.rows_result: list[dict[str, Any]] = []
        self.error: str | None = None
        self.verbose = False
        self.calls: dict[str, int] = {
            "table_exists": 0, "describe_columns": 0, "query_scalar": 0, "query_rows": 0,
        }
        self.executed: list[tuple[str, list]] = []

    def table_exists(self, table: str) -> bool:
        self.calls["table_exists"] += 1
        return table in self.tables

    def describe_columns(self, table: str):
        self.calls["describe_columns"] += 1
        return list(self.tables[table])

    def query_scalar(self, sql, params):
        self.calls["query_scalar"] += 1
        self.executed.append((sql, list(params)))
        if self.error:
            raise DatabaseQueryError(f"Database query error: {self.error}")
        return self.scalar_result

    def query_rows(self, sql, params):
        self.calls["query_rows"] += 1
        self.executed.append((sql, list(params)))
        if self.error:
            raise DatabaseQueryError(f"Database query error: {self.error}")
        return list(self.rows_result)

    def prefixed_name(self, table: str) -> str:
        return f"{self.prefix}{table}"

    def show_errors(self) -> None:
        self.verbose = True

    @property
    def executions(self) -> int:
        return self.calls["query_scalar"] + self.calls["query_rows"]


@pytest.fixture
def db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def cache() -> ResultCache:
    return ResultCache(ttl=60, max_size=32)


@pytest.fixture
def make_db():
    """Factory for a FakeDatabase with custom tables / prefix."""
    return FakeDatabase
