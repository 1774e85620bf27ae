"""
FastAPI dependencies -- the driver and cache each request uses.

Override these in tests with ``app.dependency_overrides``.
"""
from __future__ import annotations

from math_query.db.executor import SQLDatabase
from math_query.query.cache import ResultCache, get_cache
from math_query.query.interfaces import Database

_db: SQLDatabase | None = None


def get_database() -> Database:
    global _db
    if _db is None:
        _db = SQLDatabase()
    return _db


def get_result_cache() -> ResultCache:
    return get_cache()
