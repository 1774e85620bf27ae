"""SQLAlchemy engine factory and read-only connections.

Single shared engine with connection pooling.  Aggregate queries run
through `readonly_connection`, which puts the transaction in read-only
mode where the dialect supports it.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine

from math_query.core.config import get_settings
from math_query.core.logging import get_logger

logger = get_logger(__name__)

_engine: Engine | None = None


def get_engine() -> Engine:
    """Return the shared SQLAlchemy engine (lazy-created, cached)."""
    global _engine
    if _engine is None:
        settings = get_settings()
        url = settings.database_url
        kwargs: dict = {"pool_pre_ping": True, "echo": False}
        if not url.startswith("sqlite"):
            kwargs.update(pool_size=5, max_overflow=10)
        _engine = create_engine(url, **kwargs)
        logger.info("DB engine created  dialect=%s", _engine.dialect.name)
    return _engine


@contextmanager
def readonly_connection(engine: Engine | None = None) -> Generator[Connection, None, None]:
    """Yield a connection that refuses writes.

    Postgres gets a READ ONLY transaction; SQLite gets ``query_only`` for
    the lifetime of the checkout.  Other dialects run unrestricted.  The
    connection is returned to the pool on exit.
    """
    engine = engine or get_engine()
    conn = engine.connect()
    dialect = engine.dialect.name
    try:
        if dialect == "postgresql":
            conn.execute(text("SET TRANSACTION READ ONLY"))
        elif dialect == "sqlite":
            conn.exec_driver_sql("PRAGMA query_only = ON")
        yield conn
    finally:
        try:
            if dialect == "sqlite":
                conn.rollback()
                conn.exec_driver_sql("PRAGMA query_only = OFF")
        finally:
            conn.close()
