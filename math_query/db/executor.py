"""
SQLAlchemy implementation of the database driver interface.

  1. Catalog introspection through ``sqlalchemy.inspect``
  2. Statements wrapped in text() with typed bind parameters, never
     string-interpolated values
  3. Every query runs on a read-only connection
  4. Driver exceptions surface as ``DatabaseQueryError``
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Generator, Iterator, Mapping, Sequence

from sqlalchemy import Float, Integer, String, bindparam, inspect, text
from sqlalchemy.engine import Engine, Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql.elements import TextClause

from math_query.core.config import get_settings
from math_query.core.errors import DatabaseQueryError
from math_query.core.logging import get_logger
from math_query.db.connection import get_engine, readonly_connection
from math_query.query.spec import BindKind, BoundParam

logger = get_logger(__name__)

_BIND_TYPES = {
    BindKind.INTEGER: Integer,
    BindKind.FLOAT: Float,
    BindKind.TEXT: String,
}


class SQLDatabase:
    """Database driver backed by a SQLAlchemy engine.

    Parameters
    ----------
    engine : Engine, optional
        Defaults to the shared engine from ``get_engine()``.
    table_prefix : str, optional
        Prepended to every table name; defaults to the ``table_prefix``
        setting.
    """

    def __init__(self, engine: Engine | None = None, table_prefix: str | None = None):
        self._engine = engine
        self.table_prefix = get_settings().table_prefix if table_prefix is None else table_prefix
        self.verbose = False

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = get_engine()
        return self._engine

    def show_errors(self) -> None:
        """Include SQL and parameters in error messages and log statements from this driver."""
        self.verbose = True

    def prefixed_name(self, table: str) -> str:
        return f"{self.table_prefix}{table}"

    # ── Catalog ─────────────────────────────────────────

    def table_exists(self, table: str) -> bool:
        try:
            return inspect(self.engine).has_table(self.prefixed_name(table))
        except SQLAlchemyError as exc:
            raise DatabaseQueryError(f"Database query error: {exc}") from exc

    def describe_columns(self, table: str) -> Iterator[tuple[str, str | None]]:
        try:
            columns = inspect(self.engine).get_columns(self.prefixed_name(table))
        except SQLAlchemyError as exc:
            raise DatabaseQueryError(f"Database query error: {exc}") from exc
        for col in columns:
            yield col.get("name"), self._type_name(col.get("type"))

    def _type_name(self, column_type: Any) -> str | None:
        if column_type is None:
            return None
        try:
            return column_type.compile(dialect=self.engine.dialect)
        except SQLAlchemyError:
            logger.warning("Could not render column type %r", column_type)
            return None

    # ── Execution ───────────────────────────────────────

    def query_scalar(self, sql: str, params: Sequence[BoundParam]) -> Any:
        with self._run(sql, params) as result:
            return result.scalar()

    def query_rows(self, sql: str, params: Sequence[BoundParam]) -> list[Mapping[str, Any]]:
        with self._run(sql, params) as result:
            return [dict(row) for row in result.mappings().all()]

    # ── Internals ───────────────────────────────────────

    @staticmethod
    def _statement(sql: str, params: Sequence[BoundParam]) -> TextClause:
        stmt = text(sql)
        if params:
            stmt = stmt.bindparams(
                *[bindparam(p.name, p.value, type_=_BIND_TYPES[p.kind]) for p in params]
            )
        return stmt

    @contextmanager
    def _run(self, sql: str, params: Sequence[BoundParam]) -> Generator[Result, None, None]:
        """Execute one statement on a read-only connection."""
        logger.info("Executing SQL (%d chars, %d params)", len(sql), len(params))
        if self.verbose:
            logger.info("sql=%s | params=%s", sql, {p.name: p.value for p in params})
        try:
            with readonly_connection(self.engine) as conn:
                yield conn.execute(self._statement(sql, params))
        except SQLAlchemyError as exc:
            raise self._error(exc, sql, params) from exc

    def _error(self, exc: SQLAlchemyError, sql: str, params: Sequence[BoundParam]) -> DatabaseQueryError:
        message = str(getattr(exc, "orig", None) or exc)
        if self.verbose:
            binds = {p.name: p.value for p in params}
            logger.warning("Query failed: %s | sql=%s | params=%s", message, sql, binds)
            return DatabaseQueryError(f"Database query error: {message} [sql: {sql}] [params: {binds}]")
        return DatabaseQueryError(f"Database query error: {message}")
