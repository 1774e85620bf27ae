"""
MathQuery -- run one aggregate (SUM / AVG / MIN / MAX / COUNT) over a table.

Pipeline for ``get_result()``:

    validate -> compile filters + date range -> assemble SQL
      -> cache lookup -> execute -> format -> cache store

Example::

    query = MathQuery({
        "table": "orders",
        "column": "total",
        "function": "SUM",
        "status__not_in": ["refunded"],
        "date_column": "date_created",
        "date_start": "2023-01-01",
    })
    query.get_result()   # 15.0
"""
from __future__ import annotations

from typing import Any, Mapping

from math_query.core.errors import MissingParameter
from math_query.core.logging import get_logger
from math_query.core.utils import timer
from math_query.query.assembler import CompiledQuery, assemble
from math_query.query.cache import get_cache, make_cache_key
from math_query.query.conditions import ParameterList, compile_conditions, compile_date_range
from math_query.query.formatter import format_rows, format_scalar
from math_query.query.interfaces import MISS, CacheStore, Database, QueryVarsHook, identity_hook
from math_query.query.schema import TableSchema
from math_query.query.spec import QuerySpec
from math_query.query.validator import validate_spec

logger = get_logger(__name__)


def _default_database() -> Database:
    from math_query.db.executor import SQLDatabase

    return SQLDatabase()


class MathQuery:
    """One aggregate query over one table.

    Parameters
    ----------
    query : Mapping
        Flat request.  Known keys: table, column, function, date_column,
        date_start, date_end, group_by, formatter, enable_caching,
        cache_group, debug, context.  Any other key is a column filter.
    db : Database, optional
        Driver; defaults to a SQLAlchemy driver on the shared engine.
    cache : CacheStore, optional
        Result store; defaults to the process-local ``ResultCache``.
    hook : callable, optional
        ``(spec, raw_query) -> spec``, applied once before validation.
    """

    def __init__(
        self,
        query: Mapping[str, Any] | None = None,
        *,
        db: Database | None = None,
        cache: CacheStore | None = None,
        hook: QueryVarsHook | None = None,
    ):
        raw = dict(query or {})
        self.db = db if db is not None else _default_database()
        self.cache = cache if cache is not None else get_cache()

        spec = QuerySpec.from_query(raw)
        self.spec: QuerySpec = (hook or identity_hook)(spec, raw)

        if self.spec.debug:
            self.db.show_errors()

        self._schema: TableSchema | None = None

    # ── Public API ──────────────────────────────────────

    @property
    def cache_key(self) -> str | None:
        """None when the formatter cannot be fingerprinted; such queries skip the cache."""
        if not self.spec.cacheable:
            return None
        return make_cache_key(self.spec)

    def validate(self) -> TableSchema:
        """Load the schema (once) and run every request-level check."""
        self._schema = validate_spec(self.spec, self.db, self._schema)
        return self._schema

    def compile(self) -> CompiledQuery:
        """Validate, then build the SQL text and its ordered parameters."""
        schema = self.validate()
        params = ParameterList()
        predicates = compile_conditions(self.spec.filters.values(), schema, params)
        date_range = compile_date_range(
            self.spec.date_column, self.spec.date_start, self.spec.date_end, params,
        )
        return assemble(self.spec, self.db.prefixed_name(self.spec.table), predicates, date_range)

    def get_result(self) -> Any:
        """Run the aggregate.

        Returns a number, a ``{group value: number}`` dict (possibly empty)
        or ``None`` when an ungrouped aggregate matched no rows.  With a
        formatter, its return values replace the numbers.
        """
        compiled = self.compile()
        spec = self.spec

        key = self.cache_key if spec.enable_caching else None
        if spec.enable_caching and key is None:
            logger.debug("Formatter on %s cannot be fingerprinted; skipping cache", spec.table)
        if key is not None:
            cached = self.cache.get(key, spec.cache_group)
            if cached is not MISS and cached is not None:
                logger.debug("Cache HIT table=%s key=%s", spec.table, key)
                return cached
            logger.debug("Cache MISS table=%s key=%s", spec.table, key)

        logger.debug("SQL: %s | params=%s", compiled.sql, compiled.bind_values)
        with timer() as t:
            if spec.group_by:
                rows = self.db.query_rows(compiled.sql, compiled.params)
                result = format_rows(rows, spec.group_by, spec.function, spec.formatter)
            else:
                raw = self.db.query_scalar(compiled.sql, compiled.params)
                if raw is None:
                    return None
                result = format_scalar(raw, spec.function, spec.formatter)
        logger.debug("%s on %s finished in %d ms", spec.function, spec.table, t["elapsed_ms"])

        if key is not None:
            self.cache.set(key, result, spec.cache_group)

        return result


def math_query(
    query: Mapping[str, Any],
    *,
    db: Database | None = None,
    cache: CacheStore | None = None,
    hook: QueryVarsHook | None = None,
) -> Any:
    """Build a ``MathQuery`` and return its result in one call.

    ``table`` is always required; ``column`` is required unless the
    function is COUNT.
    """
    function = query.get("function", "SUM")
    if not query.get("table") or (function != "COUNT" and not query.get("column")):
        raise MissingParameter(
            'Missing required parameters. "table" and "column" must be provided '
            "(column may be omitted for COUNT)."
        )
    return MathQuery(query, db=db, cache=cache, hook=hook).get_result()
