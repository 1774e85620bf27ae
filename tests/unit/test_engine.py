"""
Unit tests -- MathQuery end-to-end against in-memory driver and cache fakes.
"""
import functools
import threading

import pytest

from math_query.core.errors import (
    DatabaseQueryError,
    InvalidColumnType,
    InvalidDateFormat,
    InvalidFilterShape,
    InvalidFunction,
    InvalidOperator,
    InvalidTable,
    MissingParameter,
    NotAnArray,
    UnknownColumn,
)
from math_query.query.engine import MathQuery, math_query


def _query(db, cache, **overrides):
    base = {"table": "orders", "column": "total"}
    base.update(overrides)
    return MathQuery(base, db=db, cache=cache)


# ── Scalar path ──────────────────────────────────────────

def test_sum_returns_float(db, cache):
    db.scalar_result = "15.00"
    result = _query(db, cache).get_result()
    assert result == 15.0
    assert isinstance(result, float)


def test_count_returns_int(db, cache):
    db.scalar_result = "3"
    result = _query(db, cache, function="COUNT", column="").get_result()
    assert result == 3
    assert isinstance(result, int)


def test_count_with_string_column_never_type_error(db, cache):
    db.scalar_result = 3
    assert _query(db, cache, function="COUNT", column="status").get_result() == 3


def test_null_scalar_is_none(db, cache):
    db.scalar_result = None
    assert _query(db, cache).get_result() is None


def test_null_scalar_not_formatted_or_cached(db, cache):
    db.scalar_result = None
    calls = []
    q = _query(db, cache, formatter=lambda v: calls.append(v) or "x")
    assert q.get_result() is None
    assert calls == []
    assert cache.stats()["size"] == 0


def test_formatter_applied(db, cache):
    db.scalar_result = 1234.5
    q = _query(db, cache, formatter=lambda v: f"${v:,.2f}")
    assert q.get_result() == "$1,234.50"


def test_sql_and_params_reach_driver(db, cache):
    db.scalar_result = 15
    _query(
        db, cache,
        status__not_in=["refunded"],
        date_column="date_created",
        date_start="2023-01-01",
    ).get_result()
    sql, params = db.executed[0]
    assert sql == (
        "SELECT SUM(total) AS result FROM orders"
        " WHERE status NOT IN (:p0) AND (date_created >= :p1)"
    )
    assert [p.value for p in params] == ["refunded", "2023-01-01"]


def test_prefix_resolved_by_driver(make_db, cache):
    db = make_db(prefix="wp_")
    db.scalar_result = 1
    _query(db, cache).get_result()
    assert "FROM wp_orders" in db.executed[0][0]


# ── Grouped path ─────────────────────────────────────────

def test_grouped_count(db, cache):
    db.rows_result = [
        {"result": 1, "status": "complete"},
        {"result": 1, "status": "pending"},
        {"result": 1, "status": "refunded"},
    ]
    result = _query(db, cache, function="COUNT", group_by="status").get_result()
    assert result == {"complete": 1, "pending": 1, "refunded": 1}
    assert db.calls["query_rows"] == 1
    assert db.calls["query_scalar"] == 0


def test_grouped_empty_is_empty_dict(db, cache):
    db.rows_result = []
    result = _query(db, cache, group_by="status").get_result()
    assert result == {}
    assert result is not None


def test_grouped_formatter(db, cache):
    db.rows_result = [{"result": 10, "status": "complete"}]
    result = _query(db, cache, group_by="status", formatter=lambda v: round(v / 2)).get_result()
    assert result == {"complete": 5}


# ── Caching ──────────────────────────────────────────────

def test_second_identical_call_served_from_cache(db, cache):
    db.scalar_result = 15
    q = {"status__in": ["complete", "pending"]}
    first = _query(db, cache, **q).get_result()
    second = _query(db, cache, **q).get_result()
    assert first == second == 15.0
    assert db.executions == 1


def test_grouped_result_cached(db, cache):
    db.rows_result = [{"result": 2, "status": "a"}]
    _query(db, cache, function="COUNT", group_by="status").get_result()
    _query(db, cache, function="COUNT", group_by="status").get_result()
    assert db.calls["query_rows"] == 1


def test_cache_disabled_always_hits_driver(db, cache):
    db.scalar_result = 15
    for _ in range(3):
        _query(db, cache, enable_caching=False).get_result()
    assert db.executions == 3
    assert cache.stats()["size"] == 0


def test_different_filters_do_not_collide(db, cache):
    db.scalar_result = 15
    _query(db, cache, status="a").get_result()
    _query(db, cache, status="b").get_result()
    assert db.executions == 2


def test_cached_value_not_reformatted(db, cache):
    db.scalar_result = 10

    def double(v):
        return v * 2

    assert _query(db, cache, formatter=double).get_result() == 20
    assert _query(db, cache, formatter=double).get_result() == 20
    assert db.executions == 1


def test_different_lambdas_do_not_share_cache(db, cache):
    db.scalar_result = 10
    assert _query(db, cache, formatter=lambda v: v * 100).get_result() == 1000
    assert _query(db, cache, formatter=lambda v: f"${v}").get_result() == "$10"
    assert db.executions == 2


def test_different_partials_do_not_share_cache(db, cache):
    db.scalar_result = 10
    assert _query(db, cache, formatter=functools.partial(round, ndigits=0)).get_result() == 10
    assert _query(db, cache, formatter=functools.partial(lambda v, m: v * m, m=3)).get_result() == 30
    assert db.executions == 2


def test_unfingerprintable_formatter_skips_cache(db, cache):
    db.scalar_result = 10
    lock = threading.Lock()
    q = _query(db, cache, formatter=lambda v: (lock, v)[1])
    assert q.cache_key is None
    assert q.get_result() == 10
    assert q.get_result() == 10
    assert db.executions == 2
    assert cache.stats()["size"] == 0


def test_cache_key_uses_group(db, cache):
    q = _query(db, cache, cache_group="reports")
    assert q.cache_key.startswith("reports_")


def test_database_error_not_cached(db, cache):
    db.error = "connection lost"
    with pytest.raises(DatabaseQueryError, match="connection lost"):
        _query(db, cache).get_result()
    assert cache.stats()["size"] == 0


def test_database_error_not_retried(db, cache):
    db.error = "deadlock"
    with pytest.raises(DatabaseQueryError):
        _query(db, cache).get_result()
    assert db.executions == 1


# ── Errors raised before any SQL is sent ─────────────────

@pytest.mark.parametrize("overrides,error", [
    ({"table": "nope"}, InvalidTable),
    ({"column": "status"}, InvalidColumnType),
    ({"column": "nope"}, UnknownColumn),
    ({"total": {"value": 10, "compare": "<>"}}, InvalidOperator),
    ({"date_column": "date_created", "date_start": "2023-13-40"}, InvalidDateFormat),
    ({"function": "MEDIAN"}, InvalidFunction),
    ({"nope": 1}, UnknownColumn),
])
def test_errors_before_execution(db, cache, overrides, error):
    q = _query(db, cache, **overrides)
    with pytest.raises(error):
        q.get_result()
    assert db.executions == 0


@pytest.mark.parametrize("overrides,error", [
    ({"status__in": "complete"}, NotAnArray),
    ({"total": {"foo": 1}}, InvalidFilterShape),
])
def test_filter_shape_errors_at_construction(db, cache, overrides, error):
    with pytest.raises(error):
        _query(db, cache, **overrides)
    assert db.executions == 0


def test_count_filter_column_still_resolved(db, cache):
    with pytest.raises(UnknownColumn):
        _query(db, cache, function="COUNT", column="", nope=1).get_result()


# ── Schema loading ───────────────────────────────────────

def test_schema_loaded_once_per_instance(db, cache):
    db.scalar_result = 1
    q = _query(db, cache, enable_caching=False)
    q.compile()
    q.get_result()
    q.get_result()
    assert db.calls["describe_columns"] == 1


def test_schema_not_shared_between_instances(db, cache):
    db.scalar_result = 1
    _query(db, cache, enable_caching=False).get_result()
    _query(db, cache, enable_caching=False).get_result()
    assert db.calls["describe_columns"] == 2


# ── Hook and debug ───────────────────────────────────────

def test_hook_rewrites_spec_before_validation(db, cache):
    seen = {}

    def hook(spec, raw):
        seen["raw"] = raw
        return spec.model_copy(update={"column": "quantity"})

    db.scalar_result = 4
    q = MathQuery({"table": "orders", "column": "status"}, db=db, cache=cache, hook=hook)
    assert q.get_result() == 4.0
    assert seen["raw"]["column"] == "status"
    assert "SUM(quantity)" in db.executed[0][0]


def test_hook_sees_context(db, cache):
    def hook(spec, raw):
        if spec.context == "no-cache":
            return spec.model_copy(update={"enable_caching": False})
        return spec

    q = MathQuery({"table": "orders", "column": "total", "context": "no-cache"}, db=db, cache=cache, hook=hook)
    assert q.spec.enable_caching is False


def test_debug_turns_on_driver_errors(db, cache):
    _query(db, cache, debug=True)
    assert db.verbose is True


def test_no_debug_leaves_driver_quiet(db, cache):
    _query(db, cache)
    assert db.verbose is False


# ── Convenience function ─────────────────────────────────

def test_math_query_function(db, cache):
    db.scalar_result = 7
    assert math_query({"table": "orders", "column": "total"}, db=db, cache=cache) == 7.0


def test_math_query_requires_table(db, cache):
    with pytest.raises(MissingParameter):
        math_query({"column": "total"}, db=db, cache=cache)


def test_math_query_requires_column_unless_count(db, cache):
    with pytest.raises(MissingParameter):
        math_query({"table": "orders"}, db=db, cache=cache)
    db.scalar_result = 2
    assert math_query({"table": "orders", "function": "COUNT"}, db=db, cache=cache) == 2
