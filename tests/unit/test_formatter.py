"""
Unit tests -- result formatting.
"""
import datetime
import decimal

from math_query.query.formatter import format_rows, format_scalar


def test_count_is_int():
    assert format_scalar("3", "COUNT") == 3
    assert isinstance(format_scalar(3, "COUNT"), int)


def test_other_functions_float():
    value = format_scalar(decimal.Decimal("15.00"), "SUM")
    assert value == 15.0
    assert isinstance(value, float)


def test_none_is_not_zero():
    assert format_scalar(None, "SUM") is None
    assert format_scalar(None, "COUNT") is None


def test_none_skips_formatter():
    calls = []
    assert format_scalar(None, "SUM", calls.append) is None
    assert calls == []


def test_formatter_receives_raw_value():
    assert format_scalar(decimal.Decimal("1234.5"), "SUM", lambda v: f"${float(v):,.2f}") == "$1,234.50"


def test_rows_converted():
    rows = [{"result": 2, "status": "complete"}, {"result": "1", "status": "pending"}]
    assert format_rows(rows, "status", "COUNT") == {"complete": 2, "pending": 1}


def test_rows_float():
    rows = [{"result": decimal.Decimal("10.50"), "status": "complete"}]
    assert format_rows(rows, "status", "AVG") == {"complete": 10.5}


def test_rows_with_formatter():
    rows = [{"result": 10, "status": "a"}, {"result": 5, "status": "b"}]
    assert format_rows(rows, "status", "SUM", lambda v: v * 2) == {"a": 20, "b": 10}


def test_empty_rows():
    assert format_rows([], "status", "SUM") == {}


def test_date_group_keys_stringified():
    rows = [{"result": 1, "day": datetime.date(2023, 1, 5)}]
    assert format_rows(rows, "day", "COUNT") == {"2023-01-05": 1}
