"""
Result formatting -- shape raw driver output into typed values.

COUNT results become ``int``, everything else ``float``, unless the caller
supplied a formatter, in which case the raw value goes straight to it.
"""
from __future__ import annotations

import datetime
import decimal
from typing import Any, Callable, Iterable, Mapping

from math_query.query.assembler import RESULT_ALIAS

Formatter = Callable[[Any], Any]


def convert_value(value: Any, function: str) -> int | float:
    if function == "COUNT":
        return int(value)
    return float(value)


def format_scalar(value: Any, function: str, formatter: Formatter | None = None) -> Any:
    """Format one aggregate.  ``None`` means no matching rows and is returned as is."""
    if value is None:
        return None
    if formatter is not None:
        return formatter(value)
    return convert_value(value, function)


def _group_key(value: Any) -> Any:
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, decimal.Decimal):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def format_rows(
    rows: Iterable[Mapping[str, Any]],
    group_by: str,
    function: str,
    formatter: Formatter | None = None,
) -> dict[Any, Any]:
    """Map each group value to its (formatted) aggregate."""
    result: dict[Any, Any] = {}
    for row in rows:
        key = _group_key(row[group_by])
        raw = row[RESULT_ALIAS]
        if formatter is not None:
            result[key] = formatter(raw)
        elif raw is None:
            result[key] = None
        else:
            result[key] = convert_value(raw, function)
    return result
