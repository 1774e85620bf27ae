"""
Condition compilers -- turn column filters and the date range into WHERE
fragments with named, typed placeholders.

Placeholders are allocated from a shared ``ParameterList`` so the names
(``:p0``, ``:p1`` ...) follow emission order: column filters first, then the
date bounds.
"""
from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Iterable

from dateutil import parser as date_parser

from math_query.core.errors import (
    InvalidDateFormat,
    InvalidFilterShape,
    InvalidOperator,
    UnknownColumn,
)
from math_query.query.schema import TableSchema
from math_query.query.spec import (
    BindKind,
    BindValue,
    BoundParam,
    ColumnFilter,
    CompareFilter,
    EqualsFilter,
    RangeFilter,
    SetFilter,
)

ALLOWED_OPERATORS = ("=", ">", ">=", "<", "<=", "!=")


@dataclass(frozen=True)
class Predicate:
    """One WHERE fragment and the parameters its placeholders refer to."""

    sql: str
    params: tuple[BoundParam, ...] = ()


@dataclass
class ParameterList:
    """Allocates placeholder names in emission order."""

    prefix: str = "p"
    params: list[BoundParam] = field(default_factory=list)

    def add(self, bind: BindValue) -> str:
        name = f"{self.prefix}{len(self.params)}"
        self.params.append(BoundParam(name=name, value=bind.value, kind=bind.kind))
        return f":{name}"

    def since(self, start: int) -> tuple[BoundParam, ...]:
        return tuple(self.params[start:])


# Two fill-in dates that share no year, month or day.
_FILL_A = datetime.datetime(2000, 1, 1)
_FILL_B = datetime.datetime(2001, 2, 2)


def is_valid_date(value: str) -> bool:
    """True when *value* names a full calendar date, optionally with a time.

    dateutil fills any missing field from its ``default``; parsing against
    two unrelated defaults exposes a year, month or day that was filled in
    rather than given.
    """
    try:
        first = date_parser.parse(value, default=_FILL_A)
        second = date_parser.parse(value, default=_FILL_B)
    except (ValueError, OverflowError):
        return False
    return first.date() == second.date()


def _require_column(schema: TableSchema, column: str) -> None:
    if not schema.has_column(column):
        raise UnknownColumn(f"Invalid column name: {column!r}.")


def _compare(column: str, operator: str, bind: BindValue, params: ParameterList) -> str:
    if operator not in ALLOWED_OPERATORS:
        raise InvalidOperator(
            f"Invalid operator: {operator!r}. Allowed: {', '.join(ALLOWED_OPERATORS)}"
        )
    return f"{column} {operator} {params.add(bind)}"


def compile_filter(f: ColumnFilter, schema: TableSchema, params: ParameterList) -> Predicate:
    _require_column(schema, f.column)
    start = len(params.params)

    if isinstance(f, SetFilter):
        placeholders = [params.add(v) for v in f.values]
        if placeholders:
            sql = f"{f.column} {f.operator} ({', '.join(placeholders)})"
        else:
            # IN () is not valid SQL; an empty set matches nothing / excludes nothing.
            sql = "1 = 0" if f.operator == "IN" else "1 = 1"
    elif isinstance(f, RangeFilter):
        if f.min is not None and f.max is not None:
            sql = f"{f.column} >= {params.add(f.min)} AND {f.column} <= {params.add(f.max)}"
        elif f.min is not None:
            sql = _compare(f.column, ">=", f.min, params)
        elif f.max is not None:
            sql = _compare(f.column, "<=", f.max, params)
        else:
            raise InvalidFilterShape(f"Range filter on {f.column!r} has neither min nor max.")
    elif isinstance(f, CompareFilter):
        sql = _compare(f.column, f.operator, f.value, params)
    elif isinstance(f, EqualsFilter):
        sql = f"{f.column} = {params.add(f.value)}"
    else:
        raise InvalidFilterShape(f"Unsupported filter for column {f.column!r}: {f!r}")

    return Predicate(sql=sql, params=params.since(start))


def compile_conditions(
    filters: Iterable[ColumnFilter],
    schema: TableSchema,
    params: ParameterList,
) -> list[Predicate]:
    """Compile every column filter, in the order given."""
    return [compile_filter(f, schema, params) for f in filters]


def compile_date_range(
    date_column: str,
    date_start: str,
    date_end: str,
    params: ParameterList,
) -> Predicate | None:
    """Build one ``(col >= start AND col <= end)`` fragment, or None.

    Bounds are re-checked here so a malformed date never reaches the driver,
    even when validation was skipped.
    """
    if not date_column or not (date_start or date_end):
        return None

    start = len(params.params)
    parts: list[str] = []
    if date_start:
        if not is_valid_date(date_start):
            raise InvalidDateFormat(f"Invalid date format for date_start: {date_start!r}.")
        parts.append(f"{date_column} >= {params.add(BindValue(value=date_start, kind=BindKind.TEXT))}")
    if date_end:
        if not is_valid_date(date_end):
            raise InvalidDateFormat(f"Invalid date format for date_end: {date_end!r}.")
        parts.append(f"{date_column} <= {params.add(BindValue(value=date_end, kind=BindKind.TEXT))}")

    return Predicate(sql=f"({' AND '.join(parts)})", params=params.since(start))
