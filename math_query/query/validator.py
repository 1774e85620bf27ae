"""
Validates a QuerySpec against the live table schema.

Checks performed, in order (first failure raises):
  1. Table exists
  2. Column exists and is numeric (skipped entirely for COUNT)
  3. date_column, if set, exists and is a date/time type
  4. date_start / date_end, if set, parse as real dates
  5. group_by, if set, exists and is a string type
  6. context, if set, is a string

Column filters are checked later, when they are compiled.
"""
from __future__ import annotations

from math_query.core.errors import (
    InvalidColumnType,
    InvalidContext,
    InvalidDateColumn,
    InvalidDateFormat,
    InvalidGroupByColumn,
    UnknownColumn,
)
from math_query.query.conditions import is_valid_date
from math_query.query.interfaces import Database
from math_query.query.schema import TableSchema, load_schema
from math_query.query.spec import QuerySpec


def validate_spec(spec: QuerySpec, db: Database, schema: TableSchema | None = None) -> TableSchema:
    """Validate *spec* and return the schema it was checked against.

    Parameters
    ----------
    spec : QuerySpec
        The normalized request.
    db : Database
        Driver used to load the schema when *schema* is not supplied.
    schema : TableSchema, optional
        A schema already loaded for ``spec.table``.
    """
    if schema is None:
        schema = load_schema(db, spec.table)

    if not spec.is_count:
        if not schema.has_column(spec.column):
            raise UnknownColumn(f"Invalid column name: {spec.column!r}.")
        if not schema.is_numeric(spec.column):
            raise InvalidColumnType(
                f"Invalid column type for {spec.column!r} ({schema.column_type(spec.column)}). "
                f"Only numeric columns can be used with {spec.function}."
            )

    if spec.date_column:
        if not schema.has_column(spec.date_column):
            raise InvalidDateColumn(f"Invalid date column name: {spec.date_column!r}.")
        if not schema.is_date(spec.date_column):
            raise InvalidDateColumn(
                f"Invalid date column {spec.date_column!r}. It must be a date type."
            )

    if spec.date_start and not is_valid_date(spec.date_start):
        raise InvalidDateFormat(f"Invalid date format for date_start: {spec.date_start!r}.")

    if spec.date_end and not is_valid_date(spec.date_end):
        raise InvalidDateFormat(f"Invalid date format for date_end: {spec.date_end!r}.")

    if spec.group_by:
        if not schema.has_column(spec.group_by):
            raise InvalidGroupByColumn(f"Invalid group_by column name: {spec.group_by!r}.")
        # TODO: confirm with product whether numeric/date grouping should be allowed.
        if not schema.is_string(spec.group_by):
            raise InvalidGroupByColumn(
                f"Invalid group_by column {spec.group_by!r}. It must be a string type."
            )

    if spec.context and not isinstance(spec.context, str):
        raise InvalidContext("Invalid context. It must be a string.")

    return schema
