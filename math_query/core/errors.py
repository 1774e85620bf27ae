"""
Exception hierarchy for math-query.

Every validation, compile or execution failure raises a distinct subclass of
``MathQueryError`` so callers can tell them apart.  Nothing here is retried
or silently defaulted.
"""
from __future__ import annotations


class MathQueryError(Exception):
    """Base class for all math-query failures."""


class InvalidQueryVars(MathQueryError):
    """A fixed query field has the wrong type (e.g. non-boolean flag)."""


class MissingParameter(MathQueryError):
    """A required parameter was not supplied."""


class InvalidTable(MathQueryError):
    """The table does not exist in the current database."""


class SchemaLoadFailure(MathQueryError):
    """The catalog returned an incomplete column description."""


class UnknownColumn(MathQueryError):
    """A referenced column is not part of the table schema."""


class InvalidColumnType(MathQueryError):
    """A non-numeric column was used with SUM, AVG, MIN or MAX."""


class InvalidDateColumn(MathQueryError):
    """The date column is missing or not a date/time type."""


class InvalidDateFormat(MathQueryError):
    """A date bound could not be parsed cleanly."""


class InvalidGroupByColumn(MathQueryError):
    """The group-by column is missing or not a string type."""


class InvalidContext(MathQueryError):
    """The context tag is not a string."""


class InvalidFunction(MathQueryError):
    """The aggregate function is not one of SUM, AVG, MIN, MAX, COUNT."""


class InvalidOperator(MathQueryError):
    """A comparison filter used an operator outside the allowed set."""


class InvalidFilterShape(MathQueryError):
    """A filter value is neither scalar, {min, max} nor {value, compare}."""


class NotAnArray(MathQueryError):
    """An ``__in`` / ``__not_in`` filter value is not a list of values."""


class DatabaseQueryError(MathQueryError):
    """The database reported an error while running the query."""
