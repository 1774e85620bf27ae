"""
Schema inspector -- loads the column -> SQL type mapping for one table and
classifies column types as numeric, string or date/time.

Classification works on the raw type text the catalog reports, because
engines expose parametrised free-text names (``varchar(255)``,
``decimal(10,2)``, ``int unsigned``) rather than a closed set of types.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field

from math_query.core.errors import InvalidTable, SchemaLoadFailure
from math_query.core.logging import get_logger
from math_query.query.interfaces import Database

logger = get_logger(__name__)

# Substring match, so "int unsigned", "bigint(20)" and "double precision" all count.
NUMERIC_TYPES = (
    "tinyint", "smallint", "mediumint", "int", "bigint",
    "decimal", "numeric", "float", "double", "real",
)

_STRING_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^n?(var)?char\b",
        r"^character\b",
        r"^text",
        r"^tinytext",
        r"^mediumtext",
        r"^longtext",
        r"^binary\(",
        r"^varbinary\(",
        r"^blob",
        r"^tinyblob",
        r"^mediumblob",
        r"^longblob",
    )
]

_DATE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^date",
        r"^time",
        r"^year",
        r"^datetime",
        r"^timestamp",
        r"^timestamp\(\d+\)",
        r"^year\(\d+\)",
    )
]


def is_numeric_type(column_type: str) -> bool:
    lowered = column_type.lower()
    return any(t in lowered for t in NUMERIC_TYPES)


def is_string_type(column_type: str) -> bool:
    lowered = column_type.strip().lower()
    return any(p.match(lowered) for p in _STRING_PATTERNS)


def is_date_type(column_type: str) -> bool:
    lowered = column_type.strip().lower()
    return any(p.match(lowered) for p in _DATE_PATTERNS)


@dataclass(frozen=True)
class TableSchema:
    """Column name -> raw SQL type for a single table."""

    table: str
    columns: dict[str, str] = field(default_factory=dict)

    def has_column(self, name: str) -> bool:
        return name in self.columns

    def column_type(self, name: str) -> str | None:
        return self.columns.get(name)

    def is_numeric(self, name: str) -> bool:
        column_type = self.column_type(name)
        return column_type is not None and is_numeric_type(column_type)

    def is_string(self, name: str) -> bool:
        column_type = self.column_type(name)
        return column_type is not None and is_string_type(column_type)

    def is_date(self, name: str) -> bool:
        column_type = self.column_type(name)
        return column_type is not None and is_date_type(column_type)

    def classify(self, name: str) -> str:
        """Return ``numeric``, ``string``, ``date`` or ``other``."""
        if self.is_numeric(name):
            return "numeric"
        if self.is_date(name):
            return "date"
        if self.is_string(name):
            return "string"
        return "other"


def load_schema(db: Database, table: str) -> TableSchema:
    """Describe *table* through the driver.

    Raises
    ------
    InvalidTable
        If the table does not exist.
    SchemaLoadFailure
        If any catalog entry lacks a name or a type.  A partial schema is
        never returned.
    """
    if not table or not db.table_exists(table):
        raise InvalidTable(f"Invalid table name: {table!r}.")

    columns: dict[str, str] = {}
    for entry in db.describe_columns(table):
        try:
            name, column_type = entry
        except (TypeError, ValueError):
            raise SchemaLoadFailure(
                f"Malformed column description for table {table!r}: {entry!r}"
            ) from None
        if not name or not column_type:
            raise SchemaLoadFailure(
                f"Column description for table {table!r} is missing a name or type: {entry!r}"
            )
        columns[str(name)] = str(column_type)

    logger.debug("Loaded schema for %s (%d columns)", table, len(columns))
    return TableSchema(table=table, columns=columns)
