"""
Query assembler -- turns a validated QuerySpec plus compiled predicates into
one parameterised SELECT.

Shape:

    SELECT {FN}({column}) AS result[, {group_by}]
    FROM {prefixed table}
    [WHERE {filter} AND ... AND ({date range})]
    [GROUP BY {group_by}]
"""
from __future__ import annotations

from dataclasses import dataclass

from math_query.core.errors import InvalidFunction
from math_query.query.conditions import Predicate
from math_query.query.spec import BoundParam, QuerySpec

ALLOWED_FUNCTIONS = ("SUM", "MAX", "MIN", "AVG", "COUNT")
RESULT_ALIAS = "result"


@dataclass(frozen=True)
class CompiledQuery:
    sql: str
    params: tuple[BoundParam, ...]

    @property
    def bind_values(self) -> list:
        return [p.value for p in self.params]


def select_expression(spec: QuerySpec) -> str:
    if spec.function not in ALLOWED_FUNCTIONS:
        raise InvalidFunction(
            f"Invalid function {spec.function!r}. Allowed: {', '.join(ALLOWED_FUNCTIONS)}"
        )
    if spec.function == "COUNT":
        return f"COUNT(*) AS {RESULT_ALIAS}"
    return f"{spec.function}({spec.column}) AS {RESULT_ALIAS}"


def assemble(
    spec: QuerySpec,
    table_name: str,
    predicates: list[Predicate],
    date_range: Predicate | None = None,
) -> CompiledQuery:
    """Combine the pieces into SQL text and its ordered parameters.

    *table_name* is the already-prefixed name the driver resolved.
    """
    select = select_expression(spec)
    if spec.group_by:
        select += f", {spec.group_by}"

    sql = f"SELECT {select} FROM {table_name}"

    fragments = [p.sql for p in predicates if p.sql]
    if date_range is not None and date_range.sql:
        fragments.append(date_range.sql)
    if fragments:
        sql += " WHERE " + " AND ".join(fragments)

    if spec.group_by:
        sql += f" GROUP BY {spec.group_by}"

    params: list[BoundParam] = []
    for p in predicates:
        params.extend(p.params)
    if date_range is not None:
        params.extend(date_range.params)

    return CompiledQuery(sql=sql, params=tuple(params))
