"""
Narrow interfaces the query engine talks to.

The engine never reaches for a global database or cache handle; both are
passed in, so tests can substitute fakes.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping, Protocol, Sequence

if TYPE_CHECKING:
    from math_query.query.spec import BoundParam, QuerySpec


class _Miss:
    """Sentinel returned by a cache store on a miss."""

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"


MISS = _Miss()


class Database(Protocol):
    def table_exists(self, table: str) -> bool: ...

    def describe_columns(self, table: str) -> Iterable[tuple[str, str]]: ...

    def query_scalar(self, sql: str, params: Sequence["BoundParam"]) -> Any: ...

    def query_rows(self, sql: str, params: Sequence["BoundParam"]) -> list[Mapping[str, Any]]: ...

    def prefixed_name(self, table: str) -> str: ...

    def show_errors(self) -> None: ...


class CacheStore(Protocol):
    def get(self, key: str, group: str) -> Any: ...

    def set(self, key: str, value: Any, group: str) -> None: ...


# (normalized spec, raw caller input) -> spec
QueryVarsHook = Callable[["QuerySpec", Mapping[str, Any]], "QuerySpec"]


def identity_hook(spec: "QuerySpec", raw: Mapping[str, Any]) -> "QuerySpec":
    return spec
