"""
QuerySpec -- the normalized aggregate request.

A caller hands in one flat mapping.  Known keys (``table``, ``column``,
``function`` ...) become typed fields; every other key is a column filter
and is parsed here, once, into one of a closed set of filter shapes:

    status='complete'                    -> EqualsFilter
    total={'min': 10, 'max': 30}         -> RangeFilter
    total={'value': 10, 'compare': '>'}  -> CompareFilter
    status__in=['a', 'b']                -> SetFilter
    status__not_in=['a', 'b']           -> ExcludeSetFilter

Each bound value carries the placeholder kind (integer / float / text)
decided from the caller's Python type at parse time.
"""
from __future__ import annotations

import datetime
import decimal
import enum
import functools
import hashlib
import json
import types
from collections.abc import Mapping, Set
from typing import Any, Callable, ClassVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from math_query.core.config import get_settings
from math_query.core.errors import InvalidFilterShape, InvalidQueryVars, NotAnArray
from math_query.core.utils import sanitize_text

IN_SUFFIX = "__in"
NOT_IN_SUFFIX = "__not_in"


class BindKind(str, enum.Enum):
    INTEGER = "integer"
    FLOAT = "float"
    TEXT = "text"


class BindValue(BaseModel):
    """A filter value paired with the placeholder kind it will be bound as."""

    model_config = ConfigDict(frozen=True)

    value: Any
    kind: BindKind

    @classmethod
    def infer(cls, raw: Any) -> "BindValue":
        if isinstance(raw, bool):
            return cls(value=int(raw), kind=BindKind.INTEGER)
        if isinstance(raw, int):
            return cls(value=raw, kind=BindKind.INTEGER)
        if isinstance(raw, float):
            return cls(value=raw, kind=BindKind.FLOAT)
        if isinstance(raw, decimal.Decimal):
            return cls(value=float(raw), kind=BindKind.FLOAT)
        if isinstance(raw, datetime.datetime):
            return cls(value=raw.isoformat(sep=" "), kind=BindKind.TEXT)
        if isinstance(raw, datetime.date):
            return cls(value=raw.isoformat(), kind=BindKind.TEXT)
        return cls(value=sanitize_text(raw), kind=BindKind.TEXT)


class BoundParam(BaseModel):
    """A named placeholder in compiled SQL and the value bound to it."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: Any
    kind: BindKind


# ── Filter shapes ────────────────────────────────────────


class EqualsFilter(BaseModel):
    model_config = ConfigDict(frozen=True)
    column: str
    value: BindValue


class RangeFilter(BaseModel):
    model_config = ConfigDict(frozen=True)
    column: str
    min: BindValue | None = None
    max: BindValue | None = None


class CompareFilter(BaseModel):
    model_config = ConfigDict(frozen=True)
    column: str
    value: BindValue
    operator: str


class SetFilter(BaseModel):
    model_config = ConfigDict(frozen=True)
    operator: ClassVar[str] = "IN"
    column: str
    values: tuple[BindValue, ...] = ()


class ExcludeSetFilter(SetFilter):
    operator: ClassVar[str] = "NOT IN"


ColumnFilter = Union[EqualsFilter, RangeFilter, CompareFilter, ExcludeSetFilter, SetFilter]


def _is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple, Set)) and not isinstance(value, (str, bytes))


def parse_filter(key: str, value: Any) -> ColumnFilter:
    """Turn one raw ``key: value`` entry into its filter shape."""
    if key.endswith(NOT_IN_SUFFIX) or key.endswith(IN_SUFFIX):
        negate = key.endswith(NOT_IN_SUFFIX)
        column = key[: -len(NOT_IN_SUFFIX)] if negate else key[: -len(IN_SUFFIX)]
        if not _is_array(value):
            raise NotAnArray(f"Filter '{key}' expects a list of values, got {type(value).__name__}.")
        if any(v is None for v in value):
            raise InvalidFilterShape(f"Invalid value provided for condition '{key}': list contains None.")
        values = tuple(BindValue.infer(v) for v in value)
        cls = ExcludeSetFilter if negate else SetFilter
        return cls(column=column, values=values)

    if isinstance(value, Mapping):
        min_value = value.get("min")
        max_value = value.get("max")
        if min_value is not None or max_value is not None:
            return RangeFilter(
                column=key,
                min=BindValue.infer(min_value) if min_value is not None else None,
                max=BindValue.infer(max_value) if max_value is not None else None,
            )
        if value.get("value") is not None and value.get("compare") is not None:
            return CompareFilter(
                column=key,
                value=BindValue.infer(value["value"]),
                operator=str(value["compare"]),
            )
        raise InvalidFilterShape(
            f"Invalid value provided for condition '{key}': expected min/max or value/compare, got {dict(value)!r}."
        )

    if value is None or _is_array(value) or isinstance(value, bytes):
        raise InvalidFilterShape(f"Invalid value provided for condition '{key}': {value!r}.")

    return EqualsFilter(column=key, value=BindValue.infer(value))


def _filter_payload(f: ColumnFilter) -> dict[str, Any]:
    payload = f.model_dump(mode="json")
    payload["shape"] = type(f).__name__
    return payload


class UnstableCallable(TypeError):
    """A formatter whose behaviour cannot be captured in a cache key."""


_MAX_DEPTH = 8
_SCALARS = (type(None), bool, int, float, str)


def _stable_value(value: Any, depth: int) -> Any:
    """JSON-safe view of a constant, closure cell or bound argument."""
    if depth > _MAX_DEPTH:
        raise UnstableCallable("formatter state nests too deeply")
    if isinstance(value, _SCALARS):
        return [type(value).__name__, value]
    if isinstance(value, bytes):
        return ["bytes", value.hex()]
    if value is Ellipsis:
        return ["ellipsis"]
    if isinstance(value, types.CodeType):
        return ["code", _code_fingerprint(value, depth + 1)]
    if isinstance(value, types.ModuleType):
        return ["module", value.__name__]
    if isinstance(value, (list, tuple)):
        return [type(value).__name__, [_stable_value(v, depth + 1) for v in value]]
    if isinstance(value, (set, frozenset)):
        items = [_stable_value(v, depth + 1) for v in value]
        return [type(value).__name__, sorted(items, key=repr)]
    if isinstance(value, Mapping):
        items = [[_stable_value(k, depth + 1), _stable_value(v, depth + 1)] for k, v in value.items()]
        return ["mapping", sorted(items, key=repr)]
    if isinstance(value, (decimal.Decimal, datetime.date, datetime.time)):
        return [type(value).__name__, str(value)]
    if callable(value):
        return ["callable", callable_fingerprint(value, depth + 1)]
    if isinstance(value, enum.Enum):
        return ["enum", f"{type(value).__module__}.{type(value).__qualname__}", value.name]
    return _object_state(value, depth)


def _object_state(value: Any, depth: int) -> list[Any]:
    state = getattr(value, "__dict__", None)
    if not isinstance(state, dict):
        raise UnstableCallable(f"cannot fingerprint {type(value).__name__} value")
    cls = type(value)
    return ["object", f"{cls.__module__}.{cls.__qualname__}", _stable_value(state, depth + 1)]


def _code_fingerprint(code: types.CodeType, depth: int) -> dict[str, Any]:
    return {
        "bytecode": code.co_code.hex(),
        "consts": [_stable_value(c, depth) for c in code.co_consts],
        "names": list(code.co_names),
    }


def callable_fingerprint(fn: Callable[..., Any] | None, depth: int = 0) -> Any:
    """Describe what *fn* computes, for use in the cache key.

    Plain functions are identified by bytecode, constants, referenced
    names, defaults and closure contents; partials by their function and
    bound arguments; bound methods by their function and a view of the
    instance.  Raises ``UnstableCallable`` when some piece of that
    cannot be serialized.
    """
    if fn is None:
        return None
    if depth > _MAX_DEPTH:
        raise UnstableCallable("formatter nests too deeply")
    name = f"{getattr(fn, '__module__', '') or ''}.{getattr(fn, '__qualname__', '') or ''}"

    if isinstance(fn, functools.partial):
        return {
            "partial": callable_fingerprint(fn.func, depth + 1),
            "args": _stable_value(fn.args, depth + 1),
            "keywords": _stable_value(fn.keywords, depth + 1),
        }
    if isinstance(fn, types.MethodType):
        return {
            "method": callable_fingerprint(fn.__func__, depth + 1),
            "self": _stable_value(fn.__self__, depth + 1),
        }
    if isinstance(fn, types.FunctionType):
        try:
            cells = [cell.cell_contents for cell in fn.__closure__ or ()]
        except ValueError as exc:
            raise UnstableCallable("formatter closes over an unbound variable") from exc
        return {
            "function": name,
            "code": _code_fingerprint(fn.__code__, depth + 1),
            "defaults": _stable_value(fn.__defaults__ or (), depth + 1),
            "kwdefaults": _stable_value(fn.__kwdefaults__ or {}, depth + 1),
            "closure": [_stable_value(c, depth + 1) for c in cells],
        }
    if isinstance(fn, type):
        return {"type": f"{fn.__module__}.{fn.__qualname__}"}
    if isinstance(fn, (types.BuiltinFunctionType, types.MethodWrapperType,
                       types.MethodDescriptorType, types.WrapperDescriptorType)):
        owner = getattr(fn, "__self__", None)
        if owner is None or isinstance(owner, (types.ModuleType, type)):
            return {"builtin": name}
        return {"builtin": name, "self": _stable_value(owner, depth + 1)}

    call = getattr(type(fn), "__call__", None)
    if isinstance(call, types.FunctionType):
        return {
            "instance": _object_state(fn, depth + 1),
            "call": callable_fingerprint(call, depth + 1),
        }
    raise UnstableCallable(f"cannot fingerprint formatter of type {type(fn).__name__}")


# ── The spec itself ──────────────────────────────────────


class QuerySpec(BaseModel):
    """Normalized aggregate request: fixed fields plus per-column filters."""

    model_config = ConfigDict(frozen=True)

    table: str = ""
    column: str = ""
    function: str = "SUM"
    date_column: str = ""
    date_start: str = ""
    date_end: str = ""
    group_by: str = ""
    formatter: Callable[[Any], Any] | None = None
    enable_caching: bool = Field(default_factory=lambda: get_settings().cache_enabled)
    cache_group: str = Field(default_factory=lambda: get_settings().cache_group)
    debug: bool = False
    context: Any = ""
    filters: dict[str, ColumnFilter] = Field(default_factory=dict)

    @field_validator("date_start", "date_end", mode="before")
    @classmethod
    def _coerce_date(cls, v: Any) -> Any:
        if v is None:
            return ""
        if isinstance(v, datetime.datetime):
            return v.isoformat(sep=" ")
        if isinstance(v, datetime.date):
            return v.isoformat()
        return v

    @field_validator("column", "date_column", "group_by", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @classmethod
    def fixed_fields(cls) -> frozenset[str]:
        return frozenset(name for name in cls.model_fields if name != "filters")

    @classmethod
    def from_query(cls, query: Mapping[str, Any]) -> "QuerySpec":
        """Split a flat caller mapping into fixed fields and column filters.

        Raises
        ------
        InvalidQueryVars
            A fixed field has an unusable type.
        NotAnArray, InvalidFilterShape
            A column filter value does not match any filter shape.
        """
        fixed = cls.fixed_fields()
        fields: dict[str, Any] = {}
        filters: dict[str, ColumnFilter] = {}
        for key, value in query.items():
            if key in fixed:
                fields[key] = value
            else:
                filters[key] = parse_filter(key, value)
        try:
            return cls(**fields, filters=filters)
        except ValidationError as exc:
            raise InvalidQueryVars(f"Invalid query parameters: {exc}") from exc

    @property
    def is_count(self) -> bool:
        return self.function == "COUNT"

    @property
    def cacheable(self) -> bool:
        """False when the formatter cannot be captured in a cache key."""
        try:
            callable_fingerprint(self.formatter)
        except UnstableCallable:
            return False
        return True

    def normalized(self) -> dict[str, Any]:
        """JSON-safe view of every field, defaults included.

        Raises ``UnstableCallable`` when the formatter cannot be fingerprinted.
        """
        data: dict[str, Any] = {
            name: getattr(self, name)
            for name in self.fixed_fields()
            if name not in ("formatter", "context")
        }
        data["formatter"] = callable_fingerprint(self.formatter)
        data["context"] = self.context if isinstance(self.context, str) else repr(self.context)
        data["filters"] = {key: _filter_payload(f) for key, f in self.filters.items()}
        return data

    def digest(self) -> str:
        raw = json.dumps(self.normalized(), sort_keys=True, separators=(",", ":"), default=str)
        return hashlib.sha256(raw.encode()).hexdigest()
