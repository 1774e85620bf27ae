"""POST /aggregate -- run one aggregate query; cache stats / clear."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from math_query.api.deps import get_database, get_result_cache
from math_query.core.errors import DatabaseQueryError, MathQueryError
from math_query.core.logging import get_logger
from math_query.core.utils import timer
from math_query.query.cache import ResultCache
from math_query.query.engine import MathQuery
from math_query.query.interfaces import Database

logger = get_logger(__name__)
router = APIRouter()


class AggregateRequest(BaseModel):
    table: str = Field(..., min_length=1, description="Table name (without prefix)")
    column: str = Field("", description="Aggregated column; ignored for COUNT")
    function: str = Field("SUM", description="SUM | AVG | MIN | MAX | COUNT")
    date_column: str = ""
    date_start: str = ""
    date_end: str = ""
    group_by: str = ""
    enable_caching: bool = True
    cache_group: str | None = None
    context: str = ""
    filters: dict[str, Any] = Field(
        default_factory=dict,
        description="Column filters, e.g. {'status__in': ['a'], 'total': {'min': 10}}",
    )

    def to_query(self) -> dict[str, Any]:
        query = self.model_dump(exclude={"filters", "cache_group"})
        if self.cache_group:
            query["cache_group"] = self.cache_group
        query.update(self.filters)
        return query


class AggregateResponse(BaseModel):
    table: str
    function: str
    result: Any
    grouped: bool
    sql: str
    cache_key: str | None
    latency_ms: int


class CacheStatsResponse(BaseModel):
    size: int
    max_size: int
    ttl_seconds: float
    hits: int
    misses: int
    hit_rate: float


@router.post("/aggregate", response_model=AggregateResponse)
def aggregate_endpoint(
    req: AggregateRequest,
    db: Database = Depends(get_database),
    cache: ResultCache = Depends(get_result_cache),
):
    """Validate, compile and run one aggregate."""
    try:
        with timer() as t:
            query = MathQuery(req.to_query(), db=db, cache=cache)
            compiled = query.compile()
            result = query.get_result()
    except DatabaseQueryError as exc:
        logger.exception("Aggregate query failed")
        raise HTTPException(status_code=502, detail=str(exc))
    except MathQueryError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    return AggregateResponse(
        table=req.table,
        function=query.spec.function,
        result=result,
        grouped=bool(query.spec.group_by),
        sql=compiled.sql,
        cache_key=query.cache_key,
        latency_ms=t["elapsed_ms"],
    )


@router.get("/cache/stats", response_model=CacheStatsResponse)
def cache_stats_endpoint(cache: ResultCache = Depends(get_result_cache)):
    """Return result cache statistics."""
    return CacheStatsResponse(**cache.stats())


@router.post("/cache/clear")
def cache_clear_endpoint(group: str | None = None, cache: ResultCache = Depends(get_result_cache)):
    """Flush one cache group, or the whole cache."""
    removed = cache.invalidate(group)
    return {"cleared": removed}
