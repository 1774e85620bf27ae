"""
GET /tables/{table}/schema -- column metadata and type classification.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from math_query.api.deps import get_database
from math_query.core.errors import DatabaseQueryError, InvalidTable, SchemaLoadFailure
from math_query.query.interfaces import Database
from math_query.query.schema import load_schema

router = APIRouter()


class ColumnItem(BaseModel):
    name: str
    type: str
    kind: str  # numeric | string | date | other


class SchemaResponse(BaseModel):
    table: str
    columns: list[ColumnItem]
    aggregatable: list[str]
    groupable: list[str]
    date_columns: list[str]


@router.get("/tables/{table}/schema", response_model=SchemaResponse)
def table_schema(table: str, db: Database = Depends(get_database)) -> SchemaResponse:
    """Describe *table* the way the query validator sees it."""
    try:
        schema = load_schema(db, table)
    except InvalidTable as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except (SchemaLoadFailure, DatabaseQueryError) as exc:
        raise HTTPException(status_code=502, detail=str(exc))

    columns = [
        ColumnItem(name=name, type=column_type, kind=schema.classify(name))
        for name, column_type in schema.columns.items()
    ]
    return SchemaResponse(
        table=table,
        columns=columns,
        aggregatable=[c.name for c in columns if c.kind == "numeric"],
        groupable=[c.name for c in columns if c.kind == "string"],
        date_columns=[c.name for c in columns if c.kind == "date"],
    )
