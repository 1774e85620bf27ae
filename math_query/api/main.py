"""
FastAPI application entry-point.
"""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from math_query.api.routers import aggregate, catalog

app = FastAPI(
    title="Math Query",
    version="0.1.0",
    description="Validated, cached aggregate queries over a single table",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(aggregate.router, tags=["Aggregate"])
app.include_router(catalog.router, tags=["Catalog"])


@app.get("/health")
def health():
    return {"status": "ok"}
