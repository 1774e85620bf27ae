"""
Integration fixtures -- an in-memory SQLite database seeded with orders.
"""
from __future__ import annotations

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from math_query.db.executor import SQLDatabase

ORDERS = [
    {"id": 1, "status": "complete", "total": 10.00, "quantity": 1, "date_created": "2023-01-05"},
    {"id": 2, "status": "pending", "total": 5.00, "quantity": 2, "date_created": "2023-06-01"},
    {"id": 3, "status": "refunded", "total": 20.00, "quantity": 3, "date_created": "2023-07-01"},
]


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    with eng.begin() as conn:
        conn.execute(text("""
            CREATE TABLE wp_orders (
                id            INTEGER PRIMARY KEY,
                status        VARCHAR(20) NOT NULL,
                total         DECIMAL(10, 2) NOT NULL,
                quantity      INTEGER NOT NULL,
                date_created  DATETIME NOT NULL
            )
        """))
        conn.execute(
            text(
                "INSERT INTO wp_orders (id, status, total, quantity, date_created) "
                "VALUES (:id, :status, :total, :quantity, :date_created)"
            ),
            ORDERS,
        )
    yield eng
    eng.dispose()


@pytest.fixture
def sql_db(engine) -> SQLDatabase:
    return SQLDatabase(engine=engine, table_prefix="wp_")
