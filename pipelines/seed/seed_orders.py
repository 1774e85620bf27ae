"""
Seed data generator -- creates an ``orders`` table to run aggregates against.

Generates ~5 000 orders with a status, a decimal total, a currency, a
customer country and a creation timestamp.  The table is dropped and
recreated on every run, in whatever database ``MATH_QUERY_*`` settings
point at (``MATH_QUERY_DATABASE_URL_OVERRIDE=sqlite:///orders.db`` works).

Run:  python -m pipelines.seed.seed_orders
"""
from __future__ import annotations

import random
from datetime import datetime, timedelta

from faker import Faker
from sqlalchemy import text

from math_query.core.config import get_settings
from math_query.db.connection import get_engine

fake = Faker()
Faker.seed(42)
random.seed(42)

# ── Tunables ─────────────────────────────────────────────
NUM_ORDERS = 5_000

STATUSES = ["complete", "pending", "refunded", "failed"]
STATUS_WEIGHTS = [0.70, 0.15, 0.10, 0.05]
CURRENCIES = ["USD", "EUR", "GBP", "CAD"]

DATE_START = datetime(2023, 1, 1)
DATE_END = datetime(2024, 12, 31)
DATE_RANGE_DAYS = (DATE_END - DATE_START).days

_CREATE_SQL = """
CREATE TABLE {table} (
    id            INTEGER PRIMARY KEY,
    status        VARCHAR(20) NOT NULL,
    total         DECIMAL(10, 2) NOT NULL,
    currency      CHAR(3) NOT NULL,
    country       VARCHAR(60) NOT NULL,
    date_created  TIMESTAMP NOT NULL
)
"""


def _rand_ts() -> datetime:
    return DATE_START + timedelta(
        days=random.randint(0, DATE_RANGE_DAYS),
        hours=random.randint(0, 23),
        minutes=random.randint(0, 59),
        seconds=random.randint(0, 59),
    )


def gen_orders() -> list[dict]:
    rows = []
    for oid in range(1, NUM_ORDERS + 1):
        rows.append({
            "id": oid,
            "status": random.choices(STATUSES, weights=STATUS_WEIGHTS, k=1)[0],
            "total": round(random.uniform(5.0, 500.0), 2),
            "currency": random.choice(CURRENCIES),
            "country": fake.country(),
            "date_created": _rand_ts(),
        })
    return rows


def _bulk_insert(engine, table: str, rows: list[dict], batch_size: int = 1000):
    """Insert rows into *table* in batches using executemany-style VALUES."""
    if not rows:
        return
    cols = list(rows[0].keys())
    col_list = ", ".join(cols)
    param_list = ", ".join(f":{c}" for c in cols)
    sql = text(f"INSERT INTO {table} ({col_list}) VALUES ({param_list})")
    with engine.begin() as conn:
        for i in range(0, len(rows), batch_size):
            conn.execute(sql, rows[i : i + batch_size])
    print(f"  ✓ {table}: {len(rows):,} rows")


def main():
    print("═══ Orders Seed ═══")
    engine = get_engine()
    table = f"{get_settings().table_prefix}orders"

    print(f"Recreating {table} …")
    with engine.begin() as conn:
        conn.execute(text(f"DROP TABLE IF EXISTS {table}"))
        conn.execute(text(_CREATE_SQL.format(table=table)))

    print("Generating data …")
    orders = gen_orders()

    print("Inserting …")
    _bulk_insert(engine, table, orders)

    print(f"\nDone — seeded {len(orders):,} orders.")


if __name__ == "__main__":
    main()
