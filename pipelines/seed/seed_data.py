"""
Seed data generator -- creates a demo ride-hailing dataset and the matching
schema workbook.

Generates:
  - ~1 000 drivers (age, rating, city, status, ...)
  - ~20 000 trips  (fare, distance, rating per trip)
  - data/schema/demo_schema.xlsx -- one sheet per table with
    "Field Name" / "Description" columns, ready to upload in the UI

Tables are (re)created in the configured database via SQLAlchemy.
Run:  python -m pipelines.seed.seed_data [--schema-only]
"""
from __future__ import annotations

import argparse
import random
from datetime import datetime, timedelta
from pathlib import Path

import pandas as pd
from faker import Faker
from sqlalchemy import create_engine, text

from src.core.config import get_settings

_PROJECT_ROOT = Path(__file__).resolve().parents[2]
SCHEMA_WORKBOOK = _PROJECT_ROOT / "data" / "schema" / "demo_schema.xlsx"

fake = Faker()
Faker.seed(42)
random.seed(42)

# ── Tunables ─────────────────────────────────────────────
NUM_DRIVERS = 1_000
NUM_TRIPS = 20_000

CITIES = ["Bengaluru", "Mumbai", "Delhi", "Chennai", "Hyderabad", "Pune", "Kolkata"]
STATUSES = ["active", "inactive", "suspended"]
STATUS_WEIGHTS = [0.80, 0.15, 0.05]
VEHICLES = ["sedan", "hatchback", "suv", "auto"]

DATE_START = datetime(2023, 1, 1)
DATE_END = datetime(2025, 12, 31)
DATE_RANGE_DAYS = (DATE_END - DATE_START).days

# ── Table definitions (DDL + workbook descriptions) ─────

TABLES: dict[str, list[tuple[str, str, str]]] = {
    "drivers": [
        ("driver_id", "INTEGER PRIMARY KEY", "Unique driver identifier"),
        ("first_name", "TEXT NOT NULL", "Driver first name"),
        ("last_name", "TEXT NOT NULL", "Driver last name"),
        ("age", "INTEGER", "Driver age in years"),
        ("rating", "NUMERIC(2,1)", "Average passenger rating from 1.0 to 5.0"),
        ("city", "TEXT", "City the driver operates in"),
        ("vehicle_type", "TEXT", "sedan, hatchback, suv or auto"),
        ("status", "TEXT", "active, inactive or suspended"),
        ("total_trips", "INTEGER", "Number of completed trips"),
        ("joined_at", "TIMESTAMP", "When the driver signed up"),
    ],
    "trips": [
        ("trip_id", "INTEGER PRIMARY KEY", "Unique trip identifier"),
        ("driver_id", "INTEGER REFERENCES drivers(driver_id)", "Driver who completed the trip"),
        ("fare", "NUMERIC(10,2)", "Fare charged in INR"),
        ("distance_km", "NUMERIC(6,2)", "Trip distance in kilometres"),
        ("trip_rating", "INTEGER", "Passenger rating for this trip, 1 to 5 (may be empty)"),
        ("started_at", "TIMESTAMP", "Trip start time"),
    ],
}


def _rand_ts() -> datetime:
    return DATE_START + timedelta(
        days=random.randint(0, DATE_RANGE_DAYS),
        hours=random.randint(0, 23),
        minutes=random.randint(0, 59),
    )


def gen_drivers() -> list[dict]:
    rows = []
    for i in range(1, NUM_DRIVERS + 1):
        rows.append({
            "driver_id": i,
            "first_name": fake.first_name(),
            "last_name": fake.last_name(),
            "age": random.randint(21, 65),
            # ~3% unrated
            "rating": None if random.random() < 0.03 else round(random.uniform(1.0, 5.0), 1),
            "city": random.choice(CITIES),
            "vehicle_type": random.choice(VEHICLES),
            "status": random.choices(STATUSES, weights=STATUS_WEIGHTS, k=1)[0],
            "total_trips": 0,
            "joined_at": _rand_ts(),
        })
    return rows


def gen_trips(drivers: list[dict]) -> list[dict]:
    rows = []
    for i in range(1, NUM_TRIPS + 1):
        driver = random.choice(drivers)
        driver["total_trips"] += 1
        distance = round(random.uniform(1.0, 40.0), 2)
        rows.append({
            "trip_id": i,
            "driver_id": driver["driver_id"],
            "fare": round(40 + distance * random.uniform(10.0, 18.0), 2),
            "distance_km": distance,
            "trip_rating": random.choice([None, 1, 2, 3, 4, 5, 5, 4]),
            "started_at": _rand_ts(),
        })
    return rows


# ── Schema workbook ──────────────────────────────────────

def write_schema_workbook(path: Path = SCHEMA_WORKBOOK) -> Path:
    """Write one sheet per table with Field Name / Description columns."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for table, columns in TABLES.items():
            df = pd.DataFrame(
                [(name, description) for name, _, description in columns],
                columns=["Field Name", "Description"],
            )
            df.to_excel(writer, sheet_name=table, index=False)
    print(f"  ✓ schema workbook: {path}")
    return path


# ── Bulk insert helper ───────────────────────────────────

def _bulk_insert(engine, table: str, rows: list[dict], batch_size: int = 2000):
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


def _create_tables(engine) -> None:
    with engine.begin() as conn:
        conn.execute(text("DROP TABLE IF EXISTS trips, drivers CASCADE"))
        for table, columns in TABLES.items():
            ddl = ",\n    ".join(f"{name} {col_type}" for name, col_type, _ in columns)
            conn.execute(text(f"CREATE TABLE {table} (\n    {ddl}\n)"))


# ── Main ─────────────────────────────────────────────────

def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(description="Seed the demo drivers / trips dataset.")
    parser.add_argument("--schema-only", action="store_true", help="only write the schema workbook")
    args = parser.parse_args(argv)

    print("═══ Seed Data Generator ═══")
    write_schema_workbook()
    if args.schema_only:
        return

    engine = create_engine(get_settings().database_url, echo=False)
    print("Recreating tables …")
    _create_tables(engine)

    print("Generating data …")
    drivers = gen_drivers()
    trips = gen_trips(drivers)

    print("Inserting …")
    _bulk_insert(engine, "drivers", drivers)
    _bulk_insert(engine, "trips", trips)

    print(f"\nDone: seeded {len(drivers):,} drivers and {len(trips):,} trips.")


if __name__ == "__main__":
    main()
