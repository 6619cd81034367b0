from __future__ import annotations

import os
import sqlite3
import time
from datetime import datetime, timezone
from typing import Iterable

import psycopg
from psycopg.rows import dict_row

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS menu_items (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    price NUMERIC(10, 2) NOT NULL CHECK (price >= 0),
    available INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

SEED_ITEMS = [
    ("0b8f3c52-6a7e-4a36-9a57-2d1c6f4b0a01", "Carne Asada Taco", 4.5, 1),
    ("0b8f3c52-6a7e-4a36-9a57-2d1c6f4b0a02", "Al Pastor Taco", 4.25, 1),
    ("0b8f3c52-6a7e-4a36-9a57-2d1c6f4b0a03", "Loaded Nachos", 8.75, 1),
    ("0b8f3c52-6a7e-4a36-9a57-2d1c6f4b0a04", "Horchata", 3.0, 1),
    ("0b8f3c52-6a7e-4a36-9a57-2d1c6f4b0a05", "Churros", 5.0, 0),
]


def _require_env(name: str) -> str | None:
    value = os.environ.get(name)
    if not value and os.environ.get("APP_ENV", "dev").lower() == "production":
        raise RuntimeError(f"{name} must be set when APP_ENV=production")
    return value


def _build_database_url() -> str:
    if url := os.environ.get("DATABASE_URL"):
        return url
    user = _require_env("DB_USER") or "foodtruck"
    password = _require_env("DB_PASSWORD") or "foodtruck"
    host = os.environ.get("DB_HOST", "menu-db")
    port = os.environ.get("DB_PORT", "5432")
    name = os.environ.get("DB_NAME", "menu_service")
    return f"postgresql://{user}:{password}@{host}:{port}/{name}"


DATABASE_URL = _build_database_url()


def get_connection():
    """Return a connection against Postgres (default) or SQLite when configured."""
    retries = int(os.environ.get("DB_CONNECT_MAX_RETRIES", "30"))
    delay = float(os.environ.get("DB_CONNECT_RETRY_DELAY", "2"))
    last_exc: Exception | None = None
    for attempt in range(retries):
        try:
            return _connect_once()
        except Exception as exc:  # pragma: no cover - only hits when DB down
            last_exc = exc
            if attempt == retries - 1:
                raise
            time.sleep(delay)
    raise last_exc  # pragma: no cover


def _connect_once():
    if DATABASE_URL.startswith("sqlite://"):
        path = DATABASE_URL.replace("sqlite:///", "")
        conn = sqlite3.connect(path)
        conn.row_factory = sqlite3.Row
        return conn

    return psycopg.connect(DATABASE_URL, autocommit=True, row_factory=dict_row)


def init_db() -> None:
    conn = get_connection()
    try:
        apply_schema(conn)
        seed_if_empty(conn)
    finally:
        conn.close()


def apply_schema(conn) -> None:
    if hasattr(conn, "executescript"):
        conn.executescript(SCHEMA_SQL)
        conn.commit()
        return

    with conn.cursor() as cur:
        for statement in _split_statements(SCHEMA_SQL):
            cur.execute(statement)
    conn.commit()


def _split_statements(sql_blob: str) -> Iterable[str]:
    for statement in sql_blob.split(";"):
        stmt = statement.strip()
        if stmt:
            yield stmt


def seed_if_empty(conn) -> None:
    row = conn.execute("SELECT COUNT(1) AS cnt FROM menu_items;").fetchone()
    if row is not None and (row["cnt"] or 0) > 0:
        return

    now = datetime.now(timezone.utc).isoformat()
    rows = [(item_id, name, price, available, now, now) for item_id, name, price, available in SEED_ITEMS]
    placeholder = _placeholder(conn)
    insert_items = (
        "INSERT INTO menu_items (id, name, price, available, created_at, updated_at)"
        f" VALUES ({placeholder}, {placeholder}, {placeholder}, {placeholder}, {placeholder}, {placeholder})"
    )
    if hasattr(conn, "executescript"):
        conn.executemany(insert_items, rows)
    else:
        with conn.cursor() as cur:
            cur.executemany(insert_items, rows)
    conn.commit()


def _placeholder(conn) -> str:
    module = conn.__class__.__module__
    return "%s" if "psycopg" in module else "?"
