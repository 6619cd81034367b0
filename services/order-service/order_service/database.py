from __future__ import annotations

import os
import sqlite3
import time
from contextlib import contextmanager
from typing import Iterable, Iterator

import psycopg
from psycopg.rows import dict_row

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS order_counters (
    day_key TEXT PRIMARY KEY,
    last_value INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS orders (
    id TEXT PRIMARY KEY,
    customer_id TEXT,
    items_json TEXT NOT NULL,
    payment_method TEXT NOT NULL,
    total NUMERIC(10, 2) NOT NULL,
    status TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_orders_customer_id ON orders (customer_id);
"""


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
    host = os.environ.get("DB_HOST", "order-db")
    port = os.environ.get("DB_PORT", "5432")
    name = os.environ.get("DB_NAME", "order_service")
    return f"postgresql://{user}:{password}@{host}:{port}/{name}"


DATABASE_URL = _build_database_url()


def get_connection():
    retries = int(os.environ.get("DB_CONNECT_MAX_RETRIES", "30"))
    delay = float(os.environ.get("DB_CONNECT_RETRY_DELAY", "2"))
    last_exc: Exception | None = None
    for attempt in range(retries):
        try:
            return _connect_once()
        except Exception as exc:  # pragma: no cover
            last_exc = exc
            if attempt == retries - 1:
                raise
            time.sleep(delay)
    raise last_exc  # pragma: no cover


def _connect_once():
    if DATABASE_URL.startswith("sqlite://"):
        path = DATABASE_URL.replace("sqlite:///", "")
        conn = sqlite3.connect(path, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    return psycopg.connect(DATABASE_URL, autocommit=True, row_factory=dict_row)


@contextmanager
def transaction(conn) -> Iterator:
    """Run the enclosed statements as one unit; roll back on any exception.

    Postgres connections are opened in autocommit mode, so an explicit
    ``conn.transaction()`` block is needed. SQLite takes the write lock up
    front with ``BEGIN IMMEDIATE`` so concurrent writers queue instead of
    failing on lock upgrade.
    """
    if not hasattr(conn, "executescript"):
        with conn.transaction():
            yield conn
        return

    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    conn.commit()


def init_db() -> None:
    conn = get_connection()
    try:
        apply_schema(conn)
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


def param_placeholder(conn) -> str:
    module = conn.__class__.__module__
    return "%s" if "psycopg" in module else "?"
