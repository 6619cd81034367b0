from __future__ import annotations

import json
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .counter import allocate_sequence, format_order_id
from .database import get_connection, param_placeholder, transaction

INITIAL_STATUS = "CREATED"

_ORDER_COLUMNS = """
    id, customer_id, items_json, payment_method, total, status,
    created_at, updated_at
"""


@dataclass(frozen=True)
class OrderRecord:
    id: str
    customer_id: Optional[str]
    items: list
    payment_method: str
    total: float
    status: str
    created_at: str
    updated_at: str


class OrderRepository:
    """Data-access layer for orders and their per-day id counters."""

    def __init__(self, connection_factory=get_connection):
        self._connection_factory = connection_factory

    @contextmanager
    def _connection(self):
        conn = self._connection_factory()
        try:
            yield conn
        finally:
            conn.close()

    def create_order(
        self,
        day_key: str,
        *,
        customer_id: str | None,
        items: list[dict],
        payment_method: str,
        total: float,
    ) -> OrderRecord:
        """Allocate the next id for ``day_key`` and insert the order atomically.

        The counter increment and the insert share one transaction: if the
        insert fails the increment is rolled back with it.
        """
        now = datetime.now(timezone.utc).isoformat()
        with self._connection() as conn:
            with transaction(conn):
                order_id = format_order_id(day_key, allocate_sequence(conn, day_key))
                placeholder = param_placeholder(conn)
                conn.execute(
                    f"""
                    INSERT INTO orders ({_ORDER_COLUMNS})
                    VALUES ({placeholder}, {placeholder}, {placeholder}, {placeholder},
                            {placeholder}, {placeholder}, {placeholder}, {placeholder});
                    """,
                    (
                        order_id,
                        customer_id,
                        json.dumps(items),
                        payment_method,
                        total,
                        INITIAL_STATUS,
                        now,
                        now,
                    ),
                )
        return OrderRecord(
            id=order_id,
            customer_id=customer_id,
            items=items,
            payment_method=payment_method,
            total=total,
            status=INITIAL_STATUS,
            created_at=now,
            updated_at=now,
        )

    def update_order(
        self,
        order_id: str,
        *,
        items: list[dict] | None = None,
        total: float | None = None,
        payment_method: str | None = None,
        status: str | None = None,
    ) -> OrderRecord | None:
        if (items is None) != (total is None):
            raise ValueError("items and total must be updated together")

        now = datetime.now(timezone.utc).isoformat()
        items_json = json.dumps(items) if items is not None else None
        with self._connection() as conn:
            with transaction(conn):
                placeholder = param_placeholder(conn)
                cursor = conn.execute(
                    f"""
                    UPDATE orders
                    SET items_json = COALESCE({placeholder}, items_json),
                        total = COALESCE({placeholder}, total),
                        payment_method = COALESCE({placeholder}, payment_method),
                        status = COALESCE({placeholder}, status),
                        updated_at = {placeholder}
                    WHERE id = {placeholder};
                    """,
                    (items_json, total, payment_method, status, now, order_id),
                )
                if cursor.rowcount == 0:
                    return None
            return self._fetch(conn, order_id)

    def get_order(self, order_id: str) -> OrderRecord | None:
        with self._connection() as conn:
            return self._fetch(conn, order_id)

    def list_orders(self, customer_id: str | None = None, limit: int = 50) -> list[OrderRecord]:
        with self._connection() as conn:
            placeholder = param_placeholder(conn)
            if customer_id is None:
                rows = conn.execute(
                    f"""
                    SELECT {_ORDER_COLUMNS}
                    FROM orders
                    ORDER BY created_at DESC, id DESC
                    LIMIT {placeholder};
                    """,
                    (limit,),
                ).fetchall()
            else:
                rows = conn.execute(
                    f"""
                    SELECT {_ORDER_COLUMNS}
                    FROM orders
                    WHERE customer_id = {placeholder}
                    ORDER BY created_at DESC, id DESC
                    LIMIT {placeholder};
                    """,
                    (customer_id, limit),
                ).fetchall()
        return [_to_record(row) for row in rows]

    def current_sequence(self, day_key: str) -> int | None:
        """Last value handed out for ``day_key``, or ``None`` before the first order."""
        with self._connection() as conn:
            placeholder = param_placeholder(conn)
            row = conn.execute(
                f"SELECT last_value FROM order_counters WHERE day_key = {placeholder};",
                (day_key,),
            ).fetchone()
        return None if row is None else int(row["last_value"])

    def _fetch(self, conn, order_id: str) -> OrderRecord | None:
        placeholder = param_placeholder(conn)
        row = conn.execute(
            f"""
            SELECT {_ORDER_COLUMNS}
            FROM orders
            WHERE id = {placeholder};
            """,
            (order_id,),
        ).fetchone()
        if row is None:
            return None
        return _to_record(row)


def _to_record(row) -> OrderRecord:
    return OrderRecord(
        id=row["id"],
        customer_id=row["customer_id"],
        items=json.loads(row["items_json"]),
        payment_method=row["payment_method"],
        total=float(row["total"]),
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
