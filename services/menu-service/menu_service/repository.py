from __future__ import annotations

import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from .database import get_connection


class MenuItemNotFoundError(Exception):
    """Raised when a menu item identifier is unknown."""


@dataclass(frozen=True)
class MenuItemRecord:
    id: str
    name: str
    price: float
    available: bool
    created_at: str
    updated_at: str


class MenuRepository:
    """Thin data-access layer that hides direct SQL from the FastAPI handlers."""

    def __init__(self, connection_factory=get_connection):
        self._connection_factory = connection_factory

    @contextmanager
    def _connection(self):
        conn = self._connection_factory()
        try:
            yield conn
        finally:
            conn.close()

    def list_items(self) -> List[MenuItemRecord]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT id, name, price, available, created_at, updated_at
                FROM menu_items
                ORDER BY created_at DESC, name ASC;
                """
            ).fetchall()
            return [_to_record(row) for row in rows]

    def get_item(self, item_id: str) -> Optional[MenuItemRecord]:
        with self._connection() as conn:
            return self._fetch(conn, item_id)

    def create_item(self, name: str, price: float, available: bool = True) -> MenuItemRecord:
        item_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()
        with self._connection() as conn:
            placeholder = _placeholder(conn)
            conn.execute(
                f"""
                INSERT INTO menu_items (id, name, price, available, created_at, updated_at)
                VALUES ({placeholder}, {placeholder}, {placeholder}, {placeholder}, {placeholder}, {placeholder});
                """,
                (item_id, name, round(price, 2), int(available), now, now),
            )
            conn.commit()
        return MenuItemRecord(
            id=item_id,
            name=name,
            price=round(price, 2),
            available=available,
            created_at=now,
            updated_at=now,
        )

    def update_item(
        self,
        item_id: str,
        *,
        name: str | None = None,
        price: float | None = None,
        available: bool | None = None,
    ) -> MenuItemRecord:
        now = datetime.now(timezone.utc).isoformat()
        with self._connection() as conn:
            placeholder = _placeholder(conn)
            cursor = conn.execute(
                f"""
                UPDATE menu_items
                SET name = COALESCE({placeholder}, name),
                    price = COALESCE({placeholder}, price),
                    available = COALESCE({placeholder}, available),
                    updated_at = {placeholder}
                WHERE id = {placeholder};
                """,
                (
                    name,
                    round(price, 2) if price is not None else None,
                    int(available) if available is not None else None,
                    now,
                    item_id,
                ),
            )
            if cursor.rowcount == 0:
                conn.rollback()
                raise MenuItemNotFoundError(f"Menu item {item_id} not found.")
            conn.commit()
            record = self._fetch(conn, item_id)
        assert record is not None
        return record

    def delete_item(self, item_id: str) -> None:
        with self._connection() as conn:
            placeholder = _placeholder(conn)
            cursor = conn.execute(
                f"DELETE FROM menu_items WHERE id = {placeholder};", (item_id,)
            )
            if cursor.rowcount == 0:
                raise MenuItemNotFoundError(f"Menu item {item_id} not found.")
            conn.commit()

    def _fetch(self, conn, item_id: str) -> Optional[MenuItemRecord]:
        placeholder = _placeholder(conn)
        row = conn.execute(
            f"""
            SELECT id, name, price, available, created_at, updated_at
            FROM menu_items
            WHERE id = {placeholder};
            """,
            (item_id,),
        ).fetchone()
        if row is None:
            return None
        return _to_record(row)


def _to_record(row) -> MenuItemRecord:
    return MenuItemRecord(
        id=row["id"],
        name=row["name"],
        price=float(row["price"]),
        available=bool(row["available"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _placeholder(conn) -> str:
    module = conn.__class__.__module__
    return "%s" if "psycopg" in module else "?"
