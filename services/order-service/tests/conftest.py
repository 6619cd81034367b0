from __future__ import annotations

import sqlite3

import pytest

from order_service.database import apply_schema
from order_service.menu_client import MenuItemSnapshot
from order_service.repository import OrderRepository


class FakeMenu:
    """In-memory stand-in for the menu service."""

    def __init__(self, items=()):
        self.items = {item.id: item for item in items}
        self.lookups: list[str] = []

    def get_item(self, item_id):
        self.lookups.append(item_id)
        return self.items.get(item_id)


@pytest.fixture()
def connection_factory(tmp_path):
    db_path = tmp_path / "orders.db"

    def factory():
        conn = sqlite3.connect(db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        return conn

    conn = factory()
    apply_schema(conn)
    conn.close()
    return factory


@pytest.fixture()
def repo(connection_factory):
    return OrderRepository(connection_factory=connection_factory)


@pytest.fixture()
def menu():
    return FakeMenu(
        [
            MenuItemSnapshot(id="taco", name="Carne Asada Taco", price=4.5, available=True),
            MenuItemSnapshot(id="nachos", name="Loaded Nachos", price=8.75, available=True),
            MenuItemSnapshot(id="horchata", name="Horchata", price=3.0, available=True),
            MenuItemSnapshot(id="churros", name="Churros", price=5.0, available=False),
        ]
    )
