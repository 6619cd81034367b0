from __future__ import annotations

import sqlite3
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from order_service.counter import (
    allocate_sequence,
    current_day_key,
    format_order_id,
    is_valid_order_id,
)
from order_service.database import transaction

DAY = "20251112"


def test_day_key_uses_given_moment():
    assert current_day_key(datetime(2025, 11, 12, 9, 30)) == DAY


def test_day_key_converts_into_configured_zone():
    late_utc = datetime(2025, 11, 12, 23, 30, tzinfo=timezone.utc)

    assert current_day_key(late_utc, ZoneInfo("UTC")) == "20251112"
    assert current_day_key(late_utc, ZoneInfo("Asia/Tokyo")) == "20251113"


def test_format_order_id_pads_to_minimum_width():
    assert format_order_id(DAY, 1) == "20251112-0001"
    assert format_order_id(DAY, 12) == "20251112-0012"
    assert format_order_id(DAY, 10000) == "20251112-10000"


@pytest.mark.parametrize(
    "order_id, expected",
    [
        ("20251112-0001", True),
        ("20251112-10000", True),
        ("20251112-001", False),
        ("2025111-0001", False),
        ("20251112_0001", False),
        ("20251112-0001\n", False),
        ("abc", False),
    ],
)
def test_order_id_pattern(order_id, expected):
    assert is_valid_order_id(order_id) is expected


def test_allocation_starts_at_one_and_increments_per_day(connection_factory):
    conn = connection_factory()
    try:
        with transaction(conn):
            first = allocate_sequence(conn, DAY)
        with transaction(conn):
            second = allocate_sequence(conn, DAY)
        with transaction(conn):
            next_day = allocate_sequence(conn, "20251113")
    finally:
        conn.close()

    assert (first, second, next_day) == (1, 2, 1)


def test_allocation_rolls_back_with_enclosing_transaction(connection_factory, repo):
    conn = connection_factory()
    try:
        with pytest.raises(RuntimeError):
            with transaction(conn):
                assert allocate_sequence(conn, DAY) == 1
                raise RuntimeError("order insert failed")
    finally:
        conn.close()

    assert repo.current_sequence(DAY) is None


def test_failed_order_insert_leaves_counter_untouched(connection_factory, repo):
    conn = connection_factory()
    conn.execute(
        """
        INSERT INTO orders (id, customer_id, items_json, payment_method, total, status, created_at, updated_at)
        VALUES ('20251112-0001', NULL, '[]', 'cash', 0, 'CREATED', 'x', 'x');
        """
    )
    conn.commit()
    conn.close()

    with pytest.raises(sqlite3.IntegrityError):
        repo.create_order(DAY, customer_id=None, items=[], payment_method="cash", total=0.0)

    assert repo.current_sequence(DAY) is None


def test_concurrent_orders_get_distinct_consecutive_ids(repo):
    workers = 20
    item = {"id": "taco", "name": "Carne Asada Taco", "price": 4.5, "qty": 1}

    def place(_):
        return repo.create_order(DAY, customer_id=None, items=[item], payment_method="cash", total=4.5).id

    with ThreadPoolExecutor(max_workers=8) as executor:
        ids = list(executor.map(place, range(workers)))

    assert len(set(ids)) == workers
    assert sorted(ids) == [format_order_id(DAY, n) for n in range(1, workers + 1)]
    assert repo.current_sequence(DAY) == workers
