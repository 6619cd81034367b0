"""Per-day order sequence allocation.

Order ids have the form ``YYYYMMDD-####``. The numeric part comes from the
``order_counters`` table, one row per day key. Each allocation is a single
upsert-and-increment statement so the store serializes concurrent writers on
the counter row; it must be executed on the same connection, inside the same
transaction, as the order insert that consumes the value.
"""
from __future__ import annotations

import re
from datetime import datetime, tzinfo

from .database import param_placeholder

ORDER_ID_PATTERN = re.compile(r"\d{8}-\d{4,}", re.ASCII)
SEQUENCE_WIDTH = 4


def current_day_key(now: datetime | None = None, tz: tzinfo | None = None) -> str:
    """Return the ``YYYYMMDD`` key for ``now`` (defaults to the wall clock).

    Without ``tz`` the host's local time is used.
    """
    if now is None:
        now = datetime.now(tz)
    elif tz is not None:
        now = now.astimezone(tz)
    return now.strftime("%Y%m%d")


def allocate_sequence(conn, day_key: str) -> int:
    placeholder = param_placeholder(conn)
    # fetchall drains the RETURNING cursor so SQLite can commit afterwards.
    rows = conn.execute(
        f"""
        INSERT INTO order_counters (day_key, last_value)
        VALUES ({placeholder}, 1)
        ON CONFLICT (day_key)
        DO UPDATE SET last_value = order_counters.last_value + 1
        RETURNING last_value;
        """,
        (day_key,),
    ).fetchall()
    return int(rows[0]["last_value"])


def format_order_id(day_key: str, value: int) -> str:
    # Minimum width only; 10000 and up keep every digit.
    return f"{day_key}-{value:0{SEQUENCE_WIDTH}d}"


def is_valid_order_id(order_id: str) -> bool:
    return bool(ORDER_ID_PATTERN.fullmatch(order_id))
