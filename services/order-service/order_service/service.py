from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Callable, Optional

from .counter import current_day_key
from .menu_client import MenuLookup
from .repository import OrderRecord, OrderRepository

logger = logging.getLogger("order-service")

DEFAULT_PAYMENT_METHOD = "cash"


class OrderValidationError(Exception):
    """Raised when the submitted order payload is incomplete or malformed."""


class MenuItemUnavailableError(Exception):
    """Raised when a line item references a missing or unavailable menu item."""


class OrderNotFoundError(Exception):
    """Raised when an order identifier is unknown."""


@dataclass
class CreateOrderCommand:
    items: list[dict]
    customer_id: str | None = None
    payment_method: str = DEFAULT_PAYMENT_METHOD


@dataclass
class UpdateOrderCommand:
    items: list[dict] | None = None
    payment_method: str | None = None
    status: str | None = None


class OrderService:
    def __init__(
        self,
        repository: OrderRepository,
        menu: MenuLookup,
        clock: Callable[[], datetime] | None = None,
        tz: Optional[tzinfo] = None,
    ):
        self._repo = repository
        self._menu = menu
        self._clock = clock
        self._tz = tz

    def place_order(self, command: CreateOrderCommand) -> OrderRecord:
        snapshot = self._snapshot_items(command.items)
        total = order_total(snapshot)
        # Computed once so the whole request uses the same day.
        day_key = current_day_key(self._clock() if self._clock else None, self._tz)

        record = self._repo.create_order(
            day_key,
            customer_id=command.customer_id,
            items=snapshot,
            payment_method=command.payment_method,
            total=total,
        )
        logger.info(
            "Created order id=%s customer=%s items=%d total=%.2f",
            record.id,
            record.customer_id,
            len(snapshot),
            total,
        )
        return record

    def update_order(self, order_id: str, command: UpdateOrderCommand) -> OrderRecord:
        # Unknown orders are reported before any menu lookup.
        if self._repo.get_order(order_id) is None:
            raise OrderNotFoundError(f"Order {order_id} not found.")

        snapshot = None
        total = None
        if command.items is not None:
            snapshot = self._snapshot_items(command.items)
            total = order_total(snapshot)

        record = self._repo.update_order(
            order_id,
            items=snapshot,
            total=total,
            payment_method=command.payment_method,
            status=command.status,
        )
        if record is None:
            raise OrderNotFoundError(f"Order {order_id} not found.")
        logger.info("Updated order id=%s status=%s total=%.2f", record.id, record.status, record.total)
        return record

    def _snapshot_items(self, items: list[dict]) -> list[dict]:
        """Validate line items and copy the menu's current name and price into each.

        The copy decouples stored orders from later menu edits. Any missing
        or unavailable item rejects the whole list.
        """
        if not items:
            raise OrderValidationError("items must be a non-empty list.")
        for item in items:
            qty = item.get("qty")
            if not item.get("id") or not isinstance(qty, int) or isinstance(qty, bool) or qty <= 0:
                raise OrderValidationError("Each item needs an id and a positive qty.")

        snapshot = []
        for item in items:
            menu_item = self._menu.get_item(item["id"])
            if menu_item is None or menu_item.id != item["id"]:
                raise MenuItemUnavailableError(f"Item {item['id']} not found.")
            if not menu_item.available:
                raise MenuItemUnavailableError(f"Item {item['id']} not available.")
            snapshot.append(
                {
                    "id": menu_item.id,
                    "name": menu_item.name,
                    "price": menu_item.price,
                    "qty": item["qty"],
                }
            )
        return snapshot


def order_total(items: list[dict]) -> float:
    return round(sum(item["price"] * item["qty"] for item in items), 2)
