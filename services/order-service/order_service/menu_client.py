from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import quote

import httpx


class MenuServiceError(Exception):
    """Raised when the menu service cannot be reached or answers with an error."""


@dataclass(frozen=True)
class MenuItemSnapshot:
    id: str
    name: str
    price: float
    available: bool


class MenuLookup(Protocol):
    def get_item(self, item_id: str) -> Optional[MenuItemSnapshot]: ...


class MenuClient:
    def __init__(self, base_url: str, timeout: float = 5.0, client: httpx.Client | None = None):
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    def get_item(self, item_id: str) -> Optional[MenuItemSnapshot]:
        """Look up one menu item; ``None`` means the menu does not know the id."""
        url = f"{self._base_url}/menu/{quote(item_id, safe='')}"
        try:
            response = self._client.get(url)
        except httpx.HTTPError as exc:
            raise MenuServiceError(f"Menu service unreachable: {exc}") from exc

        # The menu service answers 400 for ids that are not UUIDs.
        if response.status_code in (400, 404):
            return None
        if response.status_code >= 400:
            raise MenuServiceError(
                f"Menu lookup for {item_id} failed ({response.status_code}): {response.text}"
            )
        payload = response.json()
        if payload.get("id") != item_id:
            return None
        return MenuItemSnapshot(
            id=payload["id"],
            name=payload["name"],
            price=float(payload["price"]),
            available=payload.get("available") is True,
        )

    def close(self) -> None:
        self._client.close()
