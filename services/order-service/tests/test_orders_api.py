from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from order_service import database
from order_service.app import build_menu_client, create_app
from order_service.counter import is_valid_order_id
from order_service.menu_client import MenuServiceError


@pytest.fixture()
def app(tmp_path, monkeypatch, menu):
    monkeypatch.setattr(database, "DATABASE_URL", f"sqlite:///{tmp_path / 'orders-api.db'}")
    application = create_app()
    application.dependency_overrides[build_menu_client] = lambda: menu
    return application


@pytest.fixture()
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def place(client, items, **extra):
    return client.post("/orders", json={"items": items, **extra})


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_create_order(client):
    response = place(client, [{"id": "taco", "qty": 2}], customer_id="cust-7")

    assert response.status_code == 201
    body = response.json()
    assert is_valid_order_id(body["id"])
    assert body["id"].endswith("-0001")
    assert body["customer_id"] == "cust-7"
    assert body["items"] == [{"id": "taco", "name": "Carne Asada Taco", "price": 4.5, "qty": 2}]
    assert body["payment_method"] == "cash"
    assert body["total"] == 9.0
    assert body["status"] == "CREATED"
    assert body["created_at"] and body["updated_at"]


def test_create_order_with_empty_items(client):
    response = place(client, [])
    assert response.status_code == 400


def test_create_order_with_missing_qty(client):
    response = place(client, [{"id": "taco"}])
    assert response.status_code == 400


def test_create_order_with_unavailable_item(client):
    response = place(client, [{"id": "churros", "qty": 1}])
    assert response.status_code == 400
    assert "churros" in response.json()["detail"]


def test_create_order_when_menu_is_down(app, client):
    class DownMenu:
        def get_item(self, item_id):
            raise MenuServiceError("connect timeout to menu-service:8081")

    app.dependency_overrides[build_menu_client] = lambda: DownMenu()

    response = place(client, [{"id": "taco", "qty": 1}])

    assert response.status_code == 502
    assert "menu-service:8081" not in response.json()["detail"]


def test_post_with_explicit_id_is_rejected(client):
    response = client.post("/orders/20251112-0001", json={"items": [{"id": "taco", "qty": 1}]})
    assert response.status_code == 405


def test_get_order(client):
    order_id = place(client, [{"id": "nachos", "qty": 1}]).json()["id"]

    response = client.get(f"/orders/{order_id}")

    assert response.status_code == 200
    assert response.json()["total"] == 8.75


def test_get_unknown_and_malformed_order(client):
    assert client.get("/orders/20251112-0042").status_code == 404
    assert client.get("/orders/not-an-order").status_code == 400


def test_list_orders_by_customer(client):
    place(client, [{"id": "taco", "qty": 1}], customer_id="alice")
    place(client, [{"id": "taco", "qty": 1}], customer_id="bob")

    everyone = client.get("/orders").json()
    alice = client.get("/orders", params={"customer_id": "alice"}).json()

    assert len(everyone) == 2
    assert [order["customer_id"] for order in alice] == ["alice"]


def test_partial_update(client):
    created = place(client, [{"id": "taco", "qty": 1}]).json()

    paid = client.put(f"/orders/{created['id']}", json={"payment_method": "card"}).json()
    assert paid["id"] == created["id"]
    assert paid["payment_method"] == "card"
    assert paid["items"] == created["items"]
    assert paid["total"] == created["total"]

    reworked = client.put(
        f"/orders/{created['id']}",
        json={"items": [{"id": "horchata", "qty": 3}], "status": "READY"},
    ).json()
    assert reworked["total"] == 9.0
    assert reworked["status"] == "READY"
    assert reworked["payment_method"] == "card"


def test_update_unknown_and_malformed_order(client):
    assert client.put("/orders/20251112-0042", json={"status": "DONE"}).status_code == 404
    assert client.put("/orders/bogus", json={"status": "DONE"}).status_code == 400


def test_update_with_empty_items(client):
    created = place(client, [{"id": "taco", "qty": 1}]).json()
    response = client.put(f"/orders/{created['id']}", json={"items": []})
    assert response.status_code == 400


@pytest.mark.parametrize("limit", [0, -1, 501])
def test_list_orders_rejects_out_of_range_limit(client, limit):
    assert client.get("/orders", params={"limit": limit}).status_code == 400


@pytest.mark.parametrize("qty", [True, "2", 1.5])
def test_create_order_requires_integer_qty(client, qty):
    response = place(client, [{"id": "taco", "qty": qty}])
    assert response.status_code == 400
