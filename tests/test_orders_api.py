"""HTTP tests for the orders API."""

import re

import pytest

from tests.helpers import SHIPPING_ADDRESS, stock_of


@pytest.fixture
def order_payload(seed):
    return {
        "items": [
            {"product_id": seed.laptop_id, "quantity": 1},
            {"product_id": seed.mouse_id, "quantity": 2},
        ],
        "shipping_address": SHIPPING_ADDRESS,
    }


async def create_order(client, auth_headers, payload):
    response = await client.post("/api/v1/orders", json=payload, headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestAuthentication:

    async def test_missing_token(self, client, seed, order_payload):
        response = await client.post("/api/v1/orders", json=order_payload)

        assert response.status_code == 401
        assert response.json()["error"] == "unauthenticated"

    async def test_invalid_token(self, client, seed):
        response = await client.get("/api/v1/orders", headers={"Authorization": "Bearer nonsense"})

        assert response.status_code == 401


class TestCreateOrder:
    """POST /api/v1/orders"""

    async def test_create_order(self, client, database, seed, auth_headers, order_payload):
        data = await create_order(client, auth_headers, order_payload)

        assert re.match(r"^ORD-\d{14}-[0-9A-Z]{6}$", data["order_number"])
        assert data["status"] == "pending"
        assert data["payment_status"] == "pending"
        assert data["subtotal"] == "2399.97"
        assert data["tax_amount"] == "240.00"
        assert data["shipping_amount"] == "10.00"
        assert data["total_amount"] == "2649.97"
        assert data["item_count"] == 3
        assert data["customer_email"] == "asha@example.com"
        assert data["user"]["name"] == "Asha Rao"
        assert data["items"][0]["unit_price"] == "1999.99"
        assert data["status_history"][0]["to_status"] == "pending"
        assert await stock_of(database, seed.laptop_id) == 4

    async def test_insufficient_stock(self, client, database, seed, auth_headers):
        payload = {
            "items": [{"product_id": seed.laptop_id, "quantity": 6}],
            "shipping_address": SHIPPING_ADDRESS,
        }

        response = await client.post("/api/v1/orders", json=payload, headers=auth_headers)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "insufficient_stock"
        assert body["details"]["available"] == 5
        assert body["details"]["product_name"] == "Laptop"
        assert await stock_of(database, seed.laptop_id) == 5

    async def test_unknown_product(self, client, seed, auth_headers):
        payload = {"items": [{"product_id": 99999, "quantity": 1}], "shipping_address": SHIPPING_ADDRESS}

        response = await client.post("/api/v1/orders", json=payload, headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["error"] == "product_not_found"

    @pytest.mark.parametrize("payload", [
        {"items": [], "shipping_address": SHIPPING_ADDRESS},
        {"items": [{"product_id": 1, "quantity": 1}]},
        {"items": [{"product_id": 1, "quantity": 0}], "shipping_address": SHIPPING_ADDRESS},
        {"items": [{"product_id": 1, "quantity": 1}], "shipping_address": {"first_name": "Asha"}},
    ])
    async def test_invalid_requests(self, client, seed, auth_headers, payload):
        response = await client.post("/api/v1/orders", json=payload, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"

    async def test_saved_address(self, client, seed, auth_headers):
        payload = {
            "items": [{"product_id": seed.mouse_id, "quantity": 1}],
            "shipping_address": {"address_id": seed.address_id},
        }

        data = await create_order(client, auth_headers, payload)

        assert data["shipping_address"]["address_line1"] == "12 MG Road"


class TestReadOrders:

    async def test_get_order(self, client, seed, auth_headers, order_payload):
        created = await create_order(client, auth_headers, order_payload)

        response = await client.get(f"/api/v1/orders/{created['id']}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["order_number"] == created["order_number"]

    async def test_get_unknown_order(self, client, seed, auth_headers):
        response = await client.get("/api/v1/orders/424242", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    async def test_list_orders(self, client, seed, auth_headers, order_payload):
        first = await create_order(client, auth_headers, order_payload)
        second = await create_order(client, auth_headers, order_payload)

        response = await client.get("/api/v1/orders", headers=auth_headers)

        assert [o["id"] for o in response.json()] == [second["id"], first["id"]]

    async def test_user_orders(self, client, seed, auth_headers, order_payload):
        first = await create_order(client, auth_headers, order_payload)
        second = await create_order(client, auth_headers, order_payload)

        response = await client.get(f"/api/v1/orders/user/{seed.user_id}", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["email"] == "asha@example.com"
        assert [o["id"] for o in data["orders"]] == [first["id"], second["id"]]

    async def test_unknown_user_orders(self, client, seed, auth_headers):
        response = await client.get("/api/v1/orders/user/99999", headers=auth_headers)

        assert response.status_code == 404


class TestUpdateOrder:
    """PUT /api/v1/orders/{id}"""

    async def test_update_status(self, client, seed, auth_headers, order_payload):
        created = await create_order(client, auth_headers, order_payload)

        response = await client.put(
            f"/api/v1/orders/{created['id']}",
            json={"status": "confirmed", "payment_status": "paid", "notes": "Paid by bank transfer"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "confirmed"
        assert data["payment_status"] == "paid"
        assert data["confirmed_at"] is not None
        assert data["status_history"][-1]["changed_by"] == seed.user_id

    async def test_invalid_status_value(self, client, seed, auth_headers, order_payload):
        created = await create_order(client, auth_headers, order_payload)

        response = await client.put(
            f"/api/v1/orders/{created['id']}", json={"status": "teleported"}, headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"

    async def test_illegal_transition(self, client, seed, auth_headers, order_payload):
        created = await create_order(client, auth_headers, order_payload)

        response = await client.put(
            f"/api/v1/orders/{created['id']}", json={"status": "delivered"}, headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_status_transition"

    async def test_change_shipping_address(self, client, seed, auth_headers, order_payload):
        created = await create_order(client, auth_headers, order_payload)

        response = await client.put(
            f"/api/v1/orders/{created['id']}",
            json={"shipping_address": dict(SHIPPING_ADDRESS, city="Mysuru")},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["shipping_address"]["city"] == "Mysuru"

    async def test_locked_order_address(self, client, seed, auth_headers, order_payload):
        created = await create_order(client, auth_headers, order_payload)
        for status in ("confirmed", "processing", "shipped"):
            await client.put(f"/api/v1/orders/{created['id']}", json={"status": status}, headers=auth_headers)

        response = await client.put(
            f"/api/v1/orders/{created['id']}",
            json={"shipping_address": dict(SHIPPING_ADDRESS, city="Mysuru")},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "order_locked"


class TestOrderItems:

    async def test_add_item(self, client, database, seed, auth_headers):
        created = await create_order(client, auth_headers, {
            "items": [{"product_id": seed.laptop_id, "quantity": 1}],
            "shipping_address": SHIPPING_ADDRESS,
        })

        response = await client.post(
            f"/api/v1/orders/{created['id']}/items",
            json={"product_id": seed.mouse_id, "quantity": 2},
            headers=auth_headers,
        )

        assert response.status_code == 201
        assert response.json()["total_price"] == "399.98"
        order = (await client.get(f"/api/v1/orders/{created['id']}", headers=auth_headers)).json()
        assert order["total_amount"] == "2649.97"
        assert await stock_of(database, seed.mouse_id) == 8

    async def test_add_duplicate_item(self, client, seed, auth_headers, order_payload):
        created = await create_order(client, auth_headers, order_payload)

        response = await client.post(
            f"/api/v1/orders/{created['id']}/items",
            json={"product_id": seed.mouse_id, "quantity": 1},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "duplicate_item"

    async def test_remove_item(self, client, database, seed, auth_headers, order_payload):
        created = await create_order(client, auth_headers, order_payload)
        mouse_line = next(i for i in created["items"] if i["product_id"] == seed.mouse_id)

        response = await client.delete(
            f"/api/v1/orders/{created['id']}/items/{mouse_line['id']}", headers=auth_headers,
        )

        assert response.status_code == 200
        assert await stock_of(database, seed.mouse_id) == 10


class TestDeleteOrder:

    async def test_delete_order(self, client, database, seed, auth_headers, order_payload):
        created = await create_order(client, auth_headers, order_payload)

        response = await client.delete(f"/api/v1/orders/{created['id']}", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"id": created["id"], "deleted": True}
        missing = await client.get(f"/api/v1/orders/{created['id']}", headers=auth_headers)
        assert missing.status_code == 404
        assert await stock_of(database, seed.laptop_id) == 5


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["checks"]["database"] == "connected"
