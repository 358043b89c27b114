"""HTTP tests for the product catalog."""

import pytest

from tests.helpers import SHIPPING_ADDRESS


@pytest.fixture
def product_payload():
    return {
        "name": "Desk Lamp",
        "slug": "desk-lamp",
        "sku": "LMP-001",
        "description": "Warm white LED lamp",
        "price": "349.50",
        "quantity": 12,
        "variants": [
            {"name": "Black", "sku": "LMP-001-B", "attributes": {"color": "black"}},
            {"name": "Brass", "sku": "LMP-001-R", "price": "399.00", "quantity": 2},
        ],
    }


class TestListProducts:
    """GET /api/v1/products"""

    async def test_lists_active_products(self, client, seed):
        response = await client.get("/api/v1/products")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 4
        assert {p["name"] for p in data["items"]} == {"Laptop", "Mouse", "T-Shirt", "Gift Card"}

    async def test_include_inactive(self, client, seed):
        response = await client.get("/api/v1/products", params={"include_inactive": True})

        assert response.json()["total"] == 5

    async def test_pagination(self, client, seed):
        response = await client.get("/api/v1/products", params={"page": 2, "size": 3})

        data = response.json()
        assert len(data["items"]) == 1
        assert data["total"] == 4
        assert data["pages"] == 2

    async def test_featured(self, client, seed):
        response = await client.get("/api/v1/products/featured")

        assert response.status_code == 200
        assert [p["name"] for p in response.json()] == ["Laptop"]

    async def test_get_product_with_variants(self, client, seed):
        response = await client.get(f"/api/v1/products/{seed.shirt_id}")

        assert response.status_code == 200
        data = response.json()
        assert data["price"] == "25.00"
        assert {v["name"] for v in data["variants"]} == {"Medium", "Large"}

    async def test_get_unknown_product(self, client, seed):
        response = await client.get("/api/v1/products/99999")

        assert response.status_code == 404
        assert response.json()["error"] == "not_found"


class TestCreateProduct:
    """POST /api/v1/products"""

    async def test_requires_authentication(self, client, seed, product_payload):
        response = await client.post("/api/v1/products", json=product_payload)

        assert response.status_code == 401

    async def test_create_product(self, client, seed, auth_headers, product_payload):
        response = await client.post("/api/v1/products", json=product_payload, headers=auth_headers)

        assert response.status_code == 201, response.text
        data = response.json()
        assert data["price"] == "349.50"
        assert data["quantity"] == 12
        assert data["is_active"] is True
        assert data["is_featured"] is False
        brass = next(v for v in data["variants"] if v["name"] == "Brass")
        assert brass["price"] == "399.00"
        assert brass["quantity"] == 2

        listed = await client.get("/api/v1/products")
        assert listed.json()["total"] == 5

    async def test_new_product_can_be_ordered(self, client, seed, auth_headers, product_payload):
        product = (await client.post("/api/v1/products", json=product_payload, headers=auth_headers)).json()
        brass = next(v for v in product["variants"] if v["name"] == "Brass")

        response = await client.post(
            "/api/v1/orders",
            json={
                "items": [{"product_id": product["id"], "variant_id": brass["id"], "quantity": 2}],
                "shipping_address": SHIPPING_ADDRESS,
            },
            headers=auth_headers,
        )

        assert response.status_code == 201, response.text
        assert response.json()["subtotal"] == "798.00"

    @pytest.mark.parametrize("field,value", [("slug", "laptop"), ("sku", "LAP-001")])
    async def test_duplicate_identifier(self, client, seed, auth_headers, product_payload, field, value):
        product_payload[field] = value

        response = await client.post("/api/v1/products", json=product_payload, headers=auth_headers)

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "invalid_request"
        assert body["details"] == {field: value}

    async def test_unknown_category(self, client, seed, auth_headers, product_payload):
        product_payload["category_id"] = 99999

        response = await client.post("/api/v1/products", json=product_payload, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["details"] == {"category_id": 99999}

    @pytest.mark.parametrize("change", [{"price": "-1"}, {"name": ""}, {"slug": None}])
    async def test_invalid_payload(self, client, seed, auth_headers, product_payload, change):
        product_payload.update(change)

        response = await client.post("/api/v1/products", json=product_payload, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_request"


class TestUpdateProduct:
    """PUT /api/v1/products/{id}"""

    async def test_price_change_applies_to_new_orders_only(self, client, seed, auth_headers):
        first = await client.post(
            "/api/v1/orders",
            json={"items": [{"product_id": seed.laptop_id, "quantity": 1}], "shipping_address": SHIPPING_ADDRESS},
            headers=auth_headers,
        )

        response = await client.put(
            f"/api/v1/products/{seed.laptop_id}", json={"price": "2499.99"}, headers=auth_headers,
        )
        second = await client.post(
            "/api/v1/orders",
            json={"items": [{"product_id": seed.laptop_id, "quantity": 1}], "shipping_address": SHIPPING_ADDRESS},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["price"] == "2499.99"
        assert response.json()["name"] == "Laptop"
        old = (await client.get(f"/api/v1/orders/{first.json()['id']}", headers=auth_headers)).json()
        assert old["items"][0]["unit_price"] == "1999.99"
        assert second.json()["items"][0]["unit_price"] == "2499.99"

    async def test_null_required_field_is_ignored(self, client, seed, auth_headers):
        response = await client.put(
            f"/api/v1/products/{seed.mouse_id}",
            json={"name": None, "is_featured": True},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["name"] == "Mouse"
        featured = await client.get("/api/v1/products/featured")
        assert {p["name"] for p in featured.json()} == {"Laptop", "Mouse"}

    async def test_slug_taken(self, client, seed, auth_headers):
        response = await client.put(
            f"/api/v1/products/{seed.mouse_id}", json={"slug": "laptop"}, headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["details"] == {"slug": "laptop"}

    async def test_update_unknown_product(self, client, seed, auth_headers):
        response = await client.put("/api/v1/products/99999", json={"price": "1.00"}, headers=auth_headers)

        assert response.status_code == 404


class TestDeleteProduct:
    """DELETE /api/v1/products/{id}"""

    async def test_delete_deactivates(self, client, seed, auth_headers):
        response = await client.delete(f"/api/v1/products/{seed.laptop_id}", headers=auth_headers)

        assert response.status_code == 204
        product = (await client.get(f"/api/v1/products/{seed.laptop_id}")).json()
        assert product["is_active"] is False
        featured = await client.get("/api/v1/products/featured")
        assert featured.json() == []

        order = await client.post(
            "/api/v1/orders",
            json={"items": [{"product_id": seed.laptop_id, "quantity": 1}], "shipping_address": SHIPPING_ADDRESS},
            headers=auth_headers,
        )
        assert order.status_code == 404
        assert order.json()["error"] == "product_not_found"

    async def test_delete_unknown_product(self, client, seed, auth_headers):
        response = await client.delete("/api/v1/products/99999", headers=auth_headers)

        assert response.status_code == 404

    async def test_requires_authentication(self, client, seed):
        response = await client.delete(f"/api/v1/products/{seed.laptop_id}")

        assert response.status_code == 401
