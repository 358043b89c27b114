"""HTTP tests for hosted checkout and the Razorpay webhook."""

from tests.helpers import SHIPPING_ADDRESS, cart_notes, gateway_notes, paid_event, sign, stock_of


async def start_checkout(client, seed, auth_headers):
    response = await client.post(
        "/api/v1/checkout",
        json={
            "items": [
                {"product_id": seed.laptop_id, "quantity": 1},
                {"product_id": seed.mouse_id, "quantity": 2},
            ],
            "shipping_address": SHIPPING_ADDRESS,
            "success_url": "https://shop.example.com/thanks",
        },
        headers=auth_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestCheckoutSession:
    """POST /api/v1/checkout"""

    async def test_create_session(self, client, seed, auth_headers, razorpay_client):
        data = await start_checkout(client, seed, auth_headers)

        assert data["session_id"] == "plink_test123"
        assert data["url"] == "https://rzp.io/i/test123"
        assert data["amount"] == "2649.97"
        assert data["status"] == "pending"
        link_data = razorpay_client.payment_link.create.call_args.args[0]
        assert link_data["callback_url"] == "https://shop.example.com/thanks"

    async def test_requires_authentication(self, client, seed):
        response = await client.post("/api/v1/checkout", json={"items": [], "shipping_address": SHIPPING_ADDRESS})

        assert response.status_code == 401

    async def test_gateway_failure(self, client, seed, auth_headers, razorpay_client):
        razorpay_client.payment_link.create.side_effect = RuntimeError("gateway timeout")

        response = await client.post(
            "/api/v1/checkout",
            json={"items": [{"product_id": seed.mouse_id, "quantity": 1}], "shipping_address": SHIPPING_ADDRESS},
            headers=auth_headers,
        )

        assert response.status_code == 500
        assert response.json()["error"] == "internal_error"


class TestWebhookEndpoint:
    """POST /api/v1/checkout/webhook"""

    async def test_invalid_signature(self, client, database, seed, auth_headers, razorpay_client):
        session = await start_checkout(client, seed, auth_headers)
        body = paid_event(session["session_id"], "pay_abc", gateway_notes(razorpay_client))

        response = await client.post(
            "/api/v1/checkout/webhook",
            content=body,
            headers={"X-Razorpay-Signature": "0" * 64, "Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_signature"
        orders = await client.get("/api/v1/orders", headers=auth_headers)
        assert orders.json() == []
        assert await stock_of(database, seed.laptop_id) == 5

    async def test_paid_webhook_creates_order(self, client, database, seed, auth_headers, razorpay_client):
        session = await start_checkout(client, seed, auth_headers)
        body = paid_event(session["session_id"], "pay_abc", gateway_notes(razorpay_client))

        response = await client.post(
            "/api/v1/checkout/webhook",
            content=body,
            headers={"X-Razorpay-Signature": sign(body), "Content-Type": "application/json"},
        )

        assert response.status_code == 200
        ack = response.json()
        assert ack["status"] == "processed"
        assert ack["event"] == "payment_link.paid"

        order = (await client.get(f"/api/v1/orders/{ack['order_id']}", headers=auth_headers)).json()
        assert order["status"] == "confirmed"
        assert order["payment_status"] == "paid"
        assert order["transaction_id"] == "pay_abc"
        assert order["total_amount"] == "2649.97"
        assert await stock_of(database, seed.laptop_id) == 4

    async def test_failed_fulfillment_still_acknowledged(self, client, database, seed, auth_headers):
        session = await start_checkout(client, seed, auth_headers)
        cart = [{"product_id": 99999, "variant_id": None, "quantity": 1}]
        body = paid_event(session["session_id"], "pay_abc", cart_notes(seed.user_id, cart))

        response = await client.post(
            "/api/v1/checkout/webhook",
            content=body,
            headers={"X-Razorpay-Signature": sign(body), "Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "failed"

    async def test_signed_non_object_payload(self, client, seed):
        body = b"[]"

        response = await client.post(
            "/api/v1/checkout/webhook",
            content=body,
            headers={"X-Razorpay-Signature": sign(body), "Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "ignored"
