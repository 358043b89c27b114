"""Test helpers shared across modules (data builders, webhook signing)."""

import hashlib
import hmac
import json

from commerce.config import settings
from commerce.database import Database
from commerce.models import Product, ProductVariant

SHIPPING_ADDRESS = {
    "first_name": "Asha",
    "last_name": "Rao",
    "address_line1": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "zip_code": "560001",
    "country": "India",
}


async def stock_of(database: Database, product_id: int) -> int:
    async with database.session() as db_session:
        product = await db_session.get(Product, product_id)
        return product.quantity


async def variant_stock_of(database: Database, variant_id: int) -> int:
    async with database.session() as db_session:
        variant = await db_session.get(ProductVariant, variant_id)
        return variant.quantity


async def set_stock(database: Database, product_id: int, quantity: int) -> None:
    async with database.session() as db_session:
        product = await db_session.get(Product, product_id)
        product.quantity = quantity
        await db_session.commit()


def sign(body: bytes, secret: str = None) -> str:
    secret = secret or settings.RAZORPAY_WEBHOOK_SECRET
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def gateway_notes(razorpay_client) -> dict:
    """The notes the last payment link was created with."""
    return dict(razorpay_client.payment_link.create.call_args.args[0]["notes"])


def cart_notes(user_id, cart, email="asha@example.com", shipping_address=None) -> dict:
    """Notes for a link this service did not open, in the shape checkout sends (all strings)."""
    return {
        "user_id": str(user_id),
        "email": email,
        "cart": json.dumps(cart),
        "shipping_address": json.dumps(shipping_address or SHIPPING_ADDRESS),
    }


def paid_event(session_id: str, payment_id: str, notes: dict) -> bytes:
    """Serialized payment_link.paid webhook body."""
    return json.dumps({
        "entity": "event",
        "event": "payment_link.paid",
        "payload": {
            "payment_link": {"entity": {"id": session_id, "status": "paid", "notes": notes}},
            "payment": {"entity": {"id": payment_id, "status": "captured"}},
        },
    }).encode()


def link_event(event: str, session_id: str) -> bytes:
    return json.dumps({
        "entity": "event",
        "event": event,
        "payload": {"payment_link": {"entity": {"id": session_id, "status": event.split(".")[-1]}}},
    }).encode()
