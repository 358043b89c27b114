"""
Payment Service - Razorpay Integration

Hosted checkout for the storefront is built on Razorpay Payment Links:
- Create a payment link for a validated cart
- Fetch a payment link to reconcile its state
- Verify webhook signatures
"""

import logging
import hmac
import hashlib
import json
from decimal import Decimal
from typing import Optional, Dict, Any, List

import razorpay
from pydantic import BaseModel

from commerce.config import settings
from commerce.services.errors import Internal

logger = logging.getLogger(__name__)


class PaymentLineItem(BaseModel):
    """Line shown to the customer on the hosted payment page."""
    name: str
    unit_price: Decimal
    quantity: int


class CheckoutSessionInfo(BaseModel):
    """Payment session as seen by the rest of the system."""
    session_id: str
    url: Optional[str] = None
    status: str = "created"
    amount: Optional[int] = None  # In paise
    payment_id: Optional[str] = None
    notes: Dict[str, Any] = {}

    @property
    def is_paid(self) -> bool:
        return self.status == "paid"


def to_paise(amount: Decimal) -> int:
    """Razorpay amounts are in the smallest currency unit."""
    return int((Decimal(str(amount)) * 100).to_integral_value())


class PaymentService:
    """
    Service for handling Razorpay payment links.
    """

    def __init__(self, client: Optional[razorpay.Client] = None):
        """Initialize Razorpay client."""
        self.client = client or razorpay.Client(
            auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET)
        )
        self.currency = settings.CURRENCY

    def create_session(
        self,
        line_items: List[PaymentLineItem],
        success_url: str,
        cancel_url: str,
        customer_email: str,
        metadata: Dict[str, Any],
        amount: Decimal,
    ) -> CheckoutSessionInfo:
        """
        Create a payment link for a priced cart.

        Args:
            line_items: Lines for the payment page description
            success_url: Where Razorpay sends the customer after paying
            cancel_url: Kept in notes for the storefront's "back to cart" link
            customer_email: Prefilled on the payment page
            metadata: user_id, email, cart and shipping address, stored as link notes
            amount: Order total including tax and shipping

        Returns:
            CheckoutSessionInfo with the link ID and short URL
        """
        # Notes only hold strings; the cart and address are serialized as JSON
        notes = {
            key: value if isinstance(value, str) else json.dumps(value, separators=(",", ":"))
            for key, value in metadata.items()
            if value is not None
        }
        notes["cancel_url"] = cancel_url

        description = ", ".join(f"{item.quantity} x {item.name}" for item in line_items)

        link_data = {
            "amount": to_paise(amount),
            "currency": self.currency,
            "accept_partial": False,
            "description": description[:2048],
            "customer": {"email": customer_email},
            "notify": {"email": False, "sms": False},
            "notes": notes,
            "callback_url": success_url,
            "callback_method": "get",
        }

        try:
            link = self.client.payment_link.create(link_data)
        except Exception as e:
            logger.error(f"Failed to create Razorpay payment link: {e}")
            raise Internal("Could not create payment session") from e

        logger.info(f"Created Razorpay payment link {link['id']} for {customer_email}")

        return CheckoutSessionInfo(
            session_id=link["id"],
            url=link.get("short_url"),
            status=link.get("status", "created"),
            amount=link.get("amount"),
            notes=link.get("notes") or {},
        )

    def retrieve_session(self, session_id: str) -> CheckoutSessionInfo:
        """
        Fetch a payment link and the payment that settled it, if any.

        Args:
            session_id: Razorpay payment link ID (plink_xxx)
        """
        try:
            link = self.client.payment_link.fetch(session_id)
        except Exception as e:
            logger.error(f"Failed to fetch payment link {session_id}: {e}")
            raise Internal("Could not fetch payment session") from e

        payment_id = None
        for payment in link.get("payments") or []:
            if payment.get("status") == "captured":
                payment_id = payment.get("payment_id")
                break

        return CheckoutSessionInfo(
            session_id=link["id"],
            url=link.get("short_url"),
            status=link.get("status", "created"),
            amount=link.get("amount"),
            payment_id=payment_id,
            notes=link.get("notes") or {},
        )

    def verify_webhook_signature(self, body: bytes, signature: Optional[str]) -> bool:
        """
        Verify Razorpay webhook signature.

        Args:
            body: Raw request body bytes
            signature: X-Razorpay-Signature header value

        Returns:
            True if signature is valid, False otherwise
        """
        webhook_secret = settings.RAZORPAY_WEBHOOK_SECRET

        if not webhook_secret:
            logger.warning("Webhook secret not configured")
            return False

        if not signature:
            logger.warning("Webhook received without signature")
            return False

        # Generate expected signature
        expected_signature = hmac.new(
            webhook_secret.encode(),
            body,
            hashlib.sha256
        ).hexdigest()

        # Compare signatures (constant-time comparison)
        is_valid = hmac.compare_digest(expected_signature, signature)

        if not is_valid:
            logger.warning("Invalid webhook signature")

        return is_valid


# Webhook event types
class WebhookEvent:
    """Razorpay webhook event types handled by checkout."""
    PAYMENT_LINK_PAID = "payment_link.paid"
    PAYMENT_LINK_EXPIRED = "payment_link.expired"
    PAYMENT_LINK_CANCELLED = "payment_link.cancelled"


def get_payment_service() -> PaymentService:
    """FastAPI dependency; overridden in tests."""
    return PaymentService()
