"""
Checkout API endpoints for Razorpay payment links.

Handles:
- Hosted checkout session creation
- Webhook handling for payment link events
"""

import logging
from typing import Optional

from fastapi import APIRouter, status, Request, Header

from commerce.api.deps import DB, CurrentUserId, Payments
from commerce.schemas.checkout import CheckoutCreate, CheckoutSessionResponse, WebhookAck
from commerce.services.checkout_service import CheckoutOrchestrator

logger = logging.getLogger(__name__)


router = APIRouter(tags=["Checkout"])


@router.post(
    "",
    response_model=CheckoutSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a hosted checkout",
)
async def create_checkout_session(
    data: CheckoutCreate,
    db: DB,
    user_id: CurrentUserId,
    payments: Payments,
):
    """
    Validate the cart and open a Razorpay payment link for it.

    The order itself is created by the webhook once the link is paid.
    """
    orchestrator = CheckoutOrchestrator(db, payment_service=payments)
    return await orchestrator.start_checkout(user_id, data)


@router.post(
    "/webhook",
    response_model=WebhookAck,
    summary="Razorpay webhook handler",
    include_in_schema=False  # Called by Razorpay servers only
)
async def razorpay_webhook(
    request: Request,
    db: DB,
    payments: Payments,
    x_razorpay_signature: Optional[str] = Header(None, alias="X-Razorpay-Signature"),
):
    """
    Handle Razorpay webhook events.

    Events handled:
    - payment_link.paid: create the paid order from the session's cart
    - payment_link.expired / payment_link.cancelled: close the session

    Security:
    - Verifies webhook signature using RAZORPAY_WEBHOOK_SECRET; unsigned or
      mis-signed deliveries get 400 and are never parsed
    - Idempotent: safe to receive duplicate events
    """
    # Raw body is needed for signature verification
    body = await request.body()

    orchestrator = CheckoutOrchestrator(db, payment_service=payments)
    result = await orchestrator.handle_webhook(body, x_razorpay_signature)
    return WebhookAck.model_validate(result)
