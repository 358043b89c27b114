"""Checkout schemas for hosted payment sessions and webhooks."""
from pydantic import Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from commerce.schemas.base import BaseResponseSchema, BaseCreateSchema
from commerce.schemas.order import AddressInput, OrderItemCreate


class CheckoutCreate(BaseCreateSchema):
    """API request to start a hosted checkout."""
    items: List[OrderItemCreate] = []
    shipping_address: AddressInput
    customer_email: Optional[str] = Field(None, description="Defaults to the account email")
    success_url: Optional[str] = Field(None, description="Redirect after payment")
    cancel_url: Optional[str] = Field(None, description="Redirect when the customer backs out")


class CheckoutSessionResponse(BaseResponseSchema):
    """Payment session the client should redirect to."""
    session_id: str
    url: Optional[str] = None
    amount: Decimal
    status: str
    created_at: datetime


class WebhookAck(BaseResponseSchema):
    """Acknowledgement returned to Razorpay for every signed webhook."""
    status: str
    event: Optional[str] = None
    order_id: Optional[int] = None
    message: Optional[str] = None
