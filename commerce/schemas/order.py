from pydantic import Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from commerce.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


# ==================== ORDER ITEM SCHEMAS ====================

class OrderItemCreate(BaseCreateSchema):
    """Cart line. Prices always come from the catalog, never from the client."""
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(1, ge=1)


class OrderItemAdd(OrderItemCreate):
    """Line added to an existing order."""
    pass


class OrderItemResponse(BaseResponseSchema):
    """Order item response schema."""
    id: int
    order_id: int
    product_id: Optional[int] = None
    variant_id: Optional[int] = None
    product_name: str
    variant_name: Optional[str] = None
    sku: Optional[str] = None
    unit_price: Decimal
    compare_price: Optional[Decimal] = None
    quantity: int
    total_price: Decimal
    created_at: datetime


# ==================== STATUS HISTORY SCHEMAS ====================

class StatusHistoryResponse(BaseResponseSchema):
    """Order status history response."""
    id: int
    from_status: Optional[str] = None
    to_status: str
    changed_by: Optional[int] = None
    notes: Optional[str] = None
    created_at: datetime


# ==================== ORDER SCHEMAS ====================

class AddressInput(BaseCreateSchema):
    """
    Address input for order (can be existing address ID or new address data).

    Required fields are checked when the order is built so a missing field is
    reported like any other invalid order request.
    """
    address_id: Optional[int] = None
    # Or provide full address
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None


class OrderCreate(BaseCreateSchema):
    """Order creation schema."""
    items: List[OrderItemCreate] = []
    shipping_address: AddressInput
    billing_address: Optional[AddressInput] = None
    customer_email: Optional[str] = None  # Defaults to the account email
    customer_phone: Optional[str] = None
    customer_notes: Optional[str] = None


class OrderUpdate(BaseUpdateSchema):
    """
    Order update schema.

    Status values are plain strings so unknown values reach the service and
    are rejected there as invalid requests.
    """
    status: Optional[str] = None
    payment_status: Optional[str] = None
    tracking_number: Optional[str] = None
    shipping_method: Optional[str] = None
    shipping_address: Optional[AddressInput] = None
    billing_address: Optional[AddressInput] = None
    notes: Optional[str] = None


class UserBrief(BaseResponseSchema):
    """User summary embedded in order responses."""
    id: int
    name: str
    email: str


class OrderResponse(BaseResponseSchema):
    """Order response schema."""
    id: int
    order_number: str
    user_id: Optional[int] = None
    customer_email: str
    customer_phone: Optional[str] = None
    status: str
    payment_status: str
    subtotal: Decimal
    tax_amount: Decimal
    shipping_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    shipping_method: Optional[str] = None
    tracking_number: Optional[str] = None
    shipping_address: dict
    billing_address: Optional[dict] = None
    customer_notes: Optional[str] = None
    item_count: int
    created_at: datetime
    updated_at: datetime
    paid_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    items: List[OrderItemResponse] = []


class OrderDetailResponse(OrderResponse):
    """Detailed order response with user summary and history."""
    user: Optional[UserBrief] = None
    status_history: List[StatusHistoryResponse] = []


class UserOrdersResponse(BaseResponseSchema):
    """Orders placed by one user, oldest first."""
    user: UserBrief
    orders: List[OrderResponse]


class OrderDeleteResponse(BaseResponseSchema):
    id: int
    deleted: bool = True
