from commerce.models.user import User, UserAddress
from commerce.models.product import Category, Product, ProductVariant
from commerce.models.order import (
    Order, OrderItem, OrderStatus, OrderStatusHistory, PaymentStatus,
)
from commerce.models.checkout import CheckoutSession, CheckoutSessionStatus

__all__ = [
    "User",
    "UserAddress",
    "Category",
    "Product",
    "ProductVariant",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderStatusHistory",
    "PaymentStatus",
    "CheckoutSession",
    "CheckoutSessionStatus",
]
