"""Errors raised by the order placement and fulfillment services.

Every error carries a stable ``code`` for clients and the HTTP status the
API layer answers with.
"""
from typing import Dict, Optional


class OrderError(Exception):
    """Base exception for order workflow errors."""
    code = "order_error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class InvalidRequest(OrderError):
    code = "invalid_request"


class Unauthenticated(OrderError):
    code = "unauthenticated"
    status_code = 401

    def __init__(self, message: str = "User not authenticated", details: Optional[Dict] = None):
        super().__init__(message, details)


class NotFound(OrderError):
    code = "not_found"
    status_code = 404


class ProductNotFound(NotFound):
    code = "product_not_found"

    def __init__(self, product_id: int, variant_id: Optional[int] = None):
        details = {"product_id": product_id}
        if variant_id is not None:
            details["variant_id"] = variant_id
        super().__init__(f"Product with ID {product_id} not found", details)
        self.product_id = product_id
        self.variant_id = variant_id


class InsufficientStock(OrderError):
    code = "insufficient_stock"

    def __init__(self, product_name: str, available: int, requested: int, product_id: Optional[int] = None):
        super().__init__(
            f"Insufficient inventory for product {product_name}",
            {
                "product_id": product_id,
                "product_name": product_name,
                "available": available,
                "requested": requested,
            },
        )
        self.product_name = product_name
        self.available = available
        self.requested = requested


class DuplicateItem(OrderError):
    code = "duplicate_item"

    def __init__(self, product_name: str, product_id: int, variant_id: Optional[int] = None):
        super().__init__(
            f"Product {product_name} already exists in this order",
            {"product_id": product_id, "variant_id": variant_id, "product_name": product_name},
        )
        self.product_name = product_name


class OrderLocked(OrderError):
    code = "order_locked"

    def __init__(self, order_number: str, status: str):
        super().__init__(
            f"Cannot modify order {order_number} in status {status}",
            {"order_number": order_number, "status": status},
        )
        self.status = status


class InvalidStatusTransition(OrderError):
    code = "invalid_status_transition"

    def __init__(self, field: str, current: str, requested: str):
        super().__init__(
            f"Cannot change {field} from {current} to {requested}",
            {"field": field, "current": current, "requested": requested},
        )


class InvalidSignature(OrderError):
    code = "invalid_signature"

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(message)


class Internal(OrderError):
    code = "internal_error"
    status_code = 500
