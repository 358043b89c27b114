from fastapi import APIRouter

from commerce.api.v1.endpoints import (
    orders,
    checkout,
    products,
)


# Create main API router
api_router = APIRouter(prefix="/api/v1")

# ==================== Catalog ====================
api_router.include_router(
    products.router,
    prefix="/products",
    tags=["Products"]
)

# ==================== Orders ====================
api_router.include_router(
    orders.router,
    prefix="/orders",
    tags=["Orders"]
)

# ==================== Checkout & Payment Webhooks ====================
api_router.include_router(
    checkout.router,
    prefix="/checkout",
    tags=["Checkout"]
)
