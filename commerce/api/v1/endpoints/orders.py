from typing import List

from fastapi import APIRouter, status

from commerce.api.deps import DB, CurrentUserId
from commerce.schemas.order import (
    OrderCreate,
    OrderUpdate,
    OrderItemAdd,
    OrderResponse,
    OrderDetailResponse,
    OrderItemResponse,
    OrderDeleteResponse,
    UserBrief,
    UserOrdersResponse,
)
from commerce.services.checkout_service import CheckoutOrchestrator
from commerce.services.order_builder import OrderBuilder
from commerce.services.order_repository import OrderRepository


router = APIRouter(tags=["Orders"])


@router.post(
    "",
    response_model=OrderDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_order(
    data: OrderCreate,
    db: DB,
    user_id: CurrentUserId,
):
    """
    Place an order for the authenticated user.

    Prices come from the catalog; stock is decremented in the same
    transaction as the order insert.
    """
    orchestrator = CheckoutOrchestrator(db)
    return await orchestrator.place_order(user_id, data)


@router.get("", response_model=List[OrderResponse])
async def list_orders(
    db: DB,
    user_id: CurrentUserId,
):
    """List all orders, newest first."""
    return await OrderRepository(db).list_all()


@router.get("/user/{owner_id}", response_model=UserOrdersResponse)
async def list_user_orders(
    owner_id: int,
    db: DB,
    user_id: CurrentUserId,
):
    """Get a user's summary and their orders in the order they were placed."""
    user, orders = await OrderRepository(db).list_by_user(owner_id)
    return UserOrdersResponse(
        user=UserBrief.model_validate(user),
        orders=[OrderResponse.model_validate(order) for order in orders],
    )


@router.get("/{order_id}", response_model=OrderDetailResponse)
async def get_order(
    order_id: int,
    db: DB,
    user_id: CurrentUserId,
):
    """Get order details with items, user summary and status history."""
    return await OrderRepository(db).get_by_id(order_id)


@router.put("/{order_id}", response_model=OrderDetailResponse)
async def update_order(
    order_id: int,
    data: OrderUpdate,
    db: DB,
    user_id: CurrentUserId,
):
    """Update order status, payment status, tracking or addresses."""
    repository = OrderRepository(db)

    shipping_address = None
    billing_address = None
    if data.shipping_address is not None or data.billing_address is not None:
        order = await repository.get_by_id(order_id)
        builder = OrderBuilder(db)
        if data.shipping_address is not None:
            shipping_address = await builder.resolve_address(
                order.user_id, data.shipping_address, "shipping_address"
            )
        if data.billing_address is not None:
            billing_address = await builder.resolve_address(
                order.user_id, data.billing_address, "billing_address"
            )

    return await repository.update_status(
        order_id,
        status=data.status,
        payment_status=data.payment_status,
        tracking_number=data.tracking_number,
        shipping_method=data.shipping_method,
        shipping_address=shipping_address,
        billing_address=billing_address,
        changed_by=user_id,
        notes=data.notes,
    )


@router.post(
    "/{order_id}/items",
    response_model=OrderItemResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_order_item(
    order_id: int,
    data: OrderItemAdd,
    db: DB,
    user_id: CurrentUserId,
):
    """Add a product to an order that has not shipped yet."""
    return await OrderRepository(db).add_item(
        order_id,
        product_id=data.product_id,
        quantity=data.quantity,
        variant_id=data.variant_id,
    )


@router.delete("/{order_id}/items/{item_id}", response_model=OrderItemResponse)
async def remove_order_item(
    order_id: int,
    item_id: int,
    db: DB,
    user_id: CurrentUserId,
):
    """Remove a line from an order that has not shipped yet."""
    return await OrderRepository(db).remove_item(order_id, item_id)


@router.delete("/{order_id}", response_model=OrderDeleteResponse)
async def delete_order(
    order_id: int,
    db: DB,
    user_id: CurrentUserId,
):
    """Delete an order together with its items."""
    deleted_id = await OrderRepository(db).delete(order_id)
    return OrderDeleteResponse(id=deleted_id)
