from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar
from enum import Enum
import logging
import secrets
import string

from sqlalchemy import select
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from commerce.models.order import (
    Order, OrderItem, OrderStatus, OrderStatusHistory, PaymentStatus,
    ORDER_STATUS_TRANSITIONS, PAYMENT_STATUS_TRANSITIONS, STOCK_SETTLED_STATUSES,
)
from commerce.models.user import User
from commerce.services.errors import (
    DuplicateItem, Internal, InvalidRequest, InvalidStatusTransition,
    NotFound, OrderError, OrderLocked,
)
from commerce.services.inventory_service import InventoryLedger
from commerce.services.order_builder import OrderBuilder, OrderDraft
from commerce.services.pricing_service import PricingCalculator

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

ORDER_NUMBER_ALPHABET = string.digits + string.ascii_uppercase

# Timestamp stamped the first time an order enters a status
STATUS_TIMESTAMPS = {
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.SHIPPED: "shipped_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


def generate_order_number() -> str:
    """Generate order number: ORD-YYYYMMDDHHMMSS-XXXXXX (random base36 suffix)."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    suffix = "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(6))
    return f"ORD-{stamp}-{suffix}"


def _parse_enum(enum_cls: Type[E], value: Any, field: str) -> Optional[E]:
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        allowed = [member.value for member in enum_cls]
        raise InvalidRequest(
            f"Invalid {field}: {value}",
            {"field": field, "value": value, "allowed": allowed},
        )


class OrderRepository:
    """
    Persists orders and their line items.

    Every public mutation commits on success and rolls back everything
    (including stock changes) on failure.
    """

    def __init__(
        self,
        db: AsyncSession,
        inventory: Optional[InventoryLedger] = None,
        pricing: Optional[PricingCalculator] = None,
    ):
        self.db = db
        self.inventory = inventory or InventoryLedger(db)
        self.pricing = pricing or PricingCalculator()

    @asynccontextmanager
    async def _atomic(self, action: str):
        try:
            yield
            await self.db.commit()
        except OrderError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error while trying to {action}: {e}")
            raise Internal(f"Could not {action}") from e

    # ==================== QUERIES ====================

    async def get_by_id(self, order_id: int) -> Order:
        """Get order with items, user summary and status history."""
        stmt = (
            select(Order)
            .options(
                selectinload(Order.user),
                selectinload(Order.items),
                selectinload(Order.status_history),
            )
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        order = (await self.db.execute(stmt)).scalar_one_or_none()
        if order is None:
            raise NotFound(f"Order {order_id} not found", {"order_id": order_id})
        return order

    async def list_all(self) -> List[Order]:
        """All orders, newest first."""
        stmt = (
            select(Order)
            .options(selectinload(Order.user), selectinload(Order.items))
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def list_by_user(self, user_id: int) -> Tuple[User, List[Order]]:
        """A user's orders in the order they were placed."""
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found", {"user_id": user_id})

        stmt = (
            select(Order)
            .options(selectinload(Order.items))
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.asc(), Order.id.asc())
        )
        result = await self.db.execute(stmt)
        return user, list(result.scalars().all())

    async def get_by_transaction_id(self, transaction_id: str) -> Optional[Order]:
        stmt = select(Order).where(Order.transaction_id == transaction_id)
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _get_for_update(self, order_id: int) -> Order:
        stmt = (
            select(Order)
            .options(selectinload(Order.items), selectinload(Order.status_history))
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        order = (await self.db.execute(stmt)).scalar_one_or_none()
        if order is None:
            raise NotFound(f"Order {order_id} not found", {"order_id": order_id})
        return order

    # ==================== CREATE ====================

    async def create(
        self,
        draft: OrderDraft,
        status: OrderStatus = OrderStatus.PENDING,
        payment_status: PaymentStatus = PaymentStatus.PENDING,
        payment_method: Optional[str] = None,
        transaction_id: Optional[str] = None,
        commit: bool = True,
    ) -> Order:
        """
        Insert the order, its items and the stock decrement in one transaction.

        With ``commit=False`` the caller owns the transaction (the webhook
        fulfillment also marks its checkout session before committing).
        Failures always roll back.
        """
        now = datetime.now(timezone.utc)
        pricing = draft.pricing

        try:
            order = await self._insert_order(
                Order(
                    user_id=draft.user_id,
                    customer_email=draft.customer_email,
                    customer_phone=draft.customer_phone,
                    status=status.value,
                    payment_status=payment_status.value,
                    subtotal=pricing.subtotal,
                    tax_amount=pricing.tax_amount,
                    shipping_amount=pricing.shipping_amount,
                    discount_amount=pricing.discount_amount,
                    total_amount=pricing.total,
                    payment_method=payment_method,
                    transaction_id=transaction_id,
                    shipping_address=draft.shipping_address,
                    billing_address=draft.billing_address,
                    customer_notes=draft.customer_notes,
                    paid_at=now if payment_status == PaymentStatus.PAID else None,
                    confirmed_at=now if status == OrderStatus.CONFIRMED else None,
                )
            )

            for snapshot in draft.items:
                self.db.add(OrderItem(
                    order_id=order.id,
                    product_id=snapshot.product_id,
                    variant_id=snapshot.variant_id,
                    product_name=snapshot.product_name,
                    variant_name=snapshot.variant_name,
                    sku=snapshot.sku,
                    unit_price=snapshot.unit_price,
                    compare_price=snapshot.compare_price,
                    quantity=snapshot.quantity,
                    total_price=snapshot.total_price,
                ))
                await self.inventory.reserve(
                    snapshot.product_id, snapshot.quantity, snapshot.variant_id
                )

            self.db.add(OrderStatusHistory(
                order_id=order.id,
                from_status=None,
                to_status=status.value,
                changed_by=draft.user_id,
                notes="Order created",
            ))

            if commit:
                await self.db.commit()
            else:
                await self.db.flush()
        except OrderError:
            await self.db.rollback()
            raise
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(f"Database integrity error creating order: {e}")
            raise Internal("Order creation failed: Invalid data reference") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error creating order: {e}")
            raise Internal("Order creation failed: Database error") from e

        logger.info(
            f"Order {order.order_number} created for {draft.customer_email}: "
            f"{len(draft.items)} items, total {pricing.total}"
        )
        if not commit:
            return order
        return await self.get_by_id(order.id)

    async def _insert_order(self, order: Order) -> Order:
        # The random suffix makes collisions rare; retry once on the unique index
        for attempt in range(2):
            order.order_number = generate_order_number()
            try:
                async with self.db.begin_nested():
                    self.db.add(order)
                    await self.db.flush()
                return order
            except IntegrityError:
                if attempt == 1:
                    raise
                logger.warning(f"Order number {order.order_number} already taken, regenerating")
        return order

    # ==================== UPDATE ====================

    async def update_status(
        self,
        order_id: int,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        tracking_number: Optional[str] = None,
        shipping_method: Optional[str] = None,
        shipping_address: Optional[Dict[str, Any]] = None,
        billing_address: Optional[Dict[str, Any]] = None,
        changed_by: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> Order:
        """Apply status, payment and shipping changes to an order."""
        new_status = _parse_enum(OrderStatus, status, "status")
        new_payment_status = _parse_enum(PaymentStatus, payment_status, "payment_status")

        async with self._atomic("update order"):
            order = await self._get_for_update(order_id)
            now = datetime.now(timezone.utc)

            if (shipping_address is not None or billing_address is not None) and order.is_locked:
                raise OrderLocked(order.order_number, order.status)

            current_status = OrderStatus(order.status)
            if new_status is not None and new_status != current_status:
                if new_status not in ORDER_STATUS_TRANSITIONS[current_status]:
                    raise InvalidStatusTransition("status", current_status.value, new_status.value)

            current_payment = PaymentStatus(order.payment_status)
            if new_payment_status is not None and new_payment_status != current_payment:
                if new_payment_status not in PAYMENT_STATUS_TRANSITIONS[current_payment]:
                    raise InvalidStatusTransition(
                        "payment_status", current_payment.value, new_payment_status.value
                    )
                order.payment_status = new_payment_status.value
                if new_payment_status == PaymentStatus.PAID and order.paid_at is None:
                    order.paid_at = now

            if new_status is not None and new_status != current_status:
                if (
                    new_status in (OrderStatus.CANCELLED, OrderStatus.REFUNDED)
                    and current_status not in STOCK_SETTLED_STATUSES
                ):
                    await self._release_items(order.items)

                order.status = new_status.value
                stamp = STATUS_TIMESTAMPS.get(new_status)
                if stamp and getattr(order, stamp) is None:
                    setattr(order, stamp, now)

                self.db.add(OrderStatusHistory(
                    order_id=order.id,
                    from_status=current_status.value,
                    to_status=new_status.value,
                    changed_by=changed_by,
                    notes=notes,
                ))
                logger.info(
                    f"Order {order.order_number} status {current_status.value} -> {new_status.value}"
                )

            if tracking_number is not None:
                order.tracking_number = tracking_number
            if shipping_method is not None:
                order.shipping_method = shipping_method
            if shipping_address is not None:
                order.shipping_address = shipping_address
            if billing_address is not None:
                order.billing_address = billing_address

        return await self.get_by_id(order_id)

    # ==================== LINE ITEMS ====================

    async def add_item(
        self,
        order_id: int,
        product_id: int,
        quantity: int,
        variant_id: Optional[int] = None,
    ) -> OrderItem:
        """Add a new product line to an open order and recompute its totals."""
        if quantity is None or quantity < 1:
            raise InvalidRequest("Item quantity must be at least 1", {"quantity": quantity})

        async with self._atomic("add item to order"):
            order = await self._get_for_update(order_id)
            if order.is_locked:
                raise OrderLocked(order.order_number, order.status)

            for existing in order.items:
                if existing.product_id == product_id and existing.variant_id == variant_id:
                    raise DuplicateItem(existing.product_name, product_id, variant_id)

            builder = OrderBuilder(self.db, pricing=self.pricing, inventory=self.inventory)
            product, variant = await builder.resolve_product(product_id, variant_id)
            await self.inventory.reserve(product_id, quantity, variant_id)
            snapshot = builder.snapshot(product, variant, quantity)

            item = OrderItem(
                product_id=snapshot.product_id,
                variant_id=snapshot.variant_id,
                product_name=snapshot.product_name,
                variant_name=snapshot.variant_name,
                sku=snapshot.sku,
                unit_price=snapshot.unit_price,
                compare_price=snapshot.compare_price,
                quantity=snapshot.quantity,
                total_price=snapshot.total_price,
            )
            order.items.append(item)
            self._recompute_totals(order)
            await self.db.flush()

        logger.info(f"Added {quantity} x {item.product_name} to order {order.order_number}")
        return item

    async def remove_item(self, order_id: int, item_id: int) -> OrderItem:
        """Remove a line from an open order, give its stock back and recompute totals."""
        async with self._atomic("remove item from order"):
            order = await self._get_for_update(order_id)
            item = next((i for i in order.items if i.id == item_id), None)
            if item is None:
                raise NotFound(
                    f"Item {item_id} not found in order {order_id}",
                    {"order_id": order_id, "item_id": item_id},
                )
            if order.is_locked:
                raise OrderLocked(order.order_number, order.status)
            if len(order.items) == 1:
                raise InvalidRequest(
                    "Cannot remove the last item of an order; delete or cancel the order instead",
                    {"order_id": order_id, "item_id": item_id},
                )

            await self._release_items([item])
            order.items.remove(item)
            self._recompute_totals(order)

        logger.info(f"Removed {item.product_name} from order {order.order_number}")
        return item

    # ==================== DELETE ====================

    async def delete(self, order_id: int) -> int:
        """Delete the order and its items; unshipped stock goes back on the shelf."""
        async with self._atomic("delete order"):
            order = await self._get_for_update(order_id)

            if OrderStatus(order.status) not in STOCK_SETTLED_STATUSES:
                await self._release_items(order.items)

            # Items and history go with the order (delete-orphan cascade)
            await self.db.delete(order)
            order_number = order.order_number

        logger.info(f"Order {order_number} deleted")
        return order_id

    # ==================== HELPERS ====================

    async def _release_items(self, items: List[OrderItem]) -> None:
        for item in items:
            await self.inventory.release(item.product_id, item.quantity, item.variant_id)

    def _recompute_totals(self, order: Order) -> None:
        breakdown = self.pricing.price(order.items)
        order.subtotal = breakdown.subtotal
        order.tax_amount = breakdown.tax_amount
        order.shipping_amount = breakdown.shipping_amount
        order.discount_amount = breakdown.discount_amount
        order.total_amount = breakdown.total
