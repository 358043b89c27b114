"""Inventory ledger for on-hand product stock."""
from typing import Optional, Tuple
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from commerce.models.product import Product, ProductVariant
from commerce.services.errors import InsufficientStock, ProductNotFound

logger = logging.getLogger(__name__)


class InventoryLedger:
    """
    Checks and adjusts stock counts.

    ``reserve`` and ``release`` only flush; they run inside the caller's
    transaction so stock and order rows commit or roll back together.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def available(product: Product, variant: Optional[ProductVariant] = None) -> int:
        """Stock on hand, preferring the variant's own count when it has one."""
        if variant is not None and variant.has_own_stock:
            return variant.quantity
        return product.quantity

    def check(
        self,
        product: Product,
        quantity: int,
        variant: Optional[ProductVariant] = None,
    ) -> int:
        """Return available stock, raising if ``quantity`` cannot be fulfilled."""
        available = self.available(product, variant)

        if not product.track_quantity or product.allow_backorder:
            return available

        if available < quantity:
            name = product.name if variant is None else f"{product.name} - {variant.name}"
            logger.warning(
                f"Insufficient stock for {name}: requested {quantity}, available {available}"
            )
            raise InsufficientStock(
                product_name=name,
                available=available,
                requested=quantity,
                product_id=product.id,
            )
        return available

    async def reserve(
        self,
        product_id: int,
        quantity: int,
        variant_id: Optional[int] = None,
    ) -> int:
        """Lock the stock row, re-check and decrement. Returns the new count."""
        product, variant = await self._lock(product_id, variant_id)
        self.check(product, quantity, variant)

        if not product.track_quantity:
            return self.available(product, variant)

        if variant is not None and variant.has_own_stock:
            variant.quantity -= quantity
            remaining = variant.quantity
        else:
            product.quantity -= quantity
            remaining = product.quantity

        await self.db.flush()
        logger.debug(f"Reserved {quantity} of product {product_id} (variant {variant_id}), {remaining} left")
        return remaining

    async def release(
        self,
        product_id: Optional[int],
        quantity: int,
        variant_id: Optional[int] = None,
    ) -> Optional[int]:
        """Give stock back, e.g. for a cancelled order. Returns the new count."""
        if product_id is None:
            # Product was deleted from the catalog after the order was placed
            return None

        try:
            product, variant = await self._lock(product_id, variant_id)
        except ProductNotFound:
            logger.warning(f"Cannot release stock for missing product {product_id}")
            return None

        if not product.track_quantity:
            return self.available(product, variant)

        if variant is not None and variant.has_own_stock:
            variant.quantity += quantity
            remaining = variant.quantity
        else:
            product.quantity += quantity
            remaining = product.quantity

        await self.db.flush()
        logger.debug(f"Released {quantity} of product {product_id} (variant {variant_id}), {remaining} now")
        return remaining

    async def _lock(
        self,
        product_id: int,
        variant_id: Optional[int],
    ) -> Tuple[Product, Optional[ProductVariant]]:
        # populate_existing refreshes rows already in the identity map so the
        # re-check sees the committed count, not a stale one
        result = await self.db.execute(
            select(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        product = result.scalar_one_or_none()
        if product is None:
            raise ProductNotFound(product_id, variant_id)

        variant = None
        if variant_id is not None:
            result = await self.db.execute(
                select(ProductVariant)
                .where(
                    ProductVariant.id == variant_id,
                    ProductVariant.product_id == product_id,
                )
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            variant = result.scalar_one_or_none()
            if variant is None:
                raise ProductNotFound(product_id, variant_id)

        return product, variant
