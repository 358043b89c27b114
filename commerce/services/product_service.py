from typing import List, Optional, Tuple

from sqlalchemy import select, func, and_
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from commerce.models.product import Category, Product, ProductVariant
from commerce.schemas.product import ProductCreate, ProductUpdate

# Columns an update may not clear
REQUIRED_FIELDS = {
    "name", "slug", "price", "quantity",
    "track_quantity", "allow_backorder", "is_featured", "is_active",
}


class ProductService:
    """Catalog management for the products the order engine sells."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_products(
        self,
        category_id: Optional[int] = None,
        is_featured: Optional[bool] = None,
        is_active: Optional[bool] = True,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Product], int]:
        """Get products with filters, newest first."""
        filters = []

        if category_id:
            filters.append(Product.category_id == category_id)

        if is_featured is not None:
            filters.append(Product.is_featured == is_featured)

        if is_active is not None:
            filters.append(Product.is_active == is_active)

        count_stmt = select(func.count(Product.id))
        stmt = select(Product).options(selectinload(Product.variants))
        if filters:
            count_stmt = count_stmt.where(and_(*filters))
            stmt = stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar()

        stmt = (
            stmt.order_by(Product.created_at.desc(), Product.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def get_featured_products(self, limit: int = 8) -> List[Product]:
        products, _ = await self.get_products(is_featured=True, is_active=True, limit=limit)
        return products

    async def get_product_by_id(self, product_id: int) -> Optional[Product]:
        """Get product by ID with its variants."""
        stmt = (
            select(Product)
            .options(selectinload(Product.variants))
            .where(Product.id == product_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_product_by_sku(self, sku: str) -> Optional[Product]:
        result = await self.db.execute(select(Product).where(Product.sku == sku))
        return result.scalar_one_or_none()

    async def get_product_by_slug(self, slug: str) -> Optional[Product]:
        result = await self.db.execute(select(Product).where(Product.slug == slug))
        return result.scalar_one_or_none()

    async def get_category_by_id(self, category_id: int) -> Optional[Category]:
        return await self.db.get(Category, category_id)

    async def create_product(self, data: ProductCreate) -> Product:
        """Create a product together with its variants."""
        product_data = data.model_dump(exclude={"variants"})
        product = Product(
            **product_data,
            variants=[ProductVariant(**variant.model_dump()) for variant in data.variants],
        )
        self.db.add(product)
        await self.db.commit()
        return await self.get_product_by_id(product.id)

    async def update_product(self, product_id: int, data: ProductUpdate) -> Optional[Product]:
        """Update a product."""
        product = await self.get_product_by_id(product_id)
        if not product:
            return None

        update_data = data.model_dump(exclude_unset=True)
        for key, value in update_data.items():
            if value is None and key in REQUIRED_FIELDS:
                continue
            setattr(product, key, value)

        await self.db.commit()
        return await self.get_product_by_id(product_id)

    async def delete_product(self, product_id: int) -> bool:
        """
        Soft delete a product by deactivating it.

        Past order lines keep pointing at the row; the builder refuses
        inactive products for new orders.
        """
        product = await self.get_product_by_id(product_id)
        if not product:
            return False

        product.is_active = False
        product.is_featured = False
        await self.db.commit()
        return True
