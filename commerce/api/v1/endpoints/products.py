from typing import List, Optional
from math import ceil

from fastapi import APIRouter, Query, Response, status

from commerce.api.deps import DB, CurrentUserId
from commerce.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductListResponse,
)
from commerce.services.errors import InvalidRequest, NotFound
from commerce.services.product_service import ProductService


router = APIRouter(tags=["Products"])


def _product_not_found(product_id: int) -> NotFound:
    return NotFound(f"Product with ID {product_id} not found", {"product_id": product_id})


# ==================== CATALOG READS ====================

@router.get("", response_model=ProductListResponse)
async def list_products(
    db: DB,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    category_id: Optional[int] = Query(None, description="Filter by category"),
    is_featured: Optional[bool] = Query(None, description="Filter featured products"),
    include_inactive: bool = Query(False, description="Include deactivated products"),
):
    """
    Get paginated list of products, newest first.
    Public endpoint for catalog browsing.
    """
    service = ProductService(db)
    skip = (page - 1) * size

    products, total = await service.get_products(
        category_id=category_id,
        is_featured=is_featured,
        is_active=None if include_inactive else True,
        skip=skip,
        limit=size,
    )

    return ProductListResponse(
        items=[ProductResponse.model_validate(p) for p in products],
        total=total,
        page=page,
        size=size,
        pages=ceil(total / size) if total > 0 else 1,
    )


@router.get("/featured", response_model=List[ProductResponse])
async def get_featured_products(
    db: DB,
    limit: int = Query(8, ge=1, le=50),
):
    """Get active featured products for the storefront."""
    return await ProductService(db).get_featured_products(limit=limit)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int,
    db: DB,
):
    """Get a product by ID with its variants."""
    product = await ProductService(db).get_product_by_id(product_id)
    if not product:
        raise _product_not_found(product_id)
    return product


# ==================== CATALOG MANAGEMENT ====================

@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_product(
    data: ProductCreate,
    db: DB,
    user_id: CurrentUserId,
):
    """Create a product (and its variants)."""
    service = ProductService(db)

    # Check SKU uniqueness
    if data.sku and await service.get_product_by_sku(data.sku):
        raise InvalidRequest(f"Product with SKU '{data.sku}' already exists", {"sku": data.sku})

    # Check slug uniqueness
    if await service.get_product_by_slug(data.slug):
        raise InvalidRequest(f"Product with slug '{data.slug}' already exists", {"slug": data.slug})

    if data.category_id and not await service.get_category_by_id(data.category_id):
        raise InvalidRequest("Category not found", {"category_id": data.category_id})

    return await service.create_product(data)


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    data: ProductUpdate,
    db: DB,
    user_id: CurrentUserId,
):
    """Update a product. Price changes apply to orders placed afterwards only."""
    service = ProductService(db)

    product = await service.get_product_by_id(product_id)
    if not product:
        raise _product_not_found(product_id)

    if data.sku and data.sku != product.sku:
        existing = await service.get_product_by_sku(data.sku)
        if existing:
            raise InvalidRequest(f"Product with SKU '{data.sku}' already exists", {"sku": data.sku})

    if data.slug and data.slug != product.slug:
        existing = await service.get_product_by_slug(data.slug)
        if existing:
            raise InvalidRequest(f"Product with slug '{data.slug}' already exists", {"slug": data.slug})

    if data.category_id and not await service.get_category_by_id(data.category_id):
        raise InvalidRequest("Category not found", {"category_id": data.category_id})

    return await service.update_product(product_id, data)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: int,
    db: DB,
    user_id: CurrentUserId,
):
    """Delete (deactivate) a product."""
    success = await ProductService(db).delete_product(product_id)
    if not success:
        raise _product_not_found(product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
