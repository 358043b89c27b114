from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal

from commerce.schemas.base import BaseResponseSchema, BaseCreateSchema, BaseUpdateSchema


# ==================== VARIANT SCHEMAS ====================

class ProductVariantCreate(BaseCreateSchema):
    """Variant created together with its product. Unset price or stock falls back to the parent."""
    name: str = Field(..., min_length=1, max_length=255)
    sku: Optional[str] = Field(None, max_length=50)
    attributes: Optional[dict] = None
    price: Optional[Decimal] = Field(None, ge=0)
    compare_price: Optional[Decimal] = Field(None, ge=0)
    quantity: Optional[int] = None


class ProductVariantResponse(BaseResponseSchema):
    id: int
    name: str
    sku: Optional[str] = None
    attributes: Optional[dict] = None
    price: Optional[Decimal] = None
    compare_price: Optional[Decimal] = None
    quantity: Optional[int] = None
    is_active: bool


# ==================== PRODUCT SCHEMAS ====================

class ProductCreate(BaseCreateSchema):
    """Product creation schema."""
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=280)
    sku: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    image: Optional[str] = Field(None, max_length=500)
    category_id: Optional[int] = None

    price: Decimal = Field(..., ge=0, description="Selling price")
    compare_price: Optional[Decimal] = Field(None, ge=0)

    quantity: int = Field(0, description="On-hand stock")
    track_quantity: bool = True
    allow_backorder: bool = False

    is_featured: bool = False
    is_active: bool = True

    variants: List[ProductVariantCreate] = []


class ProductUpdate(BaseUpdateSchema):
    """Product update schema. Only the fields sent are changed."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, min_length=1, max_length=280)
    sku: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    image: Optional[str] = Field(None, max_length=500)
    category_id: Optional[int] = None

    price: Optional[Decimal] = Field(None, ge=0)
    compare_price: Optional[Decimal] = Field(None, ge=0)

    quantity: Optional[int] = None
    track_quantity: Optional[bool] = None
    allow_backorder: Optional[bool] = None

    is_featured: Optional[bool] = None
    is_active: Optional[bool] = None


class ProductResponse(BaseResponseSchema):
    """Product response with its variants."""
    id: int
    name: str
    slug: str
    sku: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    category_id: Optional[int] = None
    price: Decimal
    compare_price: Optional[Decimal] = None
    quantity: int
    track_quantity: bool
    allow_backorder: bool
    is_featured: bool
    is_active: bool
    variants: List[ProductVariantResponse] = []
    created_at: datetime
    updated_at: datetime


class ProductListResponse(BaseModel):
    """Paginated product list."""
    items: List[ProductResponse]
    total: int
    page: int
    size: int
    pages: int
