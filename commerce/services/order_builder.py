"""Order Builder: turns a cart into a priced, not-yet-persisted order draft."""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
import logging

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from commerce.models.product import Product, ProductVariant
from commerce.models.user import UserAddress
from commerce.services.errors import InvalidRequest, NotFound, ProductNotFound
from commerce.services.inventory_service import InventoryLedger
from commerce.services.pricing_service import PriceBreakdown, PricingCalculator

logger = logging.getLogger(__name__)

REQUIRED_ADDRESS_FIELDS = (
    "first_name",
    "last_name",
    "address_line1",
    "city",
    "state",
    "zip_code",
    "country",
)

ADDRESS_FIELDS = REQUIRED_ADDRESS_FIELDS + ("company", "address_line2", "phone")

AddressLike = Union[Mapping[str, Any], BaseModel]


@dataclass
class LineItemSnapshot:
    """Catalog data copied onto an order line."""
    product_id: int
    variant_id: Optional[int]
    product_name: str
    variant_name: Optional[str]
    sku: Optional[str]
    unit_price: Decimal
    compare_price: Optional[Decimal]
    quantity: int
    total_price: Decimal


@dataclass
class OrderDraft:
    """Everything needed to persist an order, with nothing written yet."""
    user_id: Optional[int]
    customer_email: str
    shipping_address: Dict[str, Any]
    items: List[LineItemSnapshot]
    pricing: PriceBreakdown
    billing_address: Optional[Dict[str, Any]] = None
    customer_phone: Optional[str] = None
    customer_notes: Optional[str] = None

    @property
    def cart(self) -> List[Dict[str, Any]]:
        """Minimal cart representation carried through the payment session."""
        return [
            {"product_id": i.product_id, "variant_id": i.variant_id, "quantity": i.quantity}
            for i in self.items
        ]


def _line_value(line: Any, key: str) -> Any:
    if isinstance(line, Mapping):
        return line.get(key)
    return getattr(line, key, None)


class OrderBuilder:
    """
    Validates a cart against the catalog and prices it.

    Checks run in order and stop at the first failure:
    1. Request shape (items present, shipping address complete)
    2. Every product or variant exists and is active
    3. Enough stock for each line
    4. Pricing
    """

    def __init__(
        self,
        db: AsyncSession,
        pricing: Optional[PricingCalculator] = None,
        inventory: Optional[InventoryLedger] = None,
    ):
        self.db = db
        self.pricing = pricing or PricingCalculator()
        self.inventory = inventory or InventoryLedger(db)

    async def build(
        self,
        user_id: Optional[int],
        customer_email: Optional[str],
        shipping_address: Optional[AddressLike],
        items: Optional[Sequence[Any]],
        billing_address: Optional[AddressLike] = None,
        customer_phone: Optional[str] = None,
        customer_notes: Optional[str] = None,
    ) -> OrderDraft:
        if not items:
            raise InvalidRequest("Order must contain at least one item")
        if not customer_email:
            raise InvalidRequest("Customer email is required")

        lines = self._normalize_lines(items)
        shipping = await self.resolve_address(user_id, shipping_address, "shipping_address")
        billing = None
        if billing_address is not None:
            billing = await self.resolve_address(user_id, billing_address, "billing_address")

        resolved = []
        for (product_id, variant_id), quantity in lines.items():
            product, variant = await self.resolve_product(product_id, variant_id)
            resolved.append((product, variant, quantity))

        for product, variant, quantity in resolved:
            self.inventory.check(product, quantity, variant)

        snapshots = [self.snapshot(product, variant, quantity) for product, variant, quantity in resolved]
        pricing = self.pricing.price(snapshots)

        return OrderDraft(
            user_id=user_id,
            customer_email=customer_email,
            shipping_address=shipping,
            billing_address=billing,
            items=snapshots,
            pricing=pricing,
            customer_phone=customer_phone or shipping.get("phone"),
            customer_notes=customer_notes,
        )

    def _normalize_lines(self, items: Sequence[Any]) -> Dict[Tuple[int, Optional[int]], int]:
        """Validate cart lines and merge repeats of the same product/variant."""
        merged: Dict[Tuple[int, Optional[int]], int] = {}
        for line in items:
            product_id = _line_value(line, "product_id")
            variant_id = _line_value(line, "variant_id")
            quantity = _line_value(line, "quantity")
            if product_id is None:
                raise InvalidRequest("Each item needs a product_id")
            try:
                product_id = int(product_id)
                variant_id = int(variant_id) if variant_id is not None else None
                quantity = int(quantity)
            except (TypeError, ValueError):
                raise InvalidRequest(
                    "Item ids and quantities must be integers",
                    {"product_id": product_id, "variant_id": variant_id, "quantity": quantity},
                )
            if quantity < 1:
                raise InvalidRequest(
                    "Item quantity must be at least 1",
                    {"product_id": product_id, "quantity": quantity},
                )
            key = (product_id, variant_id)
            merged[key] = merged.get(key, 0) + quantity
        return merged

    async def resolve_address(
        self,
        user_id: Optional[int],
        address: Optional[AddressLike],
        field_name: str = "shipping_address",
    ) -> Dict[str, Any]:
        """Return an address snapshot, loading a saved address when referenced by id."""
        if address is None:
            raise InvalidRequest(f"{field_name} is required")
        if isinstance(address, BaseModel):
            address = address.model_dump(exclude_none=True)
        else:
            address = {k: v for k, v in dict(address).items() if v is not None}

        address_id = address.get("address_id")
        if address_id is not None:
            saved = await self.db.get(UserAddress, address_id)
            if saved is None or user_id is None or saved.user_id != user_id:
                raise NotFound(f"Address {address_id} not found", {"address_id": address_id})
            return saved.to_snapshot()

        missing = [
            name for name in REQUIRED_ADDRESS_FIELDS
            if not str(address.get(name) or "").strip()
        ]
        if missing:
            raise InvalidRequest(
                f"{field_name} is missing required fields: {', '.join(missing)}",
                {"field": field_name, "missing": missing},
            )
        return {name: address.get(name) for name in ADDRESS_FIELDS}

    async def resolve_product(
        self,
        product_id: int,
        variant_id: Optional[int] = None,
    ) -> Tuple[Product, Optional[ProductVariant]]:
        """Load an active product (and variant of that product) or raise ProductNotFound."""
        product = await self.db.get(
            Product,
            product_id,
            populate_existing=True,
        )
        if product is None or not product.is_active:
            raise ProductNotFound(product_id, variant_id)

        variant = None
        if variant_id is not None:
            result = await self.db.execute(
                select(ProductVariant)
                .options(selectinload(ProductVariant.product))
                .where(ProductVariant.id == variant_id)
                .execution_options(populate_existing=True)
            )
            variant = result.scalar_one_or_none()
            if variant is None or variant.product_id != product.id or not variant.is_active:
                raise ProductNotFound(product_id, variant_id)

        return product, variant

    def snapshot(
        self,
        product: Product,
        variant: Optional[ProductVariant],
        quantity: int,
    ) -> LineItemSnapshot:
        if variant is not None:
            unit_price = variant.price if variant.price is not None else product.price
            compare_price = variant.compare_price if variant.compare_price is not None else product.compare_price
            sku = variant.sku or product.sku
        else:
            unit_price = product.price
            compare_price = product.compare_price
            sku = product.sku

        return LineItemSnapshot(
            product_id=product.id,
            variant_id=variant.id if variant is not None else None,
            product_name=product.name,
            variant_name=variant.name if variant is not None else None,
            sku=sku,
            unit_price=unit_price,
            compare_price=compare_price,
            quantity=quantity,
            total_price=self.pricing.line_total(unit_price, quantity),
        )
