# Services module
from commerce.services.inventory_service import InventoryLedger
from commerce.services.pricing_service import PricingCalculator, PriceBreakdown
from commerce.services.order_builder import OrderBuilder, OrderDraft
from commerce.services.order_repository import OrderRepository
from commerce.services.payment_service import PaymentService
from commerce.services.checkout_service import CheckoutOrchestrator

__all__ = [
    "InventoryLedger",
    "PricingCalculator",
    "PriceBreakdown",
    "OrderBuilder",
    "OrderDraft",
    "OrderRepository",
    "PaymentService",
    "CheckoutOrchestrator",
]
