"""
Checkout Orchestrator

Entry point for turning carts into orders:
- Direct order placement for authenticated users
- Hosted checkout through a Razorpay payment link
- Payment webhook fulfillment (and its retry)
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from commerce.config import settings
from commerce.models.checkout import CheckoutSession, CheckoutSessionStatus
from commerce.models.order import Order, OrderStatus, PaymentStatus
from commerce.models.user import User
from commerce.schemas.checkout import CheckoutCreate
from commerce.schemas.order import OrderCreate
from commerce.services.email_service import send_order_notifications
from commerce.services.errors import InvalidRequest, InvalidSignature, NotFound, Unauthenticated
from commerce.services.order_builder import OrderBuilder
from commerce.services.order_repository import OrderRepository
from commerce.services.payment_service import (
    PaymentLineItem,
    PaymentService,
    WebhookEvent,
)

logger = logging.getLogger(__name__)

# Strong references to in-flight notification tasks
_background_tasks: Set[asyncio.Task] = set()

EmailSender = Callable[..., Awaitable[Any]]


@dataclass
class WebhookResult:
    status: str  # processed, duplicate, expired, ignored, failed
    event: Optional[str] = None
    order_id: Optional[int] = None
    message: Optional[str] = None


def _decode_note(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


class CheckoutOrchestrator:
    """Coordinates the builder, repository and payment gateway for one request."""

    def __init__(
        self,
        db: AsyncSession,
        payment_service: Optional[PaymentService] = None,
        email_sender: Optional[EmailSender] = None,
    ):
        self.db = db
        self._payment_service = payment_service
        self.builder = OrderBuilder(db)
        self.repository = OrderRepository(db)
        self.email_sender = email_sender or send_order_notifications

    @property
    def payments(self) -> PaymentService:
        if self._payment_service is None:
            self._payment_service = PaymentService()
        return self._payment_service

    async def _get_user(self, user_id: Optional[int]) -> User:
        if user_id is None:
            raise Unauthenticated()
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found", {"user_id": user_id})
        return user

    # ==================== DIRECT ORDERS ====================

    async def place_order(self, user_id: Optional[int], request: OrderCreate) -> Order:
        """Validate, price and persist an order for the calling user."""
        user = await self._get_user(user_id)

        draft = await self.builder.build(
            user_id=user.id,
            customer_email=request.customer_email or user.email,
            shipping_address=request.shipping_address,
            items=request.items,
            billing_address=request.billing_address,
            customer_phone=request.customer_phone,
            customer_notes=request.customer_notes,
        )
        order = await self.repository.create(draft)

        self._dispatch_confirmation(order, user.name)
        return order

    # ==================== HOSTED CHECKOUT ====================

    async def start_checkout(
        self,
        user_id: Optional[int],
        request: CheckoutCreate,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> CheckoutSession:
        """Price the cart from the catalog and open a payment session for it."""
        user = await self._get_user(user_id)

        draft = await self.builder.build(
            user_id=user.id,
            customer_email=request.customer_email or user.email,
            shipping_address=request.shipping_address,
            items=request.items,
        )
        # Nothing to write yet; don't hold the database while the gateway is called
        await self.db.rollback()

        success_url = success_url or request.success_url or f"{settings.FRONTEND_URL}/checkout/success"
        cancel_url = cancel_url or request.cancel_url or f"{settings.FRONTEND_URL}/cart"

        line_items = [
            PaymentLineItem(
                name=item.product_name if not item.variant_name else f"{item.product_name} - {item.variant_name}",
                unit_price=item.unit_price,
                quantity=item.quantity,
            )
            for item in draft.items
        ]
        metadata = {
            "user_id": str(draft.user_id),
            "email": draft.customer_email,
            "cart": draft.cart,
            "shipping_address": draft.shipping_address,
        }

        info = await asyncio.to_thread(
            self.payments.create_session,
            line_items,
            success_url,
            cancel_url,
            draft.customer_email,
            metadata,
            draft.pricing.total,
        )

        checkout = CheckoutSession(
            session_id=info.session_id,
            url=info.url,
            user_id=draft.user_id,
            customer_email=draft.customer_email,
            cart=draft.cart,
            shipping_address=draft.shipping_address,
            amount=draft.pricing.total,
            status=CheckoutSessionStatus.PENDING.value,
        )
        self.db.add(checkout)
        await self.db.commit()

        logger.info(f"Checkout session {info.session_id} opened for user {draft.user_id}, amount {draft.pricing.total}")
        return checkout

    # ==================== WEBHOOK ====================

    async def handle_webhook(self, body: bytes, signature: Optional[str]) -> WebhookResult:
        """
        Process a Razorpay webhook delivery.

        Only a bad signature raises. Anything that goes wrong after the
        signature is verified is logged and reported in the result, so the
        gateway gets a 200 and does not redeliver.
        """
        if not self.payments.verify_webhook_signature(body, signature):
            raise InvalidSignature()

        try:
            payload = json.loads(body)
        except ValueError:
            logger.warning("Signed webhook with invalid JSON payload")
            return WebhookResult(status="ignored", message="Invalid JSON payload")
        if not isinstance(payload, dict):
            logger.warning("Signed webhook payload is not a JSON object")
            return WebhookResult(status="ignored", message="Invalid JSON payload")

        event = payload.get("event")
        event_payload = payload.get("payload") or {}
        logger.info(f"Received Razorpay webhook: {event}")

        try:
            if event == WebhookEvent.PAYMENT_LINK_PAID:
                link = (event_payload.get("payment_link") or {}).get("entity") or {}
                payment = (event_payload.get("payment") or {}).get("entity") or {}
                result = await self.fulfill_session(
                    link.get("id"),
                    payment.get("id"),
                    link.get("notes") or {},
                )

            elif event in (WebhookEvent.PAYMENT_LINK_EXPIRED, WebhookEvent.PAYMENT_LINK_CANCELLED):
                link = (event_payload.get("payment_link") or {}).get("entity") or {}
                result = await self.expire_session(link.get("id"))

            else:
                logger.info(f"Unhandled webhook event: {event}")
                result = WebhookResult(status="ignored")

        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error processing webhook {event}: {e}")
            result = WebhookResult(status="failed", message=str(e))

        result.event = event
        return result

    async def fulfill_session(
        self,
        session_id: Optional[str],
        payment_id: Optional[str],
        notes: Optional[Dict[str, Any]] = None,
    ) -> WebhookResult:
        """
        Create the paid order for a payment session.

        Order insert, stock decrement and the session's completion commit
        together. Replays of the same payment are acknowledged without side
        effects; failures are recorded on the session for the retry job.
        """
        if not session_id:
            logger.warning("Paid webhook without payment link id")
            return WebhookResult(status="ignored", message="Missing payment link id")

        checkout = await self._lock_session(session_id)
        if checkout is not None and checkout.status == CheckoutSessionStatus.COMPLETED.value:
            logger.info(f"Checkout session {session_id} already fulfilled")
            return WebhookResult(status="duplicate", order_id=checkout.order_id)

        if payment_id:
            existing = await self.repository.get_by_transaction_id(payment_id)
            if existing is not None:
                logger.info(f"Payment {payment_id} already recorded on order {existing.order_number}")
                if checkout is not None:
                    self._mark_completed(checkout, existing.id, payment_id)
                    await self.db.commit()
                return WebhookResult(status="duplicate", order_id=existing.id)

        try:
            user_id, email, cart, shipping_address = await self._session_metadata(notes or {}, checkout)
            draft = await self.builder.build(
                user_id=user_id,
                customer_email=email,
                shipping_address=shipping_address,
                items=cart,
            )
            order = await self.repository.create(
                draft,
                status=OrderStatus.CONFIRMED,
                payment_status=PaymentStatus.PAID,
                payment_method="razorpay",
                transaction_id=payment_id,
                commit=False,
            )
            if checkout is not None:
                self._mark_completed(checkout, order.id, payment_id)
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Fulfillment failed for checkout session {session_id}: {e}")
            await self._record_failure(session_id, payment_id, str(e))
            return WebhookResult(status="failed", message=str(e))

        order = await self.repository.get_by_id(order.id)
        logger.info(f"Checkout session {session_id} fulfilled as order {order.order_number}")

        customer_name = order.user.name if order.user else order.shipping_address.get("first_name", "Customer")
        self._dispatch_confirmation(order, customer_name)
        return WebhookResult(status="processed", order_id=order.id)

    async def expire_session(self, session_id: Optional[str]) -> WebhookResult:
        checkout = await self._lock_session(session_id) if session_id else None
        if checkout is None:
            return WebhookResult(status="ignored", message="Unknown payment link")
        if checkout.status == CheckoutSessionStatus.PENDING.value:
            checkout.status = CheckoutSessionStatus.EXPIRED.value
            await self.db.commit()
            logger.info(f"Checkout session {session_id} expired")
        return WebhookResult(status="expired")

    async def retry_failed_sessions(self, max_attempts: int) -> List[WebhookResult]:
        """Re-run fulfillment for failed sessions that the gateway reports as paid."""
        result = await self.db.execute(
            select(CheckoutSession.session_id)
            .where(
                CheckoutSession.status == CheckoutSessionStatus.FAILED.value,
                CheckoutSession.attempts < max_attempts,
            )
            .order_by(CheckoutSession.updated_at)
        )
        session_ids = list(result.scalars().all())
        await self.db.rollback()

        results = []
        for session_id in session_ids:
            # One broken link must not hold up the sessions queued behind it
            try:
                info = await asyncio.to_thread(self.payments.retrieve_session, session_id)
                if not info.is_paid:
                    logger.info(f"Skipping retry of {session_id}: payment link is {info.status}")
                    continue
                checkout = await self._lock_session(session_id)
                payment_id = info.payment_id or (checkout.payment_id if checkout else None)
                results.append(await self.fulfill_session(session_id, payment_id, info.notes))
            except Exception as e:
                await self.db.rollback()
                logger.error(f"Retry of checkout session {session_id} failed: {e}")
                await self._record_failure(session_id, None, str(e))
                results.append(WebhookResult(status="failed", message=str(e)))
        return results

    # ==================== HELPERS ====================

    async def _lock_session(self, session_id: str) -> Optional[CheckoutSession]:
        result = await self.db.execute(
            select(CheckoutSession)
            .where(CheckoutSession.session_id == session_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _session_metadata(self, notes: Dict[str, Any], checkout: Optional[CheckoutSession]):
        user_id = _decode_note(notes.get("user_id"))
        email = notes.get("email")
        cart = _decode_note(notes.get("cart"))
        shipping_address = _decode_note(notes.get("shipping_address"))

        if checkout is not None:
            user_id = user_id if user_id is not None else checkout.user_id
            email = email or checkout.customer_email
            cart = cart if cart else checkout.cart
            shipping_address = shipping_address if isinstance(shipping_address, dict) else checkout.shipping_address

        if not isinstance(cart, list) or not cart:
            raise InvalidRequest("Payment session has no cart")

        if user_id is not None:
            try:
                user_id = int(user_id)
            except (TypeError, ValueError):
                raise InvalidRequest(f"Invalid user id in payment session: {user_id}")
            if await self.db.get(User, user_id) is None:
                logger.warning(f"User {user_id} from payment session no longer exists, ordering as guest")
                user_id = None

        return user_id, email, cart, shipping_address

    def _mark_completed(self, checkout: CheckoutSession, order_id: int, payment_id: Optional[str]) -> None:
        checkout.status = CheckoutSessionStatus.COMPLETED.value
        checkout.order_id = order_id
        checkout.payment_id = payment_id
        checkout.attempts += 1
        checkout.last_error = None
        checkout.completed_at = datetime.now(timezone.utc)

    async def _record_failure(self, session_id: str, payment_id: Optional[str], error: str) -> None:
        checkout = await self._lock_session(session_id)
        if checkout is None:
            logger.error(f"No checkout session {session_id} to record failure on")
            await self.db.rollback()
            return
        if checkout.status == CheckoutSessionStatus.COMPLETED.value:
            await self.db.rollback()
            return
        checkout.status = CheckoutSessionStatus.FAILED.value
        checkout.payment_id = payment_id or checkout.payment_id
        checkout.attempts += 1
        checkout.last_error = error[:2000]
        await self.db.commit()

    def _dispatch_confirmation(self, order: Order, customer_name: str) -> None:
        """Send the confirmation email in the background; the order result never waits on it."""
        items = [
            {
                "product_name": item.product_name,
                "variant_name": item.variant_name,
                "quantity": item.quantity,
                "total_price": item.total_price,
            }
            for item in order.items
        ]
        task = asyncio.create_task(
            self._send_confirmation(
                order_number=order.order_number,
                customer_email=order.customer_email,
                customer_name=customer_name,
                total_amount=order.total_amount,
                items=items,
                shipping_address=dict(order.shipping_address),
            )
        )
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)

    async def _send_confirmation(self, **kwargs) -> None:
        try:
            await self.email_sender(**kwargs)
        except Exception as e:
            logger.error(f"Failed to send confirmation for order {kwargs.get('order_number')}: {e}")
