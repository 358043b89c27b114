from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional
from decimal import Decimal

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship

from commerce.database import Base
from commerce.db_types import JSONType

if TYPE_CHECKING:
    from commerce.models.order import Order


class CheckoutSessionStatus(str, Enum):
    """Lifecycle of an external payment session."""
    PENDING = "pending"        # Customer sent to the payment page
    COMPLETED = "completed"    # Paid and turned into an order
    FAILED = "failed"          # Paid, but fulfillment raised; retried by job
    EXPIRED = "expired"        # Link expired or cancelled without payment


class CheckoutSession(Base):
    """
    Pending payment session created before redirecting to the gateway.

    The cart is kept here as well as in the gateway metadata so a failed
    fulfillment can be retried and audited.
    """
    __tablename__ = "checkout_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    session_id: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
        comment="Gateway payment link ID (plink_xxx)"
    )
    url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    user_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True
    )
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)

    # [{"product_id": 1, "variant_id": null, "quantity": 2}, ...]
    cart: Mapped[list] = mapped_column(JSONType, nullable=False)
    shipping_address: Mapped[dict] = mapped_column(JSONType, nullable=False)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Total quoted when the session was created"
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default=CheckoutSessionStatus.PENDING.value,
        nullable=False,
        index=True,
        comment="pending, completed, failed, expired"
    )
    payment_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    order_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="SET NULL"),
        nullable=True
    )

    # Fulfillment retry bookkeeping
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    order: Mapped[Optional["Order"]] = relationship("Order")

    def __repr__(self) -> str:
        return f"<CheckoutSession(session_id='{self.session_id}', status='{self.status}')>"
