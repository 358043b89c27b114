"""
Shared pytest fixtures for all tests.

Each test gets its own SQLite database file so transactions, row locking
and commits behave as they do against a real server.
"""

import os
from decimal import Decimal
from types import SimpleNamespace
from typing import AsyncGenerator
from unittest.mock import MagicMock

# Settings are read at import time; configure the test environment first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./unused.db"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "test_webhook_secret"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["ORDER_EMAILS_ENABLED"] = "false"
os.environ["DEBUG"] = "false"

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from commerce.core.security import create_access_token  # noqa: E402
from commerce.database import Database  # noqa: E402
from commerce.main import create_app  # noqa: E402
from commerce.models import Product, ProductVariant, User, UserAddress  # noqa: E402
from commerce.services.payment_service import PaymentService, get_payment_service  # noqa: E402
from tests.helpers import SHIPPING_ADDRESS  # noqa: E402


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """Fresh database with all tables created."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def session(database) -> AsyncGenerator[AsyncSession, None]:
    async with database.session() as db_session:
        yield db_session


@pytest_asyncio.fixture
async def seed(database) -> SimpleNamespace:
    """
    Catalog and users shared by most tests.

    - laptop: 1999.99, 5 in stock
    - mouse: 199.99, 10 in stock
    - shirt: 25.00 with variants Medium (own stock 4) and Large (27.50, parent stock 3)
    - retired: inactive product
    - gift_card: stock not tracked
    """
    async with database.session() as db_session:
        user = User(name="Asha Rao", email="asha@example.com")
        other_user = User(name="Vikram Shah", email="vikram@example.com")
        laptop = Product(
            name="Laptop", slug="laptop", sku="LAP-001", price=Decimal("1999.99"), quantity=5, is_featured=True
        )
        mouse = Product(name="Mouse", slug="mouse", sku="MOU-001", price=Decimal("199.99"), quantity=10)
        shirt = Product(name="T-Shirt", slug="t-shirt", sku="TSH", price=Decimal("25.00"), quantity=3)
        shirt_medium = ProductVariant(
            product=shirt, name="Medium", sku="TSH-M", quantity=4, attributes={"size": "M"}
        )
        shirt_large = ProductVariant(
            product=shirt, name="Large", sku="TSH-L", price=Decimal("27.50"), attributes={"size": "L"}
        )
        retired = Product(name="Retired Lamp", slug="retired-lamp", price=Decimal("10.00"), quantity=10, is_active=False)
        gift_card = Product(
            name="Gift Card", slug="gift-card", price=Decimal("50.00"), quantity=0, track_quantity=False
        )
        saved_address = UserAddress(user=user, label="Home", is_default=True, **SHIPPING_ADDRESS)
        other_address = UserAddress(
            user=other_user,
            first_name="Vikram",
            last_name="Shah",
            address_line1="4 Marine Drive",
            city="Mumbai",
            state="Maharashtra",
            zip_code="400002",
            country="India",
        )

        db_session.add_all([
            user, other_user, laptop, mouse, shirt, shirt_medium, shirt_large,
            retired, gift_card, saved_address, other_address,
        ])
        await db_session.commit()

        return SimpleNamespace(
            user_id=user.id,
            other_user_id=other_user.id,
            laptop_id=laptop.id,
            mouse_id=mouse.id,
            shirt_id=shirt.id,
            shirt_medium_id=shirt_medium.id,
            shirt_large_id=shirt_large.id,
            retired_id=retired.id,
            gift_card_id=gift_card.id,
            address_id=saved_address.id,
            other_address_id=other_address.id,
        )


# ============================================================================
# PAYMENT FIXTURES
# ============================================================================


@pytest.fixture
def razorpay_client() -> MagicMock:
    """Mock Razorpay client with payment link responses."""
    client = MagicMock()
    client.payment_link.create.return_value = {
        "id": "plink_test123",
        "short_url": "https://rzp.io/i/test123",
        "status": "created",
        "amount": 264997,
        "notes": {},
    }
    return client


@pytest.fixture
def payment_service(razorpay_client) -> PaymentService:
    return PaymentService(client=razorpay_client)


# ============================================================================
# HTTP FIXTURES
# ============================================================================


@pytest.fixture
def app(database, payment_service):
    application = create_app(database)
    application.dependency_overrides[get_payment_service] = lambda: payment_service
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


@pytest.fixture
def auth_headers(seed) -> dict:
    token = create_access_token(seed.user_id)
    return {"Authorization": f"Bearer {token}"}
