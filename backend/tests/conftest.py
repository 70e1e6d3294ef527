"""
Shared fixtures: in-memory database, HTTP clients and seed data.
"""
import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-jwt"
os.environ["ENVIRONMENT"] = "test"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_stripe"
os.environ["CLERK_WEBHOOK_SECRET"] = "whsec_dGVzdC1jbGVyay1zZWNyZXQ="

from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import storefront.models  # noqa: F401
from storefront.core.database import Base, get_db_session
from storefront.core.security import create_access_token
from storefront.main import app
from storefront.models import (
    Cart,
    CartItem,
    Order,
    OrderItem,
    OrderStatusHistory,
    Payment,
    Product,
    ProductInventory,
    ProductPricing,
    ProductTranslation,
    ProductVariant,
    Supplier,
    User,
)


def auth_headers(clerk_id: str) -> dict[str, str]:
    """Bearer header for a user synced with ``clerk_id``."""
    token = create_access_token({"sub": clerk_id})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    yield factory
    app.dependency_overrides.pop(get_db_session, None)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def client() -> TestClient:
    """Synchronous client for endpoints that never touch the database."""
    return TestClient(app)


# ----------------------------------------------------------------------
# Seed data
# ----------------------------------------------------------------------


@pytest_asyncio.fixture
async def customer(db_session: AsyncSession) -> User:
    user = User(clerk_id="user_customer", email="jane@example.com", first_name="Jane", role="CLIENT")
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    user = User(clerk_id="user_admin", email="admin@example.com", first_name="Ada", role="ADMIN")
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def supplier(db_session: AsyncSession) -> Supplier:
    location = Supplier(
        name="Montreal Warehouse",
        type="LOCAL_STOCK",
        incoterm="DDU",
        address={
            "street1": "100 Rue Sainte-Catherine",
            "city": "Montreal",
            "state": "QC",
            "zip": "H2X 1Z4",
            "country": "CA",
            "phone": "5145550100",
            "email": "warehouse@example.com",
        },
        is_active=True,
        default_currency="CAD",
    )
    db_session.add(location)
    await db_session.commit()
    return location


async def make_product(
    session: AsyncSession,
    *,
    slug: str,
    sku: str,
    supplier: Supplier | None = None,
    status: str = "ACTIVE",
    prices: dict[str, str] | None = None,
    stock: int = 10,
    track_inventory: bool = True,
    is_featured: bool = False,
    name_fr: str = "Théière en fonte",
    name_en: str = "Cast iron teapot",
) -> Product:
    prices = prices if prices is not None else {"CAD": "49.99", "USD": "37.00"}
    product = Product(
        slug=slug,
        status=status,
        is_featured=is_featured,
        origin_country="CA",
        hs_code="7323.91",
        export_explanation="Kitchenware",
        weight=Decimal("0.800"),
        dimensions={"length": 12, "width": 10, "height": 8},
        shipping_origin_id=supplier.id if supplier else None,
        translations=[
            ProductTranslation(language="FR", name=name_fr, description="Fonte émaillée"),
            ProductTranslation(language="EN", name=name_en, description="Enamelled cast iron"),
        ],
        variants=[
            ProductVariant(
                sku=sku,
                pricing=[
                    ProductPricing(price=Decimal(amount), currency=currency, price_type="base", is_active=True)
                    for currency, amount in prices.items()
                ],
                inventory=ProductInventory(stock=stock, reserved_stock=0, track_inventory=track_inventory),
            )
        ],
        media=[],
        categories=[],
    )
    session.add(product)
    await session.commit()
    return product


@pytest_asyncio.fixture
async def product(db_session: AsyncSession, supplier: Supplier) -> Product:
    return await make_product(db_session, slug="cast-iron-teapot", sku="TEA-001", supplier=supplier)


@pytest.fixture
def variant_id(product: Product) -> str:
    return product.variants[0].id


@pytest_asyncio.fixture
async def customer_cart(db_session: AsyncSession, customer: User, variant_id: str) -> Cart:
    cart = Cart(user_id=customer.id, status="ACTIVE", currency="CAD")
    db_session.add(cart)
    await db_session.flush()
    db_session.add(CartItem(cart_id=cart.id, variant_id=variant_id, quantity=2))
    await db_session.commit()
    return cart


SHIPPING_ADDRESS = {
    "name": "Jane Doe",
    "street1": "1 Yonge St",
    "city": "Toronto",
    "state": "ON",
    "zip": "M5E 1W7",
    "country": "CA",
    "phone": "4165550199",
}


@pytest_asyncio.fixture
async def paid_order(db_session: AsyncSession, customer: User, product: Product) -> Order:
    variant = product.variants[0]
    order = Order(
        order_number="ORD-2026-000001",
        user_id=customer.id,
        order_email=customer.email,
        status="PAID",
        currency="CAD",
        subtotal_amount=Decimal("99.98"),
        shipping_amount=Decimal("15.00"),
        tax_amount=Decimal("0.00"),
        discount_amount=Decimal("0.00"),
        total_amount=Decimal("114.98"),
        shipping_address=dict(SHIPPING_ADDRESS),
        billing_address=dict(SHIPPING_ADDRESS),
        language="EN",
        items=[
            OrderItem(
                variant_id=variant.id,
                product_id=product.id,
                product_snapshot={"name": "Cast iron teapot", "sku": variant.sku},
                quantity=2,
                unit_price=Decimal("49.99"),
                total_price=Decimal("99.98"),
                currency="CAD",
            )
        ],
        payments=[
            Payment(
                amount=Decimal("114.98"),
                currency="CAD",
                method="STRIPE",
                external_id="pi_paid_123",
                status="COMPLETED",
                processed_at=datetime.now(timezone.utc),
            )
        ],
        shipments=[],
        status_history=[OrderStatusHistory(status="PAID", comment="Payment received", created_by="SYSTEM")],
    )
    db_session.add(order)
    await db_session.commit()
    return order
