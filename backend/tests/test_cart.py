"""
Tests for anonymous and signed-in carts.
"""
import pytest
from sqlalchemy import select

from storefront.core.config import settings
from storefront.core.errors import AppError
from storefront.models import Cart, ProductInventory
from storefront.services.cart_service import CartIdentity, CartService
from tests.conftest import auth_headers, make_product


def cart_cookie(anonymous_id: str) -> dict[str, str]:
    return {"Cookie": f"{settings.cart_cookie_name}={anonymous_id}"}


@pytest.mark.asyncio
async def test_empty_cart_for_new_visitor(async_client):
    response = await async_client.get("/api/cart")

    assert response.status_code == 200
    data = response.json()
    assert data["id"] is None
    assert data["items"] == []
    assert data["calculation"]["subtotal"] == 0


@pytest.mark.asyncio
async def test_add_item_issues_anonymous_cookie(async_client, variant_id):
    response = await async_client.post("/api/cart/items", json={"variantId": variant_id, "quantity": 2})

    assert response.status_code == 201
    assert settings.cart_cookie_name in response.cookies
    data = response.json()
    assert data["items"][0]["quantity"] == 2
    assert data["calculation"]["subtotal"] == pytest.approx(99.98)
    assert data["calculation"]["itemCount"] == 2


@pytest.mark.asyncio
async def test_adding_same_variant_sums_quantities(async_client, variant_id):
    headers = cart_cookie("anon-123")
    await async_client.post("/api/cart/items", json={"variantId": variant_id, "quantity": 1}, headers=headers)
    response = await async_client.post(
        "/api/cart/items",
        json={"variantId": variant_id, "quantity": 3},
        headers=headers,
    )

    data = response.json()
    assert len(data["items"]) == 1
    assert data["items"][0]["quantity"] == 4


@pytest.mark.asyncio
async def test_add_more_than_stock_is_rejected(async_client, variant_id):
    response = await async_client.post(
        "/api/cart/items",
        json={"variantId": variant_id, "quantity": 11},
        headers=cart_cookie("anon-123"),
    )

    assert response.status_code == 409
    error = response.json()["error"]
    assert error["code"] == "INSUFFICIENT_STOCK"
    assert error["details"] == {"available": 10}


@pytest.mark.asyncio
async def test_inactive_product_cannot_be_added(async_client, db_session, supplier):
    draft = await make_product(db_session, slug="draft-pot", sku="POT-001", supplier=supplier, status="DRAFT")

    response = await async_client.post(
        "/api/cart/items",
        json={"variantId": draft.variants[0].id},
        headers=cart_cookie("anon-123"),
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_and_remove_line(async_client, variant_id):
    headers = cart_cookie("anon-123")
    response = await async_client.post("/api/cart/items", json={"variantId": variant_id}, headers=headers)
    item_id = response.json()["items"][0]["id"]

    response = await async_client.patch(f"/api/cart/items/{item_id}", json={"quantity": 5}, headers=headers)
    assert response.status_code == 200
    assert response.json()["items"][0]["quantity"] == 5

    response = await async_client.delete(f"/api/cart/items/{item_id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["items"] == []


@pytest.mark.asyncio
async def test_other_visitor_cannot_modify_line(async_client, variant_id):
    response = await async_client.post(
        "/api/cart/items",
        json={"variantId": variant_id},
        headers=cart_cookie("anon-owner"),
    )
    item_id = response.json()["items"][0]["id"]

    response = await async_client.patch(
        f"/api/cart/items/{item_id}",
        json={"quantity": 2},
        headers=cart_cookie("anon-intruder"),
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_calculate_in_other_currency(async_client, variant_id):
    headers = cart_cookie("anon-123")
    await async_client.post("/api/cart/items", json={"variantId": variant_id, "quantity": 2}, headers=headers)

    response = await async_client.get("/api/cart/calculate", params={"currency": "usd"}, headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["currency"] == "USD"
    assert data["subtotal"] == pytest.approx(74.00)


@pytest.mark.asyncio
async def test_calculate_skips_lines_without_price(async_client, variant_id):
    headers = cart_cookie("anon-123")
    await async_client.post("/api/cart/items", json={"variantId": variant_id}, headers=headers)

    response = await async_client.get("/api/cart/calculate", params={"currency": "EUR"}, headers=headers)

    data = response.json()
    assert data["items"] == []
    assert data["subtotal"] == 0


@pytest.mark.asyncio
async def test_merge_anonymous_cart_on_sign_in(async_client, customer, customer_cart, variant_id):
    await async_client.post(
        "/api/cart/items",
        json={"variantId": variant_id, "quantity": 3},
        headers=cart_cookie("anon-merge"),
    )

    response = await async_client.post(
        "/api/cart/merge",
        headers={**auth_headers(customer.clerk_id), **cart_cookie("anon-merge")},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == customer_cart.id
    assert data["items"][0]["quantity"] == 5


@pytest.mark.asyncio
async def test_merge_requires_authentication(async_client):
    response = await async_client.post("/api/cart/merge", headers=cart_cookie("anon"))

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_merge_ignores_anonymous_id_in_body(async_client, session_factory, customer, customer_cart, variant_id):
    await async_client.post(
        "/api/cart/items",
        json={"variantId": variant_id, "quantity": 1},
        headers=cart_cookie("other-visitor"),
    )

    response = await async_client.post(
        "/api/cart/merge",
        json={"anonymousId": "other-visitor"},
        headers=auth_headers(customer.clerk_id),
    )

    assert response.status_code == 200
    assert response.json()["items"][0]["quantity"] == 2
    async with session_factory() as session:
        other = (
            await session.execute(select(Cart).where(Cart.anonymous_id == "other-visitor"))
        ).scalar_one()
        assert other.status == "ACTIVE"


class TestCartService:
    """Service level cart behaviour."""

    @pytest.mark.asyncio
    async def test_identity_required(self, db_session):
        with pytest.raises(AppError) as exc_info:
            await CartService(db_session).get_or_create_cart(CartIdentity())

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_anonymous_cart_expires(self, db_session):
        cart = await CartService(db_session).get_or_create_cart(CartIdentity(anonymous_id="anon-1"))

        assert cart.expires_at is not None
        assert cart.user_id is None

    @pytest.mark.asyncio
    async def test_merge_caps_at_stock_and_converts(self, db_session, customer, customer_cart, variant_id):
        service = CartService(db_session)
        await service.add_to_cart(CartIdentity(anonymous_id="anon-cap"), variant_id, 9)

        merged = await service.merge_anonymous_cart(customer.id, "anon-cap")

        assert merged.items[0].quantity == 10
        result = await db_session.execute(select(Cart).where(Cart.anonymous_id == "anon-cap"))
        assert result.scalar_one().status == "CONVERTED"

    @pytest.mark.asyncio
    async def test_merge_twice_is_noop(self, db_session, customer, customer_cart, variant_id):
        service = CartService(db_session)
        await service.add_to_cart(CartIdentity(anonymous_id="anon-twice"), variant_id, 1)

        await service.merge_anonymous_cart(customer.id, "anon-twice")
        merged = await service.merge_anonymous_cart(customer.id, "anon-twice")

        assert merged.items[0].quantity == 3

    @pytest.mark.asyncio
    async def test_clean_invalid_items(self, db_session, customer, customer_cart, variant_id):
        result = await db_session.execute(
            select(ProductInventory).where(ProductInventory.variant_id == variant_id)
        )
        result.scalar_one().stock = 1
        await db_session.flush()

        removed = await CartService(db_session).clean_invalid_cart_items(customer_cart.id)

        assert removed == 1
