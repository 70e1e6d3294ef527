"""
Tests for payment intent creation and shipping updates.
"""
import json
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from storefront.models import ProductInventory
from storefront.services.stripe_client import StripeAPIError, encode_form, stripe_client
from tests.conftest import auth_headers


async def reserved_stock(session_factory, variant_id: str) -> int:
    async with session_factory() as session:
        result = await session.execute(
            select(ProductInventory.reserved_stock).where(ProductInventory.variant_id == variant_id)
        )
        return result.scalar_one()


@pytest.mark.asyncio
async def test_create_intent_from_cart(async_client, session_factory, customer, customer_cart, variant_id):
    intent = {"id": "pi_123", "client_secret": "pi_123_secret", "status": "requires_payment_method"}

    with patch.object(stripe_client, "create_payment_intent", AsyncMock(return_value=intent)) as create:
        response = await async_client.post(
            "/api/checkout/create-intent",
            json={"cartId": customer_cart.id, "locale": "EN"},
            headers=auth_headers(customer.clerk_id),
        )

    assert response.status_code == 200
    data = response.json()
    assert data["paymentIntentId"] == "pi_123"
    assert data["clientSecret"] == "pi_123_secret"
    assert data["amount"] == pytest.approx(99.98)
    assert data["currency"] == "CAD"

    params = create.await_args.args[0]
    assert params["amount"] == 9998
    assert params["currency"] == "cad"
    assert params["receipt_email"] == "jane@example.com"
    assert params["metadata"]["userId"] == customer.id
    assert params["metadata"]["locale"] == "en"
    assert json.loads(params["metadata"]["items"]) == [{"variantId": variant_id, "quantity": 2}]

    assert await reserved_stock(session_factory, variant_id) == 2


@pytest.mark.asyncio
async def test_create_intent_for_direct_item(async_client, variant_id):
    intent = {"id": "pi_direct", "client_secret": "secret", "status": "requires_payment_method"}

    with patch.object(stripe_client, "create_payment_intent", AsyncMock(return_value=intent)):
        response = await async_client.post(
            "/api/checkout/create-intent",
            json={"directItem": {"variantId": variant_id, "quantity": 1}, "currency": "USD"},
        )

    assert response.status_code == 200
    assert response.json()["amount"] == pytest.approx(37.00)


@pytest.mark.asyncio
async def test_create_intent_requires_cart_or_item(async_client):
    response = await async_client.post("/api/checkout/create-intent", json={})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_create_intent_rejects_foreign_cart(async_client, customer_cart):
    response = await async_client.post(
        "/api/checkout/create-intent",
        json={"cartId": customer_cart.id},
        headers={"Cookie": "cart_anonymous_id=someone-else"},
    )

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_intent_insufficient_stock(async_client, variant_id):
    with patch.object(stripe_client, "create_payment_intent", AsyncMock()) as create:
        response = await async_client.post(
            "/api/checkout/create-intent",
            json={"directItem": {"variantId": variant_id, "quantity": 50}},
        )

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "INSUFFICIENT_STOCK"
    create.assert_not_awaited()


@pytest.mark.asyncio
async def test_stripe_failure_releases_reservation(async_client, session_factory, variant_id):
    failing = AsyncMock(side_effect=StripeAPIError("card_declined", code="card_declined"))

    with patch.object(stripe_client, "create_payment_intent", failing):
        response = await async_client.post(
            "/api/checkout/create-intent",
            json={"directItem": {"variantId": variant_id, "quantity": 2}},
        )

    assert response.status_code == 502
    assert response.json()["error"]["code"] == "PAYMENT_FAILED"
    assert await reserved_stock(session_factory, variant_id) == 0


@pytest.mark.asyncio
async def test_update_intent_adds_shipping(async_client):
    current = {"id": "pi_123", "amount": 9998, "currency": "cad", "metadata": {"subtotal": "9998"}}
    updated = {"id": "pi_123", "amount": 11498, "status": "requires_payment_method", "client_secret": "s"}

    with patch.object(stripe_client, "retrieve_payment_intent", AsyncMock(return_value=current)), \
            patch.object(stripe_client, "update_payment_intent", AsyncMock(return_value=updated)) as update:
        response = await async_client.post(
            "/api/checkout/update-intent",
            json={
                "paymentIntentId": "pi_123",
                "shippingAmount": "15.00",
                "shippingRateId": "rate_1",
                "shippingDetails": {
                    "name": "Jane Doe",
                    "email": "jane@example.com",
                    "street1": "1 Yonge St",
                    "city": "Toronto",
                    "state": "ON",
                    "zip": "M5E 1W7",
                    "country": "CA",
                },
            },
        )

    assert response.status_code == 200
    assert response.json()["amount"] == pytest.approx(114.98)

    payment_intent_id, payload = update.await_args.args
    assert payment_intent_id == "pi_123"
    assert payload["amount"] == 11498
    assert payload["metadata"]["shipping_cost"] == "15.00"
    assert payload["metadata"]["shipping_rate_id"] == "rate_1"
    assert payload["shipping"]["address"]["postal_code"] == "M5E 1W7"
    assert payload["receipt_email"] == "jane@example.com"


@pytest.mark.asyncio
async def test_update_intent_replaces_previous_shipping(async_client):
    current = {"id": "pi_123", "amount": 11498, "currency": "cad", "metadata": {"shipping_cost": "15.00"}}
    updated = {"id": "pi_123", "amount": 10998}

    with patch.object(stripe_client, "retrieve_payment_intent", AsyncMock(return_value=current)), \
            patch.object(stripe_client, "update_payment_intent", AsyncMock(return_value=updated)) as update:
        response = await async_client.post(
            "/api/checkout/update-intent",
            json={"paymentIntentId": "pi_123", "shippingAmount": 10},
        )

    assert response.status_code == 200
    assert update.await_args.args[1]["amount"] == 10998


def test_encode_form_flattens_nested_params():
    pairs = encode_form(
        {
            "amount": 1000,
            "automatic_payment_methods": {"enabled": True},
            "metadata": {"cartId": "c1", "empty": None},
        }
    )

    assert ("amount", "1000") in pairs
    assert ("automatic_payment_methods[enabled]", "true") in pairs
    assert ("metadata[cartId]", "c1") in pairs
    assert all(name != "metadata[empty]" for name, _ in pairs)
