"""
Tests for the Stripe and Clerk webhook endpoints.
"""
import json
import time

import pytest
from sqlalchemy import func, select

from storefront.core.security import sign_stripe_payload, sign_svix_payload
from storefront.models import Cart, CartItem, Order, ProductInventory, User, WebhookEvent

STRIPE_SECRET = "whsec_test_stripe"
CLERK_SECRET = "whsec_dGVzdC1jbGVyay1zZWNyZXQ="


def stripe_event(event_id: str, event_type: str, obj: dict) -> bytes:
    return json.dumps({"id": event_id, "type": event_type, "data": {"object": obj}}).encode()


def stripe_headers(body: bytes, secret: str = STRIPE_SECRET) -> dict[str, str]:
    return {"stripe-signature": sign_stripe_payload(body, secret), "content-type": "application/json"}


def payment_intent(variant_id: str, *, intent_id: str = "pi_webhook_1", quantity: int = 2, **metadata) -> dict:
    return {
        "id": intent_id,
        "amount": 11498,
        "currency": "cad",
        "receipt_email": "jane@example.com",
        "shipping": {
            "name": "Jane Doe",
            "phone": "4165550199",
            "address": {
                "line1": "1 Yonge St",
                "city": "Toronto",
                "state": "ON",
                "postal_code": "M5E 1W7",
                "country": "CA",
            },
        },
        "metadata": {
            "items": json.dumps([{"variantId": variant_id, "quantity": quantity}]),
            "shipping_cost": "15.00",
            "locale": "fr",
            **metadata,
        },
    }


def clerk_user(clerk_id: str, email: str, **extra) -> dict:
    return {
        "id": clerk_id,
        "first_name": "Sam",
        "last_name": "Lee",
        "primary_email_address_id": "idn_1",
        "email_addresses": [
            {"id": "idn_0", "email_address": "old@example.com"},
            {"id": "idn_1", "email_address": email},
        ],
        **extra,
    }


def clerk_headers(body: bytes, msg_id: str = "msg_1", age: int = 0) -> dict[str, str]:
    timestamp = str(int(time.time()) - age)
    return {
        "svix-id": msg_id,
        "svix-timestamp": timestamp,
        "svix-signature": sign_svix_payload(body, msg_id, timestamp, CLERK_SECRET),
        "content-type": "application/json",
    }


class TestStripeWebhook:
    """Signature checks, order creation and retry bookkeeping."""

    @pytest.mark.asyncio
    async def test_missing_signature(self, async_client, session_factory):
        response = await async_client.post("/api/webhooks/stripe", content=b"{}")

        assert response.status_code == 400
        assert response.json() == {"error": "Missing signature"}

    @pytest.mark.asyncio
    async def test_invalid_signature(self, async_client, session_factory):
        body = stripe_event("evt_bad", "payment_intent.succeeded", {})

        response = await async_client.post(
            "/api/webhooks/stripe",
            content=body,
            headers=stripe_headers(body, secret="whsec_wrong"),
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid webhook signature"}

    @pytest.mark.asyncio
    async def test_payment_succeeded_creates_order(self, async_client, session_factory, customer, customer_cart, variant_id):
        body = stripe_event(
            "evt_1",
            "payment_intent.succeeded",
            payment_intent(variant_id, userId=customer.id, cartId=customer_cart.id),
        )

        response = await async_client.post("/api/webhooks/stripe", content=body, headers=stripe_headers(body))

        assert response.status_code == 200
        assert response.json() == {"received": True}

        async with session_factory() as session:
            order = (await session.execute(select(Order))).scalar_one()
            assert order.status == "PAID"
            assert order.user_id == customer.id
            assert order.order_email == "jane@example.com"
            assert order.language == "FR"
            assert order.shipping_address["zip"] == "M5E 1W7"
            assert order.payments[0].external_id == "pi_webhook_1"

            stock = await session.scalar(
                select(ProductInventory.stock).where(ProductInventory.variant_id == variant_id)
            )
            assert stock == 8

            items = await session.scalar(select(func.count()).select_from(CartItem))
            assert items == 0

            event = (await session.execute(select(WebhookEvent))).scalar_one()
            assert event.processed is True
            assert event.event_type == "payment_intent.succeeded"

    @pytest.mark.asyncio
    async def test_duplicate_event_is_ignored(self, async_client, session_factory, variant_id):
        body = stripe_event("evt_dup", "payment_intent.succeeded", payment_intent(variant_id))

        first = await async_client.post("/api/webhooks/stripe", content=body, headers=stripe_headers(body))
        second = await async_client.post("/api/webhooks/stripe", content=body, headers=stripe_headers(body))

        assert first.status_code == 200
        assert second.status_code == 200
        async with session_factory() as session:
            assert await session.scalar(select(func.count()).select_from(Order)) == 1

    @pytest.mark.asyncio
    async def test_same_payment_in_new_event_is_ignored(self, async_client, session_factory, variant_id):
        for event_id in ("evt_a", "evt_b"):
            body = stripe_event(event_id, "payment_intent.succeeded", payment_intent(variant_id))
            response = await async_client.post("/api/webhooks/stripe", content=body, headers=stripe_headers(body))
            assert response.status_code == 200

        async with session_factory() as session:
            assert await session.scalar(select(func.count()).select_from(Order)) == 1

    @pytest.mark.asyncio
    async def test_failures_are_retried_until_max(self, async_client, session_factory):
        body = stripe_event("evt_fail", "payment_intent.succeeded", payment_intent("missing-variant"))

        statuses = []
        for _ in range(3):
            response = await async_client.post("/api/webhooks/stripe", content=body, headers=stripe_headers(body))
            statuses.append(response.status_code)

        assert statuses == [500, 500, 200]
        assert response.json() == {"received": True, "error": "Max retries reached"}

        async with session_factory() as session:
            event = (await session.execute(select(WebhookEvent))).scalar_one()
            assert event.retry_count == 3
            assert event.processed is False
            assert "missing-variant" in event.last_error

    @pytest.mark.asyncio
    async def test_payment_failed_releases_reservation(self, async_client, session_factory, db_session, variant_id):
        inventory = (
            await db_session.execute(select(ProductInventory).where(ProductInventory.variant_id == variant_id))
        ).scalar_one()
        inventory.reserved_stock = 3
        await db_session.commit()

        intent = payment_intent(variant_id, intent_id="pi_failed", quantity=2)
        intent["last_payment_error"] = {"message": "Your card was declined."}
        body = stripe_event("evt_failed", "payment_intent.payment_failed", intent)

        response = await async_client.post("/api/webhooks/stripe", content=body, headers=stripe_headers(body))

        assert response.status_code == 200
        async with session_factory() as session:
            reserved = await session.scalar(
                select(ProductInventory.reserved_stock).where(ProductInventory.variant_id == variant_id)
            )
        assert reserved == 1

    @pytest.mark.asyncio
    async def test_unpaid_checkout_session_skipped(self, async_client, session_factory, customer, variant_id):
        body = stripe_event(
            "evt_session",
            "checkout.session.completed",
            {
                "id": "cs_1",
                "payment_status": "unpaid",
                "metadata": {"userId": customer.id, "items": json.dumps([{"variantId": variant_id, "quantity": 1}])},
            },
        )

        response = await async_client.post("/api/webhooks/stripe", content=body, headers=stripe_headers(body))

        assert response.status_code == 200
        async with session_factory() as session:
            assert await session.scalar(select(func.count()).select_from(Order)) == 0
            carts = await session.scalar(select(func.count()).select_from(Cart))
        assert carts == 0


class TestClerkWebhook:
    """User sync from the auth provider."""

    @pytest.mark.asyncio
    async def test_missing_headers(self, async_client, session_factory):
        response = await async_client.post("/api/webhooks/clerk", content=b"{}")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_bad_signature(self, async_client, session_factory):
        body = json.dumps({"type": "user.created", "data": clerk_user("user_x", "x@example.com")}).encode()
        headers = clerk_headers(body)
        headers["svix-signature"] = "v1,AAAA"

        response = await async_client.post("/api/webhooks/clerk", content=body, headers=headers)

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_replayed_delivery_rejected(self, async_client, session_factory):
        body = json.dumps({"type": "user.created", "data": clerk_user("user_old", "old@example.com")}).encode()

        response = await async_client.post(
            "/api/webhooks/clerk",
            content=body,
            headers=clerk_headers(body, age=7 * 24 * 3600),
        )

        assert response.status_code == 400
        async with session_factory() as session:
            count = await session.scalar(select(func.count()).select_from(User))
            assert count == 0

    @pytest.mark.asyncio
    async def test_user_lifecycle(self, async_client, session_factory):
        created = json.dumps({"type": "user.created", "data": clerk_user("user_sam", "sam@example.com")}).encode()
        response = await async_client.post("/api/webhooks/clerk", content=created, headers=clerk_headers(created))
        assert response.status_code == 200

        async with session_factory() as session:
            user = (await session.execute(select(User).where(User.clerk_id == "user_sam"))).scalar_one()
            assert user.email == "sam@example.com"
            assert user.role == "CLIENT"

        updated = json.dumps(
            {
                "type": "user.updated",
                "data": clerk_user("user_sam", "sam@example.com", public_metadata={"role": "admin"}),
            }
        ).encode()
        response = await async_client.post(
            "/api/webhooks/clerk",
            content=updated,
            headers=clerk_headers(updated, "msg_2"),
        )
        assert response.status_code == 200

        async with session_factory() as session:
            role = await session.scalar(select(User.role).where(User.clerk_id == "user_sam"))
            assert role == "ADMIN"

        deleted = json.dumps({"type": "user.deleted", "data": {"id": "user_sam"}}).encode()
        response = await async_client.post(
            "/api/webhooks/clerk",
            content=deleted,
            headers=clerk_headers(deleted, "msg_3"),
        )
        assert response.status_code == 200

        async with session_factory() as session:
            assert await session.scalar(select(func.count()).select_from(User)) == 0

    @pytest.mark.asyncio
    async def test_missing_primary_email(self, async_client, session_factory):
        data = clerk_user("user_nomail", "n@example.com", primary_email_address_id="idn_9")
        body = json.dumps({"type": "user.created", "data": data}).encode()

        response = await async_client.post("/api/webhooks/clerk", content=body, headers=clerk_headers(body))

        assert response.status_code == 400
