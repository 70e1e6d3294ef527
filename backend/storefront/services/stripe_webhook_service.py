"""
Stripe webhook service - turns payment events into orders.

Events are deduplicated through the webhook_events table. A failing event
is rolled back, its retry counter is bumped and Stripe is asked to retry
until ``max_retries`` is reached, at which point ops are alerted.
"""
import json
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import settings
from storefront.core.errors import AppError, ErrorCode, not_found, validation_error
from storefront.core.logging import get_logger
from storefront.core.security import sha256_hex, verify_stripe_signature
from storefront.models.analytics import WebhookEvent
from storefront.repositories.analytics import WebhookEventRepository
from storefront.repositories.order import OrderRepository
from storefront.repositories.product import VariantRepository
from storefront.services.cart_service import CartService
from storefront.services.inventory_service import InventoryService, StockLine
from storefront.services.notification_service import NotificationService, notification_service
from storefront.services.order_service import OrderService
from storefront.services.pricing import CartLine

logger = get_logger(__name__)

SOURCE = "stripe"


def parse_stripe_items(raw: Optional[str]) -> list[dict[str, Any]]:
    """Decode the ``items`` metadata written at checkout. Malformed input gives []."""
    if not raw:
        return []
    try:
        items = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Unparseable items metadata")
        return []
    if not isinstance(items, list):
        return []

    parsed = []
    for item in items:
        if not isinstance(item, dict):
            continue
        variant_id = item.get("variantId")
        try:
            quantity = int(item.get("quantity", 0))
        except (TypeError, ValueError):
            continue
        if variant_id and quantity > 0:
            parsed.append({"variant_id": variant_id, "quantity": quantity})
    return parsed


def extract_shipping_address(source: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Order address from Stripe ``shipping`` or ``customer_details``."""
    source = source or {}
    address = source.get("address") or {}
    name = source.get("name")
    if not address.get("line1") or not name or not address.get("city") or not address.get("country"):
        logger.error("Missing critical shipping information in Stripe event")
        raise validation_error("Critical shipping information missing")

    first_name, _, last_name = name.partition(" ")
    return {
        "name": name,
        "street1": address["line1"],
        "street2": address.get("line2") or None,
        "city": address["city"],
        "state": address.get("state") or "",
        "zip": address.get("postal_code") or "",
        "country": address["country"],
        "firstName": first_name,
        "lastName": last_name,
        "phone": source.get("phone"),
        "email": source.get("email"),
    }


class StripeWebhookService:
    def __init__(
        self,
        session: AsyncSession,
        notifications: Optional[NotificationService] = None,
    ) -> None:
        self.session = session
        self.notifications = notifications or notification_service
        self.events = WebhookEventRepository(session)
        self.orders = OrderRepository(session)
        self.variants = VariantRepository(session)

    async def process_webhook(self, body: bytes, signature: Optional[str]) -> tuple[int, dict[str, Any]]:
        """
        Verify and process one delivery.

        Returns the HTTP status and body to send back to Stripe.
        """
        if not signature:
            logger.error("Missing stripe-signature header")
            await self.notifications.alert_invalid_signature(
                SOURCE, "MISSING", "stripe-signature header not provided"
            )
            return 400, {"error": "Missing signature"}

        if not settings.stripe_webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET not configured")
            return 500, {"error": "Webhook not configured"}

        if not verify_stripe_signature(body, signature, settings.stripe_webhook_secret):
            await self.notifications.alert_invalid_signature(SOURCE, signature, "Signature verification failed")
            return 400, {"error": "Invalid webhook signature"}

        try:
            event = json.loads(body)
        except ValueError:
            return 400, {"error": "Invalid payload"}

        event_id = event.get("id")
        event_type = event.get("type")
        logger.info("Webhook event received", event_id=event_id, event_type=event_type)

        record = await self.events.get_by_source_event(SOURCE, event_id)
        if record is not None and record.processed:
            logger.info("Webhook already processed, skipping", event_id=event_id)
            return 200, {"received": True}

        if record is None:
            record = await self.events.create(
                {
                    "source": SOURCE,
                    "event_id": event_id,
                    "event_type": event_type,
                    "payload_hash": sha256_hex(body),
                    "processed": False,
                }
            )

        try:
            await self.dispatch(event)
        except Exception as e:
            return await self._record_failure(event_id, event_type, body, e)

        record.processed = True
        record.processed_at = datetime.now(timezone.utc)
        record.last_error = None
        await self.session.flush()
        return 200, {"received": True}

    async def _record_failure(
        self,
        event_id: str,
        event_type: Optional[str],
        body: bytes,
        error: Exception,
    ) -> tuple[int, dict[str, Any]]:
        logger.error("Webhook processing failed", event_id=event_id, event_type=event_type, error=str(error))

        # drop partial work from the failed handler
        await self.session.rollback()

        record = await self.events.get_by_source_event(SOURCE, event_id)
        if record is None:
            record = WebhookEvent(
                source=SOURCE,
                event_id=event_id,
                event_type=event_type,
                payload_hash=sha256_hex(body),
                processed=False,
                retry_count=0,
                max_retries=3,
            )
            self.session.add(record)

        record.retry_count = (record.retry_count or 0) + 1
        record.last_error = str(error)[:2000]
        await self.session.flush()

        if record.retry_count >= record.max_retries:
            await self.notifications.alert_webhook_failure(
                {
                    "source": SOURCE,
                    "event_id": event_id,
                    "event_type": event_type,
                    "retry_count": record.retry_count,
                    "max_retries": record.max_retries,
                    "error": str(error),
                    "webhook_id": record.id,
                }
            )
            return 200, {"received": True, "error": "Max retries reached"}

        return 500, {"error": "Webhook processing failed"}

    async def dispatch(self, event: dict[str, Any]) -> None:
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}

        if event_type == "checkout.session.completed":
            await self.handle_checkout_session_completed(obj)
        elif event_type == "payment_intent.succeeded":
            await self.handle_payment_intent_succeeded(obj)
        elif event_type == "payment_intent.payment_failed":
            error = (obj.get("last_payment_error") or {}).get("message")
            logger.warning("Payment intent failed", payment_intent_id=obj.get("id"), error=error)
            await self.release_reserved_stock(obj.get("metadata") or {})
        elif event_type == "checkout.session.expired":
            logger.info("Checkout session expired", session_id=obj.get("id"))
            await self.release_reserved_stock(obj.get("metadata") or {})
        else:
            logger.info("Unhandled webhook event type", event_type=event_type)

    async def handle_checkout_session_completed(self, session_obj: dict[str, Any]) -> None:
        if session_obj.get("payment_status") != "paid":
            logger.warning("Session not paid, skipping order creation", session_id=session_obj.get("id"))
            return

        metadata = session_obj.get("metadata") or {}
        items = parse_stripe_items(metadata.get("items"))
        if not metadata.get("userId") or not items:
            raise validation_error(
                f"Missing critical metadata: userId={metadata.get('userId')}, itemsCount={len(items)}"
            )

        payment_intent_id = session_obj.get("payment_intent")
        if await self.orders.get_payment_by_external_id(payment_intent_id):
            logger.info("Payment already processed", payment_intent_id=payment_intent_id)
            return

        if not session_obj.get("amount_total") or not session_obj.get("currency"):
            raise AppError(
                ErrorCode.PAYMENT_FAILED,
                f"Missing amount or currency in Stripe Session: {session_obj.get('id')}",
                400,
            )

        customer = session_obj.get("customer_details") or {}
        await self._create_order(
            payment_intent={
                "id": payment_intent_id,
                "amount": session_obj["amount_total"],
                "currency": session_obj["currency"],
                "metadata": metadata,
                "receipt_email": customer.get("email"),
            },
            items=items,
            address_source=customer,
            order_email=customer.get("email"),
            user_id=metadata.get("userId"),
        )

    async def handle_payment_intent_succeeded(self, intent: dict[str, Any]) -> None:
        metadata = intent.get("metadata") or {}
        items = parse_stripe_items(metadata.get("items"))
        if not items:
            logger.warning("Missing items in payment intent metadata", payment_intent_id=intent.get("id"))
            return

        if await self.orders.get_payment_by_external_id(intent.get("id")):
            logger.info("Payment already processed", payment_intent_id=intent.get("id"))
            return

        if not intent.get("amount") or not intent.get("currency"):
            raise AppError(
                ErrorCode.PAYMENT_FAILED,
                f"Missing amount or currency in PaymentIntent: {intent.get('id')}",
                400,
            )

        address_source = dict(intent.get("shipping") or intent.get("customer_details") or {})
        address_source["email"] = intent.get("receipt_email") or address_source.get("email")

        await self._create_order(
            payment_intent=intent,
            items=items,
            address_source=address_source,
            order_email=address_source.get("email"),
            user_id=metadata.get("userId") or None,
        )

    async def _virtual_cart(self, items: list[dict[str, Any]]) -> list[CartLine]:
        variants = {v.id: v for v in await self.variants.get_many_active([i["variant_id"] for i in items])}
        lines = []
        for item in items:
            variant = variants.get(item["variant_id"])
            if variant is None:
                raise not_found(f"Variant {item['variant_id']} not found")
            lines.append(CartLine(variant=variant, quantity=item["quantity"]))
        return lines

    async def _create_order(
        self,
        *,
        payment_intent: dict[str, Any],
        items: list[dict[str, Any]],
        address_source: dict[str, Any],
        order_email: Optional[str],
        user_id: Optional[str],
    ) -> None:
        lines = await self._virtual_cart(items)
        shipping_address = extract_shipping_address(address_source)

        order_email = order_email or payment_intent.get("receipt_email")
        if not order_email:
            raise validation_error("Order creation aborted: missing order email from Stripe event")

        order, _ = await OrderService(self.session, notifications=self.notifications).create_order_from_cart(
            lines=lines,
            payment_intent=payment_intent,
            shipping_address=shipping_address,
            order_email=order_email,
            user_id=user_id,
        )
        logger.info("Order created from Stripe webhook", order_id=order.id, order_number=order.order_number)

        await self.notifications.send_order_confirmation(order, order_email)
        await self.notifications.send_admin_new_order(order)

        cart_id = (payment_intent.get("metadata") or {}).get("cartId")
        if cart_id:
            await CartService(self.session).clear_cart(cart_id)

    async def release_reserved_stock(self, metadata: dict[str, Any]) -> None:
        items = parse_stripe_items(metadata.get("items"))
        if not items:
            return
        await InventoryService(self.session).release_stock(
            [StockLine(variant_id=i["variant_id"], quantity=i["quantity"]) for i in items]
        )
        logger.info("Reserved stock released", lines=len(items), cart_id=metadata.get("cartId"))
